"""Demo client entry point — drives the Event Batch Logger with sample interactions."""

import argparse
import logging
import random
import signal
import threading

from event_logger.batch_logger import create_logger
from event_logger.config import load_logger_config
from event_logger.environment import Environment

SAMPLE_CITIES = [("baghdad", "Baghdad"), ("erbil", "Erbil"), ("basra", "Basra"), ("najaf", "Najaf")]
SAMPLE_CATEGORIES = [("events", "Events"), ("hotels", "Hotels"), ("restaurants", "Restaurants"), ("activities", "Activities")]
SAMPLE_QUERIES = ["live music", "rooftop dinner", "family hotel", "museum", "weekend market"]
SAMPLE_LOCALES = ["en", "ar", "ku"]
SAMPLE_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)


def simulate_interaction(analytics, environment: Environment):
    """Perform one random user interaction."""
    action = random.choice(["page", "category", "place", "search", "filter", "city", "language"])

    if action == "page":
        page = random.choice(["/", "/events", "/hotels", "/restaurants", "/activities"])
        environment.navigate(page)
        analytics.track_page_view(page)
    elif action == "category":
        analytics.track_category_click(*random.choice(SAMPLE_CATEGORIES))
    elif action == "place":
        analytics.track_place_view(random.randint(1, 500), f"Place {random.randint(1, 500)}")
    elif action == "search":
        analytics.track_search(random.choice(SAMPLE_QUERIES), {"city": random.choice(SAMPLE_CITIES)[0]})
    elif action == "filter":
        analytics.track_filter_change("price", random.choice(["$", "$$", "$$$"]))
    elif action == "city":
        analytics.track_city_change(*random.choice(SAMPLE_CITIES))
    else:
        new_locale = random.choice(SAMPLE_LOCALES)
        old_locale = environment.snapshot().locale
        environment.set_locale(new_locale)
        analytics.track_language_change(old_locale, new_locale)


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger(__name__)

    parser = argparse.ArgumentParser(description="Event Batch Logger demo client")
    parser.add_argument("--events-per-second", type=int, default=2)
    parser.add_argument("--run-time", type=int, default=30)
    parser.add_argument("--user-id", type=str, default=None)
    args, _ = parser.parse_known_args()

    config = load_logger_config()
    shutdown_event = threading.Event()

    def handle_signal(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    environment = Environment(page="/", user_agent=SAMPLE_USER_AGENT, viewport_width=1280)
    analytics = create_logger(config, environment=environment)
    analytics.start()
    if args.user_id:
        analytics.set_user_id(args.user_id)

    try:
        for _ in range(args.run_time):
            if shutdown_event.is_set():
                break
            for _ in range(args.events_per_second):
                simulate_interaction(analytics, environment)
            shutdown_event.wait(timeout=1.0)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        analytics.handle_unload()
        analytics.destroy()


if __name__ == "__main__":
    main()
