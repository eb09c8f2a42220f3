"""Collector service — receives Session envelopes over HTTP."""

import logging

from flask import Flask, jsonify, request

from event_logger.config import CollectorConfig, load_collector_config
from event_logger.session_store import SessionStore
from event_logger.validator import SessionValidator

logger = logging.getLogger(__name__)


def create_app(config: CollectorConfig | None = None):
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        config = load_collector_config()

    validator = SessionValidator()
    store = SessionStore(max_size=config.max_sessions)
    base = config.base_path.rstrip("/")

    # Store components on app for access in tests
    app.config["components"] = {
        "config": config,
        "validator": validator,
        "store": store,
    }

    @app.route("/health")
    def health():
        return jsonify({
            "status": "healthy",
            "total_events": store.total_events,
            "current_sessions": store.current_size,
        })

    @app.route(f"{base}/events", methods=["POST"])
    def collect_events():
        envelope = request.get_json(force=True, silent=True)
        if envelope is None:
            return jsonify({"status": "invalid", "errors": ["body is not valid JSON"]}), 400

        is_valid, errors = validator.validate(envelope)
        if not is_valid:
            logger.warning("Rejected envelope: %s", errors[0])
            return jsonify({"status": "invalid", "errors": errors}), 400

        store.add(envelope)
        count = len(envelope["events"])
        logger.info("Recorded %d events for session %s", count, envelope["sessionId"])
        return jsonify({"status": "accepted", "eventsRecorded": count}), 201

    @app.route(f"{base}/sessions")
    def recent_sessions():
        limit = request.args.get("limit", 20, type=int)
        limit = max(1, min(limit, config.max_sessions))
        return jsonify(store.get_recent(limit))

    @app.route(f"{base}/metrics")
    def metrics():
        summary = store.summary()
        summary["validation"] = validator.get_stats()
        return jsonify(summary)

    return app
