"""Configuration module — frozen dataclasses loaded from YAML, env vars and CLI args."""

import argparse
import logging
import os
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:4000/analytics"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def load_yaml_section(section: str, path: str | None = None) -> dict:
    """Return one top-level section of the YAML file named by *path*.

    The path falls back to the ``CONFIG_PATH`` environment variable. A missing
    file or malformed YAML yields an empty dict so defaults stay in effect.
    """
    path = path or os.environ.get("CONFIG_PATH")
    if not path:
        return {}

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as exc:
        logger.warning("Invalid YAML in %s (%s), using defaults", path, exc)
        return {}

    if not isinstance(data, dict):
        return {}
    section_data = data.get(section)
    return section_data if isinstance(section_data, dict) else {}


@dataclass(frozen=True)
class LoggerConfig:
    api_url: str = DEFAULT_API_URL
    batch_size: int = 10
    flush_interval: float = 30.0
    backlog_capacity: int = 100
    max_pending: int = 1000
    max_retry_steps: int = 5
    request_timeout: float = 10.0
    store_path: str | None = None

    @property
    def events_url(self) -> str:
        return self.api_url.rstrip("/") + "/events"


def load_logger_config(argv=None, config_path: str | None = None) -> LoggerConfig:
    """Build LoggerConfig from defaults <- YAML <- env vars <- CLI args.

    Pass argv for testability; when None, argparse reads sys.argv.
    """
    file_values = load_yaml_section("logger", config_path)

    def setting(env_name: str, key: str):
        return os.environ.get(env_name, file_values.get(key, getattr(LoggerConfig, key)))

    env_api_url = setting("ANALYTICS_API_URL", "api_url")
    env_batch_size = int(setting("BATCH_SIZE", "batch_size"))
    env_flush_interval = float(setting("FLUSH_INTERVAL", "flush_interval"))
    env_backlog_capacity = int(setting("BACKLOG_CAPACITY", "backlog_capacity"))
    env_max_pending = int(setting("MAX_PENDING", "max_pending"))
    env_max_retry_steps = int(setting("MAX_RETRY_STEPS", "max_retry_steps"))
    env_request_timeout = float(setting("REQUEST_TIMEOUT", "request_timeout"))
    env_store_path = setting("STORE_PATH", "store_path") or None

    # CLI flags override env vars
    parser = argparse.ArgumentParser(description="Event Batch Logger")
    parser.add_argument("--api-url", type=str, default=None)
    parser.add_argument("--batch-size", type=int, default=None)
    parser.add_argument("--flush-interval", type=float, default=None)
    parser.add_argument("--store-path", type=str, default=None)
    args, _ = parser.parse_known_args(argv)

    return LoggerConfig(
        api_url=args.api_url if args.api_url is not None else env_api_url,
        batch_size=args.batch_size if args.batch_size is not None else env_batch_size,
        flush_interval=args.flush_interval if args.flush_interval is not None else env_flush_interval,
        backlog_capacity=env_backlog_capacity,
        max_pending=env_max_pending,
        max_retry_steps=env_max_retry_steps,
        request_timeout=env_request_timeout,
        store_path=args.store_path if args.store_path is not None else env_store_path,
    )


@dataclass(frozen=True)
class CollectorConfig:
    host: str = "0.0.0.0"
    port: int = 4000
    base_path: str = "/analytics"
    max_sessions: int = 500
    debug: bool = False


def load_collector_config(config_path: str | None = None) -> CollectorConfig:
    """Build CollectorConfig from defaults <- YAML <- env vars."""
    file_values = load_yaml_section("collector", config_path)

    def setting(env_name: str, key: str):
        return os.environ.get(env_name, file_values.get(key, getattr(CollectorConfig, key)))

    debug = setting("DEBUG", "debug")
    return CollectorConfig(
        host=setting("COLLECTOR_HOST", "host"),
        port=int(setting("COLLECTOR_PORT", "port")),
        base_path="/" + str(setting("COLLECTOR_BASE_PATH", "base_path")).strip("/"),
        max_sessions=int(setting("MAX_SESSIONS", "max_sessions")),
        debug=_parse_bool(debug) if isinstance(debug, str) else bool(debug),
    )
