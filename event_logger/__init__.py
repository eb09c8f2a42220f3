"""Batched analytics event logging with a companion HTTP collector."""

from event_logger.batch_logger import EventBatchLogger, create_logger
from event_logger.config import LoggerConfig, load_logger_config

__all__ = ["EventBatchLogger", "LoggerConfig", "create_logger", "load_logger_config"]
