"""Session envelope validation against the collector's JSON schema."""

from collections import defaultdict

import jsonschema

EVENT_SCHEMA = {
    "type": "object",
    "required": [
        "eventType",
        "eventName",
        "timestamp",
        "sessionId",
        "data",
        "page",
        "userAgent",
        "locale",
    ],
    "properties": {
        "eventType": {"type": "string", "minLength": 1},
        "eventName": {"type": "string", "minLength": 1},
        "timestamp": {"type": "integer", "minimum": 0},
        "sessionId": {"type": "string", "minLength": 1},
        "userId": {"type": ["string", "null"]},
        "data": {"type": "object"},
        "page": {"type": "string"},
        "userAgent": {"type": "string"},
        "locale": {"type": "string"},
    },
    "additionalProperties": False,
}

SESSION_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["sessionId", "startTime", "endTime", "events", "metadata"],
    "properties": {
        "sessionId": {"type": "string", "minLength": 1},
        "startTime": {"type": "integer", "minimum": 0},
        "endTime": {"type": "integer", "minimum": 0},
        "userId": {"type": ["string", "null"]},
        "events": {"type": "array", "items": EVENT_SCHEMA},
        "metadata": {
            "type": "object",
            "required": ["locale", "deviceType", "browser", "os"],
            "properties": {
                "locale": {"type": "string"},
                "deviceType": {"enum": ["mobile", "tablet", "desktop"]},
                "browser": {"type": "string"},
                "os": {"type": "string"},
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}


class SessionValidator:
    """Validates Session envelopes against SESSION_SCHEMA."""

    def __init__(self, schema: dict | None = None):
        self._validator = jsonschema.Draft202012Validator(schema or SESSION_SCHEMA)
        self._stats = {
            "total": 0,
            "valid": 0,
            "invalid": 0,
            "error_types": defaultdict(int),
        }

    def validate(self, envelope) -> tuple[bool, list[str]]:
        """Validate an envelope.

        Returns:
            tuple: (is_valid, error messages)
        """
        self._stats["total"] += 1
        errors = list(self._validator.iter_errors(envelope))

        if not errors:
            self._stats["valid"] += 1
            return True, []

        self._stats["invalid"] += 1
        messages = []
        for error in errors:
            self._stats["error_types"][error.validator] += 1
            location = "/".join(str(p) for p in error.absolute_path)
            messages.append(f"{location}: {error.message}" if location else error.message)
        return False, messages

    def get_stats(self) -> dict:
        stats = dict(self._stats)
        stats["error_types"] = dict(stats["error_types"])
        return stats
