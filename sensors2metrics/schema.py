from __future__ import annotations

from importlib import resources
import json
import logging
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

from sensors2metrics.labels import ENGINE_LABELS

logger = logging.getLogger(__name__)


def load_schema() -> dict[str, Any]:
    schema_path = resources.files("sensors2metrics").joinpath(
        "schemas/static-labels.schema.json"
    )
    return json.loads(schema_path.read_text(encoding="utf-8"))


def get_validator() -> Draft202012Validator:
    return Draft202012Validator(schema=load_schema())


def validate_static_labels(payload: Any) -> list[str]:
    validator = get_validator()
    errors = sorted(validator.iter_errors(payload), key=lambda e: list(e.path))
    messages = [error.message for error in errors]
    if isinstance(payload, dict):
        messages.extend(
            f"{name!r} is a reserved label name"
            for name in sorted(ENGINE_LABELS.intersection(payload))
        )
    return messages


def load_static_labels(path: str | Path | None) -> dict[str, str]:
    """Read the static labels file, returning {} if it is missing or invalid."""
    if path is None:
        return {}
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.info("Did not find %s, skipping static labels.", path)
        return {}
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Failed to read static labels from %s: %s", path, exc)
        return {}
    if payload is None:
        logger.info("Null static labels, skipping static labels.")
        return {}
    errors = validate_static_labels(payload)
    if errors:
        logger.warning(
            "Static labels in %s failed validation with %s errors; skipping static labels.",
            path,
            len(errors),
        )
        logger.debug("Static label errors: %s", errors)
        return {}
    logger.info(
        "Static labels loaded: %s",
        ", ".join(f"{key}={value}" for key, value in payload.items()),
    )
    return dict(payload)
