"""
JSON (de)serialisation of store values.

Anything unparsable, or of the wrong shape, reads as empty: a corrupt index or ledger must not take down the reads.
"""

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def loads_object(raw: str | None, key: str = "") -> dict[str, Any]:
    """Parse a JSON object, or {} when missing / malformed."""
    value = _loads(raw, key)
    return value if isinstance(value, dict) else {}


def loads_list(raw: str | None, key: str = "") -> list[Any]:
    """Parse a JSON array, or [] when missing / malformed."""
    value = _loads(raw, key)
    return value if isinstance(value, list) else []


def loads_timestamps(raw: str | None, key: str = "") -> dict[str, int]:
    """Parse an index mapping key -> epoch ms, dropping entries without a usable timestamp."""
    return to_timestamps(loads_object(raw, key), key)


def to_timestamps(value: Any, key: str = "") -> dict[str, int]:
    """Coerce an already parsed mapping into name -> epoch ms."""
    index: dict[str, int] = {}
    if not isinstance(value, dict):
        return index
    for name, stamp in value.items():
        try:
            index[str(name)] = int(stamp)
        except (TypeError, ValueError):
            logger.warning(f"Dropping index entry {name!r} with bad timestamp {stamp!r} in {key!r}")
    return index


def _loads(raw: str | None, key: str) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Ignoring unparsable store value under {key!r}")
        return None
