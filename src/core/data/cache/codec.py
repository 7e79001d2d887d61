"""Entity <-> cache value conversion.

Values are stored as plain JSON-compatible structures and validated back
into entities on read. A stored value that no longer fits its entity is
treated as a miss.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any

import structlog
from pydantic import BaseModel, TypeAdapter, ValidationError

logger = structlog.get_logger()


@lru_cache(maxsize=None)
def _adapter(tp) -> TypeAdapter:
    return TypeAdapter(tp)


def encode(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [encode(v) for v in value]
    return value


def decode(raw: Any, tp) -> Any | None:
    if raw is None:
        return None
    try:
        return _adapter(tp).validate_python(raw)
    except ValidationError as e:
        logger.warning("cache.bad_entry", type=str(tp), errors=e.error_count())
        return None
