from __future__ import annotations

from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel

from ..core.errors import CopyleaksError, ServerError


def to_jsonable(obj: Any) -> Any:
    """
    Convert API payloads and client objects to JSON-serializable values.

    Security considerations:
    - bytes are summarized by length; raw upload content is never echoed.
    - does NOT execute or import anything dynamically.

    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj

    if isinstance(obj, Enum):
        return obj.value

    if isinstance(obj, (datetime, date)):
        return obj.isoformat()

    if isinstance(obj, Path):
        return str(obj)

    if isinstance(obj, (bytes, bytearray)):
        return {"__bytes_len__": len(obj)}

    # vendor error payloads keep their wire names
    if isinstance(obj, BaseModel):
        return to_jsonable(obj.model_dump(by_alias=True, exclude_none=True))

    if is_dataclass(obj) and not isinstance(obj, type):
        return to_jsonable(asdict(obj))

    if isinstance(obj, Mapping):
        return {str(k): to_jsonable(v) for k, v in obj.items()}

    if isinstance(obj, (list, tuple, set, frozenset)):
        return [to_jsonable(x) for x in obj]

    return str(obj)


def error_to_jsonable(err: BaseException) -> dict:
    """Describe a client error for CLI output."""

    out = {"error": type(err).__name__, "message": str(err)}
    if isinstance(err, ServerError):
        out["status"] = err.status
        out["detail"] = to_jsonable(err.detail)
    elif not isinstance(err, CopyleaksError):
        out["error"] = "UnexpectedError"
    return out
