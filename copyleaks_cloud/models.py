from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProductType(str, Enum):
    """Vendor account tier; embedded as the first route segment."""

    BUSINESSES = "businesses"
    ACADEMIC = "academic"


class CallbackOptions(BaseModel):
    """Per-call feature flags, sent as request headers only.

    - http_callback: URL the vendor calls when the scan completes. A `{PID}`
      placeholder in the URL is replaced by the process id.
    - email_callback: address notified on completion.
    - client_custom_message: opaque payload echoed back by the vendor.
    - allow_partial_scan: scan as many pages as the remaining credits allow
      instead of rejecting the request.
    """

    model_config = ConfigDict(frozen=True)

    http_callback: Optional[str] = None
    email_callback: Optional[str] = None
    client_custom_message: Optional[str] = None
    allow_partial_scan: bool = False


class ApiError(BaseModel):
    """Vendor error payload attached to `ServerError.detail`."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    message: Optional[str] = Field(default=None, alias="Message")
    error_code: Optional[Any] = Field(default=None, alias="ErrorCode")
