from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .core.errors import ConfigurationError
from .core.request import DEFAULT_API_VERSION, DEFAULT_HOST
from .models import ProductType

DEFAULT_MAX_UPLOAD_BYTES = 25 * 1024 * 1024

_TRUE = {"1", "true", "TRUE", "yes", "YES"}


class CloudConfig(BaseModel):
    """Configuration for one `CopyleaksCloud` instance.

    Each client carries its own config; there is no process-wide SDK state,
    so differently configured clients can coexist.
    """

    model_config = ConfigDict(frozen=True)

    product: ProductType = ProductType.BUSINESSES
    sandbox: bool = False
    host: str = DEFAULT_HOST
    api_version: str = DEFAULT_API_VERSION
    timeout_seconds: float = Field(default=60.0, gt=0)
    max_upload_bytes: int = Field(default=DEFAULT_MAX_UPLOAD_BYTES, gt=0)
    max_workers: int = Field(default=4, ge=1)
    require_token: bool = False
    token_file: Optional[str] = None


def load_config(environ: Optional[Mapping[str, str]] = None, **overrides) -> CloudConfig:
    """Build a CloudConfig from COPYLEAKS_* environment variables.

    Explicit keyword overrides win over the environment; `None` overrides are
    ignored so CLI flags can be passed through unconditionally.

    Raises
    - ConfigurationError: on an unknown product or a malformed number.
    """

    env = os.environ if environ is None else environ
    values = {}

    if env.get("COPYLEAKS_PRODUCT"):
        values["product"] = env["COPYLEAKS_PRODUCT"].strip().lower()
    if env.get("COPYLEAKS_SANDBOX"):
        values["sandbox"] = env["COPYLEAKS_SANDBOX"].strip() in _TRUE
    if env.get("COPYLEAKS_REQUIRE_TOKEN"):
        values["require_token"] = env["COPYLEAKS_REQUIRE_TOKEN"].strip() in _TRUE
    if env.get("COPYLEAKS_HOST"):
        values["host"] = env["COPYLEAKS_HOST"].strip()
    if env.get("COPYLEAKS_API_VERSION"):
        values["api_version"] = env["COPYLEAKS_API_VERSION"].strip().strip("/")
    if env.get("COPYLEAKS_TIMEOUT"):
        values["timeout_seconds"] = env["COPYLEAKS_TIMEOUT"].strip()
    if env.get("COPYLEAKS_TOKEN_FILE"):
        values["token_file"] = env["COPYLEAKS_TOKEN_FILE"]

    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return CloudConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration: {e}") from e
