"""Python client for the Copyleaks plagiarism-detection cloud API.

Security notes:
- Access tokens and API keys are secrets; the client never logs them.
- Treat every server response as untrusted input.
"""

from .auth.token import AccessToken, AuthTokenProvider, FileTokenStore, MemoryTokenStore  # noqa: F401
from .client.http import CloudRequest, RequestExecutor, Result  # noqa: F401
from .cloud import CopyleaksCloud  # noqa: F401
from .config import CloudConfig, load_config  # noqa: F401
from .core.errors import (  # noqa: F401
    Cancelled,
    ConfigurationError,
    CopyleaksError,
    DecodingError,
    EncodingError,
    NetworkError,
    ServerError,
    TokenStoreError,
    Unauthenticated,
)
from .core.headers import SDK_VERSION as __version__  # noqa: F401
from .models import ApiError, CallbackOptions, ProductType  # noqa: F401
