"""Request construction for the Copyleaks cloud API.

Security notes:
- Nothing in this package performs network I/O.
- Access tokens are treated as secrets and never logged.
"""

from .errors import (  # noqa: F401
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
from .headers import HeaderBuilder, default_headers, merge_headers  # noqa: F401
from .multipart import MultipartFile, encode_multipart  # noqa: F401
from .request import NetworkRequest, RequestBuilder, RequestSpec  # noqa: F401
