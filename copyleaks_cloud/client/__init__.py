"""HTTP execution for the Copyleaks cloud API.

Security notes:
- Treat server responses as untrusted input.
- Avoid printing or logging raw file bytes or Authorization values.
"""

from .http import (  # noqa: F401
    CloudRequest,
    HttpResponse,
    RequestExecutor,
    Result,
    urllib_transport,
)
