"""Access-token lifecycle for the Copyleaks cloud API.

Security notes:
- Tokens are secrets: never print or log them.
"""

from .token import (  # noqa: F401
    AccessToken,
    AuthTokenProvider,
    FileTokenStore,
    MemoryTokenStore,
    TokenStore,
)
