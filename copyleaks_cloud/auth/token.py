from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from threading import Lock
from typing import Any, Mapping, Optional, Union

from cryptography.fernet import Fernet, InvalidToken

from ..core.errors import DecodingError, TokenStoreError, Unauthenticated

log = logging.getLogger("copyleaks_cloud.auth")

AUTH_SCHEME = "Bearer"

_TOKEN_KEYS = ("access_token", "AccessToken", "accessToken")
_ISSUED_KEYS = (".issued", "issued", "Issued", "issued_at")
_EXPIRES_KEYS = (".expires", "expires", "Expires", "expires_at")
_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")


def _parse_timestamp(raw: Any) -> Optional[datetime]:
    """Parse ISO 8601 or RFC 1123 timestamps; unparseable input yields None."""

    if isinstance(raw, datetime):
        dt = raw
    elif isinstance(raw, str) and raw.strip():
        text = _LONG_FRACTION.sub(r"\1", raw.strip().replace("Z", "+00:00"))
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            try:
                dt = parsedate_to_datetime(raw)
            except (TypeError, ValueError):
                return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _first(payload: Mapping[str, Any], keys) -> Any:
    for k in keys:
        if payload.get(k) is not None:
            return payload[k]
    return None


@dataclass(frozen=True, slots=True)
class AccessToken:
    """Opaque access token returned by login.

    Security notes:
    - `repr` hides the token value so it does not leak into logs.
    """

    value: str
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def __repr__(self) -> str:
        return f"AccessToken(value=<redacted>, expires_at={self.expires_at!r})"

    def header_value(self) -> str:
        return f"{AUTH_SCHEME} {self.value}"

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    @classmethod
    def from_login_response(cls, payload: Any) -> "AccessToken":
        """Extract the token from a decoded login response.

        Raises
        - DecodingError: if the payload carries no token string.
        """

        if not isinstance(payload, Mapping):
            raise DecodingError("login response is not a JSON object")
        value = _first(payload, _TOKEN_KEYS)
        if not isinstance(value, str) or not value.strip():
            raise DecodingError("login response carries no access token")
        return cls(
            value=value.strip(),
            issued_at=_parse_timestamp(_first(payload, _ISSUED_KEYS)),
            expires_at=_parse_timestamp(_first(payload, _EXPIRES_KEYS)),
        )

    def to_record(self) -> dict:
        return {
            "access_token": self.value,
            "issued_at": self.issued_at.isoformat() if self.issued_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "AccessToken":
        return cls.from_login_response(record)


class TokenStore:
    """Persistence for the single access-token record."""

    def load(self) -> Optional[AccessToken]:
        raise NotImplementedError

    def save(self, token: AccessToken) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryTokenStore(TokenStore):
    """Process-local store; the token is gone when the process exits."""

    def __init__(self) -> None:
        self._token: Optional[AccessToken] = None

    def load(self) -> Optional[AccessToken]:
        return self._token

    def save(self, token: AccessToken) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class FileTokenStore(TokenStore):
    """JSON token record on disk, optionally Fernet-encrypted.

    Security notes:
    - The file is written with 0600 permissions and replaced atomically.
    - Without `encryption_key` the token is stored in clear text; protect the
      file with filesystem permissions.
    - A missing, corrupt, or undecryptable record loads as "no token".
    """

    def __init__(self, path: Union[str, Path], encryption_key: Optional[Union[str, bytes]] = None):
        self.path = Path(path).expanduser()
        self._fernet = Fernet(encryption_key) if encryption_key else None

    def load(self) -> Optional[AccessToken]:
        if not self.path.exists():
            return None
        try:
            raw = self.path.read_bytes()
            if self._fernet is not None:
                raw = self._fernet.decrypt(raw)
            return AccessToken.from_record(json.loads(raw.decode("utf-8")))
        except (OSError, InvalidToken, UnicodeDecodeError, json.JSONDecodeError, DecodingError) as e:
            log.warning("token_record_unreadable", extra={"path": str(self.path), "error": type(e).__name__})
            return None

    def save(self, token: AccessToken) -> None:
        data = json.dumps(token.to_record(), sort_keys=True).encode("utf-8")
        if self._fernet is not None:
            data = self._fernet.encrypt(data)

        tmp: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # unique temp name per writer; mkstemp creates it 0600
            fd, tmp = tempfile.mkstemp(prefix=self.path.name + ".", suffix=".tmp", dir=self.path.parent)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp, self.path)
        except OSError as e:
            if tmp is not None:
                try:
                    os.unlink(tmp)
                except FileNotFoundError:
                    pass
            raise TokenStoreError(f"cannot write token record {self.path}: {e}") from e

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class AuthTokenProvider:
    """Single-slot holder for the current access token.

    The slot is shared by every request of the owning client and written only
    by login. Saves are serialized with the store write, so the last save
    wins both in memory and on disk.
    """

    def __init__(self, store: Optional[TokenStore] = None):
        self._store = store or MemoryTokenStore()
        self._lock = Lock()
        self._token: Optional[AccessToken] = None
        self._loaded = False

    def save(self, token: AccessToken) -> None:
        """Replace the current token and persist it.

        Raises
        - TokenStoreError: if the store cannot persist the record. The
          in-memory slot is still updated.
        """

        with self._lock:
            self._token = token
            self._loaded = True
            self._store.save(token)
        log.info("access_token_saved", extra={"expires_at": token.expires_at})

    def current(self) -> Optional[AccessToken]:
        with self._lock:
            if not self._loaded:
                self._token = self._store.load()
                self._loaded = True
            return self._token

    def clear(self) -> None:
        with self._lock:
            self._token = None
            self._loaded = True
            self._store.clear()

    def authorization_value(self) -> Optional[str]:
        """Authorization header value, or None without a usable token."""

        token = self.current()
        if token is None or token.is_expired():
            return None
        return token.header_value()

    def as_authorization_header_value(self) -> str:
        """Authorization header value.

        Raises
        - Unauthenticated: no token saved, or the saved token has expired.
        """

        value = self.authorization_value()
        if value is None:
            raise Unauthenticated("no valid access token; call login first")
        return value
