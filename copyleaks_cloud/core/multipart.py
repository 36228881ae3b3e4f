from __future__ import annotations

import mimetypes
import os
import secrets
from dataclasses import dataclass
from typing import List, Optional, Tuple

DEFAULT_MIME = "application/octet-stream"
BOUNDARY_PREFIX = "copyleaks.boundary."
PLACEHOLDER_NAME = "file"

_CRLF = "\r\n"


def mime_type_for_extension(extension: Optional[str]) -> str:
    """Resolve a MIME type from a file extension.

    Never fails: an empty or unknown extension maps to application/octet-stream.
    """

    ext = (extension or "").strip().lstrip(".")
    if not ext:
        return DEFAULT_MIME
    guessed, _ = mimetypes.guess_type("upload." + ext, strict=False)
    return guessed or DEFAULT_MIME


def generate_boundary() -> str:
    """Two random 32-bit hex groups under a fixed namespace."""

    return "%s%08x%08x" % (BOUNDARY_PREFIX, secrets.randbits(32), secrets.randbits(32))


@dataclass(frozen=True, slots=True)
class MultipartFile:
    """A single file to upload.

    Lives only for the duration of building one request body.
    """

    filename: Optional[str]
    extension: Optional[str]
    content: bytes

    @property
    def mime_type(self) -> str:
        return mime_type_for_extension(self.extension)

    @property
    def upload_name(self) -> str:
        """Filename placed in Content-Disposition.

        `name` already carrying `.ext` is used as-is; otherwise `.ext` is
        appended. Quote and line-break characters are replaced so the header
        cannot be split.
        """

        name = (self.filename or "").strip() or PLACEHOLDER_NAME
        ext = (self.extension or "").strip().lstrip(".")
        if ext and not name.lower().endswith("." + ext.lower()):
            name = f"{name}.{ext}"
        for ch in ('"', "\r", "\n"):
            name = name.replace(ch, "_")
        return name

    @classmethod
    def from_path(cls, path: str, max_bytes: int) -> "MultipartFile":
        """Read a local file, enforcing an upload size cap.

        Raises
        - ValueError: if the file exceeds `max_bytes`.
        - OSError: if the file cannot be read.
        """

        st = os.stat(path)
        if st.st_size > max_bytes:
            raise ValueError(f"file too large for client upload cap: {st.st_size} > {max_bytes}")
        with open(path, "rb") as f:
            data = f.read(max_bytes + 1)
        if len(data) > max_bytes:
            raise ValueError("file too large for client upload cap")

        base = os.path.basename(path)
        _, ext = os.path.splitext(base)
        return cls(filename=base, extension=ext.lstrip(".") or None, content=data)


def encode_multipart(file: MultipartFile, *, boundary: Optional[str] = None) -> Tuple[str, bytes]:
    """Encode one file as a multipart/form-data body.

    Layout:
      --B
      Content-Disposition: form-data; name="file"; filename="..."
      Content-Type: <mime>
      Content-Transfer-Encoding: binary

      <raw bytes>
      --B--

    Security notes:
    - Caller should enforce size limits (see MultipartFile.from_path).
    - The boundary is random; content that happens to contain it is not
      escaped, which is why it must not be predictable.

    Time/Space: O(n) in file size; the body is built in memory.
    """

    boundary = boundary or generate_boundary()
    parts: List[bytes] = [
        f"--{boundary}{_CRLF}".encode("utf-8"),
        (
            f'Content-Disposition: form-data; name="file"; filename="{file.upload_name}"{_CRLF}'
        ).encode("utf-8"),
        f"Content-Type: {file.mime_type}{_CRLF}".encode("utf-8"),
        f"Content-Transfer-Encoding: binary{_CRLF}{_CRLF}".encode("utf-8"),
        bytes(file.content or b""),
        _CRLF.encode("utf-8"),
        f"--{boundary}--{_CRLF}{_CRLF}".encode("utf-8"),
    ]
    return boundary, b"".join(parts)


def multipart_content_type(boundary: str) -> str:
    return f"multipart/form-data; boundary={boundary}"
