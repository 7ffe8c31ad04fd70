"""Splitting raw HTTP/1.1 responses into status line, headers and body."""

import codecs
import re
from dataclasses import dataclass

from requests.structures import CaseInsensitiveDict
from requests.utils import get_encoding_from_headers

from .errors import MalformedResponseError

# --- Constants ---
DEFAULT_ENCODING = "utf-8"
HEADER_SEPARATORS = (b"\r\n\r\n", b"\n\n")
REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})
# --- End Constants ---

STATUS_LINE_RE = re.compile(r"^HTTP/\d(?:\.\d)?\s+(\d{3})\b")


@dataclass
class HttpResponse:
    status_line: str
    status_code: int
    headers: CaseInsensitiveDict
    body: str | None  # None when no header/body boundary was found

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_redirect(self) -> bool:
        return self.status_code in REDIRECT_STATUS_CODES

    def header(self, name: str) -> str | None:
        return self.headers.get(name)


def split_head_and_body(raw: bytes) -> tuple[bytes, bytes | None]:
    """Split at the first blank line, preferring CRLF framing over bare LF."""
    for separator in HEADER_SEPARATORS:
        position = raw.find(separator)
        if position != -1:
            return raw[:position], raw[position + len(separator) :]
    return raw, None


def parse_status_code(status_line: str) -> int:
    match = STATUS_LINE_RE.match(status_line)
    if not match:
        raise MalformedResponseError(f"Unparsable status line: {status_line!r}")
    return int(match.group(1))


def parse_headers(lines: list[str]) -> CaseInsensitiveDict:
    headers: CaseInsensitiveDict = CaseInsensitiveDict()
    for line in lines:
        name, colon, value = line.partition(":")
        if not colon or not name.strip():
            continue
        # First occurrence wins, matching a top-down header scan.
        headers.setdefault(name.strip(), value.strip())
    return headers


def decode_chunked(body: bytes) -> bytes:
    """Reassemble a `Transfer-Encoding: chunked` body, tolerating a truncated tail."""
    decoded = bytearray()
    position = 0
    while position < len(body):
        line_end = body.find(b"\n", position)
        if line_end == -1:
            break
        size_field = body[position:line_end].split(b";", 1)[0].strip()
        try:
            size = int(size_field, 16)
        except ValueError as e:
            raise MalformedResponseError(f"Invalid chunk size: {size_field!r}") from e
        if size == 0:
            break
        start = line_end + 1
        decoded.extend(body[start : start + size])
        position = start + size
        # Skip the CRLF that closes the chunk data.
        if body[position : position + 2] == b"\r\n":
            position += 2
        elif body[position : position + 1] == b"\n":
            position += 1
    return bytes(decoded)


def response_encoding(headers: CaseInsensitiveDict) -> str:
    """Charset from Content-Type when declared and known to Python, else UTF-8."""
    if "charset" not in headers.get("Content-Type", "").lower():
        return DEFAULT_ENCODING
    encoding = get_encoding_from_headers(headers)
    if not encoding:
        return DEFAULT_ENCODING
    try:
        codecs.lookup(encoding)
    except LookupError:
        return DEFAULT_ENCODING
    return encoding


def parse_response(raw: bytes) -> HttpResponse:
    head, body_bytes = split_head_and_body(raw)
    head_lines = head.decode(DEFAULT_ENCODING, errors="replace").splitlines()
    status_line = head_lines[0].strip() if head_lines else ""
    status_code = parse_status_code(status_line)
    headers = parse_headers(head_lines[1:])

    body = None
    if body_bytes is not None:
        if "chunked" in headers.get("Transfer-Encoding", "").lower():
            body_bytes = decode_chunked(body_bytes)
        body = body_bytes.decode(response_encoding(headers), errors="replace")

    return HttpResponse(status_line=status_line, status_code=status_code, headers=headers, body=body)
