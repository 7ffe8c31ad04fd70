"""HTTPS GET over a hand-driven TLS session.

Each request opens its own TCP connection, negotiates TLS against the certifi
trust store, writes a literal HTTP/1.1 request with `Connection: close` and
reads until the peer closes the stream. Redirects are followed by opening a
fresh connection per hop.
"""

import enum
import logging
import socket
import ssl
from collections.abc import Callable
from typing import Any

import certifi

from .data_structures import FetchedPage, ScraperConfig
from .errors import ConnectionFailedError, HttpStatusError, MalformedResponseError, TlsFailedError, TooManyRedirectsError
from .http_framing import parse_response
from .urls import request_target, resolve_location, split_url

# --- Constants ---
HTTPS_PORT = 443
READ_CHUNK_SIZE = 8192
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
ACCEPT_LANGUAGE = "fr,fr-FR;q=0.8,en-US;q=0.5,en;q=0.3"
# --- End Constants ---


class ConnectionState(enum.Enum):
    HANDSHAKING = "handshaking"
    REQUESTING = "requesting"
    READING = "reading"
    COMPLETE = "complete"
    FAILED = "failed"


def create_tls_context() -> ssl.SSLContext:
    """Client context trusting only the well-known CAs bundled with certifi; no client certificate."""
    return ssl.create_default_context(cafile=certifi.where())


def build_request(host: str, path: str) -> bytes:
    lines = [
        f"GET {request_target(path)} HTTP/1.1",
        f"Host: {host}",
        f"User-Agent: {USER_AGENT}",
        f"Accept: {ACCEPT}",
        f"Accept-Language: {ACCEPT_LANGUAGE}",
        "Connection: close",
        "",
        "",
    ]
    return "\r\n".join(lines).encode("ascii", errors="strict")


class TlsSession:
    """TLS over an already connected socket, driven through in-memory BIOs.

    `ssl.SSLWantReadError` is the would-block signal: pending records are
    flushed to the socket, more ciphertext is read from it, and the TLS
    operation is retried.
    """

    def __init__(self, sock: socket.socket, tls: ssl.SSLObject, incoming: ssl.MemoryBIO, outgoing: ssl.MemoryBIO, host: str) -> None:
        self.sock = sock
        self.tls = tls
        self.incoming = incoming
        self.outgoing = outgoing
        self.host = host
        self.state = ConnectionState.HANDSHAKING

    @classmethod
    def wrap(cls, sock: socket.socket, context: ssl.SSLContext, host: str) -> "TlsSession":
        incoming = ssl.MemoryBIO()
        outgoing = ssl.MemoryBIO()
        tls = context.wrap_bio(incoming, outgoing, server_hostname=host)
        return cls(sock, tls, incoming, outgoing, host)

    def _flush(self) -> None:
        data = self.outgoing.read()
        if data:
            self.sock.sendall(data)

    def _pump(self) -> bool:
        """Flush pending records, then feed one socket read into the TLS engine. False on EOF."""
        self._flush()
        chunk = self.sock.recv(READ_CHUNK_SIZE)
        if not chunk:
            self.incoming.write_eof()
            return False
        self.incoming.write(chunk)
        return True

    def _drive(self, operation: Callable[[], Any]) -> Any:
        while True:
            try:
                result = operation()
            except ssl.SSLWantReadError:
                if not self._pump():
                    raise ssl.SSLEOFError("Connection closed while the TLS session still expected data")
                continue
            self._flush()
            return result

    def handshake(self) -> None:
        try:
            self._drive(self.tls.do_handshake)
        except ssl.SSLError as e:
            self.state = ConnectionState.FAILED
            raise TlsFailedError(self.host, str(e)) from e
        self.state = ConnectionState.REQUESTING

    def send(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = self._drive(lambda: self.tls.write(view))
            view = view[written:]
        self.state = ConnectionState.READING

    def receive_all(self) -> bytes:
        response = bytearray()
        while True:
            try:
                chunk = self.tls.read(READ_CHUNK_SIZE)
            except ssl.SSLWantReadError:
                if self._pump():
                    continue
                break
            except (ssl.SSLZeroReturnError, ssl.SSLEOFError):
                # close_notify or a ragged close: the server is done sending.
                break
            if not chunk:
                break
            response.extend(chunk)
        self.state = ConnectionState.COMPLETE
        return bytes(response)


class HttpsTransport:
    """Fetch pages over HTTPS without a general-purpose HTTP client.

    Instantiate one per call site; nothing is shared between fetches.
    """

    def __init__(self, logger: logging.Logger, config: ScraperConfig | None = None, context: ssl.SSLContext | None = None) -> None:
        self.logger = logger
        self.config = config or ScraperConfig()
        self.context = context or create_tls_context()

    def exchange(self, host: str, path: str) -> bytes:
        """One request/response over a fresh connection; returns the raw response bytes."""
        self.logger.debug(f"Connecting to {host}:{HTTPS_PORT} for {path}")
        try:
            sock = socket.create_connection((host, HTTPS_PORT), timeout=self.config.timeout_seconds)
        except OSError as e:
            raise ConnectionFailedError(host, str(e)) from e

        with sock:
            session = TlsSession.wrap(sock, self.context, host)
            try:
                session.handshake()
                session.send(build_request(host, path))
                raw = session.receive_all()
            except ssl.SSLError as e:
                session.state = ConnectionState.FAILED
                raise TlsFailedError(host, str(e)) from e
            except OSError as e:
                session.state = ConnectionState.FAILED
                raise ConnectionFailedError(host, str(e)) from e

        self.logger.debug(f"Received {len(raw)} bytes from {host}{path}")
        return raw

    def fetch(self, host: str, path: str) -> FetchedPage:
        hops = 0
        while True:
            response = parse_response(self.exchange(host, path))

            if response.is_redirect:
                location = response.header("Location")
                if location:
                    if hops >= self.config.max_redirects:
                        raise TooManyRedirectsError(location, hops)
                    hops += 1
                    host, path = resolve_location(location, host)
                    self.logger.debug(f"Redirect {hops} ({response.status_code}) to https://{host}{path}")
                    continue

            if not response.is_success:
                raise HttpStatusError(response.status_line)
            if response.body is None:
                raise MalformedResponseError
            return FetchedPage(url=f"https://{host}{path}", body=response.body)

    def fetch_url(self, url: str) -> FetchedPage:
        host, path = split_url(url)
        return self.fetch(host, path)
