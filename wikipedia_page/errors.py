"""Errors raised while retrieving a page over the secure transport."""


class FetchError(Exception):
    """Base class for every per-fetch transport failure."""


class ConnectionFailedError(FetchError):
    def __init__(self, host: str, reason: str = "") -> None:
        self.host = host
        self.reason = reason
        message = f"Could not connect to {host}"
        super().__init__(f"{message}: {reason}" if reason else message)


class TlsFailedError(FetchError):
    def __init__(self, host: str, reason: str = "") -> None:
        self.host = host
        self.reason = reason
        message = f"TLS session with {host} failed"
        super().__init__(f"{message}: {reason}" if reason else message)


class HttpStatusError(FetchError):
    def __init__(self, status_line: str) -> None:
        self.status_line = status_line
        super().__init__(f"HTTP error: {status_line}")


class MalformedResponseError(FetchError):
    def __init__(self, reason: str = "Could not separate headers from body") -> None:
        self.reason = reason
        super().__init__(reason)


class TooManyRedirectsError(FetchError):
    def __init__(self, url: str, hops: int) -> None:
        self.url = url
        self.hops = hops
        super().__init__(f"Gave up after {hops} redirect(s), last location {url}")
