import string
import urllib.parse

SCHEME_PREFIXES = ("https://", "http://")


def split_url(url: str) -> tuple[str, str]:
    """Split an absolute or schemeless URL into (host, path).

    Never fails: anything without a slash after the host becomes (whole_string, "/").
    """
    url = url.strip()
    for prefix in SCHEME_PREFIXES:
        if url.startswith(prefix):
            url = url[len(prefix) :]
            break

    slash = url.find("/")
    if slash == -1:
        return url, "/"
    return url[:slash], url[slash:]


def resolve_location(location: str, current_host: str) -> tuple[str, str]:
    """Turn a redirect target into (host, path), relative to the host that sent it."""
    location = location.strip()
    if location.startswith("//"):
        return split_url(location[2:])
    if location.startswith("/"):
        return current_host, location
    return split_url(location)


def encode_query(text: str, space: str = "+") -> str:
    """Percent-encode text for a URL, keeping only ASCII alphanumerics and -_.~ as-is.

    Spaces become `space` ("+" for query parameters, "_" for article titles).
    """
    return urllib.parse.quote(text, safe="").replace("%20", space)


def absolutize(href: str, origin: str) -> str:
    """Resolve protocol-relative (//host/...) and root-relative (/wiki/...) references."""
    if href.startswith("//"):
        return f"https:{href}"
    if href.startswith("/"):
        return f"{origin}{href}"
    return href


def request_target(path: str) -> str:
    """Percent-encode whatever a request line cannot carry (non-ASCII, whitespace), leaving existing escapes alone."""
    return urllib.parse.quote(path, safe=string.punctuation)


def dedup_key(url: str) -> str:
    return url.lower().rstrip("/")
