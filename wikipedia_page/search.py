"""Resolve a free-text query to candidate article URLs via the site's search page."""

import logging
from collections.abc import Iterable

from .data_structures import ARTICLE_PATH_PREFIX, ScraperConfig
from .errors import FetchError
from .extraction import is_article_href, parse_document
from .transport import HttpsTransport
from .urls import absolutize, dedup_key, encode_query

# --- Constants ---
SEARCH_PATH_TEMPLATE = "/w/index.php?search={query}&title=Special%3ASearch&fulltext=1"
# Most specific first; later selectors only fill remaining slots.
SEARCH_RESULT_SELECTORS = (
    "div.mw-search-result-heading a",
    "div.mw-search-results li a",
    "ul.mw-search-results li a",
)
# --- End Constants ---


def build_search_path(query: str) -> str:
    return SEARCH_PATH_TEMPLATE.format(query=encode_query(query, space="+"))


def direct_article_url(query: str, config: ScraperConfig | None = None) -> str:
    """Best guess when the search page yields nothing: the query as an article title."""
    config = config or ScraperConfig()
    title = encode_query(query.strip(), space="_")
    return f"{config.site_origin}{ARTICLE_PATH_PREFIX}{title}"


def deduplicate_urls(urls: Iterable[str], max_results: int) -> list[str]:
    """Case- and trailing-slash-insensitive dedupe, first occurrence wins, truncated."""
    seen: set[str] = set()
    unique: list[str] = []
    for url in urls:
        if len(unique) >= max_results:
            break
        key = dedup_key(url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(url)
    return unique


def extract_search_results(html: str, max_results: int, config: ScraperConfig | None = None) -> list[str]:
    config = config or ScraperConfig()
    document = parse_document(html)
    results: list[str] = []
    for selector in SEARCH_RESULT_SELECTORS:
        if len(results) >= max_results:
            break
        for anchor in document.select(selector):
            if len(results) >= max_results:
                break
            href = anchor.get("href", "")
            if not is_article_href(href):
                continue
            url = absolutize(href, config.site_origin)
            if url not in results:
                results.append(url)
    return results


def search_articles(
    query: str,
    max_results: int,
    logger: logging.Logger,
    transport: HttpsTransport | None = None,
    config: ScraperConfig | None = None,
) -> list[str]:
    config = config or ScraperConfig()
    if max_results < 1:
        return []
    transport = transport or HttpsTransport(logger, config)

    search_path = build_search_path(query)
    logger.info(f"Fetching search page https://{config.site_host}{search_path}")

    candidates: list[str] = []
    try:
        page = transport.fetch(config.site_host, search_path)
        candidates = extract_search_results(page.body, max_results, config)
    except FetchError as e:
        logger.warning(f"Search request for '{query}' failed: {e}. Falling back to a direct article URL.")

    if not candidates:
        fallback = direct_article_url(query, config)
        logger.info(f"No search results for '{query}', trying {fallback}")
        candidates = [fallback]

    results = deduplicate_urls(candidates, max_results)
    logger.debug(f"Search for '{query}' resolved {len(results)} URL(s)")
    return results
