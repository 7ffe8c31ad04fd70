"""Heuristic extraction of an article record from a parsed Wikipedia page.

Every field degrades independently: a selector that matches nothing yields an
empty or placeholder value, never an exception. The inclusion and exclusion
rules are small predicates over a single element so each can be tuned on
its own.
"""

import urllib.parse

from bs4 import BeautifulSoup, Tag

from .data_structures import ARTICLE_PATH_PREFIX, UNTITLED_PLACEHOLDER, ArticleRecord, ScraperConfig
from .urls import absolutize

# --- Constants ---
TITLE_SELECTOR = "h1#firstHeading, h1.firstHeading"
SUMMARY_CONTAINER_SELECTORS = ("div.mw-parser-output", "#mw-content-text")
LINK_CONTAINER_SELECTOR = "#mw-content-text"
SECTION_HEADLINE_SELECTOR = ".mw-headline"
# Newer MediaWiki skins drop the .mw-headline span and wrap headings in div.mw-heading instead.
SECTION_HEADING_FALLBACK_SELECTOR = ", ".join(f".mw-heading > h{level}" for level in range(2, 7))
SECTION_BOUNDARY_TAG = "h2"
SECTION_BOUNDARY_CLASSES = ("mw-heading", "mw-headline")
BANNER_CLASSES = ("hatnote", "bandeau-container", "metadata")
DISAMBIGUATION_BANNER_ID = "homonymie"
DISAMBIGUATION_NOTICE_WORDS = ("page", "homonymie")
BOILERPLATE_PARAGRAPH_PREFIX = "Cet article"
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".svg", ".gif")
ICON_MARKERS = ("/static/images/", "/icons/", "Icon_", "icon", "logo", "20px-", "15px-")
# --- End Constants ---


def parse_document(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def class_string(element: Tag) -> str:
    classes = element.get("class") or []
    if isinstance(classes, str):
        return classes
    return " ".join(classes)


def element_text(element: Tag) -> str:
    return element.get_text().strip()


# --- Summary predicates ---


def is_section_boundary(element: Tag) -> bool:
    if element.name == SECTION_BOUNDARY_TAG:
        return True
    classes = class_string(element)
    return any(marker in classes for marker in SECTION_BOUNDARY_CLASSES)


def is_banner(element: Tag) -> bool:
    if element.name != "div":
        return False
    classes = class_string(element)
    return any(marker in classes for marker in BANNER_CLASSES)


def is_disambiguation_banner(element: Tag) -> bool:
    if element.get("id") == DISAMBIGUATION_BANNER_ID:
        return True
    text = element_text(element).lower()
    return all(word in text for word in DISAMBIGUATION_NOTICE_WORDS)


def is_boilerplate_paragraph(text: str) -> bool:
    return text.startswith(BOILERPLATE_PARAGRAPH_PREFIX)


# --- Link predicates ---


def is_article_href(href: str) -> bool:
    """Internal article link: not another namespace (colon) and not an in-page anchor."""
    return href.startswith(ARTICLE_PATH_PREFIX) and ":" not in href and "#" not in href


def link_matches_keyword(anchor: Tag, keyword: str) -> bool:
    """Keyword in the link text, title, or href; failing those, in the enclosing paragraph."""
    keyword = keyword.lower()
    keyword_in_url = keyword.replace(" ", "_")
    href = anchor.get("href", "")
    candidates = (
        anchor.get_text().lower(),
        anchor.get("title", "").lower(),
        href.lower(),
        urllib.parse.unquote(href).lower(),
    )
    if any(keyword in candidate for candidate in candidates):
        return True
    if keyword_in_url and any(keyword_in_url in candidate for candidate in candidates[2:]):
        return True

    paragraph = anchor.find_parent("p")
    if paragraph is None:
        return False
    return keyword in paragraph.get_text().lower()


# --- Image predicates ---


def parse_dimension(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def is_icon_sized(image: Tag, min_dimension: int) -> bool:
    """Explicit numeric width or height below the threshold marks an inline UI icon."""
    for attribute in ("width", "height"):
        dimension = parse_dimension(image.get(attribute))
        if dimension is not None and dimension < min_dimension:
            return True
    return False


def has_image_extension(src: str) -> bool:
    lowered = src.lower()
    return any(extension in lowered for extension in IMAGE_EXTENSIONS)


def has_icon_marker(src: str) -> bool:
    return any(marker in src for marker in ICON_MARKERS)


def is_media_hosted(url: str, media_host: str) -> bool:
    return urllib.parse.urlsplit(url).hostname == media_host


# --- Field extraction ---


def extract_title(document: BeautifulSoup, placeholder: str = UNTITLED_PLACEHOLDER) -> str:
    heading = document.select_one(TITLE_SELECTOR)
    if heading is None:
        return placeholder
    return element_text(heading) or placeholder


def find_summary_container(document: BeautifulSoup) -> Tag | None:
    for selector in SUMMARY_CONTAINER_SELECTORS:
        container = document.select_one(selector)
        if container is not None:
            return container
    return None


def extract_summary(document: BeautifulSoup) -> str:
    """Hatnotes and lead paragraphs that precede the first section heading, joined by blank lines.

    Pages without a main content container have no summary.
    """
    container = find_summary_container(document)
    if container is None:
        return ""

    parts: list[str] = []
    for element in container.find_all(recursive=False):
        if is_section_boundary(element):
            break

        if is_banner(element):
            text = element_text(element)
            if text and not is_disambiguation_banner(element):
                parts.append(text)
            continue

        if element.name == "p":
            text = element_text(element)
            if text and not is_boilerplate_paragraph(text):
                parts.append(text)

    return "\n\n".join(parts)


def extract_sections(document: BeautifulSoup) -> list[str]:
    headings = document.select(SECTION_HEADLINE_SELECTOR) or document.select(SECTION_HEADING_FALLBACK_SELECTOR)
    sections = []
    for heading in headings:
        text = element_text(heading)
        # Single characters are markup artifacts, not headings.
        if len(text) > 1:
            sections.append(text)
    return sections


def extract_links(document: BeautifulSoup, keyword: str | None = None, config: ScraperConfig | None = None) -> list[str]:
    config = config or ScraperConfig()
    links: list[str] = []
    for anchor in document.select(f"{LINK_CONTAINER_SELECTOR} a[href^='{ARTICLE_PATH_PREFIX}']"):
        if len(links) >= config.max_links:
            break
        href = anchor.get("href", "")
        if not is_article_href(href):
            continue
        if keyword and not link_matches_keyword(anchor, keyword):
            continue
        links.append(absolutize(href, config.site_origin))
    return links


def extract_images(document: BeautifulSoup, config: ScraperConfig | None = None) -> list[str]:
    config = config or ScraperConfig()
    images: list[str] = []
    for image in document.select("img[src]"):
        if len(images) >= config.max_images:
            break
        src = image.get("src", "")
        if is_icon_sized(image, config.min_image_dimension):
            continue
        if not has_image_extension(src) or has_icon_marker(src):
            continue
        url = absolutize(src, config.site_origin)
        if is_media_hosted(url, config.media_host):
            images.append(url)
    return images


def extract_article(document: BeautifulSoup, url: str, keyword: str | None = None, config: ScraperConfig | None = None) -> ArticleRecord:
    config = config or ScraperConfig()
    return ArticleRecord(
        url=url,
        title=extract_title(document),
        summary=extract_summary(document),
        sections=extract_sections(document),
        links=extract_links(document, keyword, config),
        images=extract_images(document, config),
    )
