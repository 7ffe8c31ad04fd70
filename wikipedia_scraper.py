#!/usr/bin/env -S uv run --upgrade

import argparse
import json
import logging
import re
import sys
import time
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

from wikipedia_page.data_structures import REQUEST_DELAY_SECONDS, ArticleRecord, ScraperConfig
from wikipedia_page.errors import FetchError
from wikipedia_page.extraction import extract_article, parse_document
from wikipedia_page.search import search_articles
from wikipedia_page.transport import HttpsTransport

# --- Constants ---
DEFAULT_OUTPUT_DIR = "results"
LOG_FILE = "wikipedia_scraper.log"
DEFAULT_RESULT_COUNT = 5
MAX_INTERACTIVE_RESULTS = 20
FOLDER_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
DISPLAY_DATE_FORMAT = "%d/%m/%Y %H:%M:%S"
SEARCH_SUMMARY_FILE = "SEARCH_SUMMARY.md"
SUMMARY_PREVIEW_CHARS = 300
SECTIONS_PREVIEW_COUNT = 5
MAX_FILENAME_LENGTH = 255
# --- End Constants ---

# Characters rejected by common file systems, plus control characters.
ILLEGAL_FILENAME_CHARS_RE = re.compile(r'[/\\?<>:*|"\x00-\x1f\x7f]')
RESERVED_FILENAME_RE = re.compile(r"^(con|prn|aux|nul|com\d|lpt\d)(\..*)?$", flags=re.IGNORECASE)


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure logging based on verbosity level."""
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(LOG_FILE, mode="w"),
        ],
    )
    return logging.getLogger(__name__)


def sanitize_filename(name: str) -> str:
    """Make an article title safe to use as a file or folder name."""
    cleaned = ILLEGAL_FILENAME_CHARS_RE.sub("", name).strip().rstrip(". ")
    if RESERVED_FILENAME_RE.match(cleaned):
        cleaned = f"_{cleaned}"
    if cleaned in ("", ".", ".."):
        cleaned = "_"
    return cleaned[:MAX_FILENAME_LENGTH]


def parse_url_list(text: str) -> list[str]:
    return [url.strip() for url in text.split(",") if url.strip()]


def load_urls_from_file(path: Path) -> list[str]:
    with path.open(encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip()]


def scrape_article(
    url: str,
    keyword: str | None,
    transport: HttpsTransport,
    config: ScraperConfig,
    logger: logging.Logger,
) -> ArticleRecord:
    """Fetch one article and extract its record. Raises FetchError on transport failure."""
    page = transport.fetch_url(url)
    logger.debug(f"Fetched {len(page.body)} characters from {page.url}")
    return extract_article(parse_document(page.body), page.url, keyword, config)


def resolve_search_folder(output_dir: Path, keyword: str | None, url_count: int, now: datetime) -> Path:
    """Keyword runs and batches get their own timestamped folder; a single URL writes to output_dir."""
    timestamp = now.strftime(FOLDER_TIMESTAMP_FORMAT)
    if keyword:
        return output_dir / f"{sanitize_filename(keyword)}_{timestamp}"
    if url_count > 1:
        return output_dir / f"batch_{timestamp}"
    return output_dir


def generate_markdown(record: ArticleRecord, generated_at: datetime) -> str:
    lines = [
        f"# {record.title}",
        "",
        f"**Source:** [Wikipedia]({record.url})  ",
        f"**Date:** {generated_at.strftime(DISPLAY_DATE_FORMAT)}  ",
        "",
        "## Summary",
        "",
        record.summary if record.summary else "*Summary not available*",
        "",
    ]
    if record.sections:
        lines.extend(["## Sections", ""])
        lines.extend(f"- {section}" for section in record.sections)
        lines.append("")
    return "\n".join(lines) + "\n"


def unique_markdown_path(folder: Path, title: str) -> Path:
    base_name = sanitize_filename(title)
    candidate = folder / f"{base_name}.md"
    suffix = 1
    while candidate.exists():
        candidate = folder / f"{base_name}_{suffix}.md"
        suffix += 1
    return candidate


def save_article_markdown(record: ArticleRecord, folder: Path, generated_at: datetime, logger: logging.Logger) -> Path:
    """Keyword runs keep a single Markdown file per article in the search folder."""
    markdown_path = unique_markdown_path(folder, record.title)
    with markdown_path.open("w", encoding="utf-8", newline="\n") as f:
        f.write(generate_markdown(record, generated_at))
    logger.info(f"Saved markdown to: {markdown_path}")
    return markdown_path


def save_page_data(record: ArticleRecord, folder: Path, generated_at: datetime, logger: logging.Logger) -> Path:
    """Write the record as JSON, Markdown and one plain-text file per field."""
    folder.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Created folder: {folder}")

    files = {
        "data.json": json.dumps(asdict(record), ensure_ascii=False, indent=2),
        "article.md": generate_markdown(record, generated_at),
        "summary.txt": f"Title: {record.title}\n\nURL: {record.url}\n\nSummary:\n{record.summary}\n",
        "sections.txt": "\n".join(record.sections),
        "links.txt": "\n".join(record.links),
        "images.txt": "\n".join(record.images),
    }
    for file_name, content in files.items():
        with (folder / file_name).open("w", encoding="utf-8", newline="\n") as f:
            f.write(content)

    logger.info(f"Saved page data to: {folder}")
    return folder


def generate_search_summary(
    records: list[ArticleRecord],
    folder: Path,
    search_term: str | None,
    generated_at: datetime,
    logger: logging.Logger,
) -> Path:
    """Write an overview of every stored article: table, short digests and global statistics."""
    lines = [f'# Search summary: "{search_term}"' if search_term else "# Scraping summary", ""]
    lines.extend(
        [
            f"**Date**: {generated_at.strftime(DISPLAY_DATE_FORMAT)}",
            "",
            f"**Articles**: {len(records)}",
            "",
            "---",
            "",
            "## Scraped articles",
            "",
            "| # | Article | Sections | Links | Images | File |",
            "|---|---------|----------|-------|--------|------|",
        ]
    )

    def stored_link(record: ArticleRecord) -> str:
        name = sanitize_filename(record.title)
        return f"./{name}.md" if search_term else f"./{name}/article.md"

    for index, record in enumerate(records, start=1):
        counts = f"{len(record.sections)} | {len(record.links)} | {len(record.images)}"
        lines.append(f"| {index} | [{record.title}]({record.url}) | {counts} | [open]({stored_link(record)}) |")

    lines.extend(["", "---", "", "## Article summaries", ""])
    for index, record in enumerate(records, start=1):
        lines.extend([f"### {index}. {record.title}", "", f"**URL**: [{record.title}]({record.url})", ""])
        if record.summary:
            preview = record.summary
            if len(preview) > SUMMARY_PREVIEW_CHARS:
                preview = preview[:SUMMARY_PREVIEW_CHARS] + "..."
            lines.extend([preview, "", f"> [Read the full article]({stored_link(record)})", ""])
        else:
            lines.extend(["*Summary not available*", "", f"> [See the stored data]({stored_link(record)})", ""])

        if record.sections:
            preview_sections = ", ".join(record.sections[:SECTIONS_PREVIEW_COUNT])
            remaining = len(record.sections) - SECTIONS_PREVIEW_COUNT
            if remaining > 0:
                preview_sections += f" (and {remaining} more...)"
            lines.extend([f"**Main sections**: {preview_sections}", ""])

        lines.extend(["---", ""])

    total_sections = sum(len(record.sections) for record in records)
    lines.extend(
        [
            "## Global statistics",
            "",
            "```",
            f"Total articles   : {len(records)}",
            f"Total sections   : {total_sections}",
            f"Total links      : {sum(len(record.links) for record in records)}",
            f"Total images     : {sum(len(record.images) for record in records)}",
            f"Mean sections    : {total_sections / len(records) if records else 0:.1f}",
            f"Total characters : {sum(len(record.summary) for record in records)}",
            "```",
            "",
        ]
    )

    summary_path = folder / SEARCH_SUMMARY_FILE
    with summary_path.open("w", encoding="utf-8", newline="\n") as f:
        f.write("\n".join(lines))
    logger.info(f"Search summary written to: {summary_path}")
    return summary_path


def prompt_for_input(default_count: int) -> tuple[list[str] | None, str | None, int]:
    """Interactive mode: returns (urls, keyword, count); exactly one of urls/keyword is set on success."""
    print("\n=== Wikipedia scraper (interactive mode) ===\n")  # noqa: T201
    print("1. Enter URLs directly")  # noqa: T201
    print("2. Search by keyword")  # noqa: T201
    choice = input("\nYour choice (1-2): ").strip()

    if choice == "1":
        print("\nEnter Wikipedia URLs, one per line. Finish with Ctrl+D (Ctrl+Z then Enter on Windows).\n")  # noqa: T201
        urls: list[str] = []
        while True:
            try:
                line = input().strip()
            except EOFError:
                break
            if line:
                urls.append(line)
                print(f"  [{len(urls)}] Added: {line}")  # noqa: T201
        return urls, None, default_count

    if choice == "2":
        keyword = input("Keyword to search for: ").strip()
        count_str = input(f"Number of results to scrape (default: {default_count}, max {MAX_INTERACTIVE_RESULTS}): ").strip()
        count = default_count
        if count_str:
            try:
                count = min(int(count_str), MAX_INTERACTIVE_RESULTS)
            except ValueError:
                count = default_count
        return None, keyword or None, count

    print("Invalid choice")  # noqa: T201
    return [], None, default_count


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Scrape French Wikipedia articles")
    parser.add_argument("-f", "--file", type=Path, default=None, help="File containing Wikipedia URLs, one per line.")
    parser.add_argument("-u", "--urls", type=str, default=None, help="Comma-separated Wikipedia URLs.")
    parser.add_argument("-k", "--keyword", type=str, default=None, help="Keyword to search Wikipedia for.")
    parser.add_argument(
        "-n",
        "--count",
        type=int,
        default=DEFAULT_RESULT_COUNT,
        help=f"Maximum number of search results to scrape (default: {DEFAULT_RESULT_COUNT}).",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=DEFAULT_OUTPUT_DIR,
        help=f"Directory to save results (default: {DEFAULT_OUTPUT_DIR}).",
    )
    parser.add_argument(
        "-d",
        "--delay",
        type=float,
        default=REQUEST_DELAY_SECONDS,
        help=f"Seconds to wait between requests (default: {REQUEST_DELAY_SECONDS}).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    return parser.parse_args(argv)


def main(
    output_dir_str: str,
    urls: list[str] | None,
    keyword: str | None,
    count: int = DEFAULT_RESULT_COUNT,
    verbose: bool = False,
    delay_seconds: float = REQUEST_DELAY_SECONDS,
    logger: logging.Logger | None = None,
    transport: HttpsTransport | None = None,
) -> list[ArticleRecord]:
    if logger is None:
        logger = setup_logging(verbose)

    config = ScraperConfig(request_delay_seconds=delay_seconds)
    if transport is None:
        transport = HttpsTransport(logger, config)

    if urls is None and keyword:
        logger.info(f'Searching Wikipedia for "{keyword}"')
        urls = search_articles(keyword, count, logger, transport, config)
        for index, url in enumerate(urls, start=1):
            logger.info(f"  {index}. {url}")

    if not urls:
        logger.error("No URL to scrape. Exiting.")
        return []

    now = datetime.now()
    output_dir = Path(output_dir_str)
    search_folder = resolve_search_folder(output_dir, keyword, len(urls), now)
    search_folder.mkdir(parents=True, exist_ok=True)
    logger.info(f"Scraping {len(urls)} page(s) into {search_folder}")

    stored: list[ArticleRecord] = []
    seen_titles: set[str] = set()
    for index, url in enumerate(urls, start=1):
        logger.info(f"[{index}/{len(urls)}] Scraping {url}")
        try:
            record = scrape_article(url, keyword, transport, config, logger)
        except FetchError as e:
            logger.error(f"Could not retrieve {url}: {e}")
        except Exception:
            logger.exception(f"Unexpected error while scraping {url}")
        else:
            title_key = record.title.lower()
            if title_key in seen_titles:
                logger.warning(f"Article already processed (same title): {record.title}. Skipping.")
            else:
                seen_titles.add(title_key)
                if keyword:
                    save_article_markdown(record, search_folder, now, logger)
                else:
                    save_page_data(record, search_folder / sanitize_filename(record.title), now, logger)
                logger.info(
                    f"Title: {record.title} | sections: {len(record.sections)} | links: {len(record.links)} | images: {len(record.images)}"
                )
                stored.append(record)

        if index < len(urls):
            time.sleep(config.request_delay_seconds)

    if len(stored) > 1:
        generate_search_summary(stored, search_folder, keyword, now, logger)

    logger.info(f"Scraping complete: {len(stored)} article(s) stored in {search_folder}")
    return stored


def cli(argv: list[str] | None = None) -> None:
    args = parse_arguments(argv)
    logger = setup_logging(args.verbose)  # Setup logger here for potential early exit messages

    urls: list[str] | None = None
    keyword: str | None = args.keyword
    count: int = args.count

    # A keyword takes precedence: the URLs then come from the search page.
    if not keyword:
        if args.file:
            if not args.file.is_file():
                logger.error(f"URL file not found: {args.file}")
                sys.exit(1)
            urls = load_urls_from_file(args.file)
            logger.info(f"Loaded {len(urls)} URL(s) from {args.file}")
        elif args.urls:
            urls = parse_url_list(args.urls)
        else:
            urls, keyword, count = prompt_for_input(args.count)

    main(
        output_dir_str=args.output,
        urls=urls,
        keyword=keyword,
        count=count,
        verbose=args.verbose,
        delay_seconds=args.delay,
        logger=logger,
    )


if __name__ == "__main__":
    cli()
