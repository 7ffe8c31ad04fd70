#!/usr/bin/env -S uv run
# ruff: noqa: T201
import json
import logging
import pathlib
import sys
from dataclasses import asdict

from wikipedia_page.errors import FetchError
from wikipedia_page.extraction import extract_article, parse_document
from wikipedia_page.transport import HttpsTransport

URLS = [
    "https://fr.wikipedia.org/wiki/Rust_(langage)",
]
# The committed rust_langage.html is a trimmed copy of the live page, so downloads land in a scratch
# directory; curate a page by hand before moving it next to the committed references.
OUTPUT_DIR = pathlib.Path("tests/golden_html_downloads/")


def reference_name(url: str) -> str:
    """rust_(langage) -> rust_langage"""
    title = url.rstrip("/").split("/")[-1].lower()
    return "".join(char if char.isalnum() else "_" for char in title).strip("_").replace("__", "_")


def download_and_save_html(url: str, output_dir: pathlib.Path, transport: HttpsTransport) -> None:
    """Downloads an article page and saves it along with the record extracted from it.

    Args:
        url: The article URL to download.
        output_dir: The directory to save the HTML and JSON files in.
        transport: The transport used to fetch the page.
    """
    html_filepath = output_dir / f"{reference_name(url)}.html"
    json_filepath = html_filepath.with_suffix(".json")
    try:
        page = transport.fetch_url(url)
    except FetchError as e_fetch:
        print(f"Error downloading {url}: {e_fetch}", file=sys.stderr)
        return

    try:
        with html_filepath.open("w", encoding="utf-8") as f:
            f.write(page.body)
        print(f"Successfully downloaded HTML to {html_filepath}")

        # Review the reference record by hand before committing it.
        record = extract_article(parse_document(page.body), page.url)
        with json_filepath.open("w", encoding="utf-8") as f:
            f.write(json.dumps(asdict(record), ensure_ascii=False, indent=2) + "\n")
        print(f"Saved reference record to {json_filepath}")
    except OSError as e_io:
        print(f"Error saving files for {url} to {output_dir}: {e_io}", file=sys.stderr)


if __name__ == "__main__":
    try:
        OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(f"Error creating output directory {OUTPUT_DIR}: {e}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s: %(message)s")
    transport = HttpsTransport(logging.getLogger(__name__))
    for url in URLS:
        download_and_save_html(url, OUTPUT_DIR, transport)
