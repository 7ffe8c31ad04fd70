import json
import logging
import ssl
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any
from unittest.mock import ANY, MagicMock

import pytest

from wikipedia_page.data_structures import ArticleRecord, FetchedPage, ScraperConfig
from wikipedia_page.errors import ConnectionFailedError
from wikipedia_page.transport import HttpsTransport
from wikipedia_scraper import (
    DEFAULT_OUTPUT_DIR,
    DEFAULT_RESULT_COUNT,
    MAX_FILENAME_LENGTH,
    SEARCH_SUMMARY_FILE,
    cli,
    generate_markdown,
    generate_search_summary,
    load_urls_from_file,
    main,
    parse_arguments,
    parse_url_list,
    prompt_for_input,
    resolve_search_folder,
    sanitize_filename,
    save_article_markdown,
    save_page_data,
    scrape_article,
)

GENERATED_AT = datetime(2024, 5, 1, 12, 30, 45)

RUST_RECORD = ArticleRecord(
    url="https://fr.wikipedia.org/wiki/Rust_(langage)",
    title="Rust (langage)",
    summary="Rust est un langage de programmation compilé.",
    sections=["Histoire", "Syntaxe"],
    links=["https://fr.wikipedia.org/wiki/Mozilla", "https://fr.wikipedia.org/wiki/Graydon_Hoare"],
    images=["https://upload.wikimedia.org/wikipedia/commons/thumb/c/cd/Ferris.jpg/220px-Ferris.jpg"],
)
PYTHON_RECORD = ArticleRecord(url="https://fr.wikipedia.org/wiki/Python_(langage)", title="Python (langage)")

ARTICLE_HTML = """
<html><body>
<h1 id="firstHeading">Rust (langage)</h1>
<div id="mw-content-text"><div class="mw-parser-output">
<p>Rust est un langage de programmation compilé.</p>
<h2><span class="mw-headline">Histoire</span></h2>
</div></div>
</body></html>
"""


# --- Fixtures ---
@pytest.fixture
def mock_logger(mocker: Any) -> Any:
    return mocker.MagicMock(spec=logging.Logger)


@pytest.fixture
def mock_sleep(mocker: Any) -> Any:
    return mocker.patch("time.sleep")


# --- End Fixtures ---


class TestSanitizeFilename:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Rust (langage)", "Rust (langage)"),
            ("AC/DC", "ACDC"),
            ('Qu\'est-ce que "l\'art" ?', "Qu'est-ce que l'art"),
            ("C:\\Windows|<tmp>*", "CWindowstmp"),
            ("name. ", "name"),
            ("  spaced  ", "spaced"),
            ("con", "_con"),
            ("LPT1.txt", "_LPT1.txt"),
            ("...", "_"),
            ("", "_"),
            ("tab\there", "tabhere"),
        ],
    )
    def test_sanitize(self, name: str, expected: str) -> None:
        assert sanitize_filename(name) == expected

    def test_long_names_are_truncated(self) -> None:
        assert len(sanitize_filename("a" * 300)) == MAX_FILENAME_LENGTH


class TestUrlInputs:
    @staticmethod
    def test_parse_url_list() -> None:
        assert parse_url_list(" https://a/wiki/A ,https://a/wiki/B,, ") == ["https://a/wiki/A", "https://a/wiki/B"]

    @staticmethod
    def test_load_urls_from_file(tmp_path: Path) -> None:
        url_file = tmp_path / "urls.txt"
        url_file.write_text("https://fr.wikipedia.org/wiki/Rust\n\n  https://fr.wikipedia.org/wiki/Python  \n", encoding="utf-8")

        assert load_urls_from_file(url_file) == ["https://fr.wikipedia.org/wiki/Rust", "https://fr.wikipedia.org/wiki/Python"]


class TestResolveSearchFolder:
    @pytest.mark.parametrize(
        ("keyword", "url_count", "expected"),
        [
            ("rust langage", 3, "out/rust langage_20240501_123045"),
            ("a/b", 1, "out/ab_20240501_123045"),
            (None, 2, "out/batch_20240501_123045"),
            (None, 1, "out"),
        ],
    )
    def test_folder(self, keyword: str | None, url_count: int, expected: str) -> None:
        assert resolve_search_folder(Path("out"), keyword, url_count, GENERATED_AT) == Path(expected)


class TestGenerateMarkdown:
    @staticmethod
    def test_full_record() -> None:
        expected = (
            "# Rust (langage)\n"
            "\n"
            "**Source:** [Wikipedia](https://fr.wikipedia.org/wiki/Rust_(langage))  \n"
            "**Date:** 01/05/2024 12:30:45  \n"
            "\n"
            "## Summary\n"
            "\n"
            "Rust est un langage de programmation compilé.\n"
            "\n"
            "## Sections\n"
            "\n"
            "- Histoire\n"
            "- Syntaxe\n"
            "\n"
        )
        assert generate_markdown(RUST_RECORD, GENERATED_AT) == expected

    @staticmethod
    def test_missing_summary_and_sections() -> None:
        markdown = generate_markdown(PYTHON_RECORD, GENERATED_AT)
        assert "*Summary not available*" in markdown
        assert "## Sections" not in markdown
        assert markdown.endswith("*Summary not available*\n\n")


class TestSaving:
    def test_save_page_data_writes_every_field(self, tmp_path: Path, mock_logger: MagicMock) -> None:
        folder = save_page_data(RUST_RECORD, tmp_path / "Rust (langage)", GENERATED_AT, mock_logger)

        assert sorted(path.name for path in folder.iterdir()) == [
            "article.md",
            "data.json",
            "images.txt",
            "links.txt",
            "sections.txt",
            "summary.txt",
        ]
        assert json.loads((folder / "data.json").read_text(encoding="utf-8")) == asdict(RUST_RECORD)
        assert "compilé" in (folder / "data.json").read_text(encoding="utf-8")
        assert (folder / "sections.txt").read_text(encoding="utf-8") == "Histoire\nSyntaxe"
        assert (folder / "links.txt").read_text(encoding="utf-8").splitlines() == RUST_RECORD.links
        assert (folder / "summary.txt").read_text(encoding="utf-8") == (
            "Title: Rust (langage)\n\nURL: https://fr.wikipedia.org/wiki/Rust_(langage)\n\nSummary:\nRust est un langage de programmation compilé.\n"
        )
        assert (folder / "article.md").read_text(encoding="utf-8") == generate_markdown(RUST_RECORD, GENERATED_AT)
        mock_logger.info.assert_called_once_with(f"Saved page data to: {folder}")

    def test_save_page_data_empty_fields(self, tmp_path: Path, mock_logger: MagicMock) -> None:
        folder = save_page_data(PYTHON_RECORD, tmp_path / "Python", GENERATED_AT, mock_logger)
        assert (folder / "images.txt").read_text(encoding="utf-8") == ""

    def test_save_article_markdown_never_overwrites(self, tmp_path: Path, mock_logger: MagicMock) -> None:
        first = save_article_markdown(RUST_RECORD, tmp_path, GENERATED_AT, mock_logger)
        second = save_article_markdown(RUST_RECORD, tmp_path, GENERATED_AT, mock_logger)
        third = save_article_markdown(RUST_RECORD, tmp_path, GENERATED_AT, mock_logger)

        assert [first.name, second.name, third.name] == ["Rust (langage).md", "Rust (langage)_1.md", "Rust (langage)_2.md"]
        assert first.read_text(encoding="utf-8").startswith("# Rust (langage)\n")


class TestGenerateSearchSummary:
    def test_keyword_summary(self, tmp_path: Path, mock_logger: MagicMock) -> None:
        long_record = ArticleRecord(
            url="https://fr.wikipedia.org/wiki/Rouille",
            title="Rouille",
            summary="x" * 400,
            sections=[f"Section {i}" for i in range(7)],
        )

        path = generate_search_summary([RUST_RECORD, long_record, PYTHON_RECORD], tmp_path, "rust", GENERATED_AT, mock_logger)
        text = path.read_text(encoding="utf-8")

        assert path == tmp_path / SEARCH_SUMMARY_FILE
        assert text.startswith('# Search summary: "rust"\n')
        assert "**Articles**: 3" in text
        assert "| 1 | [Rust (langage)](https://fr.wikipedia.org/wiki/Rust_(langage)) | 2 | 2 | 1 | [open](./Rust (langage).md) |" in text
        assert "x" * 300 + "..." in text
        assert "x" * 301 not in text
        assert "(and 2 more...)" in text
        assert "*Summary not available*" in text
        assert "Total articles   : 3" in text
        assert "Mean sections    : 3.0" in text

    def test_batch_summary_links_to_folders(self, tmp_path: Path, mock_logger: MagicMock) -> None:
        path = generate_search_summary([RUST_RECORD, PYTHON_RECORD], tmp_path, None, GENERATED_AT, mock_logger)
        text = path.read_text(encoding="utf-8")

        assert text.startswith("# Scraping summary\n")
        assert "[open](./Rust (langage)/article.md)" in text


class TestPromptForInput:
    def test_url_mode_reads_until_eof(self, mocker: Any) -> None:
        mocker.patch("builtins.input", side_effect=["1", "https://fr.wikipedia.org/wiki/Rust", "", "https://fr.wikipedia.org/wiki/Go", EOFError])

        assert prompt_for_input(5) == (["https://fr.wikipedia.org/wiki/Rust", "https://fr.wikipedia.org/wiki/Go"], None, 5)

    @pytest.mark.parametrize(("count_answer", "expected_count"), [("3", 3), ("50", 20), ("", 5), ("beaucoup", 5)])
    def test_keyword_mode(self, mocker: Any, count_answer: str, expected_count: int) -> None:
        mocker.patch("builtins.input", side_effect=["2", " rust ", count_answer])

        assert prompt_for_input(5) == (None, "rust", expected_count)

    def test_invalid_choice(self, mocker: Any) -> None:
        mocker.patch("builtins.input", side_effect=["9"])

        assert prompt_for_input(5) == ([], None, 5)


class TestParseArguments:
    @staticmethod
    def test_defaults() -> None:
        args = parse_arguments([])
        assert args.file is None
        assert args.urls is None
        assert args.keyword is None
        assert args.count == DEFAULT_RESULT_COUNT
        assert args.output == DEFAULT_OUTPUT_DIR
        assert args.delay == 1.0
        assert args.verbose is False

    @staticmethod
    def test_all_flags() -> None:
        args = parse_arguments(["-f", "urls.txt", "-k", "rust", "-n", "3", "-o", "out", "-d", "0.5", "-v"])
        assert args.file == Path("urls.txt")
        assert args.keyword == "rust"
        assert args.count == 3
        assert args.output == "out"
        assert args.delay == 0.5
        assert args.verbose is True


class TestScrapeArticle:
    def test_record_uses_final_url(self, mock_logger: MagicMock) -> None:
        transport = MagicMock(spec=HttpsTransport)
        transport.fetch_url.return_value = FetchedPage(url="https://fr.wikipedia.org/wiki/Rust_(langage)", body=ARTICLE_HTML)

        record = scrape_article("https://fr.wikipedia.org/wiki/Rust", None, transport, ScraperConfig(), mock_logger)

        transport.fetch_url.assert_called_once_with("https://fr.wikipedia.org/wiki/Rust")
        assert record.url == "https://fr.wikipedia.org/wiki/Rust_(langage)"
        assert record.title == "Rust (langage)"
        assert record.sections == ["Histoire"]

    def test_redirect_through_transport(self, mock_logger: MagicMock, mocker: Any) -> None:
        transport = HttpsTransport(mock_logger, context=MagicMock(spec=ssl.SSLContext))
        mocker.patch.object(
            transport,
            "exchange",
            side_effect=[
                b"HTTP/1.1 301 Moved Permanently\r\nLocation: /wiki/Rust_(langage)\r\n\r\n",
                b"HTTP/1.1 200 OK\r\nContent-Type: text/html; charset=UTF-8\r\n\r\n" + ARTICLE_HTML.encode("utf-8"),
            ],
        )

        record = scrape_article("https://fr.wikipedia.org/wiki/Rust", None, transport, ScraperConfig(), mock_logger)

        assert record.url == "https://fr.wikipedia.org/wiki/Rust_(langage)"
        assert record.summary == "Rust est un langage de programmation compilé."


class TestMain:
    def test_batch_run_stores_unique_articles(self, tmp_path: Path, mock_logger: MagicMock, mock_sleep: MagicMock, mocker: Any) -> None:
        duplicate = ArticleRecord(url="https://fr.wikipedia.org/wiki/Rust_(Langage)", title="RUST (LANGAGE)")
        mocker.patch(
            "wikipedia_scraper.scrape_article",
            side_effect=[RUST_RECORD, ConnectionFailedError("fr.wikipedia.org", "refused"), duplicate, PYTHON_RECORD],
        )
        urls = [
            "https://fr.wikipedia.org/wiki/Rust",
            "https://fr.wikipedia.org/wiki/Down",
            "https://fr.wikipedia.org/wiki/Rust_(Langage)",
            "https://fr.wikipedia.org/wiki/Python",
        ]

        stored = main(str(tmp_path), urls, None, delay_seconds=0.25, logger=mock_logger, transport=MagicMock())

        assert stored == [RUST_RECORD, PYTHON_RECORD]
        (batch_folder,) = tmp_path.iterdir()
        assert batch_folder.name.startswith("batch_")
        assert (batch_folder / "Rust (langage)" / "data.json").is_file()
        assert (batch_folder / "Python (langage)" / "article.md").is_file()
        assert (batch_folder / SEARCH_SUMMARY_FILE).is_file()
        mock_logger.error.assert_any_call("Could not retrieve https://fr.wikipedia.org/wiki/Down: Could not connect to fr.wikipedia.org: refused")
        mock_logger.warning.assert_called_once()
        assert mock_sleep.call_count == 3
        mock_sleep.assert_called_with(0.25)

    def test_single_url_writes_into_output_dir(self, tmp_path: Path, mock_logger: MagicMock, mock_sleep: MagicMock, mocker: Any) -> None:
        mocker.patch("wikipedia_scraper.scrape_article", return_value=RUST_RECORD)

        stored = main(str(tmp_path), ["https://fr.wikipedia.org/wiki/Rust"], None, logger=mock_logger, transport=MagicMock())

        assert stored == [RUST_RECORD]
        assert (tmp_path / "Rust (langage)" / "summary.txt").is_file()
        assert not (tmp_path / SEARCH_SUMMARY_FILE).exists()
        mock_sleep.assert_not_called()

    def test_keyword_run_searches_and_saves_markdown(self, tmp_path: Path, mock_logger: MagicMock, mock_sleep: MagicMock, mocker: Any) -> None:
        transport = MagicMock()
        mock_search = mocker.patch(
            "wikipedia_scraper.search_articles",
            return_value=["https://fr.wikipedia.org/wiki/Rust_(langage)", "https://fr.wikipedia.org/wiki/Python_(langage)"],
        )
        mock_scrape = mocker.patch("wikipedia_scraper.scrape_article", side_effect=[RUST_RECORD, PYTHON_RECORD])

        stored = main(str(tmp_path), None, "langage", count=3, logger=mock_logger, transport=transport)

        mock_search.assert_called_once_with("langage", 3, mock_logger, transport, ANY)
        assert mock_scrape.call_args_list[0].args[:3] == ("https://fr.wikipedia.org/wiki/Rust_(langage)", "langage", transport)
        assert stored == [RUST_RECORD, PYTHON_RECORD]
        (search_folder,) = tmp_path.iterdir()
        assert search_folder.name.startswith("langage_")
        assert sorted(path.name for path in search_folder.iterdir()) == ["Python (langage).md", "Rust (langage).md", SEARCH_SUMMARY_FILE]
        assert '# Search summary: "langage"' in (search_folder / SEARCH_SUMMARY_FILE).read_text(encoding="utf-8")

    def test_unexpected_error_is_logged_and_skipped(self, tmp_path: Path, mock_logger: MagicMock, mock_sleep: MagicMock, mocker: Any) -> None:
        mocker.patch("wikipedia_scraper.scrape_article", side_effect=ValueError("boom"))

        assert main(str(tmp_path), ["https://fr.wikipedia.org/wiki/Rust"], None, logger=mock_logger, transport=MagicMock()) == []
        mock_logger.exception.assert_called_once_with("Unexpected error while scraping https://fr.wikipedia.org/wiki/Rust")

    def test_no_urls(self, tmp_path: Path, mock_logger: MagicMock) -> None:
        output_dir = tmp_path / "out"

        assert main(str(output_dir), [], None, logger=mock_logger, transport=MagicMock()) == []
        mock_logger.error.assert_called_once_with("No URL to scrape. Exiting.")
        assert not output_dir.exists()

    def test_keyword_without_results(self, tmp_path: Path, mock_logger: MagicMock, mocker: Any) -> None:
        mocker.patch("wikipedia_scraper.search_articles", return_value=[])

        assert main(str(tmp_path / "out"), None, "introuvable", logger=mock_logger, transport=MagicMock()) == []
        mock_logger.error.assert_called_once_with("No URL to scrape. Exiting.")

    def test_sets_up_logging_and_transport_when_missing(self, tmp_path: Path, mock_logger: MagicMock, mocker: Any) -> None:
        mock_setup = mocker.patch("wikipedia_scraper.setup_logging", return_value=mock_logger)
        mock_transport_cls = mocker.patch("wikipedia_scraper.HttpsTransport")

        main(str(tmp_path), [], None, verbose=True, delay_seconds=2.0)

        mock_setup.assert_called_once_with(True)
        mock_transport_cls.assert_called_once_with(mock_logger, ScraperConfig(request_delay_seconds=2.0))


class TestCli:
    @pytest.fixture
    def mock_main(self, mocker: Any, mock_logger: MagicMock) -> Any:
        mocker.patch("wikipedia_scraper.setup_logging", return_value=mock_logger)
        return mocker.patch("wikipedia_scraper.main")

    def test_urls_flag(self, mock_main: MagicMock, mock_logger: MagicMock) -> None:
        cli(["-u", "https://fr.wikipedia.org/wiki/Rust, https://fr.wikipedia.org/wiki/Go"])

        mock_main.assert_called_once_with(
            output_dir_str=DEFAULT_OUTPUT_DIR,
            urls=["https://fr.wikipedia.org/wiki/Rust", "https://fr.wikipedia.org/wiki/Go"],
            keyword=None,
            count=DEFAULT_RESULT_COUNT,
            verbose=False,
            delay_seconds=1.0,
            logger=mock_logger,
        )

    def test_keyword_takes_precedence(self, mock_main: MagicMock) -> None:
        cli(["-k", "rust", "-u", "https://fr.wikipedia.org/wiki/Go", "-n", "2"])

        kwargs = mock_main.call_args.kwargs
        assert kwargs["urls"] is None
        assert kwargs["keyword"] == "rust"
        assert kwargs["count"] == 2

    def test_url_file(self, mock_main: MagicMock, tmp_path: Path) -> None:
        url_file = tmp_path / "urls.txt"
        url_file.write_text("https://fr.wikipedia.org/wiki/Rust\n", encoding="utf-8")

        cli(["-f", str(url_file), "-o", str(tmp_path / "out")])

        assert mock_main.call_args.kwargs["urls"] == ["https://fr.wikipedia.org/wiki/Rust"]
        assert mock_main.call_args.kwargs["output_dir_str"] == str(tmp_path / "out")

    def test_missing_url_file_exits(self, mock_main: MagicMock, mock_logger: MagicMock, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            cli(["-f", str(tmp_path / "missing.txt")])

        assert exc_info.value.code == 1
        mock_logger.error.assert_called_once()
        mock_main.assert_not_called()

    def test_interactive_mode(self, mock_main: MagicMock, mocker: Any) -> None:
        mock_prompt = mocker.patch("wikipedia_scraper.prompt_for_input", return_value=(None, "rust", 7))

        cli([])

        mock_prompt.assert_called_once_with(DEFAULT_RESULT_COUNT)
        kwargs = mock_main.call_args.kwargs
        assert (kwargs["urls"], kwargs["keyword"], kwargs["count"]) == (None, "rust", 7)
