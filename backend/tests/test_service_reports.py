import json

import pytest

from epub_counter.models.results import EpubRecord, FailedFile, ProcessingResult, TokenizerResult
from epub_counter.services.reports import (
    build_results_output,
    calculate_summary,
    format_duration,
    generate_results_markdown,
    write_reports,
)


@pytest.fixture
def result() -> ProcessingResult:
    result = ProcessingResult(total=3)
    result.successful = [
        EpubRecord(filename="a.epub", file_path="/books/a.epub", word_count=100, title="A | B", author="Ann"),
        EpubRecord(filename="b.epub", file_path="/books/b.epub", word_count=51, title="B", author="Bob", language="en"),
    ]
    result.failed = [FailedFile(file="/books/c.epub", error="Bad zip", suggestion="File may be corrupted or not a valid EPUB.")]
    result.token_counts = {
        "/books/a.epub": [TokenizerResult(name="gpt4", count=120), TokenizerResult(name="claude", count=-1)],
        "/books/b.epub": [TokenizerResult(name="gpt4", count=61), TokenizerResult(name="claude", count=0)],
    }
    return result


def test_markdown_report(result):
    markdown = generate_results_markdown(result, "2024-01-01T00:00:00.000Z", ["gpt4", "claude"])

    assert markdown.startswith("# EPUB Processing Results\n\nGenerated: 2024-01-01T00:00:00.000Z")
    assert "- Total: 3\n- Successful: 2\n- Failed: 1" in markdown
    assert "| Filename | Words | Title | Author | gpt4 | claude |" in markdown
    assert "| a.epub | 100 | A \\| B | Ann | 120 | error |" in markdown
    assert "| b.epub | 51 | B | Bob | 61 | 0 |" in markdown
    assert "### c.epub" in markdown
    assert "**File:** `/books/c.epub`" in markdown
    assert "**Error:** Bad zip" in markdown
    assert "**Suggestion:** File may be corrupted or not a valid EPUB." in markdown


def test_markdown_report_without_files():
    markdown = generate_results_markdown(ProcessingResult(), "now")
    assert "## Successful EPUBs" not in markdown
    assert "## Failed EPUBs" not in markdown
    assert "- Total: 0" in markdown


def test_results_output_is_camel_case(result, tmp_path):
    output, json_path, md_path = write_reports(result, ["gpt4", "claude"], 12.5, tmp_path)

    data = json.loads(json_path.read_text(encoding="utf-8"))
    assert data["schemaVersion"] == "1.0"
    assert data["timestamp"] == output.timestamp
    assert data["options"] == {"tokenizers": ["gpt4", "claude"], "maxMb": 12.5}
    assert data["summary"] == {"total": 3, "success": 2, "failed": 1}
    first = data["results"][0]
    assert first["filePath"] == "/books/a.epub"
    assert first["wordCount"] == 100
    assert first["metadata"] == {"title": "A | B", "author": "Ann", "language": None, "publisher": None}
    assert first["tokenCounts"] == [{"name": "gpt4", "count": 120}, {"name": "claude", "count": -1}]
    assert data["failed"] == [
        {"file": "/books/c.epub", "error": "Bad zip", "suggestion": "File may be corrupted or not a valid EPUB."}
    ]
    assert md_path.read_text(encoding="utf-8").startswith("# EPUB Processing Results")


def test_results_output_keeps_timestamp():
    output = build_results_output(ProcessingResult(), ["gpt4"], 500, timestamp="fixed")
    assert output.timestamp == "fixed"
    assert output.results == []


def test_calculate_summary_skips_failed_and_empty_counts(result):
    stats = calculate_summary(result, started_at=10.0, finished_at=13.0)

    assert (stats.total_epubs, stats.successful_epubs, stats.failed_epubs) == (3, 2, 1)
    assert stats.total_words == 151
    assert stats.avg_words_per_epub == 76
    assert stats.total_tokens == {"gpt4": 181, "claude": 0}
    assert stats.avg_tokens_per_epub == {"gpt4": 91, "claude": 0}
    assert stats.total_time_ms == 3000
    assert stats.avg_time_per_epub_ms == 1000


@pytest.mark.parametrize(
    "ms, expected",
    [(0, "0ms"), (850, "850ms"), (1000, "1.0s"), (12345, "12.3s"), (65000, "1m 5.0s"), (125500, "2m 5.5s")],
)
def test_format_duration(ms, expected):
    assert format_duration(ms) == expected


def test_whole_megabyte_limit_is_written_as_integer():
    data = build_results_output(ProcessingResult(), ["gpt4"], 500.0).to_json_dict()
    assert data["options"]["maxMb"] == 500
    assert isinstance(data["options"]["maxMb"], int)
    assert json.dumps(data["options"]) == '{"tokenizers": ["gpt4"], "maxMb": 500}'
