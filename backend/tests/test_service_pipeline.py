import pytest
from unittest.mock import patch

from epub_counter.errors import ResourceLimitError
from epub_counter.services.pipeline import process_epub, process_epubs_with_errors
from epub_counter.services.reports import build_results_output
from tests.conftest import WordTokenizer, build_epub


@pytest.mark.asyncio
async def test_process_epub_builds_record_and_token_counts(make_epub):
    path = make_epub("solo.epub", title="Solo", author="A. Writer", chapters=("<p>One two three.</p>",))
    tokenizer = WordTokenizer("words")

    outcome = await process_epub(str(path), [tokenizer], max_mb=500)

    assert outcome.record.filename == "solo.epub"
    assert outcome.record.file_path == str(path.resolve())
    assert outcome.record.word_count == 3
    assert outcome.record.title == "Solo"
    assert outcome.record.author == "A. Writer"
    assert [(t.name, t.count) for t in outcome.token_counts] == [("words", 3)]


@pytest.mark.asyncio
@patch("epub_counter.services.pipeline._read_epub", return_value=({}, ""))
async def test_empty_text_skips_tokenizers(_mock_read):
    tokenizer = WordTokenizer("never-called")

    outcome = await process_epub("empty.epub", [tokenizer], max_mb=500)

    assert outcome.token_counts == []
    assert tokenizer.calls == []
    assert outcome.record.word_count == 0
    assert outcome.record.title == "Unknown Title"


@pytest.mark.asyncio
async def test_batch_continues_past_corrupt_file(make_epub, corrupt_epub, tmp_path):
    good = make_epub("good.epub", chapters=("<p>alpha beta</p>",))
    good2 = make_epub("good2.epub", chapters=("<p>gamma delta epsilon</p>",))
    output_dir = tmp_path / "out"

    result = await process_epubs_with_errors(
        [str(good), str(corrupt_epub), str(good2)],
        [WordTokenizer("words")],
        max_mb=500,
        output_dir=output_dir,
    )

    assert result.total == 3
    assert [r.filename for r in result.successful] == ["good.epub", "good2.epub"]
    assert len(result.failed) == 1
    failure = result.failed[0]
    assert failure.file == str(corrupt_epub)
    assert failure.suggestion == "File may be corrupted or not a valid EPUB."
    assert set(result.token_counts) == {str(good.resolve()), str(good2.resolve())}

    log_lines = (output_dir / "errors.log").read_text(encoding="utf-8").splitlines()
    assert len(log_lines) == 1
    assert f"[ERROR] {corrupt_epub}: Failed to parse EPUB file" in log_lines[0]
    assert log_lines[0].endswith("Suggestion: File may be corrupted or not a valid EPUB.")


@pytest.mark.asyncio
async def test_missing_file_is_reported_with_hint(tmp_path):
    missing = tmp_path / "gone.epub"

    result = await process_epubs_with_errors([str(missing)], [], max_mb=500, output_dir=tmp_path)

    assert result.total == 1
    assert result.successful == []
    assert result.failed[0].suggestion == "File not found. Check the file path."


@pytest.mark.asyncio
async def test_size_limit_aborts_remaining_files(make_epub, tmp_path):
    first = make_epub("first.epub", chapters=("<p>short</p>",))
    big = make_epub("big.epub", chapters=("<p>" + "word " * 400 + "</p>",))
    last = make_epub("last.epub", chapters=("<p>never reached</p>",))
    tokenizer = WordTokenizer("words")
    seen = []

    with pytest.raises(ResourceLimitError):
        await process_epubs_with_errors(
            [str(first), str(big), str(last)],
            [tokenizer],
            max_mb=1000 / (1024 * 1024),
            output_dir=tmp_path,
            on_file=lambda path, index, total: seen.append(index),
        )

    # The oversized file stops the batch before the last file starts.
    assert seen == [1, 2]
    assert len(tokenizer.calls) == 1
    assert not (tmp_path / "errors.log").exists()


@pytest.mark.asyncio
async def test_same_filename_in_different_directories_keeps_own_counts(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    short = build_epub(tmp_path / "a" / "book.epub", chapters=("<p>one</p>",))
    longer = build_epub(tmp_path / "b" / "book.epub", chapters=("<p>one two three four five</p>",))

    result = await process_epubs_with_errors(
        [str(short), str(longer)], [WordTokenizer("words")], max_mb=500, output_dir=tmp_path / "out"
    )
    output = build_results_output(result, ["words"], 500)

    pairs = [(entry.word_count, entry.token_counts[0].count) for entry in output.results]
    assert pairs == [(1, 1), (5, 5)]
    assert [entry.file_path for entry in output.results] == [str(short.resolve()), str(longer.resolve())]
