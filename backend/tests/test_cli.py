"""End-to-end runs of the ``epub-counter`` command."""

import json
from unittest.mock import patch

import pytest

from epub_counter.cli.main import build_parser, main
from tests.conftest import word_tokenizer_factory


@pytest.fixture
def fake_tokenizers():
    with patch("epub_counter.cli.main.create_tokenizers", side_effect=word_tokenizer_factory) as mock_create:
        yield mock_create


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.paths == []
    assert args.output == "./results"
    assert args.recursive is False
    assert args.jobs is None
    assert args.tokenizers == ["gpt4"]


def test_parser_splits_tokenizers():
    args = build_parser().parse_args(["-t", "gpt4, claude,hf:gpt2", "--max-mb", "2.5"])
    assert args.tokenizers == ["gpt4", "claude", "hf:gpt2"]
    assert args.max_mb == 2.5


@pytest.mark.parametrize("argv", [["--max-mb", "0"], ["--max-mb", "abc"], ["--unknown-flag"]])
def test_bad_flags_exit_with_one(argv):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    assert excinfo.value.code == 1


def test_unknown_tokenizer_is_fatal(tmp_path, capsys):
    assert main([str(tmp_path), "-t", "gpt4,bogus", "-o", str(tmp_path / "out")]) == 1
    assert "Unknown tokenizer: bogus" in capsys.readouterr().out
    assert not (tmp_path / "out").exists()


def test_invalid_job_count_is_fatal(tmp_path, capsys, fake_tokenizers):
    assert main([str(tmp_path), "-j", "0"]) == 1
    assert "--jobs must be a positive number" in capsys.readouterr().out


def test_no_files_found(tmp_path, capsys, fake_tokenizers):
    assert main([str(tmp_path), "-o", str(tmp_path / "out")]) == 0
    assert "No EPUB files found." in capsys.readouterr().out
    assert not (tmp_path / "out" / "results.json").exists()


@pytest.mark.parametrize("extra", [[], ["-j", "2"]])
def test_batch_run_writes_reports(tmp_path, make_epub, corrupt_epub, capsys, fake_tokenizers, extra):
    make_epub("good.epub", title="Good", chapters=("<p>one two three</p>",))
    out = tmp_path / "out"

    code = main([str(tmp_path), "-o", str(out), "-t", "words", *extra])

    assert code == 0
    fake_tokenizers.assert_called_once_with(["words"])
    data = json.loads((out / "results.json").read_text(encoding="utf-8"))
    assert data["summary"] == {"total": 2, "success": 1, "failed": 1}
    assert data["results"][0]["wordCount"] == 3
    assert data["results"][0]["tokenCounts"] == [{"name": "words", "count": 3}]
    assert data["failed"][0]["file"] == str(corrupt_epub)
    assert (out / "results.md").exists()
    assert (out / "errors.log").exists()

    output = capsys.readouterr().out
    assert "Results saved to:" in output
    assert "- Successful: 1" in output
    assert "errors.log" in output
    assert "for details." in output


def test_size_limit_exits_with_nothing_written(tmp_path, make_epub, capsys, fake_tokenizers):
    make_epub("big.epub", chapters=("<p>" + "word " * 400 + "</p>",))
    out = tmp_path / "out"

    assert main([str(tmp_path), "-o", str(out), "-t", "words", "--max-mb", "0.001"]) == 1

    assert "Error:" in capsys.readouterr().out
    assert not out.exists()


def test_input_flag_overrides_positional_paths(tmp_path, make_epub, fake_tokenizers):
    books = tmp_path / "books"
    books.mkdir()
    make_epub("books/inside.epub")
    make_epub("outside.epub")
    out = tmp_path / "out"

    assert main([str(tmp_path), "-i", str(books), "-o", str(out), "-t", "words"]) == 0

    data = json.loads((out / "results.json").read_text(encoding="utf-8"))
    assert [entry["filePath"] for entry in data["results"]] == [str((books / "inside.epub").resolve())]


def test_list_models_search(capsys):
    assert main(["list-models", "--search", "gpt2"]) == 0
    output = capsys.readouterr().out
    assert "hf:gpt2" in output
    assert 'Found 3 model(s) matching "gpt2"' in output


def test_list_models_no_match(capsys):
    assert main(["list-models", "-s", "zzz-nothing"]) == 0
    assert 'No models found matching "zzz-nothing"' in capsys.readouterr().out


def test_list_models_grouped(capsys):
    assert main(["list-models"]) == 0
    output = capsys.readouterr().out
    assert "BERT Models" in output
    assert "[ONNX] = Faster loading via Xenova conversions" in output
