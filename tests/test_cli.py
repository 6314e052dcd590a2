"""Test the command-line interface against the bundled prompts file."""

from pathlib import Path

import pytest

from prompthub.cli import build_parser, main, parse_inputs

ROOT = Path(__file__).resolve().parent.parent
PROMPTS = str(ROOT / "prompts.json")


def test_parse_inputs():
    assert parse_inputs(["text=hello", "n=3", "flag=true"]) == {"text": "hello", "n": 3, "flag": True}
    assert parse_inputs(["x=1"], '{"x": 0, "y": 2}') == {"x": 1, "y": 2}
    with pytest.raises(ValueError):
        parse_inputs(["novalue"])


def test_parser_subcommands():
    args = build_parser().parse_args(["run", "summarize", "-i", "text=hi", "--provider", "mock"])
    assert args.command == "run"
    assert args.input == ["text=hi"]
    assert args.caller == "cli"


def test_search(capsys):
    assert main(["--prompts", PROMPTS, "search", "text"]) == 0
    assert "summarize" in capsys.readouterr().out


def test_info(capsys):
    assert main(["--prompts", PROMPTS, "info", "translate"]) == 0
    assert "uppercase" in capsys.readouterr().out


def test_validate_reports_errors(capsys):
    assert main(["--prompts", PROMPTS, "validate", "summarize"]) == 1
    assert "Required parameter 'text' is missing" in capsys.readouterr().out


def test_run(capsys):
    assert main(["--prompts", PROMPTS, "run", "summarize", "-i", "text=hello", "--provider", "mock"]) == 0
    assert "hello" in capsys.readouterr().out


def test_dag(capsys):
    code = main([
        "--prompts", PROMPTS, "dag", str(ROOT / "dags" / "keywords_then_summary.json"),
        "-i", "text=hello", "--provider", "mock",
    ])
    assert code == 0
    out = capsys.readouterr().out
    assert "keywords" in out
    assert "summary" in out


def test_unknown_prompt(capsys):
    assert main(["--prompts", PROMPTS, "info", "ghost"]) == 1
    assert "PROMPT_NOT_FOUND" in capsys.readouterr().out


def test_missing_prompts_file(tmp_path):
    assert main(["--prompts", str(tmp_path / "none.json"), "search"]) == 2
