"""Tests for the command-line interface."""

import textwrap

import pytest

from testweave.cli import build_parser, main, run
from testweave.config import ProjectConfig


@pytest.fixture
def project(tmp_path, monkeypatch):
    """Create a project directory with one passing API test and chdir into it."""
    tests = tmp_path / "tests" / "api"
    tests.mkdir(parents=True)
    (tests / "test_health.py").write_text(
        textwrap.dedent("""
            def run():
                pass
        """),
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_parser_options() -> None:
    args = build_parser().parse_args(["--type", "api", "--report", "--max-concurrency", "3"])

    assert args.category == "api"
    assert args.report is True
    assert args.max_concurrency == 3


def test_parser_rejects_unknown_type() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--type", "unit"])


async def test_run_without_tests(tmp_path) -> None:
    """No discovered tests is a failed run."""
    assert await run(ProjectConfig(test_dir=str(tmp_path))) == 1


def test_main_passing_run(project) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main([])

    assert exc_info.value.code == 0


def test_main_failing_run_with_report(project, capsys) -> None:
    (project / "tests" / "ui").mkdir()
    (project / "tests" / "ui" / "test_broken.py").write_text(
        "def run():\n    raise AssertionError('logo missing')\n",
        encoding="utf-8",
    )

    with pytest.raises(SystemExit) as exc_info:
        main(["--report"])

    assert exc_info.value.code == 1
    assert "Error: logo missing" in capsys.readouterr().out
    assert len(list((project / "reports").glob("test-report-*.json"))) == 1


def test_main_type_filter(project) -> None:
    (project / "tests" / "ui").mkdir()
    (project / "tests" / "ui" / "test_broken.py").write_text(
        "def run():\n    raise AssertionError('logo missing')\n",
        encoding="utf-8",
    )

    with pytest.raises(SystemExit) as exc_info:
        main(["--type", "api"])

    assert exc_info.value.code == 0


def test_main_test_dir_override(project, tmp_path) -> None:
    empty = tmp_path / "empty"
    empty.mkdir()

    with pytest.raises(SystemExit) as exc_info:
        main(["--test-dir", str(empty)])

    assert exc_info.value.code == 1


def test_main_invalid_concurrency(project) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["--max-concurrency", "0"])

    assert exc_info.value.code == 2


def test_main_invalid_config(project) -> None:
    (project / "testweave.toml").write_text("[parallel]\nmax_workers = -1\n", encoding="utf-8")

    with pytest.raises(SystemExit) as exc_info:
        main([])

    assert exc_info.value.code == 2
