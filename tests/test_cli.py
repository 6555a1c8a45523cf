import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from hardwicke import cli as cli_module
from hardwicke.cli import cli


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli_module, "configure_logging", lambda level="INFO": None)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def test_convert_local(runner: CliRunner, two_shard_backup: Path, tmp_path: Path) -> None:
    out = tmp_path / "docs.jsonl"

    result = runner.invoke(
        cli,
        ["convert", "--source", str(two_shard_backup), "--output", str(out), "--progress-interval", "60"],
    )

    assert result.exit_code == 0, result.output
    assert "done" in result.output
    assert [json.loads(line)["_docId"] for line in out.read_text().splitlines()] == [0, 1]


def test_convert_requires_exactly_one_source(runner: CliRunner, tmp_path: Path) -> None:
    out = str(tmp_path / "docs.jsonl")

    both = runner.invoke(cli, ["convert", "--source", str(tmp_path), "--gcs-source", "gs://b/x.zip", "--output", out])
    neither = runner.invoke(cli, ["convert", "--output", out])

    assert both.exit_code == 1
    assert neither.exit_code == 1
    assert not Path(out).exists()


def test_convert_requires_exactly_one_output(runner: CliRunner, tmp_path: Path) -> None:
    result = runner.invoke(cli, ["convert", "--source", str(tmp_path)])
    assert result.exit_code == 1


def test_convert_missing_source_dir(runner: CliRunner, tmp_path: Path) -> None:
    result = runner.invoke(cli, ["convert", "-s", str(tmp_path / "nope"), "-o", str(tmp_path / "o.jsonl")])
    assert result.exit_code == 1


def test_inspect(runner: CliRunner, two_shard_backup: Path) -> None:
    result = runner.invoke(cli, ["inspect", str(two_shard_backup)])

    assert result.exit_code == 0, result.output
    assert "docs" in result.output
    assert "direct" in result.output


def test_inspect_without_shards(runner: CliRunner, tmp_path: Path) -> None:
    result = runner.invoke(cli, ["inspect", str(tmp_path)])
    assert result.exit_code == 1
