"""Smoke tests for the Typer-based taxatree CLI."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import polars as pl
import pytest
import typer
import yaml
from loguru import logger
from typer.testing import CliRunner

from taxatree.cli.common import merge_overrides, parse_override
from taxatree.cli.main import app


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def cli_env(tmp_path: Path) -> dict[str, str]:
    return {
        "TAXATREE_SETTINGS__PATHS__OUTPUT_DIR": str(tmp_path / "output"),
        "TAXATREE_SETTINGS__PATHS__LOGS_DIR": str(tmp_path / "logs"),
    }


@pytest.fixture()
def labels(tmp_path: Path) -> Path:
    path = tmp_path / "labels.txt"
    path.write_text("s1 Fungi;Ascomycota\ns2 Fungi;Basidiomycota\n", encoding="utf-8")
    return path


def write_policies(path: Path, keys: list, regex: str = r"^(\S+) (.*)$") -> Path:
    payload = {
        "extraction": {"regex": regex, "keys": keys},
        "merge": {"arbitrary_ids": "allow"},
    }
    path.write_text(yaml.safe_dump(payload), encoding="utf-8")
    return path


def test_parse_override_builds_nested_mapping() -> None:
    assert parse_override("policies.resolution.batch_size=7") == {"policies": {"resolution": {"batch_size": 7}}}
    assert parse_override("log_level=DEBUG") == {"log_level": "DEBUG"}


def test_parse_override_rejects_missing_value() -> None:
    with pytest.raises(typer.BadParameter):
        parse_override("policies.merge")


def test_merge_overrides_is_deep() -> None:
    merged = merge_overrides(
        [
            parse_override("policies.merge.arbitrary_ids=na"),
            parse_override("policies.merge.synthetic_id_prefix=tmp:"),
        ]
    )

    assert merged == {"policies": {"merge": {"arbitrary_ids": "na", "synthetic_id_prefix": "tmp:"}}}


def test_extract_writes_tables_and_report(
    runner: CliRunner, cli_env: dict[str, str], tmp_path: Path, labels: Path
) -> None:
    policies = write_policies(tmp_path / "policies.yaml", ["item_id", "class_name"])
    output_dir = tmp_path / "tables"

    result = runner.invoke(
        app,
        ["extract", str(labels), "--policies", str(policies), "--output", str(output_dir)],
        env=cli_env,
    )

    assert result.exit_code == 0, result.output
    assert "Extraction Summary" in result.output
    items = pl.read_csv(output_dir / "items.csv")
    assert items["item_id"].to_list() == ["s1", "s2"]
    report = json.loads((output_dir / "report.json").read_text(encoding="utf-8"))
    assert report["validation"]["passed"] is True


def test_extract_honours_global_overrides(
    runner: CliRunner, cli_env: dict[str, str], tmp_path: Path
) -> None:
    labels = tmp_path / "labels.txt"
    labels.write_text("Fungi;Ascomycota\n", encoding="utf-8")
    output_dir = tmp_path / "tables"

    result = runner.invoke(
        app,
        ["-o", "policies.merge.arbitrary_ids=na", "extract", str(labels), "--output", str(output_dir)],
        env=cli_env,
    )

    assert result.exit_code == 0, result.output
    taxa = pl.read_csv(output_dir / "taxa.csv")
    assert taxa.height == 2
    assert taxa["taxon_id"].null_count() == 2


def test_extract_reports_configuration_errors(
    runner: CliRunner, cli_env: dict[str, str], tmp_path: Path, labels: Path
) -> None:
    policies = write_policies(tmp_path / "policies.yaml", ["item_id", "item_name"])

    result = runner.invoke(
        app,
        ["extract", str(labels), "--policies", str(policies), "--output", str(tmp_path / "out")],
        env=cli_env,
    )

    assert result.exit_code == 2
    assert "Error" in result.output


def test_extract_missing_input(runner: CliRunner, cli_env: dict[str, str], tmp_path: Path) -> None:
    result = runner.invoke(app, ["extract", str(tmp_path / "absent.txt")], env=cli_env)

    assert result.exit_code == 2
    assert "does not exist" in result.output


def test_check_config_prints_lineage_source(
    runner: CliRunner, cli_env: dict[str, str], tmp_path: Path
) -> None:
    policies = write_policies(tmp_path / "policies.yaml", ["item_id", "class_id"])

    result = runner.invoke(app, ["check-config", "--policies", str(policies)], env=cli_env)

    assert result.exit_code == 0, result.output
    assert "class_id" in result.output
