import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from vespakit import __version__
from vespakit.cli.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("vespakit")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def knack_env(monkeypatch):
    monkeypatch.setenv("KNACK_APP_ID", "app-from-env")
    monkeypatch.setenv("KNACK_API_KEY", "key-from-env")


def test_version() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output
    assert "\x1b[" not in result.output


def test_config_init_validate_show(tmp_path: Path, knack_env) -> None:
    path = tmp_path / "configs" / "vespakit.yaml"

    result = runner.invoke(app, ["config", "init", "--path", str(path)])
    assert result.exit_code == 0
    assert path.exists()

    # Refuses to overwrite without --force
    assert runner.invoke(app, ["config", "init", "--path", str(path)]).exit_code == 1
    assert runner.invoke(app, ["config", "init", "--path", str(path), "--force"]).exit_code == 0

    assert runner.invoke(app, ["config", "validate", "--path", str(path)]).exit_code == 0

    result = runner.invoke(app, ["config", "show", "--path", str(path)])
    assert result.exit_code == 0
    assert "app-from-env" in result.output
    assert "key-from-env" not in result.output


def test_config_validate_reports_missing_credentials(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("KNACK_APP_ID", raising=False)
    monkeypatch.delenv("KNACK_API_KEY", raising=False)
    path = tmp_path / "vespakit.yaml"
    runner.invoke(app, ["config", "init", "--path", str(path)])

    result = runner.invoke(app, ["config", "validate", "--path", str(path)])

    assert result.exit_code == 1


def test_staff_template() -> None:
    result = runner.invoke(app, ["staff", "template"])

    assert result.exit_code == 0
    assert "Title,First Name,Last Name,Email,Year Group,Group" in result.output


def test_staff_import_dry_run_validates_without_config(tmp_path: Path) -> None:
    csv_path = tmp_path / "staff.csv"
    csv_path.write_text("First Name,Last Name,Email\nJane,Doe,jane@school.edu\n", encoding="utf-8")

    result = runner.invoke(
        app,
        ["staff", "import", str(csv_path), "--customer-id", "cust1", "--dry-run"],
    )

    assert result.exit_code == 0
    assert "ready to import" in result.output


def test_staff_import_rejects_invalid_csv(tmp_path: Path) -> None:
    csv_path = tmp_path / "staff.csv"
    csv_path.write_text("First Name,Email\nJane,jane@school.edu\n", encoding="utf-8")

    result = runner.invoke(
        app,
        ["staff", "import", str(csv_path), "--customer-id", "cust1", "--dry-run"],
    )

    assert result.exit_code == 1


def test_records_find_rejects_malformed_rule() -> None:
    result = runner.invoke(app, ["records", "find", "object_6", "--rule", "field_47"])
    assert result.exit_code == 2


def test_profile_lookup_needs_id_or_name() -> None:
    result = runner.invoke(app, ["profile", "lookup"])
    assert result.exit_code == 1


def test_missing_config_file_exits_cleanly(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        ["records", "get", "object_6", "rec1", "--config", str(tmp_path / "missing.yaml")],
    )
    assert result.exit_code == 1


def test_csv_errors_with_markup_characters_are_printed_literally(tmp_path: Path) -> None:
    csv_path = tmp_path / "staff.csv"
    csv_path.write_text("First Name,Last Name,Email\nJane,Doe,jane[/b]\n", encoding="utf-8")

    result = runner.invoke(
        app,
        ["staff", "import", str(csv_path), "--customer-id", "cust1", "--dry-run"],
    )

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "Invalid email format (jane[/b])" in result.output
