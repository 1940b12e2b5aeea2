#!/usr/bin/env python3
"""
Tests for the import-wizard command line interface.
"""

import io
import os
import subprocess
import sys
from pathlib import Path

import pytest
from fakes import FakeBackend
from rich.console import Console

from import_wizard import main as main_module
from import_wizard.config_loader import ENV_AUTH_TOKEN, ENV_BACKEND_URL
from import_wizard.errors import MappingError
from import_wizard.main import main, parse_mapping_overrides

ROOT = Path(__file__).parent.parent


def run_module(*args):
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(
        [str(ROOT / "src")] + ([env["PYTHONPATH"]] if env.get("PYTHONPATH") else [])
    )
    return subprocess.run(
        [sys.executable, "-m", "import_wizard", *args],
        capture_output=True,
        text=True,
        cwd=ROOT,
        env=env,
    )


def test_cli_help():
    """Test that the CLI help command works."""
    result = run_module("--help")
    assert result.returncode == 0
    assert "Import Wizard" in result.stdout
    for command in ("targets", "template", "map", "run"):
        assert command in result.stdout


def test_run_help():
    """Test that the run help command works."""
    result = run_module("run", "--help")
    assert result.returncode == 0
    assert "--require-all-valid" in result.stdout
    assert "--yes" in result.stdout


def test_version():
    result = run_module("--version")
    assert result.returncode == 0
    assert "import-wizard" in result.stdout


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(ENV_BACKEND_URL, raising=False)
    monkeypatch.delenv(ENV_AUTH_TOKEN, raising=False)
    return tmp_path


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=200)


def output(console):
    return console.file.getvalue()


def write_users(path, rows=3):
    lines = ["Email,Full Name,Role"] + [
        f"user{i}@example.com,User {i},technician" for i in range(rows)
    ]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


class TestCommands:
    """Test cases for main() dispatch."""

    def test_targets(self, workdir, console):
        assert main(["targets"], console=console) == 0
        assert "users" in output(console)
        assert "attendance" in output(console)

    def test_template_to_file(self, workdir, console):
        target = workdir / "users.csv"
        assert main(["template", "--target", "users", "-o", str(target)], console=console) == 0
        assert target.read_text(encoding="utf-8").startswith("Email,Full Name")

    def test_template_to_stdout(self, workdir, console, capsys):
        assert main(["template", "--target", "sites"], console=console) == 0
        assert capsys.readouterr().out.startswith("Site Name,Location,Client Name")

    def test_unknown_target_is_configuration_error(self, workdir, console):
        assert main(["template", "--target", "payroll"], console=console) == 2
        assert 'Import configuration "payroll" not found' in output(console)

    def test_map_reports_missing(self, workdir, console):
        path = workdir / "partial.csv"
        path.write_text("Email\na@x.io\n", encoding="utf-8")
        assert main(["map", "--target", "users", str(path)], console=console) == 1
        assert "Missing required mappings: Full Name, Role" in output(console)

    def test_map_with_override(self, workdir, console):
        path = workdir / "users.csv"
        path.write_text("Mail,Full Name,Role\na@x.io,Ada,admin\n", encoding="utf-8")
        code = main(["map", "--target", "users", str(path), "--map", "email=Mail"], console=console)
        assert code == 0
        assert "All required fields are mapped" in output(console)

    def test_unsupported_file(self, workdir, console):
        path = workdir / "users.pdf"
        path.write_bytes(b"%PDF")
        assert main(["map", "--target", "users", str(path)], console=console) == 1
        assert "Unsupported file format" in output(console)


class TestRunCommand:
    """Test cases for the run command against a fake backend."""

    def test_run_commits_valid_rows(self, workdir, console, monkeypatch):
        backend = FakeBackend()
        monkeypatch.setattr(main_module, "create_backend", lambda config: backend)
        path = write_users(workdir / "users.csv")

        assert main(["run", "--target", "users", str(path), "--yes"], console=console) == 0
        assert len(backend.commit_calls[0]["rows"]) == 3
        assert "Successfully imported 3 records" in output(console)

    def test_run_reports_partial_failure(self, workdir, console, monkeypatch):
        backend = FakeBackend(
            invalid_rows={3, 7},
            commit_response={"success": True, "data": {"success": 7, "failed": 1}},
        )
        monkeypatch.setattr(main_module, "create_backend", lambda config: backend)
        path = write_users(workdir / "users.csv", rows=10)

        assert main(["run", "--target", "users", str(path), "--yes"], console=console) == 1
        text = output(console)
        assert "valid=8" in text
        assert "invalid=2" in text
        assert "Imported 7 records, 1 failed" in text
        assert "Successfully" not in text

    def test_run_require_all_valid(self, workdir, console, monkeypatch):
        backend = FakeBackend(invalid_rows={2})
        monkeypatch.setattr(main_module, "create_backend", lambda config: backend)
        path = write_users(workdir / "users.csv")

        args = ["run", "--target", "users", str(path), "--yes", "--require-all-valid"]
        assert main(args, console=console) == 1
        assert backend.commit_calls == []
        assert "1 invalid rows must be fixed" in output(console)

    def test_run_declined(self, workdir, console, monkeypatch):
        backend = FakeBackend()
        monkeypatch.setattr(main_module, "create_backend", lambda config: backend)
        monkeypatch.setattr(main_module.Confirm, "ask", lambda *args, **kwargs: False)
        path = write_users(workdir / "users.csv")

        assert main(["run", "--target", "users", str(path)], console=console) == 0
        assert backend.commit_calls == []
        assert "nothing was committed" in output(console)

    def test_run_retries_failed_commit(self, workdir, console, monkeypatch):
        backend = FakeBackend(
            commit_response=[
                {"success": False, "error": "Import failed"},
                {"success": True, "data": {"success": 3, "failed": 0}},
            ]
        )
        monkeypatch.setattr(main_module, "create_backend", lambda config: backend)
        monkeypatch.setattr(main_module.Confirm, "ask", lambda *args, **kwargs: True)
        path = write_users(workdir / "users.csv")

        assert main(["run", "--target", "users", str(path)], console=console) == 0
        assert len(backend.commit_calls) == 2
        assert backend.commit_calls[0]["rows"] == backend.commit_calls[1]["rows"]
        text = output(console)
        assert "0 rows imported, 3 rows kept for retry" in text
        assert "Successfully imported 3 records" in text

    def test_run_commit_failure_without_retry(self, workdir, console, monkeypatch):
        backend = FakeBackend(commit_response={"success": False, "error": "Import failed"})
        monkeypatch.setattr(main_module, "create_backend", lambda config: backend)
        path = write_users(workdir / "users.csv")

        assert main(["run", "--target", "users", str(path), "--yes"], console=console) == 1
        assert len(backend.commit_calls) == 1
        assert "Import failed" in output(console)

    def test_run_validation_failure(self, workdir, console, monkeypatch):
        backend = FakeBackend(validate_response={"success": False, "error": "Validation failed"})
        monkeypatch.setattr(main_module, "create_backend", lambda config: backend)
        path = write_users(workdir / "users.csv")

        assert main(["run", "--target", "users", str(path), "--yes"], console=console) == 1
        assert "Validation failed" in output(console)


def test_parse_mapping_overrides():
    assert parse_mapping_overrides(["email=Mail", "phone="]) == [
        ("email", "Mail"),
        ("phone", None),
    ]
    with pytest.raises(MappingError):
        parse_mapping_overrides(["email"])
