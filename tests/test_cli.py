"""Tests for the command-line interface."""

import json
import logging

import pytest
import yaml
from click.testing import CliRunner
from rich.console import Console

from recon_reporting import cli
from recon_reporting.cli import main


@pytest.fixture
def runner(monkeypatch):
    # Wide console so table cells are not wrapped
    monkeypatch.setattr(cli, "console", Console(width=200))
    yield CliRunner()
    # Handlers installed by a command point at the runner's closed streams
    logging.getLogger("recon_reporting").handlers = []


@pytest.fixture
def result_file(tmp_path, sample_payload):
    path = tmp_path / "result.json"
    path.write_text(json.dumps(sample_payload), encoding="utf-8")
    return path


class TestValidateCommand:
    """Tests for `validate`."""

    def test_valid_result(self, runner, result_file):
        outcome = runner.invoke(main, ["validate", str(result_file)])
        assert outcome.exit_code == 0
        assert "4 matches" in outcome.output

    def test_writes_normalized_payload(self, runner, result_file, tmp_path):
        target = tmp_path / "normalized.json"
        outcome = runner.invoke(main, ["validate", str(result_file), "-o", str(target)])
        assert outcome.exit_code == 0
        data = json.loads(target.read_text(encoding="utf-8"))
        assert data["matches"][1]["amount"] == "-45.99"
        assert data["summary"]["totalMatches"] == 4

    def test_rejected_result(self, runner, tmp_path, sample_payload):
        sample_payload["summary"]["totalUnmatchedBank"] = 7
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(sample_payload), encoding="utf-8")

        outcome = runner.invoke(main, ["validate", str(path)])
        assert outcome.exit_code == 1
        assert "totalUnmatchedBank" in outcome.output

    def test_not_json(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("<html>", encoding="utf-8")
        outcome = runner.invoke(main, ["validate", str(path)])
        assert outcome.exit_code == 1


class TestReportingCommands:
    """Tests for `summary`, `show` and `reconcile`."""

    def test_summary(self, runner, result_file):
        outcome = runner.invoke(main, ["summary", str(result_file)])
        assert outcome.exit_code == 0
        assert "Reconciliation Summary" in outcome.output
        assert "Check #5055 Consultant" in outcome.output

    def test_show_filters_rows(self, runner, result_file):
        outcome = runner.invoke(
            main, ["show", str(result_file), "--status", "unmatched_bank", "--category", "inflow"]
        )
        assert outcome.exit_code == 0
        assert "Stripe Transfer" in outcome.output
        assert "Monthly Service Fee" not in outcome.output

    def test_show_prints_bracketed_text_literally(self, runner, tmp_path, sample_payload):
        sample_payload["unmatchedBank"][0]["description"] = "Refund [/b] adj"
        path = tmp_path / "result.json"
        path.write_text(json.dumps(sample_payload), encoding="utf-8")

        outcome = runner.invoke(main, ["show", str(path), "--status", "unmatched_bank"])
        assert outcome.exit_code == 0, outcome.output
        assert "Refund [/b] adj" in outcome.output

    def test_summary_prints_bracketed_text_literally(self, runner, tmp_path, sample_payload):
        sample_payload["unmatchedBank"][0]["description"] = "Stripe [/x] transfer"
        path = tmp_path / "result.json"
        path.write_text(json.dumps(sample_payload), encoding="utf-8")

        outcome = runner.invoke(main, ["summary", str(path)])
        assert outcome.exit_code == 0, outcome.output
        assert "Stripe [/x] transfer" in outcome.output

    def test_show_rejects_bad_dates(self, runner, result_file):
        outcome = runner.invoke(main, ["show", str(result_file), "--start-date", "soon"])
        assert outcome.exit_code == 1

    def test_reconcile_with_recorded_answer(self, runner, tmp_path, result_file):
        bank = tmp_path / "bank.csv"
        ledger = tmp_path / "ledger.csv"
        bank.write_text("Date,Description,Amount\n", encoding="utf-8")
        ledger.write_text("Date,Description,Amount\n", encoding="utf-8")

        outcome = runner.invoke(
            main,
            ["reconcile", str(bank), str(ledger), "--matcher-output", str(result_file)],
        )
        assert outcome.exit_code == 0
        assert "Match Rate" in outcome.output


class TestExportCommand:
    """Tests for `export`."""

    @pytest.mark.parametrize("fmt,suffix", [("csv", ".csv"), ("pdf", ".pdf"), ("xlsx", ".xlsx")])
    def test_writes_artifact(self, runner, result_file, tmp_path, fmt, suffix):
        out_dir = tmp_path / "out"
        outcome = runner.invoke(
            main,
            ["export", str(result_file), "-f", fmt, "-o", str(out_dir), "--company", "Acme Co"],
        )
        assert outcome.exit_code == 0, outcome.output
        files = list(out_dir.iterdir())
        assert len(files) == 1
        assert files[0].suffix == suffix
        assert "Acme_Co" in files[0].name

    def test_nothing_selected(self, runner, result_file, tmp_path):
        out_dir = tmp_path / "out"
        outcome = runner.invoke(
            main,
            [
                "export",
                str(result_file),
                "-o",
                str(out_dir),
                "--no-summary",
                "--no-matches",
                "--no-unmatched-bank",
                "--no-unmatched-ledger",
            ],
        )
        assert outcome.exit_code == 1
        assert "Nothing selected" in outcome.output
        assert not out_dir.exists()


class TestConfigCommands:
    """Tests for `init-config` and `set-preference`."""

    def test_init_config(self, runner, tmp_path):
        path = tmp_path / "config.yaml"
        outcome = runner.invoke(main, ["init-config", "-o", str(path)])
        assert outcome.exit_code == 0
        assert yaml.safe_load(path.read_text())["dashboard"]["top_n"] == 5

    def test_set_preference(self, runner, tmp_path):
        path = tmp_path / "config.yaml"
        outcome = runner.invoke(
            main,
            ["set-preference", "-c", str(path), "--company", "Acme Co", "--mode", "precise"],
        )
        assert outcome.exit_code == 0
        data = yaml.safe_load(path.read_text())
        assert data["report"]["company_name"] == "Acme Co"
        assert data["preferences"]["processing_mode"] == "precise"
