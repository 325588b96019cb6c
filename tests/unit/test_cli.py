"""
Unit tests for the reconcile command line tool.
"""

import json
import os

import pytest

from conftest import build_interchange, pnr_block
from scripts import reconcile

INLINE_MESSAGE = (
    "UNA:+.? 'UNB+IATA:1+EK+GOVT+250829:1435+REF001'"
    "UNH+MSG1+PNRGOV:11:1:IA+EK0160/290825/1435'SRC'RCI+EK:ABC123'"
    "UNT+4+MSG1'UNZ+1+REF001'"
)


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep the CLI from replacing handlers of the src logger."""
    monkeypatch.setattr(reconcile, "configure_logging", lambda **kwargs: None)
    monkeypatch.delenv("RECON_MATCHING_STRATEGY", raising=False)
    monkeypatch.delenv("RECON_STRICT_VALIDATION", raising=False)


def run_cli(capsys, *argv):
    code = reconcile.main(list(argv))
    return code, json.loads(capsys.readouterr().out)


class TestCompareCommand:
    """Test the compare subcommand."""

    def test_compare_report(self, capsys, make_folder, simple_message):
        """Test a successful comparison report."""
        input_text = build_interchange(pnr_block("ABC123", "SMITH/JOHN") + pnr_block("XYZ999", "DOE/JANE"))
        folder = make_folder({"a.edi": input_text}, {"out.edi": simple_message})

        code, report = run_cli(capsys, "compare", folder, "--rows")

        assert code == 0
        assert report["passengers"]["dropped"] == ["XYZ999|DOEJANE"]
        assert report["strategy"] == "PNR_NAME"
        assert [row["status"] for row in report["rows"]] == ["PROCESSED", "DROPPED"]

    def test_strategy_and_strict_flags(self, capsys, make_folder, simple_message):
        """Test command line overrides."""
        folder = make_folder({"a.edi": simple_message}, {"out.edi": simple_message})

        code, report = run_cli(capsys, "compare", folder, "--strategy", "name_doc_dob", "--strict")

        assert code == 0
        assert report["strategy"] == "NAME_DOC_DOB"
        assert report["strict_validation"] is True

    def test_comparison_error(self, capsys, tmp_path):
        """Test that fatal errors are printed as JSON with a failing exit code."""
        code, report = run_cli(capsys, "compare", str(tmp_path / "missing"))

        assert code == 1
        assert report["error"] == "folder-not-found"

    def test_metrics_file(self, capsys, make_folder, simple_message, tmp_path):
        """Test writing Prometheus metrics."""
        folder = make_folder({"a.edi": simple_message}, {"out.edi": simple_message})
        metrics_file = tmp_path / "metrics.prom"

        code, _ = run_cli(capsys, "compare", folder, "--metrics-file", str(metrics_file))

        assert code == 0
        assert 'pnrgov_comparison_runs_total{status="success"} 1.0' in metrics_file.read_text()


class TestExtractCommand:
    """Test the extract subcommand."""

    def test_extract_log(self, capsys, tmp_path):
        """Test writing every logged message to its own file."""
        log_file = tmp_path / "app.log"
        log_file.write_text(
            f"2025-08-29 10:00:00 INFO $STX${INLINE_MESSAGE}\n"
            "2025-08-29 10:00:01 INFO heartbeat\n"
            f"2025-08-29 10:00:02 INFO $STX${INLINE_MESSAGE}\n",
            encoding="utf-8",
        )
        out_dir = tmp_path / "extracted"

        code, report = run_cli(capsys, "extract", str(log_file), "--out", str(out_dir))

        assert code == 0
        assert report["messages_found"] == 2
        assert [message["line"] for message in report["messages"]] == [1, 3]
        assert sorted(os.listdir(out_dir)) == ["app_001.edi", "app_002.edi"]
        assert (out_dir / "app_001.edi").read_text(encoding="utf-8") == INLINE_MESSAGE


class TestAnalyzeCommand:
    """Test the analyze subcommand."""

    def test_analyze_folder(self, capsys, make_folder, simple_message):
        """Test the multipart report of both sides."""
        part1 = build_interchange(
            pnr_block("ABC123", "SMITH/JOHN"),
            message_ref="REF",
            unh_tail="PNRGOV:D:05B:UN:IATA+ID+1:C",
        )
        folder = make_folder({"part1.edi": part1}, {"out.edi": simple_message})

        code, report = run_cli(capsys, "analyze", folder)

        assert code == 0
        assert report["layout"] == "input/output folders"
        assert report["input"]["incomplete_groups"][0]["parts"] == {"1": "part1.edi"}
        assert report["output"]["single_messages"] == ["out.edi"]

    def test_no_command(self, capsys):
        """Test that a missing subcommand prints help."""
        assert reconcile.main([]) == 1
        assert "usage" in capsys.readouterr().out
