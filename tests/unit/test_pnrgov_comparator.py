"""
Unit tests for the PNRGOV folder comparator.

Exercises whole comparison runs against synthetic folders.
"""

import os

import pytest
from prometheus_client import CollectorRegistry

from conftest import build_interchange, pnr_block
from src.monitoring.metrics import ReconciliationMetrics
from src.reconciliation.config import DEFAULT_MAX_FILE_SIZE, ComparisonConfig
from src.reconciliation.models import MatchingStrategy
from src.reconciliation.pnrgov_comparator import PnrgovComparator
from src.utils.errors import ComparisonError, ErrorKind, OperationCancelled
from src.utils.run_context import CancellationToken, get_run_id


def multipart(reference, identifier, part, indicator, body, header=False):
    """Build one part of a multipart PNRGOV message."""
    return build_interchange(
        body,
        message_ref=reference,
        unh_tail=f"PNRGOV:D:05B:UN:IATA+{identifier}+{part}:{indicator}",
        header=header,
    )


class TestComparisonScenarios:
    """Test end-to-end comparison outcomes."""

    @pytest.fixture
    def comparator(self):
        """Create a comparator with default settings."""
        return PnrgovComparator()

    def test_cross_file_duplicate(self, comparator, make_folder, simple_message):
        """Test the same passenger in two input files and once in the output."""
        folder = make_folder(
            {"a.edi": simple_message, "b.edi": simple_message},
            {"out.edi": simple_message},
        )

        result = comparator.compare(folder)

        assert result.processed_passengers == frozenset({"ABC123|SMITHJOHN"})
        assert result.dropped_passengers == frozenset()
        assert result.duplicate_keys == frozenset({"ABC123|SMITHJOHN"})
        assert result.input_data.sources == ["a.edi", "b.edi"]
        assert result.flight_comparison.is_match

    def test_dropped_passenger(self, comparator, make_folder, simple_message):
        """Test a PNR missing from the output."""
        input_text = build_interchange(pnr_block("ABC123", "SMITH/JOHN") + pnr_block("XYZ999", "DOE/JANE"))
        folder = make_folder({"a.edi": input_text}, {"out.edi": simple_message})

        result = comparator.compare(folder)

        assert "XYZ999|DOEJANE" in result.dropped_passengers
        assert result.dropped_count == 1
        assert result.dropped_pnr_keys == frozenset({"XYZ999"})
        assert result.unique_dropped_pnr_count == 1

    def test_added_pnr(self, comparator, make_folder, simple_message):
        """Test a PNR present only in the output."""
        output_text = build_interchange(pnr_block("ABC123", "SMITH/JOHN") + pnr_block("NEW111", "NEW/PAX"))
        folder = make_folder({"a.edi": simple_message}, {"out.edi": output_text})

        result = comparator.compare(folder)

        assert result.added_pnr_keys == frozenset({"NEW111"})
        assert result.added_passengers == frozenset({"NEW111|NEWPAX"})
        assert result.dropped_count == 0

    def test_icr_mismatch_strict(self, make_folder, simple_message):
        """Test that strict validation aborts on an ICR mismatch."""
        input_text = build_interchange(pnr_block("ABC123", "SMITH/JOHN"), icr="100", unz_icr="101")
        folder = make_folder({"a.edi": input_text}, {"out.edi": simple_message})
        comparator = PnrgovComparator(ComparisonConfig(strict_validation=True))

        with pytest.raises(ComparisonError, match="UNB\\(100\\) vs UNZ\\(101\\)") as exc_info:
            comparator.compare(folder)

        assert exc_info.value.kind == ErrorKind.ICR_MISMATCH
        assert exc_info.value.source == "a.edi"

    def test_icr_mismatch_lenient(self, comparator, make_folder, simple_message):
        """Test that lenient validation only warns on an ICR mismatch."""
        input_text = build_interchange(pnr_block("ABC123", "SMITH/JOHN"), icr="100", unz_icr="101")
        folder = make_folder({"a.edi": input_text}, {"out.edi": simple_message})

        result = comparator.compare(folder)

        assert "Interchange control reference mismatch in a.edi: UNB(100) vs UNZ(101)" in result.warnings
        assert result.processed_count == 1
        assert not result.strict_validation

    def test_multipart_input_is_merged(self, make_folder, simple_message, tmp_path):
        """Test that a complete multipart group is compared as one message."""
        work_dir = tmp_path / "work"
        work_dir.mkdir()
        part1 = multipart("REF", "ID", 1, "C", pnr_block("ABC123", "SMITH/JOHN"), header=True)
        part2 = multipart("REF", "ID", 2, "F", pnr_block("XYZ999", "DOE/JANE"))
        folder = make_folder({"part1.edi": part1, "part2.edi": part2}, {"out.edi": simple_message})
        comparator = PnrgovComparator(ComparisonConfig(work_dir=str(work_dir)))

        result = comparator.compare(folder)

        assert result.input_data.part_count == 2
        assert result.input_data.pnr_count == 2
        assert {p.rloc: p.source for p in result.input_data.passengers} == {
            "ABC123": "part1",
            "XYZ999": "part2",
        }
        assert result.dropped_passengers == frozenset({"XYZ999|DOEJANE"})
        assert os.listdir(work_dir) == []

    def test_same_file_repeats(self, comparator, make_folder, simple_message):
        """Test that a passenger repeated within one file is not a duplicate."""
        input_text = build_interchange(pnr_block("ABC123", "SMITH/JOHN", "SMITH/JOHN"))
        folder = make_folder({"a.edi": input_text}, {"out.edi": simple_message})

        result = comparator.compare(folder)

        assert result.duplicate_keys == frozenset()
        assert result.same_file_repeats == {"a": {"ABC123|SMITHJOHN": 2}}

    def test_log_messages_share_file_source(self, comparator, make_folder, simple_message):
        """Test that two logged messages of one file are not cross-file duplicates."""
        message = build_interchange(pnr_block("ABC123", "SMITH/JOHN")).replace("\n", "")
        log = "".join(f"2025-08-29 10:00:0{second} INFO $STX${message}\n" for second in (0, 1))
        folder = make_folder({"app.log.txt": log}, {"out.edi": simple_message})

        result = comparator.compare(folder)

        assert result.input_data.sources == ["app.log.txt#1", "app.log.txt#2"]
        assert {passenger.source for passenger in result.input_data.passengers} == {"app.log"}
        assert result.duplicate_keys == frozenset()
        assert result.same_file_repeats == {"app.log": {"ABC123|SMITHJOHN": 2}}
        assert result.processed_passengers == frozenset({"ABC123|SMITHJOHN"})

    def test_byte_order_mark_input(self, comparator, make_folder, simple_message):
        """Test that a UTF-8 BOM at the start of a file is ignored."""
        folder = make_folder({"a.edi": "\ufeff" + simple_message}, {"out.edi": simple_message})

        result = comparator.compare(folder)

        assert result.input_data.sources == ["a.edi"]
        assert result.processed_passengers == frozenset({"ABC123|SMITHJOHN"})
        assert not any("No EDIFACT message found" in warning for warning in result.warnings)

    def test_name_doc_dob_strategy(self, make_folder, simple_message):
        """Test that a different strategy changes the passenger keys."""
        folder = make_folder({"a.edi": simple_message}, {"out.edi": simple_message})
        comparator = PnrgovComparator(ComparisonConfig(matching_strategy=MatchingStrategy.NAME_DOC_DOB))

        result = comparator.compare(folder)

        assert result.processed_passengers == frozenset({"JOHN SMITH|NODOC|NODOB"})
        assert result.strategy == MatchingStrategy.NAME_DOC_DOB

    def test_flight_mismatch(self, comparator, make_folder, simple_message):
        """Test differing flights are reported."""
        output_text = simple_message.replace("+EK+0160'", "+EK+0161'")
        folder = make_folder({"a.edi": simple_message}, {"out.edi": output_text})

        result = comparator.compare(folder)

        assert not result.flight_comparison.is_match
        assert result.flight_comparison.differences == ("Flight Number: Input(EK0160) vs Output(EK0161)",)

    def test_legacy_layout(self, comparator, tmp_path, simple_message):
        """Test files named input/output directly under the folder."""
        (tmp_path / "flight_input.edi").write_text(simple_message, encoding="utf-8")
        (tmp_path / "flight_output.edi").write_text(simple_message, encoding="utf-8")

        result = comparator.compare(str(tmp_path))

        assert result.processed_count == 1
        assert result.input_data.file_path.endswith("flight_input.edi")


class TestComparisonFailures:
    """Test fatal conditions and skipped sources."""

    @pytest.fixture
    def comparator(self):
        return PnrgovComparator()

    def test_folder_not_found(self, comparator, tmp_path):
        """Test a missing folder."""
        with pytest.raises(ComparisonError, match="Folder not found") as exc_info:
            comparator.compare(str(tmp_path / "missing"))

        assert exc_info.value.kind == ErrorKind.FOLDER_NOT_FOUND

    def test_no_input_files(self, comparator, make_folder, simple_message):
        """Test an empty input folder."""
        folder = make_folder({}, {"out.edi": simple_message})

        with pytest.raises(ComparisonError) as exc_info:
            comparator.compare(folder)

        assert exc_info.value.kind == ErrorKind.NO_INPUT_FILES

    def test_no_valid_output(self, comparator, make_folder, simple_message):
        """Test an output folder holding no EDIFACT message."""
        folder = make_folder({"a.edi": simple_message}, {"out.edi": "not a message\n"})

        with pytest.raises(ComparisonError, match="No valid output options") as exc_info:
            comparator.compare(folder)

        assert exc_info.value.kind == ErrorKind.NO_OUTPUT_FILES

    def test_multiple_outputs(self, comparator, make_folder, simple_message):
        """Test that more than one output source is rejected."""
        folder = make_folder(
            {"a.edi": simple_message},
            {"out1.edi": simple_message, "out2.edi": simple_message},
        )

        with pytest.raises(ComparisonError, match="out1.edi, out2.edi") as exc_info:
            comparator.compare(folder)

        assert exc_info.value.kind == ErrorKind.MULTIPLE_OUTPUTS
        assert exc_info.value.to_dict()["error"] == "multiple-outputs"

    def test_incomplete_group_is_skipped(self, comparator, make_folder, simple_message):
        """Test a multipart group without final part."""
        part1 = multipart("REF", "ID", 1, "C", pnr_block("XYZ999", "DOE/JANE"), header=True)
        folder = make_folder({"a.edi": simple_message, "part1.edi": part1}, {"out.edi": simple_message})

        result = comparator.compare(folder)

        assert "Incomplete input multipart group REF/ID (no final part) skipped: part1.edi" in result.warnings
        assert result.dropped_count == 0
        assert result.input_data.sources == ["a.edi"]

    def test_oversized_file_is_skipped(self, make_folder, simple_message):
        """Test the file size limit."""
        folder = make_folder({"a.edi": simple_message, "big.edi": simple_message * 10}, {"out.edi": simple_message})
        comparator = PnrgovComparator(ComparisonConfig(max_file_size=len(simple_message) + 1))

        result = comparator.compare(folder)

        assert any(warning.startswith("Skipping big.edi") for warning in result.warnings)
        assert result.input_data.sources == ["a.edi"]

    def test_cancellation(self, comparator, make_folder, simple_message):
        """Test that a cancelled token aborts the run."""
        folder = make_folder({"a.edi": simple_message}, {"out.edi": simple_message})
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelled, match="Comparison cancelled at file a.edi"):
            comparator.compare(folder, token)


class TestComparisonResult:
    """Test the result surface."""

    @pytest.fixture
    def result(self, make_folder, simple_message):
        input_text = build_interchange(pnr_block("ABC123", "SMITH/JOHN") + pnr_block("XYZ999", "DOE/JANE"))
        output_text = build_interchange(pnr_block("ABC123", "SMITH/JOHN") + pnr_block("NEW111", "NEW/PAX"))
        folder = make_folder({"a.edi": input_text, "b.edi": simple_message}, {"out.edi": output_text})
        return PnrgovComparator().compare(folder)

    def test_run_id(self, result):
        """Test that each run carries its own id and the context is reset."""
        assert result.run_id
        assert get_run_id() is None

    def test_passenger_rows(self, result):
        """Test flattened report rows."""
        rows = result.passenger_rows()

        assert [(row["name"], row["status"]) for row in rows] == [
            ("SMITH/JOHN", "DUPLICATE"),
            ("DOE/JANE", "DROPPED"),
            ("SMITH/JOHN", "DUPLICATE"),
            ("NEW/PAX", "ADDED"),
        ]
        assert [row["no"] for row in rows] == [1, 2, 3, 4]
        assert rows[0]["legs"] == "EK0160 DXB-LHR 290825"

    def test_to_dict(self, result):
        """Test the JSON summary."""
        summary = result.to_dict(include_rows=True)

        assert summary["strategy"] == "PNR_NAME"
        assert summary["input"]["passenger_count"] == 3
        assert summary["output"]["passenger_count"] == 2
        assert summary["passengers"]["duplicates"] == ["ABC123|SMITHJOHN"]
        assert summary["pnrs"]["added"] == ["NEW111"]
        assert len(summary["rows"]) == 4

    def test_config_is_recorded(self, result):
        """Test that the result keeps the settings it was produced with."""
        summary = result.to_dict()

        assert result.config["matching_strategy"] == "PNR_NAME"
        assert summary["config"]["max_file_size"] == DEFAULT_MAX_FILE_SIZE
        assert summary["config"]["strict_validation"] is False


class TestComparisonMetrics:
    """Test metrics fed by comparison runs."""

    @pytest.fixture
    def registry(self):
        return CollectorRegistry()

    @pytest.fixture
    def comparator(self, registry):
        return PnrgovComparator(metrics=ReconciliationMetrics(registry=registry))

    def test_success_recorded(self, comparator, registry, make_folder, simple_message):
        """Test counters after a successful run."""
        folder = make_folder(
            {"a.edi": simple_message, "b.edi": simple_message},
            {"out.edi": simple_message},
        )

        comparator.compare(folder)

        assert registry.get_sample_value("pnrgov_comparison_runs_total", {"status": "success"}) == 1.0
        assert registry.get_sample_value("pnrgov_passengers_total", {"outcome": "processed"}) == 1.0
        assert registry.get_sample_value("pnrgov_passengers_total", {"outcome": "duplicate"}) == 1.0
        assert registry.get_sample_value("pnrgov_last_flight_match") == 1.0

    def test_failure_recorded(self, comparator, registry, tmp_path):
        """Test counters after a failed run."""
        with pytest.raises(ComparisonError):
            comparator.compare(str(tmp_path / "missing"))

        assert registry.get_sample_value("pnrgov_comparison_runs_total", {"status": "folder-not-found"}) == 1.0
        assert registry.get_sample_value("pnrgov_comparison_duration_seconds_count") == 1.0
