"""
PNRGOV Folder Comparator

Entry point of the engine: `PnrgovComparator.compare(folder)` discovers the
input and output files of a folder, reassembles multipart messages,
validates structure, extracts PNRs, passengers and flights, and diffs both
sides into one immutable ComparisonResult.
"""

import os
import time
import logging
from contextlib import ExitStack
from dataclasses import dataclass
from typing import List, Optional, Tuple

from src.edifact.multipart import (
    CandidateMessage,
    MessageMerger,
    MultipartAnalysis,
    MultipartAnalyzer,
    MultipartGroup,
    ScopedTempFile,
)
from src.edifact.scanner import MessageBoundaryScanner
from src.edifact.segments import split_segments
from src.edifact.separators import Separators
from src.edifact.validator import StructuralValidator
from src.reconciliation.comparer import FlightComparer
from src.reconciliation.config import ComparisonConfig
from src.reconciliation.differ import ReconciliationEngine
from src.reconciliation.discovery import FileDiscovery
from src.reconciliation.extractor import PnrDataExtractor
from src.reconciliation.flight import FlightDetailsExtractor
from src.reconciliation.matching import MatchingKeyGenerator
from src.reconciliation.models import ComparisonResult, PnrData
from src.utils.errors import ComparisonError, ErrorKind
from src.utils.run_context import CancellationToken, RunContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedSource:
    """One usable message of a side, split into segments."""
    label: str
    path: str
    text: str
    separators: Separators
    segments: Tuple[str, ...]
    segment_sources: Optional[Tuple[str, ...]] = None
    part_count: int = 1
    source: Optional[str] = None


class PnrgovComparator:
    """
    Compares the input and output PNRGOV data of one folder.

    Every call to `compare` builds its own working state; one instance may
    serve concurrent comparisons as long as each uses its own folder.
    """

    def __init__(self, config: Optional[ComparisonConfig] = None, metrics=None):
        """
        Initialize the comparator.

        Args:
            config: Comparison settings (defaults when omitted)
            metrics: Optional ReconciliationMetrics fed after every run
        """
        self.config = config or ComparisonConfig()
        self.metrics = metrics
        self.analyzer = MultipartAnalyzer()
        self.merger = MessageMerger()
        self.flight_extractor = FlightDetailsExtractor()
        self.flight_comparer = FlightComparer()
        logger.debug(
            f"Initialized PnrgovComparator (strategy={self.config.matching_strategy.value}, "
            f"strict={self.config.strict_validation})"
        )

    def compare(self, folder: str, cancellation: Optional[CancellationToken] = None) -> ComparisonResult:
        """
        Compare the input and output side of a folder.

        Args:
            folder: Comparison folder
            cancellation: Optional token checked at every file and message boundary

        Returns:
            ComparisonResult

        Raises:
            ComparisonError: On discovery failures and fatal structural errors
            OperationCancelled: If the token is cancelled during the run
        """
        started = time.perf_counter()

        with RunContext() as run_id:
            logger.info(
                f"Starting comparison of {folder}",
                extra={"folder": folder, "strategy": self.config.matching_strategy.value}
            )
            try:
                result = self._compare(folder, cancellation, run_id, started)
            except ComparisonError as e:
                logger.error(f"Comparison failed ({e.kind.value}): {e.message}")
                if self.metrics is not None:
                    self.metrics.record_failure(e.kind.value, time.perf_counter() - started)
                raise

            if self.metrics is not None:
                self.metrics.record_comparison(result)

            logger.info(
                f"Comparison of {folder} finished: {result.processed_count} processed, "
                f"{result.dropped_count} dropped, {result.added_count} added, "
                f"{result.duplicate_count} duplicates, {len(result.warnings)} warnings",
                extra={"folder": folder, "duration": result.elapsed_seconds}
            )
            return result

    def _compare(
        self,
        folder: str,
        cancellation: Optional[CancellationToken],
        run_id: str,
        started: float
    ) -> ComparisonResult:
        config = self.config
        discovery = FileDiscovery(
            extensions=config.file_extensions,
            max_file_size=config.max_file_size,
            scanner=MessageBoundaryScanner(config.marker_rules),
        )
        validator = StructuralValidator(strict=config.strict_validation, rci_lookahead=config.rci_lookahead)
        warnings: List[str] = []

        discovered = discovery.discover(folder)

        input_loaded = discovery.load(discovered.input_files, cancellation)
        output_loaded = discovery.load(discovered.output_files, cancellation)
        warnings.extend(input_loaded.warnings)
        warnings.extend(output_loaded.warnings)

        input_analysis = self.analyzer.analyze(input_loaded.messages, input_loaded.unreadable)
        output_analysis = self.analyzer.analyze(output_loaded.messages, output_loaded.unreadable)
        warnings.extend(self._analysis_warnings(input_analysis, "input"))
        warnings.extend(self._analysis_warnings(output_analysis, "output"))

        with ExitStack() as scope:
            input_sources = self._select_inputs(input_analysis, scope, folder, cancellation)
            output_source = self._select_output(output_analysis, scope, folder, cancellation)

            input_data = PnrData(file_path=self._side_path(input_sources, discovered.input_files))
            for source in input_sources:
                if cancellation is not None:
                    cancellation.raise_if_cancelled(f"message {source.label}")
                data, source_warnings = self._decode(source, validator)
                input_data.extend(data)
                warnings.extend(source_warnings)

            if cancellation is not None:
                cancellation.raise_if_cancelled(f"message {output_source.label}")
            output_data, output_warnings = self._decode(output_source, validator)
            warnings.extend(output_warnings)

            input_flight = self.flight_extractor.extract(input_sources[0].text, input_sources[0].separators)
            output_flight = self.flight_extractor.extract(output_source.text, output_source.separators)

        flight_comparison = self.flight_comparer.compare(input_flight, output_flight)

        engine = ReconciliationEngine(MatchingKeyGenerator(config.matching_strategy))
        outcome = engine.reconcile(input_data, output_data, config.report_same_file_repeats)

        return ComparisonResult(
            input_data=input_data,
            output_data=output_data,
            flight_comparison=flight_comparison,
            passenger_diff=outcome.passenger_diff,
            pnr_diff=outcome.pnr_diff,
            duplicate_keys=outcome.duplicate_keys,
            same_file_repeats=outcome.same_file_repeats,
            warnings=tuple(warnings),
            elapsed_seconds=time.perf_counter() - started,
            strategy=config.matching_strategy,
            strict_validation=config.strict_validation,
            input_passenger_keys=outcome.input_passenger_keys,
            output_passenger_keys=outcome.output_passenger_keys,
            run_id=run_id,
            config=config.to_dict(),
        )

    @staticmethod
    def _side_path(sources: List[DecodedSource], files: Tuple[str, ...]) -> str:
        if len(sources) == 1:
            return sources[0].path
        return os.path.dirname(files[0])

    @staticmethod
    def _analysis_warnings(analysis: MultipartAnalysis, side: str) -> List[str]:
        warnings = [f"Invalid {side} message {label}: {reason}" for label, reason in analysis.invalid]
        for group in analysis.incomplete_groups:
            labels = ", ".join(candidate.label for candidate in group.ordered_parts())
            warnings.append(
                f"Incomplete {side} multipart group {group.reference}/{group.identifier} "
                f"(no final part) skipped: {labels}"
            )
        return warnings

    def _merge(
        self,
        group: MultipartGroup,
        scope: ExitStack,
        side: str,
        cancellation: Optional[CancellationToken]
    ) -> DecodedSource:
        if cancellation is not None:
            cancellation.raise_if_cancelled(f"multipart group {group.reference}/{group.identifier}")

        merged = self.merger.merge(group)
        path = scope.enter_context(
            ScopedTempFile(merged.text, directory=self.config.work_dir, prefix=f"{side}_merged_")
        )
        return DecodedSource(
            label=f"{group.reference}/{group.identifier}",
            path=path,
            text=merged.text,
            separators=merged.separators,
            segments=merged.segments,
            segment_sources=merged.segment_sources,
            part_count=len(merged.part_labels),
        )

    @staticmethod
    def _single(candidate: CandidateMessage) -> DecodedSource:
        separators = candidate.separators
        return DecodedSource(
            label=candidate.label,
            path=candidate.path,
            text=candidate.text,
            separators=separators,
            segments=tuple(split_segments(candidate.text, separators)),
            source=candidate.source,
        )

    def _select_inputs(
        self,
        analysis: MultipartAnalysis,
        scope: ExitStack,
        folder: str,
        cancellation: Optional[CancellationToken]
    ) -> List[DecodedSource]:
        """Every complete group (merged) and every single message is an input source."""
        sources = [self._merge(group, scope, "input", cancellation) for group in analysis.complete_groups]
        sources.extend(self._single(candidate) for candidate in analysis.single_messages)

        if not sources:
            raise ComparisonError(
                ErrorKind.NO_INPUT_FILES,
                f"No valid input options in {folder}: no complete multipart group or single message",
                folder,
            )
        return sources

    def _select_output(
        self,
        analysis: MultipartAnalysis,
        scope: ExitStack,
        folder: str,
        cancellation: Optional[CancellationToken]
    ) -> DecodedSource:
        """Exactly one complete group or single message must remain."""
        options = len(analysis.complete_groups) + len(analysis.single_messages)

        if options == 0:
            raise ComparisonError(
                ErrorKind.NO_OUTPUT_FILES,
                f"No valid output options in {folder}: no complete multipart group or single message",
                folder,
            )
        if options > 1:
            labels = [f"{g.reference}/{g.identifier}" for g in analysis.complete_groups]
            labels.extend(candidate.label for candidate in analysis.single_messages)
            raise ComparisonError(
                ErrorKind.MULTIPLE_OUTPUTS,
                f"Multiple output sources in {folder}: {', '.join(labels)}",
                folder,
            )

        if analysis.complete_groups:
            return self._merge(analysis.complete_groups[0], scope, "output", cancellation)
        return self._single(analysis.single_messages[0])

    def _decode(self, source: DecodedSource, validator: StructuralValidator) -> Tuple[PnrData, List[str]]:
        """Validate one source and extract its PnrData."""
        segments = list(source.segments)
        warnings = validator.validate_envelope(segments, source.separators, source.label)
        warnings.extend(
            validator.validate_pnr_structure(segments, source.separators, source.label, source.segment_sources)
        )

        extractor = PnrDataExtractor(source.separators)
        data, extraction_warnings = extractor.extract(
            segments,
            source.path,
            source.label,
            source.segment_sources,
            source.part_count,
            source.source,
        )
        warnings.extend(extraction_warnings)
        return data, warnings
