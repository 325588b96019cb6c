"""
Comparison Folder Discovery

Finds the input and output candidate files of a comparison folder and
decodes them into candidate messages.

Layouts, checked in order:
    folder/input/*.{txt,edi,edifact} and folder/output/*.{txt,edi,edifact}
    files directly under folder whose name contains "input" / "output"
"""

import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from src.edifact.multipart import CandidateMessage
from src.edifact.scanner import MessageBoundaryScanner, decode_messages
from src.utils.errors import ComparisonError, ErrorKind
from src.utils.run_context import CancellationToken

logger = logging.getLogger(__name__)

NEW_LAYOUT = "input/output folders"
LEGACY_LAYOUT = "legacy file names"


@dataclass(frozen=True)
class DiscoveredFiles:
    """Candidate files of both sides."""
    input_files: Tuple[str, ...]
    output_files: Tuple[str, ...]
    layout: str


@dataclass
class LoadedCandidates:
    """Messages decoded from one side's files."""
    messages: List[CandidateMessage] = field(default_factory=list)
    unreadable: List[Tuple[str, str]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class FileDiscovery:
    """Locates candidate files and decodes them into messages."""

    def __init__(
        self,
        extensions: Sequence[str] = (".txt", ".edi", ".edifact"),
        max_file_size: Optional[int] = None,
        scanner: Optional[MessageBoundaryScanner] = None
    ):
        """
        Initialize file discovery.

        Args:
            extensions: Accepted extensions in the input/output folder layout
            max_file_size: Larger files are skipped with a warning
            scanner: Scanner used for log-format files
        """
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.max_file_size = max_file_size
        self.scanner = scanner or MessageBoundaryScanner()
        logger.debug("Initialized FileDiscovery")

    def _list_folder(self, folder: str) -> List[str]:
        return sorted(
            os.path.join(folder, name)
            for name in os.listdir(folder)
            if os.path.isfile(os.path.join(folder, name)) and name.lower().endswith(self.extensions)
        )

    def discover(self, folder: str) -> DiscoveredFiles:
        """
        Find the candidate files of a comparison folder.

        Args:
            folder: Comparison folder

        Returns:
            DiscoveredFiles

        Raises:
            ComparisonError: FOLDER_NOT_FOUND, NO_INPUT_FILES or NO_OUTPUT_FILES
        """
        if not os.path.isdir(folder):
            logger.error(f"Folder not found: {folder}")
            raise ComparisonError(ErrorKind.FOLDER_NOT_FOUND, f"Folder not found: {folder}", folder)

        input_dir = os.path.join(folder, "input")
        output_dir = os.path.join(folder, "output")

        if os.path.isdir(input_dir) and os.path.isdir(output_dir):
            layout = NEW_LAYOUT
            input_files = self._list_folder(input_dir)
            output_files = self._list_folder(output_dir)
        else:
            layout = LEGACY_LAYOUT
            names = sorted(
                name for name in os.listdir(folder)
                if os.path.isfile(os.path.join(folder, name))
            )
            input_files = [os.path.join(folder, name) for name in names if "input" in name.lower()]
            output_files = [os.path.join(folder, name) for name in names if "output" in name.lower()]

        logger.info(
            f"Discovered {len(input_files)} input and {len(output_files)} output files "
            f"in {folder} ({layout})"
        )

        if not input_files:
            raise ComparisonError(ErrorKind.NO_INPUT_FILES, f"No input files found in {folder}", folder)
        if not output_files:
            raise ComparisonError(ErrorKind.NO_OUTPUT_FILES, f"No output files found in {folder}", folder)

        return DiscoveredFiles(tuple(input_files), tuple(output_files), layout)

    def load(
        self,
        paths: Sequence[str],
        cancellation: Optional[CancellationToken] = None
    ) -> LoadedCandidates:
        """
        Read files and decode them into candidate messages.

        A file holding several messages (a log) yields labels "name#1",
        "name#2", ...

        Args:
            paths: Files to read
            cancellation: Optional token checked before every file

        Returns:
            LoadedCandidates
        """
        loaded = LoadedCandidates()

        for path in paths:
            name = os.path.basename(path)
            if cancellation is not None:
                cancellation.raise_if_cancelled(f"file {name}")

            try:
                size = os.path.getsize(path)
                if self.max_file_size is not None and size > self.max_file_size:
                    warning = f"Skipping {name}: {size} bytes exceeds limit of {self.max_file_size} bytes"
                    logger.warning(warning)
                    loaded.warnings.append(warning)
                    continue

                with open(path, 'r', encoding='utf-8-sig', errors='replace') as f:
                    content = f.read()
            except OSError as e:
                logger.warning(f"Failed to read {name}: {e}")
                loaded.unreadable.append((name, f"Failed to read file: {e}"))
                continue

            messages = decode_messages(content, self.scanner, cancellation)
            if not messages:
                warning = f"No EDIFACT message found in {name}"
                logger.warning(warning)
                loaded.warnings.append(warning)
                continue

            for number, message in enumerate(messages, start=1):
                label = name if len(messages) == 1 else f"{name}#{number}"
                loaded.messages.append(CandidateMessage(label, path, message.full_text))

        return loaded
