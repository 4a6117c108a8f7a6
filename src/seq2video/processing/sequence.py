"""
Sequence detection module for seq2video.

This module inspects an image directory, groups the filenames by their
inferred pattern and reports the gapless run of frames an encoder can consume.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..config import IMAGE_EXTENSIONS, TIE_BREAK, TieBreak
from ..core.types import ScanStatus, SequenceSummary
from ..output.logger import SimpleLogger
from ..utils.path import parse_filename


def longest_consecutive_run(sorted_numbers: Sequence[int]) -> int:
    """Count consecutive integers present from the first (smallest) number.

    Duplicates count once; the first gap ends the run.
    Examples:
        [5, 6, 7, 9, 10] -> 3
        [5, 5, 6] -> 2
        [] -> 0

    Args:
        sorted_numbers (Sequence[int]): Numbers in ascending order.

    Returns:
        int: Length of the contiguous prefix run.
    """
    if not sorted_numbers:
        return 0
    expected = sorted_numbers[0]
    count = 0
    for n in sorted_numbers:
        if n == expected - 1:
            continue  # duplicate of the number just counted
        if n != expected:
            break
        count += 1
        expected += 1
    return count


class SequenceScanner:
    """Scanner that infers the dominant numbered image sequence in a directory.

    Args:
        extensions: Filename suffixes accepted as images (case-sensitive)
        tie_break: "listing" keeps the first pattern seen in directory order,
            "lexicographic" picks the smallest pattern string
        logger: Optional logger for diagnostics
    """

    def __init__(
        self,
        extensions: Optional[Iterable[str]] = None,
        tie_break: Optional[TieBreak] = None,
        logger: Optional[SimpleLogger] = None,
    ) -> None:
        self.extensions: Tuple[str, ...] = tuple(extensions) if extensions is not None else IMAGE_EXTENSIONS
        self.tie_break: TieBreak = tie_break or TIE_BREAK
        if self.tie_break not in ("listing", "lexicographic"):
            raise ValueError(f"Unknown tie-break rule: {self.tie_break}")
        self.logger = logger

    def list_images(self, directory: Path) -> List[str]:
        """Return image filenames in directory listing order.

        Raises:
            OSError: When the directory cannot be listed.
        """
        names: List[str] = []
        with os.scandir(directory) as it:
            for entry in it:
                if not entry.name.endswith(self.extensions):
                    continue
                try:
                    if entry.is_dir():
                        continue
                except OSError:
                    continue
                names.append(entry.name)
        return names

    def summarize(self, directory: Path, names: Iterable[str]) -> SequenceSummary:
        """Build a summary from filenames given in listing order."""
        groups: Dict[str, List[int]] = {}
        for name in names:
            parsed = parse_filename(name)
            if not parsed.valid:
                continue
            groups.setdefault(parsed.pattern, []).append(parsed.number)

        if not groups:
            return SequenceSummary(
                directory=directory,
                status=ScanStatus.NONE_FOUND,
                diagnostic="No images found in directory.",
            )

        dominant = self._select_dominant(groups)
        numbers = sorted(set(groups[dominant]))
        usable = longest_consecutive_run(numbers)
        first = numbers[0]
        group_size = len(groups[dominant])

        diagnostic = f"{usable} images found in directory, starting at {first}."
        if usable < len(numbers):
            unusable = len(numbers) - usable
            diagnostic += (
                f" ({unusable} of {len(numbers)} images unusable after a gap at {first + usable}.)"
            )

        candidates = tuple(
            (pattern, len(nums)) for pattern, nums in groups.items() if pattern != dominant
        )
        return SequenceSummary(
            directory=directory,
            status=ScanStatus.FOUND,
            diagnostic=diagnostic,
            dominant_pattern=dominant,
            first_number=first,
            usable_count=usable,
            group_size=group_size,
            numbers=tuple(numbers),
            candidates=candidates,
        )

    def scan(self, directory: str | os.PathLike[str]) -> SequenceSummary:
        """Inspect a directory and summarize its dominant image sequence.

        Filesystem failures are reported through the summary status and
        diagnostic, never raised.

        Args:
            directory: Directory to inspect.

        Returns:
            SequenceSummary: Fresh summary for the directory.
        """
        path = Path(directory)
        try:
            names = self.list_images(path)
        except FileNotFoundError:
            return self._failed(path, ScanStatus.NOT_FOUND, f"Directory not found: {path}")
        except NotADirectoryError:
            return self._failed(path, ScanStatus.NOT_A_DIRECTORY, f"Not a directory: {path}")
        except (OSError, ValueError) as e:
            # ValueError: paths the OS cannot represent, such as embedded NUL bytes
            return self._failed(path, ScanStatus.UNREADABLE, f"Directory could not be read: {e}")

        summary = self.summarize(path, names)
        if self.logger:
            self.logger.info(f"{path}: {summary.diagnostic}")
        return summary

    def frames(self, summary: SequenceSummary) -> List[str]:
        """List the usable frame filenames of a summary, in frame order."""
        if not summary.found or summary.dominant_pattern is None or summary.first_number is None:
            return []
        start = summary.first_number
        return [summary.dominant_pattern % n for n in range(start, start + summary.usable_count)]

    def _select_dominant(self, groups: Dict[str, List[int]]) -> str:
        # dicts keep insertion order, so max() returns the first-seen pattern on ties
        if self.tie_break == "lexicographic":
            best = max(len(nums) for nums in groups.values())
            return min(pattern for pattern, nums in groups.items() if len(nums) == best)
        return max(groups, key=lambda pattern: len(groups[pattern]))

    def _failed(self, path: Path, status: ScanStatus, message: str) -> SequenceSummary:
        if self.logger:
            self.logger.warning(message)
        return SequenceSummary(directory=path, status=status, diagnostic=message)
