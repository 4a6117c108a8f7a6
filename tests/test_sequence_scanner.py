from __future__ import annotations

from pathlib import Path

import pytest

from seq2video.core.types import ScanStatus
from seq2video.processing import sequence
from seq2video.processing.sequence import SequenceScanner, longest_consecutive_run


@pytest.mark.parametrize(
    "numbers, expected",
    [
        ([5, 6, 7, 9, 10], 3),
        ([5], 1),
        ([5, 5, 6], 2),
        ([1, 2, 3, 4], 4),
        ([3, 5], 1),
        ([], 0),
    ],
)
def test_longest_consecutive_run(numbers, expected):
    assert longest_consecutive_run(numbers) == expected


def test_scan_full_sequence_ignores_unrelated_files(touch_files):
    directory = touch_files([f"img{i:03d}.jpg" for i in range(1, 11)] + ["readme.txt"])
    summary = SequenceScanner().scan(directory)

    assert summary.status is ScanStatus.FOUND
    assert summary.found
    assert summary.dominant_pattern == "img%03d.jpg"
    assert summary.first_number == 1
    assert summary.usable_count == 10
    assert summary.last_number == 10
    assert summary.group_size == 10
    assert summary.diagnostic == "10 images found in directory, starting at 1."


def test_scan_stops_usable_run_at_first_gap(touch_files):
    directory = touch_files([f"img{i:03d}.jpg" for i in range(1, 11) if i != 5])
    summary = SequenceScanner().scan(directory)

    assert summary.dominant_pattern == "img%03d.jpg"
    assert summary.first_number == 1
    assert summary.usable_count == 4
    assert summary.group_size == 9
    assert summary.numbers == (1, 2, 3, 4, 6, 7, 8, 9, 10)
    assert summary.diagnostic.startswith("4 images found in directory, starting at 1.")
    assert "gap at 5" in summary.diagnostic


def test_scan_starts_at_lowest_number(touch_files):
    directory = touch_files([f"DSC{i:05d}.JPG" for i in range(120, 125)])
    summary = SequenceScanner().scan(directory)
    assert summary.dominant_pattern == "DSC%05d.JPG"
    assert summary.first_number == 120
    assert summary.usable_count == 5


def test_scan_picks_largest_group_and_reports_others(touch_files):
    names = [f"a_{i:02d}.png" for i in range(5)] + [f"b{i:03d}.jpg" for i in range(3)]
    summary = SequenceScanner().scan(touch_files(names))

    assert summary.dominant_pattern == "a_%02d.png"
    assert summary.first_number == 0
    assert summary.usable_count == 5
    assert summary.candidates == (("b%03d.jpg", 3),)


def test_different_padding_widths_are_different_sequences(touch_files):
    names = ["007.jpg", "008.jpg", "009.jpg", "07.jpg", "08.jpg"]
    summary = SequenceScanner().scan(touch_files(names))
    assert summary.dominant_pattern == "%03d.jpg"
    assert summary.usable_count == 3


def test_extension_filter_is_case_sensitive(touch_files):
    names = [f"f{i}.Jpg" for i in range(1, 6)] + ["g1.PNG", "g2.PNG"]
    summary = SequenceScanner().scan(touch_files(names))
    assert summary.dominant_pattern == "g%01d.PNG"
    assert summary.usable_count == 2


def test_custom_extensions(touch_files):
    directory = touch_files([f"r{i:04d}.tif" for i in range(1, 4)] + ["x0001.jpg"])
    summary = SequenceScanner(extensions=[".tif"]).scan(directory)
    assert summary.dominant_pattern == "r%04d.tif"
    assert summary.usable_count == 3


def test_subdirectories_named_like_images_are_skipped(tmp_path: Path):
    (tmp_path / "img001.jpg").mkdir()
    (tmp_path / "img002.jpg").write_bytes(b"")
    summary = SequenceScanner().scan(tmp_path)
    assert summary.first_number == 2
    assert summary.usable_count == 1


def test_empty_directory_reports_no_images(tmp_path: Path):
    summary = SequenceScanner().scan(tmp_path)
    assert summary.status is ScanStatus.NONE_FOUND
    assert not summary.found
    assert summary.diagnostic == "No images found in directory."
    assert summary.dominant_pattern is None
    assert summary.usable_count == 0
    assert summary.last_number is None


def test_images_without_numbers_report_no_images(touch_files):
    summary = SequenceScanner().scan(touch_files(["cover.jpg", "logo.png"]))
    assert summary.status is ScanStatus.NONE_FOUND


def test_missing_directory_is_reported(tmp_path: Path):
    missing = tmp_path / "nope"
    summary = SequenceScanner().scan(missing)
    assert summary.status is ScanStatus.NOT_FOUND
    assert summary.diagnostic == f"Directory not found: {missing}"


def test_file_instead_of_directory_is_reported(tmp_path: Path):
    f = tmp_path / "img001.jpg"
    f.write_bytes(b"")
    summary = SequenceScanner().scan(f)
    assert summary.status is ScanStatus.NOT_A_DIRECTORY
    assert summary.diagnostic.startswith("Not a directory:")


def test_unreadable_directory_is_reported(tmp_path: Path, monkeypatch):
    def deny(path):
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr(sequence.os, "scandir", deny)
    summary = SequenceScanner().scan(tmp_path)
    assert summary.status is ScanStatus.UNREADABLE
    assert summary.diagnostic.startswith("Directory could not be read:")


def test_path_with_nul_byte_is_reported_not_raised():
    summary = SequenceScanner().scan("frames\x00dir")
    assert summary.status is ScanStatus.UNREADABLE
    assert summary.diagnostic.startswith("Directory could not be read:")
    assert not summary.found


def test_tie_break_follows_listing_order(tmp_path: Path):
    scanner = SequenceScanner(tie_break="listing")
    names = ["zz01.jpg", "aa01.jpg", "zz02.jpg", "aa02.jpg"]
    assert scanner.summarize(tmp_path, names).dominant_pattern == "zz%02d.jpg"
    assert scanner.summarize(tmp_path, list(reversed(names))).dominant_pattern == "aa%02d.jpg"


def test_tie_break_lexicographic_ignores_listing_order(tmp_path: Path):
    scanner = SequenceScanner(tie_break="lexicographic")
    names = ["zz01.jpg", "aa01.jpg", "zz02.jpg", "aa02.jpg"]
    assert scanner.summarize(tmp_path, names).dominant_pattern == "aa%02d.jpg"
    assert scanner.summarize(tmp_path, list(reversed(names))).dominant_pattern == "aa%02d.jpg"


def test_unknown_tie_break_is_rejected():
    with pytest.raises(ValueError):
        SequenceScanner(tie_break="random")  # type: ignore[arg-type]


def test_frames_lists_usable_run(touch_files):
    directory = touch_files(["s08.png", "s09.png", "s10.png", "s12.png"])
    scanner = SequenceScanner()
    summary = scanner.scan(directory)
    assert scanner.frames(summary) == ["s08.png", "s09.png", "s10.png"]
    assert scanner.frames(scanner.scan(directory / "missing")) == []


def test_rescan_reflects_directory_changes(touch_files, tmp_path: Path):
    directory = touch_files([f"img{i:03d}.jpg" for i in range(1, 4)])
    scanner = SequenceScanner()
    assert scanner.scan(directory).usable_count == 3
    (tmp_path / "img004.jpg").write_bytes(b"")
    assert scanner.scan(directory).usable_count == 4
