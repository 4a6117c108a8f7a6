#!/usr/bin/env python3
"""
seq2video: Turn a directory of numbered images into a video with ffmpeg.

Two commands:
- scan: infer the image pattern, start number and usable frame count
- encode: build the ffmpeg command from the scan (flags override it) and run it,
  streaming the encoder output live
"""

from __future__ import annotations

import argparse
import sys
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Optional, TextIO, Tuple

from pydantic import ValidationError
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..core.types import RunResult, SequenceSummary
from ..output.logger import SimpleLogger
from ..output.viewer import ScrollableLogViewer
from ..processing.ffmpeg import RESOLUTION_PRESETS, EncodeSettings, FFmpegCommandBuilder, parse_resolution
from ..processing.image import source_resolution
from ..processing.sequence import SequenceScanner
from ..tools.check import check_tools
from ..utils.subprocess import ProcessSupervisor, command_to_string

console = Console()
err_console = Console(stderr=True)

EXIT_USAGE = 2
EXIT_INTERRUPTED = 130
REFRESH_INTERVAL = 0.25
SCROLL_STEP = 5
CONTROLS_HINT = "[dim]Controls (then Enter): 'u' scroll up | 'd' scroll down | 't' top | 'b' bottom | 'q' stop encoder[/dim]"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    p = argparse.ArgumentParser(
        prog="seq2video",
        description="Turn a directory of numbered images into a video.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--check-tools", action="store_true", help="Verify external tools and exit")
    sub = p.add_subparsers(dest="command")

    def add_scan_options(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("directory", type=Path, help="Image directory")
        sp.add_argument(
            "--ext", action="append", dest="extensions", metavar="EXT",
            help="Image extension to accept (repeatable, case-sensitive). Defaults to the configured set",
        )
        sp.add_argument(
            "--tie-break", choices=["listing", "lexicographic"], default=None,
            help="Rule for equally large patterns (default from config)",
        )

    scan = sub.add_parser("scan", help="Inspect a directory and report the image sequence")
    add_scan_options(scan)

    enc = sub.add_parser("encode", help="Encode the image sequence into a video")
    add_scan_options(enc)
    enc.add_argument("--pattern", help="Image pattern such as img%%04d.jpg (overrides the scan)")
    enc.add_argument("--start-number", type=int, help="First image number (overrides the scan)")
    enc.add_argument("--frame-count", type=int, help="Number of images to encode (overrides the scan)")
    enc.add_argument("-r", "--frame-rate", type=int, help="Image frame rate in fps")
    enc.add_argument(
        "--interpolate", action=argparse.BooleanOptionalAction, default=None,
        help="Blend between images to reach the interpolated frame rate",
    )
    enc.add_argument("--interpolated-frame-rate", type=int, help="Output frame rate when interpolating")
    enc.add_argument(
        "-s", "--resolution",
        help="WIDTHxHEIGHT, 'source' (first image size) or a preset: " + ", ".join(RESOLUTION_PRESETS),
    )
    enc.add_argument("-o", "--output", help="Video file name, relative to the image directory")
    enc.add_argument("--ffmpeg", default="ffmpeg", help="ffmpeg executable")
    enc.add_argument("--dry-run", action="store_true", help="Print the command without running it")
    enc.add_argument("--log-file", type=Path, help="Also write encoder output to this file")
    return p.parse_args(argv)


def build_scanner(args: argparse.Namespace, logger: Optional[SimpleLogger] = None) -> SequenceScanner:
    """Create a scanner from CLI options, falling back to the configuration."""
    return SequenceScanner(extensions=args.extensions, tie_break=args.tie_break, logger=logger)


def summary_table(summary: SequenceSummary) -> Table:
    """Render a scan summary as a two-column table."""
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column(style="dim")
    table.add_column()
    table.add_row("Directory:", str(summary.directory))
    style = "green" if summary.found else "yellow"
    table.add_row("Result:", Text(summary.diagnostic, style=style))
    if summary.found:
        table.add_row("Pattern:", Text(summary.dominant_pattern or ""))
        table.add_row("Start number:", str(summary.first_number))
        table.add_row("Last number:", str(summary.last_number))
        table.add_row("Usable images:", str(summary.usable_count))
        table.add_row("Images in group:", str(summary.group_size))
        for pattern, size in summary.candidates:
            table.add_row("Also found:", Text(f"{pattern} ({size})", style="dim"))
    return table


def resolve_resolution(text: Optional[str], scanner: SequenceScanner, summary: SequenceSummary) -> Tuple[Optional[int], Optional[int]]:
    """Turn the --resolution option into (width, height); (None, None) keeps the defaults."""
    if text is None:
        return None, None
    if text.strip().lower() == "source":
        frames = scanner.frames(summary)
        if not frames:
            raise ValueError("Cannot use the source resolution: no images found")
        size = source_resolution(summary.directory, frames)
        if size is None:
            raise ValueError(f"Cannot read the image size of {frames[0]}")
        return size
    return parse_resolution(text)


def build_settings(args: argparse.Namespace, scanner: SequenceScanner, summary: SequenceSummary) -> EncodeSettings:
    """Merge the scan result with CLI overrides."""
    width, height = resolve_resolution(args.resolution, scanner, summary)
    return EncodeSettings.from_summary(
        summary,
        pattern=args.pattern,
        start_number=args.start_number,
        frame_count=args.frame_count,
        frame_rate=args.frame_rate,
        interpolate=args.interpolate,
        interpolated_frame_rate=args.interpolated_frame_rate,
        width=width,
        height=height,
        output=args.output,
    )


def apply_control(command: str, viewer: ScrollableLogViewer, supervisor: ProcessSupervisor) -> bool:
    """Apply one control key to the output view or the run.

    Returns:
        bool: False for unknown keys.
    """
    cmd = command.strip().lower()
    if cmd == "u":
        viewer.scroll_up(SCROLL_STEP)
    elif cmd == "d":
        viewer.scroll_down(SCROLL_STEP)
    elif cmd == "t":
        viewer.scroll_to_top()
    elif cmd == "b":
        viewer.scroll_to_bottom()
    elif cmd == "q":
        supervisor.cancel()
    else:
        return False
    return True


def start_controls_listener(
    viewer: ScrollableLogViewer,
    supervisor: ProcessSupervisor,
    stop_event: threading.Event,
    stream: Optional[TextIO] = None,
) -> threading.Thread:
    """Start a background thread that reads line-buffered control keys from stdin.

    Returns:
        Thread: The daemon thread handling input.
    """

    def _reader() -> None:
        source = stream or sys.stdin
        while not stop_event.is_set():
            try:
                line = source.readline()
            except (OSError, ValueError):
                break
            if not line:
                break
            apply_control(line, viewer, supervisor)

    t = threading.Thread(target=_reader, name="seq2video-controls", daemon=True)
    t.start()
    return t


def stdin_is_interactive() -> bool:
    try:
        return sys.stdin is not None and sys.stdin.isatty()
    except (OSError, ValueError):
        return False


def run_encoder(
    cmd: list[str],
    directory: Path,
    viewer: ScrollableLogViewer,
    logger: SimpleLogger,
) -> Tuple[RunResult, bool]:
    """Run the encoder, showing its output live. Returns (result, interrupted)."""
    supervisor = ProcessSupervisor(logger=logger)
    supervisor.start(cmd, directory, viewer.add_output, error_sink=viewer.add_error_output)

    stop_controls = threading.Event()
    if stdin_is_interactive():
        console.print(CONTROLS_HINT)
        start_controls_listener(viewer, supervisor, stop_controls)

    interrupted = False
    result: Optional[RunResult] = None
    try:
        with Live(viewer, console=console, refresh_per_second=int(1 / REFRESH_INTERVAL)) as live:
            while result is None:
                try:
                    result = supervisor.wait(REFRESH_INTERVAL)
                except KeyboardInterrupt:
                    interrupted = True
                    logger.warning("Interrupted; stopping encoder...")
                    supervisor.cancel()
                live.refresh()
    finally:
        stop_controls.set()
    return result, interrupted


def result_panel(result: RunResult, output: Path) -> Panel:
    """Build the final panel describing the encoder run."""
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column(style="dim")
    table.add_column()
    if result.error:
        table.add_row("Error:", Text(result.error, style="red"))
    else:
        code_style = "green" if result.exit_code == 0 else "red"
        table.add_row("Exit code:", Text(str(result.exit_code), style=code_style))
        if result.cancelled:
            table.add_row("Cancelled:", Text("yes", style="yellow"))
        table.add_row("Output lines:", f"{result.line_count:,}")
        table.add_row("Total Time:", f"{result.duration:.1f}s")
        if result.ok:
            table.add_row("Video:", str(output))
    for problem in result.stream_errors:
        table.add_row("Warning:", Text(problem, style="yellow"))
    return Panel(table, title="[bold cyan]Summary[/bold cyan]", border_style="cyan", title_align="left")


def cmd_scan(args: argparse.Namespace) -> int:
    scanner = build_scanner(args)
    summary = scanner.scan(args.directory)
    console.print(Panel(summary_table(summary), title="[bold cyan]Image Sequence[/bold cyan]", border_style="cyan", title_align="left"))
    return 0 if summary.found else 1


def cmd_encode(args: argparse.Namespace) -> int:
    logger = SimpleLogger()
    scanner = build_scanner(args)
    summary = scanner.scan(args.directory)
    console.print(Panel(summary_table(summary), title="[bold cyan]Image Sequence[/bold cyan]", border_style="cyan", title_align="left"))

    if not summary.found and args.pattern is None:
        err_console.print("[bold red]No image sequence to encode.[/] Pass --pattern to name one explicitly.")
        return 1

    try:
        settings = build_settings(args, scanner, summary)
    except (ValueError, ValidationError) as e:
        err_console.print(f"[bold red]Invalid settings:[/] {e}")
        return EXIT_USAGE

    cmd = FFmpegCommandBuilder.build_encode_cmd(settings, ffmpeg=args.ffmpeg)
    console.print(Text(command_to_string(cmd), style="bold"))
    if args.dry_run:
        return 0

    tools_ok, probs = check_tools(args.ffmpeg)
    if not tools_ok:
        for p in probs:
            err_console.print(f"[bold red]Missing:[/] {p}")
        return 1

    viewer = ScrollableLogViewer(log_file=args.log_file)
    result, interrupted = run_encoder(cmd, args.directory, viewer, logger)
    console.print(result_panel(result, args.directory / settings.output))
    if interrupted:
        return EXIT_INTERRUPTED
    if not result.ok:
        return 1
    logger.success(f"Video written: {args.directory / settings.output}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point."""
    args = parse_args(argv)

    if args.check_tools:
        ok, probs = check_tools(probe=True)
        if ok:
            console.print("[bold green]Tools OK:[/] ffmpeg")
            return 0
        for p in probs:
            err_console.print(f"[bold red]Missing:[/] {p}")
        return 1

    if args.command == "scan":
        return cmd_scan(args)
    if args.command == "encode":
        return cmd_encode(args)

    err_console.print("[yellow]Nothing to do.[/] Use 'scan' or 'encode' (see --help).")
    return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
