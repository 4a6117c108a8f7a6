"""
Subprocess and external command utilities for seq2video.

This module runs external commands either to completion (``run_subprocess``)
or supervised in the background with their output streamed line by line to
a caller-supplied sink (``ProcessSupervisor``).
"""

from __future__ import annotations

import os
import queue
import shlex
import signal
import subprocess
import threading
import time
from collections.abc import Callable, Sequence
from typing import IO, Optional, Tuple, Union

from ..config import OUTPUT_ENCODING, POST_EXIT_DRAIN_SEC, TERMINATE_GRACE_SEC
from ..core.types import RunResult, RunState, StreamName
from ..output.logger import SimpleLogger

LineSink = Callable[[str], None]
FinishedCallback = Callable[[RunResult], None]

class _StreamClosed:
    """Queue marker: a reader reached end of stream."""


class _ChildExited:
    """Queue marker: the child process was reaped."""


class _StreamFailed:
    """Queue marker: a reader hit an I/O error."""

    def __init__(self, message: str) -> None:
        self.message = message


_CLOSED = _StreamClosed()
_EXITED = _ChildExited()

QueueItem = Tuple[Optional[StreamName], Union[str, _StreamClosed, _ChildExited, _StreamFailed]]


def command_to_string(cmd: Sequence[str]) -> str:
    """Render a command as a copy-pasteable shell line."""
    return " ".join(shlex.quote(str(c)) for c in cmd)


def run_subprocess(cmd: list[str], *, log: Optional[SimpleLogger] = None, timeout: int | None = None) -> tuple[int, str]:
    """Run subprocess command to completion with proper error handling.

    Args:
        cmd: Command and arguments list
        log: Optional logger that receives the command line
        timeout: Optional timeout in seconds

    Returns:
        Tuple of (return_code, combined_output)
    """
    if log:
        log.info(f"Running: {command_to_string(cmd)}")

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, errors="replace", timeout=timeout)
        return result.returncode, result.stdout + result.stderr
    except subprocess.TimeoutExpired:
        return -1, f"Command timed out after {timeout} seconds"
    except (OSError, ValueError) as e:
        return -1, str(e)


class ProcessSupervisor:
    """Run one external command in the background and stream its output.

    Each output stream is read by its own thread; lines are funnelled through a
    queue to a single drain thread that calls ``sink`` and, once both streams
    are exhausted and the child has exited, ``on_finished`` exactly once.

    The child runs in its own session. When it exits while processes it started
    still hold its output open, reading stops ``post_exit_drain_sec`` after the
    exit and the run finishes anyway. ``cancel`` signals the whole process group.

    Lines from the same stream arrive in order. Lines from stdout and stderr
    interleave in whatever order the reader threads pick them up.

    A supervisor runs a single command; create a new one per run.

    Args:
        logger: Optional logger for start failures, stream errors and sink errors
        encoding: Text encoding of the child's output (undecodable bytes are replaced)
        terminate_grace_sec: Delay between terminate() and kill() on cancel
        post_exit_drain_sec: How long to keep reading output after the child exited
    """

    def __init__(
        self,
        logger: Optional[SimpleLogger] = None,
        encoding: Optional[str] = None,
        terminate_grace_sec: Optional[float] = None,
        post_exit_drain_sec: Optional[float] = None,
    ) -> None:
        self.logger = logger
        self.encoding = encoding or OUTPUT_ENCODING
        self.terminate_grace_sec = TERMINATE_GRACE_SEC if terminate_grace_sec is None else terminate_grace_sec
        self.post_exit_drain_sec = POST_EXIT_DRAIN_SEC if post_exit_drain_sec is None else post_exit_drain_sec

        self._lock = threading.Lock()
        self._state = RunState.NOT_STARTED
        self._argv: Tuple[str, ...] = ()
        self._cwd: Optional[str] = None
        self._process: Optional[subprocess.Popen[str]] = None
        self._cancel_requested = False
        self._queue: queue.Queue[QueueItem] = queue.Queue()
        self._done = threading.Event()
        self._result: Optional[RunResult] = None
        self._drain_thread: Optional[threading.Thread] = None

    # ------------------------------
    # Public API
    # ------------------------------

    @property
    def state(self) -> RunState:
        with self._lock:
            return self._state

    @property
    def argv(self) -> Tuple[str, ...]:
        return self._argv

    @property
    def pid(self) -> Optional[int]:
        process = self._process
        return process.pid if process is not None else None

    @property
    def returncode(self) -> Optional[int]:
        process = self._process
        return process.returncode if process is not None else None

    @property
    def result(self) -> Optional[RunResult]:
        """The completion report, once the run has finished."""
        return self._result

    def start(
        self,
        argv: Sequence[Union[str, os.PathLike[str]]],
        working_directory: Union[str, os.PathLike[str], None],
        sink: LineSink,
        on_finished: Optional[FinishedCallback] = None,
        error_sink: Optional[LineSink] = None,
    ) -> None:
        """Launch the command and return immediately.

        Args:
            argv: Program and arguments; not interpreted by a shell.
            working_directory: Directory the child runs in (None keeps the current one).
            sink: Receives every output line, newline-terminated.
            on_finished: Called once with the RunResult after all output was delivered.
            error_sink: When given, stderr lines go here instead of ``sink``.

        Raises:
            RuntimeError: If this supervisor was already started.
        """
        with self._lock:
            if self._state is not RunState.NOT_STARTED:
                raise RuntimeError(f"Process run already {self._state.value}; use a new ProcessSupervisor")
            self._state = RunState.RUNNING

        self._argv = tuple(os.fspath(a) for a in argv)
        self._cwd = os.fspath(working_directory) if working_directory is not None else None
        self._drain_thread = threading.Thread(
            target=self._drain,
            args=(sink, error_sink or sink, on_finished),
            name="seq2video-drain",
            daemon=True,
        )
        self._drain_thread.start()

    def run(
        self,
        argv: Sequence[Union[str, os.PathLike[str]]],
        working_directory: Union[str, os.PathLike[str], None],
        sink: LineSink,
        error_sink: Optional[LineSink] = None,
    ) -> RunResult:
        """Start the command and block until it finished and all output was delivered."""
        self.start(argv, working_directory, sink, error_sink=error_sink)
        result = self.wait()
        if result is None:
            raise RuntimeError(f"Run of {self._argv[0]} ended without a result")
        return result

    def wait(self, timeout: Optional[float] = None) -> Optional[RunResult]:
        """Block until the run finished.

        Returns:
            RunResult, or None if the run was never started or the timeout expired.
        """
        if self.state is RunState.NOT_STARTED:
            return None
        if not self._done.wait(timeout):
            return None
        return self._result

    def cancel(self) -> bool:
        """Terminate the child and its process group; output already produced is still drained.

        Also works after the child exited, for processes it left holding the output open.

        Returns:
            bool: True if the run was still in progress.
        """
        with self._lock:
            if self._state in (RunState.NOT_STARTED, RunState.FINISHED):
                return False
            self._cancel_requested = True
            process = self._process
        if process is not None:
            self._terminate(process)
        return True

    # ------------------------------
    # Drain task
    # ------------------------------

    def _drain(self, sink: LineSink, error_sink: LineSink, on_finished: Optional[FinishedCallback]) -> None:
        result = RunResult(argv=self._argv)
        t0 = time.monotonic()

        process = self._spawn(result)
        if process is None:
            result.duration = time.monotonic() - t0
            self._finish(result, on_finished)
            return

        readers = [
            threading.Thread(
                target=self._read_stream, args=(process.stdout, StreamName.STDOUT),
                name="seq2video-stdout", daemon=True,
            ),
            threading.Thread(
                target=self._read_stream, args=(process.stderr, StreamName.STDERR),
                name="seq2video-stderr", daemon=True,
            ),
        ]
        watcher = threading.Thread(target=self._watch_exit, args=(process,), name="seq2video-exit", daemon=True)
        for thread in (*readers, watcher):
            thread.start()

        open_streams = len(readers)
        exited_at: Optional[float] = None
        while open_streams:
            timeout: Optional[float] = None
            if exited_at is not None:
                timeout = exited_at + self.post_exit_drain_sec - time.monotonic()
                if timeout <= 0:
                    break
            try:
                stream, item = self._queue.get(timeout=timeout)
            except queue.Empty:
                break

            if item is _EXITED:
                exited_at = time.monotonic()
            elif item is _CLOSED:
                open_streams -= 1
            elif isinstance(item, _StreamFailed):
                message = f"Error reading {stream.value} of {self._argv[0]}: {item.message}"
                result.stream_errors.append(message)
                if self.logger:
                    self.logger.error(message)
            elif isinstance(item, str):
                if stream is StreamName.STDERR:
                    result.stderr_lines += 1
                    self._deliver(error_sink, item, result)
                else:
                    result.stdout_lines += 1
                    self._deliver(sink, item, result)

        if open_streams:
            # readers stay blocked until the last holder of the pipe exits; they are daemons
            message = (
                f"{self._argv[0]} exited but its output stayed open for {self.post_exit_drain_sec:g}s; "
                "stopped reading (a process it started may still be running)"
            )
            result.stream_errors.append(message)
            if self.logger:
                self.logger.warning(message)
        else:
            for reader in readers:
                reader.join()

        result.exit_code = process.wait()
        with self._lock:
            result.cancelled = self._cancel_requested
        result.duration = time.monotonic() - t0
        self._finish(result, on_finished)

    def _spawn(self, result: RunResult) -> Optional[subprocess.Popen[str]]:
        program = self._argv[0] if self._argv else "<empty command>"
        if self.logger:
            self.logger.info(f"Running: {command_to_string(self._argv)}")
        try:
            process = subprocess.Popen(
                self._argv,
                cwd=self._cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding=self.encoding,
                errors="replace",
                start_new_session=True,
            )
        except (OSError, ValueError, IndexError, subprocess.SubprocessError) as e:
            result.error = f"Could not start {program}: {e}"
            if self.logger:
                self.logger.error(result.error)
            return None

        with self._lock:
            self._process = process
            cancel = self._cancel_requested
        if cancel:
            self._terminate(process)
        return process

    def _read_stream(self, stream: Optional[IO[str]], name: StreamName) -> None:
        if stream is None:
            self._queue.put((name, _CLOSED))
            return
        try:
            for line in stream:
                if not line.endswith("\n"):
                    line += "\n"
                self._queue.put((name, line))
        except (OSError, ValueError) as e:
            self._queue.put((name, _StreamFailed(str(e))))
        finally:
            try:
                stream.close()
            except OSError:
                pass
            self._queue.put((name, _CLOSED))

    def _watch_exit(self, process: subprocess.Popen[str]) -> None:
        process.wait()
        with self._lock:
            if self._state is RunState.RUNNING:
                self._state = RunState.DRAINING
        self._queue.put((None, _EXITED))

    def _deliver(self, sink: LineSink, line: str, result: RunResult) -> None:
        try:
            sink(line)
        except Exception as e:
            message = f"Output sink failed: {type(e).__name__}: {e}"
            result.stream_errors.append(message)
            if self.logger:
                self.logger.error(message)

    def _finish(self, result: RunResult, on_finished: Optional[FinishedCallback]) -> None:
        with self._lock:
            self._state = RunState.FINISHED
            self._result = result
        if self.logger and result.error is None:
            status = "cancelled" if result.cancelled else f"exit code {result.exit_code}"
            self.logger.info(f"{self._argv[0]} finished ({status}) after {result.duration:.1f}s")
        try:
            if on_finished is not None:
                on_finished(result)
        except Exception as e:
            if self.logger:
                self.logger.error(f"Completion callback failed: {type(e).__name__}: {e}")
        finally:
            self._done.set()

    # ------------------------------
    # Termination
    # ------------------------------

    @staticmethod
    def _signal_group(process: subprocess.Popen[str], kill: bool) -> bool:
        """Signal the child's process group, or the child alone where groups are unavailable.

        Returns:
            bool: True if the signal was delivered.
        """
        try:
            if hasattr(os, "killpg"):
                os.killpg(process.pid, signal.SIGKILL if kill else signal.SIGTERM)
            elif process.poll() is None:
                if kill:
                    process.kill()
                else:
                    process.terminate()
            else:
                return False
        except OSError:
            return False
        return True

    def _terminate(self, process: subprocess.Popen[str]) -> None:
        if not self._signal_group(process, kill=False):
            return
        timer = threading.Timer(self.terminate_grace_sec, self._kill_if_alive, args=(process,))
        timer.daemon = True
        timer.start()

    def _kill_if_alive(self, process: subprocess.Popen[str]) -> None:
        if self._signal_group(process, kill=True) and self.logger:
            self.logger.warning(f"{self._argv[0]} still running after terminate; killed process group {process.pid}")
