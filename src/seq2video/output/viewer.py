"""
Scrollable view over the encoder's output.

The viewer doubles as the supervisor's line sink: lines are appended from the
drain thread while ``rich.live.Live`` renders the panel from the main thread,
so every access to the history goes through one lock.
"""

from __future__ import annotations

import threading
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Deque, List, Optional, Union

from rich.panel import Panel
from rich.text import Text

from ..config import app_config
from .logger import append_line, write_session_header

STDERR_STYLE = "yellow"


class ScrollableLogViewer:
    """Bounded line history with a scroll window that follows new output.

    Scrolling away from the bottom freezes the window; scrolling back to the
    bottom resumes following.

    Args:
        max_visible_lines: Height of the window
        max_history: Lines kept before the oldest are dropped
        log_file: Optional file that receives every line with a timestamp
    """

    def __init__(
        self,
        max_visible_lines: Optional[int] = None,
        max_history: Optional[int] = None,
        log_file: Optional[Path] = None
    ) -> None:
        self.max_visible_lines = max_visible_lines or app_config.viewer.max_visible_lines
        self.max_history = max_history or app_config.viewer.max_history
        self.log_file = log_file
        self.logs: Deque[Text] = deque(maxlen=self.max_history)
        self.scroll_offset = 0
        self.follow = True
        self._lock = threading.RLock()

        if self.log_file:
            write_session_header(self.log_file)

    # ------------------------------
    # Appending
    # ------------------------------

    def add_log(self, message: Union[str, Text], style: Optional[str] = None) -> None:
        """Append one entry; plain strings get ``style``."""
        entry = Text(message, style=style or "") if isinstance(message, str) else message
        with self._lock:
            self.logs.append(entry)
            if self.log_file:
                append_line(self.log_file, f"[{datetime.now():%H:%M:%S}] {entry.plain}")
            if self.follow:
                self.scroll_offset = self._bottom_offset()

    def add_output(self, line: str) -> None:
        """Line sink for the child's stdout."""
        self.add_log(line.rstrip("\n"))

    def add_error_output(self, line: str) -> None:
        """Line sink for the child's stderr."""
        self.add_log(line.rstrip("\n"), style=STDERR_STYLE)

    def clear(self) -> None:
        with self._lock:
            self.logs.clear()
            self.scroll_offset = 0
            self.follow = True

    # ------------------------------
    # Scrolling
    # ------------------------------

    def _bottom_offset(self) -> int:
        return max(0, len(self.logs) - self.max_visible_lines)

    def _scroll_to(self, offset: int) -> None:
        with self._lock:
            bottom = self._bottom_offset()
            self.scroll_offset = min(max(0, offset), bottom)
            self.follow = self.scroll_offset >= bottom

    def scroll_up(self, lines: int = 1) -> None:
        with self._lock:
            self._scroll_to(self.scroll_offset - lines)
            self.follow = False

    def scroll_down(self, lines: int = 1) -> None:
        with self._lock:
            self._scroll_to(self.scroll_offset + lines)

    def scroll_to_top(self) -> None:
        with self._lock:
            self._scroll_to(0)
            self.follow = False

    def scroll_to_bottom(self) -> None:
        self._scroll_to(len(self.logs))

    # ------------------------------
    # Rendering
    # ------------------------------

    def lines(self) -> List[str]:
        """Plain text of the whole history."""
        with self._lock:
            return [entry.plain for entry in self.logs]

    def get_visible_logs(self) -> List[Text]:
        """Entries inside the scroll window, padded with blanks to the window height."""
        with self._lock:
            window = list(self.logs)[self.scroll_offset:self.scroll_offset + self.max_visible_lines]
        return window + [Text("") for _ in range(self.max_visible_lines - len(window))]

    def _get_scroll_info(self) -> str:
        with self._lock:
            total = len(self.logs)
            offset = self.scroll_offset
        if not total:
            return ""
        if total <= self.max_visible_lines:
            return f"[showing all {total}]"
        if offset == 0:
            return f"[TOP of {total}]"
        if offset >= total - self.max_visible_lines:
            return f"[BOTTOM of {total}]"
        return f"[{offset + 1}-{offset + self.max_visible_lines} of {total}]"

    def get_panel(self, title: str = "Command Output") -> Panel:
        """Render the scroll window as a panel titled with the scroll position."""
        body = Text("\n").join(self.get_visible_logs())
        info = self._get_scroll_info()
        if info:
            title = f"{title} {info}"
        return Panel(body, title=Text(title, style="cyan"), border_style="cyan", title_align="left")

    def __rich__(self) -> Panel:
        return self.get_panel()
