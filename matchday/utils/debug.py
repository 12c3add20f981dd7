# Copyright (C) 2025 Richard Owen
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""Structured logging utilities used to trace match sessions."""
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Deque, Iterable, List, Optional, TextIO


@dataclass
class DebugEvent:
    """Record representing a single logged line.

    Parameters
    ----------
    line_number : int
        Position of the line within the session.
    category : str
        Category label such as ``"MATCH_EVENT"`` or ``"ERROR"``.
    details : str
        Formatted message body.
    """

    line_number: int
    category: str
    details: str


class MatchDebugger:
    """Helper object that records structured session telemetry.

    Lines are always kept in a bounded in-memory ring; they are also streamed to
    a file when ``output_dir`` is given.

    Parameters
    ----------
    output_dir : str | None, default=None
        Directory where session logs are created; created automatically when
        missing. ``None`` keeps the trace in memory only.
    capacity : int, default=200
        Number of recent lines kept in memory.
    """

    def __init__(self, output_dir: Optional[str] = None, capacity: int = 200) -> None:
        """Initialise the debugger and open the log file when requested.

        Parameters
        ----------
        output_dir : str | None
            Filesystem directory where log files are created.
        capacity : int
            Number of recent lines kept for :meth:`get_recent_events`.
        """
        self.output_dir = Path(output_dir) if output_dir is not None else None
        self.log_file: Optional[TextIO] = None
        self.session_start = time.strftime("%Y%m%d_%H%M%S")
        self._lock = Lock()
        self._line_number = 1
        self._recent: Deque[DebugEvent] = deque(maxlen=capacity)
        if self.output_dir is not None:
            self.start_new_session()

    def start_new_session(self) -> None:
        """Open a fresh log file in ``output_dir``."""
        if self.output_dir is None:
            return
        if self.log_file:
            self.log_file.close()

        self.output_dir.mkdir(parents=True, exist_ok=True)
        filename = f"match_debug_{self.session_start}.txt"
        self.log_file = open(self.output_dir / filename, "w", encoding="utf-8")
        self.log_file.write(f"=== Match Debug Session: {time.strftime('%Y-%m-%d %H:%M:%S')} ===\n\n")

    def log_match_event(self, minute: int, event_type: str, description: str) -> None:
        """Log a delivered match event.

        Parameters
        ----------
        minute : int
            Simulated minute the event was delivered at.
        event_type : str
            Short label identifying the event category.
        description : str
            Human-readable summary of the event.
        """
        self._write_log("MATCH_EVENT", f"Minute: {minute:02d} | Event: {event_type} | Details: {description}")

    def log_state_change(self, paths: Iterable[str]) -> None:
        """Log the paths touched by a committed store update.

        Parameters
        ----------
        paths : Iterable[str]
            Dotted paths whose values changed.
        """
        self._write_log("STATE_CHANGE", f"Paths: {', '.join(sorted(paths))}")

    def log_phase_transition(self, from_phase: str, to_phase: str, reason: str = "") -> None:
        """Log a match phase transition.

        Parameters
        ----------
        from_phase : str
            Phase before the transition.
        to_phase : str
            Phase after the transition.
        reason : str
            Optional trigger description, for example ``"action_bet"``.
        """
        reason_str = f" | Reason: {reason}" if reason else ""
        self._write_log("PHASE", f"{from_phase} -> {to_phase}{reason_str}")

    def log_error(self, error_type: str, description: str) -> None:
        """Log an error or warning.

        Parameters
        ----------
        error_type : str
            Label describing the error classification.
        description : str
            Human-readable explanation of the issue.
        """
        self._write_log("ERROR", f"Type: {error_type} | Details: {description}")

    def _write_log(self, category: str, details: str) -> None:
        """Number a line, keep it in memory and write it to the log file.

        Parameters
        ----------
        category : str
            Line category such as ``"MATCH_EVENT"``.
        details : str
            Formatted line body.
        """
        timestamp = time.strftime("%H:%M:%S")
        log_entry = f"[{timestamp}] {category}: {details}"

        with self._lock:
            line_no = self._line_number
            self._line_number += 1
            self._recent.append(DebugEvent(line_no, category, details))

            if self.log_file:
                self.log_file.write(f"{log_entry}\n")
                self.log_file.flush()

    def get_recent_events(self, limit: int = 20, category: Optional[str] = None) -> List[str]:
        """Return the latest entries with line numbers for live displays.

        Parameters
        ----------
        limit : int
            Maximum number of entries to return.
        category : str | None
            Only return lines of this category when given.

        Returns
        -------
        List[str]
            Up to ``limit`` most recent log lines with prefixed line numbers.
        """
        with self._lock:
            events = [e for e in self._recent if category is None or e.category == category]
        selected = events[-limit:] if limit > 0 else []
        return [f"{e.line_number:05d} {e.category}: {e.details}" for e in selected]

    def error_count(self) -> int:
        """Return how many ``ERROR`` lines are still held in memory.

        Returns
        -------
        int
            Number of retained error lines.
        """
        with self._lock:
            return sum(1 for e in self._recent if e.category == "ERROR")

    def close(self) -> None:
        """Close the log file."""
        if self.log_file:
            self.log_file.close()
            self.log_file = None

