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
"""Real-time ticker that drives a session's simulated clock."""
import threading
import time
from typing import Callable, Optional

from matchday.engine.session import MatchSession
from matchday.models.snapshot import MatchPhase


class MatchTicker:
    """Calls ``advance()`` once per tick and closes expired betting windows.

    Parameters
    ----------
    session : MatchSession
        Session to drive.
    tick_interval : float | None, default=None
        Real seconds per simulated minute; derived from the session's
        simulation config when omitted.
    betting_window : float | None, default=None
        Seconds a paused match waits before resuming with reason ``"timeout"``.
    clock : Callable[[], float], default=time.monotonic
        Time source.
    sleep : Callable[[float], None], default=time.sleep
        Sleep function used between ticks.
    """

    def __init__(
        self,
        session: MatchSession,
        tick_interval: Optional[float] = None,
        betting_window: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Prepare the ticker without starting it.

        Parameters
        ----------
        session : MatchSession
            Session to drive.
        tick_interval : float | None
            Real seconds per tick.
        betting_window : float | None
            Seconds before a paused match resumes on its own.
        clock : Callable[[], float]
            Time source.
        sleep : Callable[[float], None]
            Sleep function.
        """
        simulation = session.config.simulation
        self.session = session
        self.tick_interval = (
            tick_interval if tick_interval is not None else simulation.tick_interval / simulation.default_speed
        )
        self.betting_window = (
            betting_window if betting_window is not None else session.config.betting_window.window_seconds
        )
        self.clock = clock
        self.sleep = sleep
        self.is_running = False
        self.ticks = 0
        self._paused_since: Optional[float] = None
        self._thread: Optional[threading.Thread] = None

    def tick(self) -> bool:
        """Run a single tick.

        Returns
        -------
        bool
            ``True`` when the simulated clock advanced.
        """
        phase = self.session.phase
        if phase == MatchPhase.PAUSED:
            now = self.clock()
            if self._paused_since is None:
                self._paused_since = now
            elif now - self._paused_since >= self.betting_window:
                self._paused_since = None
                self.session.close_betting_window("timeout")
            return False

        self._paused_since = None
        if phase != MatchPhase.ACTIVE:
            return False
        advanced = self.session.advance()
        if advanced:
            self.ticks += 1
        return advanced

    def run(self) -> None:
        """Tick until the match leaves play or :meth:`stop` is called."""
        self.is_running = True
        self._loop()

    def _loop(self) -> None:
        """Tick and sleep while the match is in play."""
        while self.is_running and self.session.phase in (MatchPhase.ACTIVE, MatchPhase.PAUSED):
            self.tick()
            self.sleep(self.tick_interval)
        self.is_running = False

    def start(self) -> threading.Thread:
        """Run the ticker on a worker thread.

        Returns
        -------
        threading.Thread
            The started thread; join it to wait for full time.
        """
        if self._thread is None or not self._thread.is_alive():
            self.is_running = True
            self._thread = threading.Thread(target=self._loop, name="match-ticker")
            self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop ticking and wait for the worker thread.

        Parameters
        ----------
        timeout : float | None
            Seconds to wait for the thread to finish.
        """
        self.is_running = False
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None
