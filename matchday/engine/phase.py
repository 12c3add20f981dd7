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
"""Match phase state machine gating simulated time.

``lobby -> active <-> paused -> ended``. Only ``active`` lets the clock move.
A transition requested from the wrong phase is reported in the returned
:class:`TransitionResult` and leaves the snapshot untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from matchday.engine.config import GAME_CONFIG, GameConfig
from matchday.engine.errors import MatchdayError, PhaseTransitionError
from matchday.engine.notifications import MatchEnd, MatchPaused, MatchResumed, NotificationHub
from matchday.engine.scheduler import TimelineScheduler
from matchday.engine.state_store import StateStore
from matchday.models.bet import determine_match_outcome
from matchday.models.snapshot import MatchPhase, Odds, StatePath
from matchday.utils.debug import MatchDebugger


@dataclass(frozen=True, slots=True)
class TransitionResult:
    """Outcome of a phase transition request.

    Parameters
    ----------
    success : bool
        ``True`` when the phase changed (or was already the target for
        idempotent transitions).
    from_phase : MatchPhase
        Phase when the request arrived.
    to_phase : MatchPhase
        Phase after the request.
    error : MatchdayError | None
        Why the request was rejected.
    """

    success: bool
    from_phase: MatchPhase
    to_phase: MatchPhase
    error: Optional[MatchdayError] = None


class MatchPhaseMachine:
    """Arbitrates phase changes and the per-tick clock advance.

    Parameters
    ----------
    store : StateStore
        Store holding the phase and the simulated minute.
    scheduler : TimelineScheduler
        Scheduler delivering events on each accepted advance.
    hub : NotificationHub | None, optional
        Receives pause, resume and match-end notifications; defaults to the
        scheduler's hub.
    config : GameConfig, optional
        Supplies the match duration.
    debugger : MatchDebugger | None, optional
        Structured logger.
    """

    def __init__(
        self,
        store: StateStore,
        scheduler: TimelineScheduler,
        hub: Optional[NotificationHub] = None,
        config: GameConfig = GAME_CONFIG,
        debugger: Optional[MatchDebugger] = None,
    ) -> None:
        """Bind the machine to its store and scheduler.

        Parameters
        ----------
        store : StateStore
            Session store.
        scheduler : TimelineScheduler
            Session scheduler.
        hub : NotificationHub | None
            Outbound notification hub.
        config : GameConfig
            Session configuration.
        debugger : MatchDebugger | None
            Structured logger.
        """
        self.store = store
        self.scheduler = scheduler
        self.hub = hub if hub is not None else scheduler.hub
        self.config = config
        self.debugger = debugger

    @property
    def phase(self) -> MatchPhase:
        """Return the current phase."""
        return self.store.get().phase

    @property
    def can_advance(self) -> bool:
        """Return ``True`` while the clock is allowed to move."""
        return self.phase == MatchPhase.ACTIVE

    def start_match(self, home_team: str = "", away_team: str = "", odds: Optional[Odds] = None) -> TransitionResult:
        """Leave the lobby and kick off a fresh match.

        Resets match-scoped state in one commit, regenerates the timeline and
        delivers the minute 0 events.

        Parameters
        ----------
        home_team : str
            Home side name.
        away_team : str
            Away side name.
        odds : Odds | None
            Kick-off odds; the configured defaults when omitted.

        Returns
        -------
        TransitionResult
            ``lobby -> active`` on success.
        """
        current = self.phase
        if current != MatchPhase.LOBBY:
            return self._reject("start match", current)

        result = self.store.reset_match(home_team, away_team, odds, phase=MatchPhase.ACTIVE)
        if not result.success:
            return TransitionResult(False, current, current, result.error)

        self.scheduler.reset()
        self.scheduler.generate_timeline(home_team, away_team)
        self._log(current, MatchPhase.ACTIVE, "start")
        self.scheduler.check_for_events()
        return TransitionResult(True, current, MatchPhase.ACTIVE)

    def request_pause(self, reason: str = "action_bet", event_id: Optional[str] = None) -> TransitionResult:
        """Freeze the clock, typically to open a betting window.

        Parameters
        ----------
        reason : str
            Trigger recorded in the notification.
        event_id : str | None
            Action bet that opened the window.

        Returns
        -------
        TransitionResult
            ``active -> paused`` on success.
        """
        current = self.phase
        if current != MatchPhase.ACTIVE:
            return self._reject("pause", current)
        self.store.update({StatePath.PHASE: MatchPhase.PAUSED})
        self._log(current, MatchPhase.PAUSED, reason)
        self.hub.emit(MatchPaused(minute=self.store.get().match.simulated_minute, reason=reason, event_id=event_id))
        return TransitionResult(True, current, MatchPhase.PAUSED)

    def resume(self, reason: str = "window_closed") -> TransitionResult:
        """Restart the clock after a betting window closes.

        Parameters
        ----------
        reason : str
            Why the window closed, for example ``"bet_placed"``, ``"skipped"``
            or ``"timeout"``.

        Returns
        -------
        TransitionResult
            ``paused -> active`` on success.
        """
        current = self.phase
        if current != MatchPhase.PAUSED:
            return self._reject("resume", current)
        self.store.update({StatePath.PHASE: MatchPhase.ACTIVE})
        self._log(current, MatchPhase.ACTIVE, reason)
        self.hub.emit(MatchResumed(minute=self.store.get().match.simulated_minute, reason=reason))
        return TransitionResult(True, current, MatchPhase.ACTIVE)

    def advance(self) -> bool:
        """Move the clock forward one minute if the match is active.

        Due events are delivered after the minute changes; reaching full time
        ends the match.

        Returns
        -------
        bool
            ``True`` when the advance was accepted.
        """
        if not self.can_advance:
            return False

        duration = self.config.simulation.match_duration
        minute = min(duration, self.store.get().match.simulated_minute + 1)
        self.store.update({StatePath.MATCH_SIMULATED_MINUTE: minute})
        self.scheduler.check_for_events()
        if minute >= duration and self.phase in (MatchPhase.ACTIVE, MatchPhase.PAUSED):
            self.end_match()
        return True

    def end_match(self) -> TransitionResult:
        """Blow the final whistle and settle full-match bets.

        Returns
        -------
        TransitionResult
            ``active|paused -> ended`` on success.
        """
        current = self.phase
        if current not in (MatchPhase.ACTIVE, MatchPhase.PAUSED):
            return self._reject("end match", current)

        self.scheduler.stop()
        match = self.store.get().match
        outcome = determine_match_outcome(match.home_score, match.away_score)
        settled = self.scheduler.settle_full_match_bets(outcome)
        self.store.update({StatePath.PHASE: MatchPhase.ENDED})
        self._log(current, MatchPhase.ENDED, f"full time {match.score_line}")
        self.hub.emit(MatchEnd(outcome=outcome, final_state=self.store.get(), settled_bets=settled))
        return TransitionResult(True, current, MatchPhase.ENDED)

    def return_to_lobby(self) -> TransitionResult:
        """Cancel whatever is running and go back to the lobby.

        Allowed from every phase and safe to repeat.

        Returns
        -------
        TransitionResult
            Always successful.
        """
        current = self.phase
        self.scheduler.reset()
        if current != MatchPhase.LOBBY:
            self.store.update({StatePath.PHASE: MatchPhase.LOBBY})
            self._log(current, MatchPhase.LOBBY, "return")
        return TransitionResult(True, current, MatchPhase.LOBBY)

    def allowed_transitions(self) -> Tuple[str, ...]:
        """List the transitions the current phase accepts.

        Returns
        -------
        Tuple[str, ...]
            Method names that would succeed right now.
        """
        allowed = {
            MatchPhase.LOBBY: ("start_match",),
            MatchPhase.ACTIVE: ("request_pause", "advance", "end_match"),
            MatchPhase.PAUSED: ("resume", "end_match"),
            MatchPhase.ENDED: (),
        }[self.phase]
        return allowed + ("return_to_lobby",)

    def _reject(self, transition: str, current: MatchPhase) -> TransitionResult:
        """Log and report a transition requested from the wrong phase.

        Parameters
        ----------
        transition : str
            Name of the requested transition.
        current : MatchPhase
            Phase the match is in.

        Returns
        -------
        TransitionResult
            Failed result that leaves the phase unchanged.
        """
        error = PhaseTransitionError(transition, current.value)
        if self.debugger is not None:
            self.debugger.log_error("PHASE", str(error))
        return TransitionResult(False, current, current, error)

    def _log(self, from_phase: MatchPhase, to_phase: MatchPhase, reason: str) -> None:
        """Record a completed transition.

        Parameters
        ----------
        from_phase : MatchPhase
            Phase before the transition.
        to_phase : MatchPhase
            Phase after the transition.
        reason : str
            Why the transition happened.
        """
        if self.debugger is not None:
            self.debugger.log_phase_transition(from_phase.value, to_phase.value, reason)
