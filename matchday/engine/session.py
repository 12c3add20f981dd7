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
"""Top-level session object wiring the store, scheduler and phase machine."""

from __future__ import annotations

import random
from typing import Callable, Optional, Type, TypeVar

from matchday.engine.config import GAME_CONFIG, GameConfig
from matchday.engine.errors import ValidationError
from matchday.engine.events import ActionBetPayload, EventType, ResolutionPayload
from matchday.engine.notifications import ActionBettingOpportunity, NotificationHub
from matchday.engine.phase import MatchPhaseMachine, TransitionResult
from matchday.engine.scheduler import TimelineScheduler
from matchday.engine.state_store import StateStore, UpdateResult
from matchday.models.bet import Bet, BetCategory
from matchday.models.snapshot import MatchPhase, Odds, Snapshot
from matchday.utils.debug import MatchDebugger

N = TypeVar("N")


class MatchSession:
    """One local betting session: a store, a scheduler and a phase machine.

    Nothing here is global; every collaborator receives the session (or one of
    its parts) explicitly.

    Parameters
    ----------
    config : GameConfig, optional
        Session configuration.
    rng : random.Random | None, optional
        Random source shared by timeline generation and resolutions.
    debugger : MatchDebugger | None, optional
        Structured logger; an in-memory debugger is created when omitted.
    """

    def __init__(
        self,
        config: GameConfig = GAME_CONFIG,
        rng: Optional[random.Random] = None,
        debugger: Optional[MatchDebugger] = None,
    ) -> None:
        """Construct and wire every session component.

        Parameters
        ----------
        config : GameConfig
            Session configuration.
        rng : random.Random | None
            Random source.
        debugger : MatchDebugger | None
            Structured logger.
        """
        self.config = config
        self.debugger = debugger if debugger is not None else MatchDebugger()
        self.store = StateStore(config, self.debugger)
        self.hub = NotificationHub(self.debugger)
        self.scheduler = TimelineScheduler(self.store, self.hub, config, rng, self.debugger)
        self.machine = MatchPhaseMachine(self.store, self.scheduler, self.hub, config, self.debugger)
        self.open_window: Optional[str] = None
        if config.betting_window.auto_pause:
            self.hub.subscribe(ActionBettingOpportunity, self._open_betting_window)

    @property
    def snapshot(self) -> Snapshot:
        """Return the current snapshot."""
        return self.store.get()

    @property
    def phase(self) -> MatchPhase:
        """Return the current match phase."""
        return self.machine.phase

    def on(self, kind: Type[N], listener: Callable[[N], None]) -> Callable[[], None]:
        """Subscribe to an outbound notification.

        Parameters
        ----------
        kind : Type[N]
            Notification class.
        listener : Callable[[N], None]
            Callback receiving each notification.

        Returns
        -------
        Callable[[], None]
            Function that removes the listener.
        """
        return self.hub.subscribe(kind, listener)

    def start_match(self, home_team: str = "", away_team: str = "", odds: Optional[Odds] = None) -> TransitionResult:
        """Kick off a new match from the lobby.

        Parameters
        ----------
        home_team : str
            Home side name.
        away_team : str
            Away side name.
        odds : Odds | None
            Kick-off odds.

        Returns
        -------
        TransitionResult
            Result of the ``lobby -> active`` transition.
        """
        self.open_window = None
        return self.machine.start_match(home_team, away_team, odds)

    def advance(self) -> bool:
        """Advance the simulated clock by one minute.

        Returns
        -------
        bool
            ``True`` when the phase allowed the advance.
        """
        return self.machine.advance()

    def close_betting_window(self, reason: str = "bet_placed") -> TransitionResult:
        """Close the open betting window and resume play.

        Parameters
        ----------
        reason : str
            ``"bet_placed"``, ``"skipped"`` or ``"timeout"``.

        Returns
        -------
        TransitionResult
            Result of the ``paused -> active`` transition.
        """
        result = self.machine.resume(reason)
        if result.success:
            self.open_window = None
        return result

    def place_bet(
        self,
        category: BetCategory,
        outcome: str,
        stake: float,
        event_id: Optional[str] = None,
    ) -> UpdateResult:
        """Record a pending wager at the currently offered odds.

        Stakes are checked against the wallet but not deducted; payouts and
        deductions belong to the betting collaborator.

        Parameters
        ----------
        category : BetCategory
            Wager family.
        outcome : str
            Backed outcome.
        stake : float
            Amount wagered.
        event_id : str | None
            Originating action bet for ``action`` wagers.

        Returns
        -------
        UpdateResult
            Outcome of appending the bet.
        """
        state = self.store.get()
        if state.phase not in (MatchPhase.ACTIVE, MatchPhase.PAUSED):
            return UpdateResult(False, ValidationError("bets", f"cannot bet while {state.phase.value}", outcome))
        if stake > state.wallet:
            return UpdateResult(False, ValidationError("bets", "stake exceeds wallet", stake))

        try:
            odds = self._offered_odds(state, category, outcome, event_id)
            bet = Bet(
                bet_id=f"bet_{len(state.bets.all_bets()) + 1:03d}",
                category=category,
                outcome=outcome,
                stake=stake,
                odds=odds,
                placed_at_minute=state.match.simulated_minute,
                event_id=event_id,
            )
        except ValueError as exc:
            return UpdateResult(False, ValidationError("bets", str(exc), outcome))

        result = self.store.append_bet(bet)
        if result.success:
            self.store.update_bet_memory(category, stake)
        return result

    def run_to_completion(self, window_reason: str = "skipped") -> Snapshot:
        """Drive the match to full time without a real-time ticker.

        Open betting windows are closed immediately with ``window_reason``.

        Parameters
        ----------
        window_reason : str
            Reason recorded when a window is closed.

        Returns
        -------
        Snapshot
            Final snapshot.
        """
        while self.phase in (MatchPhase.ACTIVE, MatchPhase.PAUSED):
            if self.phase == MatchPhase.PAUSED:
                self.close_betting_window(window_reason)
                continue
            self.advance()
        return self.store.get()

    def return_to_lobby(self) -> TransitionResult:
        """Abandon the current match and go back to the lobby.

        Returns
        -------
        TransitionResult
            Always successful.
        """
        self.open_window = None
        return self.machine.return_to_lobby()

    def _open_betting_window(self, notification: ActionBettingOpportunity) -> None:
        """Pause for ``notification`` unless a window is already open.

        Parameters
        ----------
        notification : ActionBettingOpportunity
            Opportunity delivered by the scheduler.
        """
        if self.phase != MatchPhase.ACTIVE:
            return
        result = self.machine.request_pause("action_bet", notification.event_id)
        if result.success:
            self.open_window = notification.event_id

    def _offered_odds(self, state: Snapshot, category: BetCategory, outcome: str, event_id: Optional[str]) -> float:
        """Return the price currently offered for ``outcome``.

        Parameters
        ----------
        state : Snapshot
            Snapshot the bet is placed against.
        category : BetCategory
            Wager family.
        outcome : str
            Backed outcome.
        event_id : str | None
            Action bet the wager refers to.

        Returns
        -------
        float
            Decimal odds for the wager.

        Raises
        ------
        ValueError
            When the outcome is not offered or the action bet is unknown or
            already resolved.
        """
        if category == BetCategory.FULL_MATCH:
            return state.match.odds.for_outcome(outcome)
        event = next((e for e in state.match.timeline if e.event_id == event_id), None)
        if event is None or not isinstance(event.payload, ActionBetPayload):
            raise ValueError(f"No action bet {event_id} on the timeline")
        for other in state.match.timeline:
            payload = other.payload
            if (
                other.event_type == EventType.RESOLUTION
                and isinstance(payload, ResolutionPayload)
                and payload.original_event_id == event_id
                and payload.resolved
            ):
                raise ValueError(f"Action bet {event_id} is already resolved")
        choice = event.payload.find_choice(outcome)
        if choice is None:
            raise ValueError(f"Outcome '{outcome}' is not offered by {event_id}")
        return choice.odds
