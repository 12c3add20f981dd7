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
"""Typed outbound notifications and the hub that fans them out.

Each notification kind is its own frozen dataclass; listeners subscribe to a
kind and receive only instances of it. Fan-out is synchronous and follows
registration order. A listener that raises is logged and skipped; the remaining
listeners still receive the notification and the emitter never sees the error.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, DefaultDict, List, Optional, Tuple, Type, TypeVar

from matchday.engine.errors import ObserverError
from matchday.engine.events import Choice, MatchEvent
from matchday.models.bet import Bet
from matchday.models.snapshot import Odds
from matchday.utils.debug import MatchDebugger

if TYPE_CHECKING:
    from matchday.models.snapshot import Snapshot


@dataclass(frozen=True, slots=True)
class GoalScored:
    """A goal changed the score and the odds.

    Parameters
    ----------
    team : str
        Scoring side, ``"home"`` or ``"away"``.
    player : str
        Scorer name.
    previous_score : Tuple[int, int]
        Home and away goals before the goal.
    new_score : Tuple[int, int]
        Home and away goals after the goal.
    previous_odds : Odds
        Odds before recalculation.
    new_odds : Odds
        Odds after recalculation.
    minute : int
        Simulated minute of the goal.
    goal_type : str
        Finish style.
    """

    team: str
    player: str
    previous_score: Tuple[int, int]
    new_score: Tuple[int, int]
    previous_odds: Odds
    new_odds: Odds
    minute: int
    goal_type: str = ""


@dataclass(frozen=True, slots=True)
class ActionBettingOpportunity:
    """An action bet opened and is waiting for wagers.

    Parameters
    ----------
    event_id : str
        Identifier of the ``ACTION_BET`` event.
    description : str
        Situation text.
    choices : Tuple[Choice, ...]
        Outcomes on offer.
    minute : int
        Simulated minute the opportunity opened.
    event : MatchEvent
        The originating event.
    """

    event_id: str
    description: str
    choices: Tuple[Choice, ...]
    minute: int
    event: MatchEvent


@dataclass(frozen=True, slots=True)
class ActionBetResolved:
    """An action bet was settled.

    Parameters
    ----------
    event_id : str
        Identifier of the originating ``ACTION_BET`` event.
    winning_outcome : str
        Outcome key of the winning choice.
    original_event : MatchEvent
        The originating event.
    winning_choice : Choice
        Full winning choice including its odds.
    forced : bool
        ``True`` when the outcome was supplied rather than drawn.
    settled_bets : Tuple[Bet, ...]
        Action bets settled by this resolution.
    """

    event_id: str
    winning_outcome: str
    original_event: MatchEvent
    winning_choice: Choice
    forced: bool = False
    settled_bets: Tuple[Bet, ...] = ()


@dataclass(frozen=True, slots=True)
class CommentaryPosted:
    """Atmosphere commentary was added to the feed.

    Parameters
    ----------
    description : str
        Commentary text.
    minute : int
        Simulated minute.
    category : str
        Commentary theme.
    intensity : str
        Excitement level.
    """

    description: str
    minute: int
    category: str
    intensity: str = "low"


@dataclass(frozen=True, slots=True)
class MatchPaused:
    """The match clock was frozen.

    Parameters
    ----------
    minute : int
        Simulated minute at which play paused.
    reason : str
        Trigger, for example ``"action_bet"``.
    event_id : str | None
        Action bet that opened the window, if any.
    """

    minute: int
    reason: str = ""
    event_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class MatchResumed:
    """The match clock is running again.

    Parameters
    ----------
    minute : int
        Simulated minute at which play resumed.
    reason : str
        Trigger, for example ``"bet_placed"`` or ``"timeout"``.
    """

    minute: int
    reason: str = ""


@dataclass(frozen=True, slots=True)
class MatchEnd:
    """The match reached full time.

    Parameters
    ----------
    outcome : str
        ``"home"``, ``"draw"`` or ``"away"``.
    final_state : Snapshot
        Snapshot after full-match bets were settled.
    settled_bets : Tuple[Bet, ...]
        Full-match bets settled at the whistle.
    """

    outcome: str
    final_state: "Snapshot"
    settled_bets: Tuple[Bet, ...] = ()


N = TypeVar("N")


class NotificationHub:
    """Registry of typed listeners keyed by notification class.

    Parameters
    ----------
    debugger : MatchDebugger | None, optional
        Receives an ``ERROR`` line whenever a listener raises.
    """

    def __init__(self, debugger: Optional[MatchDebugger] = None) -> None:
        """Create an empty hub.

        Parameters
        ----------
        debugger : MatchDebugger | None
            Debugger used to report failing listeners.
        """
        self.debugger = debugger
        self._listeners: DefaultDict[type, List[Callable[[object], None]]] = defaultdict(list)
        self.failures: List[ObserverError] = []

    def subscribe(self, kind: Type[N], listener: Callable[[N], None]) -> Callable[[], None]:
        """Register ``listener`` for notifications of type ``kind``.

        Parameters
        ----------
        kind : Type[N]
            Notification class to listen for.
        listener : Callable[[N], None]
            Callback receiving each notification.

        Returns
        -------
        Callable[[], None]
            Function that removes the listener; calling it twice is harmless.
        """
        self._listeners[kind].append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(kind, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def listener_count(self, kind: type) -> int:
        """Return how many listeners are registered for ``kind``.

        Parameters
        ----------
        kind : type
            Notification class.

        Returns
        -------
        int
            Number of registered listeners.
        """
        return len(self._listeners.get(kind, []))

    def emit(self, notification: object) -> int:
        """Deliver ``notification`` to every listener registered for its type.

        Parameters
        ----------
        notification : object
            Notification instance.

        Returns
        -------
        int
            Number of listeners that handled the notification without raising.
        """
        delivered = 0
        for listener in list(self._listeners.get(type(notification), [])):
            try:
                listener(notification)
            except Exception as exc:
                error = ObserverError(getattr(listener, "__name__", repr(listener)), exc)
                self.failures.append(error)
                if self.debugger is not None:
                    self.debugger.log_error("LISTENER", str(error))
                continue
            delivered += 1
        return delivered
