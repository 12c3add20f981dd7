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
"""Event domain models for the match timeline."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple, Union


class EventType(str, Enum):
    """Tags for every event that can appear on a timeline."""

    KICK_OFF = "KICK_OFF"
    GOAL = "GOAL"
    COMMENTARY = "COMMENTARY"
    ACTION_BET = "ACTION_BET"
    RESOLUTION = "RESOLUTION"


@dataclass(frozen=True, slots=True)
class Choice:
    """One selectable outcome of an action bet.

    Parameters
    ----------
    outcome : str
        Machine-readable outcome key, for example ``"goal"``.
    odds : float
        Decimal odds offered for the outcome; must exceed 1.
    description : str, optional
        Human-readable label shown when the outcome wins.
    """

    outcome: str
    odds: float
    description: str = ""

    def __post_init__(self) -> None:
        """Reject odds that would not pay out more than the stake."""
        if self.odds <= 1:
            raise ValueError(f"Choice '{self.outcome}' odds must be greater than 1")


@dataclass(frozen=True, slots=True)
class KickOffPayload:
    """Payload attached to the opening whistle.

    Parameters
    ----------
    home_team : str
        Name of the home side.
    away_team : str
        Name of the away side.
    """

    home_team: str = ""
    away_team: str = ""


@dataclass(frozen=True, slots=True)
class GoalPayload:
    """Payload describing who scored.

    Parameters
    ----------
    team : str
        Scoring side, ``"home"`` or ``"away"``.
    player : str
        Name of the scorer.
    goal_type : str, optional
        Finish style such as ``"header"``.
    """

    team: str
    player: str
    goal_type: str = ""

    def __post_init__(self) -> None:
        """Only the two sides can score."""
        if self.team not in {"home", "away"}:
            raise ValueError("team must be either 'home' or 'away'")


@dataclass(frozen=True, slots=True)
class CommentaryPayload:
    """Payload for atmosphere-only commentary.

    Parameters
    ----------
    category : str
        Commentary theme such as ``"crowd"``.
    intensity : str, optional
        Rough excitement level (``"low"``, ``"medium"`` or ``"high"``).
    """

    category: str
    intensity: str = "low"


@dataclass(frozen=True, slots=True)
class ActionBetPayload:
    """Payload for a timed wagering opportunity.

    Parameters
    ----------
    category : str
        Situation label such as ``"corner"``.
    choices : Tuple[Choice, ...]
        Outcomes the user may back; at least one is required.
    """

    category: str
    choices: Tuple[Choice, ...]

    def __post_init__(self) -> None:
        """An opportunity without choices could never be resolved."""
        if not self.choices:
            raise ValueError("Action bet requires at least one choice")

    def find_choice(self, outcome: str) -> Optional[Choice]:
        """Return the choice matching ``outcome`` if the opportunity offers it.

        Parameters
        ----------
        outcome : str
            Outcome key to look up.

        Returns
        -------
        Optional[Choice]
            Matching choice, or ``None`` when the outcome is not on offer.
        """
        return next((c for c in self.choices if c.outcome == outcome), None)


@dataclass(frozen=True, slots=True)
class ResolutionPayload:
    """Payload linking a resolution back to the action bet it settles.

    Parameters
    ----------
    original_event_id : str
        Identifier of the originating ``ACTION_BET`` event.
    original_event : MatchEvent | None, optional
        Copy of the originating event for listeners that need its choices.
    resolved : bool, optional
        Whether a winning outcome has been chosen.
    winning_outcome : str | None, optional
        Outcome key of the winning choice once resolved.
    forced : bool, optional
        ``True`` when the outcome was supplied through ``force_resolution``.
    """

    original_event_id: str
    original_event: Optional["MatchEvent"] = None
    resolved: bool = False
    winning_outcome: Optional[str] = None
    forced: bool = False


EventPayload = Union[KickOffPayload, GoalPayload, CommentaryPayload, ActionBetPayload, ResolutionPayload]


@dataclass(frozen=True, slots=True)
class MatchEvent:
    """A single scheduled moment on the match timeline.

    Parameters
    ----------
    event_id : str
        Identifier unique within the timeline.
    event_type : EventType
        Tag selecting the handler that processes the event.
    scheduled_minute : int
        Simulated minute (0-90) at which the event becomes due.
    description : str
        Human-readable summary shown in the feed.
    payload : EventPayload | None, optional
        Type-specific data.
    """

    event_id: str
    event_type: EventType
    scheduled_minute: int
    description: str
    payload: Optional[EventPayload] = None

    def at_minute(self, minute: int) -> "MatchEvent":
        """Return a copy of the event rescheduled to ``minute``.

        Parameters
        ----------
        minute : int
            New scheduled minute.

        Returns
        -------
        MatchEvent
            Copy of this event with ``scheduled_minute`` replaced.
        """
        return replace(self, scheduled_minute=minute)


@dataclass(frozen=True, slots=True)
class FeedEntry:
    """Line of the live match feed.

    Parameters
    ----------
    event_id : str
        Identifier of the event that produced the line.
    minute : int
        Simulated minute the line refers to.
    event_type : EventType
        Type of the producing event.
    description : str
        Text shown to the user.
    is_betting_opportunity : bool, optional
        Flags lines announcing an action bet.
    score : str | None, optional
        Running score (``"home-away"``) for goal lines.
    winning_outcome : str | None, optional
        Winning outcome for resolution lines.
    """

    event_id: str
    minute: int
    event_type: EventType
    description: str
    is_betting_opportunity: bool = False
    score: Optional[str] = None
    winning_outcome: Optional[str] = None
