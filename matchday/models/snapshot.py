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
"""Immutable snapshot schema, typed state paths and structural diffing.

Every record in the snapshot is a frozen dataclass and every sequence is a
tuple, so a snapshot handed out by the store cannot be altered by its reader.
Updates produce new records through :func:`dataclasses.replace`; the store
addresses fields through :class:`StatePath` rather than free-form strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from matchday.engine.config import GAME_CONFIG, GameConfig
from matchday.engine.events import FeedEntry, MatchEvent
from matchday.models.bet import Bet, BetCategory


class MatchPhase(str, Enum):
    """Lifecycle states of a match session."""

    LOBBY = "lobby"
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


@dataclass(frozen=True, slots=True)
class Odds:
    """Decimal odds for the three full-match outcomes.

    Parameters
    ----------
    home : float
        Odds on a home win.
    draw : float
        Odds on a draw.
    away : float
        Odds on an away win.
    """

    home: float
    draw: float
    away: float

    @classmethod
    def from_tuple(cls, values: Tuple[float, float, float]) -> "Odds":
        """Build odds from a ``(home, draw, away)`` triple.

        Parameters
        ----------
        values : Tuple[float, float, float]
            Home, draw and away odds in that order.

        Returns
        -------
        Odds
            New odds record.
        """
        home, draw, away = values
        return cls(home=home, draw=draw, away=away)

    def as_tuple(self) -> Tuple[float, float, float]:
        """Return the odds as a ``(home, draw, away)`` triple.

        Returns
        -------
        Tuple[float, float, float]
            Home, draw and away odds.
        """
        return (self.home, self.draw, self.away)

    def for_outcome(self, outcome: str) -> float:
        """Look up the odds for a full-match outcome key.

        Parameters
        ----------
        outcome : str
            ``"home"``, ``"draw"`` or ``"away"``.

        Returns
        -------
        float
            Odds offered for that outcome.
        """
        if outcome not in {"home", "draw", "away"}:
            raise ValueError(f"Unknown full-match outcome: {outcome}")
        return getattr(self, outcome)


def _default_odds() -> Odds:
    """Build the configured kick-off odds.

    Returns
    -------
    Odds
        Odds from ``GAME_CONFIG.odds.initial_odds``.
    """
    return Odds.from_tuple(GAME_CONFIG.odds.initial_odds)


@dataclass(frozen=True, slots=True)
class MatchState:
    """Match-scoped portion of the snapshot; discarded on every match reset.

    Parameters
    ----------
    simulated_minute : int
        Current simulated minute (0-90).
    home_score : int
        Goals scored by the home side.
    away_score : int
        Goals scored by the away side.
    odds : Odds
        Current full-match odds.
    initial_odds : Odds
        Odds at kick-off, the base for goal-driven recalculation.
    home_team : str
        Home side name chosen in the lobby.
    away_team : str
        Away side name chosen in the lobby.
    timeline : Tuple[MatchEvent, ...]
        Scheduled events sorted by minute.
    feed : Tuple[FeedEntry, ...]
        Most recent feed lines, oldest first.
    """

    simulated_minute: int = 0
    home_score: int = 0
    away_score: int = 0
    odds: Odds = field(default_factory=_default_odds)
    initial_odds: Odds = field(default_factory=_default_odds)
    home_team: str = ""
    away_team: str = ""
    timeline: Tuple[MatchEvent, ...] = ()
    feed: Tuple[FeedEntry, ...] = ()

    @property
    def score_line(self) -> str:
        """Return the running score formatted as ``"home-away"``."""
        return f"{self.home_score}-{self.away_score}"


@dataclass(frozen=True, slots=True)
class BetBook:
    """Wagers placed during the current match, grouped by category.

    Parameters
    ----------
    full_match : Tuple[Bet, ...]
        Bets on the final result.
    action : Tuple[Bet, ...]
        Bets on action bet opportunities.
    """

    full_match: Tuple[Bet, ...] = ()
    action: Tuple[Bet, ...] = ()

    def for_category(self, category: BetCategory) -> Tuple[Bet, ...]:
        """Return the bets held for ``category``.

        Parameters
        ----------
        category : BetCategory
            Wager family to read.

        Returns
        -------
        Tuple[Bet, ...]
            Bets in placement order.
        """
        return self.full_match if category == BetCategory.FULL_MATCH else self.action

    def all_bets(self) -> Tuple[Bet, ...]:
        """Return every bet, full-match bets first.

        Returns
        -------
        Tuple[Bet, ...]
            Combined bets.
        """
        return self.full_match + self.action


@dataclass(frozen=True, slots=True)
class BetMemory:
    """Last stake used per wager family; survives match resets.

    Parameters
    ----------
    full_match : float
        Stake last used on a full-match bet.
    opportunity : float
        Stake last used on an action bet.
    """

    full_match: float = GAME_CONFIG.store.default_bet_memory
    opportunity: float = GAME_CONFIG.store.default_bet_memory


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Complete session state at one point in time.

    Parameters
    ----------
    wallet : float
        User balance; never negative.
    phase : MatchPhase
        Current lifecycle phase.
    match : MatchState
        Match-scoped state.
    bets : BetBook
        Wagers for the current match.
    bet_memory : BetMemory
        Remembered stakes.
    """

    wallet: float
    phase: MatchPhase = MatchPhase.LOBBY
    match: MatchState = field(default_factory=MatchState)
    bets: BetBook = field(default_factory=BetBook)
    bet_memory: BetMemory = field(default_factory=BetMemory)


def initial_snapshot(config: GameConfig = GAME_CONFIG) -> Snapshot:
    """Build the snapshot a new session starts from.

    Parameters
    ----------
    config : GameConfig
        Configuration providing the seeded wallet, bet memory and odds.

    Returns
    -------
    Snapshot
        Lobby-phase snapshot with no bets.
    """
    odds = Odds.from_tuple(config.odds.initial_odds)
    memory = config.store.default_bet_memory
    return Snapshot(
        wallet=config.store.initial_wallet,
        phase=MatchPhase.LOBBY,
        match=MatchState(odds=odds, initial_odds=odds),
        bets=BetBook(),
        bet_memory=BetMemory(full_match=memory, opportunity=memory),
    )


class StatePath(str, Enum):
    """Addressable locations inside a :class:`Snapshot`.

    Values are the dotted field paths; the store only accepts keys that name a
    member of this enum, so a misspelt path is rejected up front.
    """

    WALLET = "wallet"
    PHASE = "phase"
    MATCH = "match"
    MATCH_SIMULATED_MINUTE = "match.simulated_minute"
    MATCH_HOME_SCORE = "match.home_score"
    MATCH_AWAY_SCORE = "match.away_score"
    MATCH_ODDS = "match.odds"
    MATCH_INITIAL_ODDS = "match.initial_odds"
    MATCH_HOME_TEAM = "match.home_team"
    MATCH_AWAY_TEAM = "match.away_team"
    MATCH_TIMELINE = "match.timeline"
    MATCH_FEED = "match.feed"
    BETS = "bets"
    BETS_FULL_MATCH = "bets.full_match"
    BETS_ACTION = "bets.action"
    BET_MEMORY = "bet_memory"
    BET_MEMORY_FULL_MATCH = "bet_memory.full_match"
    BET_MEMORY_OPPORTUNITY = "bet_memory.opportunity"

    @property
    def parts(self) -> Tuple[str, ...]:
        """Return the attribute names leading to this location."""
        return tuple(self.value.split("."))

    @property
    def is_top_level(self) -> bool:
        """Return ``True`` for direct fields of the snapshot."""
        return "." not in self.value

    def read(self, snapshot: Snapshot) -> Any:
        """Return the value stored at this path.

        Parameters
        ----------
        snapshot : Snapshot
            Snapshot to read from.

        Returns
        -------
        Any
            Value found at the path.
        """
        value: Any = snapshot
        for name in self.parts:
            value = getattr(value, name)
        return value

    def write(self, snapshot: Snapshot, value: Any) -> Snapshot:
        """Return a copy of ``snapshot`` with ``value`` stored at this path.

        Parameters
        ----------
        snapshot : Snapshot
            Snapshot to copy.
        value : Any
            New value for the path.

        Returns
        -------
        Snapshot
            Updated copy; ``snapshot`` itself is untouched.
        """
        return _replace_at(snapshot, self.parts, value)


def _replace_at(record: Any, parts: Tuple[str, ...], value: Any) -> Any:
    """Rebuild ``record`` with the field at ``parts`` set to ``value``.

    Parameters
    ----------
    record : Any
        Frozen dataclass to copy.
    parts : Tuple[str, ...]
        Field names from ``record`` down to the leaf.
    value : Any
        New leaf value.

    Returns
    -------
    Any
        Copy of ``record``; every record along the path is replaced.
    """
    head, rest = parts[0], parts[1:]
    if not rest:
        return replace(record, **{head: value})
    return replace(record, **{head: _replace_at(getattr(record, head), rest, value)})


@dataclass(frozen=True, slots=True)
class StateChange:
    """Before and after values of a single changed leaf.

    Parameters
    ----------
    before : Any
        Value in the older snapshot.
    after : Any
        Value in the newer snapshot.
    """

    before: Any
    after: Any


def _is_record(value: Any) -> bool:
    """Return ``True`` for dataclass instances.

    Parameters
    ----------
    value : Any
        Field value.

    Returns
    -------
    bool
        Whether ``diff_snapshots`` may recurse into ``value``.
    """
    return is_dataclass(value) and not isinstance(value, type)


def diff_snapshots(old: Any, new: Any, prefix: Optional[str] = None) -> Dict[str, StateChange]:
    """Compute path-qualified leaf changes between two snapshot records.

    Recursion only happens when both sides of a field are records of the same
    type; tuples and scalars are compared as whole values.

    Parameters
    ----------
    old : Any
        Older record, usually a :class:`Snapshot`.
    new : Any
        Newer record of the same type.
    prefix : str | None, optional
        Dotted path of ``old``/``new`` inside the enclosing snapshot.

    Returns
    -------
    Dict[str, StateChange]
        Mapping from dotted path to the change at that leaf. Empty when nothing
        differs.
    """
    changes: Dict[str, StateChange] = {}
    for f in fields(new):
        path = f"{prefix}.{f.name}" if prefix else f.name
        before = getattr(old, f.name)
        after = getattr(new, f.name)
        if _is_record(before) and _is_record(after) and type(before) is type(after):
            changes.update(diff_snapshots(before, after, path))
        elif before != after:
            changes[path] = StateChange(before=before, after=after)
    return changes
