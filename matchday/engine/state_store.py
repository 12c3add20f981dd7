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
"""Validated, observable and recoverable store for the session snapshot.

All mutation of the snapshot goes through :meth:`StateStore.update`. A proposed
update is applied to a copy, checked against the validators registered for each
touched path, and either committed or discarded. Committed updates are diffed
against the previous snapshot and observers are told about every changed leaf;
an update that changes nothing is silent.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Deque, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from matchday.engine.config import GAME_CONFIG, GameConfig
from matchday.engine.errors import ObserverError, ValidationError
from matchday.engine.events import FeedEntry, MatchEvent
from matchday.models.bet import Bet, BetCategory, BetStatus
from matchday.models.snapshot import (
    BetBook,
    BetMemory,
    MatchPhase,
    MatchState,
    Odds,
    Snapshot,
    StateChange,
    StatePath,
    diff_snapshots,
    initial_snapshot,
)
from matchday.utils.debug import MatchDebugger

PathKey = Union[StatePath, str]
Observer = Callable[[Snapshot, Snapshot, Dict[str, StateChange]], None]
Validator = Callable[[Any], Optional[str]]

_SEQUENCE_PATHS = {
    StatePath.MATCH_TIMELINE,
    StatePath.MATCH_FEED,
    StatePath.BETS_FULL_MATCH,
    StatePath.BETS_ACTION,
}
_ODDS_PATHS = {StatePath.MATCH_ODDS, StatePath.MATCH_INITIAL_ODDS}
_BET_PATHS = {
    StatePath.BETS_FULL_MATCH: BetCategory.FULL_MATCH,
    StatePath.BETS_ACTION: BetCategory.ACTION,
}
_RECORD_TYPES = {
    StatePath.MATCH: MatchState,
    StatePath.BETS: BetBook,
    StatePath.BET_MEMORY: BetMemory,
}
_MEMORY_PATHS = {
    BetCategory.FULL_MATCH: StatePath.BET_MEMORY_FULL_MATCH,
    BetCategory.ACTION: StatePath.BET_MEMORY_OPPORTUNITY,
}


@dataclass(frozen=True, slots=True)
class UpdateResult:
    """Outcome of a store mutation.

    Parameters
    ----------
    success : bool
        ``True`` when the update was committed.
    error : ValidationError | None
        Reason the update was rejected.
    changes : Dict[str, StateChange]
        Leaves changed by a committed update; empty for silent updates.
    """

    success: bool
    error: Optional[ValidationError] = None
    changes: Dict[str, StateChange] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RecoveryInfo:
    """Summary of the store's rollback capacity.

    Parameters
    ----------
    history_size : int
        Snapshots currently held for rollback.
    history_capacity : int
        Maximum snapshots the history keeps.
    can_restore : bool
        Whether :meth:`StateStore.restore_previous_state` would succeed.
    state_valid : bool
        Whether the current snapshot passes every validator.
    """

    history_size: int
    history_capacity: int
    can_restore: bool
    state_valid: bool


def resolve_path(key: PathKey) -> StatePath:
    """Turn a path key into a :class:`StatePath`.

    Parameters
    ----------
    key : StatePath | str
        Enum member or its dotted string value.

    Returns
    -------
    StatePath
        Matching path member.

    Raises
    ------
    ValidationError
        If ``key`` does not name a known path.
    """
    if isinstance(key, StatePath):
        return key
    try:
        return StatePath(key)
    except ValueError:
        raise ValidationError(str(key), "unknown state path", key) from None


def _child_paths(parent: StatePath) -> List[StatePath]:
    """Return the paths nested directly or indirectly under ``parent``.

    Parameters
    ----------
    parent : StatePath
        Top-level path.

    Returns
    -------
    List[StatePath]
        Nested paths in declaration order.
    """
    prefix = parent.value + "."
    return [p for p in StatePath if p.value.startswith(prefix)]


def _is_number(value: Any) -> bool:
    """Return ``True`` for finite ints and floats, excluding booleans.

    Parameters
    ----------
    value : Any
        Candidate value.

    Returns
    -------
    bool
        Whether ``value`` is a usable number.
    """
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _non_negative_number(value: Any) -> Optional[str]:
    """Validate wallet-style amounts.

    Parameters
    ----------
    value : Any
        Candidate value.

    Returns
    -------
    Optional[str]
        Error message, or ``None`` when valid.
    """
    if not _is_number(value) or value < 0:
        return "must be a non-negative number"
    return None


def _positive_number(value: Any) -> Optional[str]:
    """Validate remembered stakes.

    Parameters
    ----------
    value : Any
        Candidate value.

    Returns
    -------
    Optional[str]
        Error message, or ``None`` when valid.
    """
    if not _is_number(value) or value <= 0:
        return "must be a positive number"
    return None


def _non_negative_int(value: Any) -> Optional[str]:
    """Validate scores.

    Parameters
    ----------
    value : Any
        Candidate value.

    Returns
    -------
    Optional[str]
        Error message, or ``None`` when valid.
    """
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        return "must be a non-negative integer"
    return None


def _valid_odds(value: Any) -> Optional[str]:
    """Validate an :class:`Odds` record; every price must exceed evens.

    Parameters
    ----------
    value : Any
        Candidate value.

    Returns
    -------
    Optional[str]
        Error message, or ``None`` when valid.
    """
    if not isinstance(value, Odds):
        return "must be an Odds record"
    if not all(_is_number(v) and v > 1 for v in value.as_tuple()):
        return "every odds value must be greater than 1"
    return None


def _valid_phase(value: Any) -> Optional[str]:
    """Validate the match phase.

    Parameters
    ----------
    value : Any
        Candidate value.

    Returns
    -------
    Optional[str]
        Error message, or ``None`` when valid.
    """
    if not isinstance(value, MatchPhase):
        return f"must be one of {[p.value for p in MatchPhase]}"
    return None


def _valid_timeline(value: Any) -> Optional[str]:
    """Validate timeline ordering and id uniqueness.

    Parameters
    ----------
    value : Any
        Candidate timeline.

    Returns
    -------
    Optional[str]
        Error message, or ``None`` when valid.
    """
    if not isinstance(value, tuple) or not all(isinstance(e, MatchEvent) for e in value):
        return "must be a tuple of MatchEvent"
    minutes = [e.scheduled_minute for e in value]
    if any(a > b for a, b in zip(minutes, minutes[1:])):
        return "must be sorted by scheduled minute"
    ids = [e.event_id for e in value]
    if len(ids) != len(set(ids)):
        return "event ids must be unique"
    return None


def _valid_feed(value: Any) -> Optional[str]:
    """Validate the commentary feed.

    Parameters
    ----------
    value : Any
        Candidate feed.

    Returns
    -------
    Optional[str]
        Error message, or ``None`` when valid.
    """
    if not isinstance(value, tuple) or not all(isinstance(e, FeedEntry) for e in value):
        return "must be a tuple of FeedEntry"
    return None


def _bet_list_validator(category: BetCategory) -> Validator:
    """Build a validator for one bet list.

    Parameters
    ----------
    category : BetCategory
        The only category the list may hold.

    Returns
    -------
    Validator
        Checks element type, category and bet id uniqueness.
    """

    def validate(value: Any) -> Optional[str]:
        if not isinstance(value, tuple) or not all(isinstance(b, Bet) for b in value):
            return "must be a tuple of Bet"
        if any(b.category != category for b in value):
            return f"may only hold {category.value} bets"
        ids = [b.bet_id for b in value]
        if len(ids) != len(set(ids)):
            return "bet ids must be unique"
        return None

    return validate


def default_validators(config: GameConfig = GAME_CONFIG) -> Dict[StatePath, Validator]:
    """Build the validators registered on every new store.

    Parameters
    ----------
    config : GameConfig
        Supplies the match duration bounding the simulated minute.

    Returns
    -------
    Dict[StatePath, Validator]
        Validator per exact path; each returns an error message or ``None``.
    """
    duration = config.simulation.match_duration

    def minute(value: Any) -> Optional[str]:
        if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= duration:
            return f"must be an integer between 0 and {duration}"
        return None

    return {
        StatePath.WALLET: _non_negative_number,
        StatePath.PHASE: _valid_phase,
        StatePath.MATCH_SIMULATED_MINUTE: minute,
        StatePath.MATCH_HOME_SCORE: _non_negative_int,
        StatePath.MATCH_AWAY_SCORE: _non_negative_int,
        StatePath.MATCH_ODDS: _valid_odds,
        StatePath.MATCH_INITIAL_ODDS: _valid_odds,
        StatePath.MATCH_TIMELINE: _valid_timeline,
        StatePath.MATCH_FEED: _valid_feed,
        StatePath.BETS_FULL_MATCH: _bet_list_validator(BetCategory.FULL_MATCH),
        StatePath.BETS_ACTION: _bet_list_validator(BetCategory.ACTION),
        StatePath.BET_MEMORY_FULL_MATCH: _positive_number,
        StatePath.BET_MEMORY_OPPORTUNITY: _positive_number,
    }


def sanitize_updates(updates: Mapping[PathKey, Any], config: GameConfig = GAME_CONFIG) -> Dict[StatePath, Any]:
    """Coerce update values into the ranges the default validators accept.

    Unknown paths and values that cannot be coerced are dropped.

    Parameters
    ----------
    updates : Mapping[StatePath | str, Any]
        Update mapping that failed validation.
    config : GameConfig
        Supplies the match duration and default bet memory.

    Returns
    -------
    Dict[StatePath, Any]
        Sanitised copy of ``updates``.
    """
    sanitized: Dict[StatePath, Any] = {}
    for key, value in updates.items():
        try:
            path = resolve_path(key)
        except ValidationError:
            continue
        if path.is_top_level and isinstance(value, Mapping):
            children = {f"{path.value}.{k}": v for k, v in value.items()}
            nested = sanitize_updates(children, config)
            if nested:
                sanitized[path] = {p.parts[-1]: v for p, v in nested.items()}
            continue
        try:
            sanitized[path] = _sanitize_value(path, value, config)
        except (TypeError, ValueError):
            continue
    return sanitized


def _sanitize_value(path: StatePath, value: Any, config: GameConfig) -> Any:
    """Clamp a single value into the range accepted at ``path``.

    Parameters
    ----------
    path : StatePath
        Exact path being written.
    value : Any
        Rejected value.
    config : GameConfig
        Supplies the match duration and default bet memory.

    Returns
    -------
    Any
        Coerced value; paths without a rule pass through unchanged.

    Raises
    ------
    TypeError, ValueError
        When ``value`` cannot be converted to a number.
    """
    if path == StatePath.WALLET:
        return max(0.0, float(value))
    if path == StatePath.MATCH_SIMULATED_MINUTE:
        return min(config.simulation.match_duration, max(0, int(value)))
    if path in (StatePath.MATCH_HOME_SCORE, StatePath.MATCH_AWAY_SCORE):
        return max(0, int(value))
    if path in (StatePath.BET_MEMORY_FULL_MATCH, StatePath.BET_MEMORY_OPPORTUNITY):
        amount = float(value)
        return amount if amount > 0 and math.isfinite(amount) else config.store.default_bet_memory
    return value


class StateStore:
    """Owner of the canonical session snapshot.

    Parameters
    ----------
    config : GameConfig, optional
        Seeds, capacities and bounds. Defaults to :data:`GAME_CONFIG`.
    debugger : MatchDebugger | None, optional
        Receives state-change and error lines.
    initial : Snapshot | None, optional
        Snapshot to start from instead of :func:`initial_snapshot`.
    """

    def __init__(
        self,
        config: GameConfig = GAME_CONFIG,
        debugger: Optional[MatchDebugger] = None,
        initial: Optional[Snapshot] = None,
    ) -> None:
        """Create a store holding the initial lobby snapshot.

        Parameters
        ----------
        config : GameConfig
            Store configuration.
        debugger : MatchDebugger | None
            Optional structured logger.
        initial : Snapshot | None
            Starting snapshot; built from ``config`` when omitted.
        """
        self.config = config
        self.debugger = debugger
        self._state: Snapshot = initial if initial is not None else initial_snapshot(config)
        self._history: Deque[Snapshot] = deque(maxlen=config.store.history_capacity)
        self._observers: List[Observer] = []
        self._validators: Dict[StatePath, Validator] = default_validators(config)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------
    def get(self) -> Snapshot:
        """Return the current snapshot.

        Returns
        -------
        Snapshot
            Immutable snapshot; updates never alter a returned instance.
        """
        return self._state

    def get_slice(self, path: PathKey) -> Any:
        """Return the value stored at ``path``.

        Parameters
        ----------
        path : StatePath | str
            Location to read.

        Returns
        -------
        Any
            Current value at the path.
        """
        return resolve_path(path).read(self._state)

    def get_bet_memory(self, kind: Union[BetCategory, str]) -> float:
        """Return the remembered stake for a wager family.

        Parameters
        ----------
        kind : BetCategory | str
            ``full_match`` or ``action`` (``"opportunity"`` is accepted too).

        Returns
        -------
        float
            Remembered stake, or the configured default for an unknown kind.
        """
        path = self._memory_path(kind)
        if path is None:
            return self.config.store.default_bet_memory
        return path.read(self._state)

    @property
    def history_size(self) -> int:
        """Return the number of snapshots available for rollback."""
        return len(self._history)

    # ------------------------------------------------------------------
    # Observers and validators
    # ------------------------------------------------------------------
    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """Register ``callback`` for every committed, non-empty change.

        Parameters
        ----------
        callback : Observer
            Called as ``callback(new_snapshot, old_snapshot, changes)``.

        Returns
        -------
        Callable[[], None]
            Function that removes the observer; safe to call more than once.
        """
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def register_validator(self, path: PathKey, validator: Validator) -> None:
        """Add or replace the validator for an exact path.

        Parameters
        ----------
        path : StatePath | str
            Path the validator guards.
        validator : Validator
            Returns an error message for invalid values, ``None`` otherwise.
        """
        self._validators[resolve_path(path)] = validator

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def update(self, updates: Mapping[PathKey, Any], *, allow_settlement: bool = False) -> UpdateResult:
        """Apply a partial update atomically.

        Keys are :class:`StatePath` members or their dotted values. A mapping
        given for a top-level record is shallow-merged into it; any other value
        replaces the value at its path.

        Parameters
        ----------
        updates : Mapping[StatePath | str, Any]
            Values to write.
        allow_settlement : bool
            Permit bet status changes. Only the settlement path sets this.

        Returns
        -------
        UpdateResult
            Committed changes, or the validation error that rejected the update.
        """
        old = self._state
        try:
            candidate, touched = self._apply(old, updates)
        except ValidationError as exc:
            return self._reject(exc)
        return self._try_commit(old, candidate, touched, allow_settlement)

    def safe_update(self, updates: Mapping[PathKey, Any], max_retries: Optional[int] = None) -> UpdateResult:
        """Update with sanitising retries and a safe-state fallback.

        Parameters
        ----------
        updates : Mapping[StatePath | str, Any]
            Values to write.
        max_retries : int | None
            Attempts before escalating; defaults to the configured budget.

        Returns
        -------
        UpdateResult
            The first successful result, or the last failure after the store
            has been reset to a safe state.
        """
        attempts = max_retries if max_retries is not None else self.config.store.max_update_retries
        current: Mapping[PathKey, Any] = updates
        result = UpdateResult(success=False)
        for attempt in range(1, attempts + 1):
            result = self.update(current)
            if result.success:
                return result
            self._log_error("VALIDATION", f"attempt {attempt}/{attempts} rejected: {result.error}")
            current = sanitize_updates(current, self.config)

        self._log_error("RECOVERY", "retry budget exhausted, resetting to safe state")
        self.reset_to_safe_state()
        return result

    def append_bet(self, bet: Bet) -> UpdateResult:
        """Add a pending bet to its category.

        Parameters
        ----------
        bet : Bet
            New wager; must be pending.

        Returns
        -------
        UpdateResult
            Outcome of the underlying update.
        """
        path = StatePath.BETS_FULL_MATCH if bet.category == BetCategory.FULL_MATCH else StatePath.BETS_ACTION
        return self.update({path: self._state.bets.for_category(bet.category) + (bet,)})

    def append_feed(self, entry: FeedEntry) -> UpdateResult:
        """Append a feed line, evicting the oldest beyond capacity.

        Parameters
        ----------
        entry : FeedEntry
            Line to add.

        Returns
        -------
        UpdateResult
            Outcome of the underlying update.
        """
        return self.update({StatePath.MATCH_FEED: self._state.match.feed + (entry,)})

    def update_bet_memory(self, kind: Union[BetCategory, str], amount: float) -> UpdateResult:
        """Remember the stake last used for a wager family.

        Parameters
        ----------
        kind : BetCategory | str
            ``full_match`` or ``action``.
        amount : float
            Stake to remember; must be positive.

        Returns
        -------
        UpdateResult
            Outcome of the underlying update.
        """
        path = self._memory_path(kind)
        if path is None:
            return self._reject(ValidationError("bet_memory", f"unknown bet kind {kind!r}", kind))
        return self.update({path: amount})

    def reset_match(
        self,
        home_team: str = "",
        away_team: str = "",
        odds: Optional[Odds] = None,
        phase: Optional[MatchPhase] = None,
    ) -> UpdateResult:
        """Discard match-scoped state and bets in one commit.

        Wallet and bet memory are kept. Observers receive a single notification.

        Parameters
        ----------
        home_team : str
            Home side for the new match.
        away_team : str
            Away side for the new match.
        odds : Odds | None
            Kick-off odds; the configured initial odds when omitted.
        phase : MatchPhase | None
            Phase to enter in the same commit; unchanged when omitted.

        Returns
        -------
        UpdateResult
            Outcome of the reset.
        """
        old = self._state
        kickoff = odds if odds is not None else Odds.from_tuple(self.config.odds.initial_odds)
        candidate = replace(
            old,
            phase=phase if phase is not None else old.phase,
            match=MatchState(odds=kickoff, initial_odds=kickoff, home_team=home_team, away_team=away_team),
            bets=BetBook(),
        )
        touched = {StatePath.PHASE, StatePath.MATCH, StatePath.BETS}
        touched.update(_child_paths(StatePath.MATCH))
        touched.update(_child_paths(StatePath.BETS))
        return self._try_commit(old, candidate, touched, allow_settlement=True)

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------
    def restore_previous_state(self) -> bool:
        """Roll back to the most recent snapshot in the history.

        Returns
        -------
        bool
            ``False`` when the history is empty.
        """
        if not self._history:
            return False
        old = self._state
        self._state = self._history.pop()
        self._notify(self._state, old, diff_snapshots(old, self._state))
        return True

    def reset_to_safe_state(self) -> Snapshot:
        """Rebuild the initial snapshot while keeping wallet and bet memory.

        Returns
        -------
        Snapshot
            The new current snapshot.
        """
        old = self._state
        fresh = initial_snapshot(self.config)
        wallet = old.wallet if _non_negative_number(old.wallet) is None else fresh.wallet
        memory = old.bet_memory
        if _positive_number(memory.full_match) or _positive_number(memory.opportunity):
            memory = fresh.bet_memory
        safe = replace(fresh, wallet=wallet, bet_memory=memory)
        self._history.append(old)
        self._state = safe
        self._notify(safe, old, diff_snapshots(old, safe))
        return safe

    def is_state_valid(self) -> bool:
        """Check the current snapshot against every registered validator.

        Returns
        -------
        bool
            ``True`` when no validator reports an error.
        """
        return all(validator(path.read(self._state)) is None for path, validator in self._validators.items())

    def recovery_info(self) -> RecoveryInfo:
        """Describe how much rollback history is available.

        Returns
        -------
        RecoveryInfo
            History size, capacity and validity of the current snapshot.
        """
        return RecoveryInfo(
            history_size=len(self._history),
            history_capacity=self.config.store.history_capacity,
            can_restore=bool(self._history),
            state_valid=self.is_state_valid(),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _apply(self, state: Snapshot, updates: Mapping[PathKey, Any]) -> Tuple[Snapshot, Set[StatePath]]:
        """Write ``updates`` into ``state`` without validating.

        Parameters
        ----------
        state : Snapshot
            Snapshot to build on.
        updates : Mapping[StatePath | str, Any]
            Requested writes; top-level mappings are shallow-merged.

        Returns
        -------
        Tuple[Snapshot, Set[StatePath]]
            Candidate snapshot and every path whose validator must run.

        Raises
        ------
        ValidationError
            For unknown paths or whole-record writes of the wrong type.
        """
        touched: Set[StatePath] = set()
        for key, value in updates.items():
            path = resolve_path(key)
            if path.is_top_level and isinstance(value, Mapping):
                touched.add(path)
                for name, child_value in value.items():
                    child = resolve_path(f"{path.value}.{name}")
                    state = child.write(state, self._coerce(child, child_value))
                    touched.add(child)
                continue
            record_type = _RECORD_TYPES.get(path)
            if record_type is not None:
                if not isinstance(value, record_type):
                    raise ValidationError(path.value, f"must be a {record_type.__name__} or a mapping", value)
                touched.update(_child_paths(path))
            state = path.write(state, self._coerce(path, value))
            touched.add(path)
        return state, touched

    def _coerce(self, path: StatePath, value: Any) -> Any:
        """Normalise a value before it is written at ``path``.

        Lists become tuples, the feed is trimmed to capacity, odds mappings
        become :class:`Odds` and phase strings become :class:`MatchPhase`.

        Parameters
        ----------
        path : StatePath
            Exact path being written.
        value : Any
            Raw value from the caller.

        Returns
        -------
        Any
            Normalised value, still subject to validation.
        """
        if path in _SEQUENCE_PATHS and isinstance(value, list):
            value = tuple(value)
        if path == StatePath.MATCH_FEED and isinstance(value, tuple):
            value = value[-self.config.store.feed_capacity:]
        if path in _ODDS_PATHS and isinstance(value, Mapping):
            try:
                value = Odds(**value)
            except TypeError:
                raise ValidationError(path.value, "odds need home, draw and away", value) from None
        if path == StatePath.PHASE and isinstance(value, str) and not isinstance(value, MatchPhase):
            try:
                value = MatchPhase(value)
            except ValueError:
                pass
        return value

    def _validate(self, old: Snapshot, new: Snapshot, touched: Iterable[StatePath], allow_settlement: bool) -> None:
        """Run the validators for every touched path.

        Parameters
        ----------
        old : Snapshot
            Current snapshot, used by the bet-status guard.
        new : Snapshot
            Candidate snapshot.
        touched : Iterable[StatePath]
            Paths written by the update.
        allow_settlement : bool
            Skip the bet-status guard for resolution commits.

        Raises
        ------
        ValidationError
            On the first failing path.
        """
        for path in sorted(touched, key=lambda p: p.value):
            validator = self._validators.get(path)
            if validator is None:
                continue
            value = path.read(new)
            message = validator(value)
            if message is not None:
                raise ValidationError(path.value, message, value)
            if path in _BET_PATHS and not allow_settlement:
                self._guard_bet_status(path, path.read(old), value)

    @staticmethod
    def _guard_bet_status(path: StatePath, before: Tuple[Bet, ...], after: Tuple[Bet, ...]) -> None:
        """Refuse status changes outside resolution.

        Parameters
        ----------
        path : StatePath
            Bet list being written.
        before : Tuple[Bet, ...]
            Bets currently stored.
        after : Tuple[Bet, ...]
            Bets in the candidate snapshot.

        Raises
        ------
        ValidationError
            When a new bet is not pending or an existing bet changed status.
        """
        previous = {b.bet_id: b for b in before}
        for bet in after:
            prior = previous.get(bet.bet_id)
            if prior is None:
                if bet.status != BetStatus.PENDING:
                    raise ValidationError(path.value, f"new bet {bet.bet_id} must be pending", bet)
            elif prior.status != bet.status or prior.resolved_at_minute != bet.resolved_at_minute:
                raise ValidationError(path.value, f"bet {bet.bet_id} can only be settled by resolution", bet)

    def _try_commit(
        self,
        old: Snapshot,
        candidate: Snapshot,
        touched: Iterable[StatePath],
        allow_settlement: bool,
    ) -> UpdateResult:
        """Validate ``candidate`` and make it current if anything changed.

        History only grows on a real commit; rejected and empty updates leave
        the rollback depth untouched.

        Parameters
        ----------
        old : Snapshot
            Current snapshot.
        candidate : Snapshot
            Snapshot produced by :meth:`_apply`.
        touched : Iterable[StatePath]
            Paths written by the update.
        allow_settlement : bool
            Permit bet status changes.

        Returns
        -------
        UpdateResult
            Commit outcome with the diff of a successful commit.
        """
        try:
            self._validate(old, candidate, touched, allow_settlement)
        except ValidationError as exc:
            return self._reject(exc)

        changes = diff_snapshots(old, candidate)
        if not changes:
            return UpdateResult(success=True)

        self._history.append(old)
        self._state = candidate
        if self.debugger is not None:
            self.debugger.log_state_change(changes.keys())
        self._notify(candidate, old, changes)
        return UpdateResult(success=True, changes=changes)

    def _reject(self, error: ValidationError) -> UpdateResult:
        """Log ``error`` and wrap it in a failed result.

        Parameters
        ----------
        error : ValidationError
            Reason for the rejection.

        Returns
        -------
        UpdateResult
            Unsuccessful result carrying ``error``.
        """
        self._log_error("VALIDATION", str(error))
        return UpdateResult(success=False, error=error)

    def _notify(self, new: Snapshot, old: Snapshot, changes: Dict[str, StateChange]) -> None:
        """Call every observer, isolating and logging their failures.

        Parameters
        ----------
        new : Snapshot
            Snapshot after the commit.
        old : Snapshot
            Snapshot before the commit.
        changes : Dict[str, StateChange]
            Diff between ``old`` and ``new``; nothing is sent when empty.
        """
        if not changes:
            return
        for callback in list(self._observers):
            try:
                callback(new, old, changes)
            except Exception as exc:
                error = ObserverError(getattr(callback, "__name__", repr(callback)), exc)
                self._log_error("OBSERVER", str(error))

    def _memory_path(self, kind: Union[BetCategory, str]) -> Optional[StatePath]:
        """Map a bet kind to its bet-memory path.

        Parameters
        ----------
        kind : BetCategory | str
            Bet category or ``"opportunity"``.

        Returns
        -------
        Optional[StatePath]
            Memory path, or ``None`` for unknown kinds.
        """
        if kind == "opportunity":
            return StatePath.BET_MEMORY_OPPORTUNITY
        try:
            return _MEMORY_PATHS[BetCategory(kind)]
        except ValueError:
            return None

    def _log_error(self, error_type: str, description: str) -> None:
        """Forward an error line to the debugger when one is attached.

        Parameters
        ----------
        error_type : str
            Error category such as ``"VALIDATION"``.
        description : str
            Human-readable details.
        """
        if self.debugger is not None:
            self.debugger.log_error(error_type, description)
