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
"""Timeline generation, ordered insertion and exactly-once event delivery.

The scheduler keeps a single cursor into ``match.timeline``. Every event before
the cursor has been delivered; every event at or after it has not. The cursor
only moves forward, and insertions are never allowed to land behind it, so an
event is delivered exactly once regardless of how many share a minute.
"""

from __future__ import annotations

import random
from bisect import bisect_right
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from matchday.engine.config import GAME_CONFIG, GameConfig
from matchday.engine.errors import SchedulingInvariantViolation
from matchday.engine.events import (
    ActionBetPayload,
    Choice,
    CommentaryPayload,
    EventType,
    FeedEntry,
    GoalPayload,
    MatchEvent,
    ResolutionPayload,
)
from matchday.engine.notifications import (
    ActionBetResolved,
    ActionBettingOpportunity,
    CommentaryPosted,
    GoalScored,
    NotificationHub,
)
from matchday.engine.odds import calculate_odds
from matchday.engine.state_store import StateStore
from matchday.models.bet import Bet
from matchday.models.snapshot import StatePath
from matchday.utils.debug import MatchDebugger
from matchday.utils.generator import generate_match_timeline


@dataclass(frozen=True, slots=True)
class ResolutionOutcome:
    """Result of settling one action bet.

    Parameters
    ----------
    event_id : str
        Identifier of the originating ``ACTION_BET`` event.
    winning_outcome : str
        Outcome key of the winning choice.
    winning_choice : Choice
        Winning choice including its odds.
    original_event : MatchEvent
        The originating event.
    forced : bool
        ``True`` when the outcome was supplied instead of drawn.
    settled_bets : Tuple[Bet, ...]
        Action bets settled by the resolution.
    """

    event_id: str
    winning_outcome: str
    winning_choice: Choice
    original_event: MatchEvent
    forced: bool = False
    settled_bets: Tuple[Bet, ...] = ()


@dataclass(frozen=True, slots=True)
class ForcedResolutionResult:
    """Outcome of :meth:`TimelineScheduler.force_resolution`.

    Parameters
    ----------
    success : bool
        ``True`` when the action bet was resolved.
    event_id : str
        Action bet that was targeted.
    outcome : ResolutionOutcome | None
        Resolution details on success.
    error : str | None
        Reason for failure.
    """

    success: bool
    event_id: str
    outcome: Optional[ResolutionOutcome] = None
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ResolutionStatistics:
    """Counts describing how many action bets have been resolved.

    Parameters
    ----------
    total_action_bets : int
        ``ACTION_BET`` events on the timeline.
    total_resolutions : int
        ``RESOLUTION`` events on the timeline.
    resolved_count : int
        Resolution events already settled.
    pending_count : int
        Resolution events still waiting.
    resolution_rate : str
        Resolved share of action bets as a percentage with one decimal place.
    """

    total_action_bets: int
    total_resolutions: int
    resolved_count: int
    pending_count: int
    resolution_rate: str


def resolution_id_for(event_id: str) -> str:
    """Return the identifier of the resolution paired with ``event_id``.

    Parameters
    ----------
    event_id : str
        Identifier of an ``ACTION_BET`` event.

    Returns
    -------
    str
        Identifier of its ``RESOLUTION`` event.
    """
    return f"resolution_{event_id}"


def _minute_key(event: MatchEvent) -> int:
    """Sort key for timeline insertion.

    Parameters
    ----------
    event : MatchEvent
        Timeline entry.

    Returns
    -------
    int
        The event's scheduled minute.
    """
    return event.scheduled_minute


class TimelineScheduler:
    """Generates the match timeline and delivers due events to their handlers.

    Parameters
    ----------
    store : StateStore
        Store holding ``match.timeline`` and the rest of the snapshot.
    hub : NotificationHub | None, optional
        Receives outbound notifications; a private hub is created when omitted.
    config : GameConfig, optional
        Timeline, odds and strictness settings.
    rng : random.Random | None, optional
        Random source for generation and resolution draws.
    debugger : MatchDebugger | None, optional
        Structured logger.
    """

    def __init__(
        self,
        store: StateStore,
        hub: Optional[NotificationHub] = None,
        config: GameConfig = GAME_CONFIG,
        rng: Optional[random.Random] = None,
        debugger: Optional[MatchDebugger] = None,
    ) -> None:
        """Attach the scheduler to a store.

        Parameters
        ----------
        store : StateStore
            Store the scheduler reads and mutates.
        hub : NotificationHub | None
            Outbound notification hub.
        config : GameConfig
            Scheduler configuration.
        rng : random.Random | None
            Random source.
        debugger : MatchDebugger | None
            Structured logger.
        """
        self.store = store
        self.hub = hub if hub is not None else NotificationHub(debugger)
        self.config = config
        self.rng = rng if rng is not None else random.Random()
        self.debugger = debugger
        self.running = True
        self._cursor = 0
        self._handlers: Dict[EventType, Callable[[MatchEvent], None]] = {
            EventType.KICK_OFF: self._handle_kick_off,
            EventType.GOAL: self._handle_goal,
            EventType.ACTION_BET: self._handle_action_bet,
            EventType.COMMENTARY: self._handle_commentary,
            EventType.RESOLUTION: self._handle_resolution,
        }

    # ------------------------------------------------------------------
    # Timeline construction
    # ------------------------------------------------------------------
    def generate_timeline(self, home_team: str = "", away_team: str = "") -> List[MatchEvent]:
        """Generate a fresh timeline, pair every action bet and store it.

        Parameters
        ----------
        home_team : str
            Home side name for descriptions.
        away_team : str
            Away side name for descriptions.

        Returns
        -------
        List[MatchEvent]
            The stored timeline including injected resolution events.
        """
        timeline: List[MatchEvent] = []
        for event in generate_match_timeline(self.rng, self.config, home_team, away_team):
            timeline.insert(bisect_right(timeline, event.scheduled_minute, key=_minute_key), event)
        for event in [e for e in timeline if e.event_type == EventType.ACTION_BET]:
            resolution = self._build_resolution(event)
            try:
                self._check_insertable(timeline, resolution, cursor=0)
            except SchedulingInvariantViolation as exc:
                self._violation(exc)
                timeline.remove(event)
                continue
            timeline.insert(bisect_right(timeline, resolution.scheduled_minute, key=_minute_key), resolution)

        self._cursor = 0
        self.running = True
        self.store.update({StatePath.MATCH_TIMELINE: tuple(timeline)})
        if self.debugger is not None:
            self.debugger.log_match_event(0, "TIMELINE", f"Generated {len(timeline)} events")
        return list(self.store.get().match.timeline)

    def schedule_event(self, event: MatchEvent, minute: Optional[int] = None) -> Optional[MatchEvent]:
        """Insert ``event`` into the timeline, keeping it sorted and stable.

        Ties keep insertion order. An ``ACTION_BET`` gets its paired resolution
        scheduled straight away.

        Parameters
        ----------
        event : MatchEvent
            Event to insert.
        minute : int | None
            Minute to schedule at; ``event.scheduled_minute`` when omitted.

        Returns
        -------
        MatchEvent | None
            The inserted event, or ``None`` when the insertion was rejected in
            non-strict mode.

        Raises
        ------
        SchedulingInvariantViolation
            In strict mode, when the insertion would break ordering or pairing.
        """
        if minute is not None and minute != event.scheduled_minute:
            event = event.at_minute(minute)

        timeline = list(self.store.get().match.timeline)
        try:
            self._check_insertable(timeline, event, self._cursor)
            if event.event_type == EventType.ACTION_BET:
                resolution_minute = event.scheduled_minute + self.config.timeline.resolution_offset
                if resolution_minute > self.config.simulation.match_duration:
                    raise SchedulingInvariantViolation(
                        f"Action bet {event.event_id} at minute {event.scheduled_minute} cannot resolve before full time",
                        event.event_id,
                    )
        except SchedulingInvariantViolation as exc:
            return self._violation(exc)

        timeline.insert(bisect_right(timeline, event.scheduled_minute, key=_minute_key), event)
        result = self.store.update({StatePath.MATCH_TIMELINE: tuple(timeline)})
        if not result.success:
            return self._violation(SchedulingInvariantViolation(str(result.error), event.event_id))

        if event.event_type == EventType.ACTION_BET:
            self.schedule_action_bet_resolution(event)
        return event

    def schedule_action_bet_resolution(self, action_event: MatchEvent) -> Optional[MatchEvent]:
        """Schedule the resolution paired with an action bet.

        The resolution lands ``resolution_offset`` minutes after the action bet.
        An existing resolution for the same origin is returned unchanged, so
        each action bet keeps exactly one.

        Parameters
        ----------
        action_event : MatchEvent
            Originating ``ACTION_BET`` event.

        Returns
        -------
        MatchEvent | None
            The paired resolution event, or ``None`` when scheduling was
            rejected in non-strict mode.
        """
        existing = self._find_resolution(action_event.event_id)
        if existing is not None:
            return existing
        resolution = self._build_resolution(action_event)
        scheduled = self.schedule_event(resolution)
        if scheduled is not None and self.debugger is not None:
            self.debugger.log_match_event(
                action_event.scheduled_minute,
                "RESOLUTION_SCHEDULED",
                f"{action_event.event_id} resolves at {resolution.scheduled_minute}",
            )
        return scheduled

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------
    def check_for_events(self) -> List[MatchEvent]:
        """Deliver every due, undelivered event in timeline order.

        The whole due batch is drained even when a handler pauses the match,
        so resolutions settle at their scheduled minute.

        Returns
        -------
        List[MatchEvent]
            Events delivered by this call.
        """
        delivered: List[MatchEvent] = []
        if not self.running:
            return delivered

        while True:
            state = self.store.get()
            timeline = state.match.timeline
            if self._cursor >= len(timeline):
                break
            event = timeline[self._cursor]
            if event.scheduled_minute > state.match.simulated_minute:
                break
            self._cursor += 1
            self._dispatch(event)
            delivered.append(event)
        return delivered

    def _dispatch(self, event: MatchEvent) -> None:
        """Log ``event`` and hand it to the handler for its type.

        Parameters
        ----------
        event : MatchEvent
            Event whose cursor position has already been consumed.
        """
        if self.debugger is not None:
            self.debugger.log_match_event(event.scheduled_minute, event.event_type.value, event.description)
        self._handlers[event.event_type](event)

    def _handle_kick_off(self, event: MatchEvent) -> None:
        """Post the opening whistle to the feed.

        Parameters
        ----------
        event : MatchEvent
            ``KICK_OFF`` event.
        """
        self.store.append_feed(self._feed_entry(event))

    def _handle_goal(self, event: MatchEvent) -> None:
        """Update the score and odds, then announce the goal.

        Parameters
        ----------
        event : MatchEvent
            ``GOAL`` event carrying a :class:`GoalPayload`.
        """
        payload = event.payload
        if not isinstance(payload, GoalPayload):
            self._log_error("EVENT", f"Goal {event.event_id} has no goal payload")
            return

        match = self.store.get().match
        previous_score = (match.home_score, match.away_score)
        home, away = previous_score
        if payload.team == "home":
            home += 1
        else:
            away += 1
        new_odds = calculate_odds(match.initial_odds, home, away, self.config.odds)
        entry = self._feed_entry(event, score=f"{home}-{away}")

        result = self.store.update(
            {
                StatePath.MATCH: {
                    "home_score": home,
                    "away_score": away,
                    "odds": new_odds,
                    "feed": match.feed + (entry,),
                }
            }
        )
        if not result.success:
            self._log_error("EVENT", f"Goal {event.event_id} rejected: {result.error}")
            return

        self.hub.emit(
            GoalScored(
                team=payload.team,
                player=payload.player,
                previous_score=previous_score,
                new_score=(home, away),
                previous_odds=match.odds,
                new_odds=new_odds,
                minute=event.scheduled_minute,
                goal_type=payload.goal_type,
            )
        )

    def _handle_action_bet(self, event: MatchEvent) -> None:
        """Pair the action bet with its resolution and open the opportunity.

        Parameters
        ----------
        event : MatchEvent
            ``ACTION_BET`` event carrying its choices.
        """
        payload = event.payload
        if not isinstance(payload, ActionBetPayload):
            self._log_error("EVENT", f"Action bet {event.event_id} has no choices")
            return
        self.schedule_action_bet_resolution(event)
        self.store.append_feed(self._feed_entry(event, is_betting_opportunity=True))
        self.hub.emit(
            ActionBettingOpportunity(
                event_id=event.event_id,
                description=event.description,
                choices=payload.choices,
                minute=event.scheduled_minute,
                event=event,
            )
        )

    def _handle_commentary(self, event: MatchEvent) -> None:
        """Post flavour text; commentary never touches score or bets.

        Parameters
        ----------
        event : MatchEvent
            ``COMMENTARY`` event.
        """
        payload = event.payload
        category = payload.category if isinstance(payload, CommentaryPayload) else "general"
        intensity = payload.intensity if isinstance(payload, CommentaryPayload) else "low"
        self.store.append_feed(self._feed_entry(event))
        self.hub.emit(
            CommentaryPosted(
                description=event.description,
                minute=event.scheduled_minute,
                category=category,
                intensity=intensity,
            )
        )

    def _handle_resolution(self, event: MatchEvent) -> None:
        """Resolve the originating action bet unless it was already forced.

        Parameters
        ----------
        event : MatchEvent
            ``RESOLUTION`` event carrying a :class:`ResolutionPayload`.
        """
        payload = event.payload
        if not isinstance(payload, ResolutionPayload):
            self._log_error("EVENT", f"Resolution {event.event_id} has no origin")
            return
        current = self._find_resolution(payload.original_event_id) or event
        if isinstance(current.payload, ResolutionPayload) and current.payload.resolved:
            if self.debugger is not None:
                self.debugger.log_match_event(event.scheduled_minute, "RESOLUTION_SKIPPED", f"{event.event_id} already resolved")
            return
        origin = self._find_action_bet(payload.original_event_id) or payload.original_event
        if origin is None or origin.event_type != EventType.ACTION_BET:
            self._log_error("EVENT", f"Resolution {event.event_id} lost its action bet")
            return
        self.resolve_action_bet(origin, current)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    def pick_winning_choice(self, action_event: MatchEvent, forced_outcome: Optional[str] = None) -> Choice:
        """Choose the winning choice of an action bet.

        Selection is uniform over the choices and ignores their odds.

        Parameters
        ----------
        action_event : MatchEvent
            ``ACTION_BET`` event offering the choices.
        forced_outcome : str | None
            Outcome key to use instead of a random draw.

        Returns
        -------
        Choice
            The winning choice.
        """
        payload = action_event.payload
        if not isinstance(payload, ActionBetPayload):
            raise ValueError(f"Event {action_event.event_id} is not an action bet")
        if forced_outcome is None:
            return self.rng.choice(payload.choices)
        choice = payload.find_choice(forced_outcome)
        if choice is None:
            raise ValueError(f"Outcome '{forced_outcome}' is not offered by {action_event.event_id}")
        return choice

    def resolve_action_bet(
        self,
        action_event: MatchEvent,
        resolution_event: Optional[MatchEvent] = None,
        forced_outcome: Optional[str] = None,
    ) -> ResolutionOutcome:
        """Settle an action bet and announce the result.

        Marks the paired resolution as resolved, settles matching pending
        action bets, writes a feed line and emits :class:`ActionBetResolved`.

        Parameters
        ----------
        action_event : MatchEvent
            Originating ``ACTION_BET`` event.
        resolution_event : MatchEvent | None
            Paired resolution; looked up on the timeline when omitted.
        forced_outcome : str | None
            Outcome key to use instead of a random draw.

        Returns
        -------
        ResolutionOutcome
            Winning outcome, which is always one of the action bet's choices.
        """
        choice = self.pick_winning_choice(action_event, forced_outcome)
        forced = forced_outcome is not None
        state = self.store.get()
        minute = state.match.simulated_minute

        resolution = resolution_event or self._find_resolution(action_event.event_id)
        label = f"{choice.description or choice.outcome}{' (Forced)' if forced else ''}"
        timeline = state.match.timeline
        if resolution is not None:
            resolved = replace(
                resolution,
                description=f"Resolved: {label}",
                payload=ResolutionPayload(
                    original_event_id=action_event.event_id,
                    original_event=action_event,
                    resolved=True,
                    winning_outcome=choice.outcome,
                    forced=forced,
                ),
            )
            timeline = tuple(resolved if e.event_id == resolution.event_id else e for e in timeline)

        settled: List[Bet] = []
        action_bets: List[Bet] = []
        for bet in state.bets.action:
            if bet.event_id == action_event.event_id and bet.is_pending:
                bet = bet.settled(choice.outcome, minute)
                settled.append(bet)
            action_bets.append(bet)

        entry = FeedEntry(
            event_id=resolution.event_id if resolution is not None else resolution_id_for(action_event.event_id),
            minute=minute,
            event_type=EventType.RESOLUTION,
            description=f"Resolved: {label}",
            winning_outcome=choice.outcome,
        )
        result = self.store.update(
            {
                StatePath.MATCH: {"timeline": timeline, "feed": state.match.feed + (entry,)},
                StatePath.BETS_ACTION: tuple(action_bets),
            },
            allow_settlement=True,
        )
        if not result.success:
            self._log_error("RESOLUTION", f"{action_event.event_id} could not be recorded: {result.error}")

        outcome = ResolutionOutcome(
            event_id=action_event.event_id,
            winning_outcome=choice.outcome,
            winning_choice=choice,
            original_event=action_event,
            forced=forced,
            settled_bets=tuple(settled),
        )
        if self.debugger is not None:
            self.debugger.log_match_event(minute, "RESOLVED", f"{action_event.event_id}: {choice.outcome}")
        self.hub.emit(
            ActionBetResolved(
                event_id=action_event.event_id,
                winning_outcome=choice.outcome,
                original_event=action_event,
                winning_choice=choice,
                forced=forced,
                settled_bets=tuple(settled),
            )
        )
        return outcome

    def force_resolution(self, event_id: str, outcome: Optional[str] = None) -> ForcedResolutionResult:
        """Resolve an action bet immediately, optionally with a chosen outcome.

        The paired resolution is marked resolved, so its later delivery does
        not settle anything twice.

        Parameters
        ----------
        event_id : str
            Identifier of the ``ACTION_BET`` event.
        outcome : str | None
            Outcome key to force; drawn at random when omitted.

        Returns
        -------
        ForcedResolutionResult
            Success flag with the resolution, or the reason it failed.
        """
        action_event = self._find_action_bet(event_id)
        if action_event is None:
            return ForcedResolutionResult(success=False, event_id=event_id, error="Action bet event not found")

        resolution = self._find_resolution(event_id)
        if resolution is not None and isinstance(resolution.payload, ResolutionPayload) and resolution.payload.resolved:
            return ForcedResolutionResult(success=False, event_id=event_id, error="Action bet already resolved")

        try:
            result = self.resolve_action_bet(action_event, resolution, forced_outcome=outcome)
        except ValueError as exc:
            return ForcedResolutionResult(success=False, event_id=event_id, error=str(exc))
        return ForcedResolutionResult(success=True, event_id=event_id, outcome=result)

    def settle_full_match_bets(self, outcome: str) -> Tuple[Bet, ...]:
        """Settle every pending full-match bet against the final result.

        Parameters
        ----------
        outcome : str
            ``"home"``, ``"draw"`` or ``"away"``.

        Returns
        -------
        Tuple[Bet, ...]
            Bets settled by this call.
        """
        state = self.store.get()
        minute = state.match.simulated_minute
        settled: List[Bet] = []
        bets: List[Bet] = []
        for bet in state.bets.full_match:
            if bet.is_pending:
                bet = bet.settled(outcome, minute)
                settled.append(bet)
            bets.append(bet)
        if settled:
            self.store.update({StatePath.BETS_FULL_MATCH: tuple(bets)}, allow_settlement=True)
        return tuple(settled)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_pending_resolutions(self) -> List[MatchEvent]:
        """Return resolution events not yet settled.

        Returns
        -------
        List[MatchEvent]
            Unresolved ``RESOLUTION`` events in timeline order.
        """
        return [e for e in self.get_events_by_type(EventType.RESOLUTION) if not _is_resolved(e)]

    def get_resolved_events(self) -> List[MatchEvent]:
        """Return resolution events that have been settled.

        Returns
        -------
        List[MatchEvent]
            Resolved ``RESOLUTION`` events in timeline order.
        """
        return [e for e in self.get_events_by_type(EventType.RESOLUTION) if _is_resolved(e)]

    def get_resolution_statistics(self) -> ResolutionStatistics:
        """Summarise resolution progress for the current timeline.

        Returns
        -------
        ResolutionStatistics
            Counts and the resolution rate.
        """
        action_bets = self.get_events_by_type(EventType.ACTION_BET)
        resolutions = self.get_events_by_type(EventType.RESOLUTION)
        resolved = sum(1 for e in resolutions if _is_resolved(e))
        rate = resolved / len(action_bets) * 100 if action_bets else 0.0
        return ResolutionStatistics(
            total_action_bets=len(action_bets),
            total_resolutions=len(resolutions),
            resolved_count=resolved,
            pending_count=len(resolutions) - resolved,
            resolution_rate=f"{rate:.1f}",
        )

    def get_events_by_type(self, event_type: EventType) -> List[MatchEvent]:
        """Return timeline events of one type.

        Parameters
        ----------
        event_type : EventType
            Type to filter by.

        Returns
        -------
        List[MatchEvent]
            Matching events in timeline order.
        """
        return [e for e in self.store.get().match.timeline if e.event_type == event_type]

    def get_next_event(self) -> Optional[MatchEvent]:
        """Return the next undelivered event.

        Returns
        -------
        MatchEvent | None
            Event at the cursor, or ``None`` once the timeline is exhausted.
        """
        timeline = self.store.get().match.timeline
        if self._cursor >= len(timeline):
            return None
        return timeline[self._cursor]

    @property
    def delivered_count(self) -> int:
        """Return how many timeline events have been delivered."""
        return self._cursor

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def stop(self) -> None:
        """Stop delivering events until the next :meth:`reset`."""
        self.running = False

    def reset(self) -> None:
        """Clear the cursor and the timeline; safe to call repeatedly."""
        self._cursor = 0
        self.running = True
        if self.store.get().match.timeline:
            self.store.update({StatePath.MATCH_TIMELINE: ()})

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _build_resolution(self, action_event: MatchEvent) -> MatchEvent:
        """Create the unresolved ``RESOLUTION`` paired with ``action_event``.

        Parameters
        ----------
        action_event : MatchEvent
            Originating ``ACTION_BET`` event.

        Returns
        -------
        MatchEvent
            Resolution scheduled ``resolution_offset`` minutes later.
        """
        return MatchEvent(
            event_id=resolution_id_for(action_event.event_id),
            event_type=EventType.RESOLUTION,
            scheduled_minute=action_event.scheduled_minute + self.config.timeline.resolution_offset,
            description=f"Resolving: {action_event.description}",
            payload=ResolutionPayload(original_event_id=action_event.event_id, original_event=action_event),
        )

    def _check_insertable(self, timeline: Sequence[MatchEvent], event: MatchEvent, cursor: int) -> None:
        """Check the timeline invariants for inserting ``event``.

        Parameters
        ----------
        timeline : Sequence[MatchEvent]
            Current timeline.
        event : MatchEvent
            Candidate event.
        cursor : int
            Index of the next undelivered event.

        Raises
        ------
        SchedulingInvariantViolation
            When the minute is out of range, the id is taken, a resolution
            has no action bet, or the event would land behind the cursor.
        """
        duration = self.config.simulation.match_duration
        if not 0 <= event.scheduled_minute <= duration:
            raise SchedulingInvariantViolation(
                f"Event {event.event_id} minute {event.scheduled_minute} is outside 0-{duration}", event.event_id
            )
        if any(e.event_id == event.event_id for e in timeline):
            raise SchedulingInvariantViolation(f"Event {event.event_id} is already scheduled", event.event_id)
        if event.event_type == EventType.RESOLUTION:
            payload = event.payload
            if not isinstance(payload, ResolutionPayload):
                raise SchedulingInvariantViolation(f"Resolution {event.event_id} has no origin", event.event_id)
            embedded = payload.original_event
            has_origin = any(
                e.event_type == EventType.ACTION_BET and e.event_id == payload.original_event_id for e in timeline
            ) or (
                embedded is not None
                and embedded.event_type == EventType.ACTION_BET
                and embedded.event_id == payload.original_event_id
            )
            if not has_origin:
                raise SchedulingInvariantViolation(
                    f"Resolution {event.event_id} references unknown action bet {payload.original_event_id}",
                    event.event_id,
                )
        index = bisect_right(timeline, event.scheduled_minute, key=_minute_key)
        if index < cursor:
            raise SchedulingInvariantViolation(
                f"Event {event.event_id} at minute {event.scheduled_minute} would land behind delivered events",
                event.event_id,
            )

    def _violation(self, error: SchedulingInvariantViolation) -> None:
        """Log ``error`` and raise it when invariants are strict.

        Parameters
        ----------
        error : SchedulingInvariantViolation
            Detected violation.
        """
        self._log_error("SCHEDULING", str(error))
        if self.config.scheduler.strict_invariants:
            raise error
        return None

    def _find_action_bet(self, event_id: str) -> Optional[MatchEvent]:
        """Look up an action bet on the current timeline.

        Parameters
        ----------
        event_id : str
            Identifier of the action bet.

        Returns
        -------
        Optional[MatchEvent]
            The event, or ``None`` when absent.
        """
        return next(
            (
                e
                for e in self.store.get().match.timeline
                if e.event_type == EventType.ACTION_BET and e.event_id == event_id
            ),
            None,
        )

    def _find_resolution(self, origin_id: str) -> Optional[MatchEvent]:
        """Look up the resolution paired with an action bet.

        Parameters
        ----------
        origin_id : str
            Identifier of the originating action bet.

        Returns
        -------
        Optional[MatchEvent]
            Current version of the resolution, or ``None``.
        """
        for event in self.store.get().match.timeline:
            payload = event.payload
            if (
                event.event_type == EventType.RESOLUTION
                and isinstance(payload, ResolutionPayload)
                and payload.original_event_id == origin_id
            ):
                return event
        return None

    def _feed_entry(self, event: MatchEvent, is_betting_opportunity: bool = False, score: Optional[str] = None) -> FeedEntry:
        """Build the feed line for ``event``.

        Parameters
        ----------
        event : MatchEvent
            Delivered event.
        is_betting_opportunity : bool
            Flag the line as an open betting opportunity.
        score : str | None
            Running score shown on goal lines.

        Returns
        -------
        FeedEntry
            Entry stamped with the event's scheduled minute.
        """
        return FeedEntry(
            event_id=event.event_id,
            minute=event.scheduled_minute,
            event_type=event.event_type,
            description=event.description,
            is_betting_opportunity=is_betting_opportunity,
            score=score,
        )

    def _log_error(self, error_type: str, description: str) -> None:
        """Forward an error line to the debugger when one is attached.

        Parameters
        ----------
        error_type : str
            Error category such as ``"SCHEDULING"``.
        description : str
            Human-readable details.
        """
        if self.debugger is not None:
            self.debugger.log_error(error_type, description)


def _is_resolved(event: MatchEvent) -> bool:
    """Return ``True`` for resolutions that have been settled.

    Parameters
    ----------
    event : MatchEvent
        Timeline entry of any type.

    Returns
    -------
    bool
        Whether ``event`` is a resolved ``RESOLUTION``.
    """
    payload = event.payload
    return isinstance(payload, ResolutionPayload) and payload.resolved
