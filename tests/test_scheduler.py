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
"""Tests for timeline generation, insertion and event delivery."""

import random
from collections import Counter
from typing import List, Optional

import pytest

from matchday.engine.config import GameConfig, SchedulerConfig
from matchday.engine.errors import SchedulingInvariantViolation
from matchday.engine.events import (
    ActionBetPayload,
    Choice,
    CommentaryPayload,
    EventType,
    GoalPayload,
    MatchEvent,
    ResolutionPayload,
)
from matchday.engine.notifications import ActionBetResolved, ActionBettingOpportunity, GoalScored, NotificationHub
from matchday.engine.scheduler import TimelineScheduler, resolution_id_for
from matchday.engine.state_store import StateStore
from matchday.models.bet import Bet, BetCategory, BetStatus
from matchday.models.snapshot import MatchPhase, StatePath
from matchday.utils.debug import MatchDebugger

LENIENT = GameConfig(scheduler=SchedulerConfig(strict_invariants=False))


def _scheduler(seed: int = 7, config: GameConfig = GameConfig()) -> TimelineScheduler:
    debugger = MatchDebugger()
    store = StateStore(config, debugger)
    return TimelineScheduler(store, NotificationHub(debugger), config, random.Random(seed), debugger)


def _corner(event_id: str = "e1", minute: int = 30) -> MatchEvent:
    return MatchEvent(
        event_id=event_id,
        event_type=EventType.ACTION_BET,
        scheduled_minute=minute,
        description="Corner kick awarded! Will it result in a goal?",
        payload=ActionBetPayload(
            category="corner",
            choices=(Choice("goal", 4.5, "Goal from corner"), Choice("cleared", 1.6, "Corner cleared safely")),
        ),
    )


def _commentary(event_id: str, minute: int) -> MatchEvent:
    return MatchEvent(event_id, EventType.COMMENTARY, minute, "Good passing move", CommentaryPayload("possession"))


def _play_to(scheduler: TimelineScheduler, minute: int) -> List[MatchEvent]:
    delivered: List[MatchEvent] = []
    start = scheduler.store.get().match.simulated_minute
    for m in range(start, minute + 1):
        scheduler.store.update({StatePath.MATCH_SIMULATED_MINUTE: m})
        delivered.extend(scheduler.check_for_events())
    return delivered


class TestTimelineGeneration:
    """Tests for generated timelines and injected resolutions."""

    @pytest.mark.parametrize("seed", range(40))
    def test_generated_timeline_invariants(self, seed: int) -> None:
        """Timelines are sorted and every action bet has exactly one resolution four minutes later."""
        scheduler = _scheduler(seed)
        timeline = scheduler.generate_timeline("Home", "Away")

        minutes = [e.scheduled_minute for e in timeline]
        assert minutes == sorted(minutes)
        assert timeline[0].event_type == EventType.KICK_OFF
        assert len({e.event_id for e in timeline}) == len(timeline)
        assert all(0 <= m <= 90 for m in minutes)

        by_id = {e.event_id: e for e in timeline}
        action_bets = [e for e in timeline if e.event_type == EventType.ACTION_BET]
        resolutions = [e for e in timeline if e.event_type == EventType.RESOLUTION]
        assert len(action_bets) == len(resolutions)
        for resolution in resolutions:
            assert isinstance(resolution.payload, ResolutionPayload)
            origin = by_id[resolution.payload.original_event_id]
            assert origin.event_type == EventType.ACTION_BET
            assert resolution.scheduled_minute == origin.scheduled_minute + 4
        assert all(e.scheduled_minute <= 86 for e in action_bets)

    def test_timeline_is_stored(self) -> None:
        """The generated timeline becomes the snapshot's timeline."""
        scheduler = _scheduler()
        timeline = scheduler.generate_timeline()
        assert tuple(timeline) == scheduler.store.get().match.timeline
        assert scheduler.delivered_count == 0


class TestScheduling:
    """Tests for inserting events and pairing resolutions."""

    def test_resolution_lands_four_minutes_later(self) -> None:
        """An action bet at minute 30 resolves at minute 34."""
        scheduler = _scheduler()
        resolution = scheduler.schedule_action_bet_resolution(_corner("e1", 30))

        assert resolution is not None
        assert resolution.event_type == EventType.RESOLUTION
        assert resolution.scheduled_minute == 34
        assert isinstance(resolution.payload, ResolutionPayload)
        assert resolution.payload.original_event_id == "e1"
        assert resolution.event_id == resolution_id_for("e1")

    def test_resolution_scheduling_is_idempotent(self) -> None:
        """Scheduling twice keeps a single resolution per action bet."""
        scheduler = _scheduler()
        scheduler.schedule_event(_corner("e1", 30))
        first = scheduler.schedule_action_bet_resolution(_corner("e1", 30))
        second = scheduler.schedule_action_bet_resolution(_corner("e1", 30))
        assert first == second
        assert len(scheduler.get_events_by_type(EventType.RESOLUTION)) == 1

    def test_schedule_action_bet_adds_resolution(self) -> None:
        """Inserting an action bet pairs it immediately."""
        scheduler = _scheduler()
        scheduler.schedule_event(_corner("e1", 30))
        timeline = scheduler.store.get().match.timeline
        assert [e.event_id for e in timeline] == ["e1", "resolution_e1"]

    def test_ties_keep_insertion_order(self) -> None:
        """Events scheduled for the same minute stay in the order they were added."""
        scheduler = _scheduler()
        for event_id in ("c1", "c2", "c3"):
            scheduler.schedule_event(_commentary(event_id, 10))
        scheduler.schedule_event(_commentary("c0", 5))
        assert [e.event_id for e in scheduler.store.get().match.timeline] == ["c0", "c1", "c2", "c3"]

    def test_minute_override(self) -> None:
        """An explicit minute reschedules the event before insertion."""
        scheduler = _scheduler()
        inserted = scheduler.schedule_event(_commentary("c1", 10), minute=42)
        assert inserted is not None
        assert inserted.scheduled_minute == 42

    @pytest.mark.parametrize(
        "event",
        [
            _commentary("late", 95),
            _corner("e9", 88),
            MatchEvent(
                "resolution_ghost",
                EventType.RESOLUTION,
                20,
                "Resolving: nothing",
                ResolutionPayload(original_event_id="ghost"),
            ),
        ],
        ids=["out-of-range", "action-bet-too-late", "orphan-resolution"],
    )
    def test_strict_mode_raises(self, event: MatchEvent) -> None:
        """Insertions that would break ordering or pairing fail loudly."""
        scheduler = _scheduler()
        with pytest.raises(SchedulingInvariantViolation):
            scheduler.schedule_event(event)
        assert scheduler.store.get().match.timeline == ()

    def test_duplicate_id_raises(self) -> None:
        """An event id can only be scheduled once."""
        scheduler = _scheduler()
        scheduler.schedule_event(_commentary("c1", 10))
        with pytest.raises(SchedulingInvariantViolation):
            scheduler.schedule_event(_commentary("c1", 20))

    def test_insert_behind_cursor_raises(self) -> None:
        """Events cannot be inserted among already delivered events."""
        scheduler = _scheduler()
        scheduler.schedule_event(_commentary("c1", 5))
        scheduler.schedule_event(_commentary("c2", 15))
        _play_to(scheduler, 20)
        with pytest.raises(SchedulingInvariantViolation) as excinfo:
            scheduler.schedule_event(_commentary("c3", 10))
        assert excinfo.value.event_id == "c3"

    def test_lenient_mode_rejects_quietly(self) -> None:
        """Without strict invariants the insertion is dropped and logged."""
        scheduler = _scheduler(config=LENIENT)
        assert scheduler.schedule_event(_commentary("late", 95)) is None
        assert scheduler.store.get().match.timeline == ()
        assert scheduler.debugger is not None
        assert scheduler.debugger.error_count() == 1


class TestDelivery:
    """Tests for exactly-once, in-order delivery."""

    @pytest.mark.parametrize("seed", [1, 2, 3, 11, 42])
    def test_full_match_delivers_each_event_once(self, seed: int) -> None:
        """Ticking from 0 to 90 delivers every event exactly once, in order."""
        scheduler = _scheduler(seed)
        scheduler.generate_timeline()
        delivered = _play_to(scheduler, 90)

        timeline = scheduler.store.get().match.timeline
        counts = Counter(e.event_id for e in delivered)
        assert set(counts) == {e.event_id for e in timeline}
        assert set(counts.values()) == {1}
        assert [e.scheduled_minute for e in delivered] == sorted(e.scheduled_minute for e in delivered)
        assert scheduler.get_pending_resolutions() == []
        assert scheduler.get_next_event() is None

    def test_events_sharing_a_minute_are_batched(self) -> None:
        """A jump over several minutes delivers every due event in one call."""
        scheduler = _scheduler()
        for event_id, minute in (("c1", 3), ("c2", 3), ("c3", 4), ("c4", 9)):
            scheduler.schedule_event(_commentary(event_id, minute))
        scheduler.store.update({StatePath.MATCH_SIMULATED_MINUTE: 5})

        assert [e.event_id for e in scheduler.check_for_events()] == ["c1", "c2", "c3"]
        assert scheduler.check_for_events() == []
        assert scheduler.get_next_event() is not None
        assert scheduler.get_next_event().event_id == "c4"

    def test_goal_updates_score_odds_and_feed(self) -> None:
        """A home goal at 0-0 shortens home odds and lengthens away odds."""
        scheduler = _scheduler()
        goals: List[GoalScored] = []
        scheduler.hub.subscribe(GoalScored, goals.append)
        scheduler.schedule_event(
            MatchEvent("g1", EventType.GOAL, 10, "GOAL! Silva scores!", GoalPayload("home", "Silva", "header"))
        )
        _play_to(scheduler, 10)

        match = scheduler.store.get().match
        assert (match.home_score, match.away_score) == (1, 0)
        assert match.odds.home < 1.85
        assert match.odds.away > 4.20
        assert 3.50 < match.odds.draw <= 5.00
        assert 1.20 <= match.odds.home <= 8.00
        assert 1.20 <= match.odds.away <= 8.00
        assert match.feed[-1].score == "1-0"
        assert len(goals) == 1
        assert goals[0].previous_score == (0, 0)
        assert goals[0].new_odds == match.odds

    def test_action_bet_opens_opportunity(self) -> None:
        """Delivering an action bet posts a betting feed line and a notification."""
        scheduler = _scheduler()
        opportunities: List[ActionBettingOpportunity] = []
        scheduler.hub.subscribe(ActionBettingOpportunity, opportunities.append)
        scheduler.schedule_event(_corner("e1", 30))
        _play_to(scheduler, 30)

        assert [o.event_id for o in opportunities] == ["e1"]
        assert scheduler.store.get().match.feed[-1].is_betting_opportunity

    def test_pause_does_not_hold_back_the_batch(self) -> None:
        """A handler that pauses the match still lets the rest of the minute go out."""
        scheduler = _scheduler()
        scheduler.schedule_event(_corner("e2", 34))
        scheduler.schedule_event(_corner("e1", 30))
        scheduler.store.update({StatePath.PHASE: MatchPhase.ACTIVE})
        scheduler.hub.subscribe(
            ActionBettingOpportunity,
            lambda note: scheduler.store.update({StatePath.PHASE: MatchPhase.PAUSED}),
        )
        _play_to(scheduler, 33)
        scheduler.store.update({StatePath.PHASE: MatchPhase.ACTIVE})
        scheduler.store.update({StatePath.MATCH_SIMULATED_MINUTE: 34})

        delivered = scheduler.check_for_events()
        match = scheduler.store.get().match
        assert [e.event_id for e in delivered] == ["e2", resolution_id_for("e1")]
        assert scheduler.store.get().phase == MatchPhase.PAUSED
        assert match.feed[-1].event_id == resolution_id_for("e1")
        assert match.feed[-1].minute == 34
        assert [e.payload.original_event_id for e in scheduler.get_resolved_events()] == ["e1"]

    def test_stop_halts_delivery(self) -> None:
        """A stopped scheduler delivers nothing until reset."""
        scheduler = _scheduler()
        scheduler.schedule_event(_commentary("c1", 0))
        scheduler.stop()
        assert scheduler.check_for_events() == []


class TestResolution:
    """Tests for resolving action bets."""

    @pytest.mark.parametrize("seed", range(20))
    def test_winning_outcome_is_a_choice(self, seed: int) -> None:
        """The winning outcome is always one of the offered choices."""
        scheduler = _scheduler(seed)
        outcome = scheduler.resolve_action_bet(_corner())
        assert outcome.winning_outcome in {"goal", "cleared"}
        assert not outcome.forced

    def test_selection_ignores_odds(self) -> None:
        """Both choices win regularly even though their odds differ widely."""
        scheduler = _scheduler(3)
        wins = Counter(scheduler.pick_winning_choice(_corner()).outcome for _ in range(400))
        assert wins["goal"] > 120
        assert wins["cleared"] > 120

    def test_pick_rejects_non_action_event(self) -> None:
        """Only action bets have choices to pick from."""
        scheduler = _scheduler()
        with pytest.raises(ValueError):
            scheduler.pick_winning_choice(_commentary("c1", 5))

    def test_delivered_resolution_settles_bets(self) -> None:
        """Reaching the resolution minute settles matching action bets."""
        scheduler = _scheduler()
        resolved: List[ActionBetResolved] = []
        scheduler.hub.subscribe(ActionBetResolved, resolved.append)
        scheduler.schedule_event(_corner("e1", 30))
        _play_to(scheduler, 30)
        scheduler.store.append_bet(Bet("bet_001", BetCategory.ACTION, "goal", 10.0, 4.5, event_id="e1"))
        _play_to(scheduler, 34)

        bet = scheduler.store.get().bets.action[0]
        assert len(resolved) == 1
        assert bet.status == (BetStatus.WON if resolved[0].winning_outcome == "goal" else BetStatus.LOST)
        assert bet.resolved_at_minute == 34
        assert resolved[0].settled_bets == (bet,)
        assert scheduler.store.get().match.feed[-1].winning_outcome == resolved[0].winning_outcome
        assert [e.event_id for e in scheduler.get_resolved_events()] == ["resolution_e1"]

    def test_force_resolution(self) -> None:
        """Forcing settles now and the scheduled resolution later does nothing."""
        scheduler = _scheduler()
        resolved: List[ActionBetResolved] = []
        scheduler.hub.subscribe(ActionBetResolved, resolved.append)
        scheduler.schedule_event(_corner("e1", 30))
        scheduler.store.append_bet(Bet("bet_001", BetCategory.ACTION, "goal", 10.0, 4.5, event_id="e1"))

        result = scheduler.force_resolution("e1", "goal")
        assert result.success
        assert result.outcome is not None
        assert result.outcome.forced
        assert scheduler.store.get().bets.action[0].status == BetStatus.WON
        resolution = scheduler.get_resolved_events()[0]
        assert resolution.description == "Resolved: Goal from corner (Forced)"

        _play_to(scheduler, 40)
        assert len(resolved) == 1
        again = scheduler.force_resolution("e1", "cleared")
        assert not again.success
        assert again.error == "Action bet already resolved"

    @pytest.mark.parametrize(
        "event_id, outcome, message",
        [("missing", None, "Action bet event not found"), ("e1", "red", "not offered")],
    )
    def test_force_resolution_failures(self, event_id: str, outcome: Optional[str], message: str) -> None:
        """Unknown events and unknown outcomes are reported, not raised."""
        scheduler = _scheduler()
        scheduler.schedule_event(_corner("e1", 30))
        result = scheduler.force_resolution(event_id, outcome)
        assert not result.success
        assert result.error is not None
        assert message in result.error
        assert len(scheduler.get_pending_resolutions()) == 1

    def test_settle_full_match_bets(self) -> None:
        """Only pending full-match bets are settled against the final result."""
        scheduler = _scheduler()
        scheduler.store.append_bet(Bet("bet_001", BetCategory.FULL_MATCH, "home", 10.0, 1.85))
        scheduler.store.append_bet(Bet("bet_002", BetCategory.FULL_MATCH, "draw", 10.0, 3.5))
        settled = scheduler.settle_full_match_bets("draw")
        assert [b.status for b in settled] == [BetStatus.LOST, BetStatus.WON]
        assert scheduler.settle_full_match_bets("draw") == ()


class TestQueriesAndReset:
    """Tests for statistics, lookups and reset."""

    def test_empty_statistics(self) -> None:
        """An empty timeline reports zero counts and a 0.0 rate."""
        scheduler = _scheduler()
        stats = scheduler.get_resolution_statistics()
        assert stats.total_action_bets == 0
        assert stats.pending_count == 0
        assert stats.resolution_rate == "0.0"
        assert scheduler.get_next_event() is None

    def test_statistics_after_partial_play(self) -> None:
        """Resolved and pending counts follow the clock."""
        scheduler = _scheduler()
        scheduler.schedule_event(_corner("e1", 10))
        scheduler.schedule_event(_corner("e2", 50))
        _play_to(scheduler, 20)
        stats = scheduler.get_resolution_statistics()
        assert (stats.total_action_bets, stats.total_resolutions) == (2, 2)
        assert (stats.resolved_count, stats.pending_count) == (1, 1)
        assert stats.resolution_rate == "50.0"

    def test_reset_is_idempotent(self) -> None:
        """Reset clears timeline and cursor and can be repeated safely."""
        scheduler = _scheduler()
        scheduler.reset()
        scheduler.generate_timeline()
        _play_to(scheduler, 45)
        scheduler.stop()

        scheduler.reset()
        scheduler.reset()
        assert scheduler.store.get().match.timeline == ()
        assert scheduler.delivered_count == 0
        assert scheduler.running
