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
"""Tests for the match session, the real-time ticker and the notification hub."""

import random
from typing import List

import pytest

from matchday.engine.config import BettingWindowConfig, GameConfig
from matchday.engine.errors import ObserverError
from matchday.engine.events import ActionBetPayload, Choice, EventType, MatchEvent
from matchday.engine.notifications import (
    ActionBettingOpportunity,
    CommentaryPosted,
    MatchEnd,
    MatchPaused,
    MatchResumed,
    NotificationHub,
)
from matchday.engine.session import MatchSession
from matchday.engine.ticker import MatchTicker
from matchday.models.bet import BetCategory, BetStatus
from matchday.models.snapshot import MatchPhase
from matchday.utils.debug import MatchDebugger


def _advance_until_paused(session: MatchSession) -> bool:
    while session.phase == MatchPhase.ACTIVE:
        session.advance()
    return session.phase == MatchPhase.PAUSED


def _session_with_action_bet() -> MatchSession:
    """Return a started session whose timeline offers at least one action bet."""
    for seed in range(100):
        session = MatchSession(rng=random.Random(seed))
        session.start_match("Cardiff", "Swansea")
        if session.scheduler.get_events_by_type(EventType.ACTION_BET):
            return session
    raise AssertionError("no seed produced an action bet")


def _corner(event_id: str, minute: int) -> MatchEvent:
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


class FakeClock:
    """Deterministic time source advanced by the fake sleep."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += 1.0


class TestBettingWindow:
    """Tests for the automatic pause around action bets."""

    def test_action_bet_pauses_match(self) -> None:
        """Delivering an action bet freezes the clock until the window closes."""
        session = _session_with_action_bet()
        assert _advance_until_paused(session)

        state = session.snapshot
        minute = state.match.simulated_minute
        assert session.open_window is not None
        assert state.match.feed[-1].event_id == session.open_window
        assert state.match.feed[-1].is_betting_opportunity
        assert not session.advance()
        assert session.snapshot.match.simulated_minute == minute

        result = session.close_betting_window("skipped")
        assert result.success
        assert session.open_window is None
        assert session.phase == MatchPhase.ACTIVE
        assert session.advance()

    def test_resolution_lands_in_the_same_window(self) -> None:
        """A resolution due when the next window opens settles before bets are taken."""
        session = MatchSession(rng=random.Random(3))
        session.start_match()
        session.scheduler.reset()
        session.scheduler.schedule_event(_corner("e2", 34))
        session.scheduler.schedule_event(_corner("e1", 30))

        assert _advance_until_paused(session)
        assert session.open_window == "e1"
        session.close_betting_window("skipped")
        assert _advance_until_paused(session)

        state = session.snapshot
        assert session.open_window == "e2"
        assert state.match.simulated_minute == 34
        assert state.match.feed[-1].event_id == "resolution_e1"
        assert state.match.feed[-1].minute == 34
        refused = session.place_bet(BetCategory.ACTION, "goal", 10.0, "e1")
        assert not refused.success
        assert "already resolved" in str(refused.error)
        assert session.place_bet(BetCategory.ACTION, "goal", 10.0, "e2").success

    def test_auto_pause_can_be_disabled(self) -> None:
        """Without auto pause the match plays straight through."""
        config = GameConfig(betting_window=BettingWindowConfig(auto_pause=False))
        session = MatchSession(config, rng=random.Random(4))
        paused: List[MatchPaused] = []
        session.on(MatchPaused, paused.append)
        session.start_match()
        while session.phase == MatchPhase.ACTIVE:
            session.advance()
        assert session.phase == MatchPhase.ENDED
        assert paused == []


class TestPlaceBet:
    """Tests for recording wagers through the session."""

    def test_bets_need_a_running_match(self) -> None:
        """Nothing can be wagered from the lobby."""
        session = MatchSession(rng=random.Random(1))
        result = session.place_bet(BetCategory.FULL_MATCH, "home", 10.0)
        assert not result.success
        assert "lobby" in str(result.error)

    def test_full_match_bet_uses_current_odds(self) -> None:
        """Full-match bets are priced at the odds on offer and remember the stake."""
        session = MatchSession(rng=random.Random(1))
        session.start_match()
        first = session.place_bet(BetCategory.FULL_MATCH, "away", 40.0)
        second = session.place_bet(BetCategory.FULL_MATCH, "draw", 15.0)

        bets = session.snapshot.bets.full_match
        assert first.success and second.success
        assert [b.bet_id for b in bets] == ["bet_001", "bet_002"]
        assert bets[0].odds == session.snapshot.match.odds.away
        assert session.store.get_bet_memory(BetCategory.FULL_MATCH) == 15.0
        assert session.snapshot.wallet == 1000.0

    @pytest.mark.parametrize("outcome, stake", [("corner", 10.0), ("home", 5000.0), ("home", -1.0)])
    def test_invalid_full_match_bets(self, outcome: str, stake: float) -> None:
        """Unknown outcomes, stakes above the wallet and negative stakes are refused."""
        session = MatchSession(rng=random.Random(1))
        session.start_match()
        assert not session.place_bet(BetCategory.FULL_MATCH, outcome, stake).success
        assert session.snapshot.bets.full_match == ()

    def test_action_bet_uses_choice_odds(self) -> None:
        """Action bets take the odds of the backed choice."""
        session = _session_with_action_bet()
        _advance_until_paused(session)
        event = session.scheduler.get_events_by_type(EventType.ACTION_BET)[0]
        choice = event.payload.choices[0]

        result = session.place_bet(BetCategory.ACTION, choice.outcome, 10.0, event.event_id)
        bet = session.snapshot.bets.action[0]
        assert result.success
        assert bet.odds == choice.odds
        assert bet.event_id == event.event_id
        assert bet.bet_id == "bet_001"
        assert session.store.get_bet_memory("opportunity") == 10.0

    def test_action_bet_on_resolved_event_is_refused(self) -> None:
        """Once resolved, an action bet takes no more wagers."""
        session = _session_with_action_bet()
        event = session.scheduler.get_events_by_type(EventType.ACTION_BET)[0]
        outcome = event.payload.choices[0].outcome
        session.scheduler.force_resolution(event.event_id, outcome)

        result = session.place_bet(BetCategory.ACTION, outcome, 10.0, event.event_id)
        assert not result.success
        assert "already resolved" in str(result.error)

    def test_action_bet_needs_known_event(self) -> None:
        """Action bets must reference an action bet on the timeline."""
        session = MatchSession(rng=random.Random(1))
        session.start_match()
        assert not session.place_bet(BetCategory.ACTION, "goal", 10.0, "event_99_99").success


class TestRunToCompletion:
    """Tests for synchronous full matches."""

    def test_match_ends_with_everything_settled(self) -> None:
        """Running to completion resolves every action bet and settles full-match bets."""
        session = MatchSession(rng=random.Random(21))
        ends: List[MatchEnd] = []
        resumed: List[MatchResumed] = []
        session.on(MatchEnd, ends.append)
        session.on(MatchResumed, resumed.append)
        session.start_match("Cardiff", "Swansea")
        session.place_bet(BetCategory.FULL_MATCH, "home", 50.0)

        final = session.run_to_completion()
        assert final.phase == MatchPhase.ENDED
        assert final.match.simulated_minute == 90
        assert final.bets.full_match[0].status in (BetStatus.WON, BetStatus.LOST)
        assert session.scheduler.get_pending_resolutions() == []
        assert len(ends) == 1
        assert all(note.reason == "skipped" for note in resumed)

    def test_return_to_lobby_mid_match(self) -> None:
        """Abandoning a match clears the window and the timeline."""
        session = _session_with_action_bet()
        _advance_until_paused(session)
        assert session.return_to_lobby().success
        assert session.open_window is None
        assert session.phase == MatchPhase.LOBBY
        assert session.snapshot.match.timeline == ()


class TestMatchTicker:
    """Tests for the real-time driver."""

    def test_ticker_closes_windows_on_timeout(self) -> None:
        """Paused matches resume by timeout and the clock reaches full time."""
        session = MatchSession(rng=random.Random(8))
        paused: List[MatchPaused] = []
        resumed: List[MatchResumed] = []
        session.on(MatchPaused, paused.append)
        session.on(MatchResumed, resumed.append)
        session.start_match()
        action_bets = session.scheduler.get_events_by_type(EventType.ACTION_BET)

        clock = FakeClock()
        ticker = MatchTicker(session, tick_interval=0.0, betting_window=3.0, clock=clock, sleep=clock.sleep)
        ticker.run()

        assert session.phase == MatchPhase.ENDED
        assert ticker.ticks == 90
        assert not ticker.is_running
        assert len(paused) == len(action_bets)
        assert len(resumed) == len(paused)
        assert all(note.reason == "timeout" for note in resumed)

    def test_tick_outside_play_does_nothing(self) -> None:
        """Ticks in the lobby do not move the clock."""
        session = MatchSession(rng=random.Random(8))
        ticker = MatchTicker(session, tick_interval=0.0)
        assert not ticker.tick()
        assert session.snapshot.match.simulated_minute == 0

    def test_threaded_ticker(self) -> None:
        """The worker thread plays the match to full time."""
        session = MatchSession(rng=random.Random(13))
        session.start_match()
        ticker = MatchTicker(session, tick_interval=0.0, betting_window=0.0, sleep=lambda seconds: None)

        thread = ticker.start()
        thread.join(timeout=30)
        ticker.stop()
        assert not thread.is_alive()
        assert session.phase == MatchPhase.ENDED


class TestNotificationHub:
    """Tests for typed notification delivery."""

    def test_failing_listener_is_isolated(self) -> None:
        """A listener that raises is recorded and the others still run."""
        debugger = MatchDebugger()
        hub = NotificationHub(debugger)
        received: List[CommentaryPosted] = []

        def broken(note: CommentaryPosted) -> None:
            raise KeyError("missing")

        hub.subscribe(CommentaryPosted, broken)
        hub.subscribe(CommentaryPosted, received.append)
        note = CommentaryPosted(description="Crowd noise", minute=12, category="crowd", intensity="medium")

        assert hub.emit(note) == 1
        assert received == [note]
        assert isinstance(hub.failures[0], ObserverError)
        assert hub.failures[0].callback_name == "broken"
        assert debugger.error_count() == 1

    def test_listeners_are_typed(self) -> None:
        """Listeners only hear their own notification type and can unsubscribe."""
        hub = NotificationHub()
        received: List[object] = []
        unsubscribe = hub.subscribe(ActionBettingOpportunity, received.append)
        hub.emit(MatchResumed(minute=3, reason="timeout"))
        assert received == []
        assert hub.listener_count(ActionBettingOpportunity) == 1
        unsubscribe()
        unsubscribe()
        assert hub.listener_count(ActionBettingOpportunity) == 0
