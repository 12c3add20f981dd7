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
"""Tests for utility modules (generator, debug)."""

import random
from pathlib import Path

from matchday.engine.config import GameConfig, TimelineConfig
from matchday.engine.events import ActionBetPayload, EventType, GoalPayload
from matchday.utils.debug import MatchDebugger
from matchday.utils.generator import (
    ACTION_BET_TEMPLATES,
    KICK_OFF_ID,
    distribute_event_types,
    event_id_for,
    event_statistics,
    generate_action_bet_event,
    generate_event_times,
    generate_goal_event,
    generate_kick_off,
    generate_match_timeline,
    validate_distribution,
)


class TestGenerator:
    """Tests for timeline generation helpers."""

    def test_event_times_respect_spacing(self) -> None:
        """Gaps stay within the configured range once rounded to whole minutes."""
        for seed in range(30):
            times = generate_event_times(random.Random(seed))
            assert times == sorted(times)
            assert all(8 <= t < 90 for t in times)
            gaps = [b - a for a, b in zip(times, times[1:])]
            assert all(7 <= gap <= 19 for gap in gaps)

    def test_distribution_matches_shares(self) -> None:
        """Twenty slots split into four goals, nine action bets and seven commentary."""
        types = distribute_event_types(20, random.Random(0))
        assert types.count(EventType.GOAL) == 4
        assert types.count(EventType.ACTION_BET) == 9
        assert types.count(EventType.COMMENTARY) == 7

    def test_distribution_never_overflows(self) -> None:
        """Rounding never produces more events than slots."""
        for total in range(8):
            types = distribute_event_types(total, random.Random(total))
            assert len(types) == total

    def test_validate_distribution(self) -> None:
        """Shares must add up to one."""
        assert validate_distribution()
        skewed = GameConfig(timeline=TimelineConfig(goal_share=0.5))
        assert not validate_distribution(skewed)

    def test_goal_event(self) -> None:
        """Goals name the scoring side in their description."""
        event = generate_goal_event("event_01_12", 12, random.Random(3), "Cardiff", "Swansea")
        assert isinstance(event.payload, GoalPayload)
        side = "Cardiff" if event.payload.team == "home" else "Swansea"
        assert event.description == f"GOAL! {event.payload.player} scores for {side}!"

    def test_action_bet_event_uses_template(self) -> None:
        """Action bets copy their choices from a situation template."""
        event = generate_action_bet_event("event_02_20", 20, random.Random(9))
        assert isinstance(event.payload, ActionBetPayload)
        template = next(t for t in ACTION_BET_TEMPLATES if t["category"] == event.payload.category)
        assert [c.outcome for c in event.payload.choices] == [o for o, _, _ in template["choices"]]

    def test_kick_off(self) -> None:
        """The opening whistle sits at minute 0."""
        event = generate_kick_off("Cardiff", "Swansea")
        assert event.event_id == KICK_OFF_ID
        assert event.scheduled_minute == 0
        assert event.description == "Kick-off! Cardiff vs Swansea"
        assert generate_kick_off().description == "Kick-off!"

    def test_match_timeline(self) -> None:
        """Generated timelines start with kick-off and keep late minutes free of action bets."""
        for seed in range(30):
            events = generate_match_timeline(random.Random(seed))
            assert events[0].event_type == EventType.KICK_OFF
            assert all(e.event_type != EventType.RESOLUTION for e in events)
            assert all(e.scheduled_minute <= 86 for e in events if e.event_type == EventType.ACTION_BET)
            for index, event in enumerate(events[1:], start=1):
                assert event.event_id == event_id_for(index, event.scheduled_minute)

    def test_same_seed_same_timeline(self) -> None:
        """Timelines are reproducible from a seed."""
        assert generate_match_timeline(random.Random(99)) == generate_match_timeline(random.Random(99))

    def test_event_statistics(self) -> None:
        """Statistics ignore kick-off and format shares with one decimal place."""
        events = generate_match_timeline(random.Random(5))
        stats = event_statistics(events)
        assert stats.total == len(events) - 1
        assert stats.goals + stats.action_bets + stats.commentary == stats.total
        assert stats.min_spacing <= stats.average_spacing <= stats.max_spacing
        assert event_statistics([]).goal_percentage == "0.0"


class TestDebugger:
    """Tests for the structured session logger."""

    def test_in_memory_lines(self) -> None:
        """Lines are numbered and can be filtered by category."""
        debugger = MatchDebugger()
        debugger.log_match_event(5, "GOAL", "Silva scores")
        debugger.log_phase_transition("active", "paused", "action_bet")
        debugger.log_error("VALIDATION", "wallet: must be a non-negative number")

        lines = debugger.get_recent_events()
        assert lines[0] == "00001 MATCH_EVENT: Minute: 05 | Event: GOAL | Details: Silva scores"
        assert lines[1] == "00002 PHASE: active -> paused | Reason: action_bet"
        assert debugger.get_recent_events(category="ERROR") == [
            "00003 ERROR: Type: VALIDATION | Details: wallet: must be a non-negative number"
        ]
        assert debugger.error_count() == 1
        assert debugger.log_file is None

    def test_capacity_and_limit(self) -> None:
        """Only the newest lines are retained and returned."""
        debugger = MatchDebugger(capacity=3)
        for minute in range(5):
            debugger.log_state_change([f"match.minute_{minute}"])
        assert len(debugger.get_recent_events()) == 3
        assert debugger.get_recent_events(limit=1)[0].startswith("00005 STATE_CHANGE")
        assert debugger.get_recent_events(limit=0) == []

    def test_log_file(self, tmp_path: Path) -> None:
        """A log directory receives a session file."""
        debugger = MatchDebugger(str(tmp_path / "logs"))
        debugger.log_state_change(["wallet", "match.home_score"])
        debugger.close()

        files = list((tmp_path / "logs").glob("match_debug_*.txt"))
        assert len(files) == 1
        content = files[0].read_text(encoding="utf-8")
        assert "Match Debug Session" in content
        assert "STATE_CHANGE: Paths: match.home_score, wallet" in content
