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
"""Central configuration for session tuning parameters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(slots=True)
class SimulationConfig:
    """Timing controls for the simulated match clock.

    Parameters
    ----------
    match_duration : int, default=90
        Total simulated match length in minutes.
    tick_interval : float, default=1.0
        Real seconds between ticks when a ticker drives the clock.
    default_speed : float, default=1.0
        Default playback speed multiplier applied to ``tick_interval``.
    """

    match_duration: int = 90  # minutes
    tick_interval: float = 1.0  # seconds per simulated minute at speed 1.0
    default_speed: float = 1.0


@dataclass(slots=True)
class StoreConfig:
    """Seed values and capacities for the state store.

    Parameters
    ----------
    initial_wallet : float, default=1000.0
        Wallet balance seeded when a session starts.
    history_capacity : int, default=10
        Number of prior snapshots kept for rollback.
    feed_capacity : int, default=20
        Maximum number of feed entries retained per match.
    max_update_retries : int, default=3
        Attempts made by ``safe_update`` before escalating to a safe reset.
    default_bet_memory : float, default=25.0
        Stake remembered for both wager categories before the user places a bet.
    """

    initial_wallet: float = 1000.0
    history_capacity: int = 10
    feed_capacity: int = 20
    max_update_retries: int = 3
    default_bet_memory: float = 25.0


@dataclass(slots=True)
class TimelineConfig:
    """Spacing and distribution rules for generated match timelines.

    Parameters
    ----------
    min_event_spacing : float, default=8.0
        Minimum gap in minutes between consecutive generated events.
    max_event_spacing : float, default=18.0
        Maximum gap in minutes between consecutive generated events.
    goal_share : float, default=0.20
        Fraction of generated events that are goals.
    action_bet_share : float, default=0.45
        Fraction of generated events that open an action bet.
    commentary_share : float, default=0.35
        Fraction of generated events that are commentary only.
    resolution_offset : int, default=4
        Minutes between an action bet and its resolution.
    """

    min_event_spacing: float = 8.0
    max_event_spacing: float = 18.0
    goal_share: float = 0.20
    action_bet_share: float = 0.45
    commentary_share: float = 0.35
    resolution_offset: int = 4


@dataclass(slots=True)
class OddsConfig:
    """Initial odds and the adjustment rule applied after each goal.

    Parameters
    ----------
    initial_odds : Tuple[float, float, float], default=(1.85, 3.50, 4.20)
        Home, draw and away odds used when the lobby supplies none.
    leader_step : float, default=0.3
        Odds reduction per goal of lead for the leading side.
    draw_step : float, default=0.4
        Draw odds increase per goal of difference.
    trailer_step : float, default=0.6
        Odds increase per goal of deficit for the trailing side.
    min_odds : float, default=1.20
        Floor applied to the leading side's odds.
    max_draw_odds : float, default=5.00
        Ceiling applied to the draw odds.
    max_trailer_odds : float, default=8.00
        Ceiling applied to the trailing side's odds.
    """

    initial_odds: Tuple[float, float, float] = (1.85, 3.50, 4.20)
    leader_step: float = 0.3
    draw_step: float = 0.4
    trailer_step: float = 0.6
    min_odds: float = 1.20
    max_draw_odds: float = 5.00
    max_trailer_odds: float = 8.00


@dataclass(slots=True)
class SchedulerConfig:
    """Behaviour switches for the timeline scheduler.

    Parameters
    ----------
    strict_invariants : bool, default=True
        Raise ``SchedulingInvariantViolation`` instead of logging and rejecting
        the offending insertion. Development sessions keep this on.
    """

    strict_invariants: bool = True


@dataclass(slots=True)
class BettingWindowConfig:
    """Settings for the timed wagering window opened by action bets.

    Parameters
    ----------
    auto_pause : bool, default=True
        Pause the match automatically when an action bet opportunity opens.
    window_seconds : float, default=10.0
        Real seconds the window stays open before the ticker resumes play.
    """

    auto_pause: bool = True
    window_seconds: float = 10.0


@dataclass(slots=True)
class GameConfig:
    """Top-level container for all session tuning structures.

    Parameters
    ----------
    simulation : SimulationConfig, default=SimulationConfig()
        Match clock parameters.
    store : StoreConfig, default=StoreConfig()
        State store seeds and capacities.
    timeline : TimelineConfig, default=TimelineConfig()
        Timeline generation rules.
    odds : OddsConfig, default=OddsConfig()
        Odds recalculation rule.
    scheduler : SchedulerConfig, default=SchedulerConfig()
        Scheduler behaviour switches.
    betting_window : BettingWindowConfig, default=BettingWindowConfig()
        Action bet window settings.
    """

    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    timeline: TimelineConfig = field(default_factory=TimelineConfig)
    odds: OddsConfig = field(default_factory=OddsConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    betting_window: BettingWindowConfig = field(default_factory=BettingWindowConfig)

    @property
    def action_bet_cutoff(self) -> int:
        """Return the last minute an action bet can open and still resolve in time."""
        return self.simulation.match_duration - self.timeline.resolution_offset


GAME_CONFIG = GameConfig()
"""Default configuration shared by components that are not handed their own."""
