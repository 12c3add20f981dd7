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
"""Odds recalculation after goals and implied-probability helpers."""

from __future__ import annotations

from typing import Dict

from matchday.engine.config import GAME_CONFIG, OddsConfig
from matchday.models.snapshot import Odds


def calculate_odds(initial: Odds, home_score: int, away_score: int, config: OddsConfig = GAME_CONFIG.odds) -> Odds:
    """Derive full-match odds from the kick-off odds and the running score.

    The leading side's odds shorten by ``leader_step`` per goal of lead (never
    below ``min_odds``); the draw lengthens by ``draw_step`` per goal (never above
    ``max_draw_odds``) and the trailing side lengthens by ``trailer_step`` per
    goal (never above ``max_trailer_odds``). A level score restores the kick-off
    odds.

    Parameters
    ----------
    initial : Odds
        Odds offered at kick-off.
    home_score : int
        Goals scored by the home side.
    away_score : int
        Goals scored by the away side.
    config : OddsConfig
        Step sizes and bounds to apply.

    Returns
    -------
    Odds
        Recalculated odds rounded to two decimal places.
    """
    home, draw, away = initial.as_tuple()
    diff = home_score - away_score

    if diff > 0:
        home = max(config.min_odds, home - diff * config.leader_step)
        draw = min(config.max_draw_odds, draw + diff * config.draw_step)
        away = min(config.max_trailer_odds, away + diff * config.trailer_step)
    elif diff < 0:
        lead = -diff
        away = max(config.min_odds, away - lead * config.leader_step)
        draw = min(config.max_draw_odds, draw + lead * config.draw_step)
        home = min(config.max_trailer_odds, home + lead * config.trailer_step)

    return Odds(home=round(home, 2), draw=round(draw, 2), away=round(away, 2))


def implied_probability(odds: float) -> float:
    """Convert decimal odds to an implied probability percentage.

    Parameters
    ----------
    odds : float
        Decimal odds; must be positive.

    Returns
    -------
    float
        Probability in percent, rounded to two decimal places.
    """
    if odds <= 0:
        raise ValueError("Odds must be a positive number")
    return round(100.0 / odds, 2)


def odds_change(old: Odds, new: Odds) -> Dict[str, float]:
    """Return the percentage movement of each outcome between two odds records.

    Parameters
    ----------
    old : Odds
        Odds before the change.
    new : Odds
        Odds after the change.

    Returns
    -------
    Dict[str, float]
        Percentage change keyed by ``"home"``, ``"draw"`` and ``"away"``.
    """
    result: Dict[str, float] = {}
    for key, before, after in zip(("home", "draw", "away"), old.as_tuple(), new.as_tuple()):
        result[key] = round((after - before) / before * 100.0, 2)
    return result
