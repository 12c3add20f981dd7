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
"""Wager domain models."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class BetCategory(str, Enum):
    """Wager families tracked separately in the snapshot."""

    FULL_MATCH = "full_match"
    ACTION = "action"


class BetStatus(str, Enum):
    """Settlement state of a single wager."""

    PENDING = "pending"
    WON = "won"
    LOST = "lost"


@dataclass(frozen=True, slots=True)
class Bet:
    """A single wager placed by the user.

    The betting collaborator creates bets in the ``pending`` state. Only the
    settlement path inside the scheduler and phase machine moves them to
    ``won`` or ``lost``.

    Parameters
    ----------
    bet_id : str
        Identifier unique within the session.
    category : BetCategory
        Whether the wager is on the full match or on an action bet.
    outcome : str
        Backed outcome: ``"home"``, ``"draw"`` or ``"away"`` for full-match
        bets, a choice outcome key for action bets.
    stake : float
        Amount wagered; must be positive.
    odds : float
        Decimal odds at placement; must exceed 1.
    status : BetStatus, optional
        Settlement state, ``pending`` until resolved.
    payout_multiplier : float, optional
        Multiplier applied by the power-up collaborator.
    placed_at_minute : int, optional
        Simulated minute the wager was placed.
    resolved_at_minute : int | None, optional
        Simulated minute the wager was settled.
    event_id : str | None, optional
        Originating ``ACTION_BET`` event for action bets.
    """

    bet_id: str
    category: BetCategory
    outcome: str
    stake: float
    odds: float
    status: BetStatus = BetStatus.PENDING
    payout_multiplier: float = 1.0
    placed_at_minute: int = 0
    resolved_at_minute: Optional[int] = None
    event_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate stake and odds at construction time."""
        if isinstance(self.stake, bool) or self.stake <= 0:
            raise ValueError("Bet stake must be a positive number")
        if self.odds <= 1:
            raise ValueError("Bet odds must be greater than 1")
        if self.category == BetCategory.ACTION and not self.event_id:
            raise ValueError("Action bets must reference their originating event")

    @property
    def is_pending(self) -> bool:
        """Return ``True`` while the bet awaits settlement."""
        return self.status == BetStatus.PENDING

    def settled(self, winning_outcome: str, minute: int) -> "Bet":
        """Return a settled copy of this bet.

        Parameters
        ----------
        winning_outcome : str
            Outcome that actually happened.
        minute : int
            Simulated minute of settlement.

        Returns
        -------
        Bet
            Copy marked ``won`` when the backed outcome matches, ``lost`` otherwise.
        """
        status = BetStatus.WON if self.outcome == winning_outcome else BetStatus.LOST
        return replace(self, status=status, resolved_at_minute=minute)


def determine_match_outcome(home_score: int, away_score: int) -> str:
    """Map a final score to the full-match outcome key.

    Parameters
    ----------
    home_score : int
        Goals scored by the home side.
    away_score : int
        Goals scored by the away side.

    Returns
    -------
    str
        ``"home"``, ``"away"`` or ``"draw"``.
    """
    if home_score > away_score:
        return "home"
    if away_score > home_score:
        return "away"
    return "draw"
