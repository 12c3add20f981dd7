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
"""Matchday: a simulated football match to bet against, minute by minute."""

from matchday.engine.config import GAME_CONFIG, GameConfig
from matchday.engine.session import MatchSession
from matchday.models.snapshot import MatchPhase, Snapshot, StatePath

__version__ = "0.1.0"

__all__ = ["GAME_CONFIG", "GameConfig", "MatchPhase", "MatchSession", "Snapshot", "StatePath", "__version__"]
