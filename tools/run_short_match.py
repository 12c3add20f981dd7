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
"""Run a full match synchronously and print the timeline summary."""
import random
from typing import Optional

from matchday.engine.session import MatchSession
from matchday.utils.debug import MatchDebugger
from matchday.utils.generator import event_statistics


def run_short_match(seed: Optional[int] = None, log_dir: Optional[str] = None) -> None:
    """Play a match minute by minute without a real-time ticker.

    Parameters
    ----------
    seed : Optional[int]
        Seed for timeline generation and resolutions; random when omitted.
    log_dir : Optional[str]
        Directory for the debug log; in-memory only when omitted.
    """
    session = MatchSession(rng=random.Random(seed), debugger=MatchDebugger(log_dir))
    session.start_match("Home", "Away")
    timeline = session.snapshot.match.timeline
    final = session.run_to_completion()

    stats = event_statistics(list(timeline))
    resolutions = session.scheduler.get_resolution_statistics()
    print(f"Final score {final.match.score_line}, odds {final.match.odds.as_tuple()}")
    print(
        f"{stats.total} events: {stats.goals} goals ({stats.goal_percentage}%), "
        f"{stats.action_bets} action bets, {stats.commentary} commentary"
    )
    print(f"Resolved {resolutions.resolved_count}/{resolutions.total_action_bets} ({resolutions.resolution_rate}%)")
    session.debugger.close()


if __name__ == "__main__":
    run_short_match()
