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
"""Entry point for a headless demo match driven by the real-time ticker."""
import threading
import time

from matchday.engine.notifications import (
    ActionBetResolved,
    ActionBettingOpportunity,
    GoalScored,
    MatchEnd,
)
from matchday.engine.session import MatchSession
from matchday.engine.ticker import MatchTicker
from matchday.models.bet import BetCategory, BetStatus
from matchday.models.snapshot import MatchPhase


def print_match_status(session: MatchSession, ticker: MatchTicker) -> None:
    """Print the clock and score whenever the simulated minute changes.

    Parameters
    ----------
    session : MatchSession
        Session whose snapshot is reported.
    ticker : MatchTicker
        Ticker driving the session; printing stops when it stops.
    """
    last_minute = -1
    while ticker.is_running:
        match = session.snapshot.match
        if match.simulated_minute != last_minute and match.simulated_minute % 15 == 0:
            print(f"{match.simulated_minute:02d}' {match.home_team} {match.score_line} {match.away_team}")
        last_minute = match.simulated_minute
        time.sleep(0.01)


def main() -> None:
    """Play one demo match with a full-match bet and automatic action bets."""
    session = MatchSession()

    def on_goal(note: GoalScored) -> None:
        odds = note.new_odds
        print(f"{note.minute:02d}' GOAL {note.player} ({note.team}) -> odds {odds.home}/{odds.draw}/{odds.away}")

    def on_opportunity(note: ActionBettingOpportunity) -> None:
        print(f"{note.minute:02d}' {note.description}")
        choice = min(note.choices, key=lambda c: c.odds)
        stake = session.store.get_bet_memory(BetCategory.ACTION)
        session.place_bet(BetCategory.ACTION, choice.outcome, stake, note.event_id)
        session.close_betting_window("bet_placed")

    def on_resolved(note: ActionBetResolved) -> None:
        won = sum(1 for b in note.settled_bets if b.status == BetStatus.WON)
        print(f"   {note.event_id}: {note.winning_outcome} ({won}/{len(note.settled_bets)} bets won)")

    def on_end(note: MatchEnd) -> None:
        print(f"Full time: {note.final_state.match.score_line} ({note.outcome})")

    session.on(GoalScored, on_goal)
    session.on(ActionBettingOpportunity, on_opportunity)
    session.on(ActionBetResolved, on_resolved)
    session.on(MatchEnd, on_end)

    session.start_match("Cardiff Dragons", "Swansea Jacks")
    session.place_bet(BetCategory.FULL_MATCH, "home", 50.0)

    ticker = MatchTicker(session, tick_interval=0.05, betting_window=0.5)
    ticker_thread = ticker.start()
    status_thread = threading.Thread(target=print_match_status, args=(session, ticker))
    status_thread.start()

    try:
        ticker_thread.join()
    except KeyboardInterrupt:
        print("\nMatch simulation interrupted.")
    finally:
        ticker.stop()
        status_thread.join(timeout=3.0)

    if session.phase != MatchPhase.ENDED:
        session.return_to_lobby()
    for line in session.debugger.get_recent_events(5, category="ERROR"):
        print(line)


if __name__ == "__main__":
    main()
