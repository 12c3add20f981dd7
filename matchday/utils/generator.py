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
"""Utilities that synthesise match timelines for quick simulations."""
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from matchday.engine.config import GAME_CONFIG, GameConfig
from matchday.engine.events import (
    ActionBetPayload,
    Choice,
    CommentaryPayload,
    EventType,
    GoalPayload,
    KickOffPayload,
    MatchEvent,
)

ACTION_BET_TEMPLATES: List[Dict[str, object]] = [
    {
        "category": "corner",
        "description": "Corner kick awarded! Will it result in a goal?",
        "choices": [("goal", "Goal from corner", 4.5), ("shot", "Shot on target", 2.8), ("cleared", "Corner cleared safely", 1.6)],
    },
    {
        "category": "freekick",
        "description": "Free kick in dangerous position! What happens next?",
        "choices": [("goal", "Direct free kick goal", 5.2), ("wall", "Hits the wall", 2.1), ("save", "Goalkeeper saves", 2.4)],
    },
    {
        "category": "attack",
        "description": "Dangerous attack developing! How does it end?",
        "choices": [("goal", "Goal scored!", 3.8), ("save", "Great save by keeper", 2.2), ("miss", "Shot goes wide", 2.0)],
    },
    {
        "category": "penalty",
        "description": "PENALTY! What will be the outcome?",
        "choices": [("goal", "Penalty scored", 1.4), ("save", "Penalty saved!", 4.8), ("miss", "Penalty missed!", 6.2)],
    },
    {
        "category": "card",
        "description": "Referee reaches for his pocket! What card?",
        "choices": [("yellow", "Yellow card shown", 1.8), ("red", "Red card!", 4.5), ("warning", "Just a warning", 2.3)],
    },
]

COMMENTARY_TEMPLATES: List[Tuple[str, str, str]] = [
    ("possession", "Good passing move in midfield", "low"),
    ("defense", "Solid defensive work to break up the attack", "medium"),
    ("crowd", "The crowd is getting behind their team!", "medium"),
    ("weather", "Playing conditions remain good for football", "low"),
    ("substitution", "The manager is considering a tactical change", "medium"),
    ("pressure", "Building pressure as we approach the final third", "high"),
    ("tempo", "The pace of the game is picking up now", "medium"),
    ("tactics", "Interesting tactical battle developing", "low"),
]

PLAYER_NAMES = [
    "Rodriguez", "Silva", "Johnson", "Martinez", "Anderson", "Wilson",
    "Garcia", "Brown", "Davis", "Miller", "Taylor", "Thomas",
    "Jackson", "White", "Harris", "Martin", "Thompson", "Moore",
]

GOAL_TYPES = ["header", "right_foot", "left_foot", "volley", "tap_in", "long_shot"]

KICK_OFF_ID = "kick_off"


@dataclass
class EventStatistics:
    """Summary of a generated timeline.

    Parameters
    ----------
    total : int
        Number of goal, action bet and commentary events.
    goals : int
        Goal events.
    action_bets : int
        Action bet events.
    commentary : int
        Commentary events.
    average_spacing : float
        Mean gap in minutes between consecutive counted events.
    min_spacing : int
        Smallest gap, ``0`` when fewer than two events exist.
    max_spacing : int
        Largest gap, ``0`` when fewer than two events exist.
    goal_percentage : str
        Share of goals formatted with one decimal place.
    action_bet_percentage : str
        Share of action bets formatted with one decimal place.
    commentary_percentage : str
        Share of commentary formatted with one decimal place.
    """

    total: int
    goals: int
    action_bets: int
    commentary: int
    average_spacing: float
    min_spacing: int
    max_spacing: int
    goal_percentage: str
    action_bet_percentage: str
    commentary_percentage: str


def event_id_for(index: int, minute: int) -> str:
    """Build the identifier of a generated event.

    Parameters
    ----------
    index : int
        Position of the event among the generated events.
    minute : int
        Scheduled minute of the event.

    Returns
    -------
    str
        Identifier such as ``"event_03_27"``.
    """
    return f"event_{index:02d}_{minute:02d}"


def validate_distribution(config: GameConfig = GAME_CONFIG) -> bool:
    """Check that the configured event shares add up to one.

    Parameters
    ----------
    config : GameConfig
        Configuration holding the shares.

    Returns
    -------
    bool
        ``True`` when the shares sum to 1 within floating point tolerance.
    """
    timeline = config.timeline
    total = timeline.goal_share + timeline.action_bet_share + timeline.commentary_share
    return abs(total - 1.0) < 1e-3


def generate_event_times(rng: random.Random, config: GameConfig = GAME_CONFIG) -> List[int]:
    """Pick event minutes spaced by the configured gap range.

    Parameters
    ----------
    rng : random.Random
        Random source.
    config : GameConfig
        Supplies spacing bounds and match duration.

    Returns
    -------
    List[int]
        Ascending whole minutes, all before the final whistle.
    """
    timeline = config.timeline
    duration = config.simulation.match_duration

    def spacing() -> float:
        return rng.uniform(timeline.min_event_spacing, timeline.max_event_spacing)

    times: List[int] = []
    current = spacing()  # random offset from kick-off
    while current < duration:
        minute = int(current + 0.5)
        if minute >= duration:
            break
        times.append(minute)
        current += spacing()
    return times


def distribute_event_types(total: int, rng: random.Random, config: GameConfig = GAME_CONFIG) -> List[EventType]:
    """Assign event types to ``total`` slots following the configured shares.

    Parameters
    ----------
    total : int
        Number of slots.
    rng : random.Random
        Random source used to shuffle the assignment.
    config : GameConfig
        Supplies the goal and action bet shares; commentary fills the rest.

    Returns
    -------
    List[EventType]
        Shuffled list of ``total`` event types.
    """
    goals = int(total * config.timeline.goal_share + 0.5)
    action_bets = min(total - goals, int(total * config.timeline.action_bet_share + 0.5))
    commentary = total - goals - action_bets
    types = [EventType.GOAL] * goals + [EventType.ACTION_BET] * action_bets + [EventType.COMMENTARY] * commentary
    rng.shuffle(types)
    return types


def generate_goal_event(
    event_id: str,
    minute: int,
    rng: random.Random,
    home_team: str = "",
    away_team: str = "",
) -> MatchEvent:
    """Generate a goal for a random side and scorer.

    Parameters
    ----------
    event_id : str
        Identifier to assign.
    minute : int
        Scheduled minute.
    rng : random.Random
        Random source.
    home_team : str
        Home side name used in the description.
    away_team : str
        Away side name used in the description.

    Returns
    -------
    MatchEvent
        ``GOAL`` event with a :class:`GoalPayload`.
    """
    team = "home" if rng.random() < 0.5 else "away"
    player = rng.choice(PLAYER_NAMES)
    side = (home_team if team == "home" else away_team) or f"the {team} team"
    return MatchEvent(
        event_id=event_id,
        event_type=EventType.GOAL,
        scheduled_minute=minute,
        description=f"GOAL! {player} scores for {side}!",
        payload=GoalPayload(team=team, player=player, goal_type=rng.choice(GOAL_TYPES)),
    )


def generate_action_bet_event(event_id: str, minute: int, rng: random.Random) -> MatchEvent:
    """Generate an action bet from a random situation template.

    Parameters
    ----------
    event_id : str
        Identifier to assign.
    minute : int
        Scheduled minute.
    rng : random.Random
        Random source.

    Returns
    -------
    MatchEvent
        ``ACTION_BET`` event with an :class:`ActionBetPayload`.
    """
    template = rng.choice(ACTION_BET_TEMPLATES)
    choices = tuple(Choice(outcome=o, description=d, odds=odds) for o, d, odds in template["choices"])
    return MatchEvent(
        event_id=event_id,
        event_type=EventType.ACTION_BET,
        scheduled_minute=minute,
        description=str(template["description"]),
        payload=ActionBetPayload(category=str(template["category"]), choices=choices),
    )


def generate_commentary_event(event_id: str, minute: int, rng: random.Random) -> MatchEvent:
    """Generate an atmosphere commentary line.

    Parameters
    ----------
    event_id : str
        Identifier to assign.
    minute : int
        Scheduled minute.
    rng : random.Random
        Random source.

    Returns
    -------
    MatchEvent
        ``COMMENTARY`` event with a :class:`CommentaryPayload`.
    """
    category, description, intensity = rng.choice(COMMENTARY_TEMPLATES)
    return MatchEvent(
        event_id=event_id,
        event_type=EventType.COMMENTARY,
        scheduled_minute=minute,
        description=description,
        payload=CommentaryPayload(category=category, intensity=intensity),
    )


def generate_kick_off(home_team: str = "", away_team: str = "") -> MatchEvent:
    """Create the opening whistle at minute 0.

    Parameters
    ----------
    home_team : str
        Home side name.
    away_team : str
        Away side name.

    Returns
    -------
    MatchEvent
        ``KICK_OFF`` event.
    """
    fixture = f" {home_team} vs {away_team}" if home_team and away_team else ""
    return MatchEvent(
        event_id=KICK_OFF_ID,
        event_type=EventType.KICK_OFF,
        scheduled_minute=0,
        description=f"Kick-off!{fixture}",
        payload=KickOffPayload(home_team=home_team, away_team=away_team),
    )


def generate_match_timeline(
    rng: Optional[random.Random] = None,
    config: GameConfig = GAME_CONFIG,
    home_team: str = "",
    away_team: str = "",
) -> List[MatchEvent]:
    """Generate a complete match timeline starting with the kick-off.

    Action bets that would open after the configured cutoff become commentary,
    so every opportunity can still resolve before the final whistle. Resolution
    events are not included; the scheduler injects them.

    Parameters
    ----------
    rng : random.Random | None
        Random source; a fresh unseeded generator when omitted.
    config : GameConfig
        Spacing, shares and cutoff.
    home_team : str
        Home side name.
    away_team : str
        Away side name.

    Returns
    -------
    List[MatchEvent]
        Events sorted by scheduled minute.
    """
    rng = rng if rng is not None else random.Random()
    times = generate_event_times(rng, config)
    types = distribute_event_types(len(times), rng, config)
    cutoff = config.action_bet_cutoff

    events = [generate_kick_off(home_team, away_team)]
    for index, (minute, event_type) in enumerate(zip(times, types), start=1):
        event_id = event_id_for(index, minute)
        if event_type == EventType.ACTION_BET and minute > cutoff:
            event_type = EventType.COMMENTARY
        if event_type == EventType.GOAL:
            events.append(generate_goal_event(event_id, minute, rng, home_team, away_team))
        elif event_type == EventType.ACTION_BET:
            events.append(generate_action_bet_event(event_id, minute, rng))
        else:
            events.append(generate_commentary_event(event_id, minute, rng))

    events.sort(key=lambda e: e.scheduled_minute)
    return events


def _percentage(count: int, total: int) -> str:
    """Format ``count`` as a share of ``total``.

    Parameters
    ----------
    count : int
        Events of one type.
    total : int
        All counted events.

    Returns
    -------
    str
        Percentage with one decimal place; ``"0.0"`` for an empty total.
    """
    return f"{(count / total * 100) if total else 0.0:.1f}"


def event_statistics(events: List[MatchEvent]) -> EventStatistics:
    """Summarise the goal, action bet and commentary events of a timeline.

    Parameters
    ----------
    events : List[MatchEvent]
        Timeline to analyse; kick-off and resolution events are ignored.

    Returns
    -------
    EventStatistics
        Counts, spacing and percentage shares.
    """
    counted = [
        e for e in events if e.event_type in (EventType.GOAL, EventType.ACTION_BET, EventType.COMMENTARY)
    ]
    goals = sum(1 for e in counted if e.event_type == EventType.GOAL)
    action_bets = sum(1 for e in counted if e.event_type == EventType.ACTION_BET)
    commentary = len(counted) - goals - action_bets
    spacings = [b.scheduled_minute - a.scheduled_minute for a, b in zip(counted, counted[1:])]
    total = len(counted)
    return EventStatistics(
        total=total,
        goals=goals,
        action_bets=action_bets,
        commentary=commentary,
        average_spacing=sum(spacings) / len(spacings) if spacings else 0.0,
        min_spacing=min(spacings) if spacings else 0,
        max_spacing=max(spacings) if spacings else 0,
        goal_percentage=_percentage(goals, total),
        action_bet_percentage=_percentage(action_bets, total),
        commentary_percentage=_percentage(commentary, total),
    )
