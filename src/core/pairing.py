"""
Round pairing for the formats that do not play in pools.
"""
import logging
import random
from typing import Dict, List, Optional

from core.models import Match, STANDARD_BYE_SCORE
from core.standings import rank_by_performance

logger = logging.getLogger(__name__)

# Each round splits a quadrette's four players into two groups.
# Over seven rounds every two-group split of A, B, C, D is used once:
# the four 3-vs-1 splits and the three 2-vs-2 splits.
QUADRETTE_SCHEDULE = {
    1: ('ABC', 'D'),
    2: ('AB', 'CD'),
    3: ('ABD', 'C'),
    4: ('AC', 'BD'),
    5: ('ACD', 'B'),
    6: ('AD', 'BC'),
    7: ('BCD', 'A'),
}


def have_played_before(team1_id, team2_id, matches) -> bool:
    """Check if two participants already met as direct opponents."""
    return any(
        (m.team1_id == team1_id and m.team2_id == team2_id) or
        (m.team1_id == team2_id and m.team2_id == team1_id)
        for m in matches
    )


def _court(index: int, courts: int) -> int:
    return ((index - 1) % courts) + 1


def generate_standard_round(teams, matches, round_number: int, courts: int,
                            rng: Optional[random.Random] = None) -> List[Match]:
    """
    Swiss-style pairing by performance.

    On an odd count one participant gets a bye: a random one in round 1,
    the lowest ranked afterwards. Everyone else is paired top-down with the
    first remaining participant they have not faced yet.
    """
    if len(teams) < 2:
        return []
    rng = rng or random.Random()

    remaining = rank_by_performance(teams)
    new_matches = []

    if len(remaining) % 2 == 1:
        if round_number == 1:
            bye_team = remaining[rng.randrange(len(remaining))]
        else:
            bye_team = remaining[-1]
        new_matches.append(Match.for_bye(bye_team.id, round_number, STANDARD_BYE_SCORE))
        remaining.remove(bye_team)
        logger.debug("Round %d bye for %s", round_number, bye_team.name)

    court_index = 1
    while len(remaining) > 1:
        team1 = remaining.pop(0)
        opponent_index = next(
            (i for i, team in enumerate(remaining) if not have_played_before(team1.id, team.id, matches)),
            0
        )
        team2 = remaining.pop(opponent_index)
        new_matches.append(Match(
            round=round_number,
            court=_court(court_index, courts),
            team1_id=team1.id,
            team2_id=team2.id,
        ))
        court_index += 1

    return new_matches


def group_quadrettes(teams) -> Dict[str, Dict[str, str]]:
    """
    Group sub-player participants by base team.

    Returns {base_team: {label: participant_id}}, base teams in first-seen order.
    """
    groups = {}
    for team in teams:
        base = team.attributes.get('base_team')
        if base is None:
            continue
        for player in team.players:
            if player.label:
                groups.setdefault(base, {})[player.label] = team.id
    return groups


def generate_quadrette_round(teams, round_number: int, courts: int) -> List[Match]:
    """One grouped match per quadrette, following QUADRETTE_SCHEDULE."""
    if round_number not in QUADRETTE_SCHEDULE:
        return []

    group1, group2 = QUADRETTE_SCHEDULE[round_number]
    new_matches = []
    court_index = 1
    for base, labels in group_quadrettes(teams).items():
        side1 = [labels[label] for label in group1 if label in labels]
        side2 = [labels[label] for label in group2 if label in labels]
        if not side1 or not side2:
            logger.warning("Quadrette %s is missing players for round %d", base, round_number)
            continue
        new_matches.append(Match(
            round=round_number,
            court=_court(court_index, courts),
            team1_ids=side1,
            team2_ids=side2,
        ))
        court_index += 1
    return new_matches


def generate_melee_round(teams, round_number: int, courts: int,
                         rng: Optional[random.Random] = None) -> List[Match]:
    """Random draw, one match per available court; leftovers sit the round out."""
    rng = rng or random.Random()
    shuffled = list(teams)
    rng.shuffle(shuffled)

    new_matches = []
    court_index = 1
    for i in range(0, len(shuffled) - 1, 2):
        if court_index > courts:
            break
        new_matches.append(Match(
            round=round_number,
            court=court_index,
            team1_id=shuffled[i].id,
            team2_id=shuffled[i + 1].id,
        ))
        court_index += 1

    unscheduled = len(shuffled) - 2 * len(new_matches)
    if unscheduled:
        logger.info("Round %d: %d participant(s) without a court", round_number, unscheduled)
    return new_matches


def generate_round(tournament, round_number: int, rng: Optional[random.Random] = None) -> List[Match]:
    """Pair the given round according to the tournament format."""
    teams = tournament.teams
    if len(teams) < 2:
        return []
    if tournament.type == 'quadrette':
        return generate_quadrette_round(teams, round_number, tournament.courts)
    if tournament.type == 'melee':
        return generate_melee_round(teams, round_number, tournament.courts, rng)
    return generate_standard_round(teams, tournament.matches, round_number, tournament.courts, rng)
