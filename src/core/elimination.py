"""
Single elimination bracket built from pool qualifiers.

The bracket is never stored as such. It is rebuilt on every pass from the
qualified slots and the recorded winners, so changing a winner re-routes
every later phase the next time it is derived.
"""
import logging
import math
from typing import Dict, List, Optional

from core.models import Match
from core.pools import CourtCycle, MatchIndex, is_pool_complete, pool_qualifiers

logger = logging.getLogger(__name__)

ELIMINATION_ROUND_OFFSET = 100

PHASE_NAMES = {
    2: "finale",
    4: "demi-finale",
    8: "quart-de-finale",
    16: "huitième-de-finale",
    32: "seizième-de-finale",
    64: "trente-deuxième-de-finale",
}


def get_phase_name(teams_in_phase: int) -> str:
    """Get the name of a phase based on the number of teams it starts with."""
    if teams_in_phase in PHASE_NAMES:
        return PHASE_NAMES[teams_in_phase]
    return f"1/{teams_in_phase // 2}e-de-finale"


def calculate_bracket_size(num_teams: int) -> int:
    """Calculate the bracket size (next power of 2, at least 2)."""
    if num_teams <= 0:
        return 0
    return max(2, 2 ** math.ceil(math.log2(num_teams)))


def phase_names(slot_count: int) -> List[str]:
    """Minimal phase plan for the given number of qualified slots, final last."""
    bracket_size = calculate_bracket_size(slot_count)
    names = []
    teams_in_phase = bracket_size
    while teams_in_phase >= 2:
        names.append(get_phase_name(teams_in_phase))
        teams_in_phase //= 2
    return names


def match_code(phase_index: int, match_number: int) -> str:
    return f"E{phase_index}-M{match_number}"


def collect_qualified(tournament) -> List[Optional[str]]:
    """Two slots per pool, in pool order. An undecided pool leaves both slots empty."""
    slots = []
    for pool in tournament.pools:
        qualifiers = pool_qualifiers(pool, tournament.matches)
        slots.extend(qualifiers if qualifiers else [None, None])
    return slots


def _outcome(match):
    """(winner, closed) of a bracket match; a closed match can never produce a team."""
    return match['winner'], match['closed']


def _build_match(phase_index, phase, match_number, side1, side2, winners):
    """
    side1 / side2 are (team, closed) pairs. A closed side never fills up,
    so a match with one team against a closed side is a bye.
    """
    team1, closed1 = side1
    team2, closed2 = side2
    code = match_code(phase_index, match_number)

    winner = None
    is_bye = False
    closed = closed1 and closed2
    if team1 and team2:
        recorded = winners.get(code)
        # A winner recorded for a pairing that no longer stands is ignored
        if recorded in (team1, team2):
            winner = recorded
    elif team1 and closed2:
        winner, is_bye = team1, True
    elif team2 and closed1:
        winner, is_bye = team2, True

    return {
        'code': code,
        'phase': phase,
        'phase_index': phase_index,
        'match_number': match_number,
        'teams': (team1, team2),
        'is_bye': is_bye,
        'is_playable': bool(team1 and team2 and winner is None),
        'is_placeholder': not (team1 and team2) and not is_bye and not closed,
        'winner': winner,
        'closed': closed,
    }


def build_bracket(slots: List[Optional[str]], winners: Optional[Dict[str, str]] = None) -> Dict:
    """
    Rebuild the whole bracket from the qualified slots and recorded winners.

    Phase 1 pairs slot 1 v 2, 3 v 4, ... A slot without an opponent goes
    through as a bye. Match i of every later phase is the winner of the
    previous phase's match 2i against the winner of match 2i+1.

    Returns dict with:
    - 'phases': phase names, first to final
    - 'rounds': phase name -> list of match dicts
    - 'champion': winner of the final, if decided
    """
    if winners is None:
        winners = {}

    if not slots:
        return {'slots': [], 'phases': [], 'rounds': {}, 'bracket_size': 0,
                'total_phases': 0, 'champion': None}

    names = phase_names(len(slots))
    rounds = {}
    previous = None

    for phase_index, phase in enumerate(names, start=1):
        phase_matches = []
        if previous is None:
            for i in range(0, len(slots), 2):
                slot1 = slots[i]
                slot2 = slots[i + 1] if i + 1 < len(slots) else None
                phase_matches.append(_build_match(
                    phase_index, phase, i // 2 + 1,
                    (slot1, slot1 is None), (slot2, slot2 is None), winners))
        else:
            for i in range(0, len(previous), 2):
                side1 = _outcome(previous[i])
                side2 = _outcome(previous[i + 1]) if i + 1 < len(previous) else (None, True)
                phase_matches.append(_build_match(
                    phase_index, phase, i // 2 + 1, side1, side2, winners))
        rounds[phase] = phase_matches
        previous = phase_matches

    final = rounds[names[-1]][0]
    return {
        'slots': list(slots),
        'phases': names,
        'rounds': rounds,
        'bracket_size': calculate_bracket_size(len(slots)),
        'total_phases': len(names),
        'champion': final['winner'],
    }


def iter_bracket_matches(bracket):
    for phase in bracket['phases']:
        for match in bracket['rounds'][phase]:
            yield match


def resolve_byes(bracket: Dict, winners: Dict[str, str]) -> Dict[str, str]:
    """Bye winners that are not recorded yet (or recorded differently)."""
    resolved = {}
    for match in iter_bracket_matches(bracket):
        if match['is_bye'] and winners.get(match['code']) != match['winner']:
            resolved[match['code']] = match['winner']
    return resolved


def record_winner(winners: Dict[str, str], code: str, team_id: str) -> Dict[str, str]:
    """Record a decision; the last write wins."""
    winners[code] = team_id
    return winners


def all_pools_complete(tournament) -> bool:
    return bool(tournament.pools) and all(is_pool_complete(p, tournament.matches) for p in tournament.pools)


def current_bracket(tournament) -> Optional[Dict]:
    """The bracket for the tournament's present state, or None before pools are done."""
    if not all_pools_complete(tournament):
        return None
    return build_bracket(collect_qualified(tournament), tournament.bracket_winners)


def derive_elimination_matches(tournament) -> List[Match]:
    """Match records for every bracket match whose two opponents are now known."""
    bracket = current_bracket(tournament)
    if bracket is None:
        return []

    index = MatchIndex(tournament.matches)
    courts = CourtCycle(tournament.courts, tournament.matches)
    new_matches = []

    for match in iter_bracket_matches(bracket):
        team1, team2 = match['teams']
        if not (team1 and team2):
            continue
        round_number = ELIMINATION_ROUND_OFFSET + match['phase_index']
        if index.contains(match['code'], round_number, [team1, team2]):
            continue
        record = Match(round=round_number, court=courts.next(), team1_id=team1, team2_id=team2,
                       phase=match['phase'], bracket_code=match['code'])
        index.add(record)
        new_matches.append(record)
        logger.info("%s %s: %s v %s", match['phase'], match['code'], team1, team2)

    return new_matches


def find_bracket_match(bracket: Dict, code: str) -> Optional[Dict]:
    return next((m for m in iter_bracket_matches(bracket) if m['code'] == code), None)


def is_superseded(match, bracket: Optional[Dict]) -> bool:
    """True for a bracket record whose pairing is no longer in the bracket."""
    if not match.bracket_code:
        return False
    live = find_bracket_match(bracket, match.bracket_code) if bracket else None
    return live is None or frozenset(live['teams']) != match.opponents()


def live_matches(tournament, bracket: Optional[Dict] = None) -> List[Match]:
    """The match list without superseded bracket records; those stay stored but no longer count."""
    if bracket is None:
        bracket = current_bracket(tournament)
    return [m for m in tournament.matches if not is_superseded(m, bracket)]
