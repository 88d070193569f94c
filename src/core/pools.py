"""
Pool play: a closed mini-bracket inside each pool of 3 or 4 teams.

Pool progression is re-derived from the whole match list after every score
update. Each pass only emits the matches that are newly unlocked and not
already present, so running it again on the same state emits nothing.

4-team pool (seeds 1-4 in pool order):
    round 1: 1 v 4, 2 v 3
    round 2: winners match, losers match
    round 3: barrage between the two teams on exactly one win

3-team pool:
    round 1: 2 v 3, bye for seed 1
    round 2: winner of 2 v 3 against seed 1, bye for the loser
    round 3: barrage between the two teams on exactly one win
"""
import logging
from typing import Dict, List, Optional

from core.models import Match, POOL_BYE_SCORE
from core.standings import team_stats_in

logger = logging.getLogger(__name__)

BARRAGE_ROUND = 3


class MatchIndex:
    """Lookup of existing matches by (scope, round, unordered opponents)."""

    def __init__(self, matches=()):
        self._keys = set()
        for match in matches:
            self.add(match)

    @staticmethod
    def scope_of(match):
        return match.pool_id or match.bracket_code

    @staticmethod
    def key(scope, round, team_ids):
        return (scope, round, frozenset(team_ids))

    def add(self, match):
        self._keys.add(self.key(self.scope_of(match), match.round, match.opponents()))

    def contains(self, scope, round, team_ids) -> bool:
        return self.key(scope, round, team_ids) in self._keys

    def __contains__(self, match):
        return self.key(self.scope_of(match), match.round, match.opponents()) in self._keys

    def __len__(self):
        return len(self._keys)


class CourtCycle:
    """Hands out court numbers 1..courts round-robin, continuing after the last used court."""

    def __init__(self, courts: int, matches=()):
        self.courts = max(courts, 1)
        last = max((m.court for m in matches), default=0)
        self._next = (last % self.courts) + 1

    def next(self) -> int:
        court = self._next
        self._next = (court % self.courts) + 1
        return court


def winner_of(match, team_a, team_b):
    """Return whichever of the two teams scored more in a completed match."""
    a_first = team_a in match.side1()
    score_a = match.team1_score if a_first else match.team2_score
    score_b = match.team2_score if a_first else match.team1_score
    return team_a if (score_a or 0) > (score_b or 0) else team_b


def loser_of(match, team_a, team_b):
    winner = winner_of(match, team_a, team_b)
    return team_b if winner == team_a else team_a


def find_match(matches, round, team_a, team_b) -> Optional[Match]:
    wanted = frozenset([team_a, team_b])
    return next((m for m in matches if m.round == round and not m.is_bye and m.opponents() == wanted), None)


def find_barrage(matches) -> Optional[Match]:
    return next((m for m in matches if m.round == BARRAGE_ROUND and not m.is_bye), None)


def _teams_on_one_win(team_ids, matches) -> List[str]:
    stats = team_stats_in(team_ids, matches)
    return [team_id for team_id in team_ids if stats[team_id]['wins'] == 1]


class _PoolPass:
    """Emission context for one derivation pass over the pools."""

    def __init__(self, tournament):
        self.index = MatchIndex(tournament.matches)
        self.courts = CourtCycle(tournament.courts, tournament.matches)
        self.new_matches = []

    def match(self, pool, round, team1_id, team2_id):
        if self.index.contains(pool.id, round, [team1_id, team2_id]):
            return
        match = Match(round=round, court=self.courts.next(), team1_id=team1_id,
                      team2_id=team2_id, pool_id=pool.id)
        self.index.add(match)
        self.new_matches.append(match)
        logger.debug("Pool %s round %d: new match %s v %s", pool.name, round, team1_id, team2_id)

    def bye(self, pool, round, team_id):
        if self.index.contains(pool.id, round, [team_id]):
            return
        match = Match.for_bye(team_id, round, POOL_BYE_SCORE, pool_id=pool.id)
        self.index.add(match)
        self.new_matches.append(match)
        logger.debug("Pool %s round %d: bye for %s", pool.name, round, team_id)


def _progress_four(pool, pool_matches, emit):
    s1, s2, s3, s4 = pool.team_ids
    emit.match(pool, 1, s1, s4)
    emit.match(pool, 1, s2, s3)

    first = find_match(pool_matches, 1, s1, s4)
    second = find_match(pool_matches, 1, s2, s3)
    if first and first.completed and second and second.completed:
        winner1, loser1 = winner_of(first, s1, s4), loser_of(first, s1, s4)
        winner2, loser2 = winner_of(second, s2, s3), loser_of(second, s2, s3)
        emit.match(pool, 2, winner1, winner2)
        emit.match(pool, 2, loser1, loser2)

    completed = [m for m in pool_matches if m.completed]
    if len(completed) >= 3:
        tied = _teams_on_one_win(pool.team_ids, completed)
        if len(tied) == 2:
            emit.match(pool, BARRAGE_ROUND, tied[0], tied[1])


def _progress_three(pool, pool_matches, emit):
    s1, s2, s3 = pool.team_ids
    emit.match(pool, 1, s2, s3)
    emit.bye(pool, 1, s1)

    opener = find_match(pool_matches, 1, s2, s3)
    if not (opener and opener.completed):
        return
    winner, loser = winner_of(opener, s2, s3), loser_of(opener, s2, s3)
    emit.match(pool, 2, winner, s1)
    emit.bye(pool, 2, loser)

    decider = find_match(pool_matches, 2, winner, s1)
    if decider and decider.completed:
        completed = [m for m in pool_matches if m.completed]
        tied = _teams_on_one_win(pool.team_ids, completed)
        if len(tied) == 2:
            emit.match(pool, BARRAGE_ROUND, tied[0], tied[1])


def derive_pool_matches(tournament) -> List[Match]:
    """Return the pool matches unlocked by the current state, in pool order."""
    emit = _PoolPass(tournament)
    for pool in tournament.pools:
        pool_matches = [m for m in tournament.matches if m.pool_id == pool.id]
        if len(pool.team_ids) == 4:
            _progress_four(pool, pool_matches, emit)
        elif len(pool.team_ids) == 3:
            _progress_three(pool, pool_matches, emit)
        else:
            logger.warning("Pool %s has %d teams, expected 3 or 4", pool.name, len(pool.team_ids))
    return emit.new_matches


def _second_by_barrage(pool, completed, barrage, exclude):
    """
    Second qualifier: the barrage winner, or the best remaining team when
    no barrage is needed. None while a barrage is pending.
    """
    if barrage is not None:
        if not barrage.completed:
            return None
        team_a, team_b = barrage.team1_id, barrage.team2_id
        return winner_of(barrage, team_a, team_b)

    if len(_teams_on_one_win(pool.team_ids, completed)) == 2:
        return None

    stats = team_stats_in(pool.team_ids, completed)
    rest = [t for t in pool.team_ids if t != exclude]
    rest.sort(key=lambda t: (-stats[t]['wins'], -stats[t]['performance']))
    return rest[0]


def pool_qualifiers(pool, matches) -> Optional[List[str]]:
    """
    The two qualifying team ids of a pool, first place first.

    Returns None until the pool is fully decided.
    """
    pool_matches = [m for m in matches if m.pool_id == pool.id]
    completed = [m for m in pool_matches if m.completed]
    barrage = find_barrage(pool_matches)

    if len(pool.team_ids) == 4:
        s1, s2, s3, s4 = pool.team_ids
        first = find_match(pool_matches, 1, s1, s4)
        second = find_match(pool_matches, 1, s2, s3)
        if not (first and first.completed and second and second.completed):
            return None
        winner1, loser1 = winner_of(first, s1, s4), loser_of(first, s1, s4)
        winner2, loser2 = winner_of(second, s2, s3), loser_of(second, s2, s3)
        winners_match = find_match(pool_matches, 2, winner1, winner2)
        losers_match = find_match(pool_matches, 2, loser1, loser2)
        if not (winners_match and winners_match.completed and losers_match and losers_match.completed):
            return None
        top = winner_of(winners_match, winner1, winner2)

    elif len(pool.team_ids) == 3:
        s1, s2, s3 = pool.team_ids
        opener = find_match(pool_matches, 1, s2, s3)
        if not (opener and opener.completed):
            return None
        winner = winner_of(opener, s2, s3)
        decider = find_match(pool_matches, 2, winner, s1)
        if not (decider and decider.completed):
            return None
        top = winner_of(decider, winner, s1)

    else:
        return None

    runner_up = _second_by_barrage(pool, completed, barrage, top)
    if runner_up is None:
        return None
    return [top, runner_up]


def is_pool_complete(pool, matches) -> bool:
    return pool_qualifiers(pool, matches) is not None


def pool_ranking(pool, matches) -> List[Dict]:
    """Pool table ordered by wins then performance, for display."""
    pool_matches = [m for m in matches if m.pool_id == pool.id]
    stats = team_stats_in(pool.team_ids, pool_matches)
    qualified = pool_qualifiers(pool, matches) or []
    rows = [
        {'team_id': team_id, 'qualified': team_id in qualified, **stats[team_id]}
        for team_id in pool.team_ids
    ]
    rows.sort(key=lambda r: (-r['wins'], -r['performance']))
    return rows
