"""
Entry points used by the host.

Every action follows the same pass: apply the user's decision, recompute
standings, derive and append newly unlocked matches. The derivation reads the
whole snapshot and keeps nothing between calls.
"""
import logging
import random
from typing import Dict, List, Optional

from core.elimination import (
    current_bracket,
    derive_elimination_matches,
    find_bracket_match,
    is_superseded,
    live_matches,
    record_winner,
    resolve_byes,
)
from core.errors import NotFoundError, StateError, ValidationError
from core.models import Player, Pool, Team, TOURNAMENT_TYPES, Tournament
from core.pairing import generate_round
from core.pools import derive_pool_matches, winner_of
from core.standings import compute_standings

logger = logging.getLogger(__name__)

DEFAULT_WINNING_SCORE = 13

__all__ = [
    'compute_standings', 'derive_matches', 'refresh', 'create_tournament', 'add_team',
    'remove_team', 'create_pools', 'next_round', 'apply_score', 'set_court', 'set_winner',
]


def derive_matches(tournament, rng: Optional[random.Random] = None) -> List:
    """
    Matches to append for the tournament's current state.

    Pool formats: pool progression, then the elimination bracket once every
    pool is decided. Other formats: the pairing of the current round, if
    that round has no match yet.
    """
    if tournament.is_pool_format:
        new_matches = derive_pool_matches(tournament)
        if new_matches:
            # Pools still moving; the bracket is derived on the next pass
            return new_matches
        return derive_elimination_matches(tournament)

    round_number = tournament.current_round
    if round_number < 1 or any(m.round == round_number for m in tournament.matches):
        return []
    return generate_round(tournament, round_number, rng)


def refresh(tournament, rng: Optional[random.Random] = None) -> List:
    """Run one full derivation pass in place and return the appended matches."""
    appended = derive_matches(tournament, rng)
    tournament.matches.extend(appended)

    counted = tournament.matches
    if tournament.is_pool_format:
        bracket = current_bracket(tournament)
        if bracket is not None:
            tournament.bracket_winners.update(resolve_byes(bracket, tournament.bracket_winners))
            tournament.completed = bracket['champion'] is not None
        counted = live_matches(tournament, bracket)

    tournament.teams = compute_standings(tournament.teams, counted)
    if appended:
        logger.debug("Derivation appended %d match(es)", len(appended))
    return appended


def create_tournament(type: str, courts: int, name: Optional[str] = None) -> Tournament:
    if type not in TOURNAMENT_TYPES:
        raise ValidationError(f"Unknown tournament type '{type}'. Expected one of: {', '.join(TOURNAMENT_TYPES)}")
    if courts < 1:
        raise ValidationError("A tournament needs at least one court.")
    return Tournament(type=type, courts=courts, name=name)


def _team_name(tournament, number, players):
    if tournament.type in ('melee', 'tete-a-tete') and players:
        return f"{number} - {players[0].name}"
    return f"Équipe {number}"


def add_team(tournament, players: List[Player], attributes: Optional[Dict] = None) -> Team:
    if not players:
        raise ValidationError("A team needs at least one player.")
    team = Team(name=_team_name(tournament, len(tournament.teams) + 1, players),
                players=players, attributes=attributes)
    tournament.teams.append(team)
    return team


def add_quadrette(tournament, names: List[str]) -> List[Team]:
    """Register a quadrette as four labelled sub-player participants."""
    if len(names) != 4:
        raise ValidationError("A quadrette has exactly four players.")
    base = f"Équipe {len({t.attributes.get('base_team') for t in tournament.teams} - {None}) + 1}"
    added = []
    for label, name in zip('ABCD', names):
        team = Team(name=f"{base} {label} - {name}", players=[Player(name, label=label)],
                    attributes={'base_team': base})
        tournament.teams.append(team)
        added.append(team)
    return added


def remove_team(tournament, team_id: str) -> None:
    """Withdraw a team. Names are renumbered and any pool partition is dropped."""
    if tournament.team(team_id) is None:
        raise NotFoundError(f"No team with id '{team_id}'.")
    tournament.teams = [t for t in tournament.teams if t.id != team_id]
    for number, team in enumerate(tournament.teams, start=1):
        if 'base_team' not in team.attributes:
            team.name = _team_name(tournament, number, team.players)
    if tournament.pools:
        logger.info("Team withdrawn, pool partition reset")
    tournament.pools = []


def validate_partition(tournament, groups: List[List[str]]) -> None:
    known = {t.id for t in tournament.teams}
    seen = set()
    for group in groups:
        if len(group) not in (3, 4):
            raise ValidationError(f"Pools must hold 3 or 4 teams, got {len(group)}.")
        for team_id in group:
            if team_id not in known:
                raise NotFoundError(f"No team with id '{team_id}'.")
            if team_id in seen:
                raise ValidationError(f"Team '{team_id}' appears in more than one pool.")
            seen.add(team_id)
    if seen != known:
        raise ValidationError(f"{len(known - seen)} team(s) are not assigned to a pool.")


def create_pools(tournament, groups: List[List[str]], names: Optional[List[str]] = None,
                 rng: Optional[random.Random] = None) -> List[Pool]:
    """
    Install an externally built pool partition and start pool play.

    Any existing matches are discarded; the first pool round is derived
    immediately.
    """
    if not tournament.is_pool_format:
        raise StateError(f"'{tournament.type}' tournaments do not play in pools.")
    validate_partition(tournament, groups)

    names = names or [f"Poule {i}" for i in range(1, len(groups) + 1)]
    tournament.pools = [Pool(name=name, team_ids=group) for name, group in zip(names, groups)]
    for pool in tournament.pools:
        for team_id in pool.team_ids:
            tournament.team(team_id).attributes['pool'] = pool.name
    tournament.matches = []
    tournament.bracket_winners = {}
    tournament.current_round = 1
    tournament.completed = False
    refresh(tournament, rng)
    logger.info("Created %d pool(s)", len(tournament.pools))
    return tournament.pools


def next_round(tournament, rng: Optional[random.Random] = None) -> List:
    """Open the next round for formats that do not play in pools."""
    if tournament.is_pool_format:
        raise StateError("Pool tournaments progress on score entry, not by round.")
    if len(tournament.teams) < 2:
        raise StateError("At least two teams are needed to pair a round.")
    pending = [m for m in tournament.matches if not m.completed]
    if pending:
        logger.warning("Opening round %d with %d unfinished match(es)",
                       tournament.current_round + 1, len(pending))
    tournament.current_round += 1
    return refresh(tournament, rng)


def validate_score(score1: int, score2: int, winning_score: int = DEFAULT_WINNING_SCORE) -> None:
    for score in (score1, score2):
        if not isinstance(score, int) or isinstance(score, bool):
            raise ValidationError(f"Score must be a whole number, got {score!r}.")
        if score < 0 or score > winning_score:
            raise ValidationError(f"Score must be between 0 and {winning_score}, got {score}.")
    if score1 == score2:
        raise ValidationError("A match cannot end in a tie.")


def _get_match(tournament, match_id):
    match = tournament.match(match_id)
    if match is None:
        raise NotFoundError(f"No match with id '{match_id}'.")
    return match


def _later_pool_matches(tournament, match):
    return [m for m in tournament.matches if m.pool_id == match.pool_id and m.round > match.round]


def apply_score(tournament, match_id: str, score1: int, score2: int,
                winning_score: int = DEFAULT_WINNING_SCORE, rng: Optional[random.Random] = None) -> List:
    """Record a final score, then run a derivation pass. Returns the appended matches."""
    match = _get_match(tournament, match_id)
    if match.is_bye:
        raise StateError("A bye has a fixed score.")
    validate_score(score1, score2, winning_score)

    if match.bracket_code and is_superseded(match, current_bracket(tournament)):
        raise StateError("This bracket match no longer stands; an earlier result was changed.")

    if match.pool_id and match.completed:
        new_winner = match.team1_id if score1 > score2 else match.team2_id
        if new_winner != winner_of(match, match.team1_id, match.team2_id) and _later_pool_matches(tournament, match):
            raise StateError("Later pool matches were drawn from this result. "
                             "Recreate the pools to replay the pool.")

    match.team1_score = score1
    match.team2_score = score2
    match.completed = True

    if match.bracket_code:
        record_winner(tournament.bracket_winners, match.bracket_code,
                      winner_of(match, match.team1_id, match.team2_id))

    return refresh(tournament, rng)


def set_court(tournament, match_id: str, court: int) -> None:
    match = _get_match(tournament, match_id)
    if court < 0:
        raise ValidationError("Court number cannot be negative.")
    match.court = court


def set_winner(tournament, code: str, team_id: str, rng: Optional[random.Random] = None) -> List:
    """Record an elimination winner by bracket code, then run a derivation pass."""
    bracket = current_bracket(tournament)
    if bracket is None:
        raise StateError("The elimination bracket starts once every pool is decided.")
    match = find_bracket_match(bracket, code)
    if match is None:
        raise NotFoundError(f"No bracket match '{code}'.")
    if team_id not in match['teams']:
        raise ValidationError(f"Team '{team_id}' does not play in {code}.")
    scored = next((m for m in tournament.matches
                   if m.bracket_code == code and m.completed and not is_superseded(m, bracket)), None)
    if scored is not None and winner_of(scored, scored.team1_id, scored.team2_id) != team_id:
        raise StateError(f"{code} already has a score. Enter the corrected score instead.")
    record_winner(tournament.bracket_winners, code, team_id)
    return refresh(tournament, rng)
