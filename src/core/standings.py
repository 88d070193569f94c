"""
Standings derived from the full match list.
"""
from typing import Dict, Iterable, List


def _side_of(match, team_id) -> int:
    """Return 1 or 2 for the side the team plays on, 0 if absent."""
    if team_id in match.side1():
        return 1
    if team_id in match.side2():
        return 2
    return 0


def compute_standings(teams, matches) -> List:
    """
    Recompute every team's stats from the completed matches.

    Returns updated copies; the input teams are left untouched.

    A bye always counts as one win with the bye's own synthetic score.
    A played match is a win when the team's side scored strictly more,
    otherwise a loss (an equal score counts as a loss for both sides).
    """
    updated = []
    for team in teams:
        result = team.copy()
        wins = losses = points_for = points_against = 0

        for match in matches:
            bye = match.bye
            if bye is not None:
                if bye.participant_id == team.id:
                    wins += 1
                    points_for += bye.score_for
                    points_against += bye.score_against
                continue

            if not match.completed:
                continue

            side = _side_of(match, team.id)
            if side == 0:
                continue

            score1 = match.team1_score or 0
            score2 = match.team2_score or 0
            own, other = (score1, score2) if side == 1 else (score2, score1)
            points_for += own
            points_against += other
            if own > other:
                wins += 1
            else:
                losses += 1

        result.wins = wins
        result.losses = losses
        result.points_for = points_for
        result.points_against = points_against
        result.performance = points_for - points_against
        updated.append(result)
    return updated


def rank_teams(teams) -> List:
    """Standings order: wins, then performance."""
    return sorted(teams, key=lambda t: (-t.wins, -t.performance))


def rank_by_performance(teams) -> List:
    """Pairing order: performance only."""
    return sorted(teams, key=lambda t: -t.performance)


def team_stats_in(team_ids: Iterable[str], matches) -> Dict[str, Dict[str, int]]:
    """
    Tally wins and performance for the given teams over a subset of matches.

    Only completed matches count. Byes count as a win with their synthetic
    score, the same way compute_standings treats them.
    """
    stats = {team_id: {'wins': 0, 'played': 0, 'performance': 0} for team_id in team_ids}
    for match in matches:
        if not match.completed:
            continue
        bye = match.bye
        if bye is not None:
            if bye.participant_id in stats:
                entry = stats[bye.participant_id]
                entry['wins'] += 1
                entry['played'] += 1
                entry['performance'] += bye.score_for - bye.score_against
            continue
        for team_id, entry in stats.items():
            side = _side_of(match, team_id)
            if side == 0:
                continue
            score1 = match.team1_score or 0
            score2 = match.team2_score or 0
            own, other = (score1, score2) if side == 1 else (score2, score1)
            entry['played'] += 1
            entry['performance'] += own - other
            if own > other:
                entry['wins'] += 1
    return stats
