"""
Shared pytest fixtures for the tournament engine tests.

Running tests:
    pytest tests/
"""
import pytest
import random
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core import engine
from core.models import Team, Player, Pool, Tournament


def make_teams(names):
    """Teams whose ids are their names, to keep assertions readable."""
    return [Team(name=name, players=[Player(name)], id=name) for name in names]


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def make_pool_tournament():
    """Factory: make_pool_tournament(['W', 'X', 'Y', 'Z'], ['A', 'B', 'C'], courts=4)."""
    def _make(*groups, courts=4):
        tournament = Tournament(type='doublette-poule', courts=courts, name='Test', id='T1')
        for number, names in enumerate(groups, start=1):
            tournament.teams.extend(make_teams(names))
            tournament.pools.append(Pool(name=f"Poule {number}", team_ids=list(names), id=f"P{number}"))
        tournament.current_round = 1
        return tournament
    return _make


@pytest.fixture
def standard_tournament():
    """Six doublette teams, no matches yet."""
    tournament = Tournament(type='doublette', courts=2, name='Test', id='T2')
    tournament.teams = make_teams(['A', 'B', 'C', 'D', 'E', 'F'])
    return tournament


def _pending_match(tournament, team_a, team_b):
    wanted = frozenset([team_a, team_b])
    candidates = [m for m in tournament.matches
                  if not m.is_bye and m.opponents() == wanted and not m.completed]
    assert candidates, f"No pending match between {team_a} and {team_b}"
    return candidates[-1]


@pytest.fixture
def set_score():
    """Write a result straight onto the pending match, without a derivation pass."""
    def _set(tournament, team_a, team_b, score_a, score_b):
        match = _pending_match(tournament, team_a, team_b)
        if match.team1_id == team_a:
            match.team1_score, match.team2_score = score_a, score_b
        else:
            match.team1_score, match.team2_score = score_b, score_a
        match.completed = True
        return match
    return _set


@pytest.fixture
def play():
    """Enter a result through the engine; returns the matches the pass appended."""
    def _play(tournament, team_a, team_b, score_a, score_b):
        match = _pending_match(tournament, team_a, team_b)
        if match.team1_id == team_a:
            return engine.apply_score(tournament, match.id, score_a, score_b)
        return engine.apply_score(tournament, match.id, score_b, score_a)
    return _play


@pytest.fixture
def advance():
    """Append whatever a derivation pass unlocks, as the host does."""
    def _advance(tournament):
        return engine.refresh(tournament)
    return _advance


@pytest.fixture
def decided_pools(make_pool_tournament, set_score, advance):
    """
    Two pools played to the end.

    Poule 1 (W, X, Y, Z) qualifies W then X after the barrage.
    Poule 2 (A, B, C) qualifies A then C after the barrage.
    The semi-finals are W v X and A v C.
    """
    tournament = make_pool_tournament(['W', 'X', 'Y', 'Z'], ['A', 'B', 'C'])
    advance(tournament)

    set_score(tournament, 'W', 'Z', 13, 7)
    set_score(tournament, 'X', 'Y', 13, 11)
    set_score(tournament, 'B', 'C', 13, 4)
    advance(tournament)

    set_score(tournament, 'W', 'X', 13, 5)
    set_score(tournament, 'Z', 'Y', 13, 9)
    set_score(tournament, 'A', 'B', 13, 6)
    advance(tournament)

    set_score(tournament, 'X', 'Z', 13, 10)
    set_score(tournament, 'C', 'B', 13, 12)
    advance(tournament)
    return tournament
