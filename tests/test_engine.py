"""
Tests for the host-facing engine actions: registration, pools, rounds,
score entry and elimination winners.
"""
import random
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core import engine
from core.errors import NotFoundError, StateError, ValidationError
from core.models import Player


def _register(tournament, count):
    return [engine.add_team(tournament, [Player(f"Player {i}")]) for i in range(1, count + 1)]


class TestCreateTournament:
    """Tests for tournament creation."""

    def test_create(self):
        """Test a valid tournament starts empty."""
        tournament = engine.create_tournament('triplette', 3, name='Open')
        assert tournament.type == 'triplette'
        assert tournament.courts == 3
        assert tournament.name == 'Open'

    def test_unknown_type(self):
        """Test unknown formats are rejected."""
        with pytest.raises(ValidationError, match="Unknown tournament type"):
            engine.create_tournament('quintette', 2)

    def test_needs_a_court(self):
        """Test zero courts is rejected."""
        with pytest.raises(ValidationError):
            engine.create_tournament('doublette', 0)


class TestRegistration:
    """Tests for adding and removing teams."""

    def test_team_names_numbered(self):
        """Test teams are named by registration order."""
        tournament = engine.create_tournament('doublette', 2)
        teams = _register(tournament, 2)
        assert [t.name for t in teams] == ['Équipe 1', 'Équipe 2']

    def test_single_player_formats_use_player_name(self):
        """Test tête-à-tête participants are named after the player."""
        tournament = engine.create_tournament('tete-a-tete', 2)
        team = engine.add_team(tournament, [Player('Marius')])
        assert team.name == '1 - Marius'

    def test_team_needs_players(self):
        """Test an empty team is rejected."""
        tournament = engine.create_tournament('doublette', 2)
        with pytest.raises(ValidationError):
            engine.add_team(tournament, [])

    def test_quadrette_needs_four(self):
        """Test a quadrette must have four players."""
        tournament = engine.create_tournament('quadrette', 2)
        with pytest.raises(ValidationError):
            engine.add_quadrette(tournament, ['Ann', 'Bea', 'Cid'])

    def test_quadrette_sub_players(self):
        """Test a quadrette registers four labelled participants."""
        tournament = engine.create_tournament('quadrette', 2)
        added = engine.add_quadrette(tournament, ['Ann', 'Bea', 'Cid', 'Dan'])
        assert [t.players[0].label for t in added] == ['A', 'B', 'C', 'D']
        assert added[0].name == 'Équipe 1 A - Ann'
        assert {t.attributes['base_team'] for t in added} == {'Équipe 1'}

    def test_remove_renumbers(self):
        """Test withdrawing a team renumbers the others."""
        tournament = engine.create_tournament('doublette', 2)
        teams = _register(tournament, 3)
        engine.remove_team(tournament, teams[0].id)
        assert [t.name for t in tournament.teams] == ['Équipe 1', 'Équipe 2']
        assert tournament.teams[0].id == teams[1].id

    def test_remove_resets_pools(self):
        """Test withdrawing a team drops the pool partition."""
        tournament = engine.create_tournament('doublette-poule', 2)
        teams = _register(tournament, 4)
        engine.create_pools(tournament, [[t.id for t in teams]])
        engine.remove_team(tournament, teams[3].id)
        assert tournament.pools == []

    def test_remove_unknown(self):
        """Test removing an unknown team fails."""
        tournament = engine.create_tournament('doublette', 2)
        with pytest.raises(NotFoundError):
            engine.remove_team(tournament, 'nobody')


class TestCreatePools:
    """Tests for installing a pool partition."""

    @pytest.fixture
    def tournament(self):
        tournament = engine.create_tournament('doublette-poule', 4)
        _register(tournament, 7)
        return tournament

    def test_pools_start_play(self, tournament):
        """Test the first pool round is derived immediately."""
        ids = [t.id for t in tournament.teams]
        pools = engine.create_pools(tournament, [ids[:4], ids[4:]])
        assert [p.name for p in pools] == ['Poule 1', 'Poule 2']
        assert tournament.current_round == 1
        assert len([m for m in tournament.matches if not m.is_bye]) == 3
        assert len([m for m in tournament.matches if m.is_bye]) == 1
        assert tournament.team(ids[4]).attributes['pool'] == 'Poule 2'

    def test_seed_one_bye_counts_in_standings(self, tournament):
        """Test the 3-team pool bye is already a win."""
        ids = [t.id for t in tournament.teams]
        engine.create_pools(tournament, [ids[:4], ids[4:]])
        seed_one = tournament.team(ids[4])
        assert (seed_one.wins, seed_one.points_for, seed_one.points_against) == (1, 13, 0)

    def test_custom_names(self, tournament):
        """Test pools can be named."""
        ids = [t.id for t in tournament.teams]
        pools = engine.create_pools(tournament, [ids[:4], ids[4:]], names=['Nord', 'Sud'])
        assert [p.name for p in pools] == ['Nord', 'Sud']

    def test_recreating_pools_clears_matches(self, tournament):
        """Test a new partition discards earlier matches."""
        ids = [t.id for t in tournament.teams]
        engine.create_pools(tournament, [ids[:4], ids[4:]])
        engine.create_pools(tournament, [ids[:3], ids[3:]])
        assert len(tournament.matches) == 4
        assert {m.pool_id for m in tournament.matches} == {p.id for p in tournament.pools}

    def test_wrong_pool_size(self, tournament):
        """Test pools of 2 or 5 are rejected."""
        ids = [t.id for t in tournament.teams]
        with pytest.raises(ValidationError, match="3 or 4"):
            engine.create_pools(tournament, [ids[:5], ids[5:]])

    def test_team_in_two_pools(self, tournament):
        """Test a team may only appear once."""
        ids = [t.id for t in tournament.teams]
        with pytest.raises(ValidationError, match="more than one pool"):
            engine.create_pools(tournament, [ids[:4], [ids[0]] + ids[4:6]])

    def test_unassigned_team(self, tournament):
        """Test every team must be placed."""
        ids = [t.id for t in tournament.teams]
        with pytest.raises(ValidationError, match="not assigned"):
            engine.create_pools(tournament, [ids[:4]])

    def test_unknown_team(self, tournament):
        """Test unknown ids are reported."""
        ids = [t.id for t in tournament.teams]
        with pytest.raises(NotFoundError):
            engine.create_pools(tournament, [ids[:4], ids[4:6] + ['ghost']])

    def test_not_a_pool_format(self):
        """Test pools are refused for round-based formats."""
        tournament = engine.create_tournament('doublette', 2)
        teams = _register(tournament, 3)
        with pytest.raises(StateError):
            engine.create_pools(tournament, [[t.id for t in teams]])


class TestNextRound:
    """Tests for opening rounds in round-based formats."""

    def test_rounds_advance(self):
        """Test each call pairs one more round."""
        tournament = engine.create_tournament('doublette', 2)
        _register(tournament, 4)
        assert engine.refresh(tournament) == []

        first = engine.next_round(tournament)
        assert tournament.current_round == 1
        assert len(first) == 2
        assert engine.refresh(tournament) == []

        for match in first:
            engine.apply_score(tournament, match.id, 13, 4)
        second = engine.next_round(tournament)
        assert tournament.current_round == 2
        assert all(m.round == 2 for m in second)

    def test_pool_format_refused(self, make_pool_tournament):
        """Test pool tournaments do not open rounds by hand."""
        with pytest.raises(StateError):
            engine.next_round(make_pool_tournament(['A', 'B', 'C']))

    def test_needs_two_teams(self):
        """Test a round needs two teams."""
        tournament = engine.create_tournament('doublette', 2)
        _register(tournament, 1)
        with pytest.raises(StateError):
            engine.next_round(tournament)

    def test_bye_with_odd_count(self, rng):
        """Test an odd field leaves one team on a 13-7 bye."""
        tournament = engine.create_tournament('doublette', 2)
        _register(tournament, 5)
        new = engine.next_round(tournament, rng)
        byes = [m for m in new if m.is_bye]
        assert len(byes) == 1
        team = tournament.team(byes[0].team1_id)
        assert (team.wins, team.points_for, team.points_against) == (1, 13, 7)


class TestApplyScore:
    """Tests for score entry."""

    @pytest.fixture
    def tournament(self):
        tournament = engine.create_tournament('doublette', 1)
        _register(tournament, 2)
        engine.next_round(tournament)
        return tournament

    def test_score_updates_standings(self, tournament):
        """Test a score is recorded and standings follow."""
        match = tournament.matches[0]
        engine.apply_score(tournament, match.id, 13, 9)
        assert match.completed
        winner = tournament.team(match.team1_id)
        assert (winner.wins, winner.performance) == (1, 4)

    def test_score_can_be_corrected(self, tournament):
        """Test entering a score again replaces it."""
        match = tournament.matches[0]
        engine.apply_score(tournament, match.id, 13, 9)
        engine.apply_score(tournament, match.id, 2, 13)
        assert tournament.team(match.team1_id).wins == 0
        assert tournament.team(match.team2_id).wins == 1

    @pytest.mark.parametrize("score1,score2", [(13, 13), (14, 2), (-1, 13)])
    def test_invalid_scores(self, tournament, score1, score2):
        """Test ties and out-of-range scores are rejected."""
        with pytest.raises(ValidationError):
            engine.apply_score(tournament, tournament.matches[0].id, score1, score2)
        assert not tournament.matches[0].completed

    def test_custom_winning_score(self, tournament):
        """Test the score ceiling follows the winning score."""
        engine.apply_score(tournament, tournament.matches[0].id, 15, 11, winning_score=15)
        assert tournament.matches[0].team1_score == 15

    def test_non_integer_score(self):
        """Test fractional scores are rejected."""
        with pytest.raises(ValidationError):
            engine.validate_score(12.5, 13)

    def test_unknown_match(self, tournament):
        """Test unknown match ids are reported."""
        with pytest.raises(NotFoundError):
            engine.apply_score(tournament, 'missing', 13, 0)

    def test_bye_score_is_fixed(self, make_pool_tournament, advance):
        """Test a bye cannot be scored."""
        tournament = make_pool_tournament(['A', 'B', 'C'])
        advance(tournament)
        bye = next(m for m in tournament.matches if m.is_bye)
        with pytest.raises(StateError):
            engine.apply_score(tournament, bye.id, 13, 5)


class TestPoolScoreCorrection:
    """Tests for correcting pool results after the pool moved on."""

    @pytest.fixture
    def tournament(self, make_pool_tournament, set_score, advance):
        tournament = make_pool_tournament(['W', 'X', 'Y', 'Z'])
        advance(tournament)
        set_score(tournament, 'W', 'Z', 13, 7)
        set_score(tournament, 'X', 'Y', 13, 11)
        advance(tournament)
        return tournament

    def _opener(self, tournament):
        return next(m for m in tournament.matches if m.round == 1 and m.opponents() == frozenset(['W', 'Z']))

    def test_flipped_result_refused(self, tournament):
        """Test a result that later pool matches were drawn from cannot change winner."""
        count = len(tournament.matches)
        opener = self._opener(tournament)
        with pytest.raises(StateError, match="Later pool matches"):
            engine.apply_score(tournament, opener.id, 7, 13)
        assert (opener.team1_score, opener.team2_score) == (13, 7)
        assert len(tournament.matches) == count

    def test_points_can_be_corrected(self, tournament):
        """Test the score can change as long as the winner stays."""
        count = len(tournament.matches)
        opener = self._opener(tournament)
        assert engine.apply_score(tournament, opener.id, 13, 10) == []
        assert len(tournament.matches) == count
        assert tournament.team('W').performance == 3

    def test_flip_allowed_before_next_round(self, make_pool_tournament, set_score, advance):
        """Test a result can change while nothing depends on it yet."""
        tournament = make_pool_tournament(['W', 'X', 'Y', 'Z'])
        advance(tournament)
        opener = set_score(tournament, 'W', 'Z', 13, 7)
        engine.apply_score(tournament, opener.id, 7, 13)
        assert tournament.team('Z').wins == 1


class TestSetCourt:
    """Tests for moving matches between courts."""

    def test_move(self, make_pool_tournament, advance):
        """Test a court can be reassigned."""
        tournament = make_pool_tournament(['W', 'X', 'Y', 'Z'])
        advance(tournament)
        match = tournament.matches[0]
        engine.set_court(tournament, match.id, 7)
        assert match.court == 7

    def test_negative_court(self, make_pool_tournament, advance):
        """Test negative courts are rejected."""
        tournament = make_pool_tournament(['W', 'X', 'Y', 'Z'])
        advance(tournament)
        with pytest.raises(ValidationError):
            engine.set_court(tournament, tournament.matches[0].id, -1)


class TestEliminationFlow:
    """Tests for the bracket driven through score entry."""

    def test_pools_to_champion(self, decided_pools, play):
        """Test the semi-finals and the final decide the champion."""
        assert not decided_pools.completed
        assert play(decided_pools, 'W', 'X', 13, 8) == []
        final = play(decided_pools, 'A', 'C', 13, 2)
        assert [(m.bracket_code, m.team1_id, m.team2_id) for m in final] == [('E2-M1', 'W', 'A')]

        play(decided_pools, 'W', 'A', 13, 11)
        assert decided_pools.bracket_winners == {'E1-M1': 'W', 'E1-M2': 'A', 'E2-M1': 'W'}
        assert decided_pools.completed

    def test_changed_winner_reroutes(self, decided_pools, play):
        """Test changing an unscored semi-final winner re-derives the final."""
        play(decided_pools, 'A', 'C', 13, 2)
        engine.set_winner(decided_pools, 'E1-M1', 'W')
        stale = next(m for m in decided_pools.matches if m.bracket_code == 'E2-M1')
        assert stale.opponents() == frozenset(['W', 'A'])

        new = engine.set_winner(decided_pools, 'E1-M1', 'X')
        assert [(m.bracket_code, m.team1_id, m.team2_id) for m in new] == [('E2-M1', 'X', 'A')]
        assert stale in decided_pools.matches

        with pytest.raises(StateError, match="no longer stands"):
            engine.apply_score(decided_pools, stale.id, 13, 5)

    def test_set_winner_refused_once_scored(self, decided_pools, play):
        """Test a scored match keeps its score's winner."""
        play(decided_pools, 'W', 'X', 13, 8)
        with pytest.raises(StateError, match="already has a score"):
            engine.set_winner(decided_pools, 'E1-M1', 'X')
        assert decided_pools.bracket_winners['E1-M1'] == 'W'

        engine.set_winner(decided_pools, 'E1-M1', 'W')
        assert decided_pools.bracket_winners['E1-M1'] == 'W'

    def test_rescored_semi_drops_old_final(self, decided_pools, play):
        """Test results of a superseded final no longer count in standings."""
        play(decided_pools, 'W', 'X', 13, 8)
        play(decided_pools, 'A', 'C', 13, 2)
        play(decided_pools, 'W', 'A', 13, 11)
        assert decided_pools.completed
        assert decided_pools.team('W').wins == 4

        semi = next(m for m in decided_pools.matches if m.bracket_code == 'E1-M1')
        new = engine.apply_score(decided_pools, semi.id, 8, 13)

        assert [(m.bracket_code, m.team1_id, m.team2_id) for m in new] == [('E2-M1', 'X', 'A')]
        assert not decided_pools.completed
        assert decided_pools.bracket_winners['E1-M1'] == 'X'
        assert decided_pools.team('W').wins == 2
        assert decided_pools.team('X').wins == 3
        assert decided_pools.team('A').losses == 0

    def test_set_winner_before_pools_done(self, make_pool_tournament, advance):
        """Test winners cannot be set while pools are still playing."""
        tournament = make_pool_tournament(['W', 'X', 'Y', 'Z'])
        advance(tournament)
        with pytest.raises(StateError):
            engine.set_winner(tournament, 'E1-M1', 'W')

    def test_set_winner_unknown_code(self, decided_pools):
        """Test unknown bracket codes are reported."""
        with pytest.raises(NotFoundError):
            engine.set_winner(decided_pools, 'E9-M1', 'W')

    def test_set_winner_team_not_in_match(self, decided_pools):
        """Test the winner must play in the match."""
        with pytest.raises(ValidationError):
            engine.set_winner(decided_pools, 'E1-M1', 'A')

    def test_refresh_is_idempotent(self, decided_pools):
        """Test a pass with no new decision appends nothing."""
        count = len(decided_pools.matches)
        assert engine.refresh(decided_pools) == []
        assert len(decided_pools.matches) == count


class TestFullPoolTournament:
    """End-to-end run through the public actions only."""

    def test_three_pools(self):
        """Test three pools give a six-slot bracket with a bye in the semi-finals."""
        tournament = engine.create_tournament('triplette-poule', 4)
        teams = _register(tournament, 10)
        ids = [t.id for t in teams]
        engine.create_pools(tournament, [ids[0:4], ids[4:7], ids[7:10]])

        rng = random.Random(11)
        for _ in range(20):
            pending = [m for m in tournament.matches if not m.completed and m.pool_id]
            if not pending:
                break
            for match in pending:
                if rng.random() < 0.5:
                    engine.apply_score(tournament, match.id, 13, rng.randrange(13))
                else:
                    engine.apply_score(tournament, match.id, rng.randrange(13), 13)

        bracket_matches = [m for m in tournament.matches if m.bracket_code]
        assert [m.bracket_code for m in bracket_matches] == ['E1-M1', 'E1-M2', 'E1-M3']
        assert {m.phase for m in bracket_matches} == {'quart-de-finale'}

        third = next(m for m in bracket_matches if m.bracket_code == 'E1-M3')
        engine.apply_score(tournament, third.id, 13, 0)
        assert tournament.bracket_winners['E2-M2'] == third.team1_id
