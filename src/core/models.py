import uuid
from datetime import datetime

STANDARD_BYE_SCORE = (13, 7)
POOL_BYE_SCORE = (13, 0)

POOL_TYPES = ('doublette-poule', 'triplette-poule')
STANDARD_TYPES = ('tete-a-tete', 'doublette', 'triplette')
TOURNAMENT_TYPES = STANDARD_TYPES + ('quadrette', 'melee') + POOL_TYPES


def new_id():
    return uuid.uuid4().hex


class Player:
    def __init__(self, name, label=None):
        self.name = name
        self.label = label  # A, B, C or D for quadrette sub-players

    def to_dict(self):
        data = {'name': self.name}
        if self.label:
            data['label'] = self.label
        return data

    @classmethod
    def from_dict(cls, data):
        return cls(name=data['name'], label=data.get('label'))

    def __repr__(self):
        return f"Player(name={self.name}, label={self.label})"


class Team:
    def __init__(self, name, players=None, attributes=None, id=None):
        self.id = id or new_id()
        self.name = name
        self.players = players if players else []
        self.attributes = attributes if attributes else {}
        self.wins = 0
        self.losses = 0
        self.points_for = 0
        self.points_against = 0
        self.performance = 0

    def copy(self):
        team = Team(self.name, list(self.players), dict(self.attributes), id=self.id)
        team.wins = self.wins
        team.losses = self.losses
        team.points_for = self.points_for
        team.points_against = self.points_against
        team.performance = self.performance
        return team

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'players': [p.to_dict() for p in self.players],
            'attributes': dict(self.attributes),
            'wins': self.wins,
            'losses': self.losses,
            'points_for': self.points_for,
            'points_against': self.points_against,
            'performance': self.performance,
        }

    @classmethod
    def from_dict(cls, data):
        team = cls(
            name=data['name'],
            players=[Player.from_dict(p) for p in data.get('players', [])],
            attributes=data.get('attributes') or {},
            id=data['id'],
        )
        team.wins = data.get('wins', 0)
        team.losses = data.get('losses', 0)
        team.points_for = data.get('points_for', 0)
        team.points_against = data.get('points_against', 0)
        team.performance = data.get('performance', 0)
        return team

    def __repr__(self):
        return f"Team(name={self.name}, wins={self.wins}, performance={self.performance})"


class Bye:
    """An automatic win for a single participant."""

    def __init__(self, participant_id, score_for, score_against):
        self.participant_id = participant_id
        self.score_for = score_for
        self.score_against = score_against

    def __eq__(self, other):
        return (isinstance(other, Bye)
                and (self.participant_id, self.score_for, self.score_against)
                == (other.participant_id, other.score_for, other.score_against))

    def __repr__(self):
        return f"Bye(participant_id={self.participant_id}, score={self.score_for}-{self.score_against})"


class Match:
    def __init__(self, round, court, team1_id=None, team2_id=None, team1_ids=None, team2_ids=None,
                 team1_score=None, team2_score=None, completed=False, is_bye=False,
                 pool_id=None, phase=None, bracket_code=None, id=None):
        self.id = id or new_id()
        self.round = round
        self.court = court
        self.team1_id = team1_id
        self.team2_id = team2_id
        self.team1_ids = team1_ids
        self.team2_ids = team2_ids
        self.team1_score = team1_score
        self.team2_score = team2_score
        self.completed = completed
        self.is_bye = is_bye
        self.pool_id = pool_id
        self.phase = phase
        self.bracket_code = bracket_code

    @classmethod
    def for_bye(cls, participant_id, round, score, pool_id=None):
        """Build a bye in its stored shape: self-referential, court 0, already completed."""
        score_for, score_against = score
        return cls(round=round, court=0, team1_id=participant_id, team2_id=participant_id,
                   team1_score=score_for, team2_score=score_against,
                   completed=True, is_bye=True, pool_id=pool_id)

    @property
    def bye(self):
        if not self.is_bye:
            return None
        return Bye(self.team1_id, self.team1_score or 0, self.team2_score or 0)

    @property
    def is_grouped(self):
        return self.team1_ids is not None or self.team2_ids is not None

    def side1(self):
        """Participant ids on the first side."""
        if self.team1_ids is not None:
            return list(self.team1_ids)
        return [self.team1_id] if self.team1_id else []

    def side2(self):
        if self.team2_ids is not None:
            return list(self.team2_ids)
        return [self.team2_id] if self.team2_id else []

    def opponents(self):
        """Unordered opponent key; a bye is keyed by its single participant."""
        if self.is_bye:
            return frozenset([self.team1_id])
        return frozenset(self.side1() + self.side2())

    def involves(self, team_id):
        return team_id in self.side1() or team_id in self.side2()

    def to_dict(self):
        data = {
            'id': self.id,
            'round': self.round,
            'court': self.court,
            'completed': self.completed,
            'is_bye': self.is_bye,
        }
        for key in ('team1_id', 'team2_id', 'team1_ids', 'team2_ids', 'team1_score',
                    'team2_score', 'pool_id', 'phase', 'bracket_code'):
            value = getattr(self, key)
            if value is not None:
                data[key] = list(value) if isinstance(value, (list, tuple)) else value
        return data

    @classmethod
    def from_dict(cls, data):
        return cls(
            round=data['round'],
            court=data.get('court', 0),
            team1_id=data.get('team1_id'),
            team2_id=data.get('team2_id'),
            team1_ids=data.get('team1_ids'),
            team2_ids=data.get('team2_ids'),
            team1_score=data.get('team1_score'),
            team2_score=data.get('team2_score'),
            completed=data.get('completed', False),
            is_bye=data.get('is_bye', False),
            pool_id=data.get('pool_id'),
            phase=data.get('phase'),
            bracket_code=data.get('bracket_code'),
            id=data['id'],
        )

    def __repr__(self):
        if self.is_bye:
            return f"Match(round={self.round}, bye={self.team1_id})"
        return (f"Match(round={self.round}, court={self.court}, teams={self.side1()} vs {self.side2()}, "
                f"score={self.team1_score}-{self.team2_score}, completed={self.completed})")


class Pool:
    def __init__(self, name, team_ids, id=None):
        self.id = id or new_id()
        self.name = name
        self.team_ids = list(team_ids)  # order gives the seeds

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'team_ids': list(self.team_ids)}

    @classmethod
    def from_dict(cls, data):
        return cls(name=data.get('name', ''), team_ids=data.get('team_ids', []), id=data['id'])

    def __repr__(self):
        return f"Pool(name={self.name}, team_ids={self.team_ids})"


class Tournament:
    def __init__(self, type, courts, name=None, id=None, created_at=None):
        self.id = id or new_id()
        self.created_at = created_at or datetime.now().isoformat()
        self.name = name or f"Tournoi {self.created_at[:10]}"
        self.type = type
        self.courts = courts
        self.current_round = 0
        self.completed = False
        self.teams = []
        self.matches = []
        self.pools = []
        self.bracket_winners = {}

    @property
    def is_pool_format(self):
        return self.type in POOL_TYPES

    def team(self, team_id):
        return next((t for t in self.teams if t.id == team_id), None)

    def match(self, match_id):
        return next((m for m in self.matches if m.id == match_id), None)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'courts': self.courts,
            'current_round': self.current_round,
            'completed': self.completed,
            'created_at': self.created_at,
            'teams': [t.to_dict() for t in self.teams],
            'matches': [m.to_dict() for m in self.matches],
            'pools': [p.to_dict() for p in self.pools],
            'bracket_winners': dict(self.bracket_winners),
        }

    @classmethod
    def from_dict(cls, data):
        tournament = cls(
            type=data['type'],
            courts=data.get('courts', 1),
            name=data.get('name'),
            id=data.get('id'),
            created_at=data.get('created_at'),
        )
        tournament.current_round = data.get('current_round', 0)
        tournament.completed = data.get('completed', False)
        tournament.teams = [Team.from_dict(t) for t in data.get('teams') or []]
        tournament.matches = [Match.from_dict(m) for m in data.get('matches') or []]
        # Older snapshots predate pools
        tournament.pools = [Pool.from_dict(p) for p in data.get('pools') or []]
        tournament.bracket_winners = dict(data.get('bracket_winners') or {})
        return tournament

    def __repr__(self):
        return (f"Tournament(name={self.name}, type={self.type}, courts={self.courts}, "
                f"teams={len(self.teams)}, matches={len(self.matches)})")
