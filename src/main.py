#!/usr/bin/env python3
"""
Pétanque tournament manager.

Every command loads the tournament snapshot from the data directory, applies
one action, runs a derivation pass (standings, newly unlocked matches) and
saves the snapshot again.

Usage:
    python src/main.py new --type doublette-poule --courts 4
    python src/main.py add-team Alice Bob
    python src/main.py pools data/teams.yaml
    python src/main.py score <match> 13 7
    python src/main.py winner E1-M1 "Équipe 3"
    python src/main.py standings

Exit codes:
    0: Success
    1: Invalid input or action not allowed in the current state
    2: Unknown team, match or bracket code
    3: Snapshot could not be read or locked
"""
import argparse
import logging
import random
import sys

from filelock import Timeout

from config import get_data_dir, load_settings
from core import engine
from core.elimination import current_bracket
from core.errors import NotFoundError, StateError, StorageError, TournamentError
from core.models import Player, TOURNAMENT_TYPES
from core.pools import pool_ranking
from core.standings import rank_teams
from storage import data_lock, delete_tournament, load_pools_file, tournament_path, tournament_session

logger = logging.getLogger('tournament')


def _resolve_team(tournament, ref):
    """Find a team by id, exact name, or 1-based registration number."""
    for team in tournament.teams:
        if team.id == ref or team.name == ref:
            return team
    if ref.isdigit() and 1 <= int(ref) <= len(tournament.teams):
        return tournament.teams[int(ref) - 1]
    raise NotFoundError(f"No team '{ref}'.")


def _resolve_match(tournament, ref):
    """Find a match by id or unique id prefix."""
    candidates = [m for m in tournament.matches if m.id.startswith(ref)]
    exact = [m for m in candidates if m.id == ref]
    if exact:
        return exact[0]
    if len(candidates) == 1:
        return candidates[0]
    if not candidates:
        raise NotFoundError(f"No match '{ref}'.")
    raise NotFoundError(f"Match reference '{ref}' is ambiguous ({len(candidates)} matches).")


def _name(tournament, team_id):
    if team_id is None:
        return '-'
    team = tournament.team(team_id)
    return team.name if team else team_id


def _side_label(tournament, ids):
    return ' + '.join(_name(tournament, i) for i in ids)


def _require(tournament):
    if tournament is None:
        raise StateError("No tournament yet. Run 'new' first.")
    return tournament


def print_matches(tournament, matches=None, out=None):
    pools = {p.id: p.name for p in tournament.pools}
    if matches is None:
        matches = tournament.matches
    for match in sorted(matches, key=lambda m: (m.round, m.court)):
        where = pools.get(match.pool_id) or match.phase or f"Round {match.round}"
        if match.is_bye:
            print(f"{match.id[:8]}  {where:<20} BYE   {_name(tournament, match.team1_id)} "
                  f"({match.team1_score}-{match.team2_score})", file=out)
            continue
        score = f"{match.team1_score}-{match.team2_score}" if match.completed else "- -"
        print(f"{match.id[:8]}  {where:<20} C{match.court:<4} "
              f"{_side_label(tournament, match.side1())} vs {_side_label(tournament, match.side2())}  {score}",
              file=out)


def print_standings(tournament, out=None):
    if tournament.pools:
        for pool in tournament.pools:
            print(f"# {pool.name}", file=out)
            for row in pool_ranking(pool, tournament.matches):
                mark = '*' if row['qualified'] else ' '
                print(f" {mark} {_name(tournament, row['team_id']):<30} W {row['wins']}  "
                      f"+/- {row['performance']:+d}", file=out)
        print(file=out)
    print("# General", file=out)
    for position, team in enumerate(rank_teams(tournament.teams), start=1):
        print(f"{position:>3}. {team.name:<30} W {team.wins}  L {team.losses}  "
              f"{team.points_for}-{team.points_against}  {team.performance:+d}", file=out)


def print_bracket(tournament, out=None):
    bracket = current_bracket(tournament)
    if bracket is None:
        print("Elimination bracket not started: pools still in play.", file=out)
        return
    for phase in bracket['phases']:
        print(f"# {phase}", file=out)
        for match in bracket['rounds'][phase]:
            team1, team2 = match['teams']
            if match['is_bye']:
                line = f"{_name(tournament, match['winner'])} (bye)"
            else:
                line = f"{_name(tournament, team1)} vs {_name(tournament, team2)}"
                if match['winner']:
                    line += f"  -> {_name(tournament, match['winner'])}"
            print(f"  {match['code']:<8} {line}", file=out)
    if bracket['champion']:
        print(f"\nChampion: {_name(tournament, bracket['champion'])}", file=out)


def _print_new(tournament, appended):
    if appended:
        print(f"{len(appended)} new match(es):")
        print_matches(tournament, appended)


def build_parser():
    parser = argparse.ArgumentParser(
        description='Pétanque tournament manager',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--data-dir', help='Directory holding tournament.yaml (default: $TOURNAMENT_DATA_DIR or ./data)')
    parser.add_argument('--seed', type=int, help='Seed for random draws (byes, mêlée)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    sub = parser.add_subparsers(dest='command', required=True)

    new = sub.add_parser('new', help='Start a new tournament (replaces the current one)')
    new.add_argument('--type', choices=TOURNAMENT_TYPES)
    new.add_argument('--courts', type=int)
    new.add_argument('--name')

    add = sub.add_parser('add-team', help='Register a team by its players')
    add.add_argument('players', nargs='+')

    remove = sub.add_parser('remove-team', help='Withdraw a team')
    remove.add_argument('team')

    pools = sub.add_parser('pools', help='Load a pool partition (YAML: pool name -> team names)')
    pools.add_argument('file')

    sub.add_parser('round', help='Pair the next round (non-pool formats)')

    score = sub.add_parser('score', help='Enter a final score')
    score.add_argument('match')
    score.add_argument('score1', type=int)
    score.add_argument('score2', type=int)

    court = sub.add_parser('court', help='Move a match to another court')
    court.add_argument('match')
    court.add_argument('court', type=int)

    winner = sub.add_parser('winner', help='Record an elimination winner by bracket code')
    winner.add_argument('code')
    winner.add_argument('team')

    sub.add_parser('standings', help='Show standings')
    sub.add_parser('matches', help='List matches')
    sub.add_parser('bracket', help='Show the elimination bracket')
    sub.add_parser('reset', help='Delete the tournament snapshot')
    return parser


def run(args, settings, holder):
    """Apply one command to the loaded tournament held in holder['tournament']."""
    rng = random.Random(args.seed)
    tournament = holder['tournament']

    if args.command == 'new':
        holder['tournament'] = engine.create_tournament(
            args.type or settings['tournament_type'], args.courts or settings['courts'], args.name)
        print(f"Created {holder['tournament'].name} ({holder['tournament'].type}).")
        return

    tournament = _require(tournament)

    if args.command == 'add-team':
        if tournament.type == 'quadrette':
            teams = engine.add_quadrette(tournament, args.players)
            print(f"Added {', '.join(t.name for t in teams)}.")
        else:
            team = engine.add_team(tournament, [Player(name) for name in args.players])
            print(f"Added {team.name}.")
    elif args.command == 'remove-team':
        team = _resolve_team(tournament, args.team)
        engine.remove_team(tournament, team.id)
        print(f"Removed {team.name}.")
    elif args.command == 'pools':
        partition = load_pools_file(args.file)
        groups = [[_resolve_team(tournament, name).id for name in names] for names in partition.values()]
        engine.create_pools(tournament, groups, names=list(partition.keys()), rng=rng)
        print(f"Created {len(tournament.pools)} pool(s).")
        print_matches(tournament)
    elif args.command == 'round':
        appended = engine.next_round(tournament, rng)
        print(f"Round {tournament.current_round}:")
        _print_new(tournament, appended)
    elif args.command == 'score':
        match = _resolve_match(tournament, args.match)
        appended = engine.apply_score(tournament, match.id, args.score1, args.score2,
                                      winning_score=settings['winning_score'], rng=rng)
        print("Score saved.")
        _print_new(tournament, appended)
    elif args.command == 'court':
        match = _resolve_match(tournament, args.match)
        engine.set_court(tournament, match.id, args.court)
        print(f"Match moved to court {args.court}.")
    elif args.command == 'winner':
        team = _resolve_team(tournament, args.team)
        appended = engine.set_winner(tournament, args.code, team.id, rng)
        print(f"{args.code}: {team.name} wins.")
        _print_new(tournament, appended)
    elif args.command == 'standings':
        print_standings(tournament)
    elif args.command == 'matches':
        print_matches(tournament)
    elif args.command == 'bracket':
        print_bracket(tournament)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    data_dir = args.data_dir or get_data_dir()
    settings = load_settings(data_dir)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, str(settings['log_level']).upper(), logging.WARNING),
        format='%(levelname)s %(name)s: %(message)s',
    )

    logger.debug("Running '%s' in %s", args.command, data_dir)
    try:
        if args.command == 'reset':
            with data_lock(data_dir, settings['lock_timeout']):
                delete_tournament(tournament_path(data_dir))
            print("Tournament deleted.")
            return 0
        with tournament_session(data_dir, timeout=settings['lock_timeout']) as holder:
            run(args, settings, holder)
    except NotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except (StorageError, Timeout) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 3
    except TournamentError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
