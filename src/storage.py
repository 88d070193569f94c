"""
YAML persistence of the tournament snapshot.

The whole tournament is one file, rewritten after every action. Reads and
writes go through a file lock so two commands cannot interleave.
"""
import logging
import os
from contextlib import contextmanager

import yaml
from filelock import FileLock

from config import LOCK_FILENAME, TOURNAMENT_FILENAME, get_data_dir
from core.errors import StorageError
from core.models import Tournament

logger = logging.getLogger(__name__)


def tournament_path(data_dir=None):
    return os.path.join(data_dir or get_data_dir(), TOURNAMENT_FILENAME)


def data_lock(data_dir=None, timeout=10):
    data_dir = data_dir or get_data_dir()
    os.makedirs(data_dir, exist_ok=True)
    return FileLock(os.path.join(data_dir, LOCK_FILENAME), timeout=timeout)


def load_tournament(path):
    """Load a tournament snapshot. Returns None when no snapshot exists yet."""
    if not os.path.exists(path):
        return None
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise StorageError(f"Cannot parse {path}: {e}") from e
    if not data:
        return None
    try:
        return Tournament.from_dict(data)
    except (KeyError, TypeError) as e:
        raise StorageError(f"Malformed tournament snapshot in {path}: {e}") from e


def save_tournament(tournament, path):
    """Save the snapshot atomically (write then rename)."""
    os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, 'w', encoding='utf-8') as f:
        yaml.dump(tournament.to_dict(), f, default_flow_style=False, allow_unicode=True, sort_keys=False)
    os.replace(tmp_path, path)
    logger.debug("Saved %s (%d matches)", path, len(tournament.matches))


def delete_tournament(path):
    if os.path.exists(path):
        os.remove(path)


@contextmanager
def tournament_session(data_dir=None, timeout=10):
    """
    Lock the data directory and yield a holder dict with the loaded tournament.

    Whatever tournament is in holder['tournament'] on exit is saved.
    """
    path = tournament_path(data_dir)
    with data_lock(data_dir, timeout):
        holder = {'tournament': load_tournament(path)}
        yield holder
        if holder['tournament'] is not None:
            save_tournament(holder['tournament'], path)


def load_pools_file(file_path):
    """
    Read a pool partition in the shape ``pool name: [team names]``.

    Pools may also be written as ``pool name: {teams: [...]}``.
    Returns an ordered dict of pool name -> team names.
    """
    with open(file_path, mode='r', encoding='utf-8') as file:
        pools_data = yaml.safe_load(file) or {}
    pools = {}
    for pool_name, pool_data in pools_data.items():
        if isinstance(pool_data, dict):
            pool_data = pool_data.get('teams', [])
        pools[str(pool_name)] = [str(name) for name in pool_data or []]
    return pools
