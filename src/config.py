"""
Settings for the command line host.
"""
import os
import yaml

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))

SETTINGS_FILENAME = 'settings.yaml'
TOURNAMENT_FILENAME = 'tournament.yaml'
LOCK_FILENAME = '.lock'


def get_default_settings():
    return {
        'tournament_type': 'doublette-poule',
        'courts': 4,
        'winning_score': 13,
        'log_level': 'WARNING',
        'lock_timeout': 10,
    }


def get_data_dir():
    """Data directory, re-read from the environment so tests can redirect it."""
    return os.environ.get('TOURNAMENT_DATA_DIR', DATA_DIR)


def load_settings(data_dir=None):
    """Load settings from YAML, filling missing keys with defaults."""
    defaults = get_default_settings()
    path = os.path.join(data_dir or get_data_dir(), SETTINGS_FILENAME)
    if not os.path.exists(path):
        return defaults
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
        if not data:
            return defaults
        for key, value in defaults.items():
            if key not in data:
                data[key] = value
        return data


def save_settings(settings, data_dir=None):
    data_dir = data_dir or get_data_dir()
    os.makedirs(data_dir, exist_ok=True)
    with open(os.path.join(data_dir, SETTINGS_FILENAME), 'w', encoding='utf-8') as f:
        yaml.dump(settings, f, default_flow_style=False, allow_unicode=True)
