"""Exceptions raised by the host actions. Standings, pairing and bracket derivation raise none."""


class TournamentError(Exception):
    pass


class ValidationError(TournamentError):
    """Input rejected before it reaches the engine (scores, pool partitions, formats)."""
    pass


class NotFoundError(TournamentError):
    pass


class StateError(TournamentError):
    """The action does not apply to the tournament's format or current state."""
    pass


class StorageError(TournamentError):
    pass
