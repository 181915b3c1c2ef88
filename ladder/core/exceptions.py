class LadderException(Exception):
    """Base exception for ranked ladder errors."""
    pass


class NotFound(LadderException):
    """Raised when a referenced record does not exist."""
    pass


class PlayerNotFound(NotFound):
    """Raised when a player is not found."""
    pass


class MatchNotFound(NotFound):
    """Raised when a match is not found."""
    pass


class InvalidMatchState(LadderException):
    """Raised when a match transition is not allowed from its current status."""
    pass


class InvalidWinner(LadderException):
    """Raised when the reported winner did not play in the match."""
    pass


class UpstreamUnavailable(LadderException):
    """Raised when the cache or the external ranking source cannot be reached."""
    pass


class PairingConflict(LadderException):
    """Raised when a waiting entry was claimed by a concurrent pairing."""
    pass


class SeasonNotFound(NotFound):
    """Raised when a season name is not configured."""
    pass


class InvalidGameMode(LadderException):
    """Raised when a game mode is not configured."""
    pass
