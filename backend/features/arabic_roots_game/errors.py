"""Exception taxonomy for the Arabic roots game engine."""


class GameError(Exception):
    """Base class for every error raised by the game engine."""


class EmptyCandidatePool(GameError):
    """Raised when no lexicon entry or triangle exists at all to build a round from."""


class InvalidSubmission(GameError):
    """Raised when an answer is submitted before the round can be scored."""


class InvalidTransition(GameError):
    """Raised when a session operation is not allowed in the current state."""


class ContentError(GameError):
    """Raised when a bundled dataset is missing or malformed."""


class PersistenceFailure(GameError):
    """Raised by stores when the backing storage cannot complete an operation."""
