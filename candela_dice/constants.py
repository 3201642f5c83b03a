DEFAULT_NAME = "Anonymous"
MAX_NAME_LENGTH = 24
MAX_CLIENT_ID_LENGTH = 64

# Dice per roll are clamped into this range; gilded dice into [0, dice].
MIN_DICE = 1
MAX_DICE = 6
DIE_FACES = 6

HISTORY_LIMIT = 100
CLEANUP_GRACE_SECONDS = 3600

__all__ = [
    "DEFAULT_NAME",
    "MAX_NAME_LENGTH",
    "MAX_CLIENT_ID_LENGTH",
    "MIN_DICE",
    "MAX_DICE",
    "DIE_FACES",
    "HISTORY_LIMIT",
    "CLEANUP_GRACE_SECONDS",
]
