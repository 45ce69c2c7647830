"""
Package-specific exceptions.

Per-frame estimation problems never surface as exceptions; they degrade to
"no motion this frame". Only these two conditions reach the caller.
"""


class InitializationError(RuntimeError):
    """
    A required vision capability is missing.

    Raised once from initialize(); the owning component refuses further
    work until it is initialized again.
    """


class StabilizationCancelled(Exception):
    """
    Raised when a cooperative cancel flag is observed between frames.

    Anything built before the flag was seen is discarded, never published.
    """
