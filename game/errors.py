"""
Exception types for the KOTH event server.

Rejected operations raise one of these; the controller and command layer
catch them and report back to whoever asked. None of them are fatal.
"""


class KothError(Exception):
    """Base class for all KOTH errors."""
    pass


# ============ Lifecycle ============

class EventAlreadyRunning(KothError):
    """A start was requested while an event is running."""

    def __init__(self, message: str = "An event is already running!"):
        super().__init__(message)


class RegionLocked(KothError):
    """The contest region cannot change while an event is running."""

    def __init__(self, message: str = "The zone cannot be changed while an event is running."):
        super().__init__(message)


# ============ Geometry ============

class InvalidRegion(KothError):
    """Region geometry is invalid (non-positive or non-finite radius)."""
    pass


# ============ Commands ============

class CommandError(KothError):
    """A chat command was rejected (bad arguments or missing privilege)."""
    pass


# ============ World ============

class WorldError(KothError):
    """The host could not perform a world operation."""
    pass


# ============ Protocol ============

class InvalidMessage(KothError):
    """A host message is valid JSON but its data has the wrong shape."""
    pass
