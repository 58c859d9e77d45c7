class RoboError(Exception):
    """Base exception for the runtime."""

    pass


class ScriptHalted(RoboError):
    """Raised inside the execution task once a stop has been requested."""

    pass
