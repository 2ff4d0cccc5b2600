# Exceptions raised by the rolling-horizon gate assignment engine


class AgapError(Exception):
    """Base class for all gate assignment errors."""


class ConfigError(AgapError, ValueError):
    pass


class RelationDataError(AgapError, ValueError):
    """Flight, gate or connection data that cannot be indexed consistently."""


class WindowError(AgapError, ValueError):
    pass


class InfeasibleWindowError(AgapError):
    """
    A window model has no feasible assignment.
    `iis` holds the names of the constraints in the irreducible infeasible subsystem.
    """

    def __init__(self, window, iis=None):
        self.window = window
        self.iis = list(iis or [])
        shown = ", ".join(self.iis[:10])
        more = f" (+{len(self.iis) - 10} more)" if len(self.iis) > 10 else ""
        super().__init__(
            f"Window {window.start}-{window.stop - 1} is infeasible; IIS: [{shown}]{more}"
        )


class BackendError(AgapError, RuntimeError):
    """
    The optimization backend could not produce an assignment (license, timeout, ...).
    `locks` is a snapshot of the lock store at the time of failure.
    """

    def __init__(self, message, window=None, locks=None):
        super().__init__(message)
        self.window = window
        self.locks = dict(locks or {})


class LockConflictError(AgapError):
    """Attempt to move a flight that is already locked to a different gate."""
