class VsphereIsoError(Exception):
    """
    Base class for every error raised by the builder.
    """


# --- terminal build errors (raised to the caller once the run is over) ---

class BuildError(VsphereIsoError):
    pass


class BuildFailedError(BuildError):
    """
    A step recorded an error. The message is the recorded error verbatim,
    the original exception is kept on `cause`.
    """

    def __init__(self, cause: BaseException):
        super().__init__(str(cause))
        self.cause = cause


class BuildCancelledError(BuildError):
    def __init__(self, message: str = "Build was cancelled."):
        super().__init__(message)


class BuildHaltedError(BuildError):
    def __init__(self, message: str = "Build was halted."):
        super().__init__(message)


# --- step level errors ---

class MissingStateError(VsphereIsoError):
    """
    A step asked the context for a value that no earlier step has written.
    """

    def __init__(self, key: str):
        super().__init__(f"Missing build state '{key}': step is running out of order")
        self.key = key


class OperationCancelled(VsphereIsoError):
    pass


class ShutdownTimeoutError(VsphereIsoError):
    def __init__(self, message: str = "Timeout while waiting for machine to shut down."):
        super().__init__(message)
