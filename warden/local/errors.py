"""
Exception types shared by the supervisor components.

Only `PlatformNotSupportedError` and `IdentityValidationError` are allowed to
reach the entry point, where they end the process with status 1. Everything
else is absorbed and logged by the component that raised it.
"""


class WardenError(Exception):
    """Base class for all supervisor errors."""


class PlatformNotSupportedError(WardenError):
    """The host operating system is not one of the supported platforms."""


class IdentityValidationError(WardenError):
    """A node identity failed format validation."""


class LaunchFailure(WardenError):
    """The worker could not be started in its execution context."""


class InstallError(WardenError):
    """An installer step failed."""


class SupervisorTerminated(BaseException):
    """
    Raised from the signal handler to pre-empt whatever phase is running.

    Derives from BaseException: `except Exception` blocks in the installers
    and launchers do not catch it.
    """

    def __init__(self, signum: int):
        super().__init__(signum)
        self.signum = signum
