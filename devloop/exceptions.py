"""
Error taxonomy for devloop.

Each fatal error carries the exit status the driver terminates with, so a
fatal supervisor failure is distinguishable from a proxied child exit code.
"""


class DevloopError(Exception):
    """Base class for devloop errors."""

    exit_code = 1


class LaunchFailure(DevloopError):
    """The operating system could not create the child process."""

    exit_code = 127


class WatchSetupFailure(DevloopError):
    """The recursive filesystem watch could not be established."""

    exit_code = 74


class ChildIOFailure(DevloopError):
    """Forwarding a child's output stream to the parent failed."""
