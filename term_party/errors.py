"""Errors raised by the session layer.

Only spawn failures reach callers. Stale-id operations are silent no-ops,
and persistence problems are logged and swallowed where they happen.
"""


class SpawnError(RuntimeError):
    """Creating the child process failed; no session was registered."""

    def __init__(self, working_directory: str, command: str, reason: str):
        super().__init__(f"Failed to start {command} in {working_directory}: {reason}")
        self.working_directory = working_directory
        self.command = command
        self.reason = reason
