class ExecError(Exception):
    """Base class for exec_shells errors."""


class ExecAllocationError(ExecError):
    """A command record could not be allocated."""


class CommandNotFoundError(ExecError, KeyError):
    def __init__(self, ident: str):
        super().__init__(ident)
        self.ident = ident

    def __str__(self) -> str:
        return f"command id {self.ident!r} not found"


class ExecConfigError(ExecError, ValueError):
    """Invalid configuration file or value."""
