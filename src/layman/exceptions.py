from collections.abc import (
    Sequence,
)

from layman import (
    RequirementError,
)


class ConfigurationError(RequirementError):
    """
    A field of the service descriptor or its ``custom.layerConfig`` section is
    missing or malformed.
    """


class TemplateError(RequirementError):
    """
    The compiled deployment template is absent altogether.
    """


class ResolutionError(Exception):
    """
    The handler of a function could not be mapped to a source file. These are
    caught per function, the offending function is skipped.
    """


class BuildError(Exception):
    """
    The bundler failed to compile the entries of a layer.
    """

    def __init__(self, message: str, details: Sequence[str] = ()) -> None:
        super().__init__(message, *details)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return '\n'.join([self.message, *self.details])


class InstallError(Exception):
    """
    The package manager exited with a non-zero status.
    """

    def __init__(self, command: Sequence[str], returncode: int) -> None:
        super().__init__(command, returncode)
        self.command = command
        self.returncode = returncode

    def __str__(self) -> str:
        return f'Command {" ".join(self.command)!r} exited with status {self.returncode}'
