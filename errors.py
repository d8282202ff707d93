"""Errors raised while handling commands and talking to the bridge."""


class HomeControlError(Exception):
    """Base class for failures surfaced to the client that issued a command."""


class NotFoundError(HomeControlError, LookupError):
    """A command, group or scene is not known."""


class MissingParameterError(HomeControlError):
    """A required command parameter was not given."""

    def __init__(self, command: str, name: str):
        super().__init__(f'Missing parameter for "{command}": {name}')
        self.command = command
        self.name = name


class TypeMismatchError(HomeControlError, TypeError):
    """A command parameter was given with the wrong type."""

    def __init__(self, name: str, expected: str, actual: str):
        super().__init__(
            f'Expected "{name}" to be given as a {expected}, but got a {actual} instead.'
        )
        self.name = name
        self.expected = expected
        self.actual = actual


class InvalidArgumentError(HomeControlError, ValueError):
    """A value is out of its accepted range or malformed."""


class BackendUnavailableError(HomeControlError):
    """The Philips Hue bridge could not be reached or rejected a request."""


class UnauthorizedError(BackendUnavailableError):
    """The Philips Hue bridge does not accept the credentials in use."""
