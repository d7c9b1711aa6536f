"""Errors raised by the conversation core."""


class InvalidInput(ValueError):
    """User text is blank after trimming; the turn never starts."""


class TransportFailure(RuntimeError):
    """The agent could not be reached, answered with an error, or its reply stream broke."""
