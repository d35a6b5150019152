"""Errors raised by the intake pipeline."""


class IntakeError(Exception):
    """Base class for intake pipeline failures."""


class IntakeValidationError(IntakeError):
    """
    The invocation cannot proceed at all (missing project id, no folder
    taxonomy). Reported to the caller as a client error.
    """


class ProjectNotFoundError(IntakeValidationError):
    """No project is registered for any of the message's recipient addresses."""

    def __init__(self, addresses: list[str]):
        self.addresses = list(addresses)
        super().__init__(f"Project not found for {', '.join(self.addresses) or '<no recipients>'}")


class EmptyFileError(IntakeError):
    """A downloaded or received file has zero bytes."""
