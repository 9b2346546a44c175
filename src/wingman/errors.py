"""Error taxonomy for the coordinator."""

NO_API_KEY_MESSAGE = "No API key configured"


class WingmanError(Exception):
    """Base class for all coordinator errors."""


class ExtractionFailure(WingmanError):
    """A surface read did not yield the mandatory fields.

    Soft: raised and caught inside the extraction retry loop only.
    """


class CredentialMissing(WingmanError):
    """The inference backend has no API key. Terminal, never retried."""

    def __init__(self, message: str = NO_API_KEY_MESSAGE) -> None:
        super().__init__(message)


class RequestFailed(WingmanError):
    """A single inference request failed. Transient, surfaced per call."""


class InvalidTransition(WingmanError):
    """A context phase transition that the state machine does not allow."""
