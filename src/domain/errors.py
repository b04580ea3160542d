"""Client error taxonomy."""


class RideClientError(Exception):
    """Base class for every error raised by the booking client."""


class ConfigurationError(RideClientError):
    """Required configuration is missing or malformed."""


class ValidationError(RideClientError):
    """Form input rejected locally; ``str(exc)`` is the user-facing message."""


class AdmissionDenied(RideClientError):
    """A submit path was attempted while its precondition does not hold."""


class DuplicateSubmission(RideClientError):
    """A booking is already in flight for the current session."""


class InvalidStateTransition(RideClientError):
    """Raised when a session state change violates the state machine."""


class TransportError(RideClientError):
    """Base class for failures of a single ``send`` call."""


class NotConnectedError(TransportError):
    pass


class RequestTimeout(TransportError):
    pass


class ServerError(TransportError):
    """The backend acknowledged with an error payload."""


class ReconnectionExhausted(NotConnectedError):
    """Automatic reconnection gave up after the configured number of attempts."""


class InvalidEstimateInput(RideClientError):
    pass
