"""Domain enumerations and state-transition rules."""

import enum


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"


class TransportMode(str, enum.Enum):
    PRIMARY = "websocket"
    FALLBACK = "polling"


class DriverStatus(str, enum.Enum):
    OFFLINE = "OFFLINE"
    AVAILABLE = "AVAILABLE"
    BUSY = "BUSY"


class BookingKind(str, enum.Enum):
    IMMEDIATE = "now"
    SCHEDULED = "future"


class SessionState(str, enum.Enum):
    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    SUBMITTING = "SUBMITTING"
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    FAILED = "FAILED"


TERMINAL_STATES = frozenset(
    {SessionState.ACCEPTED, SessionState.DECLINED, SessionState.FAILED}
)

# State machine: maps current state -> set of valid next states
SESSION_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.IDLE: {SessionState.VALIDATING},
    SessionState.VALIDATING: {SessionState.SUBMITTING, SessionState.IDLE},
    SessionState.SUBMITTING: {SessionState.PENDING},
    SessionState.PENDING: {
        SessionState.ACCEPTED,
        SessionState.DECLINED,
        SessionState.FAILED,
    },
    SessionState.ACCEPTED: set(),
    SessionState.DECLINED: set(),
    SessionState.FAILED: set(),
}
