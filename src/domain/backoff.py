"""Reconnection backoff policy: exponential growth capped at a ceiling."""


def backoff_delay(attempt: int, base_delay: float, delay_ceiling: float) -> float:
    """Delay in seconds before reconnect attempt ``attempt`` (1-based)."""
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    # Cap the exponent so huge attempt numbers cannot overflow the float
    exponent = min(attempt, 62)
    return min(base_delay * (2**exponent), delay_ceiling)
