import time


def unix_now() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())


def elapsed_ms(start: float) -> int:
    """Milliseconds since a time.perf_counter() reading."""
    return int((time.perf_counter() - start) * 1000)
