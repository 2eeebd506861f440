import random
import time


def full_jitter_delay(attempt, *, base_delay, max_delay):
    if attempt < 1:
        raise ValueError("attempt must be >= 1")
    if base_delay < 0 or max_delay < 0:
        raise ValueError("base_delay and max_delay must be >= 0")

    cap = min(max_delay, base_delay * (2 ** (attempt - 1)))
    return random.uniform(0, cap)


def retry_on_exceptions(
    func,
    *,
    exceptions,
    max_attempts,
    base_delay,
    max_delay,
    on_retry=None,
    sleep=time.sleep,
):
    """Call ``func`` until it returns, retrying only on ``exceptions``.

    The last exception is re-raised once ``max_attempts`` calls have failed;
    anything outside ``exceptions`` propagates on the first occurrence.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    attempt = 1
    while True:
        try:
            return func()
        except exceptions as exc:
            if attempt >= max_attempts:
                raise

            delay = full_jitter_delay(
                attempt,
                base_delay=base_delay,
                max_delay=max_delay,
            )
            if on_retry is not None:
                on_retry(attempt=attempt, delay_seconds=delay, exception=exc)
            if delay > 0:
                sleep(delay)
            attempt += 1
