import functools
import logging
import time

logger = logging.getLogger(__name__)


def retry_call(func, *args, max_retries: int = 1, base_delay: float = 1.0, step: float = 0.0,
               exceptions: tuple = (Exception,), **kwargs):
    """Call func, retrying up to max_retries times on the given exceptions.

    Delays: base_delay + step * attempt (fixed when step is 0, e.g. 4s, 4s;
    linear otherwise, e.g. 1s, 1.5s, 2s).
    """
    last_exception = None
    name = getattr(func, "__name__", repr(func))
    for attempt in range(max_retries + 1):
        try:
            return func(*args, **kwargs)
        except exceptions as e:
            last_exception = e
            if attempt < max_retries:
                delay = base_delay + step * attempt
                logger.warning(
                    "%s attempt %d failed: %s. Retrying in %.1fs...",
                    name, attempt + 1, e, delay,
                )
                time.sleep(delay)
            else:
                logger.error(
                    "%s failed after %d attempts: %s",
                    name, max_retries + 1, e,
                )
    raise last_exception


def with_retry(max_retries: int = 1, base_delay: float = 1.0, step: float = 0.0,
               exceptions: tuple = (Exception,)):
    """Decorator form of retry_call."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return retry_call(
                func, *args,
                max_retries=max_retries, base_delay=base_delay, step=step,
                exceptions=exceptions, **kwargs,
            )

        return wrapper

    return decorator
