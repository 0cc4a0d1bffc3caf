import logging
import time
from typing import Callable, Tuple, Type, TypeVar, Union

T = TypeVar("T")


def with_retries(
    operation_to_retry: Callable[[], T],
    log: Union[logging.Logger, logging.LoggerAdapter],
    max_attempts: int = 5,
    delay: float = 2,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    Retry a remote call with exponential backoff on transient errors.

    :param operation_to_retry: The function/operation to retry.
    :param log: Logger receiving attempt failures.
    :param max_attempts: Maximum number of attempts.
    :param delay: Initial delay between attempts (doubled on every failure).
    :param retry_on: Exception types considered transient.
        Anything else propagates immediately.
    :return: The operation result.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            return operation_to_retry()
        except retry_on as e:
            if attempt == max_attempts:
                log.error("Giving up after %s attempts: %s", attempt, e)
                raise
            backoff = delay * 2 ** (attempt - 1)
            log.warning(
                "Attempt %s/%s failed: %s; retrying in %ss",
                attempt,
                max_attempts,
                e,
                backoff,
            )
            time.sleep(backoff)
    # Unreachable: the loop either returns or raises.
    raise RuntimeError("with_retries() called with max_attempts < 1")
