import time
from typing import Callable, Tuple, Type, TypeVar

from mpesa_gateway.errors import TransportError
from mpesa_gateway.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


def retry_with_backoff(
        fn: Callable[[], T],
        max_retries: int = 3,
        delay: float = 1.0,
        exceptions: Tuple[Type[BaseException], ...] = (TransportError,),
        sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call fn, retrying on the given exceptions with exponential backoff.

    fn is attempted at most max_retries + 1 times and the delay doubles after
    every failure. The last exception is re-raised once retries run out.

    Usage:
        retry_with_backoff(lambda: provider.query_stk_status(checkout_id))
    """
    for attempt in range(max_retries + 1):
        try:
            return fn()
        except exceptions as exc:
            if attempt == max_retries:
                raise
            logger.warning(
                f'Retry attempt {attempt + 1} failed ({exc}), retrying in {delay:.2f}s'
            )
            sleep(delay)
            delay *= 2
