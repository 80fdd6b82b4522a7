import logging
import time
from typing import Callable, Iterator, Optional, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
C = TypeVar("C")

PageFetcher = Callable[[C], Tuple[Sequence[T], Optional[C]]]


def paginate(
    fetch_page: PageFetcher,
    cursor: C,
    *,
    delay: float,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[T]:
    """
    Walk a paginated listing one page at a time.

    ``fetch_page(cursor)`` returns ``(records, next_cursor)``; a ``None``
    cursor ends the listing. ``delay`` seconds are slept between two requests
    to stay below provider rate limits. Errors from ``fetch_page`` propagate
    unchanged: there is no retry.
    """
    while True:
        records, next_cursor = fetch_page(cursor)
        yield from records
        if next_cursor is None:
            return
        logger.debug("Next page cursor %r, sleeping %.1fs", next_cursor, delay)
        cursor = next_cursor
        sleep(delay)
