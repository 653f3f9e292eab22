"""
Paginated listing of cluster resources with bounded retries.

A Listing walks a collection page by page in cursor order. Each page request
is retried in place on transient failures; the cursor only advances after a
page has been received.
"""

from typing import Callable, Generic, Iterator, List, TypeVar

from .client import PLATFORM_ERRORS
from .logger import get_logger
from .models import Page
from .retry import RetryError, is_transient_error, with_retry

logger = get_logger()

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


class Listing(Generic[T]):
    """
    A lazy, restartable sequence of pages.

    Args:
        fetch_page: Callable taking ``cursor=`` and returning a Page
        max_attempts: Attempts per page before giving up
        base_delay: Seconds before the first retry of a page (doubles after)
    """

    def __init__(
        self,
        fetch_page: Callable[..., Page[T]],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = 0.0,
    ):
        self.fetch_page = fetch_page
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    def __iter__(self) -> Iterator[Page[T]]:
        cursor = ""
        while True:
            page = self._fetch(cursor)
            yield page
            if page.is_last:
                return
            cursor = page.cursor

    def items(self) -> Iterator[T]:
        """Yield items across all pages. Listing errors propagate."""
        for page in self:
            yield from page.items

    def collect(self, what: str) -> List[T]:
        """
        Gather every item, giving up quietly if a page cannot be fetched.

        Items from pages fetched before the failure are kept. The failure is
        logged and counted but never raised.
        """
        collected: List[T] = []
        try:
            for page in self:
                collected.extend(page.items)
        except (RetryError,) + PLATFORM_ERRORS as e:
            cause = e.__cause__ if isinstance(e, RetryError) and e.__cause__ else e
            logger.record_list_failure(type(cause).__name__)
            logger.warning(
                f"Giving up listing {what}",
                error=str(e),
                items_collected=len(collected),
            )
        return collected

    def _fetch(self, cursor: str) -> Page[T]:
        return with_retry(
            self.max_attempts,
            lambda: self.fetch_page(cursor=cursor),
            base_delay=self.base_delay,
            exceptions=PLATFORM_ERRORS,
            retry_if=is_transient_error,
            on_retry=self._on_retry,
        )

    @staticmethod
    def _on_retry(attempt: int, exception: Exception, delay: float):
        logger.record_list_retry()
        logger.debug(
            "Retrying listing page",
            attempt=attempt,
            delay=delay,
            error=str(exception),
        )
