import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar

from .errors import FetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class BatchResult:
    results: List[Tuple[Any, Any]] = field(default_factory=list)    # (item, result) in input order
    errors: List[Tuple[Any, BaseException]] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)


async def run_in_batches(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    concurrency: int = 10,
    delay: float = 1.0,
    label: str = "batch",
) -> BatchResult:
    """
    Run `worker` over `items` in chunks of `concurrency`, sleeping `delay`
    seconds between chunks. One failing item is logged and recorded in
    `errors`; the remaining items still run.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    out = BatchResult()
    total = len(items)
    chunks = range(0, total, concurrency)

    for n, start in enumerate(chunks, start=1):
        chunk = items[start:start + concurrency]
        logger.info("[%s] items %d-%d of %d", label.upper(), start + 1, start + len(chunk), total)
        results = await asyncio.gather(*(worker(item) for item in chunk), return_exceptions=True)
        for item, result in zip(chunk, results):
            if isinstance(result, Exception):
                logger.error("[%s] ERR  → %r | %s: %s", label.upper(), item, type(result).__name__, result)
                out.errors.append((item, result))
            elif isinstance(result, BaseException):
                raise result
            else:
                out.results.append((item, result))
        if n < len(chunks) and delay > 0:
            await asyncio.sleep(delay)

    return out


async def paginate(
    fetch_page: Callable[[int], Awaitable[Tuple[List[Any], Optional[int]]]],
    max_pages: int = 100,
    delay: float = 1.0,
) -> List[Any]:
    """
    Collect listing records page by page (1-based).

    `fetch_page(page)` returns (records, total_results or None). Stops on an
    empty page, once `total_results` records are collected, on a 404, or
    after `max_pages`. Other fetch errors skip the page.
    """
    collected: List[Any] = []
    for page in range(1, max_pages + 1):
        try:
            records, total = await fetch_page(page)
        except FetchError as exc:
            if exc.status_code == 404:
                logger.info("[LISTING] reached end of products (404) at page %d", page)
                break
            logger.warning("[LISTING] error fetching page %d: %s", page, exc)
            continue

        if not records:
            logger.info("[LISTING] no more products at page %d", page)
            break
        collected.extend(records)
        logger.info("[LISTING] page %d: %d products (%d so far)", page, len(records), len(collected))

        if total and len(collected) >= total:
            logger.info("[LISTING] reached total number of results: %d", total)
            break
        if delay > 0:
            await asyncio.sleep(delay)
    else:
        logger.warning("[LISTING] reached safety limit of %d pages", max_pages)

    return collected
