"""
Batch request helpers.

OPS accepts at most 100 identifiers per multiple-document request. These
helpers split larger inputs into compliant batches and run them in order:
- Configurable batch sizes (clamped to the OPS maximum)
- Progress tracking
- Fail-fast error handling with batch context
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from epo_ops.core.api_errors import BulkOperationError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

# OPS limit on identifiers per multiple-document request
MAX_BATCH_SIZE = 100


@dataclass
class BulkOptions:
    """
    Options for bulk operations.

    Attributes:
        max_concurrent: Accepted for API compatibility; batches currently
            always run sequentially
        on_progress: Called as on_progress(current, total) after each batch
            completes, 1-based
    """

    max_concurrent: int = 1
    on_progress: Optional[Callable[[int, int], None]] = None

    def __post_init__(self):
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")


def split_into_batches(items: Sequence[T], batch_size: int) -> List[List[T]]:
    """
    Split items into contiguous batches of at most batch_size.

    Concatenating the batches reproduces the input exactly. Empty input
    yields no batches.

    Raises:
        ValueError: If batch_size < 1
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


async def execute_bulk(
    items: Sequence[T],
    fetch_batch: Callable[[List[T]], Awaitable[R]],
    *,
    batch_size: int = MAX_BATCH_SIZE,
    options: Optional[BulkOptions] = None,
) -> List[R]:
    """
    Run fetch_batch over items in batches, sequentially and in input order.

    Args:
        items: Identifiers to process
        fetch_batch: Async function called once per batch
        batch_size: Batch size, clamped to MAX_BATCH_SIZE
        options: Progress callback and concurrency setting

    Returns:
        One result per batch, in batch order

    Raises:
        BulkOperationError: On the first failing batch (cause chained);
            results of earlier batches are discarded
    """
    if options is None:
        options = BulkOptions()

    batches = split_into_batches(items, min(batch_size, MAX_BATCH_SIZE))
    total = len(batches)
    results: List[R] = []

    for index, batch in enumerate(batches, start=1):
        logger.debug(f"Processing batch {index}/{total} ({len(batch)} items)")
        try:
            result = await fetch_batch(batch)
        except Exception as e:
            logger.error(f"Bulk operation failed at batch {index}/{total}: {e}")
            raise BulkOperationError(batch_index=index, total_batches=total, cause=e) from e

        results.append(result)

        if options.on_progress is not None:
            options.on_progress(index, total)

    return results
