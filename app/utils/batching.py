"""Split an ordered collection into fixed-size, contiguous batches."""

from typing import Sequence, TypeVar

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 50  # practical per-call item limit of the vendor API


def split(items: Sequence[T], size: int = DEFAULT_BATCH_SIZE) -> list[list[T]]:
    """Return contiguous, non-overlapping chunks of at most ``size`` items.

    The last chunk may be shorter. Empty input yields no batches.
    """
    if size <= 0:
        raise ValueError(f"batch size must be positive, got {size}")
    items = list(items)
    return [items[i : i + size] for i in range(0, len(items), size)]
