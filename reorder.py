from typing import List, Sequence, TypeVar

from errors import IndexOutOfRange

T = TypeVar("T")


def reorder(items: Sequence[T], source: int, destination: int) -> List[T]:
    """Move one element: take it out at `source`, insert it at `destination` of the shortened list.

    reorder([A, B, C, D], 0, 2) == [B, C, A, D]. Callers clamp indices first.
    """
    size = len(items)
    if not 0 <= source < size:
        raise IndexOutOfRange(f"source index {source} out of range for {size} items")
    if not 0 <= destination < size:
        raise IndexOutOfRange(f"destination index {destination} out of range for {size} items")
    result = list(items)
    moved = result.pop(source)
    result.insert(destination, moved)
    return result
