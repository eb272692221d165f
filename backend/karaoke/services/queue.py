"""
Ordered queue operations.

Queue order is insertion order; front is the next song to perform. Every
targeted operation goes through ``entry_id`` or a bounds-checked index.
"""
from typing import List, Optional

from karaoke.models.room import QueueEntry


def append(queue: List[QueueEntry], entry: QueueEntry) -> None:
    queue.append(entry)


def index_of(queue: List[QueueEntry], entry_id: str) -> int:
    for i, e in enumerate(queue):
        if e.entry_id == entry_id:
            return i
    return -1


def remove_by_id(queue: List[QueueEntry], entry_id: str) -> bool:
    """Delete the entry with ``entry_id``. Returns whether anything was removed."""
    index = index_of(queue, entry_id)
    if index == -1:
        return False
    del queue[index]
    return True


def take_by_id(queue: List[QueueEntry], entry_id: str) -> Optional[QueueEntry]:
    """Remove and return the entry with ``entry_id``, or None."""
    index = index_of(queue, entry_id)
    if index == -1:
        return None
    return queue.pop(index)


def move_by_index(queue: List[QueueEntry], from_index: int, to_index: int) -> bool:
    """
    Move the entry at ``from_index`` so it ends up at ``to_index``.

    Both indices must lie in ``[0, len(queue))``, otherwise the queue is left
    untouched and False is returned. ``from_index == to_index`` is a legal
    identity move.
    """
    size = len(queue)
    if not (0 <= from_index < size and 0 <= to_index < size):
        return False
    entry = queue.pop(from_index)
    queue.insert(to_index, entry)
    return True


def pop_front(queue: List[QueueEntry]) -> Optional[QueueEntry]:
    if not queue:
        return None
    return queue.pop(0)
