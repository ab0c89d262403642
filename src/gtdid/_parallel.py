"""
Slot-based task execution on a thread pool.

Tasks are independent and each writes only to its own result slot, so
collection needs no shared counter. The first exception raised by a
task cancels the tasks still pending and is re-raised to the caller.
"""

import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Sequence, TypeVar

T = TypeVar('T')
R = TypeVar('R')


def resolve_n_jobs(n_jobs: int) -> int:
    if n_jobs == -1:
        return os.cpu_count() or 4
    return max(1, int(n_jobs))


def run_in_slots(
    func: Callable[[T], R],
    tasks: Sequence[T],
    n_jobs: int = 1,
) -> List[R]:
    """
    Apply ``func`` to every task and return results in task order.

    Runs sequentially when ``n_jobs`` resolves to 1.
    """
    workers = resolve_n_jobs(n_jobs)
    if workers == 1 or len(tasks) <= 1:
        return [func(task) for task in tasks]

    slots: List[R] = [None] * len(tasks)
    with ThreadPoolExecutor(max_workers=min(workers, len(tasks))) as executor:
        futures = {executor.submit(func, task): i for i, task in enumerate(tasks)}
        try:
            for future in as_completed(futures):
                slots[futures[future]] = future.result()
        except BaseException:
            for future in futures:
                future.cancel()
            raise
    return slots
