from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Sequence, TypeVar

T = TypeVar("T")

ProgressCallback = Callable[[int, int], None]


def run_bounded(
    tasks: Sequence[Callable[[], T]],
    limit: int,
    on_progress: ProgressCallback | None = None,
) -> list[T]:
    total = len(tasks)
    if total == 0:
        return []
    limit = max(1, limit)
    results: list = [None] * total
    failure: BaseException | None = None
    completed = 0
    with ThreadPoolExecutor(max_workers=min(limit, total), thread_name_prefix="webpconvert") as executor:
        futures: dict[Future[T], int] = {
            executor.submit(task): index for index, task in enumerate(tasks)
        }
        for future in as_completed(futures):
            exc = future.exception()
            if exc is not None:
                if failure is None:
                    failure = exc
            else:
                results[futures[future]] = future.result()
            completed += 1
            if on_progress is not None:
                on_progress(completed, total)
    if failure is not None:
        raise failure
    return results
