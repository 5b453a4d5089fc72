import threading

import pytest

from tileharvest.harvest import ProgressTracker


def test_update_and_get() -> None:
    tracker = ProgressTracker()

    tracker.update(1, 10, 3)

    state = tracker.get(1)
    assert state is not None
    assert (state.total_tiles, state.processed_tiles) == (10, 3)
    assert tracker.get(2) is None


def test_processed_never_exceeds_total() -> None:
    tracker = ProgressTracker()

    with pytest.raises(ValueError):
        tracker.update(1, 5, 6)
    with pytest.raises(ValueError):
        tracker.update(1, -1, 0)


def test_processed_is_monotonic() -> None:
    tracker = ProgressTracker()
    tracker.update(1, 10, 7)

    state = tracker.update(1, 10, 2)

    assert state.processed_tiles == 7


def test_clear_removes_entry() -> None:
    tracker = ProgressTracker()
    tracker.update(1, 1, 1)

    tracker.clear(1)
    tracker.clear(1)

    assert tracker.get(1) is None


def test_concurrent_updates_keep_highest_count() -> None:
    tracker = ProgressTracker()
    tracker.update(1, 400, 0)

    def work(offset: int) -> None:
        for processed in range(offset, 400, 4):
            tracker.update(1, 400, processed + 1)

    threads = [threading.Thread(target=work, args=(offset,)) for offset in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert tracker.get(1).processed_tiles == 400
