# tests/test_sweeper.py
# Cleanup sweeper, on demand and on a background thread

import threading
import time
from datetime import timedelta

from pasteburn.sweeper import BackgroundSweeper, CleanupSweeper

from conftest import START, make_paste


def test_sweep_removes_only_expired(store):
    store.insert(make_paste("short", expires_in=10))
    store.insert(make_paste("long", expires_in=100))
    sweeper = CleanupSweeper(store, batch_size=100)

    assert sweeper.sweep(START + timedelta(seconds=50)) == 1
    assert store.get("short") is None
    assert store.get("long") is not None


def test_sweep_is_idempotent(store):
    store.insert(make_paste("short", expires_in=10))
    sweeper = CleanupSweeper(store)
    later = START + timedelta(seconds=50)
    assert sweeper.sweep(later) == 1
    assert sweeper.sweep(later) == 0


def test_sweep_is_bounded_by_batch_size(store):
    for i in range(4):
        store.insert(make_paste(f"t{i}", expires_in=10))
    sweeper = CleanupSweeper(store, batch_size=3)
    later = START + timedelta(seconds=50)
    assert sweeper.sweep(later) == 3
    assert sweeper.sweep(later) == 1


def test_concurrent_sweeps_delete_each_row_once(memory_store):
    for i in range(50):
        memory_store.insert(make_paste(f"t{i}", expires_in=10))
    sweeper = CleanupSweeper(memory_store, batch_size=None)
    later = START + timedelta(seconds=50)
    counts = []
    barrier = threading.Barrier(4)

    def run():
        barrier.wait()
        counts.append(sweeper.sweep(later))

    threads = [threading.Thread(target=run) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(counts) == 50
    assert memory_store.count_live(later) == 0


def test_background_sweeper_runs_periodically(memory_store):
    memory_store.insert(make_paste("short", expires_in=10))
    swept = threading.Event()

    class RecordingSweeper(CleanupSweeper):
        def sweep(self, now):
            removed = super().sweep(now)
            if removed:
                swept.set()
            return removed

    background = BackgroundSweeper(
        RecordingSweeper(memory_store),
        interval=0.05,
        clock=lambda: START + timedelta(seconds=60),
    )
    background.start()
    try:
        assert swept.wait(timeout=2)
    finally:
        background.stop()

    assert memory_store.get("short") is None


def test_background_sweeper_survives_errors(memory_store):
    calls = []

    class FailingSweeper(CleanupSweeper):
        def sweep(self, now):
            calls.append(now)
            raise RuntimeError("store down")

    background = BackgroundSweeper(FailingSweeper(memory_store), interval=0.02)
    background.start()
    time.sleep(0.2)
    background.stop()
    assert len(calls) >= 2
