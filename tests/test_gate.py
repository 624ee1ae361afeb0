from __future__ import annotations

import threading
import time

from ledger_engine import AccessGate

TIMEOUT = 5


def test_readers_share_the_gate():
    gate = AccessGate()
    with gate.reading(), gate.reading():
        assert gate.active_readers == 2
        assert not gate.writer_active
    assert gate.active_readers == 0


def test_writer_waits_for_readers():
    gate = AccessGate()
    events: list[str] = []
    reader_in = threading.Event()
    release_reader = threading.Event()

    def reader():
        with gate.reading():
            reader_in.set()
            release_reader.wait(TIMEOUT)
            events.append("reader done")

    def writer():
        with gate.writing():
            events.append("writer in")

    r = threading.Thread(target=reader)
    r.start()
    assert reader_in.wait(TIMEOUT)
    w = threading.Thread(target=writer)
    w.start()
    time.sleep(0.05)
    assert events == []

    release_reader.set()
    r.join(TIMEOUT)
    w.join(TIMEOUT)
    assert events == ["reader done", "writer in"]


def test_waiting_writer_blocks_new_readers():
    gate = AccessGate()
    order: list[str] = []
    first_reader_in = threading.Event()
    release_first = threading.Event()

    def first_reader():
        with gate.reading():
            first_reader_in.set()
            release_first.wait(TIMEOUT)

    def writer():
        with gate.writing():
            order.append("writer")

    def late_reader():
        with gate.reading():
            order.append("late reader")

    t1 = threading.Thread(target=first_reader)
    t1.start()
    assert first_reader_in.wait(TIMEOUT)
    t2 = threading.Thread(target=writer)
    t2.start()
    time.sleep(0.05)
    t3 = threading.Thread(target=late_reader)
    t3.start()
    time.sleep(0.05)

    release_first.set()
    for t in (t1, t2, t3):
        t.join(TIMEOUT)
    assert order == ["writer", "late reader"]


def test_gate_is_released_on_error():
    gate = AccessGate()
    try:
        with gate.writing():
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    with gate.reading():
        assert gate.active_readers == 1


def test_concurrent_writes_through_repositories(engine):
    def add_many():
        for _ in range(10):
            engine.ledger.create(100, "expense")

    threads = [threading.Thread(target=add_many) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(TIMEOUT * 4)

    assert len(engine.ledger.fetch_all()) == 40
