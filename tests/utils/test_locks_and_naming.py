import threading

import pytest

from sqlweave.utils import to_snake_case
from sqlweave.utils.locks import ReadWriteLock


@pytest.mark.parametrize(
    "name, expected",
    [
        ("FieldName", "field_name"),
        ("fieldName", "field_name"),
        ("UserID", "user_id"),
        ("HTTPServer", "http_server"),
        ("already_snake", "already_snake"),
        ("Address2Line", "address2_line"),
    ],
)
def test_to_snake_case(name, expected):
    assert to_snake_case(name) == expected


def test_readers_share_the_lock():
    lock = ReadWriteLock()
    inside = threading.Barrier(2, timeout=2)

    def reader():
        with lock.read():
            inside.wait()

    threads = [threading.Thread(target=reader) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=3)
    assert not any(thread.is_alive() for thread in threads)


def test_writer_excludes_readers():
    lock = ReadWriteLock()
    events = []
    writer_in = threading.Event()

    def writer():
        with lock.write():
            writer_in.set()
            events.append("write-start")
            threading.Event().wait(0.05)
            events.append("write-end")

    def reader():
        writer_in.wait(timeout=2)
        with lock.read():
            events.append("read")

    threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=3)
    assert events == ["write-start", "write-end", "read"]
