"""Tests for the filesystem transport."""

import sys
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from facilitator.errors import IoError
from facilitator.transport import FileTransport, Transport


def test_put_and_get():
    """Objects written with put come back from get."""
    with tempfile.TemporaryDirectory() as tmpdir:
        transport = FileTransport(tmpdir)
        assert isinstance(transport, Transport)

        with transport.put("agg/date/batch.sig") as out:
            out.write(b"signature bytes")

        with transport.get("agg/date/batch.sig") as reader:
            assert reader.read() == b"signature bytes"

        assert (Path(tmpdir) / "agg" / "date" / "batch.sig").exists()
        print("  [PASS] FileTransport put + get")


def test_put_replaces():
    with tempfile.TemporaryDirectory() as tmpdir:
        transport = FileTransport(tmpdir)
        with transport.put("key") as out:
            out.write(b"first version, longer")
        with transport.put("key") as out:
            out.write(b"second")
        with transport.get("key") as reader:
            assert reader.read() == b"second"


def test_get_missing_raises_io_error():
    """Missing objects raise IoError naming the key."""
    with tempfile.TemporaryDirectory() as tmpdir:
        transport = FileTransport(tmpdir)
        try:
            transport.get("agg/date/missing.batch")
            assert False, "should have raised IoError"
        except IoError as e:
            assert e.key == "agg/date/missing.batch"
            assert "agg/date/missing.batch" in str(e)
        print("  [PASS] FileTransport missing key")


def test_put_rejected_raises_io_error():
    """A key whose parent is a file cannot be written."""
    with tempfile.TemporaryDirectory() as tmpdir:
        transport = FileTransport(tmpdir)
        with transport.put("blocker") as out:
            out.write(b"x")
        try:
            transport.put("blocker/child")
            assert False, "should have raised IoError"
        except IoError as e:
            assert e.key == "blocker/child"
        print("  [PASS] FileTransport rejected write")


if __name__ == "__main__":
    print("Testing transports...\n")
    test_put_and_get()
    test_put_replaces()
    test_get_missing_raises_io_error()
    test_put_rejected_raises_io_error()
    print("\nAll transport tests passed!")
