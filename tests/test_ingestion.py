"""
Batch Ingestor — Integration Tests
Generates sample ingestion batches, runs validation share generation for
both share processors and checks every failure mode of the workflow.
"""

import io
import sys
import tempfile
from pathlib import Path
from uuid import uuid4

sys.path.insert(0, str(Path(__file__).parent.parent))

import fastavro

from facilitator import signing
from facilitator.batch import Batch
from facilitator.errors import (
    CryptographyError,
    IoError,
    LibPrioError,
    MalformedDataPacketError,
    MalformedHeaderError,
)
from facilitator.idl import (
    IngestionDataSharePacket,
    IngestionHeader,
    IngestionSignature,
    ValidationHeader,
    ValidationPacket,
)
from facilitator.ingestion import BatchIngestor, field_to_long, r_pit_to_u32
from facilitator.prio import Client, MODULUS, PrivateKey, VerificationMessage, is_valid_share
from facilitator.prio.server import choose_eval_at
from facilitator.sample import generate_ingestion_sample
from facilitator.transport import FileTransport

AGGREGATION = "fake-aggregation-1"
DATE = "fake-date"


class Keys:
    """Fresh key material for one test."""

    def __init__(self):
        self.pha_ecies = PrivateKey.generate()
        self.facilitator_ecies = PrivateKey.generate()
        self.ingestor = signing.generate_signing_key()
        self.pha_signing = signing.generate_signing_key()
        self.facilitator_signing = signing.generate_signing_key()


class FailingStream(io.RawIOBase):
    """A storage stream whose every read and write fails."""

    def readable(self):
        return True

    def writable(self):
        return True

    def readinto(self, b):
        raise OSError("connection reset")

    def write(self, data):
        raise OSError("disk full")


class FailingTransport(FileTransport):
    """File storage where objects whose key ends with ``suffix`` are unusable."""

    def __init__(self, directory, suffix):
        super().__init__(directory)
        self.suffix = suffix

    def get(self, key):
        if key.endswith(self.suffix):
            return FailingStream()
        return super().get(key)

    def put(self, key):
        if key.endswith(self.suffix):
            return FailingStream()
        return super().put(key)


def make_ingestor(keys, batch_uuid, transport, is_first=True):
    return BatchIngestor(
        AGGREGATION,
        batch_uuid,
        DATE,
        transport,
        transport,
        is_first,
        keys.pha_ecies if is_first else keys.facilitator_ecies,
        keys.pha_signing if is_first else keys.facilitator_signing,
        keys.ingestor.public_key(),
    )


def read_bytes(transport, key):
    with transport.get(key) as f:
        return f.read()


def read_packets(transport, key, cls):
    data = read_bytes(transport, key)
    if not data:
        return []
    return [cls.from_record(r) for r in fastavro.reader(io.BytesIO(data), reader_schema=cls.SCHEMA)]


def flip_byte(transport, key, index):
    data = bytearray(read_bytes(transport, key))
    data[index] ^= 0x01
    with transport.put(key) as out:
        out.write(bytes(data))


def write_custom_batch(transport, keys, batch_uuid, header, packets):
    """Write and sign an ingestion batch the sample generator would not produce."""
    header_buf = io.BytesIO()
    header.write(header_buf)
    packet_buf = io.BytesIO()
    writer = IngestionDataSharePacket.writer(packet_buf)
    for packet in packets:
        packet.write(writer)
    writer.flush()

    batch = Batch.new_ingestion(AGGREGATION, batch_uuid, DATE)
    with transport.put(batch.header_key) as out:
        out.write(header_buf.getvalue())
    with transport.put(batch.packet_file_key) as out:
        out.write(packet_buf.getvalue())
    with transport.put(batch.signature_key) as out:
        IngestionSignature(
            batch_header_signature=signing.sign(keys.ingestor, header_buf.getvalue()),
            signature_of_packets=signing.sign(keys.ingestor, packet_buf.getvalue()),
        ).write(out)


def make_header(batch_uuid, bins):
    return IngestionHeader(
        batch_uuid=batch_uuid, name=AGGREGATION, bins=bins, epsilon=0.11,
        prime=MODULUS, number_of_servers=2,
    )


def make_packets(keys, bins, count):
    client = Client(bins, keys.pha_ecies.public_key(), keys.facilitator_ecies.public_key())
    packets = []
    for _ in range(count):
        share1, _ = client.encode_simple([1] + [0] * (bins - 1))
        packets.append(IngestionDataSharePacket(
            uuid=uuid4(), encrypted_payload=share1, r_pit=choose_eval_at(bins)))
    return packets


def test_share_validator():
    """Both share processors validate a 10-bin, 100-packet sample batch."""
    print("Testing validation share generation (both roles)...", end=" ")
    keys = Keys()
    batch_uuid = uuid4()

    with tempfile.TemporaryDirectory() as pha_dir, tempfile.TemporaryDirectory() as fac_dir:
        pha_transport = FileTransport(pha_dir)
        fac_transport = FileTransport(fac_dir)

        uuids = generate_ingestion_sample(
            pha_transport, fac_transport, batch_uuid, AGGREGATION, DATE,
            keys.pha_ecies, keys.facilitator_ecies, keys.ingestor,
            dim=10, packet_count=100, epsilon=0.11,
        )
        assert len(uuids) == 100

        assert make_ingestor(keys, batch_uuid, pha_transport, True).generate_validation_share() == 100
        assert make_ingestor(keys, batch_uuid, fac_transport, False).generate_validation_share() == 100

        ingestion = Batch.new_ingestion(AGGREGATION, batch_uuid, DATE)
        with pha_transport.get(ingestion.header_key) as f:
            ingestion_header = IngestionHeader.read(f)

        results = {}
        for is_first, transport, signing_key in [
            (True, pha_transport, keys.pha_signing),
            (False, fac_transport, keys.facilitator_signing),
        ]:
            validation = Batch.new_validation(AGGREGATION, batch_uuid, DATE, is_first)

            header_bytes = read_bytes(transport, validation.header_key)
            packet_bytes = read_bytes(transport, validation.packet_file_key)
            with transport.get(validation.signature_key) as f:
                signature = IngestionSignature.read(f)
            signing.verify(signing_key.public_key(), header_bytes, signature.batch_header_signature)
            signing.verify(signing_key.public_key(), packet_bytes, signature.signature_of_packets)

            header = ValidationHeader.read(io.BytesIO(header_bytes))
            assert vars(header) == vars(ingestion_header)

            packets = read_packets(transport, validation.packet_file_key, ValidationPacket)
            assert [p.uuid for p in packets] == uuids
            results[is_first] = packets

        for p1, p2 in zip(results[True], results[False]):
            assert is_valid_share(
                VerificationMessage(p1.f_r, p1.g_r, p1.h_r),
                VerificationMessage(p2.f_r, p2.g_r, p2.h_r),
            )
    print("PASS")


def test_tampered_header_rejected():
    """One flipped bit in the stored header fails signature verification."""
    print("Testing tampered header...", end=" ")
    keys = Keys()
    batch_uuid = uuid4()
    with tempfile.TemporaryDirectory() as pha_dir, tempfile.TemporaryDirectory() as fac_dir:
        pha_transport = FileTransport(pha_dir)
        generate_ingestion_sample(
            pha_transport, FileTransport(fac_dir), batch_uuid, AGGREGATION, DATE,
            keys.pha_ecies, keys.facilitator_ecies, keys.ingestor,
            dim=10, packet_count=5, epsilon=0.11,
        )
        header_key = Batch.new_ingestion(AGGREGATION, batch_uuid, DATE).header_key
        flip_byte(pha_transport, header_key, len(read_bytes(pha_transport, header_key)) // 2)

        try:
            make_ingestor(keys, batch_uuid, pha_transport).generate_validation_share()
            assert False, "should have raised CryptographyError"
        except CryptographyError as e:
            assert "header" in str(e)
    print("PASS")


def test_tampered_packet_file_rejected():
    """A flipped bit outside any packet payload still fails verification."""
    print("Testing tampered packet file...", end=" ")
    keys = Keys()
    batch_uuid = uuid4()
    with tempfile.TemporaryDirectory() as pha_dir, tempfile.TemporaryDirectory() as fac_dir:
        pha_transport = FileTransport(pha_dir)
        generate_ingestion_sample(
            pha_transport, FileTransport(fac_dir), batch_uuid, AGGREGATION, DATE,
            keys.pha_ecies, keys.facilitator_ecies, keys.ingestor,
            dim=10, packet_count=5, epsilon=0.11,
        )
        ingestion = Batch.new_ingestion(AGGREGATION, batch_uuid, DATE)
        # last byte belongs to the container's trailing sync marker
        flip_byte(pha_transport, ingestion.packet_file_key, -1)

        try:
            make_ingestor(keys, batch_uuid, pha_transport).generate_validation_share()
            assert False, "should have raised CryptographyError"
        except CryptographyError as e:
            assert "packet file" in str(e)

        validation = Batch.new_validation(AGGREGATION, batch_uuid, DATE, True)
        assert not (Path(pha_dir) / validation.packet_file_key).exists()
    print("PASS")


def test_wrong_ingestor_key_rejected():
    keys = Keys()
    batch_uuid = uuid4()
    with tempfile.TemporaryDirectory() as pha_dir, tempfile.TemporaryDirectory() as fac_dir:
        pha_transport = FileTransport(pha_dir)
        generate_ingestion_sample(
            pha_transport, FileTransport(fac_dir), batch_uuid, AGGREGATION, DATE,
            keys.pha_ecies, keys.facilitator_ecies, keys.ingestor,
            dim=4, packet_count=2, epsilon=0.11,
        )
        keys.ingestor = signing.generate_signing_key()
        try:
            make_ingestor(keys, batch_uuid, pha_transport).generate_validation_share()
            assert False, "should have raised CryptographyError"
        except CryptographyError:
            pass


def test_out_of_range_bins_rejected():
    """Headers with unusable bins fail before any validation output exists."""
    print("Testing malformed header...", end=" ")
    keys = Keys()
    for bins in [0, -3, 2 ** 19]:
        batch_uuid = uuid4()
        with tempfile.TemporaryDirectory() as tmpdir:
            transport = FileTransport(tmpdir)
            write_custom_batch(transport, keys, batch_uuid, make_header(batch_uuid, bins), [])
            try:
                make_ingestor(keys, batch_uuid, transport).generate_validation_share()
                assert False, "should have raised MalformedHeaderError"
            except MalformedHeaderError as e:
                assert str(bins) in str(e)

            validation = Batch.new_validation(AGGREGATION, batch_uuid, DATE, True)
            for key in [validation.header_key, validation.packet_file_key, validation.signature_key]:
                assert not (Path(tmpdir) / key).exists()
    print("PASS")


def test_storage_failures_name_the_key():
    """A stream that fails mid-read or mid-write is reported with its storage key."""
    print("Testing storage failures...", end=" ")
    keys = Keys()
    batch_uuid = uuid4()
    ingestion = Batch.new_ingestion(AGGREGATION, batch_uuid, DATE)
    validation = Batch.new_validation(AGGREGATION, batch_uuid, DATE, True)

    with tempfile.TemporaryDirectory() as pha_dir, tempfile.TemporaryDirectory() as fac_dir:
        generate_ingestion_sample(
            FileTransport(pha_dir), FileTransport(fac_dir), batch_uuid, AGGREGATION, DATE,
            keys.pha_ecies, keys.facilitator_ecies, keys.ingestor,
            dim=4, packet_count=3, epsilon=0.11,
        )

        for key in [
            ingestion.signature_key,
            validation.packet_file_key,
            validation.header_key,
            validation.signature_key,
        ]:
            # ".validity_0" alone only matches the header key
            transport = FailingTransport(pha_dir, key.rsplit("/", 1)[1])
            try:
                make_ingestor(keys, batch_uuid, transport).generate_validation_share()
                assert False, "should have raised IoError"
            except IoError as e:
                assert e.key == key, f"{e.key} != {key}"
    print("PASS")


def test_out_of_range_r_pit_stops_processing():
    """An r_pit outside u32 fails the batch at that packet."""
    print("Testing malformed data packet...", end=" ")
    keys = Keys()
    bins = 4
    for bad_value in [2 ** 32, -1]:
        batch_uuid = uuid4()
        packets = make_packets(keys, bins, 5)
        packets[2].r_pit = bad_value

        with tempfile.TemporaryDirectory() as tmpdir:
            transport = FileTransport(tmpdir)
            write_custom_batch(transport, keys, batch_uuid, make_header(batch_uuid, bins), packets)
            try:
                make_ingestor(keys, batch_uuid, transport).generate_validation_share()
                assert False, "should have raised MalformedDataPacketError"
            except MalformedDataPacketError as e:
                assert str(bad_value) in str(e)

            validation = Batch.new_validation(AGGREGATION, batch_uuid, DATE, True)
            written = read_packets(transport, validation.packet_file_key, ValidationPacket)
            assert len(written) <= 2
            assert packets[3].uuid not in [p.uuid for p in written]
            assert not (Path(tmpdir) / validation.signature_key).exists()
    print("PASS")


def test_undecryptable_payload_fails_batch():
    """A payload the engine cannot open fails the whole batch."""
    print("Testing engine failure...", end=" ")
    keys = Keys()
    bins = 4
    batch_uuid = uuid4()
    packets = make_packets(keys, bins, 3)
    packets[1].encrypted_payload = b"\x04" + b"\x00" * 150

    with tempfile.TemporaryDirectory() as tmpdir:
        transport = FileTransport(tmpdir)
        write_custom_batch(transport, keys, batch_uuid, make_header(batch_uuid, bins), packets)
        try:
            make_ingestor(keys, batch_uuid, transport).generate_validation_share()
            assert False, "should have raised LibPrioError"
        except LibPrioError as e:
            assert str(packets[1].uuid) in str(e)
    print("PASS")


def test_wrong_role_fails_batch():
    """The second processor cannot open shares encrypted for the first."""
    keys = Keys()
    bins = 4
    batch_uuid = uuid4()
    with tempfile.TemporaryDirectory() as tmpdir:
        transport = FileTransport(tmpdir)
        write_custom_batch(transport, keys, batch_uuid, make_header(batch_uuid, bins),
                           make_packets(keys, bins, 2))
        try:
            make_ingestor(keys, batch_uuid, transport, is_first=False).generate_validation_share()
            assert False, "should have raised LibPrioError"
        except LibPrioError:
            pass


def test_empty_batch():
    """A batch without packets yields an empty, signed validation batch."""
    keys = Keys()
    batch_uuid = uuid4()
    with tempfile.TemporaryDirectory() as tmpdir:
        transport = FileTransport(tmpdir)
        write_custom_batch(transport, keys, batch_uuid, make_header(batch_uuid, 3), [])
        assert make_ingestor(keys, batch_uuid, transport).generate_validation_share() == 0

        validation = Batch.new_validation(AGGREGATION, batch_uuid, DATE, True)
        assert read_packets(transport, validation.packet_file_key, ValidationPacket) == []
        with transport.get(validation.signature_key) as f:
            signature = IngestionSignature.read(f)
        signing.verify(keys.pha_signing.public_key(),
                       read_bytes(transport, validation.packet_file_key),
                       signature.signature_of_packets)


def test_missing_batch_raises_io_error():
    """A missing input file is reported with its storage key."""
    print("Testing missing batch...", end=" ")
    keys = Keys()
    batch_uuid = uuid4()
    with tempfile.TemporaryDirectory() as tmpdir:
        transport = FileTransport(tmpdir)
        try:
            make_ingestor(keys, batch_uuid, transport).generate_validation_share()
            assert False, "should have raised IoError"
        except IoError as e:
            assert e.key == Batch.new_ingestion(AGGREGATION, batch_uuid, DATE).signature_key
    print("PASS")


def test_integer_conversions():
    assert r_pit_to_u32(0) == 0
    assert r_pit_to_u32(2 ** 32 - 1) == 2 ** 32 - 1
    for bad in [-1, 2 ** 32, 2 ** 63 - 1]:
        try:
            r_pit_to_u32(bad)
            assert False, "should have raised MalformedDataPacketError"
        except MalformedDataPacketError:
            pass

    assert field_to_long(MODULUS - 1) == MODULUS - 1
    try:
        field_to_long(MODULUS, "packet 1")
        assert False, "should have raised LibPrioError"
    except LibPrioError as e:
        assert "packet 1" in str(e)


def main():
    print("=" * 50)
    print("  Batch Ingestor Tests")
    print("=" * 50)
    print()

    tests = [
        test_share_validator,
        test_tampered_header_rejected,
        test_tampered_packet_file_rejected,
        test_wrong_ingestor_key_rejected,
        test_out_of_range_bins_rejected,
        test_out_of_range_r_pit_stops_processing,
        test_undecryptable_payload_fails_batch,
        test_wrong_role_fails_batch,
        test_empty_batch,
        test_missing_batch_raises_io_error,
        test_storage_failures_name_the_key,
        test_integer_conversions,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"FAIL: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print()
    print(f"Results: {passed} passed, {failed} failed")
    return failed == 0


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
