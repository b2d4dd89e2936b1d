"""
Avro records exchanged between ingestors and share processors.

Every file in a batch is an Avro object container. Headers and signatures
hold exactly one record; packet files hold one record per contribution and
are read and written incrementally.
"""

from contextlib import contextmanager
from dataclasses import asdict, dataclass, fields
from typing import BinaryIO, Iterator, Optional
from uuid import UUID

import fastavro
from fastavro.write import Writer

from facilitator.errors import AvroError, EofError, FacilitatorError, IoError

NAMESPACE = "org.abetterinternet.prio.v1"


def _header_schema(name: str) -> dict:
    return {
        "namespace": NAMESPACE,
        "type": "record",
        "name": name,
        "fields": [
            {"name": "batch_uuid", "type": "string"},
            {"name": "name", "type": "string"},
            {"name": "bins", "type": "int"},
            {"name": "epsilon", "type": "double"},
            {"name": "prime", "type": "long"},
            {"name": "number_of_servers", "type": "int"},
            {"name": "hamming_weight", "type": ["int", "null"]},
        ],
    }


INGESTION_HEADER_SCHEMA = fastavro.parse_schema(_header_schema("PrioBatchHeader"))
VALIDATION_HEADER_SCHEMA = fastavro.parse_schema(_header_schema("PrioValidityHeader"))

SIGNATURE_SCHEMA = fastavro.parse_schema({
    "namespace": NAMESPACE,
    "type": "record",
    "name": "PrioBatchSignature",
    "fields": [
        {"name": "batch_header_signature", "type": "bytes"},
        {"name": "signature_of_packets", "type": "bytes"},
    ],
})

DATA_SHARE_PACKET_SCHEMA = fastavro.parse_schema({
    "namespace": NAMESPACE,
    "type": "record",
    "name": "PrioDataSharePacket",
    "fields": [
        {"name": "uuid", "type": "string"},
        {"name": "encrypted_payload", "type": "bytes"},
        {"name": "encryption_key_id", "type": ["null", "string"], "default": None},
        {"name": "r_pit", "type": "long"},
        {"name": "version_configuration", "type": ["null", "string"], "default": None},
        {"name": "device_nonce", "type": ["null", "bytes"], "default": None},
    ],
})

VALIDATION_PACKET_SCHEMA = fastavro.parse_schema({
    "namespace": NAMESPACE,
    "type": "record",
    "name": "PrioValidityPacket",
    "fields": [
        {"name": "uuid", "type": "string"},
        {"name": "f_r", "type": "long"},
        {"name": "g_r", "type": "long"},
        {"name": "h_r", "type": "long"},
    ],
})


@contextmanager
def _avro_errors(action: str):
    """Translate codec failures into AvroError, stream failures into IoError."""
    try:
        yield
    except FacilitatorError:
        raise
    except OSError as e:
        raise IoError(f"stream failure while trying to {action}: {e}") from e
    except Exception as e:
        raise AvroError(f"failed to {action}", f"{type(e).__name__}: {e}") from e


class _Record:
    """Conversion between dataclass records and Avro dicts."""

    SCHEMA: dict = None
    UUID_FIELDS = ()

    def to_record(self) -> dict:
        record = asdict(self)
        for name in self.UUID_FIELDS:
            record[name] = str(record[name])
        return record

    @classmethod
    def from_record(cls, record: dict):
        values = {f.name: record[f.name] for f in fields(cls)}
        for name in cls.UUID_FIELDS:
            values[name] = UUID(values[name])
        return cls(**values)


class _SingleRecord(_Record):
    """A file holding exactly one record."""

    @classmethod
    def read(cls, fo: BinaryIO):
        with _avro_errors(f"read {cls.__name__}"):
            record = next(fastavro.reader(fo, reader_schema=cls.SCHEMA), None)
            if record is None:
                raise AvroError(f"no {cls.__name__} record in stream")
            return cls.from_record(record)

    def write(self, fo: BinaryIO) -> None:
        with _avro_errors(f"write {type(self).__name__}"):
            fastavro.writer(fo, self.SCHEMA, [self.to_record()])


class _PacketRecord(_Record):
    """One of many records in a packet file."""

    @classmethod
    def reader(cls, fo: BinaryIO) -> Iterator[dict]:
        """Open a packet file for sequential decoding."""
        with _avro_errors(f"create reader for {cls.__name__}"):
            return fastavro.reader(fo, reader_schema=cls.SCHEMA)

    @classmethod
    def writer(cls, fo: BinaryIO) -> Writer:
        """Start a packet file. Records are buffered until ``flush``."""
        with _avro_errors(f"create writer for {cls.__name__}"):
            return Writer(fo, cls.SCHEMA)

    @classmethod
    def read(cls, reader: Iterator[dict]):
        """
        Decode the next packet.

        Raises:
            EofError: At the clean end of the packet file.
            AvroError: If the next packet cannot be decoded.
        """
        with _avro_errors(f"read {cls.__name__}"):
            record = next(reader, None)
            if record is None:
                raise EofError()
            return cls.from_record(record)

    def write(self, writer: Writer) -> None:
        with _avro_errors(f"write {type(self).__name__}"):
            writer.write(self.to_record())


@dataclass
class IngestionHeader(_SingleRecord):
    batch_uuid: UUID
    name: str
    bins: int
    epsilon: float
    prime: int
    number_of_servers: int
    hamming_weight: Optional[int] = None

    SCHEMA = INGESTION_HEADER_SCHEMA
    UUID_FIELDS = ("batch_uuid",)


@dataclass
class ValidationHeader(_SingleRecord):
    batch_uuid: UUID
    name: str
    bins: int
    epsilon: float
    prime: int
    number_of_servers: int
    hamming_weight: Optional[int] = None

    SCHEMA = VALIDATION_HEADER_SCHEMA
    UUID_FIELDS = ("batch_uuid",)


@dataclass
class IngestionSignature(_SingleRecord):
    """Signatures over a batch's header bytes and packet file bytes.

    Validation batches use the same record.
    """
    batch_header_signature: bytes
    signature_of_packets: bytes

    SCHEMA = SIGNATURE_SCHEMA


@dataclass
class IngestionDataSharePacket(_PacketRecord):
    uuid: UUID
    encrypted_payload: bytes
    r_pit: int
    encryption_key_id: Optional[str] = None
    version_configuration: Optional[str] = None
    device_nonce: Optional[bytes] = None

    SCHEMA = DATA_SHARE_PACKET_SCHEMA
    UUID_FIELDS = ("uuid",)


@dataclass
class ValidationPacket(_PacketRecord):
    uuid: UUID
    f_r: int
    g_r: int
    h_r: int

    SCHEMA = VALIDATION_PACKET_SCHEMA
    UUID_FIELDS = ("uuid",)
