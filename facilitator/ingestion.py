"""
Batch Ingestor — validation share generation.

Takes one ingestion batch written by a trusted ingestor and produces this
share processor's validation batch:

1. Authenticate the header and the packet file against the ingestor's key
2. Run every data share packet through the Prio engine
3. Write the validation packets and header, signing each as it is written
4. Publish the signature file

Nothing in the input is used before its signature has been checked.
"""

import io
import logging
from contextlib import contextmanager
from typing import Iterator
from uuid import UUID

from cryptography.hazmat.primitives.asymmetric import ec

from facilitator import signing
from facilitator.batch import Batch
from facilitator.errors import (
    AvroError,
    CryptographyError,
    EofError,
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
from facilitator.prio import finite_field
from facilitator.prio.encrypt import PrivateKey
from facilitator.prio.server import MAX_DIMENSION, Server
from facilitator.sidecar import SidecarWriter
from facilitator.transport.base import Transport

logger = logging.getLogger(__name__)

U32_MAX = 0xFFFFFFFF


def r_pit_to_u32(r_pit: int) -> int:
    """
    Narrow a packet's r_pit (a long on the wire) to an unsigned 32-bit value.

    Raises:
        MalformedDataPacketError: If the value does not fit.
    """
    if not 0 <= r_pit <= U32_MAX:
        raise MalformedDataPacketError(f"illegal r_pit value {r_pit}", "out of range for u32")
    return r_pit


def field_to_long(value: int, context: str = None) -> int:
    """
    Widen a field element (an unsigned 32-bit value) for a long field.

    Raises:
        LibPrioError: If the engine handed back something outside the field.
    """
    if not 0 <= value < finite_field.MODULUS:
        raise LibPrioError(f"{value} is not a field element", context)
    return value


@contextmanager
def _keyed_io(key: str) -> Iterator[None]:
    """Attach the storage key to any stream failure raised inside the block."""
    try:
        yield
    except IoError as e:
        if e.key is not None:
            raise
        raise IoError(e.message, key) from e
    except OSError as e:
        raise IoError(f"stream failure: {e}", key) from e


def _read_all(transport: Transport, key: str) -> bytes:
    with transport.get(key) as reader:
        try:
            return reader.read()
        except OSError as e:
            raise IoError(f"failed to read from transport: {e}", key) from e


class BatchIngestor:
    """
    Generates one validation batch from one ingestion batch.

    Args:
        aggregation_name: Name of the aggregation the batch belongs to.
        batch_uuid: The batch's UUID.
        date: Date component of the batch path.
        ingestion_transport: Where the ingestion batch is read from.
        validation_transport: Where the validation batch is written.
        is_first: True for the first share processor.
        share_processor_ecies_key: This processor's key for decrypting shares.
        share_processor_signing_key: This processor's batch signing key.
        ingestor_key: The ingestor's public key.
    """

    def __init__(
        self,
        aggregation_name: str,
        batch_uuid: UUID,
        date: str,
        ingestion_transport: Transport,
        validation_transport: Transport,
        is_first: bool,
        share_processor_ecies_key: PrivateKey,
        share_processor_signing_key: ec.EllipticCurvePrivateKey,
        ingestor_key: ec.EllipticCurvePublicKey,
    ):
        self.ingestion_transport = ingestion_transport
        self.validation_transport = validation_transport
        self.ingestion_batch = Batch.new_ingestion(aggregation_name, batch_uuid, date)
        self.validation_batch = Batch.new_validation(aggregation_name, batch_uuid, date, is_first)
        self.is_first = is_first
        self.share_processor_ecies_key = share_processor_ecies_key
        self.share_processor_signing_key = share_processor_signing_key
        self.ingestor_key = ingestor_key

    def _verify(self, message: bytes, signature: bytes, what: str, key: str) -> None:
        try:
            signing.verify(self.ingestor_key, message, signature)
        except CryptographyError as e:
            logger.error("invalid signature on %s %s", what, key)
            raise CryptographyError(f"invalid signature on ingestion {what}", key) from e

    def _sign(self, message: bytes, what: str) -> bytes:
        try:
            return signing.sign(self.share_processor_signing_key, message)
        except CryptographyError as e:
            raise CryptographyError(f"failed to sign validation {what}", e.context) from e

    def generate_validation_share(self) -> int:
        """
        Validate the ingestion batch and write the validation batch.

        Returns:
            Number of validation packets written.

        Raises:
            IoError, AvroError, CryptographyError, MalformedHeaderError,
            MalformedDataPacketError, LibPrioError: On the first failure. Output
            written before the failure is left in place.
        """
        ingestion = self.ingestion_batch
        validation = self.validation_batch
        logger.info("generating validation share for %s", ingestion.header_key)

        with _keyed_io(ingestion.signature_key), \
                self.ingestion_transport.get(ingestion.signature_key) as reader:
            signature = IngestionSignature.read(reader)

        header_bytes = _read_all(self.ingestion_transport, ingestion.header_key)
        self._verify(header_bytes, signature.batch_header_signature, "header", ingestion.header_key)

        ingestion_header = IngestionHeader.read(io.BytesIO(header_bytes))
        if ingestion_header.bins <= 0:
            raise MalformedHeaderError(
                f"invalid bins/dimension value {ingestion_header.bins}", ingestion.header_key
            )
        if ingestion_header.bins > MAX_DIMENSION:
            raise MalformedHeaderError(
                f"bins/dimension value {ingestion_header.bins} exceeds maximum {MAX_DIMENSION}",
                ingestion.header_key,
            )

        server = Server(ingestion_header.bins, self.is_first, self.share_processor_ecies_key)

        # The whole packet file is loaded before anything in it is used. The
        # signature covers the complete byte string, and bytes read back from
        # storage after verification could differ from the ones verified.
        entire_packet_file = _read_all(self.ingestion_transport, ingestion.packet_file_key)
        logger.debug("read %d bytes of packets", len(entire_packet_file))
        self._verify(
            entire_packet_file,
            signature.signature_of_packets,
            "packet file",
            ingestion.packet_file_key,
        )

        packet_reader = IngestionDataSharePacket.reader(io.BytesIO(entire_packet_file))
        count = 0

        with _keyed_io(validation.packet_file_key), \
                self.validation_transport.put(validation.packet_file_key) as out, \
                SidecarWriter(out) as packet_sidecar:
            packet_writer = ValidationPacket.writer(packet_sidecar)

            while True:
                try:
                    packet = IngestionDataSharePacket.read(packet_reader)
                except EofError:
                    break

                context = f"packet {packet.uuid}"
                r_pit = r_pit_to_u32(packet.r_pit)
                message = server.generate_verification_message(
                    finite_field.from_u32(r_pit), packet.encrypted_payload
                )
                if message is None:
                    raise LibPrioError("failed to construct validation message", context)

                ValidationPacket(
                    uuid=packet.uuid,
                    f_r=field_to_long(message.f_r, context),
                    g_r=field_to_long(message.g_r, context),
                    h_r=field_to_long(message.h_r, context),
                ).write(packet_writer)
                count += 1

            try:
                packet_writer.flush()
            except OSError as e:
                raise IoError(f"failed to write packets: {e}", validation.packet_file_key) from e
            except Exception as e:
                raise AvroError("failed to flush validation packet writer", str(e)) from e

        packet_file_signature = self._sign(packet_sidecar.sidecar, "packet file")
        logger.debug("wrote %d validation packets to %s", count, validation.packet_file_key)

        with _keyed_io(validation.header_key), \
                self.validation_transport.put(validation.header_key) as out, \
                SidecarWriter(out) as header_sidecar:
            ValidationHeader(
                batch_uuid=ingestion_header.batch_uuid,
                name=ingestion_header.name,
                bins=ingestion_header.bins,
                epsilon=ingestion_header.epsilon,
                prime=ingestion_header.prime,
                number_of_servers=ingestion_header.number_of_servers,
                hamming_weight=ingestion_header.hamming_weight,
            ).write(header_sidecar)

        header_signature = self._sign(header_sidecar.sidecar, "header")

        with _keyed_io(validation.signature_key), \
                self.validation_transport.put(validation.signature_key) as out:
            IngestionSignature(
                batch_header_signature=header_signature,
                signature_of_packets=packet_file_signature,
            ).write(out)

        logger.info("wrote validation batch %s (%d packets)", validation.header_key, count)
        return count
