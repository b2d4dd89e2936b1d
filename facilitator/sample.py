"""
Sample ingestion batches.

Plays the part of an ingestion server: encodes random contributions with the
Prio client, writes one batch per share processor and signs both with the
ingestor's key. Used for tests and local experiments.
"""

import io
import logging
import random
from uuid import UUID, uuid4

from cryptography.hazmat.primitives.asymmetric import ec

from facilitator import signing
from facilitator.batch import Batch
from facilitator.idl import IngestionDataSharePacket, IngestionHeader, IngestionSignature
from facilitator.prio import Client, MODULUS, PrivateKey
from facilitator.prio.server import choose_eval_at
from facilitator.transport.base import Transport

logger = logging.getLogger(__name__)

NUMBER_OF_SERVERS = 2


def _write_batch(
    transport: Transport,
    batch: Batch,
    header_bytes: bytes,
    packet_bytes: bytes,
    ingestor_signing_key: ec.EllipticCurvePrivateKey,
) -> None:
    with transport.put(batch.header_key) as out:
        out.write(header_bytes)
    with transport.put(batch.packet_file_key) as out:
        out.write(packet_bytes)
    with transport.put(batch.signature_key) as out:
        IngestionSignature(
            batch_header_signature=signing.sign(ingestor_signing_key, header_bytes),
            signature_of_packets=signing.sign(ingestor_signing_key, packet_bytes),
        ).write(out)


def generate_ingestion_sample(
    pha_transport: Transport,
    facilitator_transport: Transport,
    batch_uuid: UUID,
    aggregation_name: str,
    date: str,
    pha_ecies_key: PrivateKey,
    facilitator_ecies_key: PrivateKey,
    ingestor_signing_key: ec.EllipticCurvePrivateKey,
    dim: int,
    packet_count: int,
    epsilon: float,
) -> list[UUID]:
    """
    Write matching ingestion batches for both share processors.

    The PHA is the first share processor, the facilitator the second. Each
    contribution is a random 0/1 vector of length ``dim``.

    Returns:
        The packet UUIDs, in file order.
    """
    if dim <= 0:
        raise ValueError(f"dim must be positive, got {dim}")

    header = IngestionHeader(
        batch_uuid=batch_uuid,
        name=aggregation_name,
        bins=dim,
        epsilon=epsilon,
        prime=MODULUS,
        number_of_servers=NUMBER_OF_SERVERS,
    )
    header_buf = io.BytesIO()
    header.write(header_buf)

    client = Client(dim, pha_ecies_key.public_key(), facilitator_ecies_key.public_key())

    pha_packets = io.BytesIO()
    facilitator_packets = io.BytesIO()
    pha_writer = IngestionDataSharePacket.writer(pha_packets)
    facilitator_writer = IngestionDataSharePacket.writer(facilitator_packets)

    packet_uuids = []
    for _ in range(packet_count):
        data = [random.randint(0, 1) for _ in range(dim)]
        pha_share, facilitator_share = client.encode_simple(data)
        packet_uuid = uuid4()
        r_pit = choose_eval_at(dim)

        IngestionDataSharePacket(
            uuid=packet_uuid, encrypted_payload=pha_share, r_pit=r_pit
        ).write(pha_writer)
        IngestionDataSharePacket(
            uuid=packet_uuid, encrypted_payload=facilitator_share, r_pit=r_pit
        ).write(facilitator_writer)
        packet_uuids.append(packet_uuid)

    pha_writer.flush()
    facilitator_writer.flush()

    batch = Batch.new_ingestion(aggregation_name, batch_uuid, date)
    _write_batch(pha_transport, batch, header_buf.getvalue(), pha_packets.getvalue(),
                 ingestor_signing_key)
    _write_batch(facilitator_transport, batch, header_buf.getvalue(),
                 facilitator_packets.getvalue(), ingestor_signing_key)

    logger.info("generated sample batch %s with %d packets", batch.header_key, packet_count)
    return packet_uuids
