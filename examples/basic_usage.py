"""
Facilitator — Basic Usage Example

Generates a sample ingestion batch for both share processors, runs
validation share generation for each, and checks the combined validation
messages the way the aggregation step would.
"""

import logging
import sys
import tempfile
from pathlib import Path
from uuid import uuid4

sys.path.insert(0, str(Path(__file__).parent.parent))

from facilitator import BatchIngestor, FileTransport, signing
from facilitator.batch import Batch
from facilitator.idl import ValidationPacket
from facilitator.prio import PrivateKey, is_valid_share, VerificationMessage
from facilitator.sample import generate_ingestion_sample


def read_validation_packets(transport, batch):
    with transport.get(batch.packet_file_key) as f:
        return [ValidationPacket.from_record(r) for r in ValidationPacket.reader(f)]


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 50)
    print("  Facilitator — Validation Share Generation")
    print("=" * 50)

    aggregation = "kittens-seen"
    date = "2026/10/16/12/00"
    batch_uuid = uuid4()

    pha_ecies_key = PrivateKey.generate()
    facilitator_ecies_key = PrivateKey.generate()
    ingestor_key = signing.generate_signing_key()
    pha_signing_key = signing.generate_signing_key()
    facilitator_signing_key = signing.generate_signing_key()

    with tempfile.TemporaryDirectory() as pha_dir, tempfile.TemporaryDirectory() as fac_dir:
        pha_transport = FileTransport(pha_dir)
        fac_transport = FileTransport(fac_dir)

        uuids = generate_ingestion_sample(
            pha_transport, fac_transport, batch_uuid, aggregation, date,
            pha_ecies_key, facilitator_ecies_key, ingestor_key,
            dim=10, packet_count=20, epsilon=0.11,
        )
        print(f"\nGenerated {len(uuids)} contributions for batch {batch_uuid}")

        for is_first, transport, ecies_key, signing_key in [
            (True, pha_transport, pha_ecies_key, pha_signing_key),
            (False, fac_transport, facilitator_ecies_key, facilitator_signing_key),
        ]:
            ingestor = BatchIngestor(
                aggregation, batch_uuid, date, transport, transport, is_first,
                ecies_key, signing_key, ingestor_key.public_key(),
            )
            count = ingestor.generate_validation_share()
            print(f"  {'PHA' if is_first else 'Facilitator'}: {count} validation packets")

        first = read_validation_packets(
            pha_transport, Batch.new_validation(aggregation, batch_uuid, date, True))
        second = read_validation_packets(
            fac_transport, Batch.new_validation(aggregation, batch_uuid, date, False))

        valid = 0
        for p1, p2 in zip(first, second):
            m1 = VerificationMessage(p1.f_r, p1.g_r, p1.h_r)
            m2 = VerificationMessage(p2.f_r, p2.g_r, p2.h_r)
            valid += is_valid_share(m1, m2)
        print(f"\nValid contributions: {valid}/{len(first)}")


if __name__ == "__main__":
    main()
