"""
Batch naming convention.

A batch is three objects in a transport: a header, an Avro packet file and a
signature. Producers and consumers find each other's batches only through
these keys, so the layout must not change.
"""

from uuid import UUID


class Batch:
    """Storage keys for one batch.

    Keys share the stem ``<aggregation>/<date>/<uuid>`` and differ by suffix:
    ``.batch`` for ingestion batches, ``.validity_0`` / ``.validity_1`` for
    validation batches from the first / second share processor.
    """

    def __init__(self, aggregation_name: str, batch_uuid: UUID, date: str, filename: str):
        stem = f"{aggregation_name}/{date}/{batch_uuid}"
        self._header_key = f"{stem}.{filename}"
        self._packet_file_key = f"{stem}.{filename}.avro"
        self._signature_key = f"{stem}.{filename}.sig"

    @classmethod
    def new_ingestion(cls, aggregation_name: str, batch_uuid: UUID, date: str) -> "Batch":
        return cls(aggregation_name, batch_uuid, date, "batch")

    @classmethod
    def new_validation(
        cls, aggregation_name: str, batch_uuid: UUID, date: str, is_first: bool
    ) -> "Batch":
        return cls(aggregation_name, batch_uuid, date, f"validity_{0 if is_first else 1}")

    @property
    def header_key(self) -> str:
        return self._header_key

    @property
    def packet_file_key(self) -> str:
        return self._packet_file_key

    @property
    def signature_key(self) -> str:
        return self._signature_key
