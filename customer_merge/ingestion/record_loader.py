"""
Customer row loading for CustomerMerge.

Maps already-parsed import rows (dictionaries or a pandas DataFrame) onto
customer record insert payloads with freshly generated external ids.
"""

import logging
import random
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

import pandas as pd

from customer_merge.models import RecordStatus

logger = logging.getLogger(__name__)

RECORD_FIELDS = ("first_name", "last_name", "phone", "address", "zone")


class CustomerRecordLoader:
    """
    Converts import rows into insert payloads.

    Column names of the source export are mapped to record fields by the
    ``columns`` configuration. Values are trimmed and missing values become
    empty strings.
    """

    def __init__(self, config: Optional[Dict] = None,
                 existing_external_ids: Optional[Iterable[str]] = None):
        """
        Initialize record loader with configuration.

        Args:
            config: The ``ingestion`` configuration section
            existing_external_ids: External ids already in use
        """
        self.config = config or {}
        self.columns = {field: field for field in RECORD_FIELDS}
        self.columns.update(self.config.get("columns", {}))

        self.id_prefix = self.config.get("external_id_prefix", "CU-")
        self.id_min = self.config.get("external_id_min", 10000)
        self.id_max = self.config.get("external_id_max", 99999)
        self._rng = random.Random(self.config.get("seed"))
        self._used_ids: Set[str] = set(existing_external_ids or [])

        logger.info("Initialized CustomerRecordLoader")

    def generate_external_id(self) -> str:
        """
        Draw an unused external id such as ``CU-48213``.

        Raises:
            RuntimeError: If the id space is exhausted
        """
        capacity = self.id_max - self.id_min + 1
        if len(self._used_ids) >= capacity:
            raise RuntimeError(f"External id space {self.id_prefix}{self.id_min}-{self.id_max} is exhausted")

        while True:
            external_id = f"{self.id_prefix}{self._rng.randint(self.id_min, self.id_max)}"
            if external_id not in self._used_ids:
                self._used_ids.add(external_id)
                return external_id

    def row_to_payload(self, row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Convert one import row.

        Args:
            row: Parsed row keyed by source column name

        Returns:
            Insert payload, or None for a row with no mapped values
        """
        values = {field: _clean_value(row.get(column)) for field, column in self.columns.items()}
        if not any(values.values()):
            return None

        return {
            "external_id": self.generate_external_id(),
            **values,
            "status": RecordStatus.CLEAN.value,
            "is_merged": False,
            "merged_from": [],
        }

    def load_rows(self, rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """
        Convert import rows, skipping blank ones.

        Args:
            rows: Parsed rows

        Returns:
            List of insert payloads
        """
        payloads = []
        skipped = 0
        for row in rows:
            payload = self.row_to_payload(row)
            if payload is None:
                skipped += 1
                continue
            payloads.append(payload)

        logger.info(f"Loaded {len(payloads)} customer rows ({skipped} blank rows skipped)")
        return payloads

    def load_frame(self, df: pd.DataFrame) -> List[Dict[str, Any]]:
        """
        Convert a DataFrame of import rows.

        Args:
            df: DataFrame with source export columns

        Returns:
            List of insert payloads
        """
        df = df.astype(object).where(pd.notna(df), None)
        return self.load_rows(df.to_dict(orient="records"))


def _clean_value(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()
