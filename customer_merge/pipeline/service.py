"""
Engine service for CustomerMerge.

Exposes the find-duplicates, merge, and batch-merge operations over a
record store, independent of any transport. Request payloads are
validated before any record is read or written.
"""

import logging
from typing import Any, Dict, List, Optional

from customer_merge.audit.merge_audit_log import MergeAuditLog
from customer_merge.ingestion.request_validator import (
    validate_batch_merge_request,
    validate_merge_request,
)
from customer_merge.match.duplicate_finder import DuplicateFinder
from customer_merge.merge.merger import BatchMergeResult, CustomerMerger
from customer_merge.models import DuplicateGroup, RecordStatus
from customer_merge.normalize.config import get_default_config
from customer_merge.storage.record_store import RecordStore

logger = logging.getLogger(__name__)


class CustomerMergeService:
    """Entry point used by routing layers and the CLI."""

    def __init__(self, store: RecordStore, config: Optional[Dict] = None,
                 audit_log: Optional[MergeAuditLog] = None):
        """
        Initialize service.

        Args:
            store: Record store holding all customer records
            config: Full CustomerMerge configuration
            audit_log: Optional merge audit log
        """
        self.store = store
        self.config = config or get_default_config()
        self.exclude_superseded = self.config.get("service", {}).get("exclude_superseded", True)

        self.finder = DuplicateFinder(self.config.get("matching", {}))
        self.merger = CustomerMerger(store, self.config.get("merge", {}), audit_log=audit_log)

        logger.info("Initialized CustomerMergeService")

    def find_duplicate_groups(self) -> List[DuplicateGroup]:
        """
        Run the matcher over all stored records.

        Records already merged into another record are left out unless
        ``service.exclude_superseded`` is disabled.
        """
        records = self.store.get_all()
        if self.exclude_superseded:
            records = [record for record in records if record.status is not RecordStatus.MERGED_INTO]

        return self.finder.find_duplicates(records)

    def find_duplicates(self) -> Dict[str, Any]:
        """
        Find duplicate groups among all stored records.

        Returns:
            Dictionary with the groups and their count
        """
        groups = self.find_duplicate_groups()
        return {
            "duplicate_groups": [group.to_dict() for group in groups],
            "total": len(groups),
        }

    def merge_duplicates(self, payload: Any) -> Dict[str, Any]:
        """
        Merge one group.

        Args:
            payload: ``{"primaryId": int, "recordIds": [int], "groupId"?: str}``

        Returns:
            Dictionary with the updated primary record

        Raises:
            RequestValidationError: If the payload is malformed
            PrimaryNotFoundError: If the primary does not exist
            InvalidTransitionError: If the primary was merged into another record
        """
        request = validate_merge_request(payload)
        primary = self.merger.merge(request.primary_id, request.record_ids,
                                    group_id=request.group_id)
        return {
            "message": "Records merged successfully",
            "primary_record": primary.to_dict(),
        }

    def merge_duplicates_batch(self, payload: Any) -> Dict[str, Any]:
        """
        Merge several groups independently.

        Args:
            payload: ``{"groups": [{"groupId", "primaryId", "recordIds"}]}``

        Returns:
            Dictionary with per-group results and aggregate counts

        Raises:
            RequestValidationError: If the payload is malformed
        """
        batch = self.apply_batch(payload)
        return {"message": "Batch merge complete", **batch.to_dict()}

    def apply_batch(self, payload: Any) -> BatchMergeResult:
        """Validate and run a batch, returning the structured result."""
        request = validate_batch_merge_request(payload)
        return self.merger.merge_batch(request.groups)
