"""
Customer record merger for CustomerMerge.

Folds secondary records into a surviving primary record, tracking the
absorbed external ids as provenance and marking the secondaries as
superseded. Supports single merges and batches where every group succeeds
or fails on its own.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from customer_merge.audit.merge_audit_log import MergeAuditLog
from customer_merge.exceptions import InvalidTransitionError, PrimaryNotFoundError
from customer_merge.models import CustomerRecord, RecordStatus
from customer_merge.storage.record_store import RecordLockRegistry, RecordStore

logger = logging.getLogger(__name__)


@dataclass
class GroupMergeOutcome:
    """Result of merging one group of a batch."""

    group_id: str
    success: bool
    primary_id: Optional[int] = None
    message: Optional[str] = None
    merged_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"group_id": self.group_id, "success": self.success}
        if self.primary_id is not None:
            result["primary_id"] = self.primary_id
        if self.message is not None:
            result["message"] = self.message
        return result


@dataclass
class BatchMergeResult:
    """Per-group outcomes of a batch merge plus aggregate counts."""

    results: List[GroupMergeOutcome] = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failure_count(self) -> int:
        return self.total_processed - self.success_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_processed": self.total_processed,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "results": [result.to_dict() for result in self.results],
        }


class CustomerMerger:
    """
    Merges duplicate customer records into a primary record.

    Every merge holds the locks of all records it touches and re-reads them
    under the lock, so concurrent merges cannot interleave updates to the
    same record.
    """

    def __init__(self, store: RecordStore, config: Optional[Dict] = None,
                 audit_log: Optional[MergeAuditLog] = None):
        """
        Initialize customer merger.

        Args:
            store: Record store to read and update records
            config: The ``merge`` configuration section
            audit_log: Optional ``MergeAuditLog`` receiving every attempt
        """
        self.store = store
        self.config = config or {}
        self.flatten_provenance = self.config.get("flatten_provenance", False)
        self.audit_log = audit_log
        self._locks = RecordLockRegistry()

        logger.info(f"Initialized CustomerMerger (flatten_provenance={self.flatten_provenance})")

    def merge(self, primary_id: int, record_ids: Iterable[int],
              group_id: Optional[str] = None) -> CustomerRecord:
        """
        Merge records into a primary record.

        Secondary ids that do not resolve are skipped. The primary is
        marked merged even when no secondary resolves.

        Args:
            primary_id: Internal id of the surviving record
            record_ids: Internal ids to fold in; the primary's own id is ignored
            group_id: Optional caller bookkeeping id, only used for auditing

        Returns:
            Updated primary record

        Raises:
            PrimaryNotFoundError: If the primary does not exist
            InvalidTransitionError: If the primary was already merged into another record
        """
        updated, _ = self._apply_merge(primary_id, record_ids, group_id)
        return updated

    def _apply_merge(self, primary_id: int, record_ids: Iterable[int],
                     group_id: Optional[str]) -> Tuple[CustomerRecord, List[str]]:
        """Run one merge and return the updated primary with the newly absorbed ids."""
        secondary_ids = [
            record_id for record_id in dict.fromkeys(record_ids) if record_id != primary_id
        ]

        try:
            with self._locks.hold([primary_id, *secondary_ids]):
                primary = self.store.get(primary_id)
                if primary is None:
                    raise PrimaryNotFoundError(primary_id)
                if not primary.status.can_transition_to(RecordStatus.MERGED):
                    raise InvalidTransitionError(
                        primary_id, primary.status.value, RecordStatus.MERGED.value
                    )

                secondaries = self._resolve_secondaries(secondary_ids)
                absorbed = self._absorbed_ids(secondaries)
                merged_from = self._extend_provenance(primary, absorbed)

                self.store.update(primary_id, replace(
                    primary,
                    is_merged=True,
                    merged_from=merged_from,
                    status=RecordStatus.MERGED,
                ))

                for secondary in secondaries:
                    self.store.update(secondary.internal_id, replace(
                        secondary,
                        status=RecordStatus.MERGED_INTO,
                        is_merged=True,
                    ))

                updated = self.store.get(primary_id)
        except Exception as e:
            self._audit(group_id, primary_id, None, [], False, str(e))
            raise

        absorbed_ids = [secondary.external_id for secondary in secondaries]
        self._audit(group_id, primary_id, primary.external_id, absorbed_ids, True, None)

        logger.info(
            f"Merged {len(secondaries)} records into {primary.external_id} "
            f"(skipped {len(secondary_ids) - len(secondaries)} missing)"
        )
        return updated, absorbed_ids

    def merge_batch(self, groups: Sequence[Any]) -> BatchMergeResult:
        """
        Merge several groups, one after another.

        A failing group is reported and does not stop later groups.

        Args:
            groups: Objects with ``group_id``, ``primary_id`` and ``record_ids``
                (for example validated ``BatchMergeGroup`` requests)

        Returns:
            Batch result with one outcome per group
        """
        logger.info(f"Merging batch of {len(groups)} groups")
        batch = BatchMergeResult()

        for group in groups:
            try:
                _, absorbed_ids = self._apply_merge(
                    group.primary_id, group.record_ids, group.group_id
                )
                batch.results.append(GroupMergeOutcome(
                    group_id=group.group_id,
                    success=True,
                    primary_id=group.primary_id,
                    merged_ids=absorbed_ids,
                ))
            except PrimaryNotFoundError:
                logger.warning(f"Group {group.group_id}: primary record {group.primary_id} not found")
                batch.results.append(GroupMergeOutcome(
                    group_id=group.group_id,
                    success=False,
                    message="Primary record not found",
                ))
            except Exception as e:
                logger.error(f"Error merging group {group.group_id}: {e}")
                batch.results.append(GroupMergeOutcome(
                    group_id=group.group_id,
                    success=False,
                    message=str(e) or "Unknown error",
                ))

        logger.info(
            f"Batch merge complete: {batch.success_count} succeeded, "
            f"{batch.failure_count} failed"
        )
        return batch

    def _resolve_secondaries(self, secondary_ids: List[int]) -> List[CustomerRecord]:
        secondaries = []
        for record_id in secondary_ids:
            record = self.store.get(record_id)
            if record is None:
                logger.warning(f"Skipping missing secondary record {record_id}")
                continue
            if record.status is RecordStatus.MERGED_INTO:
                logger.warning(f"Record {record.external_id} is already merged into another record")
            secondaries.append(record)
        return secondaries

    def _absorbed_ids(self, secondaries: List[CustomerRecord]) -> List[str]:
        absorbed: List[str] = []
        for secondary in secondaries:
            absorbed.append(secondary.external_id)
            if self.flatten_provenance:
                absorbed.extend(secondary.merged_from)
        return absorbed

    @staticmethod
    def _extend_provenance(primary: CustomerRecord, absorbed: List[str]) -> List[str]:
        """Append absorbed ids, keeping order and dropping repeats and the primary's own id."""
        merged_from = [
            external_id for external_id in dict.fromkeys(primary.merged_from)
            if external_id != primary.external_id
        ]
        seen = set(merged_from)
        for external_id in absorbed:
            if external_id == primary.external_id or external_id in seen:
                continue
            merged_from.append(external_id)
            seen.add(external_id)
        return merged_from

    def _audit(self, group_id: Optional[str], primary_id: int,
               primary_external_id: Optional[str], absorbed_ids: List[str],
               success: bool, message: Optional[str]) -> None:
        """Record a merge attempt; audit failures never change the merge outcome."""
        if self.audit_log is None:
            return
        try:
            self.audit_log.record_merge(
                primary_id=primary_id,
                primary_external_id=primary_external_id,
                absorbed_ids=absorbed_ids,
                success=success,
                message=message,
                group_id=group_id,
            )
        except Exception as e:
            logger.error(f"Failed to record merge audit for primary {primary_id}: {e}")

    def get_merge_statistics(self, batch: BatchMergeResult,
                             original_count: int) -> Dict[str, Any]:
        """
        Calculate merge statistics for a batch.

        Args:
            batch: Result of ``merge_batch``
            original_count: Number of records before merging

        Returns:
            Dictionary with merge statistics
        """
        successful = [result for result in batch.results if result.success]
        if not successful:
            return {
                "original_count": original_count,
                "merged_count": original_count,
                "duplicate_reduction": 0,
                "duplicate_reduction_percentage": 0.0,
                "merge_groups": 0,
                "failed_groups": batch.failure_count,
            }

        # Group size counts the primary plus the records absorbed in this batch.
        sizes = pd.Series([len(result.merged_ids) + 1 for result in successful])
        duplicate_reduction = int(sizes.sum() - len(sizes))
        reduction_percentage = (duplicate_reduction / original_count) * 100 if original_count > 0 else 0.0

        return {
            "original_count": original_count,
            "merged_count": original_count - duplicate_reduction,
            "duplicate_reduction": duplicate_reduction,
            "duplicate_reduction_percentage": reduction_percentage,
            "merge_groups": len(sizes),
            "failed_groups": batch.failure_count,
            "group_size_distribution": {int(k): int(v) for k, v in sizes.value_counts().items()},
            "avg_group_size": float(sizes.mean()),
            "max_group_size": int(sizes.max()),
        }


def merge_customer_groups(store: RecordStore, groups: Sequence[Any],
                          config: Optional[Dict] = None,
                          audit_log: Optional[MergeAuditLog] = None) -> BatchMergeResult:
    """
    Convenience function to merge a batch of groups.

    Args:
        store: Record store
        groups: Validated batch merge groups
        config: Merge configuration section
        audit_log: Optional audit log

    Returns:
        Batch merge result
    """
    merger = CustomerMerger(store, config, audit_log=audit_log)
    return merger.merge_batch(groups)
