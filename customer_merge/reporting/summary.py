"""
Reporting helpers for CustomerMerge.

Builds analytics figures and the consolidated and unique customer views
used for exports, as pandas DataFrames ready to be written out.
"""

import logging
from typing import Any, Dict, List, Sequence

import pandas as pd

from customer_merge.models import CustomerRecord, DuplicateGroup, RecordStatus

logger = logging.getLogger(__name__)

RECORD_COLUMNS = [
    "internal_id",
    "external_id",
    "first_name",
    "last_name",
    "phone",
    "address",
    "zone",
    "status",
    "is_merged",
    "merged_from",
]


def consolidated_records(records: Sequence[CustomerRecord]) -> List[CustomerRecord]:
    """All records except those merged into another record."""
    return [record for record in records if record.status is not RecordStatus.MERGED_INTO]


def unique_records(records: Sequence[CustomerRecord]) -> List[CustomerRecord]:
    """
    Records that stand for one distinct customer.

    Keeps clean records and merge primaries that actually absorbed
    something.

    Args:
        records: All customer records

    Returns:
        Filtered records
    """
    unique = []
    for record in records:
        if record.status is RecordStatus.CLEAN:
            unique.append(record)
        elif record.status is RecordStatus.MERGED and record.is_merged and record.merged_from:
            unique.append(record)
    return unique


def records_to_frame(records: Sequence[CustomerRecord]) -> pd.DataFrame:
    """
    Convert records to a DataFrame.

    ``merged_from`` is flattened to a ``;``-separated string so the frame
    can be written to CSV directly.
    """
    rows = []
    for record in records:
        row = record.to_dict()
        row["merged_from"] = ";".join(row["merged_from"])
        rows.append(row)
    return pd.DataFrame(rows, columns=RECORD_COLUMNS)


def groups_to_frame(groups: Sequence[DuplicateGroup]) -> pd.DataFrame:
    """One row per group member, for operator review."""
    rows = []
    for group in groups:
        for position, member in enumerate(group.members):
            rows.append({
                "group_id": group.group_id,
                "display_name": group.display_name,
                "confidence": group.confidence,
                "match_reason": group.match_reason.value,
                "position": position,
                "internal_id": member.internal_id,
                "external_id": member.external_id,
                "first_name": member.first_name,
                "last_name": member.last_name,
                "phone": member.phone,
            })
    return pd.DataFrame(rows, columns=[
        "group_id", "display_name", "confidence", "match_reason", "position",
        "internal_id", "external_id", "first_name", "last_name", "phone",
    ])


def build_analytics(records: Sequence[CustomerRecord]) -> Dict[str, Any]:
    """
    Calculate dashboard figures for the current record set.

    Args:
        records: All customer records

    Returns:
        Dictionary with record counts by merge status
    """
    df = records_to_frame(records)
    status_counts = df["status"].value_counts()

    analytics = {
        "total_customers": len(df),
        "duplicates_count": int(status_counts.get(RecordStatus.MERGED_INTO.value, 0)),
        "merged_primaries": int(status_counts.get(RecordStatus.MERGED.value, 0)),
        "clean_customers": int(status_counts.get(RecordStatus.CLEAN.value, 0)),
        "consolidated_customers": len(consolidated_records(records)),
        "unique_customers": len(unique_records(records)),
    }

    logger.info(
        f"Analytics: {analytics['total_customers']} customers, "
        f"{analytics['duplicates_count']} merged into others"
    )
    return analytics


def summarize_groups(groups: Sequence[DuplicateGroup]) -> Dict[str, Any]:
    """
    Summarize matcher output.

    Args:
        groups: Duplicate groups

    Returns:
        Dictionary with group counts per match reason and confidence statistics
    """
    if not groups:
        return {"group_count": 0, "grouped_records": 0, "by_reason": {}}

    df = pd.DataFrame([
        {"match_reason": group.match_reason.value, "size": len(group.members),
         "confidence": group.confidence}
        for group in groups
    ])

    return {
        "group_count": len(df),
        "grouped_records": int(df["size"].sum()),
        "by_reason": {reason: int(count) for reason, count in df["match_reason"].value_counts().items()},
        "avg_confidence": float(df["confidence"].mean()),
        "max_group_size": int(df["size"].max()),
    }
