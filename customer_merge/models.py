"""
Record and group models for CustomerMerge.

Defines the customer record, its merge status lifecycle, and the transient
duplicate groups produced by the matcher.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class RecordStatus(str, Enum):
    """Merge lifecycle of a customer record."""

    CLEAN = "clean"
    MERGED = "merged"
    MERGED_INTO = "merged_into"

    def can_transition_to(self, target: "RecordStatus") -> bool:
        """
        Check whether a record in this status may move to ``target``.

        A superseded record can be absorbed again but can never become a
        surviving primary.

        Args:
            target: Requested status

        Returns:
            True if the transition is allowed
        """
        if self is RecordStatus.MERGED_INTO:
            return target is RecordStatus.MERGED_INTO
        return target in (RecordStatus.MERGED, RecordStatus.MERGED_INTO)


class MatchReason(str, Enum):
    """Why the matcher placed records in the same group."""

    PHONE_EXACT = "phone_exact"
    NAME_EXACT = "name_exact"
    NAME_FUZZY = "name_fuzzy"

    @property
    def description(self) -> str:
        return _MATCH_REASON_DESCRIPTIONS[self]


_MATCH_REASON_DESCRIPTIONS = {
    MatchReason.PHONE_EXACT: "Phone number exact match",
    MatchReason.NAME_EXACT: "Full name exact match",
    MatchReason.NAME_FUZZY: "Similar name information",
}


@dataclass
class CustomerRecord:
    """A customer account record as held by the record store."""

    internal_id: int
    external_id: str
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    address: Optional[str] = None
    zone: Optional[str] = None
    status: RecordStatus = RecordStatus.CLEAN
    is_merged: bool = False
    merged_from: List[str] = field(default_factory=list)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "internal_id": self.internal_id,
            "external_id": self.external_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "address": self.address,
            "zone": self.zone,
            "status": self.status.value,
            "is_merged": self.is_merged,
            "merged_from": list(self.merged_from),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustomerRecord":
        return cls(
            internal_id=int(data["internal_id"]),
            external_id=str(data["external_id"]),
            first_name=data.get("first_name") or "",
            last_name=data.get("last_name") or "",
            phone=data.get("phone") or "",
            address=data.get("address"),
            zone=data.get("zone"),
            status=RecordStatus(data.get("status") or RecordStatus.CLEAN.value),
            is_merged=bool(data.get("is_merged", False)),
            merged_from=list(data.get("merged_from") or []),
        )


@dataclass
class DuplicateGroup:
    """
    Records the matcher believes refer to the same person.

    Groups only live for one matcher invocation; ``group_id`` is unique
    within that result set.
    """

    group_id: str
    display_name: str
    members: List[CustomerRecord]
    confidence: int
    match_reason: MatchReason

    @property
    def record_ids(self) -> List[int]:
        return [member.internal_id for member in self.members]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "group_id": self.group_id,
            "display_name": self.display_name,
            "records": [member.to_dict() for member in self.members],
            "confidence": self.confidence,
            "match_reason": self.match_reason.value,
            "match_description": self.match_reason.description,
        }
