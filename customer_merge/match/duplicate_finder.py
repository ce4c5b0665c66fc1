"""
Duplicate detection for CustomerMerge.

Partitions customer records into duplicate groups with three sequential
passes: exact phone, exact full name, and fuzzy name similarity. A record
claimed by one pass is never considered by a later pass, so every record
belongs to at most one group.
"""

import logging
import uuid
from collections import defaultdict
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from customer_merge.match.similarity import get_comparator
from customer_merge.models import CustomerRecord, DuplicateGroup, MatchReason
from customer_merge.normalize.record_normalizer import (
    normalize_name_part,
    record_name_key,
    record_phone_key,
)

logger = logging.getLogger(__name__)

Claimed = FrozenSet[int]
PassResult = Tuple[List[DuplicateGroup], Claimed]


class DuplicateFinder:
    """
    Three-pass duplicate finder.

    Each pass takes the set of already claimed internal ids and returns its
    groups together with the enlarged claimed set, so passes can be run and
    tested on their own. Results depend on input order: in the fuzzy pass
    earlier records claim their partners first.
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize duplicate finder with configuration.

        Args:
            config: The ``matching`` configuration section
        """
        self.config = config or {}
        self.claim_unmatched = self.config.get("claim_unmatched", True)

        self.phone_confidence = self.config.get("phone", {}).get("confidence", 95)
        self.name_exact_confidence = self.config.get("name_exact", {}).get("confidence", 90)

        fuzzy_config = self.config.get("name_fuzzy", {})
        self.strong_threshold = fuzzy_config.get("strong_threshold", 0.85)
        self.weak_threshold = fuzzy_config.get("weak_threshold", 0.75)
        self.pair_confidence = fuzzy_config.get("pair_confidence", 85)
        self.cluster_confidence = fuzzy_config.get("cluster_confidence", 80)
        self.similarity_method = fuzzy_config.get("similarity_method", "dice")
        self.similarity = get_comparator(self.similarity_method)

        logger.info(f"Initialized DuplicateFinder (similarity={self.similarity_method})")

    def find_duplicates(self, records: Sequence[CustomerRecord]) -> List[DuplicateGroup]:
        """
        Run all three passes over the records.

        Args:
            records: Customer records in caller order

        Returns:
            Duplicate groups; records that matched nothing are absent
        """
        claimed: Claimed = frozenset()

        phone_groups, claimed = self.find_phone_matches(records, claimed)
        name_groups, claimed = self.find_exact_name_matches(records, claimed)
        fuzzy_groups, claimed = self.find_fuzzy_name_matches(records, claimed)

        groups = phone_groups + name_groups + fuzzy_groups
        logger.info(
            f"Found {len(groups)} duplicate groups in {len(records)} records "
            f"(phone={len(phone_groups)}, name_exact={len(name_groups)}, "
            f"name_fuzzy={len(fuzzy_groups)})"
        )
        return groups

    def find_phone_matches(self, records: Sequence[CustomerRecord],
                           claimed: Claimed) -> PassResult:
        """
        Group unclaimed records sharing a normalized phone number.

        Args:
            records: Customer records
            claimed: Internal ids claimed by earlier passes

        Returns:
            Tuple of (phone groups, updated claimed set)
        """
        return self._bucket_pass(
            records, claimed, record_phone_key, MatchReason.PHONE_EXACT, self.phone_confidence
        )

    def find_exact_name_matches(self, records: Sequence[CustomerRecord],
                                claimed: Claimed) -> PassResult:
        """
        Group unclaimed records sharing a lowercase full name.

        Args:
            records: Customer records
            claimed: Internal ids claimed by earlier passes

        Returns:
            Tuple of (exact name groups, updated claimed set)
        """
        return self._bucket_pass(
            records, claimed, record_name_key, MatchReason.NAME_EXACT, self.name_exact_confidence
        )

    def find_fuzzy_name_matches(self, records: Sequence[CustomerRecord],
                                claimed: Claimed) -> PassResult:
        """
        Greedily cluster unclaimed records with similar first and last names.

        Each unclaimed record in input order seeds a group and claims every
        later unclaimed record whose names pass the threshold rule. Seeds
        without partners produce no group.

        Args:
            records: Customer records
            claimed: Internal ids claimed by earlier passes

        Returns:
            Tuple of (fuzzy groups, updated claimed set)
        """
        taken = set(claimed)
        groups: List[DuplicateGroup] = []

        candidates = [
            (record, normalize_name_part(record.first_name), normalize_name_part(record.last_name))
            for record in records
            if record_name_key(record)
        ]

        for i, (seed, seed_first, seed_last) in enumerate(candidates):
            if seed.internal_id in taken:
                continue

            members = [seed]
            taken.add(seed.internal_id)

            for other, other_first, other_last in candidates[i + 1:]:
                if other.internal_id in taken:
                    continue

                first_similarity = self.similarity(seed_first, other_first)
                last_similarity = self.similarity(seed_last, other_last)

                if self.names_match(first_similarity, last_similarity):
                    members.append(other)
                    taken.add(other.internal_id)

            if len(members) > 1:
                confidence = self.cluster_confidence if len(members) > 2 else self.pair_confidence
                groups.append(self._build_group(members, MatchReason.NAME_FUZZY, confidence))

        logger.debug(f"Fuzzy name pass produced {len(groups)} groups")
        return groups, frozenset(taken)

    def names_match(self, first_similarity: float, last_similarity: float) -> bool:
        """
        Apply the asymmetric threshold rule.

        A strong match on one name component tolerates a weaker match on
        the other.
        """
        return (
            (first_similarity > self.strong_threshold and last_similarity > self.weak_threshold)
            or (first_similarity > self.weak_threshold and last_similarity > self.strong_threshold)
        )

    def _bucket_pass(self, records: Sequence[CustomerRecord], claimed: Claimed,
                     key_func: Callable[[CustomerRecord], str],
                     reason: MatchReason, confidence: int) -> PassResult:
        """Bucket unclaimed records by an exact key and emit multi-member buckets."""
        buckets: Dict[str, List[CustomerRecord]] = defaultdict(list)

        for record in records:
            if record.internal_id in claimed:
                continue
            key = key_func(record)
            if key:
                buckets[key].append(record)

        taken = set(claimed)
        groups: List[DuplicateGroup] = []

        for members in buckets.values():
            if len(members) > 1:
                groups.append(self._build_group(members, reason, confidence))
                taken.update(member.internal_id for member in members)
            elif self.claim_unmatched:
                taken.add(members[0].internal_id)

        logger.debug(f"{reason.value} pass produced {len(groups)} groups from {len(buckets)} keys")
        return groups, frozenset(taken)

    @staticmethod
    def _build_group(members: List[CustomerRecord], reason: MatchReason,
                     confidence: int) -> DuplicateGroup:
        return DuplicateGroup(
            group_id=str(uuid.uuid4()),
            display_name=members[0].full_name,
            members=list(members),
            confidence=confidence,
            match_reason=reason,
        )


def find_customer_duplicates(records: Sequence[CustomerRecord],
                             config: Optional[Dict] = None) -> List[DuplicateGroup]:
    """
    Convenience function to find duplicate groups.

    Args:
        records: Customer records
        config: Matching configuration section

    Returns:
        List of duplicate groups
    """
    finder = DuplicateFinder(config)
    return finder.find_duplicates(records)
