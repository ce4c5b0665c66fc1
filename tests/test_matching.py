"""
Unit tests for the duplicate finder.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from customer_merge.match.duplicate_finder import DuplicateFinder, find_customer_duplicates
from customer_merge.models import CustomerRecord, MatchReason


def _record(internal_id, first="", last="", phone=""):
    return CustomerRecord(
        internal_id=internal_id,
        external_id=f"CU-{10000 + internal_id}",
        first_name=first,
        last_name=last,
        phone=phone,
    )


class TestPhonePass:
    """Test cases for the exact phone pass."""

    def setup_method(self):
        """Setup test fixtures."""
        self.finder = DuplicateFinder()

    def test_normalized_phones_group_together(self):
        """Test that formatting differences do not split a phone group."""
        records = [
            _record(1, "Ana", "Ruiz", "555-0100"),
            _record(2, "Luis", "Mora", "5550100"),
            _record(3, "Eva", "Soto", "555-0101"),
        ]

        groups = self.finder.find_duplicates(records)

        assert len(groups) == 1
        group = groups[0]
        assert group.record_ids == [1, 2]
        assert group.confidence == 95
        assert group.match_reason == MatchReason.PHONE_EXACT
        assert group.display_name == "Ana Ruiz"

    def test_parentheses_and_spaces_are_ignored(self):
        """Test phones written with area code parentheses."""
        records = [
            _record(1, "Ana", "Ruiz", "(505) 2222 3333"),
            _record(2, "Ana", "Ruiz", "505-2222-3333"),
        ]

        groups, claimed = self.finder.find_phone_matches(records, frozenset())

        assert len(groups) == 1
        assert claimed == frozenset({1, 2})

    def test_singleton_phone_is_claimed(self):
        """Test that a record with an unmatched phone leaves later passes."""
        records = [
            _record(1, "Ana", "Diaz", "111"),
            _record(2, "Ana", "Diaz", ""),
        ]

        groups, claimed = self.finder.find_phone_matches(records, frozenset())

        assert groups == []
        assert claimed == frozenset({1})
        assert self.finder.find_duplicates(records) == []

    def test_empty_phone_never_forms_key(self):
        """Test that blank phones are not grouped."""
        records = [_record(1, "Ana", "Diaz", "  "), _record(2, "Leo", "Paz", "")]

        groups, claimed = self.finder.find_phone_matches(records, frozenset())

        assert groups == []
        assert claimed == frozenset()

    def test_bucket_of_three(self):
        """Test that every record sharing a phone joins the same group."""
        records = [
            _record(1, "Ana", "Ruiz", "5550100"),
            _record(2, "Ana", "Ruiz", "555 0100"),
            _record(3, "A.", "Ruiz", "(555)0100"),
        ]

        groups = self.finder.find_duplicates(records)

        assert [group.record_ids for group in groups] == [[1, 2, 3]]
        assert groups[0].confidence == 95


class TestExactNamePass:
    """Test cases for the exact name pass."""

    def setup_method(self):
        """Setup test fixtures."""
        self.finder = DuplicateFinder()

    def test_case_and_padding_insensitive(self):
        """Test that the name key ignores case and surrounding spaces."""
        records = [
            _record(1, "Juan", "Perez"),
            _record(2, "JUAN", " perez "),
            _record(3, "Rosa", "Perez"),
        ]

        groups = self.finder.find_duplicates(records)

        assert len(groups) == 1
        assert groups[0].record_ids == [1, 2]
        assert groups[0].confidence == 90
        assert groups[0].match_reason == MatchReason.NAME_EXACT
        assert groups[0].display_name == "Juan Perez"

    def test_claimed_records_are_skipped(self):
        """Test that records claimed by the phone pass are excluded."""
        records = [
            _record(1, "Juan", "Perez", "111"),
            _record(2, "Juan", "Perez", "111"),
            _record(3, "Juan", "Perez"),
        ]

        groups = self.finder.find_duplicates(records)

        assert len(groups) == 1
        assert groups[0].match_reason == MatchReason.PHONE_EXACT
        assert 3 not in groups[0].record_ids

    def test_blank_names_never_form_key(self):
        """Test that records without any name are not grouped by name."""
        records = [_record(1), _record(2, " ", " ")]

        groups, claimed = self.finder.find_exact_name_matches(records, frozenset())

        assert groups == []
        assert claimed == frozenset()


class TestFuzzyNamePass:
    """Test cases for the fuzzy name pass."""

    def setup_method(self):
        """Setup test fixtures."""
        self.finder = DuplicateFinder()

    def test_fuzzy_cluster_confidence(self):
        """Test that clusters of three score lower than pairs."""
        records = [
            _record(1, "Carlos", "Gonzalez"),
            _record(2, "Carlos", "Gonzales"),
            _record(3, "Karlos", "Gonzalez"),
        ]

        groups, claimed = self.finder.find_fuzzy_name_matches(records, frozenset())

        assert len(groups) == 1
        assert groups[0].record_ids == [1, 2, 3]
        assert groups[0].confidence == 80
        assert groups[0].match_reason == MatchReason.NAME_FUZZY
        assert claimed == frozenset({1, 2, 3})

    def test_fuzzy_pair_confidence(self):
        """Test a single misspelled first name."""
        records = [_record(1, "Juan", "Perez"), _record(2, "Juann", "Perez")]

        groups, _ = self.finder.find_fuzzy_name_matches(records, frozenset())

        assert len(groups) == 1
        assert groups[0].confidence == 85
        assert groups[0].display_name == "Juan Perez"

    def test_order_fixes_grouping(self):
        """Test that the earliest seed claims its partners first."""
        maria = _record(1, "Maria", "Hernandez")
        mariah = _record(2, "Mariah", "Hernandez")
        mariahhh = _record(3, "Mariahhh", "Hernandes")

        groups, _ = self.finder.find_fuzzy_name_matches([maria, mariah, mariahhh], frozenset())
        assert [group.record_ids for group in groups] == [[1, 2]]
        assert groups[0].confidence == 85

        groups, _ = self.finder.find_fuzzy_name_matches([mariah, maria, mariahhh], frozenset())
        assert [group.record_ids for group in groups] == [[2, 1, 3]]
        assert groups[0].confidence == 80

    def test_singleton_seed_produces_no_group(self):
        """Test that unmatched seeds are dropped."""
        records = [_record(1, "Juan", "Perez"), _record(2, "Olga", "Smirnova")]

        groups, claimed = self.finder.find_fuzzy_name_matches(records, frozenset())

        assert groups == []
        assert claimed == frozenset({1, 2})

    def test_claimed_records_never_join(self):
        """Test that records claimed earlier stay out of fuzzy groups."""
        records = [_record(1, "Juan", "Perez"), _record(2, "Juann", "Perez")]

        groups, claimed = self.finder.find_fuzzy_name_matches(records, frozenset({2}))

        assert groups == []
        assert claimed == frozenset({1, 2})

    def test_weak_match_on_both_names_is_rejected(self):
        """Test that two mediocre name similarities are not enough."""
        assert self.finder.names_match(0.86, 0.76)
        assert self.finder.names_match(0.76, 0.86)
        assert not self.finder.names_match(0.80, 0.80)
        assert not self.finder.names_match(0.85, 0.75)


class TestFindDuplicates:
    """Test cases for the composed matcher."""

    def test_empty_input(self):
        """Test that an empty record list yields no groups."""
        assert find_customer_duplicates([]) == []

    def test_exact_passes_claim_named_records(self):
        """Test that named records never reach the fuzzy pass by default."""
        records = [_record(1, "Juan", "Perez"), _record(2, "Juann", "Perez")]

        assert find_customer_duplicates(records) == []

    def test_claim_unmatched_disabled_allows_fuzzy(self):
        """Test that unmatched records reach the fuzzy pass when configured."""
        records = [
            _record(1, "Juan", "Perez", "111"),
            _record(2, "Juann", "Perez", "222"),
            _record(3, "Eva", "Soto", "333"),
            _record(4, "Eva", "Soto", "333"),
        ]

        groups = find_customer_duplicates(records, {"claim_unmatched": False})

        reasons = {group.match_reason: group.record_ids for group in groups}
        assert reasons == {
            MatchReason.PHONE_EXACT: [3, 4],
            MatchReason.NAME_FUZZY: [1, 2],
        }

    def test_groups_are_disjoint(self):
        """Test that no record appears in two groups."""
        records = [
            _record(1, "Juan", "Perez", "111"),
            _record(2, "Juan", "Perez", "111"),
            _record(3, "Juan", "Perez"),
            _record(4, "Juan", "Perez"),
            _record(5, "Juann", "Perez"),
        ]

        groups = find_customer_duplicates(records, {"claim_unmatched": False})
        seen = [record_id for group in groups for record_id in group.record_ids]

        assert len(seen) == len(set(seen))
        assert [group.match_reason for group in groups] == [
            MatchReason.PHONE_EXACT, MatchReason.NAME_EXACT,
        ]

    def test_group_ids_are_unique(self):
        """Test that every group gets its own id."""
        records = [
            _record(1, "Ana", "Ruiz", "1"),
            _record(2, "Ana", "Ruiz", "1"),
            _record(3, "Leo", "Paz"),
            _record(4, "Leo", "Paz"),
        ]

        groups = find_customer_duplicates(records)

        assert len({group.group_id for group in groups}) == 2

    def test_alternative_similarity_method(self):
        """Test that the fuzzy pass runs with a library-backed comparator."""
        config = {"name_fuzzy": {"similarity_method": "jaro_winkler"}}
        finder = DuplicateFinder(config)
        records = [_record(1, "Juan", "Perez"), _record(2, "Juann", "Perez")]

        groups, _ = finder.find_fuzzy_name_matches(records, frozenset())

        assert finder.similarity_method == "jaro_winkler"
        assert len(groups) == 1


if __name__ == "__main__":
    pytest.main([__file__])
