"""
CustomerMerge - Customer Record Deduplication Engine

Finds groups of customer records that refer to the same person using
exact phone, exact name, and fuzzy name matching, and merges them into a
canonical record while preserving provenance.
"""

__version__ = "1.0.0"
__author__ = "CustomerMerge Team"
