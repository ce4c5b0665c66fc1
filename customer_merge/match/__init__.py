"""
Matching engine for CustomerMerge.

Implements the three-pass duplicate finder and the string similarity
comparators it relies on.
"""
