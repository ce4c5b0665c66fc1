"""
Merge audit trail for CustomerMerge.
"""
