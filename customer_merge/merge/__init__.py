"""
Record merging for CustomerMerge.
"""
