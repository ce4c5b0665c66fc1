"""
Record store collaborators for CustomerMerge.
"""
