"""
Analytics and export views for CustomerMerge.
"""
