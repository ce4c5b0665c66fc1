"""
Engine service and command line pipeline for CustomerMerge.
"""
