"""
Normalization and configuration for CustomerMerge.

Builds the phone and name match keys and loads engine configuration.
"""
