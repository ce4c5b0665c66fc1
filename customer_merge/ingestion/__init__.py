"""
Ingestion for CustomerMerge.

Maps imported customer rows onto record payloads and validates merge
requests.
"""
