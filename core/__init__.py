"""
Interpretive flag generators for ledger, tax and performance results.

Each module exposes one ``generate_*_flags(snapshot)`` function that takes a
JSON-safe result payload and returns severity-sorted flag dicts.
"""
