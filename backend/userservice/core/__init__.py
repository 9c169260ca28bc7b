"""Core Layer — domain types, errors and boundary protocols.

Invariants:
    - No imports from api/ or infrastructure/
"""
