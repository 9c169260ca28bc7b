"""Infrastructure Layer — contract loading, persistence and logging.

Invariants:
    - Infrastructure never imports from api/
"""
