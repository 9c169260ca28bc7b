"""User Service — OpenAPI-validated CRUD service template.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
