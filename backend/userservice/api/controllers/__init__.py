"""Controllers — RouteProvider implementations that translate HTTP to service calls.

Invariants:
    - Controllers never touch the store directly (delegate to services)
    - Domain Err results are mapped to ApiErrors here, not in the error translator
"""
