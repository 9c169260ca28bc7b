"""API Layer — HTTP composition: middleware, routing, controllers, error translation.

Invariants:
    - Controllers are RouteProviders registered explicitly by the composition root
    - All error bodies are produced by api/error_handlers.py
"""
