"""Router Composer — mounts pluggable RouteProviders under one base path.

Invariants:
    - Providers are mounted in the order supplied; nothing about their routes is inspected
    - Overlapping routes are not detected: the first-registered route wins (Starlette first match)
    - Only RouteProvider instances are accepted; anything else is a TypeError at startup

Design Decisions:
    - ABC over Protocol: a controller opts in explicitly by subclassing RouteProvider
"""

from abc import ABC, abstractmethod
from typing import Iterable

from fastapi import APIRouter, FastAPI


class RouteProvider(ABC):
    """Capability of a pluggable component: "give me your set of routes"."""

    @abstractmethod
    def get_routes(self) -> APIRouter:
        ...


def normalize_base_path(base_path: str) -> str:
    """'/' (or '') mounts at the root; anything else becomes '/prefix' without trailing slash."""
    stripped = base_path.strip("/")
    return f"/{stripped}" if stripped else ""


def mount_route_providers(
    app: FastAPI, providers: Iterable[RouteProvider], base_path: str = "/",
) -> None:
    prefix = normalize_base_path(base_path)
    for provider in providers:
        if not isinstance(provider, RouteProvider):
            raise TypeError(
                f"{type(provider).__name__} does not implement RouteProvider",
            )
        app.include_router(provider.get_routes(), prefix=prefix)
