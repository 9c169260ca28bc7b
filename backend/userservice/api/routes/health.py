"""Health Probe — liveness endpoint for container orchestration.

Invariants:
    - GET /health always returns 200 {"status": "OK"} while the process is up
    - Registered before any pluggable controller and exempt from contract validation
"""

from fastapi import APIRouter, status

HEALTH_PATH = "/health"

router = APIRouter(tags=["health"])


@router.get(HEALTH_PATH, status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {"status": "OK"}
