"""API v1 versioned router.

Router structure
----------------
  /health, /ready, /live   → health checks (liveness, readiness)
  /users/upload-users      → bulk provisioning from a CSV upload
  /users/bulk              → bulk provisioning from JSON rows
  /users                   → paginated user list
"""
from fastapi import APIRouter

from .endpoints import health, users

router = APIRouter(prefix="/api/v1")

router.include_router(health.router, tags=["Health"])
router.include_router(users.router, tags=["Users"])
