"""Admin tooling."""

from .commands import app_admin_service, build_admin_router
from .service import AdminService

__all__ = ["app_admin_service", "build_admin_router", "AdminService"]
