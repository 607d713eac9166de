from __future__ import annotations

from app.api.routes.admin import router as admin_router
from app.api.routes.auth import router as auth_router
from app.api.routes.health import router as health_router
from app.api.routes.products import router as products_router
from app.api.routes.users import router as users_router

__all__ = ["admin_router", "auth_router", "health_router", "products_router", "users_router"]
