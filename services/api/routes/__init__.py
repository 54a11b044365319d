from .admin import router as admin_router
from .auth import router as auth_router
from .budget import router as budget_router
from .catalog import router as catalog_router
from .jobs import router as jobs_router

ROUTERS = [auth_router, jobs_router, catalog_router, budget_router, admin_router]

__all__ = ["ROUTERS"]
