"""
Staff routers - JWT authenticated.
- /api/orders/* - Order list, detail and manual status changes
- /api/tables/* - Open orders per table and table closure
"""

from .orders import router as orders_router
from .tables import router as tables_router

__all__ = ["orders_router", "tables_router"]
