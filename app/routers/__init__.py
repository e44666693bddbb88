from app.routers.alerts import router as alerts_router
from app.routers.auth import router as auth_router
from app.routers.categories import router as categories_router
from app.routers.dashboard import router as dashboard_router
from app.routers.developer import router as developer_router
from app.routers.health import router as health_router
from app.routers.orders import router as orders_router
from app.routers.products import router as products_router
from app.routers.purchase_orders import router as purchase_orders_router
from app.routers.reports import router as reports_router
from app.routers.scanner import router as scanner_router
from app.routers.stock import router as stock_router
from app.routers.suppliers import router as suppliers_router
from app.routers.users import router as users_router

__all__ = [
    "alerts_router",
    "auth_router",
    "categories_router",
    "dashboard_router",
    "developer_router",
    "health_router",
    "orders_router",
    "products_router",
    "purchase_orders_router",
    "reports_router",
    "scanner_router",
    "stock_router",
    "suppliers_router",
    "users_router",
]
