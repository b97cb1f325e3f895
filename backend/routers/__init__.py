from .health import router as health_router
from .customers import router as customers_router
from .teams import router as teams_router
from .orders import router as orders_router
from .tasks import router as tasks_router
from .users import router as users_router

__all__ = [
    'health_router',
    'customers_router',
    'teams_router',
    'orders_router',
    'tasks_router',
    'users_router',
]
