"""API Routes"""

from .contract import router as contract_router
from .tasks import reservations_router
from .tasks import router as tasks_router

__all__ = ["contract_router", "reservations_router", "tasks_router"]
