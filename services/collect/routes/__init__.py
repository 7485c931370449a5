# coinCollect routes package
from .apps import apps_router
from .auth import auth_router
from .collections import collections_router
from .dashboard import dashboard_router
from .payments import payments_router
from .pdf import pdf_router
from .spends import spends_router
from .users import users_router

__all__ = [
    "apps_router",
    "auth_router",
    "collections_router",
    "dashboard_router",
    "payments_router",
    "pdf_router",
    "spends_router",
    "users_router",
]
