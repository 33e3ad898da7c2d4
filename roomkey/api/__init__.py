# roomkey API
from roomkey.api.router import api_router

__all__ = ["api_router"]
