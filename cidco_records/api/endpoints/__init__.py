# API endpoints
from . import auth, users, registry, records

__all__ = ["auth", "users", "registry", "records"]
