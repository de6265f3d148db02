from .config import is_paytabs_configured, settings
from .database import engine, get_db, init_db
from .errors import AppError

__all__ = ["AppError", "engine", "get_db", "init_db", "is_paytabs_configured", "settings"]
