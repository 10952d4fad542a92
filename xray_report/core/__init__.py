from .config import settings
from .database import init_db, make_engine

__all__ = ["settings", "init_db", "make_engine"]
