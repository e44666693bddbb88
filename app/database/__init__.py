from app.database.base import Base
from app.database.engine import engine, ensure_sqlite_schema
from app.database.session import SessionLocal, get_db

__all__ = ["Base", "engine", "ensure_sqlite_schema", "SessionLocal", "get_db"]
