from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from .config import settings


def _normalized_database_url(raw_url: str) -> str:
    """
    DATABASE_URL normalization:
    - postgres:// or postgresql:// without a driver -> psycopg3 dialect.
    - Everything else (SQLite etc.) is left as is.
    """
    if not raw_url:
        return "sqlite:///./xray_report.db"
    raw_url = raw_url.strip()
    if raw_url.startswith("postgres://"):
        return "postgresql+psycopg://" + raw_url[len("postgres://") :]
    if raw_url.startswith("postgresql://") and "+psycopg" not in raw_url.split("://", 1)[0]:
        return "postgresql+psycopg://" + raw_url[len("postgresql://") :]
    return raw_url


def make_engine(raw_url: str | None = None):
    url = _normalized_database_url(raw_url if raw_url is not None else settings.database_url)
    # In-memory SQLite: one shared connection so tables created at startup stay visible
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    use_static_pool = url.startswith("sqlite") and ":memory:" in url
    return create_engine(
        url,
        connect_args=connect_args,
        poolclass=StaticPool if use_static_pool else None,
    )


def init_db(engine) -> None:
    # Registers the table on SQLModel.metadata
    from xray_report.models import KeyValueRecord  # noqa: F401

    SQLModel.metadata.create_all(engine)