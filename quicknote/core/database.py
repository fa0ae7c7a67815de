from sqlmodel import SQLModel, create_engine, Session
from quicknote.core.config import settings


def _connect_args(url: str) -> dict:
    # SQLite connections are shared with the request threadpool
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


# Database engine
engine = create_engine(
    settings.database_url,
    echo=settings.sql_echo,
    pool_pre_ping=True,  # Verify connections before using them
    connect_args=_connect_args(settings.database_url),
)


def create_db_and_tables():
    """Create every table known to the metadata"""
    import quicknote.models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session():
    """Database session per request"""
    with Session(engine) as session:
        yield session
