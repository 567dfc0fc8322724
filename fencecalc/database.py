import os

from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

# JSONB on Postgres, plain JSON elsewhere (the test suite runs on SQLite).
JsonDocument = JSON().with_variant(JSONB(), "postgresql")

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)

Base = declarative_base()

DATABASE_URL = ""
engine = None
_configured_database_url = None


def _get_database_url() -> str:
    return os.getenv("DATABASE_URL", "postgresql://localhost/fencecalc")


def _engine_kwargs(database_url: str) -> dict:
    # TestClient runs handlers on a worker thread; pysqlite refuses that by default.
    if make_url(database_url).drivername.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {}


def configure_database() -> None:
    global DATABASE_URL, engine, _configured_database_url

    database_url = _get_database_url()

    if engine is not None and _configured_database_url == database_url:
        return

    engine = create_engine(database_url, **_engine_kwargs(database_url))
    SessionLocal.configure(bind=engine)
    DATABASE_URL = database_url
    _configured_database_url = database_url


configure_database()


def get_db():
    configure_database()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def dialect_name(db) -> str:
    return db.get_bind().dialect.name
