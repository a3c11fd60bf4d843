from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from timetracker.core.config import Settings

Base = declarative_base()


def build_engine(settings: Settings) -> Engine:
    url = make_url(settings.database_url)
    kwargs = {"pool_pre_ping": True}

    if url.drivername.startswith("postgresql"):
        kwargs["pool_size"] = settings.db_pool_size
        kwargs["connect_args"] = {
            "options": f"-c statement_timeout={int(settings.db_statement_timeout_ms)}",
        }

    return create_engine(url, **kwargs)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
