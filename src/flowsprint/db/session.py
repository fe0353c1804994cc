from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def create_session_factory(database_url: str):
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(database_url, future=True, connect_args=connect_args)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False), engine


def init_db(database_url: str):
    factory, engine = create_session_factory(database_url)
    from flowsprint.db import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return factory, engine
