"""Shared fixtures for the CLI tests."""

import logging

import pytest
from sqlalchemy import Column, Integer, String, create_engine
from sqlalchemy.orm import DeclarativeBase


@pytest.fixture
def restore_root_logger():
    """Undo handler and level changes made to the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


class Base(DeclarativeBase):
    pass


class Supplier(Base):
    __tablename__ = "suppliers"
    id = Column(Integer, primary_key=True)
    name = Column(String(80), nullable=False)


@pytest.fixture
def sqlite_url(tmp_path):
    """A SQLite database with one table, reachable through aiosqlite."""
    path = tmp_path / "Vendors.db"
    engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(engine)
    engine.dispose()
    return f"sqlite+aiosqlite:///{path}"
