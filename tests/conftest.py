"""Shared fixtures: an in-memory SQLite database wrapped in an SQLEngine."""

import os

import pytest
from sqlalchemy import create_engine, text

from fluentql.engine import SQLEngine
from fluentql.query_builder import clear_table_map
from fluentql.settings import _reload_settings

SCHEMA = (
    """
    CREATE TABLE users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT,
        active INTEGER NOT NULL DEFAULT 1,
        score REAL
    )
    """,
    """
    CREATE TABLE posts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER,
        title TEXT NOT NULL,
        published INTEGER NOT NULL DEFAULT 0,
        views INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE tags (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        label TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE post_tag (
        post_id INTEGER NOT NULL,
        tag_id INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE profiles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER,
        bio TEXT
    )
    """,
    """
    CREATE TABLE projects (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT,
        "projectGallery_id" INTEGER
    )
    """,
    """
    CREATE TABLE galleries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        "projectGallery_id" INTEGER
    )
    """,
)


def create_schema(connection) -> None:
    for statement in SCHEMA:
        connection.execute(text(statement))
    connection.commit()


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Fresh settings and an empty table map for every test."""
    for name in list(os.environ):
        if name.startswith("FLUENTQL_"):
            monkeypatch.delenv(name, raising=False)
    _reload_settings()
    clear_table_map()
    yield
    clear_table_map()
    monkeypatch.undo()
    _reload_settings()


@pytest.fixture
def connection():
    sa_engine = create_engine("sqlite://")
    conn = sa_engine.connect()
    create_schema(conn)
    yield conn
    conn.close()
    sa_engine.dispose()


@pytest.fixture
def engine(connection):
    return SQLEngine(connection)


@pytest.fixture
def seeded(engine):
    """Three users (two active) with a few posts."""
    qb = engine.query()
    alice = qb.insert("users", {"name": "Alice", "email": "alice@example.com", "active": 1, "score": 10.0})
    bob = qb.insert("users", {"name": "Bob", "email": "bob@example.com", "active": 1, "score": 20.0})
    carol = qb.insert("users", {"name": "Carol", "email": None, "active": 0, "score": None})
    qb.insert_batch(
        "posts",
        [
            {"user_id": alice, "title": "First", "published": 1, "views": 10},
            {"user_id": alice, "title": "Second", "published": 0, "views": 5},
            {"user_id": bob, "title": "Third", "published": 1, "views": 7},
        ],
    )
    return {"alice": alice, "bob": bob, "carol": carol}


@pytest.fixture
def file_database(tmp_path):
    """Two connections to one SQLite file: an engine and an observer."""
    sa_engine = create_engine(f"sqlite:///{tmp_path / 'fluentql.db'}")
    owner = sa_engine.connect()
    create_schema(owner)
    observer = sa_engine.connect()
    yield SQLEngine(owner), observer
    observer.close()
    owner.close()
    sa_engine.dispose()
