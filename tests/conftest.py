"""Shared fixtures for dbfixtures tests."""

from pathlib import Path

import pytest
from sqlalchemy import create_engine, event

SCHEMA = [
    """
    CREATE TABLE users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE posts (
        id INTEGER PRIMARY KEY,
        title TEXT NOT NULL,
        content TEXT,
        metadata TEXT,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE tags (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE posts_tags (
        post_id INTEGER NOT NULL REFERENCES posts (id),
        tag_id INTEGER NOT NULL REFERENCES tags (id),
        PRIMARY KEY (post_id, tag_id)
    )
    """,
]


def _make_engine(path: Path):
    engine = create_engine(f"sqlite:///{path}")

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    with engine.begin() as conn:
        for statement in SCHEMA:
            conn.exec_driver_sql(statement)
    return engine


@pytest.fixture
def sqlite_engine(tmp_path):
    """File-backed SQLite test database with the blog schema."""
    engine = _make_engine(tmp_path / "fixtures_test.db")
    yield engine
    engine.dispose()


@pytest.fixture
def production_engine(tmp_path):
    """Same schema, but the database name does not contain "test"."""
    engine = _make_engine(tmp_path / "production.db")
    yield engine
    engine.dispose()


@pytest.fixture
def statement_log(sqlite_engine):
    """Record every statement sent to the test database."""
    statements = []

    @event.listens_for(sqlite_engine, "before_cursor_execute")
    def _record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    return statements


@pytest.fixture
def blog_fixtures():
    """Fixture rows for posts, tags and posts_tags."""
    from dbfixtures import FixtureSet

    return [
        FixtureSet.from_records(
            "posts",
            [
                {
                    "id": 1,
                    "title": "Post 1",
                    "content": "Content of post 1",
                    "metadata": {"tags": ["go", "python"], "draft": False},
                    "created_at": "2016-01-01 12:30:12",
                    "updated_at": "RAW=CURRENT_TIMESTAMP",
                },
                {
                    "id": 2,
                    "title": "Post 2",
                    "content": "Content of post 2",
                    "metadata": None,
                    "created_at": "2016-01-01 12:30:12",
                    "updated_at": "RAW=CURRENT_TIMESTAMP",
                },
            ],
            source="posts.yml",
        ),
        FixtureSet.from_records(
            "tags",
            [{"id": 1, "name": "Go"}, {"id": 2, "name": "Python"}, {"id": 3, "name": "SQL"}],
            source="tags.yml",
        ),
        FixtureSet.from_records(
            "posts_tags",
            [
                {"post_id": 1, "tag_id": 1},
                {"post_id": 1, "tag_id": 2},
                {"post_id": 2, "tag_id": 3},
            ],
            source="posts_tags.yml",
        ),
    ]


@pytest.fixture
def fixtures_dir(tmp_path):
    """Directory holding YAML fixture files."""
    directory = tmp_path / "fixtures"
    directory.mkdir()
    (directory / "users.yml").write_text(
        "- id: 1\n"
        "  name: Alice\n"
        "- id: 2\n"
        "  name: Bob\n"
    )
    (directory / "tags.yml").write_text(
        "go:\n"
        "  id: 1\n"
        "  name: Go\n"
        "python:\n"
        "  id: 2\n"
        "  name: Python\n"
    )
    (directory / "empty.yml").write_text("")
    (directory / "multi.yml").write_text(
        "tags:\n"
        "  - id: 10\n"
        "    name: Rust\n"
        "posts:\n"
        "  - id: 10\n"
        "    title: Multi\n"
        "    created_at: RAW=CURRENT_TIMESTAMP\n"
    )
    return directory
