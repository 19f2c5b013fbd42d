"""Tests for the fixture Loader against SQLite."""

import json

import pytest
from sqlalchemy.exc import IntegrityError

from dbfixtures import (
    ConfigurationError,
    FixtureSet,
    InsertError,
    Loader,
    LoaderOptions,
    NotATestDatabaseError,
)
from dbfixtures.core.integrity import GuardState


def _rows(engine, sql):
    with engine.connect() as conn:
        return [tuple(row) for row in conn.exec_driver_sql(sql)]


def _data_statements(statements):
    """DELETE/INSERT statements against fixture tables."""
    return [
        s
        for s in statements
        if s.lstrip().upper().startswith(("DELETE", "INSERT")) and "sqlite_sequence" not in s
    ]


class TestLoaderConstruction:
    """Test Loader validation at construction time."""

    def test_requires_engine(self, blog_fixtures):
        """Test a missing engine is rejected."""
        with pytest.raises(ConfigurationError, match="engine is required"):
            Loader(None, "sqlite", blog_fixtures)

    def test_requires_dialect(self, sqlite_engine, blog_fixtures):
        """Test a missing dialect is rejected."""
        with pytest.raises(ConfigurationError, match="dialect is required"):
            Loader(sqlite_engine, "", blog_fixtures)

    def test_unknown_dialect(self, sqlite_engine, blog_fixtures):
        """Test an unknown dialect identifier fails immediately."""
        with pytest.raises(ConfigurationError, match="Unknown dialect 'db2'"):
            Loader(sqlite_engine, "db2", blog_fixtures)

    def test_constraint_modes_are_postgres_only(self, sqlite_engine, blog_fixtures):
        """Test use_alter_constraint is refused for SQLite."""
        with pytest.raises(ConfigurationError, match="only supported by PostgreSQL"):
            Loader(sqlite_engine, "sqlite", blog_fixtures, use_alter_constraint=True)

    def test_constraint_modes_are_exclusive(self, sqlite_engine, blog_fixtures):
        """Test both constraint modes together are refused."""
        with pytest.raises(ConfigurationError, match="mutually exclusive"):
            Loader(
                sqlite_engine,
                "postgres",
                blog_fixtures,
                use_alter_constraint=True,
                use_drop_constraint=True,
            )

    def test_unknown_option(self, sqlite_engine, blog_fixtures):
        """Test unknown option names are rejected."""
        with pytest.raises(ConfigurationError, match="Invalid loader options"):
            Loader(sqlite_engine, "sqlite", blog_fixtures, skip_everything=True)

    def test_duplicate_tables(self, sqlite_engine):
        """Test the same table declared twice is rejected."""
        fixtures = [
            FixtureSet.from_records("tags", [{"id": 1, "name": "a"}], source="a.yml"),
            FixtureSet.from_records("tags", [{"id": 2, "name": "b"}], source="b.yml"),
        ]
        with pytest.raises(ConfigurationError, match="declared by both a.yml and b.yml"):
            Loader(sqlite_engine, "sqlite", fixtures)

    def test_options_and_overrides_merge(self, sqlite_engine, blog_fixtures):
        """Test keyword overrides are applied on top of an options object."""
        options = LoaderOptions(skip_reset_sequences=True)
        loader = Loader(sqlite_engine, "sqlite", blog_fixtures, options, reset_sequences_to=500)

        assert loader.options.skip_reset_sequences is True
        assert loader.options.reset_sequences_to == 500

    def test_compiles_once(self, sqlite_engine, blog_fixtures):
        """Test fixtures are compiled to inserts at construction."""
        loader = Loader(sqlite_engine, "sqlite", blog_fixtures)

        assert [c.table for c in loader.compiled] == ["posts", "tags", "posts_tags"]
        first = loader.compiled[0].inserts[0]
        assert first.sql == (
            'INSERT INTO "posts" ("id", "title", "content", "metadata", "created_at", "updated_at") '
            "VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP)"
        )
        assert first.source == "posts.yml"
        assert first.index == 0

    def test_accepts_fixture_paths(self, sqlite_engine, fixtures_dir):
        """Test file paths are loaded as single-table fixtures."""
        loader = Loader(sqlite_engine, "sqlite", [fixtures_dir / "users.yml"])

        assert loader.fixtures[0].table == "users"
        assert len(loader.fixtures[0]) == 2


class TestLoad:
    """Test loading fixtures into SQLite."""

    def test_load_replaces_contents(self, sqlite_engine, blog_fixtures):
        """Test existing rows are replaced by fixture rows."""
        with sqlite_engine.begin() as conn:
            conn.exec_driver_sql("INSERT INTO tags (id, name) VALUES (99, 'stale')")

        result = Loader(sqlite_engine, "sqlite", blog_fixtures).load()

        assert _rows(sqlite_engine, "SELECT id, name FROM tags ORDER BY id") == [
            (1, "Go"),
            (2, "Python"),
            (3, "SQL"),
        ]
        assert result.tables_loaded == ["posts", "tags", "posts_tags"]
        assert result.records_inserted == 8
        assert result.records_deleted_tables == ["posts", "tags", "posts_tags"]
        assert result.duration_seconds is not None

    def test_deletes_happen_before_inserts(self, sqlite_engine, blog_fixtures, statement_log):
        """Test every modified table is emptied before any insert."""
        Loader(sqlite_engine, "sqlite", blog_fixtures).load()

        data = _data_statements(statement_log)
        assert [s.split()[0] for s in data[:3]] == ["DELETE", "DELETE", "DELETE"]
        assert all(s.startswith("INSERT") for s in data[3:])

    def test_json_values_round_trip(self, sqlite_engine, blog_fixtures):
        """Test nested maps and lists are stored as JSON text."""
        Loader(sqlite_engine, "sqlite", blog_fixtures).load()

        [(metadata,)] = _rows(sqlite_engine, "SELECT metadata FROM posts WHERE id = 1")
        assert json.loads(metadata) == {"tags": ["go", "python"], "draft": False}

    def test_raw_values_are_not_bound(self, sqlite_engine, blog_fixtures, statement_log):
        """Test RAW= values are emitted into the SQL and evaluated by the database."""
        Loader(sqlite_engine, "sqlite", blog_fixtures).load()

        inserts = [s for s in statement_log if s.startswith('INSERT INTO "posts" (')]
        assert all("CURRENT_TIMESTAMP" in s for s in inserts)
        assert all("RAW=" not in s for s in inserts)
        [(updated_at,)] = _rows(sqlite_engine, "SELECT updated_at FROM posts WHERE id = 1")
        assert updated_at is not None

    def test_time_strings_are_parsed(self, sqlite_engine, blog_fixtures):
        """Test date strings are bound as timestamps."""
        Loader(sqlite_engine, "sqlite", blog_fixtures).load()

        [(created_at,)] = _rows(sqlite_engine, "SELECT created_at FROM posts WHERE id = 1")
        assert created_at == "2016-01-01 12:30:12"

    def test_skip_cleanup(self, sqlite_engine):
        """Test skip_cleanup_fixture_tables keeps existing rows."""
        with sqlite_engine.begin() as conn:
            conn.exec_driver_sql("INSERT INTO tags (id, name) VALUES (99, 'kept')")
        fixtures = [FixtureSet.from_records("tags", [{"id": 1, "name": "Go"}])]

        result = Loader(sqlite_engine, "sqlite", fixtures, skip_cleanup_fixture_tables=True).load()

        assert _rows(sqlite_engine, "SELECT id FROM tags ORDER BY id") == [(1,), (99,)]
        assert result.records_deleted_tables == []

    def test_empty_fixture_empties_table(self, sqlite_engine, fixtures_dir):
        """Test an empty fixture file leaves its table empty."""
        with sqlite_engine.begin() as conn:
            conn.exec_driver_sql("INSERT INTO tags (id, name) VALUES (1, 'gone')")
        fixture = FixtureSet.from_content("tags", None, source="empty.yml")

        Loader(sqlite_engine, "sqlite", [fixture]).load()

        assert _rows(sqlite_engine, "SELECT COUNT(*) FROM tags") == [(0,)]

    def test_multi_table_file(self, sqlite_engine, fixtures_dir):
        """Test a multi-table file loads each table independently."""
        fixtures = FixtureSet.from_multi_table_file(fixtures_dir / "multi.yml")

        result = Loader(sqlite_engine, "sqlite", fixtures).load()

        assert sorted(result.tables_loaded) == ["posts", "tags"]
        assert _rows(sqlite_engine, "SELECT id, name FROM tags") == [(10, "Rust")]


class TestChecksums:
    """Test skipping unchanged tables."""

    def test_second_load_touches_nothing(self, sqlite_engine, blog_fixtures, statement_log):
        """Test an immediate reload performs no deletes or inserts."""
        loader = Loader(sqlite_engine, "sqlite", blog_fixtures)
        loader.load()
        before = _rows(sqlite_engine, "SELECT id, title FROM posts ORDER BY id")
        statement_log.clear()

        result = loader.load()

        assert result.tables_loaded == []
        assert result.tables_skipped == ["posts", "tags", "posts_tags"]
        assert _data_statements(statement_log) == []
        assert _rows(sqlite_engine, "SELECT id, title FROM posts ORDER BY id") == before

    def test_external_change_reloads_only_that_table(self, sqlite_engine, blog_fixtures):
        """Test mutating one table makes exactly that table reload."""
        loader = Loader(sqlite_engine, "sqlite", blog_fixtures)
        loader.load()
        with sqlite_engine.begin() as conn:
            conn.exec_driver_sql("UPDATE tags SET name = 'Changed' WHERE id = 2")

        result = loader.load()

        assert result.tables_loaded == ["tags"]
        assert sorted(result.tables_skipped) == ["posts", "posts_tags"]
        assert _rows(sqlite_engine, "SELECT name FROM tags WHERE id = 2") == [("Python",)]

    def test_skip_checksum_computation_always_reloads(self, sqlite_engine, blog_fixtures):
        """Test disabling checksums makes every load reload every table."""
        loader = Loader(sqlite_engine, "sqlite", blog_fixtures, skip_table_checksum_computation=True)
        loader.load()

        result = loader.load()

        assert result.tables_loaded == ["posts", "tags", "posts_tags"]


class TestTestDatabaseCheck:
    """Test the test database safety check."""

    def test_production_database_is_refused(self, production_engine, blog_fixtures):
        """Test loading into a non-test database fails without changes."""
        with production_engine.begin() as conn:
            conn.exec_driver_sql("INSERT INTO tags (id, name) VALUES (42, 'prod')")
        loader = Loader(production_engine, "sqlite", blog_fixtures)

        with pytest.raises(NotATestDatabaseError, match='"production.db"'):
            loader.load()

        assert _rows(production_engine, "SELECT id, name FROM tags") == [(42, "prod")]

    def test_check_can_be_skipped(self, production_engine, blog_fixtures):
        """Test skip_test_database_check allows the load."""
        result = Loader(production_engine, "sqlite", blog_fixtures, skip_test_database_check=True).load()

        assert result.records_inserted == 8

    @pytest.mark.parametrize("name", ["db_test", "dbTEST", "testdb", "productionTestCopy"])
    def test_names_containing_test_pass(self, sqlite_engine, name):
        """Test names with "test" anywhere, in any case, pass."""
        loader = Loader(sqlite_engine, "sqlite", [])
        loader.adapter.database_name = lambda conn: name

        assert loader.ensure_test_database() == name

    @pytest.mark.parametrize("name", ["production", "t_e_s_t", "ТESТ", ""])
    def test_other_names_fail(self, sqlite_engine, name):
        """Test names without a contiguous "test" fail."""
        loader = Loader(sqlite_engine, "sqlite", [])
        loader.adapter.database_name = lambda conn: name

        with pytest.raises(NotATestDatabaseError):
            loader.ensure_test_database()


class TestLoadFailures:
    """Test failure handling during a load."""

    def test_insert_error_identifies_record(self, sqlite_engine):
        """Test a failing insert reports file, index, SQL and params."""
        fixtures = [
            FixtureSet.from_records(
                "tags",
                [{"id": 1, "name": "Go"}, {"id": 1, "name": "Duplicate"}],
                source="tags.yml",
            )
        ]
        loader = Loader(sqlite_engine, "sqlite", fixtures)

        with pytest.raises(InsertError) as exc_info:
            loader.load()

        error = exc_info.value
        assert error.file == "tags.yml"
        assert error.index == 1
        assert error.sql == 'INSERT INTO "tags" ("id", "name") VALUES (?, ?)'
        assert error.params == [1, "Duplicate"]
        assert isinstance(error.error, IntegrityError)
        assert "on file: tags.yml, index: 1" in str(error)

    def test_failed_load_rolls_back_and_restores_integrity(self, sqlite_engine, blog_fixtures):
        """Test a failed load keeps old data and foreign keys stay enforced."""
        Loader(sqlite_engine, "sqlite", blog_fixtures).load()
        broken = [
            FixtureSet.from_records("posts_tags", [{"post_id": 1, "tag_id": 1}]),
            FixtureSet.from_records("tags", [{"id": 1, "name": None}]),
        ]
        loader = Loader(sqlite_engine, "sqlite", broken)
        guards = []

        def recording_guard(engine, load_fn):
            guard = loader.adapter.integrity_guard(engine)
            guards.append(guard)
            guard.run(load_fn)
            return guard

        loader.adapter.disable_referential_integrity = recording_guard

        with pytest.raises(InsertError):
            loader.load()

        assert guards[0].state is GuardState.FAILED
        assert GuardState.LOAD_ROLLED_BACK in guards[0].history
        assert GuardState.INTEGRITY_RESTORED in guards[0].history
        assert _rows(sqlite_engine, "SELECT COUNT(*) FROM posts_tags") == [(3,)]
        assert _rows(sqlite_engine, "SELECT COUNT(*) FROM tags") == [(3,)]
        with pytest.raises(IntegrityError):
            with sqlite_engine.begin() as conn:
                conn.exec_driver_sql("INSERT INTO posts_tags (post_id, tag_id) VALUES (1, 999)")

    def test_dangling_reference_fails_at_commit(self, sqlite_engine):
        """Test deferred foreign keys are still checked when the load commits."""
        fixtures = [FixtureSet.from_records("posts_tags", [{"post_id": 5, "tag_id": 5}])]

        with pytest.raises(IntegrityError):
            Loader(sqlite_engine, "sqlite", fixtures).load()

        assert _rows(sqlite_engine, "SELECT COUNT(*) FROM posts_tags") == [(0,)]

    def test_rejected_commit_keeps_previous_data(self, sqlite_engine):
        """Test a load refused at commit leaves the tables as they were."""
        with sqlite_engine.begin() as conn:
            conn.exec_driver_sql("INSERT INTO tags (id, name) VALUES (7, 'old')")
        fixtures = [
            FixtureSet.from_records("tags", [{"id": 1, "name": "new"}]),
            FixtureSet.from_records("posts_tags", [{"post_id": 5, "tag_id": 5}]),
        ]

        with pytest.raises(IntegrityError):
            Loader(sqlite_engine, "sqlite", fixtures).load()

        assert _rows(sqlite_engine, "SELECT id, name FROM tags") == [(7, "old")]
        assert _rows(sqlite_engine, "SELECT COUNT(*) FROM posts_tags") == [(0,)]
        assert _rows(sqlite_engine, "PRAGMA foreign_key_check") == []


class TestSequenceReset:
    """Test sequence reset after loading."""

    def test_next_id_starts_at_floor(self, sqlite_engine, fixtures_dir):
        """Test inserts after a load do not collide with fixture keys."""
        Loader(sqlite_engine, "sqlite", [fixtures_dir / "users.yml"]).load()

        with sqlite_engine.begin() as conn:
            new_id = conn.exec_driver_sql("INSERT INTO users (name) VALUES ('Carol') RETURNING id").scalar_one()

        assert new_id >= 10000

    def test_custom_floor(self, sqlite_engine, fixtures_dir):
        """Test reset_sequences_to changes the floor."""
        Loader(sqlite_engine, "sqlite", [fixtures_dir / "users.yml"], reset_sequences_to=500).load()

        assert _rows(sqlite_engine, "SELECT seq FROM sqlite_sequence WHERE name = 'users'") == [(500,)]

    def test_skip_reset_sequences(self, sqlite_engine, fixtures_dir):
        """Test skip_reset_sequences leaves counters alone."""
        Loader(sqlite_engine, "sqlite", [fixtures_dir / "users.yml"], skip_reset_sequences=True).load()

        assert _rows(sqlite_engine, "SELECT seq FROM sqlite_sequence WHERE name = 'users'") == [(2,)]
