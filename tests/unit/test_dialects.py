"""Unit tests for dialect strategies and the dialect factory."""

import pytest
from sqlalchemy.exc import OperationalError

from fluentql.common.exceptions import ErrorCode, FluentQLError
from fluentql.constants.sql import AggregateFunction, Dialect
from fluentql.query_builder.dialects import MariaDBDialect, MySQLDialect, PostgreSQLDialect, SQLiteDialect
from fluentql.query_builder.factory import DialectFactory, get_dialect


class _DriverError(Exception):
    """Stand-in for a DBAPI exception carrying vendor diagnostics."""

    def __init__(self, *args, pgcode=None):
        super().__init__(*args)
        self.pgcode = pgcode


def _wrapped(orig: Exception) -> OperationalError:
    return OperationalError("SELECT 1", {}, orig)


class TestDialectFactory:

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("sqlite", SQLiteDialect),
            ("mysql", MySQLDialect),
            ("mariadb", MariaDBDialect),
            ("postgresql", PostgreSQLDialect),
            (Dialect.POSTGRESQL, PostgreSQLDialect),
            ("SQLite", SQLiteDialect),
        ],
    )
    def test_create_by_driver_name(self, name, expected):
        assert isinstance(DialectFactory.create(name), expected)

    def test_instances_are_reused(self):
        assert get_dialect("mysql") is get_dialect("mysql")

    def test_unknown_dialect(self):
        with pytest.raises(FluentQLError) as exc_info:
            DialectFactory.create("oracle")
        assert exc_info.value.error_code == ErrorCode.PLATFORM_NOT_SUPPORTED

    def test_supported(self):
        assert set(DialectFactory.supported()) == {"sqlite", "mysql", "mariadb", "postgresql"}


class TestQuoting:

    def test_backticks_are_doubled(self):
        assert MySQLDialect().quote_identifier("we`ird") == "`we``ird`"

    def test_postgres_uses_double_quotes(self):
        assert PostgreSQLDialect().quote_identifier('say"hi') == '"say""hi"'

    def test_already_quoted_identifier_is_not_double_wrapped(self):
        assert SQLiteDialect().quote_identifier("`users`") == "`users`"

    def test_string_literal_for_debug_output(self):
        assert SQLiteDialect().quote_string("it's") == "'it''s'"


class TestLimitOffset:

    def test_limit_only(self):
        assert PostgreSQLDialect().limit_offset(5, None) == "LIMIT 5"

    def test_limit_and_offset(self):
        assert MySQLDialect().limit_offset(5, 10) == "LIMIT 5 OFFSET 10"

    def test_offset_only_per_dialect(self):
        assert PostgreSQLDialect().limit_offset(None, 10) == "OFFSET 10"
        assert SQLiteDialect().limit_offset(None, 10) == "LIMIT -1 OFFSET 10"
        assert MySQLDialect().limit_offset(None, 10) == "LIMIT 18446744073709551615 OFFSET 10"

    def test_neither(self):
        assert SQLiteDialect().limit_offset(None, None) == ""


class TestStringFunctions:

    def test_group_concat(self):
        assert MySQLDialect().group_concat("name", ":p0") == "GROUP_CONCAT(name SEPARATOR :p0)"
        assert PostgreSQLDialect().group_concat("name", ":p0", distinct=True) == (
            "STRING_AGG(DISTINCT CAST(name AS TEXT), :p0)"
        )
        assert SQLiteDialect().group_concat("name", ":p0") == "GROUP_CONCAT(name, :p0)"
        assert SQLiteDialect().group_concat("name", ":p0", distinct=True) == "GROUP_CONCAT(DISTINCT name)"

    def test_concat(self):
        assert MySQLDialect().concat(["a", "b"]) == "CONCAT(a, b)"
        assert MySQLDialect().concat(["a", "b"], ":p0") == "CONCAT_WS(:p0, a, b)"
        assert SQLiteDialect().concat(["a", "b"]) == "(a || b)"

    def test_distinct_on_only_on_postgres(self):
        assert PostgreSQLDialect().distinct_clause(["a", "b"]) == "DISTINCT ON (a, b)"
        assert MySQLDialect().distinct_clause(["a", "b"]) == "DISTINCT"

    def test_sqlite_has_no_stddev(self):
        with pytest.raises(FluentQLError) as exc_info:
            SQLiteDialect().aggregate_function(AggregateFunction.STDDEV)
        assert exc_info.value.error_code == ErrorCode.PLATFORM_NOT_SUPPORTED


class TestTransactionSpelling:

    def test_savepoints(self):
        dialect = MySQLDialect()
        assert dialect.savepoint("fluentql_sp_1") == "SAVEPOINT fluentql_sp_1"
        assert dialect.release_savepoint("fluentql_sp_1") == "RELEASE SAVEPOINT fluentql_sp_1"
        assert dialect.rollback_to_savepoint("fluentql_sp_1") == "ROLLBACK TO SAVEPOINT fluentql_sp_1"

    def test_read_only_statements(self):
        assert MySQLDialect().read_only_statements() == ("START TRANSACTION READ ONLY", None)
        assert PostgreSQLDialect().read_only_statements() == ("SET TRANSACTION READ ONLY", None)
        assert SQLiteDialect().read_only_statements() == ("PRAGMA query_only = ON", "PRAGMA query_only = OFF")

    def test_only_sqlite_sends_begin_itself(self):
        assert SQLiteDialect().begin_statement == "BEGIN"
        assert MySQLDialect().begin_statement is None

    def test_lock_statements(self):
        assert MySQLDialect().acquire_lock_statement("jobs", 2.4) == (
            "SELECT GET_LOCK(:name, :timeout)",
            {"name": "jobs", "timeout": 2},
        )
        assert PostgreSQLDialect().release_lock_statement("jobs") == (
            "SELECT pg_advisory_unlock(hashtext(:name))",
            {"name": "jobs"},
        )

    def test_sqlite_has_no_advisory_locks(self):
        with pytest.raises(FluentQLError) as exc_info:
            SQLiteDialect().acquire_lock_statement("jobs", 1)
        assert exc_info.value.error_code == ErrorCode.PLATFORM_NOT_SUPPORTED

    def test_returning_clause(self):
        assert PostgreSQLDialect().returning_clause("id") == ' RETURNING "id"'
        assert MySQLDialect().returning_clause("id") == ""


class TestTransientErrors:
    """Deadlocks and lock timeouts are recognised per driver."""

    def test_mysql_deadlock_code(self):
        error = _wrapped(_DriverError(1213, "Deadlock found when trying to get lock"))
        assert MySQLDialect().is_transient_error(error)

    def test_mysql_other_code(self):
        error = _wrapped(_DriverError(1062, "Duplicate entry"))
        assert not MySQLDialect().is_transient_error(error)

    def test_postgres_sqlstate(self):
        assert PostgreSQLDialect().is_transient_error(_wrapped(_DriverError("deadlock", pgcode="40P01")))
        assert not PostgreSQLDialect().is_transient_error(_wrapped(_DriverError("dup", pgcode="23505")))

    def test_sqlite_locked_database(self):
        assert SQLiteDialect().is_transient_error(_wrapped(_DriverError("database is locked")))
        assert not SQLiteDialect().is_transient_error(_wrapped(_DriverError("no such table: x")))
