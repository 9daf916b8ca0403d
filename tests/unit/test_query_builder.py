"""Unit tests for statement rendering, binding and builder state."""

import pytest

from fluentql.common.exceptions import ErrorCode, FluentQLError
from fluentql.query_builder import QueryBuilder


class TestSelectRendering:
    """SELECT assembly on the SQLite dialect."""

    def test_basic_select(self, engine):
        qb = engine.query().select("id", "name").from_("users").where("active", 1)

        assert qb.to_sql() == "SELECT id, name FROM `users` WHERE active = :p0"
        assert qb.get_params() == {"p0": 1}

    def test_default_select_list_is_wildcard(self, engine):
        assert engine.query().from_("users").to_sql() == "SELECT * FROM `users`"

    def test_aliased_from_drops_as(self, engine):
        assert engine.query().from_("users", "u").select("u.name").to_sql() == "SELECT u.name FROM `users` u"

    def test_where_connectors_are_single_spaced(self, engine):
        qb = engine.query().from_("users").where("name", "a").where("email", "b").or_where("score", ">", 3)

        assert qb.to_sql() == "SELECT * FROM `users` WHERE name = :p0 AND email = :p1 OR score > :p2"
        assert qb.get_params() == {"p0": "a", "p1": "b", "p2": 3}

    def test_null_values_become_is_null(self, engine):
        qb = engine.query().from_("users").where("email", None).or_where("name", "!=", None)

        assert qb.to_sql() == "SELECT * FROM `users` WHERE email IS NULL OR name IS NOT NULL"
        assert qb.get_params() == {}

    def test_unknown_operator_is_rejected(self, engine):
        with pytest.raises(FluentQLError) as exc_info:
            engine.query().from_("users").where("name", "LIKEZ", "x")
        assert exc_info.value.error_code == ErrorCode.INVALID_ARGUMENT

    def test_operators_are_normalized(self, engine):
        qb = engine.query().from_("users").where("name", "not  like", "A%")

        assert qb.to_sql() == "SELECT * FROM `users` WHERE name NOT LIKE :p0"

    def test_where_in_and_not_in(self, engine):
        qb = engine.query().from_("users").where_in("id", [1, 2]).where_not_in("name", ["x"])

        assert qb.to_sql() == "SELECT * FROM `users` WHERE id IN (:p0, :p1) AND name NOT IN (:p2)"

    def test_empty_where_in_matches_nothing(self, engine):
        qb = engine.query().from_("users").where_in("id", [])

        assert qb.to_sql() == "SELECT * FROM `users` WHERE 1=0"

    def test_empty_where_not_in_adds_nothing(self, engine):
        qb = engine.query().from_("users").where_not_in("id", [])

        assert qb.to_sql() == "SELECT * FROM `users`"

    def test_where_between_and_like(self, engine):
        qb = engine.query().from_("users").where_between("score", 1, 5).where_like("name", "A%")

        assert qb.to_sql() == "SELECT * FROM `users` WHERE score BETWEEN :p0 AND :p1 AND name LIKE :p2"

    def test_where_raw_interpolates_bindings(self, engine):
        qb = engine.query().from_("users").where_raw("score > ? AND score < ?", [1, 9])

        assert qb.to_sql() == "SELECT * FROM `users` WHERE score > :p0 AND score < :p1"

    def test_or_where_group(self, engine):
        qb = (
            engine.query()
            .from_("users")
            .where("active", 1)
            .or_where_group(lambda q: q.where("name", "a").where("email", "b"))
        )

        assert qb.to_sql() == "SELECT * FROM `users` WHERE active = :p0 OR (name = :p1 AND email = :p2)"
        assert qb.get_params() == {"p0": 1, "p1": "a", "p2": "b"}

    def test_empty_group_is_skipped(self, engine):
        qb = engine.query().from_("users").where_group(lambda q: None)

        assert qb.to_sql() == "SELECT * FROM `users`"

    def test_join_resolves_table_and_keeps_alias(self, engine):
        qb = (
            engine.query()
            .select("u.name", "p.title")
            .from_("users", "u")
            .join("posts", "p", "p.user_id", "=", "u.id")
            .where("u.active", 1)
        )

        assert qb.to_sql() == (
            "SELECT u.name, p.title FROM `users` u INNER JOIN `posts` p ON p.user_id = u.id WHERE u.active = :p0"
        )

    def test_left_join(self, engine):
        qb = engine.query().from_("users", "u").left_join("posts", "p", "p.user_id", "=", "u.id")

        assert qb.to_sql() == "SELECT * FROM `users` u LEFT JOIN `posts` p ON p.user_id = u.id"

    def test_join_using_binds_through_parent(self, engine):
        qb = (
            engine.query()
            .from_("users", "u")
            .where("u.active", 1)
            .join_using(
                "posts", "p", lambda j: j.on("p.user_id", "=", "u.id").where("p.published", "=", 1), "left"
            )
        )

        assert qb.to_sql() == (
            "SELECT * FROM `users` u LEFT JOIN `posts` p ON p.user_id = u.id AND p.published = :p1 "
            "WHERE u.active = :p0"
        )
        assert qb.get_params() == {"p0": 1, "p1": 1}

    def test_join_using_without_condition_fails_immediately(self, engine):
        qb = engine.query().from_("users", "u")

        with pytest.raises(FluentQLError) as exc_info:
            qb.join_using("posts", "p", lambda j: None)
        assert exc_info.value.error_code == ErrorCode.STATEMENT_BUILD_ERROR

    def test_group_having_order_limit(self, engine):
        qb = (
            engine.query()
            .select("name")
            .from_("users")
            .group_by("name", "email")
            .having("COUNT(*)", ">", 1)
            .order_by("name", "desc")
            .order_by("email")
            .limit(10)
            .offset(20)
        )

        assert qb.to_sql() == (
            "SELECT name FROM `users` GROUP BY name, email HAVING COUNT(*) > :p0 "
            "ORDER BY name DESC, email ASC LIMIT 10 OFFSET 20"
        )

    def test_offset_without_limit_on_sqlite(self, engine):
        assert engine.query().from_("users").offset(5).to_sql() == "SELECT * FROM `users` LIMIT -1 OFFSET 5"

    def test_for_page(self, engine):
        assert engine.query().from_("users").for_page(3, 15).to_sql() == "SELECT * FROM `users` LIMIT 15 OFFSET 30"

    def test_invalid_order_direction(self, engine):
        with pytest.raises(FluentQLError) as exc_info:
            engine.query().from_("users").order_by("name", "sideways")
        assert exc_info.value.error_code == ErrorCode.INVALID_ARGUMENT

    def test_distinct(self, engine):
        assert engine.query().select("name").distinct().from_("users").to_sql() == "SELECT DISTINCT name FROM `users`"

    def test_select_helpers(self, engine):
        qb = engine.query().from_("users").select_as("name", "label").select_count("*", "n").select_max("score")

        assert qb.get_select() == "name AS label, COUNT(*) AS n, MAX(score) AS maximum"
        assert qb.has_column("label")
        assert qb.has_column("n")
        assert not qb.has_column("score")

    def test_select_concat_binds_separator(self, engine):
        qb = engine.query().from_("users").select_concat(["name", "email"], "contact", separator=" - ")

        assert qb.get_select() == "(COALESCE(name, '') || :p0 || COALESCE(email, '')) AS contact"
        assert qb.get_params() == {"p0": " - "}

    def test_without_from_raises_build_error(self, engine):
        with pytest.raises(FluentQLError) as exc_info:
            engine.query().select("1").to_sql()
        assert exc_info.value.error_code == ErrorCode.STATEMENT_BUILD_ERROR

    def test_wildcard_alias_select_is_untouched(self, engine):
        assert engine.query().select("e.*").from_("posts", "e").to_sql() == "SELECT e.* FROM `posts` e"

    def test_to_sql_is_reentrant(self, engine):
        qb = engine.query().from_("users").where("name", "x")

        assert qb.to_sql() == qb.to_sql()
        assert qb.get_params() == {"p0": "x"}

    def test_select_case_when_binds_every_value(self, engine):
        qb = engine.query().from_("users").select("name").select_case_when("active", {1: "yes"}, else_="no", alias="state")

        assert qb.to_sql() == "SELECT name, CASE active WHEN :p0 THEN :p1 ELSE :p2 END AS state FROM `users`"
        assert qb.get_params() == {"p0": 1, "p1": "yes", "p2": "no"}

    def test_select_coalesce_replaces_wildcard(self, engine):
        qb = engine.query().from_("users").select_coalesce(["email", "name"], "contact")

        assert qb.to_sql() == "SELECT COALESCE(email, name) AS contact FROM `users`"

    def test_negated_predicates(self, engine):
        qb = (
            engine.query()
            .from_("users")
            .where_not_between("score", 15, 25)
            .where_not_null("email")
            .or_where_null("name")
        )

        assert qb.to_sql() == (
            "SELECT * FROM `users` WHERE score NOT BETWEEN :p0 AND :p1 AND email IS NOT NULL OR name IS NULL"
        )

    def test_from_sub_shares_binder(self, engine):
        qb = engine.query().select("title").from_sub(
            lambda q: q.select("title").from_("posts").where("published", 1), "p"
        )

        assert qb.to_sql() == "SELECT title FROM (SELECT title FROM `posts` WHERE published = :p0) AS p"
        assert qb.get_params() == {"p0": 1}

    def test_cross_join_and_order_by_desc(self, engine):
        qb = engine.query().from_("users").cross_join("tags").order_by_desc("name")

        assert qb.to_sql() == "SELECT * FROM `users` CROSS JOIN `tags` ORDER BY name DESC"


class TestSubQueriesAndUnions:
    """Parameters of nested statements never collide with the parent's."""

    def test_union_rebinds_branch_parameters(self, engine):
        other = engine.query().select("name").from_("users").where("active", 0)
        qb = engine.query().select("name").from_("users").where("active", 1).union(other)

        assert qb.to_sql() == (
            "SELECT name FROM `users` WHERE active = :p0 UNION SELECT name FROM `users` WHERE active = :p1"
        )
        assert qb.get_params() == {"p0": 1, "p1": 0}

    def test_union_all_with_string_branch_and_params(self, engine):
        qb = (
            engine.query()
            .select("name")
            .from_("users")
            .where("active", 1)
            .union_all("SELECT label FROM tags WHERE id = :tag", params={"tag": 4})
        )

        assert qb.to_sql() == (
            "SELECT name FROM `users` WHERE active = :p0 UNION ALL SELECT label FROM tags WHERE id = :p1"
        )
        assert qb.get_params() == {"p0": 1, "p1": 4}

    def test_where_in_subquery_callback_shares_binder(self, engine):
        qb = (
            engine.query()
            .from_("users")
            .where("active", 1)
            .where_in("id", lambda q: q.select("owner").from_("posts").where("published", 1))
        )

        sql = qb.to_sql()

        assert "id IN (SELECT owner FROM `posts` WHERE published = :p1)" in sql
        assert qb.get_params() == {"p0": 1, "p1": 1}

    def test_where_exists_with_foreign_builder(self, engine):
        sub = engine.query().select("1").from_("posts").where("views", ">", 100)
        qb = engine.query().from_("users").where("active", 1).where_exists(sub)

        assert qb.to_sql() == (
            "SELECT * FROM `users` WHERE active = :p0 AND EXISTS (SELECT 1 FROM `posts` WHERE views > :p1)"
        )
        assert qb.get_params() == {"p0": 1, "p1": 100}

    def test_custom_statement_rebinds_named_params(self, engine):
        qb = engine.query().where("ignored", 1).reset().custom("SELECT name FROM users WHERE id = :id", {"id": 2})

        assert qb.to_sql() == "SELECT name FROM users WHERE id = :p1"
        assert qb.get_params() == {"p1": 2}


class TestBuilderState:
    """reset, clone and debug rendering."""

    def test_reset_clears_clauses_but_not_counter(self, engine):
        qb = engine.query().from_("users").where("name", "x")
        qb.to_sql()

        qb.reset().from_("posts").where("title", "y")

        sql = qb.to_sql()
        assert sql == "SELECT * FROM `posts` WHERE title = :p1"
        assert "users" not in sql
        assert qb.get_params() == {"p1": "y"}

    def test_clone_is_independent(self, engine):
        qb = engine.query().from_("users").where("active", 1)
        copy = qb.clone()

        assert copy.to_sql() == qb.to_sql()
        assert copy.get_params() == qb.get_params()

        copy.where("name", "x")

        assert qb.to_sql() == "SELECT * FROM `users` WHERE active = :p0"
        assert qb.get_params() == {"p0": 1}
        assert copy.get_params() == {"p0": 1, "p1": "x"}

    def test_clone_keeps_counter_position(self, engine):
        qb = engine.query().from_("users").where("active", 1)

        copy = qb.clone()
        qb.where("name", "a")
        copy.where("name", "b")

        assert qb.get_params()["p1"] == "a"
        assert copy.get_params()["p1"] == "b"

    def test_debug_sql_inlines_values(self, engine):
        qb = (
            engine.query()
            .from_("users")
            .where("name", "O'Brien")
            .where("active", True)
            .where("score", ">", 1.5)
            .where_raw("email IS ?", [None])
        )

        assert qb.to_debug_sql() == (
            "SELECT * FROM `users` WHERE name = 'O''Brien' AND active = 1 AND score > 1.5 AND email IS NULL"
        )

    def test_compile_returns_sql_and_params(self, engine):
        sql, params = engine.query().from_("users").where("id", 3).compile()

        assert sql == "SELECT * FROM `users` WHERE id = :p0"
        assert params == {"p0": 3}


class TestExtensions:
    """Extensions injected at construction replace global macros."""

    def test_apply_builder_extension(self, engine):
        def active(builder, flag=1):
            return builder.where("active", flag)

        qb = QueryBuilder(engine, extensions={"active": active})

        assert qb.from_("users").apply("active", 0).to_sql() == "SELECT * FROM `users` WHERE active = :p0"
        assert qb.has_extension("active")

    def test_engine_extensions_are_inherited(self, connection):
        from fluentql.engine import SQLEngine

        engine = SQLEngine(connection, extensions={"named": lambda b, n: b.where("name", n)})

        qb = engine.query().from_("users").apply("named", "Ada")

        assert qb.get_params() == {"p0": "Ada"}
        assert "named" in qb.extensions

    def test_unknown_extension(self, engine):
        with pytest.raises(FluentQLError) as exc_info:
            engine.query().apply("missing")
        assert exc_info.value.error_code == ErrorCode.INVALID_ARGUMENT

    def test_non_callable_extension_is_rejected(self, engine):
        with pytest.raises(FluentQLError) as exc_info:
            QueryBuilder(engine, extensions={"broken": "WHERE 1=1"})
        assert exc_info.value.error_code == ErrorCode.INVALID_ARGUMENT
        assert exc_info.value.details["value"] == "broken"
