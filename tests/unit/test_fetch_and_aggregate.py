"""Unit tests for fetch helpers, aggregates, pagination and DML against SQLite."""

import pandas as pd
import pytest
from pydantic import BaseModel

from fluentql.common.exceptions import ErrorCode, FluentQLError
from fluentql.types.results import Page


class UserRow(BaseModel):
    id: int
    name: str


class TestFetch:

    def test_fetch_all_returns_dicts(self, engine, seeded):
        rows = engine.query().select("id", "name").from_("users").where("active", 1).order_by("id").fetch_all()

        assert rows == [{"id": seeded["alice"], "name": "Alice"}, {"id": seeded["bob"], "name": "Bob"}]

    def test_fetch_all_into_model(self, engine, seeded):
        rows = engine.query().select("id", "name").from_("users").order_by("id").fetch_all(into=UserRow)

        assert [row.name for row in rows] == ["Alice", "Bob", "Carol"]
        assert isinstance(rows[0], UserRow)

    def test_fetch_all_into_callable(self, engine, seeded):
        names = engine.query().from_("users").order_by("id").fetch_all(into=lambda row: row["name"].upper())

        assert names == ["ALICE", "BOB", "CAROL"]

    def test_count_then_fetch_all_on_same_builder(self, engine, seeded):
        qb = engine.query().select("id", "name").from_("users").where("active", 1)

        assert qb.count() == 2
        assert len(qb.fetch_all()) == 2
        assert qb.to_sql() == "SELECT id, name FROM `users` WHERE active = :p0"

    def test_fetch_does_not_reset_builder(self, engine, seeded):
        qb = engine.query().from_("users").where("active", 1)

        first = qb.fetch_all()
        second = qb.fetch_all()

        assert first == second
        assert qb.get_params() == {"p0": 1}

    def test_first(self, engine, seeded):
        row = engine.query().from_("users").order_by("name", "desc").first()

        assert row["name"] == "Carol"

    def test_first_without_match(self, engine, seeded):
        assert engine.query().from_("users").where("name", "Nobody").first() is None

    def test_first_keeps_builder_limit_free(self, engine, seeded):
        qb = engine.query().from_("users")
        qb.first()

        assert qb.to_sql() == "SELECT * FROM `users`"

    def test_value(self, engine, seeded):
        assert engine.query().from_("users").where("name", "Bob").value("email") == "bob@example.com"

    def test_pluck(self, engine, seeded):
        assert engine.query().from_("users").order_by("id").pluck("name") == ["Alice", "Bob", "Carol"]

    def test_pluck_with_key(self, engine, seeded):
        plucked = engine.query().from_("users").pluck("name", key="id")

        assert plucked == {seeded["alice"]: "Alice", seeded["bob"]: "Bob", seeded["carol"]: "Carol"}

    def test_pluck_keyed_by_the_same_column(self, engine, seeded):
        plucked = engine.query().from_("users").pluck("id", key="id")

        assert plucked == {user_id: user_id for user_id in seeded.values()}

    def test_fetch_keyed_and_grouped(self, engine, seeded):
        keyed = engine.query().from_("users").fetch_keyed("name")
        grouped = engine.query().from_("posts").fetch_grouped("published")

        assert keyed["Bob"]["id"] == seeded["bob"]
        assert sorted(row["title"] for row in grouped[1]) == ["First", "Third"]
        assert [row["title"] for row in grouped[0]] == ["Second"]

    def test_fetch_dataframe(self, engine, seeded):
        frame = engine.query().select("name", "score").from_("users").order_by("id").fetch_dataframe()

        assert isinstance(frame, pd.DataFrame)
        assert list(frame.columns) == ["name", "score"]
        assert frame["name"].tolist() == ["Alice", "Bob", "Carol"]

    def test_chunk_walks_every_page(self, engine, seeded):
        pages = []

        completed = engine.query().from_("users").order_by("id").chunk(2, lambda rows: pages.append(rows))

        assert completed is True
        assert [len(page) for page in pages] == [2, 1]

    def test_chunk_stops_when_callback_returns_false(self, engine, seeded):
        pages = []

        def _collect(rows):
            pages.append(rows)
            return False

        assert engine.query().from_("users").order_by("id").chunk(1, _collect) is False
        assert len(pages) == 1

    def test_chunk_rejects_non_positive_size(self, engine):
        with pytest.raises(FluentQLError) as exc_info:
            engine.query().from_("users").chunk(0, lambda rows: None)
        assert exc_info.value.error_code == ErrorCode.INVALID_ARGUMENT

    def test_lazy(self, engine, seeded):
        names = [row["name"] for row in engine.query().from_("users").order_by("id").lazy(2)]

        assert names == ["Alice", "Bob", "Carol"]

    def test_cursor(self, engine, seeded):
        names = [row["name"] for row in engine.query().from_("users").order_by("id").cursor()]

        assert names == ["Alice", "Bob", "Carol"]

    def test_where_in_subquery_executes(self, engine, seeded):
        names = (
            engine.query()
            .from_("users")
            .where_in("id", lambda q: q.select("user_id").from_("posts").where("published", 1))
            .order_by("id")
            .pluck("name")
        )

        assert names == ["Alice", "Bob"]

    def test_union_executes_and_counts(self, engine, seeded):
        other = engine.query().select("name").from_("users").where("active", 0)
        qb = engine.query().select("name").from_("users").where("active", 1).union(other)

        assert sorted(row["name"] for row in qb.fetch_all()) == ["Alice", "Bob", "Carol"]
        assert qb.count() == 3

    def test_custom_statement_executes(self, engine, seeded):
        rows = engine.query().custom("SELECT name FROM users WHERE id = :id", {"id": seeded["bob"]}).fetch_all()

        assert rows == [{"name": "Bob"}]


class TestAggregates:

    def test_count(self, engine, seeded):
        assert engine.query().from_("users").count() == 3

    def test_count_grouped_query_counts_groups(self, engine, seeded):
        assert engine.query().select("user_id").from_("posts").group_by("user_id").count() == 2

    def test_count_distinct(self, engine, seeded):
        assert engine.query().from_("users").count_distinct("active") == 2

    def test_sum_and_avg_are_floats(self, engine, seeded):
        qb = engine.query().from_("users")

        assert qb.sum("score") == 30.0
        assert isinstance(qb.sum("score"), float)
        assert qb.avg("score") == 15.0

    def test_min_max(self, engine, seeded):
        qb = engine.query().from_("posts")

        assert qb.min("views") == 5
        assert qb.max("views") == 10

    def test_null_aggregate_becomes_zero(self, engine, seeded):
        qb = engine.query().from_("users").where("active", 0)

        assert qb.sum("score") == 0.0
        assert qb.min("score") == 0

    def test_aggregate_ignores_order_and_limit(self, engine, seeded):
        qb = engine.query().from_("posts").order_by("views").limit(1)

        assert qb.count() == 3
        assert qb.to_sql() == "SELECT * FROM `posts` ORDER BY views ASC LIMIT 1"

    def test_count_where_and_sum_where(self, engine, seeded):
        qb = engine.query().from_("posts")

        assert qb.count_where("views", ">", 6) == 2
        assert qb.sum_where("views", "published", "=", 1) == 17.0
        assert qb.count() == 3

    def test_std_dev_not_available_on_sqlite(self, engine, seeded):
        with pytest.raises(FluentQLError) as exc_info:
            engine.query().from_("users").std_dev("score")
        assert exc_info.value.error_code == ErrorCode.PLATFORM_NOT_SUPPORTED

    def test_exists(self, engine, seeded):
        assert engine.query().from_("users").where("name", "Bob").exists()
        assert engine.query().from_("users").where("name", "Zed").doesnt_exist()


class TestPagination:

    def test_page_build_positions(self):
        page = Page.build(list(range(15)), 150, 2, 15)

        assert page.last_page == 10
        assert page.from_ == 16
        assert page.to == 30

    def test_page_build_empty(self):
        page = Page.build([], 0, 1, 15)

        assert page.last_page == 0
        assert page.from_ is None
        assert page.to is None

    def test_page_serializes_from_alias(self):
        dumped = Page.build([1], 1, 1, 15).model_dump(by_alias=True)

        assert dumped["from"] == 1

    def test_paginate(self, engine, seeded):
        page = engine.query().from_("users").order_by("id").paginate(page=2, per_page=2)

        assert page.total == 3
        assert page.last_page == 2
        assert [row["name"] for row in page.data] == ["Carol"]
        assert page.from_ == 3
        assert page.to == 3

    def test_paginate_past_the_end(self, engine, seeded):
        page = engine.query().from_("users").paginate(page=5, per_page=2)

        assert page.data == []
        assert page.from_ is None

    def test_simple_paginate(self, engine, seeded):
        page = engine.query().from_("users").order_by("id").simple_paginate(page=1, per_page=2)

        assert page.has_more is True
        assert len(page.data) == 2

        last = engine.query().from_("users").order_by("id").simple_paginate(page=2, per_page=2)
        assert last.has_more is False
        assert [row["name"] for row in last.data] == ["Carol"]

    def test_paginate_rejects_page_zero(self, engine):
        with pytest.raises(FluentQLError) as exc_info:
            engine.query().from_("users").paginate(page=0)
        assert exc_info.value.error_code == ErrorCode.INVALID_ARGUMENT


class TestDml:

    def test_insert_returns_generated_key(self, engine, seeded):
        new_id = engine.query().insert("users", {"name": "Dan", "active": 1})

        assert new_id == seeded["carol"] + 1
        assert engine.query().from_("users").where("id", new_id).value("name") == "Dan"

    def test_insert_resolves_singular_table(self, engine):
        engine.query().insert("user", {"name": "Eve"})

        assert engine.query().from_("users").count() == 1

    def test_insert_empty_data(self, engine):
        with pytest.raises(FluentQLError) as exc_info:
            engine.query().insert("users", {})
        assert exc_info.value.error_code == ErrorCode.INVALID_ARGUMENT

    def test_insert_batch(self, engine):
        count = engine.query().insert_batch("tags", [{"label": "a"}, {"label": "b"}])

        assert count == 2
        assert engine.query().from_("tags").order_by("id").pluck("label") == ["a", "b"]

    def test_insert_batch_empty(self, engine):
        assert engine.query().insert_batch("tags", []) == 0

    def test_update_renders_set_placeholders(self, engine, seeded):
        qb = engine.query().update("users", {"name": "Zed", "active": 0}).where("id", seeded["alice"])

        assert qb.to_sql() == "UPDATE `users` SET `name` = :set_name, `active` = :set_active WHERE id = :p0"
        assert qb.execute() == 1
        assert engine.query().from_("users").where("id", seeded["alice"]).value("name") == "Zed"

    def test_update_columns_sanitizing_alike_get_distinct_placeholders(self, engine):
        qb = engine.query().update("users", {"e-mail": "a@x", "email": "b@x"}).where("id", 1)

        assert qb.to_sql() == "UPDATE `users` SET `e-mail` = :set_email, `email` = :set_email_0 WHERE id = :p1"
        assert qb.get_params() == {"set_email": "a@x", "set_email_0": "b@x", "p1": 1}

    def test_execute_resets_builder(self, engine, seeded):
        qb = engine.query().update("users", {"active": 0}).where("active", 1)

        assert qb.execute() == 2
        assert qb.get_params() == {}
        assert qb.state.custom is None

    def test_delete(self, engine, seeded):
        qb = engine.query().delete("posts").where("published", 0)

        assert qb.to_sql() == "DELETE FROM `posts` WHERE published = :p0"
        assert qb.execute() == 1
        assert engine.query().from_("posts").count() == 2

    def test_update_empty_data(self, engine):
        with pytest.raises(FluentQLError) as exc_info:
            engine.query().update("users", {})
        assert exc_info.value.error_code == ErrorCode.INVALID_ARGUMENT
