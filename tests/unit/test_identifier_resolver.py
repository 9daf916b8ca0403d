"""Unit tests for table resolution and column rewriting."""

from unittest.mock import Mock

from sqlalchemy.exc import OperationalError

from fluentql.query_builder import IdentifierResolver, configure_table_map, get_table_map
from fluentql.query_builder.dialects import PostgreSQLDialect, SQLiteDialect


class TestTableResolution:
    """Table map, existence probe and singular/plural fallback."""

    def test_existing_table_is_kept(self, engine):
        assert engine.resolver.resolve_table("users") == "users"

    def test_singular_falls_back_to_plural(self, engine):
        assert engine.query().from_("user").to_sql() == "SELECT * FROM `users`"

    def test_plural_falls_back_to_singular(self, engine):
        assert engine.resolver.resolve_table("post_tags") == "post_tag"

    def test_unknown_table_is_left_unchanged(self, engine):
        assert engine.resolver.resolve_table("nothing_here") == "nothing_here"

    def test_table_map_wins(self, engine):
        configure_table_map({"members": "users"})

        assert engine.query().from_("members", "m").to_sql() == "SELECT * FROM `users` m"
        assert get_table_map() == {"members": "users"}

    def test_set_table_map_on_builder_is_process_wide(self, engine):
        engine.query().set_table_map({"people": "users"})

        assert engine.resolver.resolve_table("people") == "users"

    def test_probe_results_are_cached(self):
        engine = Mock()
        engine.dialect = SQLiteDialect()
        engine.probe.return_value = [{"1": 1}]
        resolver = IdentifierResolver(engine)

        assert resolver.table_exists("users")
        assert resolver.table_exists("users")
        engine.probe.assert_called_once()

    def test_failing_probe_means_missing(self):
        engine = Mock()
        engine.dialect = SQLiteDialect()
        engine.probe.side_effect = OperationalError("PRAGMA", {}, Exception("boom"))
        resolver = IdentifierResolver(engine)

        assert resolver.table_exists("users") is False
        assert resolver.column_exists(None, "users", "name") is False

    @staticmethod
    def _postgres_resolver(*tables):
        engine = Mock()
        engine.dialect = PostgreSQLDialect()
        engine.probe.side_effect = lambda sql, params: [{"exists": 1}] if params["table"] in tables else []
        return IdentifierResolver(engine)

    def test_folded_spelling_is_found_on_postgres(self):
        resolver = self._postgres_resolver("users")

        assert resolver.resolve_table("Users") == "users"
        assert resolver.resolve_table("User") == "users"

    def test_unknown_table_is_folded_on_postgres(self):
        resolver = self._postgres_resolver()

        assert resolver.resolve_table("AuditLog") == "auditlog"

    def test_unknown_table_keeps_case_on_sqlite(self, engine):
        assert engine.resolver.resolve_table("AuditLog") == "AuditLog"


class TestColumnRewriting:
    """``*_id`` tokens written in the other case convention."""

    def test_bare_id_is_qualified_with_unique_alias(self, engine):
        qb = engine.query().from_("projects", "p").where("project_gallery_id", 5)

        assert qb.to_sql() == "SELECT * FROM `projects` p WHERE `p`.`projectGallery_id` = :p0"

    def test_bare_id_matching_exactly_is_qualified(self, engine):
        qb = engine.query().from_("posts").where("user_id", 1)

        assert qb.to_sql() == "SELECT * FROM `posts` WHERE `posts`.`user_id` = :p0"

    def test_ambiguous_bare_id_is_left_alone(self, engine):
        qb = (
            engine.query()
            .from_("projects", "p")
            .join("galleries", "g", "g.id", "=", "p.projectGallery_id")
            .where("project_gallery_id", 5)
        )

        assert qb.to_sql() == (
            "SELECT * FROM `projects` p INNER JOIN `galleries` g ON g.id = p.projectGallery_id "
            "WHERE project_gallery_id = :p0"
        )

    def test_bare_id_without_any_match_is_left_alone(self, engine):
        qb = engine.query().from_("users").where("project_gallery_id", 5)

        assert qb.to_sql() == "SELECT * FROM `users` WHERE project_gallery_id = :p0"

    def test_alias_column_is_respelled(self, engine):
        qb = engine.query().from_("projects", "p").where("p.project_gallery_id", 3)

        assert qb.to_sql() == "SELECT * FROM `projects` p WHERE p.`projectGallery_id` = :p0"

    def test_alias_column_in_join_condition_is_respelled(self, engine):
        qb = engine.query().from_("galleries", "g").join("projects", "p", "p.project_gallery_id", "=", "g.id")

        assert qb.to_sql() == "SELECT * FROM `galleries` g INNER JOIN `projects` p ON p.`projectGallery_id` = g.id"

    def test_placeholders_are_never_rewritten(self, engine):
        qb = engine.query().from_("projects").where_raw("name = :tenant_id")

        assert qb.to_sql() == "SELECT * FROM `projects` WHERE name = :tenant_id"
