"""Unit tests for ParameterBinder placeholder allocation."""

from fluentql.query_builder.params import ParameterBinder


class TestParameterBinder:
    """Placeholder naming, re-binding and counter behaviour."""

    def test_add_allocates_sequential_names(self):
        binder = ParameterBinder()

        assert binder.add("a") == ":p0"
        assert binder.add("b") == ":p1"
        assert binder.params == {"p0": "a", "p1": "b"}
        assert binder.counter == 2

    def test_add_many_returns_comma_separated_placeholders(self):
        binder = ParameterBinder()

        assert binder.add_many([1, 2, 3]) == ":p0, :p1, :p2"
        assert binder.params == {"p0": 1, "p1": 2, "p2": 3}

    def test_set_uses_explicit_name(self):
        binder = ParameterBinder()

        assert binder.set("set_name", "Ada") == ":set_name"
        assert binder.set(":set_age", 36) == ":set_age"
        assert binder.params == {"set_name": "Ada", "set_age": 36}
        assert binder.counter == 0

    def test_set_suffixes_a_name_already_bound(self):
        binder = ParameterBinder()

        assert binder.set("set_email", "a@x") == ":set_email"
        assert binder.set("set_email", "b@x") == ":set_email_0"
        assert binder.add(1) == ":p1"
        assert binder.params == {"set_email": "a@x", "set_email_0": "b@x", "p1": 1}

    def test_interpolate_replaces_question_marks_left_to_right(self):
        binder = ParameterBinder()
        binder.add("taken")

        sql = binder.interpolate("a = ? AND b > ?", [1, 2])

        assert sql == "a = :p1 AND b > :p2"
        assert binder.params == {"p0": "taken", "p1": 1, "p2": 2}

    def test_rebind_renames_foreign_placeholders(self):
        binder = ParameterBinder()
        binder.add("mine")

        sql = binder.rebind("status = :p0 AND kind = :kind", {"p0": "open", ":kind": "bug"})

        assert sql == "status = :p1 AND kind = :p2"
        assert binder.params == {"p0": "mine", "p1": "open", "p2": "bug"}

    def test_rebind_leaves_unknown_names_and_casts_alone(self):
        binder = ParameterBinder()

        sql = binder.rebind("x = :a AND y = :other AND z::text = 'q'", {"a": 1})

        assert sql == "x = :p0 AND y = :other AND z::text = 'q'"

    def test_reset_clears_values_but_keeps_counter(self):
        binder = ParameterBinder()
        binder.add_many(["x", "y"])

        binder.reset()

        assert binder.params == {}
        assert binder.add("z") == ":p2"

    def test_copy_is_independent(self):
        binder = ParameterBinder()
        binder.add(1)

        clone = binder.copy()
        clone.add(2)

        assert binder.params == {"p0": 1}
        assert clone.params == {"p0": 1, "p1": 2}
        assert binder.counter == 1
        assert clone.counter == 2

    def test_params_returns_a_copy(self):
        binder = ParameterBinder()
        binder.add(1)

        binder.params["p0"] = 99

        assert binder.params == {"p0": 1}
