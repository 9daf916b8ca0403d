"""Parameter binding."""

import re
from typing import Any, Dict, Mapping

from fluentql.constants.sql import PLACEHOLDER_PREFIX

_NAMED_PLACEHOLDER = re.compile(r"(?<![:\w]):([A-Za-z_]\w*)")


class ParameterBinder:
    """Turns literal values into named ``:pN`` placeholders.

    The counter only ever grows. Clearing the bound values (``reset``) keeps
    it, so a placeholder name is never handed out twice by the same binder,
    even across repeated executions of one builder.
    """

    def __init__(self) -> None:
        self._counter = 0
        self._params: Dict[str, Any] = {}

    @property
    def counter(self) -> int:
        return self._counter

    @property
    def params(self) -> Dict[str, Any]:
        """Bound values keyed by placeholder name without the leading colon."""
        return dict(self._params)

    def add(self, value: Any) -> str:
        """Bind ``value`` and return its placeholder (``:p<N>``)."""
        name = f"{PLACEHOLDER_PREFIX[1:]}{self._counter}"
        self._counter += 1
        self._params[name] = value
        return f":{name}"

    def set(self, name: str, value: Any) -> str:
        """Bind ``value`` under an explicit name (used for ``:set_<col>``).

        A name already bound gets a counter suffix (``set_email_3``), so two
        values never share one placeholder.
        """
        base = name.lstrip(":")
        candidate = base
        while candidate in self._params:
            candidate = f"{base}_{self._counter}"
            self._counter += 1
        self._params[candidate] = value
        return f":{candidate}"

    def add_many(self, values: Any) -> str:
        """Bind each value and return the comma-separated placeholders."""
        return ", ".join(self.add(v) for v in values)

    def interpolate(self, sql: str, bindings: Any = ()) -> str:
        """Replace each ``?`` in ``sql``, left to right, with a fresh placeholder."""
        for value in bindings:
            sql = sql.replace("?", self.add(value), 1)
        return sql

    def rebind(self, sql: str, params: Mapping[str, Any]) -> str:
        """Import a foreign statement's parameters under fresh names.

        Every ``:name`` in ``sql`` that appears in ``params`` is renamed to a
        placeholder from this binder, so sub-queries and union branches built
        by other builders can never collide with this one.
        """
        renames: Dict[str, str] = {}
        for key, value in params.items():
            renames[key.lstrip(":")] = self.add(value)

        def _swap(match: "re.Match[str]") -> str:
            return renames.get(match.group(1), match.group(0))

        return _NAMED_PLACEHOLDER.sub(_swap, sql)

    def reset(self) -> None:
        self._params.clear()

    def copy(self) -> "ParameterBinder":
        clone = ParameterBinder()
        clone._counter = self._counter
        clone._params = dict(self._params)
        return clone
