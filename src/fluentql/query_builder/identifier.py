"""Identifier resolution.

The resolver quotes identifiers for the active dialect and repairs table and
column references against live schema metadata:

- table names go through the process-wide table map, then an existence probe,
  then a singular/plural toggle;
- ``alias.column`` tokens and bare ``*_id`` tokens are rewritten when the
  physical column is spelled in the other case convention
  (``project_gallery_id`` vs ``projectGallery_id``).

Everything here is best effort. A probe that fails is logged and treated as
"does not exist", which leaves the original identifier untouched.
"""

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from fluentql.common.exceptions import FluentQLError
from fluentql.logging import get_logger
from fluentql.settings import get_settings
from fluentql.utils.naming import camel_to_snake_id, snake_to_camel_id

if TYPE_CHECKING:
    from fluentql.engine.base import SQLEngine

logger = get_logger(__name__)

_ID_SUFFIX = "_id"

_QUALIFIED_REF = re.compile(r"^\s*(?:[`\"]?(\w+)[`\"]?\.)?[`\"]?(\w+)[`\"]?\s*$")


# Process-wide table map ---------------------------------------------------

_table_map: Dict[str, str] = {}
_table_map_seeded = False


def _ensure_seeded() -> None:
    global _table_map_seeded
    if not _table_map_seeded:
        _table_map_seeded = True
        seed = get_settings().query.table_map
        for logical, physical in seed.items():
            _table_map.setdefault(logical, physical)


def configure_table_map(mapping: Mapping[str, str]) -> None:
    """Merge logical -> physical table names into the process-wide map.

    Later calls win over earlier ones for the same logical name. The map is
    expected to be configured once at startup.
    """
    _ensure_seeded()
    _table_map.update(mapping)


def get_table_map() -> Dict[str, str]:
    """Return a copy of the process-wide table map."""
    _ensure_seeded()
    return dict(_table_map)


def clear_table_map() -> None:
    """Empty the process-wide table map. Settings are not re-applied."""
    global _table_map_seeded
    _table_map.clear()
    _table_map_seeded = True


def parse_qualified_ref(ref: str) -> Tuple[Optional[str], str]:
    """Split ``schema.table`` (quoted or not) into ``(schema, table)``."""
    match = _QUALIFIED_REF.match(ref)
    if match:
        return match.group(1), match.group(2)
    return None, ref.strip()


@dataclass(frozen=True)
class AliasEntry:
    schema: Optional[str]
    table: str
    implicit: bool = False


class IdentifierResolver:
    """Quotes identifiers and resolves them against schema metadata.

    One resolver is shared by every builder of an engine so that existence
    probes are cached for the lifetime of the engine rather than per query.

    Args:
        engine: Engine used to run metadata probes. Only ``engine.dialect``
            and ``engine.probe`` are used.
    """

    def __init__(self, engine: "SQLEngine"):
        self.engine = engine
        self.dialect = engine.dialect
        self._cache_enabled = get_settings().query.cache_metadata_probes
        self._table_cache: Dict[str, bool] = {}
        self._column_cache: Dict[str, bool] = {}

    # Quoting ---------------------------------------------------------------

    def quote(self, identifier: str) -> str:
        return self.dialect.quote_identifier(identifier)

    def quote_qualified(self, schema: Optional[str], table: str) -> str:
        if schema:
            return f"{self.quote(schema)}.{self.quote(table)}"
        return self.quote(table)

    def parse_qualified_ref(self, ref: str) -> Tuple[Optional[str], str]:
        return parse_qualified_ref(ref)

    # Metadata probes -------------------------------------------------------

    def table_exists(self, table: str, schema: Optional[str] = None) -> bool:
        key = f"{schema}.{table}" if schema else table
        if key in self._table_cache:
            return self._table_cache[key]

        sql, params = self.dialect.table_exists_statement(table, schema)
        try:
            exists = len(self.engine.probe(sql, params)) > 0
        except (SQLAlchemyError, FluentQLError) as exc:
            logger.warning(
                "Table existence probe failed",
                extra={"db.sql.table": key, "error": str(exc)},
            )
            exists = False

        if self._cache_enabled:
            self._table_cache[key] = exists
        return exists

    def column_exists(self, schema: Optional[str], table: str, column: str) -> bool:
        """Check whether ``column`` exists on ``table``.

        The result is memoized under ``schema.table.column``. A failing probe
        is logged at WARNING and remembered as ``False``.
        """
        schema = schema or None
        key = f"{schema + '.' if schema else ''}{table}.{column}"
        if key in self._column_cache:
            return self._column_cache[key]

        sql, params = self.dialect.column_exists_statement(table, column, schema)
        try:
            rows = self.engine.probe(sql, params)
            exists = self.dialect.column_probe_matches(rows, column)
        except (SQLAlchemyError, FluentQLError) as exc:
            logger.warning(
                "Column existence probe failed",
                extra={"db.sql.column": key, "error": str(exc)},
            )
            self._column_cache[key] = False
            return False

        if self._cache_enabled:
            self._column_cache[key] = exists
        return exists

    def clear_cache(self) -> None:
        self._table_cache.clear()
        self._column_cache.clear()

    # Tables ----------------------------------------------------------------

    def resolve_table(self, name: str, schema: Optional[str] = None) -> str:
        """Resolve a logical table name to a physical one.

        Order: table map, exact name, singular/plural toggle (drop or add a
        trailing ``s``). On a dialect that folds unquoted identifiers the
        folded spelling is tried the same way. When nothing matches the name
        comes back as the server would spell it unquoted, since the renderer
        always quotes it.
        """
        mapped = get_table_map().get(name)
        if mapped:
            return mapped

        folded = self.dialect.fold_identifier(name)
        spellings = [name] if folded == name else [name, folded]
        for spelling in spellings:
            if self.table_exists(spelling, schema):
                return spelling

            candidate = spelling[:-1] if spelling.endswith("s") else f"{spelling}s"
            if candidate and self.table_exists(candidate, schema):
                logger.debug(
                    "Resolved table by singular/plural fallback",
                    extra={"table.requested": name, "table.resolved": candidate},
                )
                return candidate

        return folded

    def scope(self) -> "AliasScope":
        """Start a fresh alias scope for one resolution pass."""
        return AliasScope(self)


class AliasScope:
    """Alias map for a single resolution pass.

    Maps an alias (or bare table name) to ``(schema, physical table)``.
    A scope is created when a statement is resolved and discarded right
    after, so aliases never leak from one query into another.
    """

    def __init__(self, resolver: IdentifierResolver):
        self.resolver = resolver
        self._entries: Dict[str, AliasEntry] = {}

        q = re.escape(resolver.dialect.quote_char)
        quotes = "`" + ("" if resolver.dialect.quote_char == "`" else q)
        self._aliased = re.compile(
            rf"(?<![\w{quotes}])([{quotes}]?)([A-Za-z0-9_]+)\1\.([{quotes}]?)([A-Za-z0-9_]+)\3(?![\w{quotes}])"
        )
        self._bare = re.compile(
            rf"(?<![:.\w{quotes}])([{quotes}]?)([A-Za-z0-9_]+{_ID_SUFFIX})\1(?![\w{quotes}])"
        )

    def register(self, alias: str, schema: Optional[str], table: str, implicit: bool = False) -> None:
        alias = alias.strip(" `\"")
        existing = self._entries.get(alias)
        if existing is not None and implicit and not existing.implicit:
            return
        self._entries[alias] = AliasEntry(schema, table, implicit)

    def lookup(self, alias: str) -> Optional[AliasEntry]:
        return self._entries.get(alias.strip(" `\""))

    @property
    def aliases(self) -> Dict[str, AliasEntry]:
        return dict(self._entries)

    def _candidates(self) -> List[Tuple[str, AliasEntry]]:
        explicit = {
            (entry.schema, entry.table) for entry in self._entries.values() if not entry.implicit
        }
        return [
            (alias, entry)
            for alias, entry in self._entries.items()
            if not (entry.implicit and (entry.schema, entry.table) in explicit)
        ]

    def _variants(self, column: str) -> List[str]:
        variants = [column]
        if column.endswith(_ID_SUFFIX):
            for alt in (snake_to_camel_id(column), camel_to_snake_id(column)):
                if alt not in variants:
                    variants.append(alt)
        return variants

    def resolve_column_for_alias(self, alias: str, column: str) -> Optional[str]:
        """Return the physical spelling of ``alias.column`` or ``None``.

        An unknown alias is treated as a table name when such a table exists.
        Only ``*_id`` columns are tried in the other case convention.
        """
        alias = alias.strip(" `\"")
        column = column.strip(" `\"")

        entry = self.lookup(alias)
        if entry is None:
            if not self.resolver.table_exists(alias):
                return None
            entry = AliasEntry(None, alias, implicit=True)

        for variant in self._variants(column):
            if self.resolver.column_exists(entry.schema, entry.table, variant):
                return variant
        return None

    def find_alias_for_column(self, column: str) -> Optional[Tuple[str, str]]:
        """Find the single alias whose table has ``column`` (or its ``_id`` variant).

        Returns ``None`` when no alias or more than one alias matches, so an
        ambiguous bare reference is never qualified.
        """
        found: List[Tuple[str, str]] = []
        for alias, entry in self._candidates():
            if self.resolver.column_exists(entry.schema, entry.table, column):
                found.append((alias, column))
                continue
            for variant in self._variants(column)[1:]:
                if self.resolver.column_exists(entry.schema, entry.table, variant):
                    found.append((alias, variant))
        return found[0] if len(found) == 1 else None

    def normalize_clause(self, clause: str, qualify_bare: bool = True) -> str:
        """Rewrite column references inside one clause fragment.

        Pass 1 rewrites ``alias.column`` to ``alias.<quoted physical column>``
        when the physical spelling differs. Pass 2 qualifies bare ``*_id``
        tokens with their unique alias (or just re-spells them when
        ``qualify_bare`` is off). Placeholders (``:p1``) are never touched.
        """
        quote = self.resolver.quote

        def _aliased(match: "re.Match[str]") -> str:
            alias, column = match.group(2), match.group(4)
            resolved = self.resolve_column_for_alias(alias, column)
            if resolved is None or resolved == column:
                return match.group(0)
            q = match.group(1)
            return f"{q}{alias}{q}.{quote(resolved)}"

        def _bare(match: "re.Match[str]") -> str:
            found = self.find_alias_for_column(match.group(2))
            if found is None:
                return match.group(0)
            alias, column = found
            if qualify_bare:
                return f"{quote(alias)}.{quote(column)}"
            return quote(column)

        clause = self._aliased.sub(_aliased, clause)
        return self._bare.sub(_bare, clause)


def describe_scope(scope: AliasScope) -> Dict[str, Any]:
    """Alias map as plain data, for debug logging."""
    return {
        alias: {"schema": entry.schema, "table": entry.table, "implicit": entry.implicit}
        for alias, entry in scope.aliases.items()
    }
