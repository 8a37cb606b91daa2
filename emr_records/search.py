"""Search predicates and their translation into parameterized WHERE clauses."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from emr_records.patient_records.database.uuid_registry import uuid_to_bytes

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ConfigurationError(Exception):
    """Raised when a search predicate cannot be translated to SQL."""
    pass


class SearchModifier(Enum):
    """How a string predicate compares its value."""
    CONTAINS = "contains"
    EXACT = "exact"
    PREFIX = "prefix"


def _as_list(values) -> list:
    if values is None:
        return []
    if isinstance(values, (list, tuple, set)):
        return list(values)
    return [values]


@dataclass
class TokenSearchField:
    """Exact match on one value, or membership in a set of values."""
    field: str
    values: list = field(default_factory=list)
    is_uuid: bool = False
    is_and: bool = True

    def __post_init__(self):
        self.values = _as_list(self.values)


@dataclass
class StringSearchField:
    """Text comparison on a column using a SearchModifier."""
    field: str
    values: list = field(default_factory=list)
    modifier: SearchModifier = SearchModifier.CONTAINS
    is_and: bool = True

    def __post_init__(self):
        self.values = _as_list(self.values)


@dataclass
class WhereClause:
    """A SQL fragment and the values bound to its placeholders, in order."""
    fragment: str = ""
    bound_values: list = field(default_factory=list)


class WhereClauseBuilder:
    """Translate a mapping of field -> predicate(s) into a WhereClause."""

    def build(self, search: dict | None, is_and_condition: bool = True) -> WhereClause:
        if not search:
            return WhereClause()

        bound_values: list[Any] = []
        mandatory: list[str] = []
        optional: list[str] = []

        for predicate in self._flatten(search):
            clause = self._render(predicate, bound_values)
            if clause is None:
                continue
            if is_and_condition or predicate.is_and:
                mandatory.append(clause)
            else:
                optional.append(clause)

        if not mandatory and not optional:
            return WhereClause()

        if is_and_condition or not mandatory:
            joiner = " AND " if is_and_condition else " OR "
            fragment = joiner.join(mandatory or optional)
        else:
            clauses = list(mandatory)
            if optional:
                clauses.append(optional[0] if len(optional) == 1 else "(" + " OR ".join(optional) + ")")
            fragment = " AND ".join(clauses)

        return WhereClause(fragment=f"WHERE {fragment}", bound_values=bound_values)

    def _flatten(self, search: dict) -> list:
        predicates = []
        for value in search.values():
            if isinstance(value, (list, tuple)):
                predicates.extend(value)
            else:
                predicates.append(value)
        return predicates

    def _render(self, predicate, bound_values: list) -> str | None:
        if isinstance(predicate, TokenSearchField):
            return self._render_token(predicate, bound_values)
        if isinstance(predicate, StringSearchField):
            return self._render_string(predicate, bound_values)
        raise ConfigurationError(f"Unsupported search predicate: {type(predicate).__name__}")

    def _check_field(self, name: str) -> str:
        if not isinstance(name, str) or not _IDENTIFIER.match(name):
            raise ConfigurationError(f"Invalid search field name: {name!r}")
        return name

    def _render_token(self, predicate: TokenSearchField, bound_values: list) -> str | None:
        column = self._check_field(predicate.field)
        values = predicate.values
        if not values:
            return None
        if predicate.is_uuid:
            try:
                values = [uuid_to_bytes(v) for v in values]
            except ValueError as e:
                raise ConfigurationError(f"Invalid uuid value for {column}: {e}") from e

        bound_values.extend(values)
        if len(values) == 1:
            return f"{column} = ?"
        placeholders = ",".join("?" for _ in values)
        return f"{column} IN ({placeholders})"

    def _render_string(self, predicate: StringSearchField, bound_values: list) -> str | None:
        column = self._check_field(predicate.field)
        if not predicate.values:
            return None

        parts = []
        for value in predicate.values:
            if predicate.modifier == SearchModifier.CONTAINS:
                parts.append(f"{column} LIKE ?")
                bound_values.append(f"%{value}%")
            elif predicate.modifier == SearchModifier.PREFIX:
                parts.append(f"{column} LIKE ?")
                bound_values.append(f"{value}%")
            elif predicate.modifier == SearchModifier.EXACT:
                parts.append(f"{column} = ?")
                bound_values.append(value)
            else:
                raise ConfigurationError(f"Unsupported search modifier: {predicate.modifier!r}")

        if len(parts) == 1:
            return parts[0]
        return "(" + " OR ".join(parts) + ")"
