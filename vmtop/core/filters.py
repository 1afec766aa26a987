"""Filter and search expressions over instances.

Filter syntax is a whitespace separated list of clauses that must all match:

* ``field=text``   case-insensitive substring match on one field
* ``field~regex``  case-insensitive regular expression search on one field
* ``label.KEY=text`` / ``label.KEY~regex``  match a label value
* ``text``         substring match against any common field

Searches are plain case-insensitive literals; they highlight matching rows
instead of hiding the others.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from vmtop.core.models import Instance, StoreEntry, StoreSnapshot


class FilterError(ValueError):
    """Raised for filter text that cannot be compiled."""


FIELD_ACCESSORS: dict[str, Callable[[Instance], Iterable[str | None]]] = {
    "id": lambda i: (i.id,),
    "name": lambda i: (i.name,),
    "status": lambda i: (i.status.value,),
    "zone": lambda i: (i.zone,),
    "region": lambda i: (i.region,),
    "project": lambda i: (i.project,),
    "type": lambda i: (i.machine_type,),
    "machine_type": lambda i: (i.machine_type,),
    "ip": lambda i: (i.internal_ip, i.external_ip),
    "internal_ip": lambda i: (i.internal_ip,),
    "external_ip": lambda i: (i.external_ip,),
}

ANY_FIELDS = ("name", "id", "status", "zone", "machine_type", "internal_ip", "external_ip")

SEARCH_FIELDS = ("name", "id", "internal_ip", "external_ip")

LABEL_PREFIX = "label."

CLAUSE_RE = re.compile(r"^(?P<field>[A-Za-z_][\w.\-]*)(?P<op>[=~])(?P<value>.*)$")


@dataclass(frozen=True)
class FilterClause:
    field: str | None
    pattern: re.Pattern

    def values(self, instance: Instance) -> Iterable[str | None]:
        if self.field is None:
            return tuple(v for name in ANY_FIELDS for v in FIELD_ACCESSORS[name](instance))
        if self.field.startswith(LABEL_PREFIX):
            return (instance.labels.get(self.field[len(LABEL_PREFIX):]),)
        return FIELD_ACCESSORS[self.field](instance)

    def matches(self, instance: Instance) -> bool:
        return any(
            value is not None and self.pattern.search(value) for value in self.values(instance)
        )


@dataclass(frozen=True)
class FilterSpec:
    """Compiled filter; an empty spec matches every instance."""

    text: str = ""
    clauses: tuple[FilterClause, ...] = ()

    def matches(self, instance: Instance) -> bool:
        return all(clause.matches(instance) for clause in self.clauses)

    @property
    def active(self) -> bool:
        return bool(self.clauses)


MATCH_ALL = FilterSpec()


def compile_filter(text: str) -> FilterSpec:
    """Compile filter text into a predicate.

    Parameters
    ----------
    text : str
        Filter expression

    Returns
    -------
    FilterSpec
        Compiled filter

    Raises
    ------
    FilterError
        If a clause names an unknown field or carries an invalid regex
    """
    clauses = []

    for token in text.split():
        match = CLAUSE_RE.match(token)
        if match is None:
            clauses.append(FilterClause(None, re.compile(re.escape(token), re.IGNORECASE)))
            continue

        field = match.group("field")
        op = match.group("op")
        value = match.group("value")

        if field.lower().startswith(LABEL_PREFIX):
            field = LABEL_PREFIX + field[len(LABEL_PREFIX):]
            if field == LABEL_PREFIX:
                raise FilterError("Label filter needs a key, e.g. label.env=prod")
        else:
            field = field.lower()
            if field not in FIELD_ACCESSORS:
                available = ", ".join(sorted(FIELD_ACCESSORS))
                raise FilterError(f"Unknown field '{field}' (available: {available}, label.KEY)")

        if op == "~":
            try:
                pattern = re.compile(value, re.IGNORECASE)
            except re.error as e:
                raise FilterError(f"Invalid pattern '{value}': {e}") from e
        else:
            pattern = re.compile(re.escape(value), re.IGNORECASE)

        clauses.append(FilterClause(field, pattern))

    return FilterSpec(text=text, clauses=tuple(clauses))


@dataclass(frozen=True)
class SearchSpec:
    """Case-insensitive literal search over names, ids and addresses."""

    text: str

    @property
    def pattern(self) -> re.Pattern:
        return re.compile(re.escape(self.text), re.IGNORECASE)

    def matches(self, instance: Instance) -> bool:
        pattern = self.pattern
        return any(
            value and pattern.search(value)
            for name in SEARCH_FIELDS
            for value in FIELD_ACCESSORS[name](instance)
        )

    def spans(self, value: str | None) -> tuple[tuple[int, int], ...]:
        """Return the (start, end) offsets of every match in ``value``."""
        if not value:
            return ()
        return tuple(m.span() for m in self.pattern.finditer(value))


def compile_search(text: str) -> SearchSpec | None:
    """Compile search text; empty text clears the search."""
    if not text:
        return None
    return SearchSpec(text)


def visible_entries(snapshot: StoreSnapshot, spec: FilterSpec) -> list[StoreEntry]:
    """Entries passing the filter, ordered by name, then id."""
    return sorted(
        (entry for entry in snapshot.entries if spec.matches(entry.instance)),
        key=lambda entry: (entry.instance.name, entry.instance.id),
    )
