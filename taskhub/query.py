"""
Query-string translation for list endpoints.

Turns the ``where``/``sort``/``select``/``skip``/``limit``/``count``
parameters into a ``QueryPlan`` made of typed value objects. Nothing in
here touches the database: the plan is validated against a field
registry (see ``taskhub.models``) and compiled to SQL by the stores.

Supported filter grammar (JSON object)::

    {"field": value}                       equality
    {"field": {"$op": operand, ...}}       $eq $ne $gt $gte $lt $lte $in $nin
    {"$and": [filter, ...]}                all sub-filters match
    {"$or":  [filter, ...]}                any sub-filter matches

Anything else is rejected with ``InvalidParameter`` before it reaches a
store.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field as dataclass_field
from typing import Any, Union

from taskhub.errors import InvalidParameter
from taskhub.models import Field, FieldKind, parse_timestamp

COMPARISON_OPERATORS = frozenset({"$eq", "$ne", "$gt", "$gte", "$lt", "$lte", "$in", "$nin"})
ORDERING_OPERATORS = frozenset({"$gt", "$gte", "$lt", "$lte"})
LIST_OPERATORS = frozenset({"$in", "$nin"})

# Largest skip/limit a SQL backend accepts as an integer bind.
MAX_PAGE_VALUE = 2**63 - 1

SORT_DIRECTIONS = {
    1: False,
    -1: True,
    "asc": False,
    "ascending": False,
    "desc": True,
    "descending": True,
}


@dataclass(frozen=True)
class Comparison:
    """``attr <operator> value`` on a single model attribute."""

    attr: str
    operator: str
    value: Any


@dataclass(frozen=True)
class Conjunction:
    """All clauses must match. An empty conjunction matches everything."""

    clauses: tuple["FilterExpression", ...] = ()


@dataclass(frozen=True)
class Disjunction:
    """At least one clause must match."""

    clauses: tuple["FilterExpression", ...] = ()


FilterExpression = Union[Comparison, Conjunction, Disjunction]


@dataclass(frozen=True)
class SortKey:
    attr: str
    descending: bool = False


@dataclass(frozen=True)
class Projection:
    """
    Field selection applied to serialized documents.

    ``_id`` follows its own flag because it may be excluded from an
    inclusion projection (``{"name": 1, "_id": 0}``).
    """

    fields: frozenset[str]
    include: bool
    hide_id: bool = False

    def apply(self, document: dict[str, Any]) -> dict[str, Any]:
        if self.include:
            keep = set(self.fields)
            if not self.hide_id:
                keep.add("_id")
            return {key: value for key, value in document.items() if key in keep}
        drop = set(self.fields)
        if self.hide_id:
            drop.add("_id")
        return {key: value for key, value in document.items() if key not in drop}


@dataclass(frozen=True)
class QueryPlan:
    """Validated storage query for a list request."""

    filter: FilterExpression = dataclass_field(default_factory=Conjunction)
    sort: tuple[SortKey, ...] = ()
    projection: Projection | None = None
    skip: int = 0
    limit: int | None = None
    count: bool = False

    def shape(self, document: dict[str, Any]) -> dict[str, Any]:
        if self.projection is None:
            return document
        return self.projection.apply(document)


def _decode(parameter: str, raw: str | None) -> Any:
    """JSON-decode a query parameter; absent or blank yields None."""
    if raw is None or not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise InvalidParameter(parameter, "malformed JSON") from exc


class QueryTranslator:
    """
    Translate list query parameters for one resource.

    Args:
        fields: Public field name to ``Field`` registry of the resource.
        default_limit: Limit used when the request has none; ``None``
            means unbounded.
    """

    def __init__(self, fields: Mapping[str, Field], default_limit: int | None = None) -> None:
        self.fields = fields
        self.default_limit = default_limit

    def translate(self, args: Mapping[str, str]) -> QueryPlan:
        """
        Build a ``QueryPlan`` from request arguments.

        Raises:
            InvalidParameter: If any parameter is malformed or unsupported.
        """
        return QueryPlan(
            filter=self.parse_where(args.get("where")),
            sort=self.parse_sort(args.get("sort")),
            projection=self.parse_select(args.get("select")),
            skip=self._parse_int("skip", args.get("skip"), minimum=0, default=0),
            limit=self._parse_int("limit", args.get("limit"), minimum=1, default=self.default_limit),
            count=args.get("count", "").strip().lower() == "true",
        )

    # -- where ---------------------------------------------------------------

    def parse_where(self, raw: str | None) -> FilterExpression:
        document = _decode("where", raw)
        if document is None:
            return Conjunction()
        return self._parse_filter(document)

    def _parse_filter(self, document: Any) -> Conjunction:
        if not isinstance(document, dict):
            raise InvalidParameter("where", "filter must be a JSON object")

        clauses: list[FilterExpression] = []
        for key, value in document.items():
            if key in ("$and", "$or"):
                if not isinstance(value, list) or not value:
                    raise InvalidParameter("where", f"{key} requires a non-empty array")
                parts = tuple(self._parse_filter(item) for item in value)
                clauses.append(Conjunction(parts) if key == "$and" else Disjunction(parts))
            elif key.startswith("$"):
                raise InvalidParameter("where", f"unsupported operator {key}")
            else:
                clauses.extend(self._parse_condition(key, value))
        return Conjunction(tuple(clauses))

    def _parse_condition(self, name: str, condition: Any) -> list[Comparison]:
        spec = self._field("where", name)
        if not spec.filterable:
            raise InvalidParameter("where", f"field '{name}' cannot be filtered")

        if not isinstance(condition, dict):
            return [Comparison(spec.attr, "$eq", self._coerce(name, spec, condition))]

        if not condition or not all(key.startswith("$") for key in condition):
            raise InvalidParameter("where", f"field '{name}' cannot match an embedded document")

        comparisons = []
        for operator, operand in condition.items():
            if operator not in COMPARISON_OPERATORS:
                raise InvalidParameter("where", f"unsupported operator {operator}")
            if operator in LIST_OPERATORS:
                if not isinstance(operand, list):
                    raise InvalidParameter("where", f"{operator} requires an array")
                value = tuple(self._coerce(name, spec, item) for item in operand)
            else:
                value = self._coerce(name, spec, operand)
                if value is None and operator in ORDERING_OPERATORS:
                    raise InvalidParameter("where", f"{operator} cannot compare against null")
            comparisons.append(Comparison(spec.attr, operator, value))
        return comparisons

    def _coerce(self, name: str, spec: Field, value: Any) -> Any:
        """Convert a JSON operand to the attribute's value type."""
        if value is None:
            return None
        if spec.absent is not None and value == spec.absent:
            return None

        if spec.kind in (FieldKind.ID, FieldKind.STRING):
            if isinstance(value, str):
                return value.lower() if spec.kind is FieldKind.ID else value
        elif spec.kind is FieldKind.BOOLEAN:
            if isinstance(value, bool):
                return value
        elif spec.kind is FieldKind.DATETIME:
            try:
                return parse_timestamp(value)
            except ValueError:
                pass
        raise InvalidParameter("where", f"invalid value for '{name}'")

    # -- sort / select ---------------------------------------------------------

    def parse_sort(self, raw: str | None) -> tuple[SortKey, ...]:
        document = _decode("sort", raw)
        if document is None:
            return ()
        if not isinstance(document, dict):
            raise InvalidParameter("sort", "must be a JSON object")

        keys = []
        for name, direction in document.items():
            spec = self._field("sort", name)
            if not spec.filterable:
                raise InvalidParameter("sort", f"field '{name}' cannot be sorted")
            if (
                isinstance(direction, bool)
                or not isinstance(direction, (int, str))
                or direction not in SORT_DIRECTIONS
            ):
                raise InvalidParameter("sort", f"invalid direction for '{name}'")
            keys.append(SortKey(spec.attr, SORT_DIRECTIONS[direction]))
        return tuple(keys)

    def parse_select(self, raw: str | None) -> Projection | None:
        document = _decode("select", raw)
        if document is None:
            return None
        if not isinstance(document, dict):
            raise InvalidParameter("select", "must be a JSON object")
        if not document:
            return None

        flags: dict[str, bool] = {}
        for name, flag in document.items():
            self._field("select", name)
            if not isinstance(flag, (bool, int)) or flag not in (0, 1):
                raise InvalidParameter("select", f"invalid flag for '{name}'")
            flags[name] = bool(flag)

        hide_id = flags.pop("_id", True) is False
        modes = set(flags.values())
        if len(modes) > 1:
            raise InvalidParameter("select", "cannot mix inclusion and exclusion")
        if not modes:
            # Only _id was given.
            return Projection(frozenset(), include=hide_id is False, hide_id=hide_id)
        return Projection(frozenset(flags), include=modes.pop(), hide_id=hide_id)

    # -- helpers -------------------------------------------------------------

    def _field(self, parameter: str, name: Any) -> Field:
        spec = self.fields.get(name)
        if spec is None:
            raise InvalidParameter(parameter, f"unknown field '{name}'")
        return spec

    @staticmethod
    def _parse_int(parameter: str, raw: str | None, *, minimum: int, default: int | None) -> int | None:
        if raw is None or not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            raise InvalidParameter(parameter, "must be an integer") from exc
        if value < minimum:
            raise InvalidParameter(parameter, f"must be at least {minimum}")
        if value > MAX_PAGE_VALUE:
            raise InvalidParameter(parameter, f"must be at most {MAX_PAGE_VALUE}")
        return value
