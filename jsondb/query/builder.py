"""Query compiler - turns path predicates into a pivot view plus a selection.

A ViewBuilder collects predicates and orderings over document paths, then
compiles two statements:

1. The pivot view definition. The anchor set is every document id present
   in path_index; each referenced path becomes a sub-projection (oid plus
   that path's typed value) LEFT JOINed onto the anchor, so documents
   lacking the path keep a NULL column instead of dropping out.
2. The selection: ``SELECT oid FROM <view> WHERE ... ORDER BY ...`` with
   every operand bound as a parameter.

Pivot columns are named positionally (p0, p1, ...) and never derived from
caller text. A path is written into SQL as a literal only after the index
store has confirmed it exists, so an unknown path (a typo or an injection
attempt) fails with UnknownPathError before any SQL runs.

Predicates form ONE flat chain folded left to right in insertion order:
``where(a).or_where(b).where(c)`` compiles to ``((a OR b) AND c)``. There is
no grouping construct and standard AND-over-OR precedence does NOT apply.

Lifecycle: BUILDING -> VALIDATED -> MATERIALIZED -> TORN_DOWN. A torn down
builder cannot run again; build a new one (it gets a fresh view name).
"""

import math
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..config import VIEW_PREFIX
from ..exceptions import BuilderStateError, InvalidPredicateError, UnknownPathError
from ..indexer.database import IndexStore
from ..indexer.scanner import serialize, utf8_encodable
from ..indexer.schema import PATH_INDEX, STORAGE_COLUMNS
from ..indexer.types import JsonType
from ..utils.logging import logger
from .sql import quote_identifier, quote_literal, validate_identifier


class Operator(str, Enum):
    """Supported predicate operators."""

    EQ = "="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    NE = "<>"
    BETWEEN = "between"
    NOT_BETWEEN = "not-between"
    IN = "in"
    NOT_IN = "not-in"


_OPERATOR_ALIASES = {
    "==": Operator.EQ,
    "!=": Operator.NE,
    "not between": Operator.NOT_BETWEEN,
    "not_between": Operator.NOT_BETWEEN,
    "not in": Operator.NOT_IN,
    "not_in": Operator.NOT_IN,
}

_RANGE_OPERATORS = frozenset({Operator.BETWEEN, Operator.NOT_BETWEEN})
_SET_OPERATORS = frozenset({Operator.IN, Operator.NOT_IN})


class Direction(str, Enum):
    """Sort direction for an ordering."""

    ASCENDING = "ascending"
    DESCENDING = "descending"


_DIRECTION_ALIASES = {
    "asc": Direction.ASCENDING,
    "desc": Direction.DESCENDING,
}


class Connective(str, Enum):
    AND = "AND"
    OR = "OR"


class BuilderState(Enum):
    """Lifecycle of a ViewBuilder."""

    BUILDING = "building"
    VALIDATED = "validated"
    MATERIALIZED = "materialized"
    TORN_DOWN = "torn_down"


@dataclass(frozen=True)
class Predicate:
    """One term of the flat predicate chain."""

    connective: Connective
    path: str
    operator: Operator
    operands: tuple


@dataclass(frozen=True)
class Ordering:
    path: str
    direction: Direction


# Tie-break when one path was recorded with kinds living in different columns
TYPE_PRIORITY = (
    JsonType.FLOAT,
    JsonType.BOOLEAN,
    JsonType.STRING,
    JsonType.ARRAY,
    JsonType.OBJECT,
)


def parse_operator(op: Operator | str) -> Operator:
    """Normalise an operator token."""
    if isinstance(op, Operator):
        return op
    if isinstance(op, str):
        token = op.strip().lower()
        if token in _OPERATOR_ALIASES:
            return _OPERATOR_ALIASES[token]
        try:
            return Operator(token)
        except ValueError:
            pass
    raise InvalidPredicateError(
        f"Unknown operator {op!r}. Supported: {', '.join(o.value for o in Operator)}",
        {"operator": repr(op)},
    )


def parse_direction(direction: Direction | str) -> Direction:
    """Normalise a sort direction token."""
    if isinstance(direction, Direction):
        return direction
    if isinstance(direction, str):
        token = direction.strip().lower()
        if token in _DIRECTION_ALIASES:
            return _DIRECTION_ALIASES[token]
        try:
            return Direction(token)
        except ValueError:
            pass
    raise InvalidPredicateError(
        f"Unknown direction {direction!r}. Supported: ascending, descending",
        {"direction": repr(direction)},
    )


def _scalar_operand(value: Any, path: str) -> Any:
    """Bindable form of one scalar operand."""
    if value is None:
        raise InvalidPredicateError(
            f"NULL operand for path '{path}' never matches a comparison",
            {"path": path},
        )
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise InvalidPredicateError(f"Non-finite operand for path '{path}'", {"path": path})
        return value
    if isinstance(value, str):
        if not utf8_encodable(value):
            raise InvalidPredicateError(
                f"Operand for path '{path}' is not valid UTF-8", {"path": path}
            )
        return value
    raise InvalidPredicateError(
        f"Unsupported operand type {type(value).__name__} for path '{path}'",
        {"path": path, "type": type(value).__name__},
    )


def _operands(operator: Operator, value: Any, path: str) -> tuple:
    if operator in _RANGE_OPERATORS:
        if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)) or len(value) != 2:
            raise InvalidPredicateError(
                f"'{operator.value}' on '{path}' needs a [low, high] pair",
                {"path": path, "operator": operator.value},
            )
        return tuple(_scalar_operand(v, path) for v in value)

    if operator in _SET_OPERATORS:
        if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple, set, frozenset)):
            raise InvalidPredicateError(
                f"'{operator.value}' on '{path}' needs a sequence of values",
                {"path": path, "operator": operator.value},
            )
        if not value:
            raise InvalidPredicateError(
                f"'{operator.value}' on '{path}' needs at least one value",
                {"path": path, "operator": operator.value},
            )
        return tuple(_scalar_operand(v, path) for v in value)

    # Containers compare against the stored canonical JSON text
    if isinstance(value, (list, tuple, dict)):
        try:
            text = serialize(value)
        except (TypeError, ValueError, RecursionError) as e:
            raise InvalidPredicateError(
                f"Operand for path '{path}' is not serialisable JSON: {type(e).__name__}",
                {"path": path},
            ) from None
        return (_scalar_operand(text, path),)
    return (_scalar_operand(value, path),)


def default_view_name() -> str:
    """Fresh, process-unique view name."""
    return f"{VIEW_PREFIX}{uuid.uuid4().hex}"


class ViewBuilder:
    """Accumulates path predicates and compiles a pivot view for them.

    Usage:
        builder = (
            ViewBuilder(store)
            .add_predicate("age", ">=", 18)
            .add_or_predicate("role", "in", ["admin", "owner"])
            .add_ordering("name")
        )
        ids = ViewExecutor(engine).execute(builder)
    """

    def __init__(self, store: IndexStore, name_factory: Callable[[], str] | None = None):
        self.store = store
        self._name_factory = name_factory or default_view_name
        self._view_name = validate_identifier(self._name_factory())
        self._state = BuilderState.BUILDING

        self._aliases: dict[str, str] = {}
        self._predicates: list[Predicate] = []
        self._orderings: list[Ordering] = []

        self._definition: str | None = None
        self._columns: dict[str, str] = {}

    def __repr__(self) -> str:
        return (
            f"ViewBuilder(view={self._view_name}, state={self._state.value}, "
            f"paths={list(self._aliases)})"
        )

    @property
    def view_name(self) -> str:
        return self._view_name

    @property
    def state(self) -> BuilderState:
        return self._state

    @property
    def referenced_paths(self) -> list[str]:
        """Distinct referenced paths in the order first referenced."""
        return list(self._aliases)

    @property
    def predicates(self) -> list[Predicate]:
        return list(self._predicates)

    @property
    def orderings(self) -> list[Ordering]:
        return list(self._orderings)

    def _require(self, operation: str, *states: BuilderState) -> None:
        if self._state not in states:
            raise BuilderStateError(operation, self._state.value)

    def _reference(self, path: str) -> str:
        if not isinstance(path, str) or not path:
            raise InvalidPredicateError(f"Path must be a non-empty string, got {path!r}")
        if not utf8_encodable(path):
            raise InvalidPredicateError(f"Path {path!r} is not valid UTF-8")
        if path not in self._aliases:
            self._aliases[path] = f"p{len(self._aliases)}"
        return self._aliases[path]

    # ========================================================
    # BUILDING
    # ========================================================

    def _add(self, connective: Connective, path: str, op: Operator | str, value: Any) -> "ViewBuilder":
        self._require("add a predicate", BuilderState.BUILDING)
        operator = parse_operator(op)
        operands = _operands(operator, value, path)
        self._reference(path)
        self._predicates.append(Predicate(connective, path, operator, operands))
        return self

    def add_predicate(self, path: str, op: Operator | str, value: Any) -> "ViewBuilder":
        """AND a condition on path onto the chain."""
        return self._add(Connective.AND, path, op, value)

    def add_or_predicate(self, path: str, op: Operator | str, value: Any) -> "ViewBuilder":
        """OR a condition on path onto the chain (left to right, no precedence)."""
        return self._add(Connective.OR, path, op, value)

    def add_ordering(self, path: str, direction: Direction | str = Direction.ASCENDING) -> "ViewBuilder":
        """Sort results by path's pivoted column."""
        self._require("add an ordering", BuilderState.BUILDING)
        parsed = parse_direction(direction)
        self._reference(path)
        self._orderings.append(Ordering(path, parsed))
        return self

    where = add_predicate
    or_where = add_or_predicate
    order_by = add_ordering

    # ========================================================
    # COMPILATION
    # ========================================================

    def _resolve_columns(self) -> dict[str, str]:
        """Storage column per referenced path, from the kinds recorded for it.

        Raises:
            UnknownPathError: some paths were never indexed
        """
        paths = self.referenced_paths
        recorded: dict[str, set[JsonType]] = {}
        for path, kind in self.store.query(paths):
            recorded.setdefault(path, set()).add(JsonType(kind))

        unknown = [path for path in paths if path not in recorded]
        if unknown:
            raise UnknownPathError(unknown)

        columns = {}
        for path in paths:
            kinds = [kind for kind in TYPE_PRIORITY if kind in recorded[path]]
            if not kinds:
                columns[path] = STORAGE_COLUMNS[JsonType.NULL]
                continue

            candidates = {STORAGE_COLUMNS[kind] for kind in kinds}
            if len(candidates) > 1:
                logger.warning(
                    "Path {path} recorded as {kinds}; pivoting on {chosen}",
                    path=path,
                    kinds=sorted(kind.value for kind in kinds),
                    chosen=kinds[0].value,
                )
            columns[path] = STORAGE_COLUMNS[kinds[0]]
        return columns

    def compile_view_definition(self) -> str:
        """Validate referenced paths and build the pivot view SELECT.

        Raises:
            UnknownPathError: builder stays BUILDING
        """
        if self._state is BuilderState.VALIDATED and self._definition is not None:
            return self._definition
        self._require("compile the view definition", BuilderState.BUILDING)

        columns = self._resolve_columns()
        table = PATH_INDEX.name

        select_parts = ["anchor.oid AS oid"]
        join_parts = []
        for index, (path, alias) in enumerate(self._aliases.items()):
            column = columns[path]
            sub = f"s{index}"
            select_parts.append(f"{sub}.value AS {alias}")
            join_parts.append(
                f"LEFT JOIN (SELECT oid, MIN({column}) AS value FROM {table} "
                f"WHERE path = {quote_literal(path)} AND {column} IS NOT NULL "
                f"GROUP BY oid) AS {sub} ON {sub}.oid = anchor.oid"
            )

        definition = (
            f"SELECT {', '.join(select_parts)} "
            f"FROM (SELECT DISTINCT oid FROM {table}) AS anchor"
        )
        if join_parts:
            definition += " " + " ".join(join_parts)

        self._columns = columns
        self._definition = definition
        self._state = BuilderState.VALIDATED
        logger.debug(
            "Compiled view {view} over {count} path(s)", view=self._view_name, count=len(columns)
        )
        return definition

    def _condition(self, predicate: Predicate, params: list) -> str:
        alias = self._aliases[predicate.path]
        operator = predicate.operator
        params.extend(predicate.operands)

        if operator is Operator.BETWEEN:
            return f"({alias} BETWEEN ? AND ?)"
        if operator is Operator.NOT_BETWEEN:
            return f"({alias} NOT BETWEEN ? AND ?)"
        if operator in _SET_OPERATORS:
            placeholders = ", ".join("?" for _ in predicate.operands)
            keyword = "IN" if operator is Operator.IN else "NOT IN"
            return f"{alias} {keyword} ({placeholders})"
        return f"{alias} {operator.value} ?"

    def compile_where(self) -> tuple[str, list]:
        """Left-folded WHERE expression and its parameters ('' if no predicates)."""
        params: list = []
        expression = ""
        for predicate in self._predicates:
            condition = self._condition(predicate, params)
            if not expression:
                expression = condition
            else:
                expression = f"({expression} {predicate.connective.value} {condition})"
        return expression, params

    def compile_selection(self) -> tuple[str, list]:
        """SELECT of matching document ids against the compiled view.

        Returns:
            (sql, params)
        """
        self._require(
            "compile the selection", BuilderState.VALIDATED, BuilderState.MATERIALIZED
        )
        sql = f"SELECT oid FROM {quote_identifier(self._view_name)}"

        expression, params = self.compile_where()
        if expression:
            sql += f" WHERE {expression}"

        order_terms = [
            f"{self._aliases[o.path]} {'DESC' if o.direction is Direction.DESCENDING else 'ASC'}"
            for o in self._orderings
        ]
        order_terms.append("oid ASC")
        sql += " ORDER BY " + ", ".join(order_terms)
        return sql, params

    def column_for(self, path: str) -> str:
        """Storage column the pivot uses for path (after validation)."""
        self._require(
            "inspect columns", BuilderState.VALIDATED, BuilderState.MATERIALIZED,
            BuilderState.TORN_DOWN,
        )
        return self._columns[path]

    # ========================================================
    # LIFECYCLE (driven by ViewExecutor)
    # ========================================================

    def mark_materialized(self) -> None:
        self._require("materialize", BuilderState.VALIDATED)
        self._state = BuilderState.MATERIALIZED

    def mark_torn_down(self) -> None:
        self._require(
            "tear down", BuilderState.VALIDATED, BuilderState.MATERIALIZED, BuilderState.TORN_DOWN
        )
        self._state = BuilderState.TORN_DOWN
