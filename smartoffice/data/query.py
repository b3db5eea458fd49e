"""Typed query expressions compiled to parameterized Cosmos DB SQL.

Build predicates from :func:`field` references and combine them with ``&``,
``|`` and ``~``::

    from smartoffice.data.query import field

    expr = (field("category") == ControlCategory.IDENTITY) & (field("max_score") >= 10)
    compiled = compile_query(expr, ControlListEntry)
    # SELECT * FROM c WHERE (c["category"] = @p0 AND c["maxScore"] >= @p1)

Compilation never touches the network; anything the store's SQL cannot
express raises :class:`QueryTranslationError`.
"""

from __future__ import annotations

import inspect
import json
import types
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field as dataclass_field
from typing import Any, Union, get_args, get_origin

from pydantic import BaseModel

from .exceptions import QueryTranslationError, SerializationError
from .serialization import DocumentSerializer, field_wire_name

_COMPARISON_OPERATORS = frozenset({"=", "!=", "<", "<=", ">", ">="})
_ORDERING_OPERATORS = frozenset({"<", "<=", ">", ">="})


class Expression:
    """Base class for every node of a query expression."""

    def __and__(self, other: Expression) -> And:
        return And(self, _require_expression(other))

    def __or__(self, other: Expression) -> Or:
        return Or(self, _require_expression(other))

    def __invert__(self) -> Not:
        return Not(self)

    def __bool__(self) -> bool:
        raise QueryTranslationError(
            "Query expressions have no truth value; combine them with &, | and ~ "
            "instead of 'and', 'or', 'not' or chained comparisons"
        )


class FieldRef:
    """Reference to a (possibly nested) document field."""

    __slots__ = ("path",)

    def __init__(self, path: str | Sequence[str]):
        parts = tuple(path.split(".")) if isinstance(path, str) else tuple(path)
        if not parts or any(not isinstance(p, str) or not p for p in parts):
            raise QueryTranslationError(f"Invalid field path: {path!r}")
        self.path = parts

    def __getattr__(self, name: str) -> FieldRef:
        if name.startswith("_") or name == "path":
            raise AttributeError(name)
        return FieldRef(self.path + (name,))

    def __repr__(self) -> str:
        return f"field({'.'.join(self.path)!r})"

    def __hash__(self) -> int:
        return hash(self.path)

    def __eq__(self, value: Any) -> Comparison:  # type: ignore[override]
        return Comparison(self, "=", value)

    def __ne__(self, value: Any) -> Comparison:  # type: ignore[override]
        return Comparison(self, "!=", value)

    def __lt__(self, value: Any) -> Comparison:
        return Comparison(self, "<", value)

    def __le__(self, value: Any) -> Comparison:
        return Comparison(self, "<=", value)

    def __gt__(self, value: Any) -> Comparison:
        return Comparison(self, ">", value)

    def __ge__(self, value: Any) -> Comparison:
        return Comparison(self, ">=", value)

    def in_(self, values: Iterable[Any]) -> Membership:
        return Membership(self, values)

    def contains(self, text: str) -> FunctionCall:
        return FunctionCall("CONTAINS", self, text)

    def startswith(self, text: str) -> FunctionCall:
        return FunctionCall("STARTSWITH", self, text)

    def is_defined(self) -> FunctionCall:
        return FunctionCall("IS_DEFINED", self)


def field(path: str | Sequence[str]) -> FieldRef:
    """Reference a field by dotted path, e.g. ``field("company_profile.domain")``."""
    return FieldRef(path)


@dataclass(frozen=True, eq=False)
class Comparison(Expression):
    field: FieldRef
    operator: str
    value: Any


@dataclass(frozen=True, eq=False)
class Membership(Expression):
    field: FieldRef
    values: Any


@dataclass(frozen=True, eq=False)
class FunctionCall(Expression):
    name: str
    field: FieldRef
    argument: Any = None


@dataclass(frozen=True, eq=False)
class And(Expression):
    left: Expression
    right: Expression


@dataclass(frozen=True, eq=False)
class Or(Expression):
    left: Expression
    right: Expression


@dataclass(frozen=True, eq=False)
class Not(Expression):
    operand: Expression


@dataclass(frozen=True)
class CompiledQuery:
    """SQL text plus the parameter list expected by ``query_items``."""

    text: str
    parameters: list[dict[str, Any]] = dataclass_field(default_factory=list)


def compile_query(
    expression: Expression,
    entity_type: type[BaseModel] | None = None,
    serializer: DocumentSerializer | None = None,
) -> CompiledQuery:
    """Compile ``expression`` into ``SELECT * FROM c WHERE ...``.

    When ``entity_type`` is given, field paths are resolved against the model
    (python names or aliases) and rendered with their wire names; unknown
    fields are rejected.
    """
    compiler = _Compiler(entity_type, serializer or DocumentSerializer())
    return compiler.compile(expression)


def _require_expression(value: Any) -> Expression:
    if not isinstance(value, Expression):
        raise QueryTranslationError(
            f"Cannot combine a query expression with {type(value).__name__}"
        )
    return value


class _Compiler:
    def __init__(self, entity_type: type[BaseModel] | None, serializer: DocumentSerializer):
        self._entity_type = entity_type
        self._serializer = serializer
        self._parameters: list[dict[str, Any]] = []

    def compile(self, expression: Expression) -> CompiledQuery:
        if not isinstance(expression, Expression):
            raise QueryTranslationError(
                f"Expected a query expression, got {type(expression).__name__}"
            )
        where = self._visit(expression)
        return CompiledQuery(f"SELECT * FROM c WHERE {where}", self._parameters)

    def _visit(self, node: Expression) -> str:
        if isinstance(node, And):
            return f"({self._visit(node.left)} AND {self._visit(node.right)})"
        if isinstance(node, Or):
            return f"({self._visit(node.left)} OR {self._visit(node.right)})"
        if isinstance(node, Not):
            return f"(NOT {self._visit(node.operand)})"
        if isinstance(node, Comparison):
            return self._comparison(node)
        if isinstance(node, Membership):
            return self._membership(node)
        if isinstance(node, FunctionCall):
            return self._function(node)
        raise QueryTranslationError(f"Unsupported expression node: {type(node).__name__}")

    def _comparison(self, node: Comparison) -> str:
        if node.operator not in _COMPARISON_OPERATORS:
            raise QueryTranslationError(f"Unsupported operator: {node.operator!r}")

        path = self._path(node.field)

        if isinstance(node.value, FieldRef):
            return f"{path} {node.operator} {self._path(node.value)}"

        if node.value is None:
            # Nulls are omitted on write, so a missing property counts as null.
            if node.operator == "=":
                return f"(NOT IS_DEFINED({path}) OR IS_NULL({path}))"
            if node.operator == "!=":
                return f"(IS_DEFINED({path}) AND NOT IS_NULL({path}))"
            raise QueryTranslationError(
                f"Cannot order {'.'.join(node.field.path)} against None"
            )

        if node.operator in _ORDERING_OPERATORS and isinstance(node.value, bool):
            raise QueryTranslationError("Ordering comparisons on booleans are not supported")

        return f"{path} {node.operator} {self._bind(node.value)}"

    def _membership(self, node: Membership) -> str:
        values = node.values
        if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
            raise QueryTranslationError(
                f"in_() expects a collection of values, got {type(values).__name__}"
            )
        values = list(values)
        if not values:
            raise QueryTranslationError(
                f"in_() on {'.'.join(node.field.path)} needs at least one value"
            )
        if any(v is None for v in values):
            raise QueryTranslationError("in_() does not accept None; compare with == None")
        path = self._path(node.field)
        return f"ARRAY_CONTAINS({self._bind_list(values)}, {path})"

    def _function(self, node: FunctionCall) -> str:
        path = self._path(node.field)
        if node.name == "IS_DEFINED":
            return f"IS_DEFINED({path})"
        if node.name in ("CONTAINS", "STARTSWITH"):
            if not isinstance(node.argument, str):
                raise QueryTranslationError(
                    f"{node.name.lower()}() expects a string, got {type(node.argument).__name__}"
                )
            return f"{node.name}({path}, {self._bind(node.argument)})"
        raise QueryTranslationError(f"Unsupported function: {node.name}")

    def _bind(self, value: Any) -> str:
        name = f"@p{len(self._parameters)}"
        self._parameters.append({"name": name, "value": self._scalar(value)})
        return name

    def _bind_list(self, values: list[Any]) -> str:
        name = f"@p{len(self._parameters)}"
        self._parameters.append({"name": name, "value": [self._scalar(v) for v in values]})
        return name

    def _scalar(self, value: Any) -> Any:
        if isinstance(value, (Expression, BaseModel, dict, list, tuple, set, frozenset)):
            raise QueryTranslationError(
                f"Unsupported comparison value of type {type(value).__name__}"
            )
        try:
            return self._serializer.to_wire_value(value)
        except SerializationError as e:
            raise QueryTranslationError(
                f"Unsupported comparison value of type {type(value).__name__}"
            ) from e

    def _path(self, ref: FieldRef) -> str:
        if not isinstance(ref, FieldRef):
            raise QueryTranslationError(f"Expected a field reference, got {type(ref).__name__}")
        segments = _wire_path(self._entity_type, ref.path)
        return "c" + "".join(f"[{json.dumps(segment)}]" for segment in segments)


def _wire_path(model: type[BaseModel] | None, path: tuple[str, ...]) -> list[str]:
    segments: list[str] = []
    for segment in path:
        if model is None:
            segments.append(segment)
            continue

        match = _find_field(model, segment)
        if match is None:
            raise QueryTranslationError(f"{model.__name__} has no field {segment!r}")
        name, info = match
        segments.append(field_wire_name(name, info))
        model = _nested_model(info.annotation)
    return segments


def _find_field(model: type[BaseModel], segment: str) -> tuple[str, Any] | None:
    for name, info in model.model_fields.items():
        if segment in (name, field_wire_name(name, info)):
            return name, info
    return None


def _nested_model(annotation: Any) -> type[BaseModel] | None:
    if inspect.isclass(annotation) and issubclass(annotation, BaseModel):
        return annotation
    if get_origin(annotation) in (Union, types.UnionType):
        models = [a for a in get_args(annotation) if inspect.isclass(a) and issubclass(a, BaseModel)]
        if len(models) == 1:
            return models[0]
    return None
