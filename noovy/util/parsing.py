"""
Ordered parse strategies for upstream payloads that come in more than one shape.

Each strategy either returns a typed value or raises WrongShape (pydantic
ValidationErrors are converted). Strategies are tried in order and the first
match wins; if none match, WrongShape lists every mismatch.
"""
from typing import Any, Callable, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from noovy.util.exceptions import WrongShape

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

ParseStrategy = Callable[[Any], T]


def model_strategy(model: type[M]) -> ParseStrategy[M]:
    def parse(data: Any) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise WrongShape(f"not a {model.__name__}: {e.error_count()} errors") from e

    parse.__name__ = model.__name__
    return parse


def type_strategy(tp: type[T]) -> ParseStrategy[T]:
    adapter = TypeAdapter(tp)

    def parse(data: Any) -> T:
        try:
            return adapter.validate_python(data, strict=True)
        except ValidationError as e:
            raise WrongShape(f"not a {tp.__name__}") from e

    parse.__name__ = tp.__name__
    return parse


def parse_first(data: Any, strategies: list[ParseStrategy[T]]) -> T:
    mismatches: list[str] = []
    for strategy in strategies:
        try:
            return strategy(data)
        except WrongShape as e:
            mismatches.append(f"{getattr(strategy, '__name__', 'strategy')}: {e}")
    raise WrongShape("; ".join(mismatches) or "no parse strategies")
