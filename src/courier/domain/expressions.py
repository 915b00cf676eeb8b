"""Expression abstraction used to derive request parts and replies.

Expressions are evaluated against a context object: the incoming
``Message`` when building a request, the ``HttpResponse`` when extracting
the reply. Only a small dotted-path syntax is understood here; hosts that
need a richer language can pass their own ``Expression`` implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, Callable


class ExpressionError(Exception):
    """Expression could not be evaluated against its context."""

    pass


class Expression(ABC):
    """Base class for expressions"""

    @abstractmethod
    def evaluate(self, context: Any) -> Any:
        """Evaluate the expression

        Args:
            context: Object the expression is applied to

        Returns:
            Computed value

        Raises:
            ExpressionError: If evaluation fails
        """
        pass


class LiteralExpression(Expression):
    """Expression that always yields the same value"""

    def __init__(self, value: Any):
        self.value = value

    def evaluate(self, context: Any) -> Any:
        return self.value

    def __repr__(self) -> str:
        return f"LiteralExpression({self.value!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, LiteralExpression) and other.value == self.value

    def __hash__(self) -> int:
        return hash(("literal", repr(self.value)))


class PathExpression(Expression):
    """Dotted path into the context, e.g. ``payload.items.0.id``.

    Each segment is looked up as a mapping key, then as a sequence index,
    then as an attribute.
    """

    def __init__(self, path: str):
        segments = [s.strip() for s in path.strip().split(".")]
        if not path.strip() or any(not s for s in segments):
            raise ExpressionError(f"Invalid path expression: {path!r}")
        self.path = path.strip()
        self.segments = segments

    def evaluate(self, context: Any) -> Any:
        value = context
        for i, segment in enumerate(self.segments):
            try:
                value = _lookup(value, segment)
            except LookupError as e:
                resolved = ".".join(self.segments[:i]) or "<root>"
                raise ExpressionError(
                    f"Cannot resolve '{segment}' on {resolved} in expression '{self.path}'"
                ) from e
        return value

    def __repr__(self) -> str:
        return f"PathExpression({self.path!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, PathExpression) and other.path == self.path

    def __hash__(self) -> int:
        return hash(("path", self.path))


class ResponseBodyExpression(Expression):
    """Selects the body of an HTTP response; the default reply expression"""

    def evaluate(self, context: Any) -> Any:
        try:
            return context.body
        except AttributeError as e:
            raise ExpressionError(f"Context has no body: {type(context).__name__}") from e

    def __repr__(self) -> str:
        return "SELECT_BODY"


SELECT_BODY = ResponseBodyExpression()


class CallableExpression(Expression):
    """Adapts a plain callable ``fn(context) -> value``"""

    def __init__(self, fn: Callable[[Any], Any]):
        self.fn = fn

    def evaluate(self, context: Any) -> Any:
        return self.fn(context)

    def __repr__(self) -> str:
        return f"CallableExpression({getattr(self.fn, '__name__', self.fn)!r})"


def parse_expression(text: str) -> Expression:
    """Parse expression text from configuration

    Args:
        text: Dotted path (``"body"`` selects the response body)

    Returns:
        Parsed expression

    Raises:
        ExpressionError: If the text is not a valid path
    """
    if text.strip() == "body":
        return SELECT_BODY
    return PathExpression(text)


def _lookup(value: Any, segment: str) -> Any:
    if isinstance(value, Mapping):
        if segment in value:
            return value[segment]
        raise KeyError(segment)
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        try:
            return value[int(segment)]
        except ValueError as e:
            raise KeyError(segment) from e
    try:
        return getattr(value, segment)
    except AttributeError as e:
        raise KeyError(segment) from e
