"""
Arithmetic expressions over named parameters, backed by :mod:`sympy`.

Expressions are parsed once into a sympy tree. Evaluation compiles the tree
with :func:`sympy.lambdify` into a numpy function and applies it to whole
per-trial vectors at once, which is equivalent to evaluating the expression
trial by trial with a ``{name: value}`` binding table.

Every identifier that is not immediately followed by ``(`` is a variable, so
names such as ``E``, ``I``, ``N`` or ``beta`` bind to parameters rather than to
sympy's constants and functions. ``pi`` is the only named constant. ``^`` is
exponentiation.
"""

from __future__ import annotations

import re
import threading
from tokenize import TokenError
from typing import Callable, Dict, FrozenSet, Mapping, Optional, Sequence

import numpy as np
import sympy
from sympy.parsing.sympy_parser import convert_xor, parse_expr, standard_transformations

from .exceptions import ExpressionSyntaxError, UnresolvedVariableError

_IDENTIFIER = re.compile(r"\b([A-Za-z_]\w*)\b(?!\s*\()")
_CONSTANTS = {"pi": sympy.pi}
_TRANSFORMATIONS = standard_transformations + (convert_xor,)


class Expression:
    """A parsed arithmetic expression with vectorised evaluation."""

    def __init__(self, tree: sympy.Expr, text: Optional[str] = None) -> None:
        self._tree = tree
        self._text = text if text is not None else sympy.sstr(tree)
        self._symbols = tuple(sorted(tree.free_symbols, key=lambda symbol: symbol.name))
        self._compiled: Optional[Callable[..., object]] = None
        self._lock = threading.Lock()

    @property
    def tree(self) -> sympy.Expr:
        return self._tree

    @property
    def text(self) -> str:
        return self._text

    @property
    def free_names(self) -> FrozenSet[str]:
        """Names of the variables the expression references."""
        return frozenset(symbol.name for symbol in self._symbols)

    def references(self, name: str) -> bool:
        return name in self.free_names

    def _function(self) -> Callable[..., object]:
        # Compiled lazily; several worker threads may race here
        with self._lock:
            if self._compiled is None:
                self._compiled = sympy.lambdify(self._symbols, self._tree, modules="numpy")
            return self._compiled

    def _arguments(self, bindings: Mapping[str, object]) -> list:
        missing = [symbol.name for symbol in self._symbols if symbol.name not in bindings]
        if missing:
            raise UnresolvedVariableError(
                f"Expression '{self._text}' references unbound variable(s): {', '.join(missing)}"
            )
        return [bindings[symbol.name] for symbol in self._symbols]

    def evaluate(self, bindings: Mapping[str, Sequence[float]], count: Optional[int] = None) -> np.ndarray:
        """Evaluate once per trial over equally long binding vectors.

        Parameters
        ----------
        bindings:
            Mapping of variable name to a per-trial vector. Extra names are ignored.
        count:
            Trial count; inferred from the bindings when omitted.
        """
        vectors = {name: np.asarray(values, dtype=np.float64) for name, values in bindings.items()}
        if count is None:
            lengths = {vector.shape[0] for vector in vectors.values() if vector.ndim}
            if len(lengths) > 1:
                raise ValueError(f"Binding vectors have differing lengths: {sorted(lengths)}")
            count = lengths.pop() if lengths else 1
        arguments = self._arguments(vectors)
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            output = self._function()(*arguments)
        output = np.asarray(output, dtype=np.float64)
        return np.array(np.broadcast_to(output, (count,)), dtype=np.float64)

    def evaluate_scalar(self, bindings: Mapping[str, float]) -> float:
        arguments = [float(value) for value in self._arguments(bindings)]
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            return float(self._function()(*arguments))

    def rename(self, old: str, new: str) -> "Expression":
        """Return a copy with every reference to variable ``old`` rebound to ``new``."""
        if old == new or not self.references(old):
            return self
        renamed = self._tree.xreplace({sympy.Symbol(old): sympy.Symbol(new)})
        return Expression(renamed)

    def __str__(self) -> str:
        return self._text

    def __repr__(self) -> str:
        return f"Expression({self._text!r})"


def parse_expression(text: "str | Expression") -> Expression:
    """Parse infix ``text`` into an :class:`Expression`.

    Raises
    ------
    ExpressionSyntaxError
        If the text is empty or is not a single arithmetic expression.
    """
    if isinstance(text, Expression):
        return text
    if not isinstance(text, str) or not text.strip():
        raise ExpressionSyntaxError("Expression text must be a non-empty string.")
    local_dict: Dict[str, object] = {}
    for name in _IDENTIFIER.findall(text):
        local_dict[name] = _CONSTANTS[name] if name in _CONSTANTS else sympy.Symbol(name)
    try:
        tree = parse_expr(text, local_dict=local_dict, transformations=_TRANSFORMATIONS, evaluate=False)
    except (SyntaxError, TokenError, TypeError, ValueError) as exc:
        raise ExpressionSyntaxError(f"Cannot parse expression '{text}': {exc}") from exc
    if not isinstance(tree, sympy.Expr):
        raise ExpressionSyntaxError(f"'{text}' is not an arithmetic expression.")
    return Expression(tree, text.strip())


__all__ = ["Expression", "parse_expression"]
