"""Name resolution for the formula compiler.

The compiler only ever calls ``resolve_variable`` and ``resolve_function``;
any object providing those two methods can stand in for ``Environment``.
"""
import inspect
from enum import Enum
from logging import getLogger
from typing import Any, Callable, Dict, List, Optional, Tuple

from attr import define, field

logger = getLogger(__name__)

# function indices are encoded in a fixed-width operand
MAX_FUNCTIONS = 512


class Arity(Enum):
    SINGLE = 1
    DOUBLE = 2
    TRIPLE = 3
    VARARG = None


_ARITY_BY_COUNT = {
    1: Arity.SINGLE,
    2: Arity.DOUBLE,
    3: Arity.TRIPLE,
}


@define(frozen=True)
class FunctionSignature:
    arity: Arity
    function: Callable[..., Any]

    @property
    def expected_args(self) -> Optional[int]:
        """Exact argument count, or None when the function is variadic."""
        return self.arity.value

    @property
    def is_vararg(self) -> bool:
        return self.arity is Arity.VARARG


def infer_arity(fn: Callable[..., Any]) -> Arity:
    """Classify a Python callable by its positional parameters.

    ``*args`` makes it variadic; otherwise it needs exactly one, two or
    three required positional parameters. Required keyword-only parameters
    can never be filled by a formula call and are rejected.
    """
    try:
        parameters = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError) as e:
        raise ValueError(f"Cannot infer arity of {fn!r}; pass arity explicitly.") from e
    required = 0
    vararg = False
    for parameter in parameters:
        if parameter.kind is inspect.Parameter.KEYWORD_ONLY \
                and parameter.default is inspect.Parameter.empty:
            raise ValueError(
                f"{getattr(fn, '__name__', fn)!r} has required keyword-only parameter {parameter.name!r}.")
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            vararg = True
            continue
        if parameter.kind in (inspect.Parameter.POSITIONAL_ONLY,
                              inspect.Parameter.POSITIONAL_OR_KEYWORD) \
                and parameter.default is inspect.Parameter.empty:
            required += 1
    if vararg:
        return Arity.VARARG
    if required not in _ARITY_BY_COUNT:
        raise ValueError(
            f"{getattr(fn, '__name__', fn)!r} takes {required} positional arguments; "
            "only 1, 2, 3 or *args are supported.")
    return _ARITY_BY_COUNT[required]


@define
class Environment:
    """Variable slots and function table a formula is compiled against."""
    _variables: Dict[str, int] = field(factory=dict)
    _function_names: Dict[str, int] = field(factory=dict)  # name: function index
    _functions: List[FunctionSignature] = field(factory=list)

    def add_variable(self, name: str) -> int:
        """Register a variable and return its slot.

        If the variable already exists, returns the existing slot.
        """
        if not name:
            raise ValueError("Variable name must not be empty.")
        if name not in self._variables:
            self._variables[name] = len(self._variables)
            logger.debug("variable %s -> slot %d", name, self._variables[name])
        return self._variables[name]

    def add_function(self, fn: Callable[..., Any], name: Optional[str] = None,
                     arity: Optional[Arity] = None) -> int:
        """Register a callable and return its function index.

        Registering an existing name replaces the callable but keeps its index.
        """
        name = name or fn.__name__
        if not name:
            raise ValueError("Function name must not be empty.")
        if arity is None:
            arity = infer_arity(fn)
        signature = FunctionSignature(arity=arity, function=fn)
        if name in self._function_names:
            index = self._function_names[name]
            self._functions[index] = signature
        else:
            if len(self._functions) >= MAX_FUNCTIONS:
                raise ValueError(f"Cannot register more than {MAX_FUNCTIONS} functions.")
            index = len(self._functions)
            self._function_names[name] = index
            self._functions.append(signature)
        logger.debug("function %s -> index %d (%s)", name, index, arity.name)
        return index

    def function(self, name: Optional[str] = None, arity: Optional[Arity] = None):
        """Decorator form of add_function."""
        def register(fn):
            self.add_function(fn, name=name, arity=arity)
            return fn
        return register

    def resolve_variable(self, name: str) -> Optional[int]:
        return self._variables.get(name)

    def resolve_function(self, name: str) -> Optional[Tuple[int, FunctionSignature]]:
        index = self._function_names.get(name)
        if index is None:
            return None
        return index, self._functions[index]

    def function_by_index(self, index: int) -> FunctionSignature:
        return self._functions[index]

    @property
    def variable_names(self) -> List[str]:
        return sorted(self._variables, key=self._variables.__getitem__)

    def __contains__(self, name):
        return name in self._variables or name in self._function_names
