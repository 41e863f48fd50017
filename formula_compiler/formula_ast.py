import numbers
from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum
from logging import getLogger
from typing import Any, Dict, Iterable, List, Tuple, Union

from .bytecode import (Instruction, binary_op, call, call_vararg, jump,
                       jump_if_zero, load_const, load_item)
from .errors import ArityMismatchError, CompileError, UnboundFunctionError, UnboundIdentifierError
from .opcodes import Opcode

logger = getLogger(__name__)


class BinaryOperator(Enum):
    LESS_THAN = '<'
    LESS_EQUAL = '<='
    GREATER_EQUAL = '>='
    GREATER_THAN = '>'
    EQUAL = '=='
    ADD = '+'
    SUB = '-'
    MULTIPLY = '*'
    DIVIDE = '/'
    REMAINDER = '%'


# operator to opcode mapping
binary_opcodes = {
    BinaryOperator.LESS_THAN: Opcode.OP_LT,
    BinaryOperator.LESS_EQUAL: Opcode.OP_LE,
    BinaryOperator.GREATER_EQUAL: Opcode.OP_GE,
    BinaryOperator.GREATER_THAN: Opcode.OP_GT,
    BinaryOperator.EQUAL: Opcode.OP_EQ,
    BinaryOperator.ADD: Opcode.OP_ADD,
    BinaryOperator.SUB: Opcode.OP_MINUS,
    BinaryOperator.MULTIPLY: Opcode.OP_MULT,
    BinaryOperator.DIVIDE: Opcode.OP_DIV,
    BinaryOperator.REMAINDER: Opcode.OP_MOD,
}

# utility functions


def walk_ast(node: '_Expression'):
    if isinstance(node, _Expression):
        yield node
        for child in node.get_children():
            yield from walk_ast(child)

#
# Define AST
#


class _Expression:
    """Base of the five expression node kinds.

    Nodes are immutable. Equality is structural and ignores the line and
    column carried for diagnostics, so equal trees can share compiled
    bytecode.
    """

    @abstractmethod
    def emit_bytecode(self, env, bc: List[Instruction]) -> None:
        """Append this node's instructions to ``bc``.

        Afterwards the top of the evaluation stack holds the node's value.
        Raises CompileError if a name cannot be resolved.
        """
        raise NotImplementedError(
            f"emit_bytecode not implemented for {self.__class__.__name__}")

    @abstractmethod
    def values_equal(self, other: '_Expression') -> bool:
        raise NotImplementedError(
            f"values_equal not implemented for {self.__class__.__name__}")

    @abstractmethod
    def structure(self) -> tuple:
        """Position-free nested tuple describing the tree, used for hashing."""
        raise NotImplementedError(
            f"structure not implemented for {self.__class__.__name__}")

    @abstractmethod
    def to_formula(self) -> str:
        raise NotImplementedError(
            f"to_formula not implemented for {self.__class__.__name__}")

    def get_children(self):
        return iter(())

    def __eq__(self, other):
        if not isinstance(other, _Expression):
            return NotImplemented
        return self.values_equal(other)

    def __hash__(self):
        return hash(self.structure())


@dataclass(frozen=True, eq=False)
class Constant(_Expression):
    value: float

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, numbers.Real):
            raise TypeError(f"Constant value must be a real number, not {type(self.value).__name__}")
        object.__setattr__(self, 'value', float(self.value))

    def emit_bytecode(self, env, bc: List[Instruction]) -> None:
        bc.append(load_const(self.value))

    def values_equal(self, other: _Expression) -> bool:
        return type(other) is Constant and other.value == self.value

    def structure(self) -> tuple:
        return (Constant, self.value)

    def to_formula(self) -> str:
        text = repr(self.value)
        return text[:-2] if text.endswith('.0') else text


@dataclass(frozen=True, eq=False)
class Identifier(_Expression):
    name: str
    line: int = 1
    column: int = 1

    def __post_init__(self):
        if not self.name:
            raise ValueError("Identifier name must not be empty")

    def emit_bytecode(self, env, bc: List[Instruction]) -> None:
        index = env.resolve_variable(self.name)
        if index is None:
            raise UnboundIdentifierError(self.line, self.column, self.name)
        bc.append(load_item(index))

    def values_equal(self, other: _Expression) -> bool:
        return type(other) is Identifier and other.name == self.name

    def structure(self) -> tuple:
        return (Identifier, self.name)

    def to_formula(self) -> str:
        return self.name


@dataclass(frozen=True, eq=False)
class Call(_Expression):
    function: str
    arguments: Tuple['Expression', ...] = ()
    line: int = 1
    column: int = 1

    def __post_init__(self):
        object.__setattr__(self, 'arguments', tuple(self.arguments))

    def emit_bytecode(self, env, bc: List[Instruction]) -> None:
        # Arguments go on the stack last-first so the callee pops them in order.
        # They are emitted before the lookup and the arity check.
        for argument in reversed(self.arguments):
            argument.emit_bytecode(env, bc)

        resolved = env.resolve_function(self.function)
        if resolved is None:
            raise UnboundFunctionError(self.line, self.column, self.function)
        index, signature = resolved

        expected_args = signature.expected_args
        if expected_args is None:
            bc.append(call_vararg(index, len(self.arguments), self.line, self.column))
            return

        if len(self.arguments) != expected_args:
            raise ArityMismatchError(self.line, self.column, self.function,
                                     expected_args, len(self.arguments))

        bc.append(call(index, self.line, self.column))

    def values_equal(self, other: _Expression) -> bool:
        if type(other) is not Call or other.function != self.function:
            return False
        if len(other.arguments) != len(self.arguments):
            return False
        return all(mine.values_equal(theirs)
                   for mine, theirs in zip(self.arguments, other.arguments))

    def structure(self) -> tuple:
        return (Call, self.function, tuple(argument.structure() for argument in self.arguments))

    def to_formula(self) -> str:
        arguments = ", ".join(argument.to_formula() for argument in self.arguments)
        return f"{self.function}({arguments})"

    def get_children(self):
        return iter(self.arguments)


@dataclass(frozen=True, eq=False)
class BinaryOperation(_Expression):
    left: 'Expression'
    operator: BinaryOperator
    right: 'Expression'

    def __post_init__(self):
        # accepts the source symbol as well as the enum member
        object.__setattr__(self, 'operator', BinaryOperator(self.operator))

    def emit_bytecode(self, env, bc: List[Instruction]) -> None:
        # Right operand first: the machine pops the left operand first.
        self.right.emit_bytecode(env, bc)
        self.left.emit_bytecode(env, bc)
        bc.append(binary_op(binary_opcodes[self.operator]))

    def values_equal(self, other: _Expression) -> bool:
        return (type(other) is BinaryOperation
                and other.operator == self.operator
                and self.left.values_equal(other.left)
                and self.right.values_equal(other.right))

    def structure(self) -> tuple:
        return (BinaryOperation, self.operator, self.left.structure(), self.right.structure())

    def to_formula(self) -> str:
        return f"({self.left.to_formula()} {self.operator.value} {self.right.to_formula()})"

    def get_children(self):
        return iter((self.left, self.right))


@dataclass(frozen=True, eq=False)
class Conditional(_Expression):
    condition: 'Expression'
    when_true: 'Expression'
    when_false: 'Expression'

    def emit_bytecode(self, env, bc: List[Instruction]) -> None:
        # Bytecode structure:
        #   <condition>
        #   JUMP_IF_ZERO len(true path)
        #   <when_true>
        #   JUMP len(false path)
        #   <when_false>
        # Both branches are emitted into scratch lists first so the offsets
        # are known before the jumps are written.
        false_path = []
        self.when_false.emit_bytecode(env, false_path)

        true_path = []
        self.when_true.emit_bytecode(env, true_path)
        true_path.append(jump(len(false_path)))

        self.condition.emit_bytecode(env, bc)
        bc.append(jump_if_zero(len(true_path)))
        bc.extend(true_path)
        bc.extend(false_path)

    def values_equal(self, other: _Expression) -> bool:
        return (type(other) is Conditional
                and self.condition.values_equal(other.condition)
                and self.when_true.values_equal(other.when_true)
                and self.when_false.values_equal(other.when_false))

    def structure(self) -> tuple:
        return (Conditional, self.condition.structure(),
                self.when_true.structure(), self.when_false.structure())

    def to_formula(self) -> str:
        return (f"if({self.condition.to_formula()}, "
                f"{self.when_true.to_formula()}, {self.when_false.to_formula()})")

    def get_children(self):
        return iter((self.condition, self.when_true, self.when_false))


Expression = Union[Constant, Identifier, Call, BinaryOperation, Conditional]

#
# Compiler driver
#


def compile(tree: Expression, env) -> List[Instruction]:
    """Compile one expression tree to bytecode.

    Args:
        tree: expression node to compile
        env: object providing resolve_variable(name) and resolve_function(name)

    Returns:
        A fresh instruction list. On CompileError nothing is returned; the
        partially built list is dropped.
    """
    bc = []
    try:
        tree.emit_bytecode(env, bc)
    except CompileError as e:
        logger.debug("compile failed: %s", e)
        raise
    logger.debug("compiled %s to %d instructions", type(tree).__name__, len(bc))
    return bc


def _has_positions(tree: Expression) -> bool:
    """Calls are the only nodes whose bytecode records a source position."""
    return any(isinstance(node, Call) for node in walk_ast(tree))


def compile_many(trees: Iterable[Expression], env) -> List[List[Instruction]]:
    """Compile independent trees, reusing bytecode for structurally equal ones.

    Trees containing calls are always compiled on their own so every call
    instruction carries its own node's line and column.
    """
    cache: Dict[Any, List[Instruction]] = {}
    result = []
    for tree in trees:
        if _has_positions(tree):
            result.append(compile(tree, env))
            continue
        if tree not in cache:
            cache[tree] = compile(tree, env)
        result.append(list(cache[tree]))
    return result
