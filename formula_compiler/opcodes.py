"""Formula bytecode opcodes"""

from enum import Enum


class Opcode(Enum):
    OP_LOAD_CONST = 1  # push a float constant
    OP_LOAD_ITEM = 2  # push a variable slot
    OP_CALL = 3  # fixed-arity function call
    OP_CALL_VARARG = 4  # function call, argument count in the instruction
    OP_LT = 5  # comparison binary ops:
    OP_LE = 6
    OP_GE = 7
    OP_GT = 8
    OP_EQ = 9
    OP_ADD = 10  # arith binary ops:
    OP_MINUS = 11
    OP_MULT = 12
    OP_DIV = 13
    OP_MOD = 14
    OP_JUMP_IF_ZERO = 15  # control flow, relative forward offsets:
    OP_JUMP = 16


BINARY_OPCODES = frozenset({
    Opcode.OP_LT,
    Opcode.OP_LE,
    Opcode.OP_GE,
    Opcode.OP_GT,
    Opcode.OP_EQ,
    Opcode.OP_ADD,
    Opcode.OP_MINUS,
    Opcode.OP_MULT,
    Opcode.OP_DIV,
    Opcode.OP_MOD,
})

JUMP_OPCODES = frozenset({Opcode.OP_JUMP_IF_ZERO, Opcode.OP_JUMP})


def is_binary_op(opcode: Opcode) -> bool:
    """Binary ops pop two operands and push one result."""
    return opcode in BINARY_OPCODES


def is_jump(opcode: Opcode) -> bool:
    return opcode in JUMP_OPCODES
