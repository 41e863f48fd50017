"""Bytecode instructions emitted by the formula compiler.

An instruction is a plain record: the opcode plus whatever payload the
stack machine needs to execute it. Jump offsets count instructions to skip,
relative to the instruction right after the jump.
"""
from typing import Any, List, Optional, Sequence

from attr import define

from .opcodes import Opcode, is_jump


@define(frozen=True)
class Instruction:
    opcode: Opcode
    # constant value, slot index, function index or jump offset
    operand: Any = None
    num_args: Optional[int] = None  # OP_CALL_VARARG only
    line: Optional[int] = None
    column: Optional[int] = None

    def __str__(self):
        if self.opcode is Opcode.OP_CALL_VARARG:
            return f"{self.opcode.name} {self.operand} argc={self.num_args} @{self.line}:{self.column}"
        if self.opcode is Opcode.OP_CALL:
            return f"{self.opcode.name} {self.operand} @{self.line}:{self.column}"
        if self.operand is None:
            return self.opcode.name
        return f"{self.opcode.name} {self.operand}"


def load_const(value: float) -> Instruction:
    return Instruction(opcode=Opcode.OP_LOAD_CONST, operand=value)


def load_item(index: int) -> Instruction:
    return Instruction(opcode=Opcode.OP_LOAD_ITEM, operand=index)


def call(func_index: int, line: int, column: int) -> Instruction:
    return Instruction(opcode=Opcode.OP_CALL, operand=func_index, line=line, column=column)


def call_vararg(func_index: int, num_args: int, line: int, column: int) -> Instruction:
    return Instruction(opcode=Opcode.OP_CALL_VARARG, operand=func_index,
                       num_args=num_args, line=line, column=column)


def binary_op(opcode: Opcode) -> Instruction:
    return Instruction(opcode=opcode)


def jump_if_zero(offset: int) -> Instruction:
    return Instruction(opcode=Opcode.OP_JUMP_IF_ZERO, operand=offset)


def jump(offset: int) -> Instruction:
    return Instruction(opcode=Opcode.OP_JUMP, operand=offset)


def jump_targets(bytecode: Sequence[Instruction]) -> List[int]:
    """Return the absolute target index of every jump in ``bytecode``.

    A target equal to ``len(bytecode)`` means execution falls off the end,
    which is legal. Anything past that raises ValueError.
    """
    targets = []
    for index, instruction in enumerate(bytecode):
        if not is_jump(instruction.opcode):
            continue
        target = index + 1 + instruction.operand
        if target > len(bytecode):
            raise ValueError(
                f"jump at {index} targets {target}, past end of {len(bytecode)} instructions")
        targets.append(target)
    return targets


def disassemble(bytecode: Sequence[Instruction]) -> str:
    lines = []
    for index, instruction in enumerate(bytecode):
        line = f"{index:4d} {instruction}"
        if is_jump(instruction.opcode):
            line += f" (-> {index + 1 + instruction.operand})"
        lines.append(line)
    return "\n".join(lines)
