from enum import IntEnum


class CompileErrorKind(IntEnum):
    """Compile error codes."""
    E_UNBOUND_IDENTIFIER = 1
    E_UNBOUND_FUNCTION = 2
    E_ARITY = 3


class CompileError(Exception):
    """Raised when a formula cannot be lowered to bytecode.

    Carries the 1-based line and column of the offending node so the
    message can be shown to the formula author as-is.
    """
    def __init__(self, kind: CompileErrorKind, line: int, column: int, message: str = ''):
        self.kind = kind
        self.line = line
        self.column = column
        self.message = message or kind.name
        super().__init__(self.message)

    def __str__(self):
        return f"line {self.line}, column {self.column}: {self.message}"


class NotFoundError(CompileError):
    """A name could not be resolved by the environment."""

    def __init__(self, kind: CompileErrorKind, line: int, column: int, name: str, message: str = ''):
        self.name = name
        super().__init__(kind, line, column, message)


class UnboundIdentifierError(NotFoundError):

    def __init__(self, line: int, column: int, name: str):
        super().__init__(CompileErrorKind.E_UNBOUND_IDENTIFIER, line, column, name,
                         f"identifier not found: {name}")


class UnboundFunctionError(NotFoundError):

    def __init__(self, line: int, column: int, name: str):
        super().__init__(CompileErrorKind.E_UNBOUND_FUNCTION, line, column, name,
                         f"function not found: {name}")


class ArityMismatchError(CompileError):

    def __init__(self, line: int, column: int, name: str, expected: int, actual: int):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(CompileErrorKind.E_ARITY, line, column,
                         f"invalid num args for {name}: expected {expected}, got {actual}")
