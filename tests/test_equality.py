import math
from fractions import Fraction

import pytest
from hypothesis import given
from hypothesis import strategies as st

from formula_compiler.bytecode import jump_targets
from formula_compiler.environment import Arity, Environment
from formula_compiler.formula_ast import (BinaryOperation, BinaryOperator, Call, Conditional, Constant,
                                          Identifier, compile, walk_ast)

NAMES = ["a", "b", "c"]

positions = st.integers(min_value=1, max_value=500)
constants = st.builds(Constant, st.floats(allow_nan=False))
identifiers = st.builds(Identifier, st.sampled_from(NAMES), positions, positions)


def extend(children):
    return st.one_of(
        st.builds(BinaryOperation, children, st.sampled_from(list(BinaryOperator)), children),
        st.builds(Conditional, children, children, children),
        st.builds(Call, st.just("neg"), st.tuples(children), positions, positions),
        st.builds(Call, st.just("sum"), st.lists(children, max_size=4), positions, positions),
    )


trees = st.recursive(constants | identifiers, extend, max_leaves=12)


def make_env():
    env = Environment()
    for name in NAMES:
        env.add_variable(name)
    env.add_function(lambda x: -x, name="neg")
    env.add_function(lambda *xs: sum(xs), name="sum")
    return env


def moved(node):
    """Copy of the tree with every source position shifted."""
    if isinstance(node, Identifier):
        return Identifier(node.name, node.line + 1, node.column + 3)
    if isinstance(node, Call):
        return Call(node.function, [moved(a) for a in node.arguments], node.line + 2, node.column + 1)
    if isinstance(node, BinaryOperation):
        return BinaryOperation(moved(node.left), node.operator, moved(node.right))
    if isinstance(node, Conditional):
        return Conditional(moved(node.condition), moved(node.when_true), moved(node.when_false))
    return Constant(node.value)


@given(trees)
def test_equality_is_reflexive(tree):
    assert tree.values_equal(tree)
    assert tree == tree


@given(trees)
def test_equality_ignores_positions(tree):
    other = moved(tree)
    assert tree == other
    assert hash(tree) == hash(other)


@given(trees)
def test_compile_is_deterministic(tree):
    env = make_env()
    assert compile(tree, env) == compile(tree, env)


@given(trees)
def test_jumps_stay_inside_bytecode(tree):
    bytecode = compile(tree, make_env())
    jumps = jump_targets(bytecode)
    conditionals = [node for node in walk_ast(tree) if isinstance(node, Conditional)]
    assert len(jumps) == 2 * len(conditionals)


@given(trees)
def test_to_formula_matches_equality(tree):
    assert tree.to_formula() == moved(tree).to_formula()


def test_identifier_positions_ignored():
    assert Identifier("x", 1, 1) == Identifier("x", 10, 42)
    assert Identifier("x") != Identifier("y")


def test_constant_equality_is_exact():
    assert Constant(0.1 + 0.2) != Constant(0.3)
    assert Constant(0.5) == Constant(0.5)
    assert Constant(2) == Constant(2.0)
    assert Constant(0.0) == Constant(-0.0)


def test_nan_constant_is_never_equal():
    assert not Constant(math.nan).values_equal(Constant(math.nan))


def test_variants_never_equal():
    assert Constant(1) != Identifier("1")
    assert Identifier("f") != Call("f")
    assert Constant(1) != 1.0


def test_operator_matters():
    a = BinaryOperation(Constant(1), "-", Constant(2))
    assert a == BinaryOperation(Constant(1), BinaryOperator.SUB, Constant(2))
    assert a != BinaryOperation(Constant(1), "+", Constant(2))
    assert a != BinaryOperation(Constant(2), "-", Constant(1))


def test_call_arguments_compared_in_order():
    assert Call("f", [Constant(1), Constant(2)]) == Call("f", (Constant(1), Constant(2)), 9, 9)
    assert Call("f", [Constant(1), Constant(2)]) != Call("f", [Constant(2), Constant(1)])
    assert Call("f", [Constant(1)]) != Call("f", [Constant(1), Constant(1)])
    assert Call("f", [Constant(1)]) != Call("g", [Constant(1)])


def test_conditional_branches_compared():
    base = Conditional(Identifier("a"), Constant(1), Constant(2))
    assert base == Conditional(Identifier("a", 5, 5), Constant(1), Constant(2))
    assert base != Conditional(Identifier("a"), Constant(2), Constant(1))


def test_equal_trees_share_cache_slot():
    cache = {Call("f", [Identifier("x", 1, 3)]): "compiled"}
    assert cache[Call("f", [Identifier("x", 8, 1)])] == "compiled"


def test_nodes_are_immutable():
    node = Identifier("x")
    with pytest.raises(AttributeError):
        node.name = "y"


def test_construction_checks():
    with pytest.raises(ValueError):
        Identifier("")
    with pytest.raises(ValueError):
        BinaryOperation(Constant(1), "**", Constant(2))
    with pytest.raises(TypeError):
        Constant(True)
    with pytest.raises(TypeError):
        Constant("1e3")
    with pytest.raises(TypeError):
        Constant("nan")
    with pytest.raises(TypeError):
        Constant(None)


def test_constant_accepts_any_real():
    assert Constant(Fraction(1, 4)) == Constant(0.25)
    assert type(Constant(Fraction(1, 4)).value) is float


def test_to_formula():
    tree = Conditional(BinaryOperation(Identifier("a"), "<=", Constant(2)),
                       Call("max", [Identifier("b"), Constant(0.5)]),
                       Call("now"))
    assert tree.to_formula() == "if((a <= 2), max(b, 0.5), now())"


def test_walk_ast_preorder():
    tree = BinaryOperation(Call("f", [Identifier("a")]), "+", Constant(1))
    assert [type(node).__name__ for node in walk_ast(tree)] == [
        "BinaryOperation", "Call", "Identifier", "Constant"]
