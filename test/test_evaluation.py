__copyright__ = "Copyright (C) 2024 gpuwss contributors"

__license__ = """
Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in
all copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN
THE SOFTWARE.
"""

import sys

import pytest

import pymbolic.primitives as p
from pymbolic import evaluate as pymbolic_evaluate

import gpuwss
from gpuwss import BoundMode

from testlib import loop_row, make_loops, make_resolver, tokens


def _eval(stream, **kwargs):
    tree = gpuwss.build_binary_tree(tokens(stream))
    return gpuwss.evaluate(tree, make_resolver(**kwargs))


@pytest.mark.parametrize(("stream", "expected"), [
    ("7 3 SUB", 4),
    ("1 3 SHL", 8),
    ("3 1 SHL", 6),
    ("16 2 LSHR", 4),
    ("5 6 OR", 11),
    ("12 10 AND", 8),
    ("-7 2 SDIV", -3),
    ("7 2 UDIV", 3),
    ("7 2 DIV", 3),
    ("-7 2 SREM", -1),
    ("BDIMX BDIMY MUL", 64),
    ])
def test_concrete_operations(stream, expected):
    assert _eval(stream, block_dim=(32, 2)) == expected


def test_signed_64_bit_wraparound():
    assert _eval("9223372036854775807 1 ADD") == -9223372036854775808
    assert _eval("4294967296 4294967296 MUL") == 0


def test_division_by_zero():
    with pytest.raises(gpuwss.ArithmeticDomainError):
        _eval("1 0 SDIV")
    with pytest.raises(gpuwss.ArithmeticDomainError):
        _eval("1 64 SHL")


def test_idempotent_evaluation():
    tree = gpuwss.build_binary_tree(tokens("ARG0 ARG1 MUL 3 ADD"))
    resolver = make_resolver(args={0: 6, 1: 7})

    first = gpuwss.evaluate(tree, resolver)
    second = gpuwss.evaluate(tree, resolver)
    assert first == second == 45


def test_non_terminal_operand():
    with pytest.raises(gpuwss.NonTerminalOperand):
        _eval("ARG0 LOAD ADD", args={0: 1})


def test_unsupported_operator():
    with pytest.raises(gpuwss.UnsupportedOperator):
        _eval("1 2 ICMP")


# {{{ resolution

def test_unresolved_terminal():
    with pytest.raises(gpuwss.UnresolvedTerminal):
        _eval("TIDX 1 ADD")
    with pytest.raises(gpuwss.UnresolvedTerminal):
        _eval("ARG3")

    assert _eval("TIDX 1 ADD", unknowns={"TIDX": 3}) == 4
    assert _eval("ARG3", args={3: 5}, unknowns={"ARG3": 9}) == 9


def test_runtime_values_are_deferred():
    result = _eval("ARG0 2 MUL 1 ADD", args={0: "n"})
    assert not isinstance(result, int)
    assert pymbolic_evaluate(result, {"n": 5}) == 11


def test_constant_propagation_through_origin():
    source = gpuwss.ConstantBinding(12)
    forwarded = gpuwss.RuntimeBinding(p.Variable("tmp"), origin=source)
    assert _eval("ARG0 2 MUL", args={0: forwarded}) == 24

    opaque = gpuwss.RuntimeBinding(p.Variable("tmp"),
            origin=gpuwss.RuntimeBinding(p.Variable("n")))
    assert _eval("ARG0", args={0: opaque}) == p.Variable("n")


def test_grid_dim_at_iteration_zero():
    resolver = make_resolver(
            grid_dim=(p.Variable("i") + 2, 1),
            args={1: gpuwss.LoopVariableBinding("i", initial=3, final=10)})
    assert resolver.grid_dim_at_iteration_zero(0) == 5
    assert resolver.grid_dim_at_iteration_zero(1) == 1

    resolver = make_resolver(grid_dim=("gx", 1))
    assert resolver.grid_dim_at_iteration_zero(0) == p.Variable("gx")

# }}}


# {{{ extremal evaluation of binary trees

def _interval(stream, mode, loops=None, loop_id=0, **kwargs):
    tree = gpuwss.build_binary_tree(tokens(stream))
    evaluator = gpuwss.IntervalEvaluator(make_resolver(**kwargs), mode,
            loops=loops, loop_id=loop_id)
    return evaluator(tree)


def test_thread_and_block_extremes():
    stream = "BIDX BDIMX MUL TIDX ADD"
    assert _interval(stream, BoundMode.MAX) == 3*32 + 31
    assert _interval(stream, BoundMode.MIN) == 0

    stream = "BIDY 100 MUL TIDY ADD"
    assert _interval(stream, BoundMode.MAX,
            block_dim=(8, 4), grid_dim=(2, 3)) == 2*100 + 3

    tree = gpuwss.build_binary_tree(tokens("BIDX BDIMX MUL TIDX ADD"))
    assert gpuwss.working_set_size(tree, make_resolver()) == 127


def test_phi_without_loop_is_one():
    assert _interval("PHI 4 MUL", BoundMode.MAX) == 4
    assert _interval("PHI 4 MUL", BoundMode.MIN) == 4


def test_binary_phi_merge():
    loops = make_loops([loop_row(1, "0", "10")])
    stream = "ARG0 PHI 4 ADD PHI"

    assert _interval(stream, BoundMode.MAX, loops=loops, loop_id=1,
            args={0: 2}) == 14
    assert _interval(stream, BoundMode.MIN, loops=loops, loop_id=1,
            args={0: 2}) == 2


@pytest.mark.parametrize("stream", [
    "TIDX",
    "BIDX BDIMX MUL TIDX ADD 4 MUL",
    "TIDX 2 SHL ARG0 ADD",
    "BIDY BIDX ADD 3 MUL 1 SUB",
    "TIDX BIDX OR",
    "100 TIDX SUB",
    ])
def test_working_set_not_negative(stream):
    kwargs = {"args": {0: 17}, "grid_dim": (5, 6)}
    hi = _interval(stream, BoundMode.MAX, **kwargs)
    lo = _interval(stream, BoundMode.MIN, **kwargs)

    tree = gpuwss.build_binary_tree(tokens(stream))
    size = gpuwss.working_set_size(tree, make_resolver(**kwargs))
    assert size >= 0
    assert size == abs(hi - lo)

# }}}


# {{{ n-ary trees

def _nary(stream, mode, loops=None, loop_id=0, **kwargs):
    tree = gpuwss.build_nary_tree(tokens(stream))
    evaluator = gpuwss.NaryIntervalEvaluator(make_resolver(**kwargs), mode,
            loops=loops, loop_id=loop_id)
    return evaluator(tree)


def test_nary_gep_drops_base():
    stream = "( LOAD ( GEP ( ARG0 ) ( TIDX ) ( 4 ) ) )"
    assert _nary(stream, BoundMode.MAX, args={0: 1000}) == 31 + 4
    assert _nary(stream, BoundMode.MIN, args={0: 1000}) == 4


def test_nary_casts_and_select():
    stream = "( ZEXT ( FREEZE ( SELECT ( ICMP ( TIDX ) ( 3 ) ) ( 7 ) ( TIDX ) ) ) )"
    assert _nary(stream, BoundMode.MAX) == 31
    assert _nary(stream, BoundMode.MIN) == 0


def test_nary_multi_operand_arithmetic():
    stream = "( ADD ( TIDX ) ( MUL ( BIDX ) ( BDIMX ) ( 2 ) ) ( 1 ) )"
    assert _nary(stream, BoundMode.MAX) == 31 + 3*32*2 + 1
    assert _nary(stream, BoundMode.MIN) == 1


def test_nary_unsupported_operator():
    with pytest.raises(gpuwss.UnsupportedOperator):
        _nary("( GEP ( ARG0 ) ( CALL ( TIDX ) ) )", BoundMode.MAX)


def test_nary_reverse_index():
    tree = gpuwss.build_nary_tree(
            tokens("( LOAD ( GEP ( ARG0 ) ( SUB ( 100 ) ( TIDX ) ) ) )"))
    assert gpuwss.working_set_size(tree, make_resolver(args={0: 0})) == 31


def test_nary_phi_drift():
    loops = make_loops([loop_row(1, "0", "ARG1")],
            phi_loop_rows=[{"phi_id": 1, "loop_id": 1}],
            args={1: 10})
    stream = "( LOAD ( GEP ( ARG0 ) ( PHI1 ( 0 ) ( ADD ( PHI1 ) ( 4 ) ) ) ) )"
    kwargs = {"args": {0: 0, 1: 10}}

    assert _nary(stream, BoundMode.MAX, loops=loops, **kwargs) == 40
    assert _nary(stream, BoundMode.MIN, loops=loops, **kwargs) == 0

    tree = gpuwss.build_nary_tree(tokens(stream))
    assert gpuwss.working_set_size(tree, make_resolver(**kwargs),
            loops=loops) == 40


def test_nary_phi_decreasing_drift():
    loops = make_loops([loop_row(1, "0", "8")])
    stream = "( PHI ( 100 ) ( ADD ( PHI ) ( -2 ) ) )"

    assert _nary(stream, BoundMode.MAX, loops=loops, loop_id=1) == 100
    assert _nary(stream, BoundMode.MIN, loops=loops, loop_id=1) == 84


def test_nary_unsupported_phi_chain():
    loops = make_loops([loop_row(1, "0", "8")])
    with pytest.raises(gpuwss.UnsupportedPhiChain):
        _nary("( PHI ( 1 ) ( MUL ( PHI ) ( 2 ) ) )", BoundMode.MAX,
                loops=loops, loop_id=1)

# }}}


if __name__ == "__main__":
    if len(sys.argv) > 1:
        exec(sys.argv[1])
    else:
        from pytest import main
        main([__file__])

# vim: foldmethod=marker
