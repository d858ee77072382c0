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
from dataclasses import FrozenInstanceError

import pytest

import pymbolic.primitives as p

import gpuwss
from gpuwss import BinaryExpressionTree, BinaryOp, IntegerKind, OpKind
from gpuwss.diagnostic import warn_with_kernel
from gpuwss.emit import combine, fold_binary_op, promote
from gpuwss.expression import NodeArena

from testlib import tokens


# {{{ tree queries

def test_traversal_orders():
    tree = gpuwss.build_binary_tree(tokens("ARG0 TIDX 4 MUL ADD"))

    assert tree.postorder() == [0, 1, 2, 3, 4]
    assert tree.preorder() == [4, 0, 3, 1, 2]
    assert tree.postorder(3) == [1, 2, 3]
    assert list(tree.ancestors(1)) == [(1, 3), (3, 4)]


def test_searches():
    tree = gpuwss.build_binary_tree(tokens("ARG0 TIDX 4 MUL ADD ARG1 ADD"))

    assert tree.find(OpKind.MUL) == 3
    assert tree.find(OpKind.LOAD) is None
    assert tree.find_all(OpKind.ARG) == [0, 5]
    assert tree.find_all(OpKind.ARG, arg=1) == [5]
    assert tree.count(OpKind.ADD) == 2
    assert tree.contains(OpKind.TIDX)
    assert not tree.contains(OpKind.BIDX)

    def is_tidx(node):
        return node.kind == OpKind.TIDX

    assert tree.subtree_contains(3, is_tidx)
    assert not tree.subtree_contains(0, is_tidx)


def test_nodes_are_immutable():
    tree = gpuwss.build_binary_tree(tokens("TIDX 1 ADD"))
    with pytest.raises(FrozenInstanceError):
        tree.node(0).parent = None


def test_sentinels():
    pc = BinaryExpressionTree.make_sentinel(OpKind.POINTER_CHASE)
    assert pc.is_sentinel and pc.is_pointer_chase and not pc.is_incomplete

    incomplete = gpuwss.NaryExpressionTree.make_sentinel(OpKind.INCOMPLETE)
    assert incomplete.is_sentinel and incomplete.is_incomplete

    assert not BinaryExpressionTree.constant(3).is_sentinel

# }}}


# {{{ arena

def test_binary_arity_is_checked():
    arena = NodeArena()
    tidx = arena.add(OpKind.TIDX, "TIDX")
    root = arena.add(OpKind.ADD, "ADD", children=(tidx,))

    with pytest.raises(gpuwss.MalformedExpression):
        arena.freeze(BinaryExpressionTree, root)

    tree = arena.freeze(gpuwss.NaryExpressionTree, root)
    assert tree.children(root) == (tidx,)


def test_single_parent():
    arena = NodeArena()
    tidx = arena.add(OpKind.TIDX, "TIDX")
    arena.add(OpKind.LOAD, "LOAD", children=(tidx,))

    with pytest.raises(gpuwss.MalformedExpression):
        arena.add(OpKind.ZEXT, "ZEXT", children=(tidx,))


def test_combine_requires_operation():
    tree = BinaryExpressionTree.constant(1)
    with pytest.raises(ValueError):
        BinaryExpressionTree.combine(OpKind.GEP, tree, tree)

# }}}


# {{{ pymbolic rendering

def _render(stream, nary=False):
    build = gpuwss.build_nary_tree if nary else gpuwss.build_binary_tree
    return gpuwss.to_pymbolic(build(tokens(stream)))


def test_to_pymbolic():
    arg0 = p.Variable("arg0")
    tidx = p.Variable("tidx")

    assert _render("ARG0 TIDX 4 MUL ADD") == p.Sum(
            (arg0, p.Product((tidx, 4))))
    assert _render("ARG1 2 SUB") == p.Sum(
            (p.Variable("arg1"), p.Product((-1, 2))))
    assert _render("ARG0 3 SHL") == p.LeftShift(arg0, 3)
    assert _render("ARG0 TIDX OR") == p.BitwiseOr((arg0, tidx))
    assert _render("( PHI2 )", nary=True) == p.Variable("phi2")
    assert _render("( LOAD ( GEP ( ARG0 ) ( TIDX ) ) )", nary=True) == p.Call(
            p.Variable("load"),
            (p.Call(p.Variable("gep"), (arg0, tidx)),))


def test_str():
    tree = gpuwss.build_nary_tree(tokens("( GEP ( ARG0 ) ( BIDX ) )"))
    assert "gep" in str(tree)
    assert "bidx" in str(tree)
    assert repr(tree).startswith("NaryExpressionTree(")

# }}}


# {{{ emitters

@pytest.mark.parametrize(("op", "a", "b", "expected"), [
    (BinaryOp.LSHR, -1, 60, 15),
    (BinaryOp.SREM, 7, -2, 1),
    (BinaryOp.SDIV, 7, -2, -3),
    (BinaryOp.UDIV, -2, 2, 2**63 - 1),
    (BinaryOp.AND, 12, 10, 8),
    (BinaryOp.MAX, -3, 2, 2),
    (BinaryOp.MIN, -3, 2, -3),
    ])
def test_fold_binary_op(op, a, b, expected):
    assert fold_binary_op(op, a, b) == expected


def test_fold_32_bit():
    kind = IntegerKind.INT32
    assert fold_binary_op(BinaryOp.ADD, 2**31 - 1, 1, kind) == -2**31

    with pytest.raises(gpuwss.ArithmeticDomainError):
        fold_binary_op(BinaryOp.SHL, 1, 32, kind)


def test_deferred_combine():
    n = p.Variable("n")

    assert combine(BinaryOp.MAX, n, 3) == p.Max((n, 3))
    assert combine(BinaryOp.ADD, 2, 3) == 5
    assert promote(2**63) == -2**63
    assert promote(n) is n


class _CountingEmitter(gpuwss.PymbolicEmitter):
    def __init__(self):
        self.count = 0

    def emit_binary_op(self, op, a, b):
        self.count += 1
        return super().emit_binary_op(op, a, b)


def test_custom_emitter():
    emitter = _CountingEmitter()
    resolver = gpuwss.ValueResolver(
            gpuwss.make_invocation("k", ("bx", 1), 4, invocation_id=1),
            emitter=emitter)

    tree = gpuwss.build_binary_tree(tokens("BDIMX 2 MUL 2 ADD"))
    gpuwss.evaluate(tree, resolver)
    assert emitter.count == 2

    emitter.count = 0
    gpuwss.evaluate(gpuwss.build_binary_tree(tokens("2 3 MUL")), resolver)
    assert emitter.count == 0

# }}}


def test_warn_with_kernel(recwarn):
    with pytest.warns(gpuwss.GpuWssWarning, match="in kernel k"):
        warn_with_kernel("k", "some_id", "text")

    warn_with_kernel("k", "some_id", "text",
            gpuwss.Options(silenced_warnings=["some_*"]))
    assert not [w for w in recwarn
            if issubclass(w.category, gpuwss.GpuWssWarning)]


if __name__ == "__main__":
    if len(sys.argv) > 1:
        exec(sys.argv[1])
    else:
        from pytest import main
        main([__file__])

# vim: foldmethod=marker
