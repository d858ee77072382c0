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

from dataclasses import dataclass
from enum import Enum

import pymbolic.primitives as p

from gpuwss.diagnostic import MalformedExpression


__doc__ = """
.. currentmodule:: gpuwss.expression

.. autoclass:: OpFamily
.. autoclass:: OpKind
.. autoclass:: ExprNode
.. autoclass:: ExpressionTree
.. autoclass:: BinaryExpressionTree
.. autoclass:: NaryExpressionTree
.. autoclass:: NodeArena

.. autofunction:: to_pymbolic

.. data:: OPERATOR_TOKENS

    Maps the text of every non-numeric, non-prefixed token to its
    :class:`OpKind`.
"""


# {{{ operator vocabulary

class OpFamily(Enum):
    """
    .. attribute:: TERMINAL

        Leaves whose value comes from substitution.

    .. attribute:: OPERATION

        Arithmetic with two operands in the binary tree form.

    .. attribute:: STRUCTURAL

        Address computation, memory operations, casts and everything else
        that is opaque to arithmetic evaluation.
    """
    TERMINAL = 0
    OPERATION = 1
    STRUCTURAL = 2


class OpKind(Enum):
    # terminals
    CONST = "CONST"
    ARG = "ARG"
    PHI_TERM = "PHI_TERM"
    TIDX = "TIDX"
    TIDY = "TIDY"
    BIDX = "BIDX"
    BIDY = "BIDY"
    BDIMX = "BDIMX"
    BDIMY = "BDIMY"
    INCOMPLETE = "INCOMP"

    # operations
    ADD = "ADD"
    SUB = "SUB"
    AND = "AND"
    OR = "OR"
    MUL = "MUL"
    DIV = "DIV"
    UDIV = "UDIV"
    SDIV = "SDIV"
    SREM = "SREM"
    SHL = "SHL"
    LSHR = "LSHR"
    PHI = "PHI"
    ICMP = "ICMP"
    FCMP = "FCMP"
    FMUL = "FMUL"
    FDIV = "FDIV"

    # structural
    POINTER_CHASE = "PC"
    GEP = "GEP"
    LOAD = "LOAD"
    STORE = "STORE"
    ZEXT = "ZEXT"
    SEXT = "SEXT"
    TRUNC = "TRUNC"
    FREEZE = "FREEZE"
    FPTOSI = "FPTOSI"
    UITOFP = "UITOFP"
    SITOFP = "SITOFP"
    DOUBLE = "double"
    SELECT = "SELECT"
    CALL = "CALL"
    ATOMICRMW = "ATOMICRMW"
    UNDEF = "UNDEF"
    UNKNOWN = "UNKNOWN"

    @property
    def family(self):
        if self in TERMINAL_KINDS:
            return OpFamily.TERMINAL
        elif self in OPERATION_KINDS:
            return OpFamily.OPERATION
        else:
            return OpFamily.STRUCTURAL

    @property
    def is_terminal(self):
        return self in TERMINAL_KINDS

    @property
    def is_operation(self):
        return self in OPERATION_KINDS


TERMINAL_KINDS = frozenset({
    OpKind.CONST, OpKind.ARG, OpKind.PHI_TERM,
    OpKind.TIDX, OpKind.TIDY, OpKind.BIDX, OpKind.BIDY,
    OpKind.BDIMX, OpKind.BDIMY, OpKind.INCOMPLETE,
    })

OPERATION_KINDS = frozenset({
    OpKind.ADD, OpKind.SUB, OpKind.AND, OpKind.OR, OpKind.MUL,
    OpKind.DIV, OpKind.UDIV, OpKind.SDIV, OpKind.SREM,
    OpKind.SHL, OpKind.LSHR, OpKind.PHI,
    OpKind.ICMP, OpKind.FCMP, OpKind.FMUL, OpKind.FDIV,
    })

# Structural kinds that wrap exactly one value without changing it, as far as
# integer range estimation is concerned.
PASS_THROUGH_KINDS = frozenset({
    OpKind.LOAD, OpKind.ZEXT, OpKind.SEXT, OpKind.TRUNC, OpKind.FREEZE,
    OpKind.FPTOSI, OpKind.UITOFP, OpKind.SITOFP, OpKind.DOUBLE,
    })

AXIS_INDEX_KINDS = frozenset({
    OpKind.TIDX, OpKind.TIDY, OpKind.BIDX, OpKind.BIDY,
    })

OPERATOR_TOKENS = {
        kind.value: kind for kind in OpKind
        if kind not in (OpKind.CONST, OpKind.ARG, OpKind.PHI_TERM,
            OpKind.PHI)}

# }}}


# {{{ nodes and trees

@dataclass(frozen=True)
class ExprNode:
    """
    .. attribute:: index

        Position of this node in the arena of its tree.

    .. attribute:: kind

        An :class:`OpKind`.

    .. attribute:: text

        The token this node was built from.

    .. attribute:: value

        The parsed literal for :attr:`OpKind.CONST` nodes, else *None*.

    .. attribute:: arg

        The formal argument index for :attr:`OpKind.ARG` nodes, the phi id
        (if the token carried one) for phi nodes, else *None*.

    .. attribute:: children

        A :class:`tuple` of child indices.

    .. attribute:: parent

        Index of the parent node, *None* for the root.
    """
    index: int
    kind: OpKind
    text: str
    value: int | None = None
    arg: int | None = None
    children: tuple[int, ...] = ()
    parent: int | None = None


class NodeArena:
    """Mutable staging area in which a tree's nodes are allocated before
    being frozen into an :class:`ExpressionTree`.
    """

    def __init__(self):
        self._records = []
        self._children = []
        self._parents = []

    def __len__(self):
        return len(self._records)

    def add(self, kind, text, value=None, arg=None, children=()):
        index = len(self._records)
        self._records.append((kind, text, value, arg))
        self._children.append([])
        self._parents.append(None)
        for child in children:
            self.append_child(index, child)
        return index

    def append_child(self, parent, child):
        if self._parents[child] is not None:
            raise MalformedExpression(
                    f"node '{self._records[child][1]}' already has a parent")
        self._children[parent].append(child)
        self._parents[child] = parent

    def kind(self, index):
        return self._records[index][0]

    def children(self, index):
        return tuple(self._children[index])

    def set_kind(self, index, kind):
        _, text, value, arg = self._records[index]
        self._records[index] = (kind, text, value, arg)

    def copy_tree(self, tree):
        """Append copies of all nodes of *tree*, returning the new index of
        its root.
        """
        offset = len(self._records)
        for node in tree.nodes:
            self.add(node.kind, node.text, node.value, node.arg)
        for node in tree.nodes:
            for child in node.children:
                self.append_child(node.index + offset, child + offset)
        return tree.root + offset

    def freeze(self, tree_cls, root):
        nodes = tuple(
                ExprNode(
                    index=i, kind=kind, text=text, value=value, arg=arg,
                    children=tuple(self._children[i]),
                    parent=self._parents[i])
                for i, (kind, text, value, arg) in enumerate(self._records))
        return tree_cls(nodes, root)


class ExpressionTree:
    """An immutable arena of :class:`ExprNode` instances.

    .. attribute:: nodes
    .. attribute:: root

    .. automethod:: node
    .. automethod:: children
    .. automethod:: parent
    .. automethod:: ancestors
    .. automethod:: postorder
    .. automethod:: preorder
    .. automethod:: find_all
    .. automethod:: find
    .. automethod:: count
    .. automethod:: contains
    .. automethod:: subtree_contains
    """

    def __init__(self, nodes, root):
        self.nodes = tuple(nodes)
        self.root = root

        if not 0 <= root < len(self.nodes):
            raise MalformedExpression(f"root index {root} out of range")
        if self.nodes[root].parent is not None:
            raise MalformedExpression("root node has a parent")

        self.check()

    def check(self):
        pass

    def __len__(self):
        return len(self.nodes)

    def node(self, index):
        return self.nodes[index]

    def children(self, index):
        return self.nodes[index].children

    def parent(self, index):
        return self.nodes[index].parent

    def ancestors(self, index):
        """Yield *(child, parent)* index pairs walking from *index* up to the
        root.
        """
        current = index
        parent = self.nodes[current].parent
        while parent is not None:
            yield current, parent
            current = parent
            parent = self.nodes[current].parent

    def postorder(self, start=None):
        """Return node indices such that each node follows all of its
        children, children in order.
        """
        if start is None:
            start = self.root

        result = []
        stack = [(start, False)]
        while stack:
            index, expanded = stack.pop()
            if expanded:
                result.append(index)
            else:
                stack.append((index, True))
                for child in reversed(self.nodes[index].children):
                    stack.append((child, False))
        return result

    def preorder(self, start=None):
        if start is None:
            start = self.root

        result = []
        stack = [start]
        while stack:
            index = stack.pop()
            result.append(index)
            stack.extend(reversed(self.nodes[index].children))
        return result

    def find_all(self, kind, arg=None, start=None):
        return [i for i in self.preorder(start)
                if self.nodes[i].kind == kind
                and (arg is None or self.nodes[i].arg == arg)]

    def find(self, kind, arg=None, start=None):
        found = self.find_all(kind, arg, start)
        return found[0] if found else None

    def count(self, kind):
        return sum(1 for node in self.nodes if node.kind == kind)

    def contains(self, kind):
        return any(node.kind == kind for node in self.nodes)

    def subtree_contains(self, index, predicate):
        return any(predicate(self.nodes[i]) for i in self.preorder(index))

    @property
    def is_pointer_chase(self):
        return self.nodes[self.root].kind == OpKind.POINTER_CHASE

    @property
    def is_incomplete(self):
        return self.nodes[self.root].kind == OpKind.INCOMPLETE

    @property
    def is_sentinel(self):
        return len(self.nodes) == 1 and (
                self.is_pointer_chase or self.is_incomplete)

    @classmethod
    def make_sentinel(cls, kind):
        arena = NodeArena()
        root = arena.add(kind, kind.value)
        return arena.freeze(cls, root)

    def __str__(self):
        return str(to_pymbolic(self))

    def __repr__(self):
        return f"{type(self).__name__}({self})"


class BinaryExpressionTree(ExpressionTree):
    """Tree built from a postfix token stream. Every operation node has
    exactly two children, all other nodes are leaves.

    .. automethod:: combine
    """

    def check(self):
        for node in self.nodes:
            expected = 2 if node.kind.is_operation else 0
            if len(node.children) != expected:
                raise MalformedExpression(
                        f"'{node.text}' has {len(node.children)} operands, "
                        f"expected {expected}")

    @classmethod
    def combine(cls, kind, left, right):
        """Return a new tree with an operation node of *kind* whose operands
        are copies of the trees *left* and *right*.
        """
        if not kind.is_operation:
            raise ValueError(f"'{kind}' is not an operation")

        arena = NodeArena()
        left_root = arena.copy_tree(left)
        right_root = arena.copy_tree(right)
        root = arena.add(kind, kind.value, children=(left_root, right_root))
        return arena.freeze(cls, root)

    @classmethod
    def constant(cls, value):
        arena = NodeArena()
        root = arena.add(OpKind.CONST, str(value), value=value)
        return arena.freeze(cls, root)


class NaryExpressionTree(ExpressionTree):
    """Tree built from a parenthesized prefix token stream. Children form an
    ordered list of arbitrary length. A phi node without children refers to
    the loop-carried value and is stored as :attr:`OpKind.PHI_TERM`.
    """

# }}}


# {{{ pymbolic rendering

_PYMBOLIC_MULTI = {
        OpKind.ADD: p.Sum,
        OpKind.MUL: p.Product,
        OpKind.AND: p.BitwiseAnd,
        OpKind.OR: p.BitwiseOr,
        }

_PYMBOLIC_BINARY = {
        OpKind.SHL: p.LeftShift,
        OpKind.LSHR: p.RightShift,
        OpKind.DIV: p.FloorDiv,
        OpKind.UDIV: p.FloorDiv,
        OpKind.SDIV: p.FloorDiv,
        OpKind.SREM: p.Remainder,
        }


def _terminal_to_pymbolic(node):
    if node.kind == OpKind.CONST:
        return node.value
    elif node.kind == OpKind.ARG:
        return p.Variable(f"arg{node.arg}")
    elif node.kind == OpKind.PHI_TERM:
        return p.Variable("phi" if node.arg is None else f"phi{node.arg}")
    else:
        return p.Variable(node.kind.name.lower())


def to_pymbolic(tree):
    """Render *tree* as a :mod:`pymbolic` expression. Axis terminals become
    variables (``tidx``, ``arg0``, ``phi3``, ...), nodes without an
    arithmetic counterpart become calls (``gep(arg0, tidx)``).
    """
    result = {}
    for index in tree.postorder():
        node = tree.node(index)
        children = tuple(result[c] for c in node.children)

        if node.kind.is_terminal:
            expr = _terminal_to_pymbolic(node)
        elif node.kind in _PYMBOLIC_MULTI and len(children) >= 2:
            expr = _PYMBOLIC_MULTI[node.kind](children)
        elif node.kind == OpKind.SUB and len(children) == 2:
            expr = p.Sum((children[0], p.Product((-1, children[1]))))
        elif node.kind in _PYMBOLIC_BINARY and len(children) == 2:
            expr = _PYMBOLIC_BINARY[node.kind](*children)
        elif not children:
            expr = p.Variable(node.kind.name.lower())
        else:
            expr = p.Call(p.Variable(node.kind.name.lower()), children)

        result[index] = expr

    return result[tree.root]

# }}}


# vim: foldmethod=marker
