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

import logging
from enum import Enum

from gpuwss.coefficient import phi_increment_path, phi_terms_of_merge
from gpuwss.diagnostic import (
        IncomputableLoop, NonTerminalOperand, UnresolvedTerminal,
        UnsupportedOperator, UnsupportedPhiChain)
from gpuwss.emit import BinaryOp, combine
from gpuwss.expression import (
        PASS_THROUGH_KINDS, BinaryExpressionTree, NaryExpressionTree, OpKind)


logger = logging.getLogger(__name__)


__doc__ = """
.. currentmodule:: gpuwss

.. autoclass:: BoundMode
.. autoclass:: ConcreteEvaluator
.. autoclass:: IntervalEvaluator
.. autoclass:: NaryIntervalEvaluator

.. autofunction:: evaluate
.. autofunction:: working_set_size
"""


class BoundMode(Enum):
    """
    .. attribute:: MIN
    .. attribute:: MAX
    """
    MIN = 0
    MAX = 1

    @property
    def extremum(self):
        return BinaryOp.MIN if self == BoundMode.MIN else BinaryOp.MAX


# ``or`` is used to pack offsets into aligned pointers and is treated as
# addition throughout.
OPERATION_TO_BINARY_OP = {
        OpKind.ADD: BinaryOp.ADD,
        OpKind.OR: BinaryOp.ADD,
        OpKind.SUB: BinaryOp.SUB,
        OpKind.MUL: BinaryOp.MUL,
        OpKind.AND: BinaryOp.AND,
        OpKind.SHL: BinaryOp.SHL,
        OpKind.LSHR: BinaryOp.LSHR,
        OpKind.DIV: BinaryOp.UDIV,
        OpKind.UDIV: BinaryOp.UDIV,
        OpKind.SDIV: BinaryOp.SDIV,
        OpKind.SREM: BinaryOp.SREM,
        }


class _OpaqueOperand:
    def __init__(self, node):
        self.node = node


# {{{ postfix evaluation of binary trees

class PostfixEvaluatorBase:
    """Evaluates a :class:`~gpuwss.expression.BinaryExpressionTree` (or a
    subtree of it) by reducing its postfix order with a value stack.
    Subclasses decide how terminals and phi merges are valued.

    .. automethod:: __call__
    """

    def __init__(self, resolver):
        self.resolver = resolver

    @property
    def emitter(self):
        return self.resolver.emitter

    def map_terminal(self, tree, index):
        raise NotImplementedError

    def reduce_phi(self, tree, index, a, b):
        raise NotImplementedError

    def reduce(self, tree, index, a, b):
        node = tree.node(index)
        if node.kind == OpKind.PHI:
            return self.reduce_phi(tree, index, a, b)

        try:
            op = OPERATION_TO_BINARY_OP[node.kind]
        except KeyError:
            raise UnsupportedOperator(
                    f"'{node.text}' has no integer value") from None

        return combine(op, a, b, self.emitter)

    def __call__(self, tree, start=None):
        if not isinstance(tree, BinaryExpressionTree):
            raise TypeError(f"{type(self).__name__} evaluates binary trees, "
                    f"got '{type(tree).__name__}'")

        stack = []
        for index in tree.postorder(start):
            node = tree.node(index)

            if node.kind.is_operation:
                b = stack.pop()
                a = stack.pop()
                for operand in (a, b):
                    if isinstance(operand, _OpaqueOperand):
                        raise NonTerminalOperand(
                                f"'{operand.node.text}' is not reducible as "
                                f"operand of '{node.text}'")
                stack.append(self.reduce(tree, index, a, b))

            elif node.kind.is_terminal:
                stack.append(self.map_terminal(tree, index))

            else:
                stack.append(_OpaqueOperand(node))

        result, = stack
        if isinstance(result, _OpaqueOperand):
            raise NonTerminalOperand(
                    f"'{result.node.text}' is not reducible to a value")
        return result


class ConcreteEvaluator(PostfixEvaluatorBase):
    """Evaluates with every terminal resolved by the
    :class:`~gpuwss.ValueResolver`. Thread and block indices and phi values
    have no concrete value.
    """

    def map_terminal(self, tree, index):
        return self.resolver.resolve(tree, index)

    def reduce_phi(self, tree, index, a, b):
        raise UnresolvedTerminal(
                f"phi merge '{tree.node(index).text}' has no concrete value")

# }}}


# {{{ extremal terminal substitution

class ExtremalTerminalMixin:
    """Values axis terminals at the extreme of their range. In
    :attr:`BoundMode.MIN`, thread and block indices are zero and a phi term
    takes its loop's initial value. In :attr:`BoundMode.MAX`, thread
    indices are one less than the block dimension, block indices one less
    than the grid dimension at host iteration zero, and a phi term takes
    its loop's final value. Phi terms outside any loop are valued 1.

    Loop bounds and counts come from :attr:`loops`, a
    :class:`~gpuwss.LoopAccounting` or *None*.
    """

    def loop_for_phi(self, phi_id):
        if self.loops is None:
            return self.loop_id
        return self.loops.loop_for_phi(phi_id, default=self.loop_id)

    def map_terminal(self, tree, index):
        node = tree.node(index)
        resolver = self.resolver

        if node.text in resolver.unknowns:
            return resolver.unknowns[node.text]

        is_max = self.mode == BoundMode.MAX

        if node.kind in (OpKind.TIDX, OpKind.TIDY):
            if not is_max:
                return 0
            axis = 0 if node.kind == OpKind.TIDX else 1
            return combine(BinaryOp.SUB, resolver.block_dim(axis), 1,
                    self.emitter)

        elif node.kind in (OpKind.BIDX, OpKind.BIDY):
            if not is_max:
                return 0
            axis = 0 if node.kind == OpKind.BIDX else 1
            return combine(BinaryOp.SUB,
                    resolver.grid_dim_at_iteration_zero(axis), 1, self.emitter)

        elif node.kind == OpKind.PHI_TERM:
            loop_id = self.loop_for_phi(node.arg)
            if loop_id == 0:
                return 1
            if self.loops is None:
                raise UnresolvedTerminal(
                        f"'{node.text}' refers to loop {loop_id}, "
                        "but no loop information is available")
            if is_max:
                return self.loops.upper_bound(loop_id)
            else:
                return self.loops.lower_bound(loop_id)

        elif node.kind == OpKind.INCOMPLETE:
            raise UnresolvedTerminal("incomplete expression")

        return resolver.resolve(tree, index)


class IntervalEvaluator(ExtremalTerminalMixin, PostfixEvaluatorBase):
    """Computes the minimum or maximum of a binary tree according to *mode*.
    A phi merge reduces to the extremum of its operands.
    """

    def __init__(self, resolver, mode, loops=None, loop_id=0):
        PostfixEvaluatorBase.__init__(self, resolver)
        self.mode = mode
        self.loops = loops
        self.loop_id = loop_id

    def reduce_phi(self, tree, index, a, b):
        return combine(self.mode.extremum, a, b, self.emitter)

# }}}


# {{{ recursive evaluation of n-ary trees

class NaryIntervalEvaluator(ExtremalTerminalMixin):
    """Computes the minimum or maximum of a
    :class:`~gpuwss.expression.NaryExpressionTree` according to *mode*.

    Single-operand casts and loads pass their operand through. An address
    computation sums its index operands, leaving out the base pointer.
    A select takes the extremum of its value operands.

    A phi merge whose recurrence adds to the loop-carried value is valued
    from its entry value and the total drift, i.e. the per-iteration
    increment times the iteration count of the loop.
    """

    def __init__(self, resolver, mode, loops=None, loop_id=0):
        self.resolver = resolver
        self.mode = mode
        self.loops = loops
        self.loop_id = loop_id

    @property
    def emitter(self):
        return self.resolver.emitter

    def __call__(self, tree, start=None):
        if start is None:
            start = tree.root
        return self.rec(tree, start)

    def _fold(self, op, values):
        result = values[0]
        for value in values[1:]:
            result = combine(op, result, value, self.emitter)
        return result

    def rec(self, tree, index):
        node = tree.node(index)
        kind = node.kind
        children = node.children

        if kind.is_terminal:
            return self.map_terminal(tree, index)

        if kind == OpKind.PHI:
            return self.map_phi_merge(tree, index)

        if kind.is_operation:
            try:
                op = OPERATION_TO_BINARY_OP[kind]
            except KeyError:
                raise UnsupportedOperator(
                        f"'{node.text}' has no integer value") from None
            if not children:
                raise NonTerminalOperand(f"'{node.text}' has no operands")
            return self._fold(op, [self.rec(tree, c) for c in children])

        if kind in PASS_THROUGH_KINDS and len(children) == 1:
            return self.rec(tree, children[0])

        if kind == OpKind.GEP and children:
            indices = children[1:]
            if not indices:
                return 0
            return self._fold(BinaryOp.ADD,
                    [self.rec(tree, c) for c in indices])

        if kind == OpKind.STORE and children:
            return self.rec(tree, children[-1])

        if kind == OpKind.SELECT and len(children) >= 2:
            branches = children[1:] if len(children) == 3 else children
            return self._fold(self.mode.extremum,
                    [self.rec(tree, c) for c in branches])

        raise UnsupportedOperator(
                f"cannot estimate the range of '{node.text}' "
                f"with {len(children)} operands")

    def map_phi_merge(self, tree, index):
        node = tree.node(index)
        extremum = self.mode.extremum

        terms = phi_terms_of_merge(tree, index)
        if not terms:
            return self._fold(extremum,
                    [self.rec(tree, c) for c in node.children])

        siblings, recurrent_child = phi_increment_path(tree, terms[0], index)
        entry_children = [c for c in node.children if c != recurrent_child]
        if not entry_children:
            raise UnsupportedPhiChain(
                    f"phi merge '{node.text}' has no entry value")

        entry = self._fold(extremum, [self.rec(tree, c) for c in entry_children])
        increment = 0
        for sibling in siblings:
            increment = combine(BinaryOp.ADD, increment,
                    self.rec(tree, sibling), self.emitter)

        loop_id = self.loop_for_phi(node.arg)
        if loop_id == 0 or self.loops is None:
            raise IncomputableLoop(loop_id,
                    f"phi merge '{node.text}' is not in a catalogued loop")

        drift = combine(BinaryOp.MUL, increment,
                self.loops.iteration_count(loop_id), self.emitter)
        return combine(extremum, entry,
                combine(BinaryOp.ADD, entry, drift, self.emitter),
                self.emitter)

# }}}


def evaluate(tree, resolver):
    """Concretely evaluate the binary tree *tree*."""
    return ConcreteEvaluator(resolver)(tree)


def working_set_size(tree, resolver, loops=None, loop_id=0):
    """Return the distance between ``max(tree)`` and ``min(tree)``, each
    extremum computed with its own extremal assignment of the axis terminals.
    The result is never negative, even where a subtracted axis terminal makes
    the maximizing assignment yield the smaller value.
    """
    if isinstance(tree, NaryExpressionTree):
        evaluator_cls = NaryIntervalEvaluator
    else:
        evaluator_cls = IntervalEvaluator

    hi = evaluator_cls(resolver, BoundMode.MAX, loops, loop_id)(tree)
    lo = evaluator_cls(resolver, BoundMode.MIN, loops, loop_id)(tree)
    logger.debug("range of %s: [%s, %s]", tree, lo, hi)
    emitter = resolver.emitter
    return combine(BinaryOp.SUB,
            combine(BinaryOp.MAX, hi, lo, emitter),
            combine(BinaryOp.MIN, hi, lo, emitter),
            emitter)


# vim: foldmethod=marker
