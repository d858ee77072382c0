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

from gpuwss.diagnostic import ExpressionNotAffineError, UnsupportedPhiChain
from gpuwss.emit import BinaryOp, combine
from gpuwss.expression import OpKind


__doc__ = """
Strides of an address expression with respect to one axis, computed by
walking from each occurrence of the axis terminal up to the root.

.. currentmodule:: gpuwss.coefficient

.. autoclass:: Multiplier
.. autofunction:: collect_multipliers
.. autofunction:: collect_divisors
.. autofunction:: coefficient_of
.. autofunction:: partial_difference
.. autofunction:: phi_terms_of_merge
.. autofunction:: phi_increment_path
.. autofunction:: phi_partial_difference
"""


_DIVISION_KINDS = frozenset({OpKind.DIV, OpKind.UDIV, OpKind.SDIV})
_PHI_CHAIN_KINDS = frozenset({OpKind.ADD, OpKind.OR})


@dataclass(frozen=True)
class Multiplier:
    """
    .. attribute:: index

        Root of the subtree supplying the factor.

    .. attribute:: is_shift

        If *True*, the subtree is a shift amount and contributes
        ``1 << value``.
    """
    index: int
    is_shift: bool = False


def collect_multipliers(tree, index):
    result = []
    for child, parent in tree.ancestors(index):
        node = tree.node(parent)
        if node.kind == OpKind.MUL:
            result.extend(Multiplier(c) for c in node.children if c != child)
        elif node.kind == OpKind.SHL:
            shiftee, amount = node.children
            if child != shiftee:
                raise ExpressionNotAffineError(
                        f"'{tree.node(index).text}' appears in a shift amount")
            result.append(Multiplier(amount, is_shift=True))
    return result


def collect_divisors(tree, index):
    result = []
    for child, parent in tree.ancestors(index):
        node = tree.node(parent)
        if node.kind in _DIVISION_KINDS:
            dividend, divisor = node.children
            if child != dividend:
                raise ExpressionNotAffineError(
                        f"'{tree.node(index).text}' appears in a divisor")
            result.append(divisor)
    return result


def coefficient_of(tree, index, evaluator):
    """Return the stride of the expression with respect to the node at
    *index*: the product of all multipliers above it, divided by all
    divisors above it. Multipliers and divisors are evaluated with
    *evaluator*, usually a :class:`~gpuwss.evaluation.ConcreteEvaluator`.
    """
    emitter = evaluator.emitter

    value = 1
    for multiplier in collect_multipliers(tree, index):
        factor = evaluator(tree, multiplier.index)
        if multiplier.is_shift:
            factor = combine(BinaryOp.SHL, 1, factor, emitter)
        value = combine(BinaryOp.MUL, value, factor, emitter)

    for divisor in collect_divisors(tree, index):
        value = combine(BinaryOp.SDIV, value, evaluator(tree, divisor), emitter)

    return value


def partial_difference(tree, kind, evaluator, arg=None):
    """Sum :func:`coefficient_of` over all nodes of *kind* (restricted to
    argument index *arg* if given). Zero if there are none.
    """
    total = 0
    for index in tree.find_all(kind, arg):
        total = combine(BinaryOp.ADD, total,
                coefficient_of(tree, index, evaluator), evaluator.emitter)
    return total


# {{{ phi recurrences

def phi_terms_of_merge(tree, merge_index):
    """Return the phi terms whose nearest enclosing phi merge is the node at
    *merge_index*.
    """
    result = []
    for index in tree.find_all(OpKind.PHI_TERM, start=merge_index):
        for _, parent in tree.ancestors(index):
            if tree.node(parent).kind == OpKind.PHI:
                if parent == merge_index:
                    result.append(index)
                break
    return result


def phi_increment_path(tree, term_index, merge_index):
    """Walk from the phi term at *term_index* up to the merge at
    *merge_index*.

    :returns: a tuple *(siblings, recurrent_child)*. *siblings* lists the
        subtrees added to the loop-carried value on each iteration,
        *recurrent_child* is the operand of the merge that carries the
        recurrence.
    :raises UnsupportedPhiChain: if an operation other than an addition
        lies on the path.
    """
    siblings = []
    for child, parent in tree.ancestors(term_index):
        if parent == merge_index:
            return siblings, child

        node = tree.node(parent)
        if node.kind not in _PHI_CHAIN_KINDS:
            raise UnsupportedPhiChain(
                    f"'{node.text}' between phi term and merge "
                    f"'{tree.node(merge_index).text}'")
        siblings.extend(c for c in node.children if c != child)

    raise UnsupportedPhiChain(
            f"phi term is not below merge '{tree.node(merge_index).text}'")


def phi_partial_difference(tree, evaluator):
    """Stride of the expression per iteration of the loops whose induction
    variables appear as phi recurrences: the coefficient of each merge
    times its per-iteration increment.
    """
    emitter = evaluator.emitter

    total = 0
    for merge in tree.find_all(OpKind.PHI):
        terms = phi_terms_of_merge(tree, merge)
        if not terms:
            continue

        siblings, _ = phi_increment_path(tree, terms[0], merge)
        increment = 0
        for sibling in siblings:
            increment = combine(BinaryOp.ADD, increment,
                    evaluator(tree, sibling), emitter)

        total = combine(BinaryOp.ADD, total,
                combine(BinaryOp.MUL,
                    coefficient_of(tree, merge, evaluator), increment, emitter),
                emitter)

    return total

# }}}


# vim: foldmethod=marker
