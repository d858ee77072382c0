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

from pytools import memoize_method

from gpuwss.diagnostic import (
        ArithmeticDomainError, IncomputableLoop, UnresolvedTerminal)
from gpuwss.emit import BinaryOp, combine, promote
from gpuwss.evaluation import BoundMode, IntervalEvaluator
from gpuwss.expression import BinaryExpressionTree, OpKind
from gpuwss.options import make_options
from gpuwss.typing import is_integer


logger = logging.getLogger(__name__)


__doc__ = """
.. currentmodule:: gpuwss

.. autoclass:: LoopAccounting
"""


class LoopAccounting:
    """Iteration counts of the loops of one kernel for one invocation.

    Loop bounds are evaluated at iteration zero of every enclosing loop: a
    phi term in a bound takes the initial value of the loop it belongs to,
    thread and block indices are zero, and everything else is resolved
    through :attr:`resolver`. Results are cached for the lifetime of the
    instance, i.e. one analysis pass.

    .. automethod:: loop
    .. automethod:: lower_bound
    .. automethod:: upper_bound
    .. automethod:: iteration_tree
    .. automethod:: iteration_count
    .. automethod:: nested_iteration_count
    .. automethod:: iteration_counts
    """

    def __init__(self, kernel, resolver, options=None):
        self.kernel = kernel
        self.resolver = resolver
        self.options = make_options(options)
        self._active = set()

    def loop(self, loop_id):
        try:
            return self.kernel.loops[loop_id]
        except KeyError:
            raise IncomputableLoop(loop_id,
                    f"not catalogued for kernel '{self.kernel.name}'") from None

    def loop_for_phi(self, phi_id, default=0):
        return self.kernel.loop_for_phi(phi_id, default)

    def _bound_tree(self, record, which):
        tree = getattr(record, which)
        if tree is None:
            reason = f"{which} value unavailable"
            if record.build_errors:
                reason += f" ({'; '.join(record.build_errors)})"
            raise IncomputableLoop(record.loop_id, reason)
        if tree.is_sentinel:
            raise IncomputableLoop(record.loop_id,
                    f"{which} value is not analyzable")
        return tree

    def _evaluate_bound(self, record, tree, what):
        loop_id = record.loop_id
        if loop_id in self._active:
            raise IncomputableLoop(loop_id,
                    f"{what} depends on its own loop")

        evaluator = IntervalEvaluator(self.resolver, BoundMode.MIN,
                loops=self, loop_id=record.parent_loop_id)

        self._active.add(loop_id)
        try:
            return evaluator(tree)
        except (UnresolvedTerminal, ArithmeticDomainError) as e:
            raise IncomputableLoop(loop_id, f"cannot evaluate {what}: {e}") \
                    from e
        finally:
            self._active.discard(loop_id)

    @memoize_method
    def lower_bound(self, loop_id):
        record = self.loop(loop_id)
        return self._evaluate_bound(record,
                self._bound_tree(record, "initial"), "initial value")

    @memoize_method
    def upper_bound(self, loop_id):
        record = self.loop(loop_id)
        return self._evaluate_bound(record,
                self._bound_tree(record, "final"), "final value")

    def iteration_tree(self, loop_id):
        """Return ``(final - initial) / step`` as a new
        :class:`~gpuwss.expression.BinaryExpressionTree`. A missing step is
        taken to be 1.
        """
        record = self.loop(loop_id)
        initial = self._bound_tree(record, "initial")
        final = self._bound_tree(record, "final")

        step = record.step
        if step is None:
            step = BinaryExpressionTree.constant(1)
        elif step.is_sentinel:
            raise IncomputableLoop(loop_id, "step is not analyzable")

        return BinaryExpressionTree.combine(OpKind.SDIV,
                BinaryExpressionTree.combine(OpKind.SUB, final, initial),
                step)

    @memoize_method
    def iteration_count(self, loop_id):
        record = self.loop(loop_id)
        if record.known_iteration_count is not None:
            return int(record.known_iteration_count)

        count = self._evaluate_bound(record, self.iteration_tree(loop_id),
                "iteration count")

        if (is_integer(count) and count < 0
                and self.options.clamp_negative_trip_counts):
            logger.debug("%s: loop %d: clamping iteration count %d to 0",
                    self.kernel.name, loop_id, count)
            count = 0

        return count

    def nested_iteration_count(self, loop_id):
        """Return the product of the iteration counts of *loop_id* and all
        loops enclosing it, 1 for *loop_id* 0.
        """
        total = 1
        seen = set()
        current = loop_id
        while current != 0:
            if current in seen:
                raise IncomputableLoop(loop_id, "cyclic loop nest")
            seen.add(current)

            total = combine(BinaryOp.MUL,
                    promote(total), promote(self.iteration_count(current)),
                    self.resolver.emitter)
            current = self.loop(current).parent_loop_id

        return total

    def iteration_counts(self):
        """Return a :class:`dict` mapping each loop id of the kernel to its
        iteration count, or *None* if it is incomputable.
        """
        result = {}
        for loop_id in sorted(self.kernel.loops):
            try:
                result[loop_id] = self.iteration_count(loop_id)
            except IncomputableLoop as e:
                logger.info("%s: %s", self.kernel.name, e)
                result[loop_id] = None
        return result
