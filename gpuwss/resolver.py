from __future__ import annotations


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

import pymbolic.primitives as p
from pymbolic import evaluate
from pymbolic.mapper.dependency import DependencyMapper
from pymbolic.mapper.substitutor import SubstitutionMapper, make_subst_func

from gpuwss.data import ConstantBinding, LoopVariableBinding, RuntimeBinding
from gpuwss.diagnostic import UnresolvedTerminal
from gpuwss.emit import PymbolicEmitter
from gpuwss.expression import ExpressionTree, OpKind
from gpuwss.typing import FormalIndex, Value, is_integer


__doc__ = """
.. currentmodule:: gpuwss

.. autoclass:: ValueResolver
"""


# Bound on RuntimeBinding.origin chains, guards against cycles.
_MAX_ORIGIN_DEPTH = 64


class ValueResolver:
    """Resolves terminal nodes against one kernel invocation.

    .. attribute:: invocation

        The :class:`~gpuwss.InvocationRecord` being analyzed.

    .. attribute:: emitter

        The :class:`~gpuwss.emit.Emitter` used for values only known at
        launch time.

    .. attribute:: unknowns

        A mapping from token text (e.g. ``"ARG2"`` or ``"TIDX"``) to a value
        that takes precedence over every other way of resolving that
        terminal.

    .. automethod:: resolve
    .. automethod:: resolve_argument
    .. automethod:: block_dim
    .. automethod:: grid_dim
    .. automethod:: grid_dim_at_iteration_zero
    """

    def __init__(self, invocation, emitter=None, unknowns=None):
        if emitter is None:
            emitter = PymbolicEmitter()

        self.invocation = invocation
        self.emitter = emitter
        self.unknowns = dict(unknowns or {})

    def resolve(self, tree: ExpressionTree, index: int) -> Value:
        node = tree.node(index)

        if node.text in self.unknowns:
            return self.unknowns[node.text]

        if node.kind == OpKind.CONST:
            return int(node.text)
        elif node.kind == OpKind.BDIMX:
            return self.block_dim(0)
        elif node.kind == OpKind.BDIMY:
            return self.block_dim(1)
        elif node.kind == OpKind.ARG:
            return self.resolve_argument(node.arg)

        raise UnresolvedTerminal(
                f"no value for '{node.text}' in invocation "
                f"{self.invocation.invocation_id} of "
                f"'{self.invocation.kernel_name}'")

    def resolve_argument(self, formal: FormalIndex) -> Value:
        try:
            binding = self.invocation.bindings[formal]
        except KeyError:
            raise UnresolvedTerminal(
                    f"argument {formal} of '{self.invocation.kernel_name}' "
                    "is not bound") from None

        depth = 0
        while isinstance(binding, RuntimeBinding) and binding.origin is not None:
            depth += 1
            if depth > _MAX_ORIGIN_DEPTH:
                raise UnresolvedTerminal(
                        f"argument {formal}: binding origin chain too long")
            binding = binding.origin

        if isinstance(binding, ConstantBinding):
            return binding.value
        elif isinstance(binding, LoopVariableBinding):
            return p.Variable(binding.name)
        elif isinstance(binding, RuntimeBinding):
            return binding.handle
        else:
            raise TypeError(f"unexpected binding type '{type(binding).__name__}'")

    def block_dim(self, axis):
        return self.invocation.block_dim[axis]

    def grid_dim(self, axis):
        return self.invocation.grid_dim[axis]

    def grid_dim_at_iteration_zero(self, axis):
        """Return the grid dimension along *axis* with every host loop
        induction variable set to its initial value, folded to an
        :class:`int` when nothing else remains unknown.
        """
        expr = self.grid_dim(axis)
        if is_integer(expr):
            return int(expr)

        initial_values = {
                binding.name: binding.initial
                for binding in self.invocation.host_loop_variables.values()}
        expr = SubstitutionMapper(make_subst_func(initial_values))(expr)

        if not DependencyMapper()(expr):
            return int(evaluate(expr))
        return expr
