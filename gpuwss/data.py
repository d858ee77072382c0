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

import itertools
import logging
from dataclasses import dataclass
from typing import Any, TypeAlias

from immutables import Map

import pymbolic.primitives as p
from pytools import ImmutableRecord, ProcessLogger

from gpuwss.builder import (
        build_binary_tree, build_nary_tree, split_loop_bound_tokens)
from gpuwss.diagnostic import MalformedExpression
from gpuwss.options import make_options
from gpuwss.typing import (
        FormalIndex, Handle, LoopId, PhiId, Value, is_integer)


logger = logging.getLogger(__name__)


__doc__ = """
.. currentmodule:: gpuwss

.. autoclass:: Catalogue
.. autoclass:: KernelCatalogue
.. autoclass:: LoopRecord
.. autoclass:: AccessRecord

.. autoclass:: ConstantBinding
.. autoclass:: RuntimeBinding
.. autoclass:: LoopVariableBinding
.. autoclass:: InvocationRecord
.. autofunction:: make_invocation
.. autoclass:: InvocationIdAllocator
"""


# {{{ catalogue records

class LoopRecord(ImmutableRecord):
    """
    .. attribute:: kernel_name
    .. attribute:: loop_id
    .. attribute:: parent_loop_id

        0 for a top-level loop.

    .. attribute:: initial
    .. attribute:: final
    .. attribute:: step

        :class:`~gpuwss.expression.BinaryExpressionTree` instances, or
        *None* if the bound was absent or could not be built.

    .. attribute:: known_iteration_count

        An :class:`int` trip count recorded by the device-side analysis, or
        *None*.

    .. attribute:: build_errors

        A :class:`tuple` of messages from failed tree construction.
    """

    def __init__(self, kernel_name, loop_id, parent_loop_id=0,
            initial=None, final=None, step=None,
            known_iteration_count=None, build_errors=()):
        ImmutableRecord.__init__(self,
                kernel_name=kernel_name,
                loop_id=loop_id,
                parent_loop_id=parent_loop_id,
                initial=initial,
                final=final,
                step=step,
                known_iteration_count=known_iteration_count,
                build_errors=tuple(build_errors))


class AccessRecord(ImmutableRecord):
    """One load or store site of a kernel.

    .. attribute:: kernel_name
    .. attribute:: access_id
    .. attribute:: allocation_arg

        Formal index of the kernel argument holding the accessed
        allocation.

    .. attribute:: loop_id

        Innermost enclosing loop, 0 if none.

    .. attribute:: cond_id
    .. attribute:: cond_kind

    .. attribute:: expression

        The address expression as a
        :class:`~gpuwss.expression.BinaryExpressionTree`, or *None*.

    .. attribute:: tree

        The address expression as a
        :class:`~gpuwss.expression.NaryExpressionTree`, or *None*.

    .. attribute:: build_errors
    """

    def __init__(self, kernel_name, access_id, allocation_arg, loop_id=0,
            cond_id=0, cond_kind=None, expression=None, tree=None,
            build_errors=()):
        ImmutableRecord.__init__(self,
                kernel_name=kernel_name,
                access_id=access_id,
                allocation_arg=allocation_arg,
                loop_id=loop_id,
                cond_id=cond_id,
                cond_kind=cond_kind,
                expression=expression,
                tree=tree,
                build_errors=tuple(build_errors))


class KernelCatalogue(ImmutableRecord):
    """
    .. attribute:: name
    .. attribute:: loops

        An :class:`immutables.Map` from loop id to :class:`LoopRecord`.

    .. attribute:: accesses

        An :class:`immutables.Map` from access id to :class:`AccessRecord`.

    .. attribute:: phi_loops

        An :class:`immutables.Map` from phi id to the id of the loop whose
        induction variable the phi defines.
    """

    def __init__(self, name, loops=Map(), accesses=Map(), phi_loops=Map()):
        ImmutableRecord.__init__(self,
                name=name,
                loops=Map(loops),
                accesses=Map(accesses),
                phi_loops=Map(phi_loops))

    def loop_for_phi(self,
            phi_id: PhiId | None, default: LoopId = 0) -> LoopId:
        if phi_id is None:
            return default
        return self.phi_loops.get(phi_id, default)


def _build_tree(build, tokens, what, errors, options):
    if not tokens:
        return None
    try:
        return build(tokens, options)
    except MalformedExpression as e:
        logger.warning("%s: %s", what, e)
        errors.append(f"{what}: {e}")
        return None


def _make_loop_record(row, options):
    kernel_name = row["kernel_name"]
    loop_id = int(row["loop_id"])
    what = f"{kernel_name}: loop {loop_id}"

    known_iteration_count = row.get("known_iteration_count")
    if "bound_tokens" in row:
        bounds = split_loop_bound_tokens(row["bound_tokens"])
        init_tokens, final_tokens, step_tokens = (
                bounds.initial, bounds.final, bounds.step)
        if known_iteration_count is None:
            known_iteration_count = bounds.known_iteration_count
    else:
        init_tokens = row.get("init_tokens", ())
        final_tokens = row.get("final_tokens", ())
        step_tokens = row.get("step_tokens", ())

    errors = []
    return LoopRecord(
            kernel_name=kernel_name,
            loop_id=loop_id,
            parent_loop_id=int(row.get("parent_loop_id", 0)),
            initial=_build_tree(build_binary_tree, init_tokens,
                f"{what} initial value", errors, options),
            final=_build_tree(build_binary_tree, final_tokens,
                f"{what} final value", errors, options),
            step=_build_tree(build_binary_tree, step_tokens,
                f"{what} step", errors, options),
            known_iteration_count=known_iteration_count,
            build_errors=errors)


def _make_access_record(row, tree_tokens, options):
    kernel_name = row["kernel_name"]
    access_id = int(row["access_id"])
    what = f"{kernel_name}: access {access_id}"

    errors = []
    return AccessRecord(
            kernel_name=kernel_name,
            access_id=access_id,
            allocation_arg=int(row["allocation_arg"]),
            loop_id=int(row.get("loop_id", 0)),
            cond_id=int(row.get("cond_id", 0)),
            cond_kind=row.get("cond_kind"),
            expression=_build_tree(build_binary_tree,
                row.get("expression_tokens", ()),
                f"{what} expression", errors, options),
            tree=_build_tree(build_nary_tree, tree_tokens,
                f"{what} tree", errors, options),
            build_errors=errors)


class Catalogue:
    """Per-kernel loop and access records, built once up front and
    read-only afterwards.

    .. attribute:: kernels

        An :class:`immutables.Map` from kernel name to
        :class:`KernelCatalogue`.

    .. automethod:: from_tables
    """

    def __init__(self, kernels=Map()):
        self.kernels = Map(kernels)

    def __getitem__(self, kernel_name):
        return self.kernels[kernel_name]

    def __contains__(self, kernel_name):
        return kernel_name in self.kernels

    def __iter__(self):
        return iter(self.kernels)

    def __len__(self):
        return len(self.kernels)

    @staticmethod
    def from_tables(loop_rows=(), access_rows=(), access_tree_rows=(),
            phi_loop_rows=(), options=None):
        """
        :arg loop_rows: mappings with keys ``kernel_name``, ``loop_id``,
            ``parent_loop_id`` and either ``init_tokens``, ``final_tokens``,
            ``step_tokens`` or a combined ``bound_tokens``, plus an optional
            ``known_iteration_count``.
        :arg access_rows: mappings with keys ``kernel_name``, ``access_id``,
            ``allocation_arg``, ``loop_id``, ``cond_id``, ``cond_kind``,
            ``expression_tokens`` and optionally ``tree_tokens``.
        :arg access_tree_rows: mappings with keys ``kernel_name``,
            ``access_id``, ``tree_tokens``, for n-ary trees catalogued
            separately.
        :arg phi_loop_rows: mappings with keys ``phi_id``, ``loop_id`` and
            optionally ``kernel_name``. Rows without a kernel name apply to
            every kernel.
        """
        options = make_options(options)
        plog = ProcessLogger(logger, "build access catalogue")

        loops = {}
        for row in loop_rows:
            record = _make_loop_record(row, options)
            loops.setdefault(record.kernel_name, {})[record.loop_id] = record

        separate_trees = {
                (row["kernel_name"], int(row["access_id"])): row["tree_tokens"]
                for row in access_tree_rows}

        accesses = {}
        for row in access_rows:
            key = (row["kernel_name"], int(row["access_id"]))
            tree_tokens = row.get("tree_tokens") or separate_trees.get(key, ())
            record = _make_access_record(row, tree_tokens, options)
            accesses.setdefault(record.kernel_name, {})[record.access_id] = record

        shared_phi_loops = {}
        phi_loops = {}
        for row in phi_loop_rows:
            kernel_name = row.get("kernel_name")
            target = (shared_phi_loops if kernel_name is None
                    else phi_loops.setdefault(kernel_name, {}))
            target[int(row["phi_id"])] = int(row["loop_id"])

        kernels = {}
        for name in sorted(set(loops) | set(accesses) | set(phi_loops)):
            kernels[name] = KernelCatalogue(
                    name=name,
                    loops=loops.get(name, {}),
                    accesses=accesses.get(name, {}),
                    phi_loops={**shared_phi_loops, **phi_loops.get(name, {})})

        plog.done("%d kernels, %d accesses", len(kernels),
                sum(len(kc.accesses) for kc in kernels.values()))
        return Catalogue(kernels)

# }}}


# {{{ invocation

@dataclass(frozen=True)
class ConstantBinding:
    """A kernel argument whose value is known at analysis time."""
    value: int


@dataclass(frozen=True)
class RuntimeBinding:
    """A kernel argument only known when the kernel is launched.

    .. attribute:: handle

        The deferred value, usually a :mod:`pymbolic` expression.

    .. attribute:: origin

        Another binding this value was forwarded from, or *None*. Constant
        propagation follows this chain.
    """
    handle: Handle
    origin: Binding | None = None


@dataclass(frozen=True)
class LoopVariableBinding:
    """A kernel argument bound to the induction variable of a host loop
    enclosing the launch.
    """
    name: str
    initial: Value
    final: Value | None = None
    step: Value = 1


Binding: TypeAlias = ConstantBinding | RuntimeBinding | LoopVariableBinding


def _make_binding(value):
    if isinstance(value, (ConstantBinding, RuntimeBinding,
            LoopVariableBinding)):
        return value
    elif is_integer(value):
        return ConstantBinding(int(value))
    elif isinstance(value, str):
        return RuntimeBinding(p.Variable(value))
    else:
        return RuntimeBinding(value)


def _make_dims(dims):
    if is_integer(dims) or isinstance(dims, (str, p.ExpressionNode)):
        dims = (dims,)
    dims = tuple(
            p.Variable(d) if isinstance(d, str) else d
            for d in dims)
    if not 1 <= len(dims) <= 2:
        raise ValueError(f"expected one or two dimensions, got {dims}")
    return dims + (1,) * (2 - len(dims))


class InvocationRecord(ImmutableRecord):
    """One kernel launch.

    .. attribute:: kernel_name
    .. attribute:: invocation_id
    .. attribute:: block_dim

        A tuple *(x, y)* of :class:`int` or deferred values.

    .. attribute:: grid_dim

        A tuple *(x, y)* of :class:`int` or :mod:`pymbolic` expressions over
        host variables.

    .. attribute:: bindings

        An :class:`immutables.Map` from formal argument index to a
        :class:`ConstantBinding`, :class:`RuntimeBinding` or
        :class:`LoopVariableBinding`.

    .. attribute:: allocations

        An :class:`immutables.Map` from formal argument index to the identity
        of the allocation passed in that argument.
    """

    def __init__(self, kernel_name, invocation_id, block_dim, grid_dim,
            bindings=Map(), allocations=Map()):
        ImmutableRecord.__init__(self,
                kernel_name=kernel_name,
                invocation_id=invocation_id,
                block_dim=tuple(block_dim),
                grid_dim=tuple(grid_dim),
                bindings=Map(bindings),
                allocations=Map(allocations))

    def allocation_for(self, formal: FormalIndex) -> Any:
        return self.allocations.get(formal, formal)

    @property
    def host_loop_variables(self):
        """A :class:`dict` mapping formal indices bound to host loop
        induction variables to their :class:`LoopVariableBinding`.
        """
        return {formal: binding for formal, binding in self.bindings.items()
                if isinstance(binding, LoopVariableBinding)}


class InvocationIdAllocator:
    """Hands out invocation ids, starting at 1."""

    def __init__(self):
        self._counter = itertools.count(1)

    def __call__(self):
        return next(self._counter)


def make_invocation(kernel_name, block_dim, grid_dim, args=None,
        allocations=None, invocation_id=None, id_allocator=None):
    """
    :arg block_dim: an :class:`int`, or a tuple of one or two entries.
        Entries may be :class:`int`, variable names, or :mod:`pymbolic`
        expressions.
    :arg grid_dim: like *block_dim*.
    :arg args: a mapping from formal index to an :class:`int`, a variable
        name, a :mod:`pymbolic` expression, or a binding object.
    """
    if invocation_id is None:
        if id_allocator is None:
            raise TypeError("need one of invocation_id and id_allocator")
        invocation_id = id_allocator()

    return InvocationRecord(
            kernel_name=kernel_name,
            invocation_id=invocation_id,
            block_dim=_make_dims(block_dim),
            grid_dim=_make_dims(grid_dim),
            bindings={int(formal): _make_binding(value)
                for formal, value in (args or {}).items()},
            allocations=allocations or {})

# }}}


# vim: foldmethod=marker
