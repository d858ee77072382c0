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

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from immutables import Map

from pytools import ProcessLogger

from gpuwss.coefficient import partial_difference, phi_partial_difference
from gpuwss.diagnostic import (
        ExpressionShapeError, GpuWssError, IncomputableAccessWarning,
        IncomputableLoop, ShapeErrorWarning, UnanalyzableAccess,
        warn_with_kernel)
from gpuwss.emit import BinaryOp, combine, promote
from gpuwss.evaluation import ConcreteEvaluator, working_set_size
from gpuwss.expression import OpKind
from gpuwss.loop import LoopAccounting
from gpuwss.options import make_options
from gpuwss.resolver import ValueResolver
from gpuwss.typing import AccessId, InvocationId, LoopId, Value


logger = logging.getLogger(__name__)


__doc__ = """

.. currentmodule:: gpuwss

.. autoclass:: AccessAxis
.. autoclass:: AccessFlag
.. autoclass:: AccessKey
.. autoclass:: AccessEstimate
.. autoclass:: AccessEstimateMap

.. autofunction:: estimate_invocation
.. autofunction:: count_grid_threads
.. autofunction:: is_indirect_access
.. autofunction:: is_trivial_access
"""


# {{{ descriptors

class AccessAxis(Enum):
    """Axes along which the sensitivity of an address is estimated.

    .. attribute:: BLOCK_X
    .. attribute:: BLOCK_Y
    .. attribute:: LOOP

        Iterations of in-kernel loops, via phi recurrences.

    .. attribute:: HOST_LOOP

        Iterations of a host loop around the launch, via the kernel
        arguments bound to its induction variable.
    """
    BLOCK_X = 0
    BLOCK_Y = 1
    LOOP = 2
    HOST_LOOP = 3


class AccessFlag(Enum):
    """Reasons an access went without some estimate.

    .. attribute:: POINTER_CHASE

        The address expression exceeded the size bound.

    .. attribute:: INDIRECT

        The address depends on more than one load.

    .. attribute:: INCOMPLETE
    .. attribute:: INCOMPUTABLE

        The expression or an enclosing loop could not be built or
        evaluated.
    """
    POINTER_CHASE = 0
    INDIRECT = 1
    INCOMPLETE = 2
    INCOMPUTABLE = 3


@dataclass(frozen=True)
class AccessKey:
    """
    .. attribute:: access_id
    .. attribute:: allocation
    .. attribute:: invocation_id
    """
    access_id: AccessId
    allocation: Any
    invocation_id: InvocationId

    def __repr__(self):
        return (f"AccessKey(access {self.access_id}, "
                f"allocation {self.allocation}, "
                f"invocation {self.invocation_id})")


@dataclass(frozen=True)
class AccessEstimate:
    """
    .. attribute:: key

        An :class:`AccessKey`.

    .. attribute:: loop_id
    .. attribute:: execution_count

        Number of times the access executes over the whole grid, or *None*.

    .. attribute:: working_set

        Span of the addresses the access touches, or *None*.

    .. attribute:: sensitivities

        An :class:`immutables.Map` from :class:`AccessAxis` to the stride of
        the address along that axis.

    .. attribute:: flags

        A :class:`frozenset` of :class:`AccessFlag`.

    .. attribute:: errors

        A :class:`tuple` of messages explaining missing estimates.
    """
    key: AccessKey
    loop_id: LoopId = 0
    execution_count: Value | None = None
    working_set: Value | None = None
    sensitivities: Map = field(default_factory=Map)
    flags: frozenset = frozenset()
    errors: tuple = ()

    @property
    def access_id(self):
        return self.key.access_id

    @property
    def allocation(self):
        return self.key.allocation

    @property
    def invocation_id(self):
        return self.key.invocation_id

# }}}


# {{{ AccessEstimateMap

class AccessEstimateMap:
    """A map from :class:`AccessKey` to :class:`AccessEstimate` for one
    invocation.

    .. attribute:: loop_iterations

        An :class:`immutables.Map` from loop id to iteration count, *None*
        for incomputable loops.

    .. automethod:: __getitem__
    .. automethod:: get
    .. automethod:: items
    .. automethod:: keys
    .. automethod:: values
    .. automethod:: filter_by
    .. automethod:: filter_by_func
    .. automethod:: group_by_allocation
    .. automethod:: total_working_set
    """

    def __init__(self, estimates=None, loop_iterations=None):
        if estimates is None:
            estimates = {}
        if loop_iterations is None:
            loop_iterations = {}

        self.estimates = estimates
        self.loop_iterations = Map(loop_iterations)

    def __getitem__(self, key):
        return self.estimates[key]

    def __contains__(self, key):
        return key in self.estimates

    def __iter__(self):
        return iter(self.estimates)

    def __repr__(self):
        return repr(self.estimates)

    def __str__(self):
        return "\n".join(
                f"{k}: {v}"
                for k, v in sorted(self.estimates.items(),
                    key=lambda kv: str(kv[0])))

    def __len__(self):
        return len(self.estimates)

    def get(self, key, default=None):
        return self.estimates.get(key, default)

    def items(self):
        return self.estimates.items()

    def keys(self):
        return self.estimates.keys()

    def values(self):
        return self.estimates.values()

    def copy(self, estimates=None):
        if estimates is None:
            estimates = self.estimates

        return type(self)(estimates=estimates,
                loop_iterations=self.loop_iterations)

    def by_access_id(self, access_id):
        for key, estimate in self.estimates.items():
            if key.access_id == access_id:
                return estimate
        raise KeyError(access_id)

    def filter_by(self, **kwargs):
        """Keep the estimates whose fields have one of the allowed values.

        :arg kwargs: field names of :class:`AccessEstimate` (or of its
            :class:`AccessKey`), each given a list of allowable values.

        Example usage::

            est = estimate_invocation(catalogue, invocation)
            loop_accesses = est.filter_by(loop_id=[1, 2], allocation=[0])
        """

        class _Sentinel:
            pass

        return self.copy(estimates={
            key: estimate for key, estimate in self.estimates.items()
            if all(getattr(estimate, arg_field, _Sentinel) in allowable_vals
                for arg_field, allowable_vals in kwargs.items())})

    def filter_by_func(self, func):
        """Keep the estimates for which *func(estimate)* is true."""
        return self.copy(estimates={
            key: estimate for key, estimate in self.estimates.items()
            if func(estimate)})

    def group_by_allocation(self):
        """Return a :class:`dict` mapping allocations to an
        :class:`AccessEstimateMap` of the accesses to them.
        """
        groups = {}
        for key, estimate in self.estimates.items():
            groups.setdefault(key.allocation, {})[key] = estimate
        return {allocation: self.copy(estimates=estimates)
                for allocation, estimates in groups.items()}

    def total_working_set(self, emitter=None):
        """Sum of the working sets of all estimates that have one."""
        total = 0
        for estimate in self.estimates.values():
            if estimate.working_set is not None:
                total = combine(BinaryOp.ADD, total, estimate.working_set,
                        emitter)
        return total

# }}}


# {{{ access classification

def is_indirect_access(tree):
    """An access whose address involves more than one load reads a pointer
    from memory before accessing it.
    """
    return tree.count(OpKind.LOAD) > 1


def is_trivial_access(tree):
    """An access without address computation touches a single location."""
    return not tree.contains(OpKind.GEP)


def count_grid_threads(invocation, emitter=None):
    total = 1
    for dim in invocation.grid_dim + invocation.block_dim:
        total = combine(BinaryOp.MUL, total, promote(dim), emitter)
    return total


def _check_sentinel(tree, what):
    if tree.is_pointer_chase:
        raise UnanalyzableAccess(AccessFlag.POINTER_CHASE,
                f"{what} exceeds the size bound")
    if tree.is_incomplete:
        raise UnanalyzableAccess(AccessFlag.INCOMPLETE,
                f"{what} is incomplete")


def _check_analyzable(access):
    expression = access.expression
    if expression is None:
        raise UnanalyzableAccess(AccessFlag.INCOMPUTABLE,
                "; ".join(access.build_errors) or "no address expression")
    _check_sentinel(expression, "address expression")

# }}}


# {{{ estimation

class _AccessEstimator:
    def __init__(self, kernel, invocation, resolver, loops, threads, options):
        self.kernel = kernel
        self.invocation = invocation
        self.resolver = resolver
        self.loops = loops
        self.threads = threads
        self.options = options
        self.concrete = ConcreteEvaluator(resolver)

    def _record_failure(self, access, what, error, errors):
        if isinstance(error, ExpressionShapeError):
            if self.options.strict:
                raise error
            warn_with_kernel(self.kernel.name, "shape_error",
                    f"access {access.access_id}: {what}: {error}",
                    self.options, ShapeErrorWarning)
        else:
            logger.debug("%s: access %d: %s: %s", self.kernel.name,
                    access.access_id, what, error)
        errors.append(f"{what}: {error}")

    def _sensitivity_axes(self, expression):
        axes = [
                (AccessAxis.BLOCK_X, lambda: partial_difference(
                    expression, OpKind.BIDX, self.concrete)),
                (AccessAxis.BLOCK_Y, lambda: partial_difference(
                    expression, OpKind.BIDY, self.concrete)),
                (AccessAxis.LOOP, lambda: phi_partial_difference(
                    expression, self.concrete)),
                ]

        host_formals = sorted(self.invocation.host_loop_variables)
        if host_formals:
            def host_loop_sensitivity():
                total = 0
                for formal in host_formals:
                    total = combine(BinaryOp.ADD, total,
                            partial_difference(expression, OpKind.ARG,
                                self.concrete, arg=formal),
                            self.resolver.emitter)
                return total

            axes.append((AccessAxis.HOST_LOOP, host_loop_sensitivity))

        return axes

    def __call__(self, access):
        key = AccessKey(
                access_id=access.access_id,
                allocation=self.invocation.allocation_for(access.allocation_arg),
                invocation_id=self.invocation.invocation_id)

        flags = set()
        errors = list(access.build_errors)

        def finish(**kwargs):
            return AccessEstimate(key=key, loop_id=access.loop_id,
                    flags=frozenset(flags), errors=tuple(errors), **kwargs)

        try:
            _check_analyzable(access)
        except UnanalyzableAccess as e:
            flags.add(e.flag)
            if e.reason not in errors:
                errors.append(e.reason)
            return finish()

        try:
            nested = self.loops.nested_iteration_count(access.loop_id)
        except IncomputableLoop as e:
            flags.add(AccessFlag.INCOMPUTABLE)
            errors.append(str(e))
            warn_with_kernel(self.kernel.name, "incomputable_loop",
                    f"access {access.access_id}: {e}", self.options,
                    IncomputableAccessWarning)
            return finish()

        execution_count = combine(BinaryOp.MUL,
                promote(self.threads), promote(nested), self.resolver.emitter)

        expression = access.expression
        sensitivities = {}
        for axis, compute in self._sensitivity_axes(expression):
            try:
                sensitivities[axis] = promote(compute())
            except GpuWssError as e:
                self._record_failure(access, f"{axis.name} sensitivity", e,
                        errors)

        tree = access.tree if access.tree is not None else expression
        working_set = None
        try:
            _check_sentinel(tree, "address tree")
        except UnanalyzableAccess as e:
            flags.add(e.flag)
            errors.append(e.reason)
        else:
            working_set = self._working_set(access, tree, flags, errors)

        return finish(
                execution_count=execution_count,
                working_set=working_set,
                sensitivities=Map(sensitivities))

    def _working_set(self, access, tree, flags, errors):
        if is_indirect_access(tree):
            flags.add(AccessFlag.INDIRECT)
            return None
        if is_trivial_access(tree):
            return 1

        try:
            return promote(working_set_size(tree, self.resolver,
                self.loops, access.loop_id))
        except IncomputableLoop as e:
            flags.add(AccessFlag.INCOMPUTABLE)
            errors.append(f"working set: {e}")
        except GpuWssError as e:
            self._record_failure(access, "working set", e, errors)
        return None


def _report(sink, estimate):
    key = estimate.key
    for flag in sorted(estimate.flags, key=lambda f: f.value):
        sink.set_flag(key, flag)
    if estimate.execution_count is not None:
        sink.add_execution_count(key, estimate.execution_count)
    if estimate.working_set is not None:
        sink.add_working_set(key, estimate.working_set)
    for axis, value in estimate.sensitivities.items():
        sink.add_sensitivity(key, axis, value)


def estimate_invocation(catalogue, invocation, sink=None, emitter=None,
        options=None, unknowns=None):
    """Estimate execution count, working set and axis sensitivities for
    every access of the kernel launched by *invocation*.

    :arg catalogue: a :class:`~gpuwss.Catalogue`.
    :arg invocation: an :class:`~gpuwss.InvocationRecord`.
    :arg sink: a :class:`~gpuwss.RuntimeSink` receiving the estimates, or
        *None*.
    :arg emitter: an :class:`~gpuwss.emit.Emitter` for values only known at
        launch time. Defaults to :class:`~gpuwss.emit.PymbolicEmitter`.
    :arg unknowns: overrides for terminals, see
        :attr:`~gpuwss.ValueResolver.unknowns`.
    :returns: an :class:`AccessEstimateMap`.
    """
    options = make_options(options)

    try:
        kernel = catalogue[invocation.kernel_name]
    except KeyError:
        logger.info("kernel '%s' has no catalogue entry",
                invocation.kernel_name)
        return AccessEstimateMap()

    plog = ProcessLogger(logger,
            f"{kernel.name}: estimate invocation {invocation.invocation_id}")

    resolver = ValueResolver(invocation, emitter=emitter, unknowns=unknowns)
    loops = LoopAccounting(kernel, resolver, options)

    loop_iterations = loops.iteration_counts()
    if sink is not None:
        for loop_id, count in loop_iterations.items():
            if count is not None:
                sink.add_loop_iterations(invocation.invocation_id, loop_id, count)

    estimator = _AccessEstimator(kernel, invocation, resolver, loops,
            count_grid_threads(invocation, resolver.emitter), options)

    estimates = {}
    for access_id in sorted(kernel.accesses):
        estimate = estimator(kernel.accesses[access_id])
        estimates[estimate.key] = estimate
        if sink is not None:
            _report(sink, estimate)

    plog.done("%d accesses", len(estimates))
    return AccessEstimateMap(estimates, loop_iterations)

# }}}


# vim: foldmethod=marker
