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


from enum import Enum

import numpy as np

import pymbolic.primitives as p

from gpuwss.diagnostic import ArithmeticDomainError
from gpuwss.tools import to_unsigned, truncating_div, wrap_to_dtype
from gpuwss.typing import is_integer


__doc__ = """
.. currentmodule:: gpuwss.emit

.. autoclass:: IntegerKind

.. autoclass:: BinaryOp

.. autoclass:: Emitter

.. autoclass:: PymbolicEmitter

.. autofunction:: combine

.. autofunction:: promote
"""


# {{{ operation vocabulary

class IntegerKind(Enum):
    """Width of a value handed to :meth:`Emitter.emit_constant`.

    .. attribute:: INT32
    .. attribute:: INT64
    """
    INT32 = 0
    INT64 = 1

    @property
    def dtype(self):
        return {
                IntegerKind.INT32: np.int32,
                IntegerKind.INT64: np.int64,
                }[self]


class BinaryOp(Enum):
    """
    .. attribute:: ADD
    .. attribute:: SUB
    .. attribute:: MUL
    .. attribute:: AND
    .. attribute:: SHL

        The shift amount is always the second operand.

    .. attribute:: LSHR
    .. attribute:: UDIV
    .. attribute:: SDIV

        Rounds toward zero.

    .. attribute:: SREM
    .. attribute:: MAX
    .. attribute:: MIN
    """
    ADD = 0
    SUB = 1
    MUL = 2
    AND = 3
    SHL = 4
    LSHR = 5
    UDIV = 6
    SDIV = 7
    SREM = 8
    MAX = 9
    MIN = 10

# }}}


# {{{ immediate folding

def fold_binary_op(op, a, b, kind=IntegerKind.INT64):
    dtype = kind.dtype
    bits = np.iinfo(dtype).bits

    if op == BinaryOp.ADD:
        result = a + b
    elif op == BinaryOp.SUB:
        result = a - b
    elif op == BinaryOp.MUL:
        result = a * b
    elif op == BinaryOp.AND:
        result = a & b
    elif op in (BinaryOp.SHL, BinaryOp.LSHR):
        if not 0 <= b < bits:
            raise ArithmeticDomainError(
                    f"shift amount {b} out of range for {bits}-bit operand")
        if op == BinaryOp.SHL:
            result = a << b
        else:
            result = to_unsigned(a, dtype) >> b
    elif op in (BinaryOp.UDIV, BinaryOp.SDIV, BinaryOp.SREM):
        if b == 0:
            raise ArithmeticDomainError(f"division of {a} by zero")
        if op == BinaryOp.UDIV:
            result = to_unsigned(a, dtype) // to_unsigned(b, dtype)
        elif op == BinaryOp.SDIV:
            result = truncating_div(a, b)
        else:
            result = a - b * truncating_div(a, b)
    elif op == BinaryOp.MAX:
        result = max(a, b)
    elif op == BinaryOp.MIN:
        result = min(a, b)
    else:
        raise ValueError(f"unknown binary operation '{op}'")

    return wrap_to_dtype(result, dtype)

# }}}


# {{{ emitters

class Emitter:
    """Builds deferred values whose operands are only known once the kernel
    is launched.

    .. automethod:: emit_constant
    .. automethod:: emit_binary_op
    """

    def emit_constant(self, kind, value):
        raise NotImplementedError

    def emit_binary_op(self, op, a, b):
        raise NotImplementedError


class PymbolicEmitter(Emitter):
    """Represents deferred values as :mod:`pymbolic` expressions, which
    :func:`pymbolic.evaluate` turns into numbers once the host values are
    known.
    """

    def emit_constant(self, kind, value):
        return wrap_to_dtype(value, kind.dtype)

    def emit_binary_op(self, op, a, b):
        if op == BinaryOp.ADD:
            return p.Sum((a, b))
        elif op == BinaryOp.SUB:
            return p.Sum((a, p.Product((-1, b))))
        elif op == BinaryOp.MUL:
            return p.Product((a, b))
        elif op == BinaryOp.AND:
            return p.BitwiseAnd((a, b))
        elif op == BinaryOp.SHL:
            return p.LeftShift(a, b)
        elif op == BinaryOp.LSHR:
            return p.RightShift(a, b)
        elif op in (BinaryOp.UDIV, BinaryOp.SDIV):
            return p.FloorDiv(a, b)
        elif op == BinaryOp.SREM:
            return p.Remainder(a, b)
        elif op == BinaryOp.MAX:
            return p.Max((a, b))
        elif op == BinaryOp.MIN:
            return p.Min((a, b))
        else:
            raise ValueError(f"unknown binary operation '{op}'")

# }}}


def combine(op, a, b, emitter=None):
    """Apply *op* to *a* and *b*, folding immediately when both are
    integers and emitting a deferred value through *emitter* otherwise.
    """
    if is_integer(a) and is_integer(b):
        return fold_binary_op(op, int(a), int(b))

    if emitter is None:
        emitter = PymbolicEmitter()

    if is_integer(a):
        a = emitter.emit_constant(IntegerKind.INT64, a)
    if is_integer(b):
        b = emitter.emit_constant(IntegerKind.INT64, b)

    return emitter.emit_binary_op(op, a, b)


def promote(value, kind=IntegerKind.INT64):
    """Widen *value* to *kind*. Deferred values carry no fixed width and are
    returned unchanged.
    """
    if is_integer(value):
        return wrap_to_dtype(value, kind.dtype)
    return value


# vim: foldmethod=marker
