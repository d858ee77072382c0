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


import numpy as np


# {{{ fixed-width integer arithmetic

def wrap_to_dtype(value, dtype=np.int64):
    """Return the Python :class:`int` that *value* becomes when stored in a
    two's complement integer of type *dtype*.
    """
    iinfo = np.iinfo(dtype)
    modulus = int(iinfo.max) - int(iinfo.min) + 1
    return (int(value) - int(iinfo.min)) % modulus + int(iinfo.min)


def to_unsigned(value, dtype=np.int64):
    """Reinterpret the signed *value* as the unsigned integer with the same
    bit pattern.
    """
    bits = np.iinfo(dtype).bits
    return int(value) & ((1 << bits) - 1)


def truncating_div(a, b):
    """Signed division rounding toward zero, as performed by ``sdiv``."""
    q = abs(a) // abs(b)
    if (a < 0) != (b < 0):
        q = -q
    return q

# }}}


def parse_int_literal(text):
    """Parse a numeric token, returning *None* if *text* is not one."""
    body = text[1:] if text.startswith("-") else text
    if not body or not body.isdigit():
        return None
    return int(text)


# vim: foldmethod=marker
