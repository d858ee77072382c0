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


from typing import Any, TypeAlias

import numpy as np
from typing_extensions import TypeIs

from pymbolic.typing import Expression


AccessId: TypeAlias = int
LoopId: TypeAlias = int
PhiId: TypeAlias = int
FormalIndex: TypeAlias = int
InvocationId: TypeAlias = int

# A deferred, runtime-computed value as produced by an
# :class:`gpuwss.emit.Emitter`. With the default emitter this is a
# :mod:`pymbolic` expression over host variables.
Handle: TypeAlias = Expression | Any

# Either an immediate integer or a deferred :data:`Handle`.
Value: TypeAlias = int | Handle


def is_integer(obj: object) -> TypeIs[int | np.integer]:
    return isinstance(obj, (int, np.integer)) and not isinstance(obj, bool)
