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


# {{{ warnings

class GpuWssWarningBase(UserWarning):
    pass


class GpuWssWarning(GpuWssWarningBase):
    pass


class IncomputableAccessWarning(GpuWssWarning):
    pass


class ShapeErrorWarning(GpuWssWarning):
    pass

# }}}


def warn_with_kernel(kernel_name, id, text, options=None, type=GpuWssWarning,
        stacklevel=None):
    silenced_warnings = () if options is None else options.silenced_warnings

    from fnmatch import fnmatchcase
    for sw in silenced_warnings:
        if fnmatchcase(id, sw):
            return

    text += (" (add '%s' to silenced_warnings option to disable)"
            % id)

    if stacklevel is None:
        stacklevel = 2
    else:
        stacklevel = stacklevel + 1
    from warnings import warn
    warn(f"in kernel {kernel_name}: {text}", type, stacklevel=stacklevel)


# {{{ errors

class GpuWssError(RuntimeError):
    pass


class MalformedExpression(GpuWssError):
    """
    Raised when a token stream cannot be reduced to exactly one expression
    tree. The affected access or loop is treated as incomputable and
    construction is not retried.
    """
    pass


class UnresolvedTerminal(GpuWssError):
    pass


class ExpressionShapeError(GpuWssError):
    """
    Base for violations of an evaluator precondition on the shape of a tree.
    These do not occur for well-formed catalogues.
    """
    pass


class NonTerminalOperand(ExpressionShapeError):
    pass


class UnsupportedPhiChain(ExpressionShapeError):
    pass


class UnsupportedOperator(ExpressionShapeError):
    pass


class ExpressionNotAffineError(GpuWssError):
    """
    Raised when an axis terminal sits below a shift amount or a divisor, so
    that no constant stride with respect to that axis exists.
    """
    pass


class ArithmeticDomainError(GpuWssError):
    pass


class IncomputableLoop(GpuWssError):
    def __init__(self, loop_id, reason):
        GpuWssError.__init__(self, f"loop {loop_id}: {reason}")
        self.loop_id = loop_id
        self.reason = reason


class UnanalyzableAccess(Exception):
    """
    Not an error: signals that an access is designed to go without a
    quantitative estimate. *flag* is a :class:`gpuwss.statistics.AccessFlag`.
    """

    def __init__(self, flag, reason=None):
        Exception.__init__(self, reason if reason is not None else str(flag))
        self.flag = flag
        self.reason = reason

# }}}


# vim: foldmethod=marker
