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


from gpuwss.builder import (
    build_binary_tree,
    build_nary_tree,
    split_loop_bound_tokens,
)
from gpuwss.coefficient import (
    coefficient_of,
    partial_difference,
    phi_partial_difference,
)
from gpuwss.data import (
    AccessRecord,
    Catalogue,
    ConstantBinding,
    InvocationIdAllocator,
    InvocationRecord,
    KernelCatalogue,
    LoopRecord,
    LoopVariableBinding,
    RuntimeBinding,
    make_invocation,
)
from gpuwss.diagnostic import (
    ArithmeticDomainError,
    ExpressionNotAffineError,
    ExpressionShapeError,
    GpuWssError,
    GpuWssWarning,
    IncomputableLoop,
    MalformedExpression,
    NonTerminalOperand,
    UnanalyzableAccess,
    UnresolvedTerminal,
    UnsupportedOperator,
    UnsupportedPhiChain,
)
from gpuwss.emit import BinaryOp, Emitter, IntegerKind, PymbolicEmitter
from gpuwss.evaluation import (
    BoundMode,
    ConcreteEvaluator,
    IntervalEvaluator,
    NaryIntervalEvaluator,
    evaluate,
    working_set_size,
)
from gpuwss.expression import (
    BinaryExpressionTree,
    ExprNode,
    NaryExpressionTree,
    OpFamily,
    OpKind,
    to_pymbolic,
)
from gpuwss.loop import LoopAccounting
from gpuwss.options import Options, make_options
from gpuwss.resolver import ValueResolver
from gpuwss.sink import RecordingSink, RuntimeSink
from gpuwss.statistics import (
    AccessAxis,
    AccessEstimate,
    AccessEstimateMap,
    AccessFlag,
    AccessKey,
    count_grid_threads,
    estimate_invocation,
    is_indirect_access,
    is_trivial_access,
)
from gpuwss.version import VERSION


__all__ = [
    "VERSION",
    "AccessAxis",
    "AccessEstimate",
    "AccessEstimateMap",
    "AccessFlag",
    "AccessKey",
    "AccessRecord",
    "ArithmeticDomainError",
    "BinaryExpressionTree",
    "BinaryOp",
    "BoundMode",
    "Catalogue",
    "ConcreteEvaluator",
    "ConstantBinding",
    "Emitter",
    "ExprNode",
    "ExpressionNotAffineError",
    "ExpressionShapeError",
    "GpuWssError",
    "GpuWssWarning",
    "IncomputableLoop",
    "IntegerKind",
    "IntervalEvaluator",
    "InvocationIdAllocator",
    "InvocationRecord",
    "KernelCatalogue",
    "LoopAccounting",
    "LoopRecord",
    "LoopVariableBinding",
    "MalformedExpression",
    "NaryExpressionTree",
    "NaryIntervalEvaluator",
    "NonTerminalOperand",
    "OpFamily",
    "OpKind",
    "Options",
    "PymbolicEmitter",
    "RecordingSink",
    "RuntimeBinding",
    "RuntimeSink",
    "UnanalyzableAccess",
    "UnresolvedTerminal",
    "UnsupportedOperator",
    "UnsupportedPhiChain",
    "ValueResolver",
    "build_binary_tree",
    "build_nary_tree",
    "coefficient_of",
    "count_grid_threads",
    "estimate_invocation",
    "evaluate",
    "is_indirect_access",
    "is_trivial_access",
    "make_invocation",
    "make_options",
    "partial_difference",
    "phi_partial_difference",
    "split_loop_bound_tokens",
    "to_pymbolic",
    "working_set_size",
]


# vim: foldmethod=marker
