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
from dataclasses import dataclass

from gpuwss.diagnostic import MalformedExpression
from gpuwss.expression import (
        OPERATOR_TOKENS, BinaryExpressionTree, NaryExpressionTree, NodeArena,
        OpKind)
from gpuwss.options import make_options
from gpuwss.tools import parse_int_literal


logger = logging.getLogger(__name__)


__doc__ = """
.. currentmodule:: gpuwss

.. autofunction:: build_binary_tree
.. autofunction:: build_nary_tree

.. currentmodule:: gpuwss.builder

.. autofunction:: parse_token
.. autoclass:: LoopBoundTokens
.. autofunction:: split_loop_bound_tokens
"""


# {{{ token classification

def parse_token(text, options=None):
    """Classify a single token.

    :returns: a tuple *(kind, value, arg)* where *value* is the literal of a
        :attr:`~gpuwss.expression.OpKind.CONST` token and *arg* the index
        embedded in an argument or phi token.
    """
    options = make_options(options)

    if text == options.incomplete_token:
        return OpKind.INCOMPLETE, None, None

    try:
        return OPERATOR_TOKENS[text], None, None
    except KeyError:
        pass

    value = parse_int_literal(text)
    if value is not None:
        return OpKind.CONST, value, None

    for prefix, kind, index_required in [
            (options.arg_token_prefix, OpKind.ARG, True),
            (options.phi_token_prefix, OpKind.PHI, False),
            ]:
        if text.startswith(prefix):
            rest = text[len(prefix):]
            if rest.isdigit():
                return kind, None, int(rest)
            elif not rest and not index_required:
                return kind, None, None

    raise MalformedExpression(f"unknown token '{text}'")

# }}}


# {{{ postfix -> binary tree

def build_binary_tree(tokens, options=None):
    """Build a :class:`~gpuwss.expression.BinaryExpressionTree` from a
    postfix token sequence.

    Operations take the two most recently built values as operands, the
    earlier one becoming the first child, so that ``["4", "ARG0", "MUL"]``
    yields ``mul(4, arg0)``.

    The first phi token seen is the loop-entry term. The next one is a
    merge operation over the two values below it, after which the following
    phi token is a term again.

    :returns: *None* for an empty sequence, a pointer-chase sentinel for a
        sequence longer than :attr:`~gpuwss.Options.max_postfix_tokens`, an
        incomplete sentinel if the sequence starts with the incomplete
        marker.
    :raises MalformedExpression: if the sequence does not reduce to exactly
        one value.
    """
    options = make_options(options)
    tokens = list(tokens)

    if not tokens:
        return None
    if len(tokens) > options.max_postfix_tokens:
        logger.debug("postfix stream of %d tokens exceeds %d, treating as "
                "pointer chase", len(tokens), options.max_postfix_tokens)
        return BinaryExpressionTree.make_sentinel(OpKind.POINTER_CHASE)
    if tokens[0] == options.incomplete_token:
        return BinaryExpressionTree.make_sentinel(OpKind.INCOMPLETE)

    arena = NodeArena()
    stack = []
    awaiting_phi_term = True

    for text in tokens:
        kind, value, arg = parse_token(text, options)

        if kind == OpKind.PHI:
            if awaiting_phi_term:
                stack.append(arena.add(OpKind.PHI_TERM, text, arg=arg))
                awaiting_phi_term = False
                continue
            else:
                awaiting_phi_term = True

        if kind.is_operation:
            if len(stack) < 2:
                raise MalformedExpression(
                        f"'{text}' needs two operands, "
                        f"{len(stack)} available in {' '.join(tokens)}")
            right = stack.pop()
            left = stack.pop()
            stack.append(arena.add(kind, text, children=(left, right)))
        else:
            stack.append(arena.add(kind, text, value=value, arg=arg))

    if len(stack) != 1:
        raise MalformedExpression(
                f"{len(stack)} values left after reducing "
                f"{' '.join(tokens)}")

    return arena.freeze(BinaryExpressionTree, stack[0])

# }}}


# {{{ parenthesized prefix -> n-ary tree

def build_nary_tree(tokens, options=None):
    """Build a :class:`~gpuwss.expression.NaryExpressionTree` from a fully
    parenthesized prefix token sequence such as
    ``( GEP ( ARG0 ) ( ADD ( TIDX ) ( 4 ) ) )``.

    :returns: *None* for an empty sequence, a pointer-chase sentinel if the
        tree would have more than :attr:`~gpuwss.Options.max_prefix_terms`
        nodes, an incomplete sentinel if the first operator is the
        incomplete marker.
    :raises MalformedExpression: for unbalanced parentheses, tokens outside
        parentheses, or more than one root.
    """
    options = make_options(options)
    tokens = list(tokens)

    if not tokens:
        return None

    heads = [tok for tok in tokens if tok not in ("(", ")")]
    if heads and heads[0] == options.incomplete_token:
        return NaryExpressionTree.make_sentinel(OpKind.INCOMPLETE)

    arena = NodeArena()
    stack = []
    root = None

    it = iter(tokens)
    for text in it:
        if text == "(":
            head = next(it, None)
            if head is None or head in ("(", ")"):
                raise MalformedExpression(
                        f"expected operator after '(' in {' '.join(tokens)}")

            if len(arena) >= options.max_prefix_terms:
                logger.debug("prefix stream exceeds %d terms, treating as "
                        "pointer chase", options.max_prefix_terms)
                return NaryExpressionTree.make_sentinel(OpKind.POINTER_CHASE)

            kind, value, arg = parse_token(head, options)
            index = arena.add(kind, head, value=value, arg=arg)

            if stack:
                arena.append_child(stack[-1], index)
            elif root is None:
                root = index
            else:
                raise MalformedExpression(
                        f"more than one root in {' '.join(tokens)}")

            stack.append(index)

        elif text == ")":
            if not stack:
                raise MalformedExpression(
                        f"unbalanced ')' in {' '.join(tokens)}")
            stack.pop()

        else:
            raise MalformedExpression(
                    f"token '{text}' outside parentheses in "
                    f"{' '.join(tokens)}")

    if stack:
        raise MalformedExpression(f"unclosed '(' in {' '.join(tokens)}")

    for index in range(len(arena)):
        if arena.kind(index) == OpKind.PHI and not arena.children(index):
            arena.set_kind(index, OpKind.PHI_TERM)

    return arena.freeze(NaryExpressionTree, root)

# }}}


# {{{ loop bounds

@dataclass(frozen=True)
class LoopBoundTokens:
    """
    .. attribute:: initial
    .. attribute:: final
    .. attribute:: step

        Postfix token lists, possibly empty.

    .. attribute:: known_iteration_count

        An :class:`int` or *None*.
    """
    initial: tuple[str, ...]
    final: tuple[str, ...]
    step: tuple[str, ...]
    known_iteration_count: int | None = None


_BOUND_MARKERS = {"IN": 0, "FIN": 1, "STEP": 2}


def split_loop_bound_tokens(tokens):
    """Split a combined loop bound row of the form
    ``IN <tokens> FIN <tokens> STEP <tokens> [IT <n>]`` into a
    :class:`LoopBoundTokens`. Tokens before the first marker belong to the
    initial value.
    """
    parts = ([], [], [])
    current = 0
    known_iteration_count = None

    it = iter(tokens)
    for text in it:
        if text in _BOUND_MARKERS:
            current = _BOUND_MARKERS[text]
        elif text == "IT":
            count_text = next(it, None)
            count = (None if count_text is None
                    else parse_int_literal(count_text))
            if count is None:
                raise MalformedExpression(
                        f"'IT' must be followed by an integer, got {count_text!r}")
            known_iteration_count = count
        else:
            parts[current].append(text)

    return LoopBoundTokens(
            initial=tuple(parts[0]),
            final=tuple(parts[1]),
            step=tuple(parts[2]),
            known_iteration_count=known_iteration_count)

# }}}


# vim: foldmethod=marker
