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


from pytools import ImmutableRecord
import re
import os


class Options(ImmutableRecord):
    """
    Unless otherwise specified, these options are Boolean-valued
    (i.e. on/off).

    .. rubric:: Tree construction

    .. attribute:: max_postfix_tokens

        An :class:`int`. Postfix token streams longer than this are
        replaced by a pointer-chase sentinel. Defaults to 50.

    .. attribute:: max_prefix_terms

        An :class:`int`. Parenthesized prefix streams with more nodes than
        this are replaced by a pointer-chase sentinel. Defaults to 100.

    .. attribute:: arg_token_prefix

        Token prefix marking a kernel argument, followed by its formal
        index. Defaults to ``"ARG"``.

    .. attribute:: phi_token_prefix

        Token prefix marking a phi, optionally followed by its phi id.
        Defaults to ``"PHI"``.

    .. attribute:: incomplete_token

        A stream starting with this token yields an incomplete sentinel.
        Defaults to ``"INCOMP"``.

    .. rubric:: Estimation

    .. attribute:: strict

        If *True*, :exc:`gpuwss.diagnostic.ExpressionShapeError` raised while
        estimating one access propagates out of
        :func:`gpuwss.estimate_invocation` instead of being recorded on
        that access. May also be turned on by setting the environment
        variable ``GPUWSS_STRICT`` to a non-empty value.

    .. attribute:: clamp_negative_trip_counts

        Clamp loop iteration counts that evaluate to a negative constant to
        zero. Defaults to *True*.

    .. attribute:: silenced_warnings

        A list of :func:`fnmatch.fnmatchcase` patterns. Warnings whose id
        matches one of them are not issued.
    """

    def __init__(
            # All Boolean flags in here should default to False for the
            # string-based interface of make_options (below) to make sense.
            self, **kwargs):

        ImmutableRecord.__init__(
                self,

                max_postfix_tokens=kwargs.get("max_postfix_tokens", 50),
                max_prefix_terms=kwargs.get("max_prefix_terms", 100),
                arg_token_prefix=kwargs.get("arg_token_prefix", "ARG"),
                phi_token_prefix=kwargs.get("phi_token_prefix", "PHI"),
                incomplete_token=kwargs.get("incomplete_token", "INCOMP"),

                strict=kwargs.get("strict",
                    # Considered enabled if non-empty.
                    bool(os.environ.get("GPUWSS_STRICT"))),
                clamp_negative_trip_counts=kwargs.get(
                    "clamp_negative_trip_counts", True),
                silenced_warnings=kwargs.get("silenced_warnings", []),
                )


KEY_VAL_RE = re.compile("^([a-zA-Z0-9_]+)=(.*)$")


def make_options(options_arg):
    if options_arg is None:
        return Options()
    elif isinstance(options_arg, str):
        ioptions_args = {}
        for key_val in options_arg.split(","):
            kv_match = KEY_VAL_RE.match(key_val)
            if kv_match is not None:
                key = kv_match.group(1)
                val = kv_match.group(2)
                try:
                    val = int(val)
                except ValueError:
                    pass

                ioptions_args[key] = val
            else:
                ioptions_args[key_val] = True

        return Options(**ioptions_args)
    elif isinstance(options_arg, Options):
        return options_arg
    elif isinstance(options_arg, dict):
        return Options(**options_arg)
    else:
        raise TypeError("invalid argument to make_options")
