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


logger = logging.getLogger(__name__)


__doc__ = """
.. currentmodule:: gpuwss

.. autoclass:: RuntimeSink
.. autoclass:: RecordingSink
"""


class RuntimeSink:
    """Receives the estimates of one analysis pass. Per-access quantities are
    keyed by :class:`~gpuwss.AccessKey`.

    .. automethod:: add_execution_count
    .. automethod:: add_working_set
    .. automethod:: add_sensitivity
    .. automethod:: add_loop_iterations
    .. automethod:: set_flag
    """

    def add_execution_count(self, key, value):
        raise NotImplementedError

    def add_working_set(self, key, value):
        raise NotImplementedError

    def add_sensitivity(self, key, axis, value):
        raise NotImplementedError

    def add_loop_iterations(self, invocation_id, loop_id, value):
        raise NotImplementedError

    def set_flag(self, key, flag):
        raise NotImplementedError


class RecordingSink(RuntimeSink):
    """Keeps everything it receives in dictionaries.

    .. attribute:: execution_counts
    .. attribute:: working_sets
    .. attribute:: sensitivities

        Maps *(key, axis)* to a value.

    .. attribute:: loop_iterations

        Maps *(invocation_id, loop_id)* to a value.

    .. attribute:: flags

        Maps keys to a :class:`set` of :class:`~gpuwss.AccessFlag`.
    """

    def __init__(self):
        self.execution_counts = {}
        self.working_sets = {}
        self.sensitivities = {}
        self.loop_iterations = {}
        self.flags = {}

    def add_execution_count(self, key, value):
        logger.debug("%s: execution count %s", key, value)
        self.execution_counts[key] = value

    def add_working_set(self, key, value):
        logger.debug("%s: working set %s", key, value)
        self.working_sets[key] = value

    def add_sensitivity(self, key, axis, value):
        logger.debug("%s: sensitivity along %s: %s", key, axis.name, value)
        self.sensitivities[key, axis] = value

    def add_loop_iterations(self, invocation_id, loop_id, value):
        logger.debug("invocation %d: loop %d runs %s iterations",
                invocation_id, loop_id, value)
        self.loop_iterations[invocation_id, loop_id] = value

    def set_flag(self, key, flag):
        logger.debug("%s: flagged %s", key, flag.name)
        self.flags.setdefault(key, set()).add(flag)
