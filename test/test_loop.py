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

import sys

import pytest

from pymbolic import evaluate

import gpuwss

from testlib import loop_row, make_invocation, make_loops, tokens


@pytest.mark.parametrize(("init", "final", "step", "expected"), [
    ("0", "10", "1", 10),
    ("0", "10", "2", 5),
    ("0", "10", "3", 3),
    ("4", "4", "1", 0),
    ("ARG1", "ARG2", "ARG3", 6),
    ("TIDX", "TIDX 8 ADD", "1", 8),
    ])
def test_constant_loop(init, final, step, expected):
    loops = make_loops([loop_row(1, init, final, step)],
            args={1: 2, 2: 20, 3: 3})
    assert loops.iteration_count(1) == expected
    assert loops.iteration_counts() == {1: expected}


def test_bounds():
    loops = make_loops([loop_row(1, "ARG1 1 ADD", "ARG1 10 MUL")],
            args={1: 4})
    assert loops.lower_bound(1) == 5
    assert loops.upper_bound(1) == 40
    assert loops.iteration_count(1) == 35


def test_missing_step_defaults_to_one():
    loops = make_loops([loop_row(1, "0", "12", step="")])
    assert loops.loop(1).step is None
    assert loops.iteration_count(1) == 12


def test_known_count_overrides():
    loops = make_loops([
        loop_row(1, "0", "10", known_iteration_count=7),
        loop_row(2, "0", "TIDY", known_iteration_count=3),
        ])
    assert loops.iteration_count(1) == 7
    assert loops.iteration_count(2) == 3


def test_bound_token_rows():
    catalogue = gpuwss.Catalogue.from_tables(loop_rows=[
        {"kernel_name": "k", "loop_id": 1, "parent_loop_id": 0,
            "bound_tokens": tokens("IN 0 FIN ARG1 STEP 2")},
        {"kernel_name": "k", "loop_id": 2, "parent_loop_id": 1,
            "bound_tokens": tokens("IN 0 FIN ARG9 STEP 1 IT 12")},
        ])
    resolver = gpuwss.ValueResolver(make_invocation(args={1: 20}))
    loops = gpuwss.LoopAccounting(catalogue["k"], resolver)

    assert loops.iteration_count(1) == 10
    assert loops.iteration_count(2) == 12
    assert loops.nested_iteration_count(2) == 120


# {{{ incomputable loops

def test_unbuildable_bound():
    loops = make_loops([loop_row(1, "ADD", "10")])
    assert loops.loop(1).initial is None
    assert loops.loop(1).build_errors

    with pytest.raises(gpuwss.IncomputableLoop) as exc_info:
        loops.iteration_count(1)
    assert exc_info.value.loop_id == 1

    assert loops.iteration_counts() == {1: None}


def test_missing_loop():
    loops = make_loops([loop_row(1, "0", "10")])
    with pytest.raises(gpuwss.IncomputableLoop):
        loops.iteration_count(5)


def test_zero_step():
    loops = make_loops([loop_row(1, "0", "10", "ARG1")], args={1: 0})
    with pytest.raises(gpuwss.IncomputableLoop):
        loops.iteration_count(1)
    assert loops.iteration_counts() == {1: None}


def test_unbound_argument():
    loops = make_loops([loop_row(1, "0", "ARG4")])
    with pytest.raises(gpuwss.IncomputableLoop):
        loops.upper_bound(1)


def test_pointer_chase_bound():
    loops = make_loops([loop_row(1, "0", " ".join(["1"] * 26 + ["ADD"] * 25))])
    assert loops.loop(1).final.is_pointer_chase
    with pytest.raises(gpuwss.IncomputableLoop):
        loops.iteration_count(1)


def test_bound_depending_on_own_loop():
    loops = make_loops([loop_row(1, "0", "PHI1 2 ADD")],
            phi_loop_rows=[{"kernel_name": "k", "phi_id": 1, "loop_id": 1}])
    with pytest.raises(gpuwss.IncomputableLoop):
        loops.iteration_count(1)


def test_cyclic_nest():
    loops = make_loops([
        loop_row(1, "0", "4", parent=2),
        loop_row(2, "0", "4", parent=1),
        ])
    assert loops.iteration_count(1) == 4
    with pytest.raises(gpuwss.IncomputableLoop):
        loops.nested_iteration_count(1)

# }}}


def test_negative_count_clamped():
    rows = [loop_row(1, "10", "0")]
    assert make_loops(rows).iteration_count(1) == 0

    catalogue = gpuwss.Catalogue.from_tables(loop_rows=rows)
    loops = gpuwss.LoopAccounting(catalogue["k"],
            gpuwss.ValueResolver(make_invocation()),
            options="clamp_negative_trip_counts=0")
    assert loops.iteration_count(1) == -10


def test_nested_counts():
    loops = make_loops([
        loop_row(1, "0", "ARG1"),
        loop_row(2, "0", "ARG2", parent=1),
        loop_row(3, "0", "2", parent=2),
        ], args={1: 6, 2: 5})

    assert loops.nested_iteration_count(0) == 1
    assert loops.nested_iteration_count(1) == 6
    assert loops.nested_iteration_count(2) == 30
    assert loops.nested_iteration_count(3) == 60


def test_large_nested_count():
    n = 100000
    loops = make_loops([
        loop_row(1, "0", str(n)),
        loop_row(2, "0", str(n), parent=1),
        loop_row(3, "0", str(n), parent=2),
        ])
    assert loops.nested_iteration_count(3) == n**3


def test_inner_bound_uses_outer_initial_value():
    # for (i = 3; i < 10; ++i) for (j = 0; j < i; ++j)
    loops = make_loops([
        loop_row(1, "3", "10"),
        loop_row(2, "0", "PHI1", parent=1),
        ], phi_loop_rows=[{"phi_id": 1, "loop_id": 1}])

    assert loops.loop_for_phi(1) == 1
    assert loops.iteration_count(2) == 3
    assert loops.nested_iteration_count(2) == 21


def test_deferred_count():
    loops = make_loops([loop_row(1, "0", "ARG1", "2")], args={1: "n"})
    count = loops.iteration_count(1)
    assert not isinstance(count, int)
    assert evaluate(count, {"n": 64}) == 32

    # deferred counts are not clamped
    assert loops.iteration_counts()[1] is count


if __name__ == "__main__":
    if len(sys.argv) > 1:
        exec(sys.argv[1])
    else:
        from pytest import main
        main([__file__])

# vim: foldmethod=marker
