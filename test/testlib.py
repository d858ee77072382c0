import gpuwss


def tokens(text):
    """Split a whitespace-separated token stream."""
    return text.split()


def make_invocation(kernel_name="k", block_dim=(32, 1), grid_dim=(4, 1),
        args=None, invocation_id=1, **kwargs):
    return gpuwss.make_invocation(kernel_name, block_dim, grid_dim,
            args=args, invocation_id=invocation_id, **kwargs)


def make_resolver(**kwargs):
    unknowns = kwargs.pop("unknowns", None)
    return gpuwss.ValueResolver(make_invocation(**kwargs), unknowns=unknowns)


# {{{ catalogue rows

def loop_row(loop_id, init, final, step="1", parent=0, kernel_name="k",
        known_iteration_count=None):
    row = {
            "kernel_name": kernel_name,
            "loop_id": loop_id,
            "parent_loop_id": parent,
            "init_tokens": tokens(init),
            "final_tokens": tokens(final),
            "step_tokens": tokens(step),
            }
    if known_iteration_count is not None:
        row["known_iteration_count"] = known_iteration_count
    return row


def access_row(access_id, expression, tree=None, allocation_arg=0, loop_id=0,
        kernel_name="k"):
    row = {
            "kernel_name": kernel_name,
            "access_id": access_id,
            "allocation_arg": allocation_arg,
            "loop_id": loop_id,
            "cond_id": 0,
            "cond_kind": None,
            "expression_tokens": tokens(expression),
            }
    if tree is not None:
        row["tree_tokens"] = tokens(tree)
    return row


def make_loops(loop_rows, phi_loop_rows=(), args=None, **kwargs):
    catalogue = gpuwss.Catalogue.from_tables(
            loop_rows=loop_rows, phi_loop_rows=phi_loop_rows)
    resolver = gpuwss.ValueResolver(make_invocation(args=args, **kwargs))
    return gpuwss.LoopAccounting(catalogue["k"], resolver)

# }}}

# vim: foldmethod=marker
