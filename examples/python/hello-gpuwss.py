import gpuwss
from pymbolic import evaluate

# catalogue
# ---------
# for (int i = 0; i < n; ++i)
#     out[blockIdx.x*blockDim.x + threadIdx.x] += a[4*i];
cat = gpuwss.Catalogue.from_tables(
        loop_rows=[
            {"kernel_name": "scale", "loop_id": 1, "parent_loop_id": 0,
                "bound_tokens": "IN 0 FIN ARG2 STEP 1".split()},
            ],
        access_rows=[
            {"kernel_name": "scale", "access_id": 1, "allocation_arg": 0,
                "loop_id": 1,
                "expression_tokens": "BIDX BDIMX MUL TIDX ADD".split(),
                "tree_tokens": ("( STORE ( 0 ) ( GEP ( ARG0 ) ( ADD ( MUL "
                    "( BIDX ) ( BDIMX ) ) ( TIDX ) ) ) )").split()},
            {"kernel_name": "scale", "access_id": 2, "allocation_arg": 1,
                "loop_id": 1,
                "expression_tokens": "0 PHI1 1 ADD PHI1 4 MUL".split(),
                "tree_tokens": ("( LOAD ( GEP ( ARG1 ) ( MUL ( PHI1 ( 0 ) "
                    "( ADD ( PHI1 ) ( 1 ) ) ) ( 4 ) ) ) )").split()},
            ],
        phi_loop_rows=[{"kernel_name": "scale", "phi_id": 1, "loop_id": 1}])

# launch
# ------
allocate_id = gpuwss.InvocationIdAllocator()
inv = gpuwss.make_invocation("scale", block_dim=128, grid_dim="nblocks",
        args={2: 100}, allocations={0: "out", 1: "a"},
        id_allocator=allocate_id)

# estimate
# --------
sink = gpuwss.RecordingSink()
est = gpuwss.estimate_invocation(cat, inv, sink=sink)
# ENDEXAMPLE

for key, estimate in est.items():
    print(key, "executes",
            evaluate(estimate.execution_count, {"nblocks": 64}), "times,",
            "working set", evaluate(estimate.working_set, {"nblocks": 64}))
