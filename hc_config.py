#Hill-climbing parameters shared by the search loop, the front-end and the CLI

#convergence threshold for "delta - epsilon" comparisons
MACHINE_TOL = 1e-12

MAX_ITERS = 2_147_483_647

HC_DEFAULTS = dict(
    max_indegree=0,  #0 means unbounded
    max_iters=MAX_ITERS,
    epsilon=0.0,
    patience=0,
    num_folds=10,
    test_holdout_ratio=0.2,
)

#score used when hc() is not given one, per network type
DEFAULT_SCORES = dict(
    discrete="bic",
    gaussian="bic",
    semiparametric="validated-lik",
)

DEFAULT_OPERATORS = dict(
    discrete=["arcs"],
    gaussian=["arcs"],
    semiparametric=["arcs", "node_type"],
)

#settings used by the command-line script: at most 3 parents, 100 iterations
CLI_DEFAULTS = dict(
    max_indegree=3,
    max_iters=100,
    epsilon=0.0,
    patience=5,
)
