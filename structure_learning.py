"""Greedy hill-climbing over Bayesian network structures, plain or validated on held-out data."""
import logging

from bn_callbacks import CallbackList, LoggingCallback
from bn_model import BN_TYPES, NodeType
from bn_operators import AddArc, ChangeNodeType, FlipArc, LocalScoreCache, OperatorTabuSet, RemoveArc
from bn_scoring import SCORES, ValidatedScore, infer_bn_type
from hc_config import DEFAULT_OPERATORS, DEFAULT_SCORES, HC_DEFAULTS, MACHINE_TOL, MAX_ITERS
from operator_sets import ArcOperatorSet, ChangeNodeTypeSet, OperatorPool

logger = logging.getLogger(__name__)


def _progress_level(verbose):
    return logging.INFO if verbose > 0 else logging.DEBUG


def _converged(op, epsilon):
    return op is None or (op.delta - epsilon) < MACHINE_TOL


def estimate_hc(op_set, score, start, arc_blacklist=(), arc_whitelist=(), type_whitelist=(), callback=None,
                max_indegree=0, max_iters=MAX_ITERS, epsilon=0.0, verbose=0):
    """Plain hill-climbing. Returns a new network; `start` is not modified."""
    level = _progress_level(verbose)

    current_model = start.clone()
    current_model.check_blacklist(arc_blacklist)
    current_model.force_whitelist(arc_whitelist)
    if current_model.supports_node_types:
        current_model.force_type_whitelist(type_whitelist)

    op_set.set_arc_blacklist(arc_blacklist)
    op_set.set_arc_whitelist(arc_whitelist)
    op_set.set_type_whitelist(type_whitelist)
    op_set.set_max_indegree(max_indegree)

    logger.log(level, "Caching scores...")
    op_set.cache_scores(current_model, score)

    if callback:
        callback.call(current_model, None, score, 0)

    iteration = 0
    while iteration < max_iters:
        best_op = op_set.find_max(current_model)
        if _converged(best_op, epsilon):
            break

        best_op.apply(current_model)
        op_set.update_scores(current_model, score, best_op)
        iteration += 1

        if callback:
            callback.call(current_model, best_op, score, iteration)

        logger.log(level, "%s", best_op)

    if callback:
        callback.call(current_model, None, score, iteration)

    logger.log(level, "Finished Hill-climbing! (%d iterations)", iteration)
    return current_model


def validation_delta_score(model, val_score, op, current_local_scores):
    """
    Change in the validation score caused by `op`, already applied to `model`.
    Only the nodes touched by `op` are rescored; their cache entries are refreshed.
    """
    if isinstance(op, (AddArc, RemoveArc)):
        prev = current_local_scores.local_score(model, op.target)
        current_local_scores.update_vlocal_score(model, val_score, op)
        return current_local_scores.local_score(model, op.target) - prev
    elif isinstance(op, FlipArc):
        prev = current_local_scores.local_score(model, op.source) + \
            current_local_scores.local_score(model, op.target)
        current_local_scores.update_vlocal_score(model, val_score, op)
        return current_local_scores.local_score(model, op.source) + \
            current_local_scores.local_score(model, op.target) - prev
    elif isinstance(op, ChangeNodeType):
        prev = current_local_scores.local_score(model, op.node)
        current_local_scores.update_vlocal_score(model, val_score, op)
        return current_local_scores.local_score(model, op.node) - prev
    else:
        raise TypeError(f"Unreachable code. Wrong operator in validation_delta_score(): {op!r}")


def estimate_validation_hc(op_set, score, start, arc_blacklist=(), arc_whitelist=(), type_whitelist=(),
                           callback=None, max_indegree=0, max_iters=MAX_ITERS, epsilon=0.0, patience=0,
                           verbose=0):
    """Validated hill-climbing. Returns the last structure that improved the validation score."""
    if not isinstance(score, ValidatedScore):
        raise TypeError(f"estimate_validation_hc() needs a ValidatedScore, got {type(score).__name__}.")
    level = _progress_level(verbose)

    current_model = start.clone()
    current_model.check_blacklist(arc_blacklist)
    current_model.force_whitelist(arc_whitelist)
    if current_model.supports_node_types:
        current_model.force_type_whitelist(type_whitelist)

    op_set.set_arc_blacklist(arc_blacklist)
    op_set.set_arc_whitelist(arc_whitelist)
    op_set.set_type_whitelist(type_whitelist)
    op_set.set_max_indegree(max_indegree)

    best_model = current_model.clone()

    logger.log(level, "Caching scores...")
    local_validation = LocalScoreCache()
    local_validation.cache_vlocal_scores(current_model, score)
    op_set.cache_scores(current_model, score)

    p = 0
    validation_offset = 0.0
    tabu_set = OperatorTabuSet()

    if callback:
        callback.call(current_model, None, score, 0)

    iteration = 0
    while iteration < max_iters:
        best_op = op_set.find_max(current_model, tabu_set)
        if _converged(best_op, epsilon):
            break

        best_op.apply(current_model)
        validation_delta = validation_delta_score(current_model, score, best_op, local_validation)

        if validation_delta + validation_offset > 0:
            p = 0
            validation_offset = 0.0
            best_model = current_model.clone()
            tabu_set.clear()
        else:
            p += 1
            if p >= patience:
                logger.log(level, "%s | Validation delta: %f. Patience exhausted.", best_op, validation_delta)
                break
            validation_offset += validation_delta
            tabu_set.insert(best_op.opposite())

        op_set.update_scores(current_model, score, best_op)
        iteration += 1

        if callback:
            callback.call(current_model, best_op, score, iteration)

        logger.log(level, "%s | Validation delta: %f", best_op, validation_delta)

    if callback:
        callback.call(current_model, None, score, iteration)

    logger.log(level, "Finished Hill-climbing! (%d iterations)", iteration)
    return best_model


class GreedyHillClimbing:
    """Runs the validated variant when the score is a ValidatedScore, the plain one otherwise."""

    def estimate(self, op_set, score, start, arc_blacklist=(), arc_whitelist=(), type_whitelist=(),
                 callback=None, max_indegree=0, max_iters=MAX_ITERS, epsilon=0.0, patience=0, verbose=0):
        if isinstance(score, ValidatedScore):
            return estimate_validation_hc(op_set, score, start, arc_blacklist, arc_whitelist, type_whitelist,
                                          callback, max_indegree, max_iters, epsilon, patience, verbose)
        return estimate_hc(op_set, score, start, arc_blacklist, arc_whitelist, type_whitelist, callback,
                           max_indegree, max_iters, epsilon, verbose)


def _check_arcs(arcs, nodes, kind):
    arcs = [tuple(a) for a in arcs]
    for source, target in arcs:
        if source not in nodes or target not in nodes:
            raise ValueError(f"Arc {source} -> {target} in {kind} refers to a node not present in the data.")
    return arcs


def build_score(score_name, df, seed=None, num_folds=HC_DEFAULTS["num_folds"],
                test_holdout_ratio=HC_DEFAULTS["test_holdout_ratio"]):
    if score_name not in SCORES:
        raise ValueError(f"Wrong score \"{score_name}\". Valid choices are: {sorted(SCORES)}")
    if score_name == "cv-lik":
        return SCORES[score_name](df, k=num_folds, seed=seed)
    if score_name == "holdout-lik":
        return SCORES[score_name](df, test_ratio=test_holdout_ratio, seed=seed)
    if score_name == "validated-lik":
        return SCORES[score_name](df, test_ratio=test_holdout_ratio, k=num_folds, seed=seed)
    return SCORES[score_name](df)


def build_operators(operator_names, model):
    sets = []
    for name in dict.fromkeys(operator_names):
        if name == "arcs":
            sets.append(ArcOperatorSet())
        elif name == "node_type":
            if not model.supports_node_types:
                raise ValueError(f"Operator \"node_type\" is not compatible with {type(model).__name__}.")
            sets.append(ChangeNodeTypeSet())
        else:
            raise ValueError(f"Wrong operator \"{name}\". Valid choices are: ['arcs', 'node_type']")
    return OperatorPool(sets)


def hc(df, start=None, bn_type=None, score=None, operators=None, arc_blacklist=(), arc_whitelist=(),
       type_whitelist=(), callback=None, max_indegree=HC_DEFAULTS["max_indegree"],
       max_iters=HC_DEFAULTS["max_iters"], epsilon=HC_DEFAULTS["epsilon"], patience=HC_DEFAULTS["patience"],
       seed=None, num_folds=HC_DEFAULTS["num_folds"], test_holdout_ratio=HC_DEFAULTS["test_holdout_ratio"],
       verbose=0):
    """
    Learns a Bayesian network structure from the columns of `df`.

    bn_type: "discrete", "gaussian" or "semiparametric". Taken from `start`, or inferred from the column
        types, when omitted.
    score: "k2", "bic", "cv-lik", "holdout-lik" or "validated-lik". Defaults to "bic" for discrete and
        Gaussian networks and "validated-lik" for semiparametric ones.
    operators: subset of ["arcs", "node_type"]. "node_type" only for semiparametric networks.
    type_whitelist: (node, NodeType) pairs fixing the family of those nodes.
    max_indegree: maximum number of parents, 0 for no limit.
    patience: tolerated non-improving moves of the validated search.
    seed: seed of the cross-validation/holdout splits.
    """
    if max_indegree < 0:
        raise ValueError(f"max_indegree must be non-negative, got {max_indegree}.")
    if max_iters < 0:
        raise ValueError(f"max_iters must be non-negative, got {max_iters}.")

    if start is not None:
        if bn_type is not None and bn_type != start.bn_type:
            raise ValueError(f"bn_type \"{bn_type}\" does not match the starting model ({start.bn_type}).")
        bn_type = start.bn_type
        missing = [n for n in start.nodes if n not in df.columns]
        if missing:
            raise ValueError(f"Nodes {missing} of the starting model are not present in the data.")
    else:
        if bn_type is None:
            bn_type = infer_bn_type(df)
        if bn_type not in BN_TYPES:
            raise ValueError(f"Wrong Bayesian network type \"{bn_type}\". Valid choices are: {sorted(BN_TYPES)}")
        start = BN_TYPES[bn_type](df.columns)

    nodes = set(start.nodes)
    arc_blacklist = _check_arcs(arc_blacklist, nodes, "blacklist")
    arc_whitelist = _check_arcs(arc_whitelist, nodes, "whitelist")
    type_whitelist = [(node, NodeType(node_type)) for node, node_type in type_whitelist]
    if type_whitelist and not start.supports_node_types:
        raise ValueError(f"A type whitelist can not be used with {type(start).__name__}.")
    for node, node_type in type_whitelist:
        if node not in nodes:
            raise ValueError(f"Node {node} in type whitelist not present in the data.")

    data = df[start.nodes]
    score_name = score if score is not None else DEFAULT_SCORES[bn_type]
    score_obj = build_score(score_name, data, seed, num_folds, test_holdout_ratio)
    if not score_obj.compatible_bn(start):
        raise ValueError(f"Score \"{score_name}\" is not compatible with {type(start).__name__}.")

    op_set = build_operators(operators if operators is not None else DEFAULT_OPERATORS[bn_type], start)

    if verbose > 0:
        callback = CallbackList([callback, LoggingCallback()])

    logger.log(_progress_level(verbose), "Hill-climbing: %s, score %s, %d nodes",
               type(start).__name__, score_obj, start.num_nodes())

    return GreedyHillClimbing().estimate(op_set, score_obj, start, arc_blacklist, arc_whitelist, type_whitelist,
                                         callback, max_indegree, max_iters, epsilon, patience, verbose)
