"""Neighbourhoods of a Bayesian network with the score delta of every move, updated incrementally."""
import logging
from typing import Iterable, Optional

import numpy as np

from bn_operators import AddArc, ChangeNodeType, FlipArc, LocalScoreCache, Operator, RemoveArc

logger = logging.getLogger(__name__)


class OperatorSet:
    def __init__(self):
        self.arc_blacklist = set()
        self.arc_whitelist = set()
        self.type_whitelist = {}
        self.max_indegree = 0
        self.local_cache = None
        self._owns_local_cache = True

    def set_arc_blacklist(self, arcs: Iterable):
        self.arc_blacklist = {tuple(a) for a in arcs}

    def set_arc_whitelist(self, arcs: Iterable):
        self.arc_whitelist = {tuple(a) for a in arcs}

    def set_type_whitelist(self, types: Iterable):
        self.type_whitelist = {node: node_type for node, node_type in types}

    def set_max_indegree(self, max_indegree: int):
        if max_indegree < 0:
            raise ValueError(f"max_indegree must be non-negative, got {max_indegree}.")
        self.max_indegree = max_indegree

    def set_local_score_cache(self, cache: LocalScoreCache):
        """Share a cache maintained by someone else (OperatorPool)."""
        self.local_cache = cache
        self._owns_local_cache = False

    def _init_local_cache(self, model, score):
        if self._owns_local_cache:
            self.local_cache = LocalScoreCache()
            self.local_cache.cache_local_scores(model, score)

    def _update_local_cache(self, model, score, op):
        if self._owns_local_cache:
            self.local_cache.update_local_score(model, score, op)

    def cache_scores(self, model, score):
        raise NotImplementedError

    def find_max(self, model, tabu_set=None) -> Optional[Operator]:
        raise NotImplementedError

    def update_scores(self, model, score, op: Operator):
        raise NotImplementedError


class ArcOperatorSet(OperatorSet):
    """Add, remove and flip arcs. delta[i, j] is add i -> j, remove i -> j, or flip j -> i when that arc exists."""

    def _arc_indices(self, arcs, kind):
        for source, target in arcs:
            if source not in self.index or target not in self.index:
                raise ValueError(f"Arc {source} -> {target} in {kind} contains nodes not present in the model.")
            yield self.index[source], self.index[target]

    def cache_scores(self, model, score):
        self.nodes = model.nodes
        self.index = {n: i for i, n in enumerate(self.nodes)}
        n = len(self.nodes)

        self.valid_op = np.ones((n, n), dtype=bool)
        np.fill_diagonal(self.valid_op, False)
        for s, t in self._arc_indices(self.arc_blacklist, "blacklist"):
            self.valid_op[s, t] = False
        for s, t in self._arc_indices(self.arc_whitelist, "whitelist"):
            self.valid_op[s, t] = False
            self.valid_op[t, s] = False

        self.delta = np.full((n, n), -np.inf)
        self._init_local_cache(model, score)
        for node in self.nodes:
            self._update_node_arcs_scores(model, score, node)
        logger.debug("Cached %d arc operators", int(self.valid_op.sum()))

    def _update_node_arcs_scores(self, model, score, dest):
        """Refresh every entry whose delta depends on the local score or the parents of `dest`."""
        cache = self.local_cache
        d = self.index[dest]
        parents = model.parents(dest)
        dest_type = model.node_type(dest)
        dest_score = cache.local_score(model, dest)

        for o in np.flatnonzero(self.valid_op[:, d]):
            other = self.nodes[o]
            other_type = model.node_type(other)
            if model.has_arc(other, dest):
                d_remove = score.local_score_parents(dest_type, dest, [p for p in parents if p != other]) - dest_score
                self.delta[o, d] = d_remove
                if self.valid_op[d, o]:
                    #flip other -> dest into dest -> other
                    d_add_other = score.local_score_parents(other_type, other, model.parents(other) + [dest]) - \
                        cache.local_score(model, other)
                    self.delta[d, o] = d_remove + d_add_other
            elif model.has_arc(dest, other):
                #flip dest -> other into other -> dest
                other_parents = [p for p in model.parents(other) if p != dest]
                self.delta[o, d] = score.local_score_parents(dest_type, dest, parents + [other]) - dest_score + \
                    score.local_score_parents(other_type, other, other_parents) - cache.local_score(model, other)
            else:
                self.delta[o, d] = score.local_score_parents(dest_type, dest, parents + [other]) - dest_score

    def update_scores(self, model, score, op):
        self._update_local_cache(model, score, op)
        if isinstance(op, (AddArc, RemoveArc, FlipArc)):
            #the source column too: the entry of the reverse arc changes meaning
            self._update_node_arcs_scores(model, score, op.source)
            self._update_node_arcs_scores(model, score, op.target)
        elif isinstance(op, ChangeNodeType):
            self._update_node_arcs_scores(model, score, op.node)
        else:
            raise TypeError(f"Unknown operator {op!r}.")

    def find_max(self, model, tabu_set=None):
        n = len(self.nodes)
        #descending order; ties resolved by position in the matrix
        order = np.argsort(-self.delta, axis=None, kind="stable")
        for flat in order:
            delta = float(self.delta.flat[flat])
            if not np.isfinite(delta):
                break
            i, j = divmod(int(flat), n)
            if not self.valid_op[i, j]:
                continue

            source, target = self.nodes[i], self.nodes[j]
            if model.has_arc(source, target):
                op = RemoveArc(source, target, delta)
            elif model.has_arc(target, source):
                if self.max_indegree and model.num_parents(target) >= self.max_indegree:
                    continue
                if not model.can_flip_arc(target, source):
                    continue
                op = FlipArc(target, source, delta)
            else:
                if self.max_indegree and model.num_parents(target) >= self.max_indegree:
                    continue
                if not model.can_add_arc(source, target):
                    continue
                op = AddArc(source, target, delta)

            if tabu_set is not None and op in tabu_set:
                continue
            return op
        return None


class ChangeNodeTypeSet(OperatorSet):
    """Switch a node between its two distribution families (linear Gaussian / CKDE)."""

    def cache_scores(self, model, score):
        if not model.supports_node_types:
            raise TypeError(f"ChangeNodeTypeSet can not be used with {type(model).__name__}.")
        self.nodes = model.nodes
        self.index = {n: i for i, n in enumerate(self.nodes)}
        self.delta = np.full(len(self.nodes), -np.inf)
        self._init_local_cache(model, score)
        for node in self.nodes:
            self._update_node_delta(model, score, node)

    def _update_node_delta(self, model, score, node):
        i = self.index[node]
        if node in self.type_whitelist:
            self.delta[i] = -np.inf
            return
        new_type = model.node_type(node).opposite()
        self.delta[i] = score.local_score_parents(new_type, node, model.parents(node)) - \
            self.local_cache.local_score(model, node)

    def update_scores(self, model, score, op):
        self._update_local_cache(model, score, op)
        for node in op.nodes_changed():
            self._update_node_delta(model, score, node)

    def find_max(self, model, tabu_set=None):
        for i in np.argsort(-self.delta, kind="stable"):
            delta = float(self.delta[i])
            if not np.isfinite(delta):
                break
            node = self.nodes[i]
            op = ChangeNodeType(node, model.node_type(node).opposite(), delta)
            if tabu_set is not None and op in tabu_set:
                continue
            return op
        return None


class OperatorPool(OperatorSet):
    """Union of operator sets sharing one local score cache."""

    def __init__(self, operator_sets):
        super().__init__()
        self.operator_sets = list(operator_sets)
        if not self.operator_sets:
            raise ValueError("OperatorPool needs at least one operator set.")

    def set_arc_blacklist(self, arcs):
        arcs = list(arcs)
        super().set_arc_blacklist(arcs)
        for op_set in self.operator_sets:
            op_set.set_arc_blacklist(arcs)

    def set_arc_whitelist(self, arcs):
        arcs = list(arcs)
        super().set_arc_whitelist(arcs)
        for op_set in self.operator_sets:
            op_set.set_arc_whitelist(arcs)

    def set_type_whitelist(self, types):
        types = list(types)
        super().set_type_whitelist(types)
        for op_set in self.operator_sets:
            op_set.set_type_whitelist(types)

    def set_max_indegree(self, max_indegree):
        super().set_max_indegree(max_indegree)
        for op_set in self.operator_sets:
            op_set.set_max_indegree(max_indegree)

    def cache_scores(self, model, score):
        self.local_cache = LocalScoreCache()
        self.local_cache.cache_local_scores(model, score)
        for op_set in self.operator_sets:
            op_set.set_local_score_cache(self.local_cache)
            op_set.cache_scores(model, score)

    def find_max(self, model, tabu_set=None):
        best = None
        for op_set in self.operator_sets:
            op = op_set.find_max(model, tabu_set)
            if op is not None and (best is None or op.delta > best.delta):
                best = op
        return best

    def update_scores(self, model, score, op):
        self.local_cache.update_local_score(model, score, op)
        for op_set in self.operator_sets:
            op_set.update_scores(model, score, op)
