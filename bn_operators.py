"""Structural operators, the tabu set and the per-node score cache. Operators compare by structure, not by delta."""
from dataclasses import dataclass, field
from typing import Dict, List

from bn_model import NodeType


class Operator:
    """Atomic edit of a Bayesian network."""

    delta: float

    def apply(self, model):
        raise NotImplementedError

    def opposite(self) -> "Operator":
        raise NotImplementedError

    def nodes_changed(self) -> List[str]:
        """Nodes whose local score changes after applying the operator."""
        raise NotImplementedError


@dataclass(frozen=True)
class ArcOperator(Operator):
    source: str
    target: str
    delta: float = field(default=0.0, compare=False)

    def nodes_changed(self):
        return [self.target]


@dataclass(frozen=True)
class AddArc(ArcOperator):
    def apply(self, model):
        model.add_arc(self.source, self.target)

    def opposite(self):
        return RemoveArc(self.source, self.target, -self.delta)

    def __str__(self):
        return f"AddArc({self.source} -> {self.target}; Delta: {self.delta})"


@dataclass(frozen=True)
class RemoveArc(ArcOperator):
    def apply(self, model):
        model.remove_arc(self.source, self.target)

    def opposite(self):
        return AddArc(self.source, self.target, -self.delta)

    def __str__(self):
        return f"RemoveArc({self.source} -> {self.target}; Delta: {self.delta})"


@dataclass(frozen=True)
class FlipArc(ArcOperator):
    """Turns source -> target into target -> source."""

    def apply(self, model):
        model.flip_arc(self.source, self.target)

    def opposite(self):
        return FlipArc(self.target, self.source, -self.delta)

    def nodes_changed(self):
        return [self.source, self.target]

    def __str__(self):
        return f"FlipArc({self.source} -> {self.target}; Delta: {self.delta})"


@dataclass(frozen=True)
class ChangeNodeType(Operator):
    node: str
    node_type: NodeType
    delta: float = field(default=0.0, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "node_type", NodeType(self.node_type))

    def apply(self, model):
        model.set_node_type(self.node, self.node_type)

    def opposite(self):
        return ChangeNodeType(self.node, self.node_type.opposite(), -self.delta)

    def nodes_changed(self):
        return [self.node]

    def __str__(self):
        return f"ChangeNodeType({self.node} -> {self.node_type.value}; Delta: {self.delta})"


class OperatorTabuSet:
    """Operators that must not be selected until the set is cleared."""

    def __init__(self):
        self._set = set()

    def insert(self, op: Operator):
        self._set.add(op)

    def clear(self):
        self._set.clear()

    def is_empty(self) -> bool:
        return not self._set

    def __contains__(self, op):
        return op in self._set

    def __len__(self):
        return len(self._set)

    def __iter__(self):
        return iter(self._set)

    def __repr__(self):
        return "OperatorTabuSet({" + ", ".join(str(op) for op in self._set) + "})"


class LocalScoreCache:
    """Last known local score of every node; only nodes touched by an operator are refreshed."""

    def __init__(self):
        self._local_scores: Dict[str, float] = {}

    def cache_local_scores(self, model, score):
        self._local_scores = {n: score.local_score(model, n) for n in model.nodes}

    def cache_vlocal_scores(self, model, score):
        self._local_scores = {n: score.vlocal_score(model, n) for n in model.nodes}

    def update_local_score(self, model, score, op: Operator):
        for n in op.nodes_changed():
            self._local_scores[n] = score.local_score(model, n)

    def update_vlocal_score(self, model, score, op: Operator):
        for n in op.nodes_changed():
            self._local_scores[n] = score.vlocal_score(model, n)

    def local_score(self, model, node) -> float:
        return self._local_scores[node]

    def sum(self) -> float:
        return float(sum(self._local_scores.values()))

    def __contains__(self, node):
        return node in self._local_scores
