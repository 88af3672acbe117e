"""Bayesian network structures: a DAG over named nodes where every node carries a distribution family."""
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

import networkx as nx


class ConstraintViolation(ValueError):
    """The structure breaks an arc blacklist/whitelist restriction."""


class NodeType(str, Enum):
    """Conditional distribution family of a node."""

    DISCRETE = "discrete"
    LINEAR_GAUSSIAN = "linear_gaussian"
    CKDE = "ckde"  #conditional kernel density estimation

    def opposite(self) -> "NodeType":
        if self is NodeType.LINEAR_GAUSSIAN:
            return NodeType.CKDE
        if self is NodeType.CKDE:
            return NodeType.LINEAR_GAUSSIAN
        raise ValueError(f"Node type {self.value} has no alternative family.")


class BayesianNetwork:
    """
    Base network. Subclasses fix the admissible node types.

    The structure is stored in a networkx DiGraph; the node type lives in the
    "node_type" attribute of every node.
    """

    bn_type = None
    default_node_type = None
    allowed_node_types = ()
    supports_node_types = False

    def __init__(self, nodes: Iterable[str], arcs: Iterable[Tuple[str, str]] = (),
                 node_types: Optional[Dict[str, NodeType]] = None):
        self.graph = nx.DiGraph()
        for n in nodes:
            self.graph.add_node(n, node_type=self.default_node_type)

        if node_types:
            for n, t in node_types.items():
                self._check_node(n)
                self._check_type(t)
                self.graph.nodes[n]["node_type"] = NodeType(t)

        for source, target in arcs:
            if not self.can_add_arc(source, target):
                raise ValueError(f"Arc {source} -> {target} cannot be added (repeated arc or cycle).")
            self.graph.add_edge(source, target)

    def _check_node(self, node):
        if not self.contains_node(node):
            raise ValueError(f"Node {node} not present in the Bayesian network.")

    def _check_type(self, node_type):
        if NodeType(node_type) not in self.allowed_node_types:
            raise ValueError(f"Node type {NodeType(node_type).value} not valid for {type(self).__name__}.")

    @property
    def nodes(self) -> List[str]:
        return list(self.graph.nodes)

    def num_nodes(self) -> int:
        return self.graph.number_of_nodes()

    def arcs(self) -> List[Tuple[str, str]]:
        return list(self.graph.edges)

    def num_arcs(self) -> int:
        return self.graph.number_of_edges()

    def contains_node(self, node) -> bool:
        return node in self.graph

    def has_arc(self, source, target) -> bool:
        return self.graph.has_edge(source, target)

    def parents(self, node) -> List[str]:
        return list(self.graph.predecessors(node))

    def children(self, node) -> List[str]:
        return list(self.graph.successors(node))

    def num_parents(self, node) -> int:
        return self.graph.in_degree(node)

    def can_add_arc(self, source, target) -> bool:
        """True if source -> target is new and does not close a directed cycle."""
        if source == target or self.graph.has_edge(source, target):
            return False
        return not nx.has_path(self.graph, target, source)

    def can_flip_arc(self, source, target) -> bool:
        """True if source -> target exists and target -> source would keep the graph acyclic."""
        if not self.graph.has_edge(source, target):
            return False
        #any other directed path source ~> target would become a cycle
        without_arc = nx.restricted_view(self.graph, [], [(source, target)])
        return not nx.has_path(without_arc, source, target)

    def add_arc(self, source, target):
        if not self.can_add_arc(source, target):
            raise ValueError(f"Adding arc {source} -> {target} is not allowed.")
        self.graph.add_edge(source, target)

    def remove_arc(self, source, target):
        self.graph.remove_edge(source, target)

    def flip_arc(self, source, target):
        if not self.can_flip_arc(source, target):
            raise ValueError(f"Flipping arc {source} -> {target} is not allowed.")
        self.graph.remove_edge(source, target)
        self.graph.add_edge(target, source)

    def is_dag(self) -> bool:
        return nx.is_directed_acyclic_graph(self.graph)

    def node_type(self, node) -> NodeType:
        return self.graph.nodes[node]["node_type"]

    def node_types(self) -> Dict[str, NodeType]:
        return {n: t for n, t in self.graph.nodes(data="node_type")}

    def set_node_type(self, node, node_type):
        if not self.supports_node_types:
            raise TypeError(f"{type(self).__name__} does not allow changing node types.")
        self._check_node(node)
        self._check_type(node_type)
        self.graph.nodes[node]["node_type"] = NodeType(node_type)

    def clone(self):
        """Independent copy: mutating the clone never affects this network."""
        new = self.__class__.__new__(self.__class__)
        new.graph = self.graph.copy()
        return new

    def same_structure(self, other) -> bool:
        return set(self.arcs()) == set(other.arcs()) and self.node_types() == other.node_types()

    def check_blacklist(self, arc_blacklist):
        for source, target in arc_blacklist:
            if self.has_arc(source, target):
                raise ConstraintViolation(
                    f"Arc {source} -> {target} in blacklist, but it is present in the Bayesian network.")

    def force_whitelist(self, arc_whitelist):
        for source, target in arc_whitelist:
            if self.has_arc(source, target):
                continue
            if self.has_arc(target, source):
                raise ConstraintViolation(
                    f"Arc {target} -> {source} in Bayesian network, but arc {source} -> {target} is whitelisted.")
            if not self.can_add_arc(source, target):
                raise ConstraintViolation(f"Whitelisted arc {source} -> {target} generates a cycle.")
            self.graph.add_edge(source, target)

    def force_type_whitelist(self, type_whitelist):
        for node, node_type in type_whitelist:
            self.set_node_type(node, node_type)

    def __str__(self):
        return f"{type(self).__name__}(nodes={self.num_nodes()}, arcs={self.arcs()})"

    __repr__ = __str__


class DiscreteBN(BayesianNetwork):
    bn_type = "discrete"
    default_node_type = NodeType.DISCRETE
    allowed_node_types = (NodeType.DISCRETE,)


class GaussianBN(BayesianNetwork):
    bn_type = "gaussian"
    default_node_type = NodeType.LINEAR_GAUSSIAN
    allowed_node_types = (NodeType.LINEAR_GAUSSIAN,)


class SemiparametricBN(BayesianNetwork):
    """Continuous network mixing linear Gaussian and CKDE nodes; the only network whose node types can change."""

    bn_type = "semiparametric"
    default_node_type = NodeType.LINEAR_GAUSSIAN
    allowed_node_types = (NodeType.LINEAR_GAUSSIAN, NodeType.CKDE)
    supports_node_types = True


BN_TYPES = {cls.bn_type: cls for cls in (DiscreteBN, GaussianBN, SemiparametricBN)}
