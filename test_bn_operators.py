from bn_model import GaussianBN, NodeType, SemiparametricBN
from bn_operators import AddArc, ChangeNodeType, FlipArc, LocalScoreCache, OperatorTabuSet, RemoveArc


class CountingScore:
    """local score = number of parents; counts every evaluation per node."""

    def __init__(self):
        self.calls = {}

    def local_score(self, model, node):
        self.calls[node] = self.calls.get(node, 0) + 1
        return float(model.num_parents(node))

    def vlocal_score(self, model, node):
        return -self.local_score(model, node)


def test_opposites():
    assert AddArc("A", "B", 1.0).opposite() == RemoveArc("A", "B")
    assert RemoveArc("A", "B", 1.0).opposite() == AddArc("A", "B")
    assert FlipArc("A", "B", 1.0).opposite() == FlipArc("B", "A")
    assert ChangeNodeType("A", NodeType.CKDE).opposite() == ChangeNodeType("A", NodeType.LINEAR_GAUSSIAN)
    assert AddArc("A", "B", 1.5).opposite().delta == -1.5


def test_equality_ignores_delta():
    assert AddArc("A", "B", 1.0) == AddArc("A", "B", 7.0)
    assert hash(AddArc("A", "B", 1.0)) == hash(AddArc("A", "B", 7.0))
    assert AddArc("A", "B") != RemoveArc("A", "B")
    assert AddArc("A", "B") != AddArc("B", "A")
    assert ChangeNodeType("A", "ckde") == ChangeNodeType("A", NodeType.CKDE)


def test_apply():
    bn = SemiparametricBN(["A", "B"])
    AddArc("A", "B").apply(bn)
    assert bn.has_arc("A", "B")
    FlipArc("A", "B").apply(bn)
    assert bn.has_arc("B", "A") and not bn.has_arc("A", "B")
    RemoveArc("B", "A").apply(bn)
    assert bn.num_arcs() == 0
    ChangeNodeType("A", NodeType.CKDE).apply(bn)
    assert bn.node_type("A") == NodeType.CKDE


def test_opposite_undoes_operator():
    bn = GaussianBN(["A", "B", "C"], [("A", "B")])
    for op in [AddArc("B", "C"), FlipArc("A", "B"), RemoveArc("A", "B")]:
        before = bn.clone()
        op.apply(bn)
        op.opposite().apply(bn)
        assert bn.same_structure(before)


def test_nodes_changed():
    assert AddArc("A", "B").nodes_changed() == ["B"]
    assert RemoveArc("A", "B").nodes_changed() == ["B"]
    assert FlipArc("A", "B").nodes_changed() == ["A", "B"]
    assert ChangeNodeType("A", NodeType.CKDE).nodes_changed() == ["A"]


def test_str():
    assert str(AddArc("A", "B", 2.0)) == "AddArc(A -> B; Delta: 2.0)"
    assert str(ChangeNodeType("A", NodeType.CKDE, 1.0)) == "ChangeNodeType(A -> ckde; Delta: 1.0)"


def test_tabu_set():
    tabu = OperatorTabuSet()
    assert tabu.is_empty()
    tabu.insert(RemoveArc("A", "B", -2.0))
    assert RemoveArc("A", "B", 5.0) in tabu
    assert AddArc("A", "B") not in tabu
    assert len(tabu) == 1
    tabu.clear()
    assert tabu.is_empty()


def test_local_score_cache_refreshes_only_changed_nodes():
    bn = GaussianBN(["A", "B", "C"])
    score = CountingScore()
    cache = LocalScoreCache()
    cache.cache_local_scores(bn, score)
    assert score.calls == {"A": 1, "B": 1, "C": 1}

    op = AddArc("A", "B")
    op.apply(bn)
    cache.update_local_score(bn, score, op)
    assert score.calls == {"A": 1, "B": 2, "C": 1}
    assert cache.local_score(bn, "B") == 1.0
    assert cache.sum() == 1.0

    op = FlipArc("A", "B")
    op.apply(bn)
    cache.update_local_score(bn, score, op)
    assert score.calls == {"A": 2, "B": 3, "C": 1}
    assert cache.local_score(bn, "A") == 1.0
    assert cache.local_score(bn, "B") == 0.0


def test_local_score_cache_validation_path():
    bn = GaussianBN(["A", "B"], [("A", "B")])
    cache = LocalScoreCache()
    cache.cache_vlocal_scores(bn, CountingScore())
    assert cache.local_score(bn, "B") == -1.0
    assert "A" in cache
