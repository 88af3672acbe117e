from bn_io import draw_network, read_gph, write_dot, write_gph
from bn_model import GaussianBN, SemiparametricBN


def test_gph_round_trip(tmp_path):
    model = GaussianBN(["age", "income", "debt"], [("age", "income"), ("income", "debt")])
    path = tmp_path / "model.gph"
    write_gph(model, str(path))
    assert path.read_text() == "age, income\nincome, debt\n"
    assert read_gph(str(path)) == [("age", "income"), ("income", "debt")]


def test_read_gph_skips_blank_lines(tmp_path):
    path = tmp_path / "model.gph"
    path.write_text("a, b\n\n b ,c\n")
    assert read_gph(str(path)) == [("a", "b"), ("b", "c")]


def test_write_dot(tmp_path):
    model = SemiparametricBN(["a", "b", "c"], [("a", "b")], node_types={"b": "ckde"})
    path = tmp_path / "model.dot"
    write_dot(model, str(path))
    text = path.read_text()
    assert text.startswith("digraph G {")
    assert '  "a" -> "b";\n' in text
    assert '  "b" [style="rounded,filled", fillcolor=orange];\n' in text
    assert '  "c";\n' in text
    assert text.endswith("}\n")


def test_draw_network(tmp_path):
    model = SemiparametricBN(["a", "b"], [("a", "b")], node_types={"b": "ckde"})
    path = tmp_path / "model.png"
    draw_network(model, str(path))
    assert path.stat().st_size > 0
