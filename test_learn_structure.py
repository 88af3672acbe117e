import numpy as np
import pandas as pd

from bn_io import read_gph
from learn_structure import main


def write_discrete_csv(path, n=300, seed=0):
    rng = np.random.default_rng(seed)
    a = rng.integers(1, 3, size=n)
    b = np.where(rng.random(n) < 0.85, a, 3 - a)
    c = rng.integers(1, 3, size=n)
    pd.DataFrame({"a": a, "b": b, "c": c}).to_csv(path, index=False)


def test_cli_discrete(tmp_path, capsys):
    infile = tmp_path / "small.csv"
    outfile = tmp_path / "small.gph"
    write_discrete_csv(infile)

    main([str(infile), str(outfile), "--score", "k2", "--max-iters", "5", "--dot",
          "--save-dir", str(tmp_path / "iters"), "--history-plot", str(tmp_path / "history.png")])

    arcs = read_gph(str(outfile))
    assert {frozenset(a) for a in arcs} >= {frozenset({"a", "b"})}
    assert (tmp_path / "small.png").exists()
    assert (tmp_path / "small.dot").exists()
    assert (tmp_path / "history.png").exists()
    assert (tmp_path / "iters" / "000000.gph").exists()
    assert "Graph written to" in capsys.readouterr().out


def test_cli_start_structure(tmp_path):
    infile = tmp_path / "small.csv"
    start = tmp_path / "start.gph"
    outfile = tmp_path / "out.gph"
    write_discrete_csv(infile)
    start.write_text("a, c\n")

    main([str(infile), str(outfile), "--start", str(start), "--max-iters", "0"])

    assert read_gph(str(outfile)) == [("a", "c")]
