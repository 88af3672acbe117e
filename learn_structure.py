"""
Learn a Bayesian network structure from a CSV file with hill-climbing and write it as a .gph arc list.

How to run: learn-structure data/small.csv small.gph --score k2 --max-indegree 3
"""
import argparse
import logging
import time

import networkx as nx

from bn_callbacks import CallbackList, SaveModel, ScoreHistory
from bn_io import draw_network, read_gph, write_dot, write_gph
from bn_model import BN_TYPES
from bn_scoring import load_continuous_data, load_discrete_data
from hc_config import CLI_DEFAULTS, HC_DEFAULTS
from structure_learning import hc


def compute(infile, outfile, bn_type="discrete", score=None, max_indegree=CLI_DEFAULTS["max_indegree"],
            max_iters=CLI_DEFAULTS["max_iters"], epsilon=CLI_DEFAULTS["epsilon"],
            patience=CLI_DEFAULTS["patience"], seed=None, num_folds=HC_DEFAULTS["num_folds"],
            test_holdout_ratio=HC_DEFAULTS["test_holdout_ratio"], save_dir=None, history_plot=None,
            dot=False, start_gph=None, verbose=0):
    if bn_type == "discrete":
        df = load_discrete_data(infile)
    else:
        df = load_continuous_data(infile)

    start = None
    if start_gph:
        start = BN_TYPES[bn_type](df.columns, read_gph(start_gph))

    callbacks = []
    if save_dir:
        callbacks.append(SaveModel(save_dir))
    history = None
    if history_plot:
        history = ScoreHistory()
        callbacks.append(history)
    callback = CallbackList(callbacks) if callbacks else None

    start_time = time.time()
    model = hc(df, start=start, bn_type=bn_type, score=score, callback=callback, max_indegree=max_indegree,
               max_iters=max_iters, epsilon=epsilon, patience=patience, seed=seed, num_folds=num_folds,
               test_holdout_ratio=test_holdout_ratio, verbose=verbose)
    runtime = time.time() - start_time

    write_gph(model, outfile)
    draw_network(model, outfile.replace('.gph', '.png'))
    if dot:
        write_dot(model, outfile.replace(".gph", ".dot"))
    if history is not None:
        history.plot(history_plot)

    print(f"Structure algorithm finished running. Runtime = {runtime:.2f} seconds")
    print(f"Graph written to {outfile}.")
    print(f"Edges: {model.arcs()}")
    if model.supports_node_types:
        node_types = {n: t.value for n, t in model.node_types().items()}
        print(f"Node types: {node_types}")
    print(f"Longest path: {nx.dag_longest_path_length(model.graph)}")
    return model


def main(argv=None):
    parser = argparse.ArgumentParser(description="Hill-climbing structure learning of Bayesian networks.")
    parser.add_argument("infile", help="input CSV file, one column per variable")
    parser.add_argument("outfile", help="output .gph file")
    parser.add_argument("--bn-type", default="discrete", choices=["discrete", "gaussian", "semiparametric"])
    parser.add_argument("--score", default=None, choices=["k2", "bic", "cv-lik", "holdout-lik", "validated-lik"])
    parser.add_argument("--max-indegree", type=int, default=CLI_DEFAULTS["max_indegree"])
    parser.add_argument("--max-iters", type=int, default=CLI_DEFAULTS["max_iters"])
    parser.add_argument("--epsilon", type=float, default=CLI_DEFAULTS["epsilon"])
    parser.add_argument("--patience", type=int, default=CLI_DEFAULTS["patience"])
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--folds", type=int, default=HC_DEFAULTS["num_folds"])
    parser.add_argument("--holdout", type=float, default=HC_DEFAULTS["test_holdout_ratio"])
    parser.add_argument("--save-dir", default=None, help="write the structure of every iteration here")
    parser.add_argument("--history-plot", default=None, help="write a score-per-iteration plot here")
    parser.add_argument("--start", default=None, help="starting structure as a .gph file")
    parser.add_argument("--dot", action="store_true", help="also write a Graphviz .dot file")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    compute(args.infile, args.outfile, bn_type=args.bn_type, score=args.score,
            max_indegree=args.max_indegree, max_iters=args.max_iters, epsilon=args.epsilon,
            patience=args.patience, seed=args.seed, num_folds=args.folds, test_holdout_ratio=args.holdout,
            save_dir=args.save_dir, history_plot=args.history_plot, dot=args.dot, start_gph=args.start,
            verbose=args.verbose)


if __name__ == '__main__':
    main()
