"""Reading and writing network structures: .gph arc lists, Graphviz dot files and matplotlib drawings."""
import matplotlib.pyplot as plt
import networkx as nx


def write_gph(model, filename):
    """One "parent, child" line per arc."""
    with open(filename, 'w') as f:
        for source, target in model.arcs():
            f.write("{}, {}\n".format(source, target))


def read_gph(filename):
    arcs = []
    with open(filename) as f:
        for line in f:
            if not line.strip():
                continue
            u, v = [s.strip() for s in line.split(",")]
            arcs.append((u, v))
    return arcs


def write_dot(model, filename):
    """Graphviz export, left to right; CKDE nodes are filled."""
    with open(filename, "w") as out:
        out.write('digraph G {\n')
        out.write('  rankdir=LR;\n')
        out.write('  node [shape=box, style=rounded, fontname="Helvetica"];\n')
        for node, node_type in model.node_types().items():
            if node_type == "ckde":
                out.write(f'  "{node}" [style="rounded,filled", fillcolor=orange];\n')
            else:
                out.write(f'  "{node}";\n')
        for source, target in model.arcs():
            out.write(f'  "{source}" -> "{target}";\n')
        out.write('}\n')


def draw_network(model, filename):
    """Spring-layout drawing of the structure; CKDE nodes are shaded differently from the rest."""
    dag = model.graph
    colors = ["tab:orange" if t == "ckde" else "tab:blue" for _, t in dag.nodes(data="node_type")]

    fig = plt.figure(figsize=(8, 6))
    pos = nx.spring_layout(dag, seed=0)
    nx.draw_networkx_nodes(dag, pos, node_size=900, node_color=colors)
    nx.draw_networkx_labels(dag, pos, font_size=9)
    nx.draw_networkx_edges(dag, pos, arrows=True, arrowstyle='-|>', arrowsize=12)
    plt.axis('off')
    plt.tight_layout()
    plt.savefig(filename, dpi=200)
    plt.close(fig)
