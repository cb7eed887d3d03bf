import argparse
from pathlib import Path

import numpy as np

from polisim.algos.region_graph import build_region_graph
from polisim.data.region_pack import load_region_pack
from polisim.geo.adjacency import adjacency_degree_stats


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("pack_dir")
    args = ap.parse_args()

    pack = load_region_pack(Path(args.pack_dir))
    print("pack:", pack.pack_dir)
    print("state:", pack.state_id or "-")
    print("regions:", len(pack.regions), "| total population:", sum(r.population for r in pack.regions))
    print("paths:", len(pack.paths))

    if pack.adjacency is None:
        print("adjacency: none (run scripts/build_region_pack.py)")
        return

    stats = adjacency_degree_stats(pack.adjacency)
    print("\n--- adjacency ---")
    for k, v in stats.items():
        print(f"{k}: {v}")

    graph = build_region_graph(pack.regions, pack.adjacency)
    comps = graph.find_connected_components()
    print("\n--- components ---")
    print("count:", len(comps))
    for comp in sorted(comps, key=len)[:10]:
        if len(comps) > 1:
            print(f"  size {len(comp)}: {comp[:8]}")

    weights = np.array(list(graph.weights.values()), dtype=float)
    if weights.size:
        print("\n--- edge weights ---")
        print(f"min {weights.min():.3f} | mean {weights.mean():.3f} | max {weights.max():.3f}")

    no_geometry = [r.name for r in pack.regions if r.name not in pack.adjacency]
    if no_geometry:
        print("\nregions missing from adjacency:", no_geometry[:20])


if __name__ == "__main__":
    main()
