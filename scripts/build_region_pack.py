from __future__ import annotations

import argparse
import json
from datetime import datetime
from pathlib import Path

import pandas as pd

from polisim.config import get_section, load_config
from polisim.data.region_pack import write_region_pack
from polisim.data.regions import region_from_record, total_population
from polisim.geo.adjacency import adjacency_config_from_cfg, adjacency_degree_stats, build_adjacency_map


def _read_region_records(path: Path) -> list[dict]:
    if not path.exists():
        raise FileNotFoundError(f"Missing regions file: {path}")
    if path.suffix.lower() == ".json":
        raw = json.loads(path.read_text())
        # either a list of records or {"counties": [...]}
        if isinstance(raw, dict):
            raw = raw.get("counties") or raw.get("regions") or []
        return list(raw)
    return pd.read_csv(path, dtype={"name": str, "id": str}).to_dict(orient="records")


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", default="config.yaml")
    ap.add_argument("--regions", default=None, help="regions csv/json (overrides data.regions_path)")
    ap.add_argument("--paths", default=None, help="name -> path data json (overrides data.paths_json)")
    ap.add_argument("--out", default=None, help="pack directory (overrides paths.pack_dir)")
    ap.add_argument("--state", default=None, help="state id stored in meta.json")
    ap.add_argument("--shapes", action="store_true", help="also write shapes.geojson")
    args = ap.parse_args()

    cfg = load_config(Path(args.config))

    regions_path = args.regions or get_section(cfg, "data", "regions_path")
    paths_json = args.paths or get_section(cfg, "data", "paths_json")
    out_dir = args.out or get_section(cfg, "paths", "pack_dir")
    if not regions_path or not paths_json or not out_dir:
        raise KeyError(
            "Need regions, paths and an output directory. Provide --regions/--paths/--out or:\n"
            "  data.regions_path, data.paths_json, paths.pack_dir"
        )
    state_id = args.state or get_section(cfg, "run", "state_id", default="")

    regions = [region_from_record(r) for r in _read_region_records(Path(regions_path).expanduser())]

    paths_file = Path(paths_json).expanduser()
    if not paths_file.exists():
        raise FileNotFoundError(f"Missing path data: {paths_file}")
    paths = json.loads(paths_file.read_text())

    adjacency = build_adjacency_map(paths, adjacency_config_from_cfg(cfg))
    stats = adjacency_degree_stats(adjacency)

    missing = sorted(set(r.name for r in regions) - set(adjacency))
    if missing:
        print(f"[adjacency] {len(missing)} region(s) without usable geometry: {missing[:10]}")

    meta = {
        "built_at": datetime.now().isoformat(),
        "state_id": state_id,
        "source_regions": str(regions_path),
        "source_paths": str(paths_json),
        "n_regions": len(regions),
        "total_population": total_population(regions),
        "gap_tolerance": adjacency_config_from_cfg(cfg).gap_tolerance,
        "adjacency": stats,
    }

    out = write_region_pack(
        Path(out_dir).expanduser(),
        regions,
        paths=paths,
        adjacency=adjacency,
        meta=meta,
        write_shapes=args.shapes,
    )

    print(f"✅ Built region pack at: {out}")
    print(f"Regions: {len(regions)} | adjacency keys: {len(adjacency)} | mean degree: {stats['mean_degree']:.2f}")


if __name__ == "__main__":
    main()
