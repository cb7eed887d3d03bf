from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Set

import numpy as np
import geopandas as gpd
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry

from polisim.geo.svg_path import MIN_RING_VERTICES, distinct_points, parse_path_rings

AdjacencyMap = Dict[str, Set[str]]


# ----------------------------
# Config
# ----------------------------
@dataclass
class AdjacencyConfig:
    # 0.0 = exact touching only. A positive value also accepts pairs separated
    # by a gap narrower than this (in path units) as long as they do not overlap.
    gap_tolerance: float = 0.0
    progress_every: int = 500


def adjacency_config_from_cfg(cfg: dict) -> AdjacencyConfig:
    p = AdjacencyConfig()
    run_cfg = cfg.get("run", {}) or {}
    algo_cfg = (cfg.get("algo", {}) or {}).get("adjacency", {}) or {}

    p.gap_tolerance = float(algo_cfg.get("gap_tolerance", run_cfg.get("gap_tolerance", p.gap_tolerance)))
    p.progress_every = int(algo_cfg.get("progress_every", p.progress_every))
    return p


# ----------------------------
# Geometry construction
# ----------------------------
def path_to_geometry(path_data: Optional[str]) -> Optional[BaseGeometry]:
    """
    Build a polygon (or multipolygon for several outlines) from path data.
    Returns None when no outline has enough vertices to form an area.
    """
    polys = []
    for ring in parse_path_rings(path_data):
        if len(ring) < MIN_RING_VERTICES or distinct_points(ring) < 3:
            continue
        polys.append(Polygon(ring))

    if not polys:
        return None

    geom: BaseGeometry = polys[0] if len(polys) == 1 else MultiPolygon(polys)

    if not geom.is_valid:
        geom = geom.buffer(0)
    if geom.is_empty:
        return None
    return geom


def _regions_touch(g1: BaseGeometry, g2: BaseGeometry, gap_tolerance: float) -> bool:
    if g1.touches(g2):
        return True
    if gap_tolerance > 0:
        # bridge small rendering gaps, but never call overlapping shapes neighbours
        if g1.buffer(gap_tolerance).intersects(g2) and not g1.intersects(g2):
            return True
    return False


# ----------------------------
# Adjacency
# ----------------------------
def adjacency_from_geometries(
    geometries: Mapping[str, BaseGeometry],
    config: Optional[AdjacencyConfig] = None,
) -> AdjacencyMap:
    """
    Symmetric adjacency over ready-made geometries.

    Candidate pairs come from the spatial index (bounding boxes padded by the
    gap tolerance); each candidate is then checked with the exact touch test.
    Every region with a usable geometry gets a key, even with no neighbours.
    """
    cfg = config or AdjacencyConfig()

    ids = [str(k) for k, g in geometries.items() if g is not None and not g.is_empty]
    neighbors: AdjacencyMap = {uid: set() for uid in ids}
    if len(ids) < 2:
        return neighbors

    gdf = gpd.GeoDataFrame({"region_id": ids}, geometry=[geometries[uid] for uid in ids])
    sindex = gdf.sindex
    geoms = gdf.geometry.values

    for i, geom_i in enumerate(geoms):
        if cfg.progress_every and i and i % cfg.progress_every == 0:
            print(f"[adjacency] {i}/{len(geoms)}", flush=True)

        minx, miny, maxx, maxy = geom_i.bounds
        pad = cfg.gap_tolerance
        cand_idx = sindex.intersection((minx - pad, miny - pad, maxx + pad, maxy + pad))

        for j in cand_idx:
            j = int(j)
            if i >= j:
                continue
            if _regions_touch(geom_i, geoms[j], cfg.gap_tolerance):
                neighbors[ids[i]].add(ids[j])
                neighbors[ids[j]].add(ids[i])

    return neighbors


def build_adjacency_map(
    region_path_data: Optional[Mapping[str, str]],
    config: Optional[AdjacencyConfig] = None,
) -> AdjacencyMap:
    """
    Parse each region's path data into a polygon and record which regions touch.

    Regions whose outline is unparseable or degenerate are left out of the map
    with a diagnostic; absence means "no known neighbours", not an error.
    """
    if not region_path_data:
        return {}

    print(f"[adjacency] building adjacency for {len(region_path_data)} regions", flush=True)

    geometries: Dict[str, BaseGeometry] = {}
    for region_id, path_data in region_path_data.items():
        geom = path_to_geometry(path_data)
        if geom is None:
            preview = (path_data or "")[:60]
            print(f"[adjacency] dropping '{region_id}': degenerate outline ({preview!r})", flush=True)
            continue
        geometries[str(region_id)] = geom

    print(f"[adjacency] polygons built for {len(geometries)} regions", flush=True)

    adjacency = adjacency_from_geometries(geometries, config)

    if adjacency:
        stats = adjacency_degree_stats(adjacency)
        print(
            f"[adjacency] complete: mean degree {stats['mean_degree']:.1f}, "
            f"isolated regions {stats['zero_degree']}",
            flush=True,
        )
    return adjacency


# ----------------------------
# Helpers
# ----------------------------
def are_regions_adjacent(region1: str, region2: str, adjacency: Mapping[str, Iterable[str]]) -> bool:
    return region2 in (adjacency.get(region1) or ())


def maintains_contiguity(
    members: Iterable[str],
    new_region: str,
    adjacency: Mapping[str, Iterable[str]],
) -> bool:
    """True if adding new_region to a district made of `members` keeps it contiguous."""
    members = set(members)
    if not members:
        return True
    return any(nbr in members for nbr in (adjacency.get(new_region) or ()))


def adjacency_degree_stats(adjacency: Mapping[str, Iterable[str]]) -> dict:
    degrees = np.array([len(set(nbrs)) for nbrs in adjacency.values()], dtype=int)
    if degrees.size == 0:
        return {
            "nodes": 0,
            "mean_degree": 0.0,
            "median_degree": 0.0,
            "min_degree": 0,
            "max_degree": 0,
            "zero_degree": 0,
            "one_degree": 0,
        }
    return {
        "nodes": int(degrees.size),
        "mean_degree": float(degrees.mean()),
        "median_degree": float(np.median(degrees)),
        "min_degree": int(degrees.min()),
        "max_degree": int(degrees.max()),
        "zero_degree": int(np.sum(degrees == 0)),
        "one_degree": int(np.sum(degrees == 1)),
    }


def adjacency_to_json(adjacency: Mapping[str, Iterable[str]]) -> dict[str, list[str]]:
    return {k: sorted(v) for k, v in adjacency.items()}


def adjacency_from_json(raw: Mapping[str, Iterable[str]]) -> AdjacencyMap:
    """Load a stored adjacency, repairing any one-sided entries so the result is symmetric."""
    adjacency: AdjacencyMap = {str(k): set() for k in raw}
    for u, nbrs in raw.items():
        for v in nbrs:
            u, v = str(u), str(v)
            if u == v:
                continue
            adjacency.setdefault(u, set()).add(v)
            adjacency.setdefault(v, set()).add(u)
    return adjacency
