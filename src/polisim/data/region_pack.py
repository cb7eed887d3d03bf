from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

import geopandas as gpd
import pandas as pd

from polisim.data.regions import Region, region_from_record, region_to_record
from polisim.geo.adjacency import AdjacencyMap, adjacency_from_json, adjacency_to_json, path_to_geometry

REQUIRED_COLUMNS = ["name", "population"]
REGION_COLUMNS = ["name", "id", "population", "gdp_per_capita", "political_landscape"]


@dataclass
class RegionPack:
    pack_dir: Path
    regions: List[Region]
    name_to_idx: Dict[str, int]
    paths: Dict[str, str] = field(default_factory=dict)
    adjacency: Optional[AdjacencyMap] = None
    meta: dict = field(default_factory=dict)
    shapes: Optional[gpd.GeoDataFrame] = None

    @property
    def names(self) -> List[str]:
        return [r.name for r in self.regions]

    @property
    def state_id(self) -> str:
        return str(self.meta.get("state_id", ""))


def load_region_pack(pack_dir: str | Path) -> RegionPack:
    pack_dir = Path(pack_dir)

    regions_csv = pack_dir / "regions.csv"
    if not regions_csv.exists():
        raise FileNotFoundError(f"Missing {regions_csv}")

    df = pd.read_csv(regions_csv, dtype={"name": str, "id": str})
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise KeyError(f"{regions_csv} is missing column(s) {missing}. Found: {list(df.columns)}")

    if df["name"].duplicated().any():
        dupes = df.loc[df["name"].duplicated(), "name"].tolist()
        raise ValueError(f"{regions_csv} has duplicate region names: {dupes[:10]}")

    regions = [region_from_record(rec) for rec in df.to_dict(orient="records")]
    name_to_idx = {r.name: i for i, r in enumerate(regions)}

    paths: Dict[str, str] = {}
    if (pack_dir / "paths.json").exists():
        paths = {str(k): v for k, v in json.loads((pack_dir / "paths.json").read_text()).items()}

    adjacency = None
    if (pack_dir / "adjacency.json").exists():
        adjacency = adjacency_from_json(json.loads((pack_dir / "adjacency.json").read_text()))

    meta = {}
    if (pack_dir / "meta.json").exists():
        meta = json.loads((pack_dir / "meta.json").read_text())

    shapes = None
    if (pack_dir / "shapes.geojson").exists():
        shapes = gpd.read_file(pack_dir / "shapes.geojson")
        shapes["name"] = shapes["name"].astype(str)

    return RegionPack(
        pack_dir=pack_dir,
        regions=regions,
        name_to_idx=name_to_idx,
        paths=paths,
        adjacency=adjacency,
        meta=meta,
        shapes=shapes,
    )


def shapes_from_paths(paths: Mapping[str, str]) -> gpd.GeoDataFrame:
    """One row per region whose outline parses; path units, no CRS."""
    names, geoms = [], []
    for name, path_data in paths.items():
        geom = path_to_geometry(path_data)
        if geom is not None:
            names.append(str(name))
            geoms.append(geom)
    return gpd.GeoDataFrame({"name": names}, geometry=geoms)


def write_region_pack(
    pack_dir: str | Path,
    regions: Sequence[Region],
    paths: Optional[Mapping[str, str]] = None,
    adjacency: Optional[Mapping[str, Sequence[str]]] = None,
    meta: Optional[dict] = None,
    write_shapes: bool = False,
) -> Path:
    pack_dir = Path(pack_dir)
    pack_dir.mkdir(parents=True, exist_ok=True)

    df = pd.DataFrame([region_to_record(r) for r in regions], columns=REGION_COLUMNS)
    df.to_csv(pack_dir / "regions.csv", index=False)

    if paths is not None:
        (pack_dir / "paths.json").write_text(json.dumps(dict(paths), indent=2))
    if adjacency is not None:
        (pack_dir / "adjacency.json").write_text(json.dumps(adjacency_to_json(adjacency), indent=2))
    if meta is not None:
        (pack_dir / "meta.json").write_text(json.dumps(meta, indent=2))
    if write_shapes and paths:
        shapes = shapes_from_paths(paths)
        if len(shapes):
            shapes.to_file(pack_dir / "shapes.geojson", driver="GeoJSON")

    return pack_dir
