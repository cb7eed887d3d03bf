from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import geopandas as gpd
import pandas as pd

from polisim.algos.congressional import DistrictPlan, primary_district

STATS_COLUMNS = [
    "district", "population", "target", "deviation", "deviation_pct",
    "regions", "split_regions", "color",
]
ALLOCATION_COLUMNS = ["region", "district", "fraction", "population", "primary"]


def district_stats_frame(plan: DistrictPlan) -> pd.DataFrame:
    rows = []
    for i, d in enumerate(plan.districts):
        target = plan.target_population
        rows.append({
            "district": d.id,
            "population": d.population,
            "target": target,
            "deviation": d.population - target,
            "deviation_pct": (d.population - target) / target * 100 if target > 0 else 0.0,
            "regions": len(d.counties),
            "split_regions": sum(1 for c in d.counties if c.is_split),
            "color": plan.colors[i] if i < len(plan.colors) else None,
        })
    return pd.DataFrame(rows, columns=STATS_COLUMNS)


def region_allocation_frame(plan: DistrictPlan) -> pd.DataFrame:
    """One row per (region, district) share."""
    rows = []
    for d in plan.districts:
        for c in d.counties:
            rows.append({
                "region": c.name,
                "district": d.id,
                "fraction": c.allocations.get(d.id, 0.0),
                "population": c.population,
                "primary": primary_district(c.allocations) == d.id,
            })
    df = pd.DataFrame(rows, columns=ALLOCATION_COLUMNS)
    return df.sort_values(["region", "district"]).reset_index(drop=True)


def export_plan(plan: DistrictPlan, run_dir: str | Path, shapes: Optional[gpd.GeoDataFrame] = None) -> Path:
    run_dir = Path(run_dir)
    run_dir.mkdir(parents=True, exist_ok=True)

    stats = district_stats_frame(plan)
    (run_dir / "district_stats.json").write_text(json.dumps(stats.to_dict(orient="records"), indent=2))
    stats.to_csv(run_dir / "district_stats.csv", index=False)

    alloc = region_allocation_frame(plan)
    alloc.to_csv(run_dir / "region_to_district.csv", index=False)

    (run_dir / "plan.json").write_text(json.dumps({
        "state_id": plan.state_id,
        "stop_reason": plan.stop_reason,
        "iterations": plan.iterations,
        "target_population": plan.target_population,
        "colors": plan.colors,
        "districts": plan.to_records(),
    }, indent=2))

    written = ["district_stats.json", "district_stats.csv", "region_to_district.csv", "plan.json"]

    # district outlines, each region drawn in its primary district
    if shapes is not None and len(shapes) and len(alloc):
        primary = alloc.loc[alloc["primary"], ["region", "district"]].rename(columns={"region": "name"})
        gdf = shapes.merge(primary, on="name", how="inner")
        if len(gdf):
            districts = gdf.dissolve(by="district", as_index=False)
            districts.to_file(run_dir / "districts.geojson", driver="GeoJSON")
            written.append("districts.geojson")

    print(f"✅ Exported plan to: {run_dir}")
    for name in written:
        print(f"   - {name}")
    return run_dir
