from __future__ import annotations

import hashlib
import json
import math
from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from polisim.algos.balancer import (
    STOP_EMPTY,
    BalanceConfig,
    DistrictBalancer,
    FinalDistrict,
    balance_config_from_cfg,
)
from polisim.data.regions import Region, total_population
from polisim.geo.adjacency import AdjacencyConfig, adjacency_config_from_cfg, build_adjacency_map

GOLDEN_ANGLE = 137.5
SATURATION_LIGHTNESS_PAIRS = [(85, 55), (70, 65), (90, 45), (65, 75), (80, 50)]

DEFAULT_DISTRICT_COUNT = 1

# 2020 apportionment
DISTRICT_COUNTS = {
    "USA_AL": 7, "USA_AK": 1, "USA_AZ": 9, "USA_AR": 4, "USA_CA": 52,
    "USA_CO": 8, "USA_CT": 5, "USA_DE": 1, "USA_FL": 28, "USA_GA": 14,
    "USA_HI": 2, "USA_ID": 2, "USA_IL": 17, "USA_IN": 9, "USA_IA": 4,
    "USA_KS": 4, "USA_KY": 6, "USA_LA": 6, "USA_ME": 2, "USA_MD": 8,
    "USA_MA": 9, "USA_MI": 13, "USA_MN": 8, "USA_MS": 4, "USA_MO": 8,
    "USA_MT": 2, "USA_NE": 3, "USA_NV": 4, "USA_NH": 2, "USA_NJ": 12,
    "USA_NM": 3, "USA_NY": 26, "USA_NC": 14, "USA_ND": 1, "USA_OH": 15,
    "USA_OK": 5, "USA_OR": 6, "USA_PA": 17, "USA_RI": 2, "USA_SC": 7,
    "USA_SD": 1, "USA_TN": 9, "USA_TX": 38, "USA_UT": 4, "USA_VT": 1,
    "USA_VA": 11, "USA_WA": 10, "USA_WV": 2, "USA_WI": 8, "USA_WY": 1,
}


def congressional_district_count(state_id: Optional[str]) -> int:
    return DISTRICT_COUNTS.get(state_id or "", DEFAULT_DISTRICT_COUNT)


def generate_district_colors(num_districts: int) -> List[str]:
    """Golden-angle hue rotation so neighbouring district ids get distinct colours."""
    colors = []
    for i in range(max(0, num_districts)):
        hue = (i * GOLDEN_ANGLE) % 360
        s, l = SATURATION_LIGHTNESS_PAIRS[i % len(SATURATION_LIGHTNESS_PAIRS)]
        # hues are multiples of 0.5; round half up
        colors.append(f"hsl({int(math.floor(hue + 0.5))}, {s}%, {l}%)")
    return colors


# ----------------------------
# Split-region helpers
# ----------------------------
def split_regions(districts: Sequence[FinalDistrict]) -> Dict[str, Dict[int, float]]:
    """Region name -> {district id: fraction} for every region held by more than one district."""
    out: Dict[str, Dict[int, float]] = {}
    for d in districts:
        for c in d.counties:
            if c.is_split and c.name not in out:
                out[c.name] = dict(c.allocations)
    return out


def primary_district(allocations: Mapping[int, float]) -> Optional[int]:
    """District holding the largest share; ties go to the lowest id."""
    if not allocations:
        return None
    return min(allocations, key=lambda k: (-allocations[k], k))


def region_district_map(districts: Sequence[FinalDistrict]) -> Dict[str, int]:
    allocations: Dict[str, Dict[int, float]] = {}
    for d in districts:
        for c in d.counties:
            allocations.setdefault(c.name, dict(c.allocations))
    return {name: primary_district(a) for name, a in allocations.items()}


# ----------------------------
# Cache
# ----------------------------
@dataclass(frozen=True)
class DistrictCacheKey:
    state_id: str
    total_population: int
    num_districts: int
    region_count: int
    region_fingerprint: str
    geometry_fingerprint: str
    config_fingerprint: str


def _fingerprint(payload) -> str:
    raw = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha1(raw).hexdigest()


def region_fingerprint(regions: Sequence[Region]) -> str:
    return _fingerprint([
        [r.name, r.region_id, r.population, r.gdp_per_capita,
         [[s.party_name, s.popularity] for s in r.political_landscape]]
        for r in regions
    ])


def geometry_fingerprint(
    path_data: Optional[Mapping[str, str]],
    adjacency: Optional[Mapping[str, Iterable[str]]] = None,
) -> str:
    return _fingerprint({
        "paths": sorted((path_data or {}).items()),
        "adjacency": sorted((k, sorted(v)) for k, v in (adjacency or {}).items()),
    })


class DistrictCache:
    """Explicit per-service cache of district plans, keyed on everything that affects the output."""

    def __init__(self):
        self._store: Dict[DistrictCacheKey, "DistrictPlan"] = {}

    def get(self, key: DistrictCacheKey) -> Optional["DistrictPlan"]:
        return self._store.get(key)

    def put(self, key: DistrictCacheKey, plan: "DistrictPlan") -> None:
        self._store[key] = plan

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key) -> bool:
        return key in self._store


# ----------------------------
# Service
# ----------------------------
@dataclass
class DistrictPlan:
    state_id: str
    districts: List[FinalDistrict] = field(default_factory=list)
    colors: List[str] = field(default_factory=list)
    adjacency_size: int = 0
    stop_reason: str = STOP_EMPTY
    iterations: int = 0
    target_population: float = 0.0

    @property
    def num_districts(self) -> int:
        return len(self.districts)

    def to_records(self) -> List[dict]:
        return [d.to_record() for d in self.districts]


def generate_congressional_districts(
    regions: Sequence[Region],
    num_districts: Optional[int] = None,
    path_data: Optional[Mapping[str, str]] = None,
    *,
    state_id: str = "",
    cache: Optional[DistrictCache] = None,
    config: Optional[dict] = None,
    adjacency: Optional[Mapping[str, Iterable[str]]] = None,
) -> DistrictPlan:
    """
    Regions + outlines -> balanced district plan.

    num_districts defaults to the apportionment for state_id. A precomputed
    adjacency skips geometry parsing. With neither geometry nor adjacency
    (or no regions / no districts) the plan is empty; nothing raises.
    """
    cfg = config or {}
    regions = list(regions)
    if num_districts is None:
        num_districts = congressional_district_count(state_id)

    bal_cfg: BalanceConfig = balance_config_from_cfg(cfg)
    adj_cfg: AdjacencyConfig = adjacency_config_from_cfg(cfg)

    key = DistrictCacheKey(
        state_id=state_id,
        total_population=total_population(regions),
        num_districts=int(num_districts),
        region_count=len(regions),
        region_fingerprint=region_fingerprint(regions),
        geometry_fingerprint=geometry_fingerprint(path_data, adjacency),
        config_fingerprint=_fingerprint({"balance": asdict(bal_cfg), "adjacency": asdict(adj_cfg)}),
    )
    if cache is not None:
        hit = cache.get(key)
        if hit is not None:
            print(f"[districts] cache hit for {state_id or '<state>'}", flush=True)
            return hit

    plan = DistrictPlan(state_id=state_id)

    if not regions or num_districts <= 0:
        print("[districts] no regions or no districts requested; empty plan", flush=True)
    elif adjacency is None and not path_data:
        print("[districts] no geometry and no adjacency; empty plan", flush=True)
    else:
        if adjacency is None:
            adjacency = build_adjacency_map(path_data, adj_cfg)
        print(
            f"[districts] {state_id or '<state>'}: {len(regions)} regions -> {num_districts} districts "
            f"(adjacency for {len(adjacency)} regions)",
            flush=True,
        )

        balancer = DistrictBalancer(regions, num_districts, adjacency, bal_cfg)
        result = balancer.balance_districts()

        plan.districts = result.districts
        plan.colors = generate_district_colors(len(result.districts))
        plan.adjacency_size = len(adjacency)
        plan.stop_reason = result.stop_reason
        plan.iterations = result.iterations
        plan.target_population = result.target_population

        for d in plan.districts:
            dev = 0.0
            if result.target_population > 0:
                dev = (d.population - result.target_population) / result.target_population * 100
            n_split = sum(1 for c in d.counties if c.is_split)
            print(
                f"[districts]   district {d.id}: {len(d.counties)} regions ({n_split} split), "
                f"pop {d.population:,.0f} ({dev:+.1f}%)",
                flush=True,
            )

    if cache is not None:
        cache.put(key, plan)
    return plan
