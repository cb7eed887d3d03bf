from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set

import numpy as np

from polisim.algos.region_graph import RegionGraph, build_region_graph
from polisim.data.regions import Region

MAX_SHIFT_FRACTION = 0.05
DEFAULT_TOLERANCE_PERCENT = 0.5
DEFAULT_MAX_ITERATIONS = 10_000
ALLOCATION_EPS = 1e-9

# two rewards closer than this are the same move quality
REWARD_EPS = 1e-9

STOP_CONVERGED = "converged"
STOP_NO_MOVES = "no_moves"
STOP_MAX_ITERATIONS = "max_iterations"
STOP_CANCELLED = "cancelled"
STOP_EMPTY = "empty"


# ----------------------------
# Config
# ----------------------------
@dataclass
class BalanceConfig:
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    tolerance_percent: float = DEFAULT_TOLERANCE_PERCENT
    max_shift_fraction: float = MAX_SHIFT_FRACTION
    allocation_eps: float = ALLOCATION_EPS

    # progress print / on_step cadence (0 = off)
    step_every: int = 500


def balance_config_from_cfg(cfg: dict) -> BalanceConfig:
    p = BalanceConfig()
    run_cfg = cfg.get("run", {}) or {}
    algo_cfg = (cfg.get("algo", {}) or {}).get("balance", {}) or {}

    p.max_iterations = int(algo_cfg.get("max_iterations", run_cfg.get("max_iterations", p.max_iterations)))
    p.tolerance_percent = float(
        algo_cfg.get("tolerance_percent", run_cfg.get("tolerance_percent", p.tolerance_percent))
    )
    p.max_shift_fraction = float(algo_cfg.get("max_shift_fraction", p.max_shift_fraction))
    p.allocation_eps = float(algo_cfg.get("allocation_eps", p.allocation_eps))
    p.step_every = int(algo_cfg.get("step_every", run_cfg.get("step_every", p.step_every)))
    return p


# ----------------------------
# Results
# ----------------------------
@dataclass
class DistrictCounty:
    name: str
    population: float
    # district id -> fraction of this region's population held by that district
    allocations: Dict[int, float]

    @property
    def is_split(self) -> bool:
        return len(self.allocations) > 1


@dataclass
class FinalDistrict:
    id: int
    population: float
    counties: List[DistrictCounty] = field(default_factory=list)

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "population": self.population,
            "counties": [
                {
                    "name": c.name,
                    "population": c.population,
                    "allocations": {str(k): v for k, v in c.allocations.items()},
                }
                for c in self.counties
            ],
        }


@dataclass
class BalanceResult:
    districts: List[FinalDistrict]
    iterations: int = 0
    stop_reason: str = STOP_EMPTY
    target_population: float = 0.0
    max_deviation: float = 0.0

    def populations(self) -> List[float]:
        return [d.population for d in self.districts]


@dataclass
class _Move:
    donor: int
    receiver: int
    region: int
    shift: float
    reward: float


# ----------------------------
# Balancer
# ----------------------------
class DistrictBalancer:
    """
    Seed-and-grow partition of regions into districts, then fractional
    population moves across district borders until populations are within
    tolerance of the target.

    State lives in flat arrays indexed by region / district position:
      alloc[i, d]  fraction of region i held by district d (rows sum to 1)
      pop[d]       derived district population, kept in step with alloc
      members[d]   regions with alloc[i, d] > 0
    """

    def __init__(
        self,
        regions: Sequence[Region],
        num_districts: int,
        adjacency: Optional[Mapping[str, Iterable[str]]],
        config: Optional[BalanceConfig] = None,
    ):
        self.cfg = config or BalanceConfig()
        self.regions = list(regions)
        self.num_districts = max(0, int(num_districts))

        self.names = [r.name for r in self.regions]
        self.index = {name: i for i, name in enumerate(self.names)}
        self.weight = np.array([float(r.population) for r in self.regions], dtype=float)

        self.adjacency: Dict[str, Set[str]] = {}
        for name, nbrs in (adjacency or {}).items():
            if name in self.index:
                self.adjacency[name] = {n for n in nbrs if n in self.index and n != name}
        self.adj_idx: List[List[int]] = [
            sorted(self.index[n] for n in self.adjacency.get(name, ())) for name in self.names
        ]

        self.graph: RegionGraph = build_region_graph(self.regions, self.adjacency)

        N, K = len(self.regions), self.num_districts
        self.alloc = np.zeros((N, K), dtype=float)
        self.pop = np.zeros(K, dtype=float)
        self.members: List[Set[int]] = [set() for _ in range(K)]

        self.total_population = float(self.weight.sum())
        self.target_population = self.total_population / K if K else 0.0
        self.seeds: List[int] = []
        self._initialized = False

    # ----------------------------
    # Initialization
    # ----------------------------
    def _assign(self, i: int, d: int) -> None:
        self.alloc[i, :] = 0.0
        self.alloc[i, d] = 1.0
        self.pop[d] += self.weight[i]
        self.members[d].add(i)

    def initialize(self) -> None:
        if self._initialized:
            return
        self._initialized = True

        N, K = len(self.regions), self.num_districts
        if N == 0 or K == 0:
            return

        seed_names = self.graph.select_distributed_seeds(K)
        self.seeds = [self.index[name] for name in seed_names]
        if len(self.seeds) < K:
            print(
                f"[balance] only {len(self.seeds)} regions for {K} districts; "
                f"{K - len(self.seeds)} district(s) stay empty",
                flush=True,
            )

        assigned = np.zeros(N, dtype=bool)
        q: deque = deque()
        for d, s in enumerate(self.seeds):
            self._assign(s, d)
            assigned[s] = True
            q.append((s, d))

        # one shared frontier: districts grow in lock-step
        while q:
            i, d = q.popleft()
            for j in self.adj_idx[i]:
                if not assigned[j]:
                    assigned[j] = True
                    self._assign(j, d)
                    q.append((j, d))

        unreached = np.flatnonzero(~assigned)
        if unreached.size:
            print(f"[balance] {unreached.size} region(s) unreachable from any seed; "
                  f"assigning to smallest district", flush=True)
        for i in unreached:
            d = int(np.argmin(self.pop))
            self._assign(int(i), d)

        print(
            f"[balance] initialized {K} districts over {N} regions, "
            f"target {self.target_population:,.1f}, range {self.population_range():,.1f}",
            flush=True,
        )

    # ----------------------------
    # Queries
    # ----------------------------
    def population_range(self) -> float:
        if self.pop.size == 0:
            return 0.0
        return float(self.pop.max() - self.pop.min())

    def max_deviation(self) -> float:
        if self.pop.size == 0:
            return 0.0
        return float(np.abs(self.pop - self.target_population).max())

    def total_deviation(self) -> float:
        return float(np.abs(self.pop - self.target_population).sum())

    def _component_count(self, nodes: Set[int]) -> int:
        seen: Set[int] = set()
        comps = 0
        for start in nodes:
            if start in seen:
                continue
            comps += 1
            seen.add(start)
            q = deque([start])
            while q:
                x = q.popleft()
                for y in self.adj_idx[x]:
                    if y in nodes and y not in seen:
                        seen.add(y)
                        q.append(y)
        return comps

    def is_connected_after_removal(self, d: int, i: int) -> bool:
        """Removing region i from district d must not split d into more pieces."""
        nodes = self.members[d]
        if i not in nodes:
            return True
        rest = nodes - {i}
        if not rest:
            return True
        return self._component_count(rest) <= self._component_count(nodes)

    def border_regions(self, donor: int, receiver: int) -> List[int]:
        """Donor regions shared with the receiver or touching one of its regions."""
        recv = self.members[receiver]
        out = []
        for i in sorted(self.members[donor]):
            if i in recv or any(j in recv for j in self.adj_idx[i]):
                out.append(i)
        return out

    def neighboring_districts(self, d: int) -> Set[int]:
        out: Set[int] = set()
        for i in self.members[d]:
            for j in [i] + self.adj_idx[i]:
                out.update(int(x) for x in np.flatnonzero(self.alloc[j] > 0))
        out.discard(d)
        return out

    # ----------------------------
    # Moves
    # ----------------------------
    def _move_reward(self, donor: int, receiver: int, shift: float) -> float:
        t = self.target_population
        before = abs(self.pop[donor] - t) + abs(self.pop[receiver] - t)
        after = abs(self.pop[donor] - shift - t) + abs(self.pop[receiver] + shift - t)
        return float(before - after)

    def find_best_move(self) -> Optional[_Move]:
        t = self.target_population
        eps = self.cfg.allocation_eps
        over = [d for d in range(self.num_districts) if self.pop[d] > t]
        under = {d for d in range(self.num_districts) if self.pop[d] < t}

        best: Optional[_Move] = None
        for d in over:
            for r in sorted(self.neighboring_districts(d) & under):
                for i in self.border_regions(d, r):
                    w = self.weight[i]
                    if w <= 0:
                        continue
                    held = self.alloc[i, d] * w
                    # may overshoot the target; reward > 0 only while shift < excess + deficit
                    shift = min(self.cfg.max_shift_fraction * w, held)
                    if shift <= 0:
                        continue
                    if held - shift <= eps * w:
                        shift = held

                    reward = self._move_reward(d, r, shift)
                    if reward <= 0:
                        continue
                    if best is not None and reward <= best.reward + REWARD_EPS:
                        continue

                    # only a full removal can break the donor apart
                    if shift >= held and not self.is_connected_after_removal(d, i):
                        continue

                    best = _Move(donor=d, receiver=r, region=i, shift=float(shift), reward=reward)
        return best

    def apply_move(self, move: _Move) -> None:
        d, r, i = move.donor, move.receiver, move.region
        w = self.weight[i]
        shift = move.shift

        frac = shift / w
        self.alloc[i, d] -= frac
        self.alloc[i, r] += frac

        if self.alloc[i, d] <= self.cfg.allocation_eps:
            residual = self.alloc[i, d]
            self.alloc[i, r] += residual
            self.alloc[i, d] = 0.0
            shift += residual * w
            self.members[d].discard(i)

        self.pop[d] -= shift
        self.pop[r] += shift
        self.members[r].add(i)

    # ----------------------------
    # Main loop
    # ----------------------------
    def balance_districts(
        self,
        max_iterations: Optional[int] = None,
        tolerance_percent: Optional[float] = None,
        *,
        should_stop: Optional[Callable[[], bool]] = None,
        on_step: Optional[Callable[[int, np.ndarray, dict], None]] = None,
        step_every: Optional[int] = None,
    ) -> BalanceResult:
        max_iterations = self.cfg.max_iterations if max_iterations is None else int(max_iterations)
        tolerance_percent = self.cfg.tolerance_percent if tolerance_percent is None else float(tolerance_percent)
        step_every = self.cfg.step_every if step_every is None else int(step_every)

        if not self.regions or self.num_districts == 0:
            return BalanceResult(districts=[], stop_reason=STOP_EMPTY)

        self.initialize()

        tol = self.target_population * tolerance_percent / 100.0
        it = 0
        stop_reason = STOP_MAX_ITERATIONS

        while True:
            if self.population_range() <= tol:
                stop_reason = STOP_CONVERGED
                break
            if it >= max_iterations:
                stop_reason = STOP_MAX_ITERATIONS
                break
            if should_stop is not None and should_stop():
                stop_reason = STOP_CANCELLED
                break

            move = self.find_best_move()
            if move is None:
                stop_reason = STOP_NO_MOVES
                break

            self.apply_move(move)
            it += 1

            if step_every and it % step_every == 0:
                stats = {
                    "range": self.population_range(),
                    "max_deviation": self.max_deviation(),
                    "total_deviation": self.total_deviation(),
                }
                print(f"[balance] iter={it} range={stats['range']:,.1f} "
                      f"max_dev={stats['max_deviation']:,.1f}", flush=True)
                if on_step is not None:
                    on_step(it, self.pop.copy(), stats)

        print(
            f"[balance] stop={stop_reason} iters={it} range={self.population_range():,.1f} "
            f"(tolerance {tol:,.1f})",
            flush=True,
        )

        return BalanceResult(
            districts=self.final_districts(),
            iterations=it,
            stop_reason=stop_reason,
            target_population=self.target_population,
            max_deviation=self.max_deviation(),
        )

    # ----------------------------
    # Output + checks
    # ----------------------------
    def final_districts(self) -> List[FinalDistrict]:
        out: List[FinalDistrict] = []
        for d in range(self.num_districts):
            counties = []
            for i in sorted(self.members[d]):
                frac = self.alloc[i, d]
                if frac <= 0:
                    continue
                held_by = np.flatnonzero(self.alloc[i] > 0)
                counties.append(
                    DistrictCounty(
                        name=self.names[i],
                        population=float(frac * self.weight[i]),
                        allocations={int(k) + 1: float(self.alloc[i, k]) for k in held_by},
                    )
                )
            out.append(FinalDistrict(id=d + 1, population=float(self.pop[d]), counties=counties))
        return out

    def check_invariants(self, tol: float = 1e-6) -> List[str]:
        """Human-readable list of violated invariants (empty when everything holds)."""
        problems: List[str] = []
        if not self._initialized or self.alloc.size == 0:
            return problems

        row_sums = self.alloc.sum(axis=1)
        bad = np.flatnonzero(np.abs(row_sums - 1.0) > tol)
        for i in bad:
            problems.append(f"allocation of {self.names[i]} sums to {row_sums[i]:.9f}")

        recomputed = self.alloc.T @ self.weight
        for d in np.flatnonzero(np.abs(recomputed - self.pop) > 1e-3):
            problems.append(f"district {d + 1} population {self.pop[d]:.3f} != {recomputed[d]:.3f}")

        if abs(float(self.pop.sum()) - self.total_population) > 1e-3:
            problems.append(f"total population {self.pop.sum():.3f} != {self.total_population:.3f}")

        for d in range(self.num_districts):
            held = {int(i) for i in np.flatnonzero(self.alloc[:, d] > 0)}
            if held != self.members[d]:
                problems.append(f"district {d + 1} membership out of sync with allocations")
            if held and self._component_count(held) > 1:
                problems.append(f"district {d + 1} is not contiguous")
        return problems


def balance_regions(
    regions: Sequence[Region],
    num_districts: int,
    adjacency: Optional[Mapping[str, Iterable[str]]],
    config: Optional[BalanceConfig] = None,
) -> BalanceResult:
    return DistrictBalancer(regions, num_districts, adjacency, config).balance_districts()
