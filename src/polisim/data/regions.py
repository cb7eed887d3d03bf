from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional


@dataclass(frozen=True)
class PartyStanding:
    party_name: str
    popularity: float = 0.0


@dataclass(frozen=True)
class Region:
    """
    A county (or any smallest building block of a district).

    Optional inputs are resolved once here: a missing GDP is None, a missing
    landscape is an empty tuple. Nothing downstream checks for missing attributes.
    """
    name: str
    population: int = 0
    region_id: Optional[str] = None
    gdp_per_capita: Optional[float] = None
    political_landscape: tuple[PartyStanding, ...] = field(default_factory=tuple)

    @property
    def leading_party(self) -> Optional[str]:
        if not self.political_landscape:
            return None
        return self.political_landscape[0].party_name


def _clean_number(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(f):
        return None
    return f


def parse_landscape(raw: Any) -> tuple[PartyStanding, ...]:
    """
    Accepts a list of {name|partyName|party_name, popularity} dicts, or the
    same list as JSON text (the regions.csv column). Order is preserved:
    the first entry is the leading party.
    """
    if raw is None:
        return ()
    if isinstance(raw, float) and math.isnan(raw):
        return ()
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return ()
        raw = json.loads(raw)

    out: List[PartyStanding] = []
    for entry in raw or []:
        if isinstance(entry, PartyStanding):
            out.append(entry)
            continue
        name = entry.get("partyName") or entry.get("party_name") or entry.get("name")
        if not name:
            continue
        out.append(PartyStanding(str(name), float(_clean_number(entry.get("popularity")) or 0.0)))
    return tuple(out)


def region_from_record(record: Mapping[str, Any]) -> Region:
    """Build a Region from a loose dict (game entity, csv row, json object)."""
    economic = record.get("economicProfile") or record.get("economic_profile") or {}
    gdp = record.get("gdp_per_capita", economic.get("gdpPerCapita") if isinstance(economic, Mapping) else None)
    gdp = _clean_number(gdp)
    if gdp is not None and gdp <= 0:
        gdp = None

    landscape = record.get("political_landscape", record.get("politicalLandscape"))

    pop = _clean_number(record.get("population"))
    pop = max(0, int(pop)) if pop is not None else 0

    rid = record.get("region_id", record.get("id"))
    if isinstance(rid, float) and math.isnan(rid):
        rid = None

    return Region(
        name=str(record["name"]),
        population=pop,
        region_id=str(rid) if rid is not None else None,
        gdp_per_capita=gdp,
        political_landscape=parse_landscape(landscape),
    )


def region_to_record(region: Region) -> dict:
    return {
        "name": region.name,
        "id": region.region_id,
        "population": region.population,
        "gdp_per_capita": region.gdp_per_capita,
        "political_landscape": json.dumps(
            [{"name": s.party_name, "popularity": s.popularity} for s in region.political_landscape]
        ),
    }


def total_population(regions: List[Region]) -> int:
    return int(sum(r.population for r in regions))
