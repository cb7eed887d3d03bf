from __future__ import annotations

import math
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd

from polisim.elections.models import DEFAULT_ALLOCATION_METHOD, PartyVoteRow

DHONDT = "dHondt"
SAINTE_LAGUE = "SainteLague"

_METHOD_ALIASES = {
    "dhondt": DHONDT,
    "d'hondt": DHONDT,
    "saintelague": SAINTE_LAGUE,
    "sainte-lague": SAINTE_LAGUE,
    "webster": SAINTE_LAGUE,
}

QUOTIENT_COLUMNS = ["party_id", "votes", "divisor", "quotient", "rank", "won"]

PartyVotes = Union[Mapping[str, float], Iterable[PartyVoteRow]]


def normalize_method(method: Optional[str]) -> Optional[str]:
    """Canonical highest-averages method name, or None when the method is not one."""
    if not method:
        return DHONDT
    return _METHOD_ALIASES.get(str(method).strip().lower())


def _as_pairs(party_votes: PartyVotes) -> List[Tuple[str, float]]:
    if isinstance(party_votes, Mapping):
        return [(str(k), float(v or 0)) for k, v in party_votes.items()]
    return [(row.id, float(row.votes or 0)) for row in party_votes]


def _divisors(method: str, seats: int) -> List[int]:
    if method == SAINTE_LAGUE:
        return [2 * i + 1 for i in range(seats)]
    return list(range(1, seats + 1))


def _eligible(pairs: List[Tuple[str, float]], threshold_percent: float) -> List[Tuple[str, float]]:
    total = sum(v for _, v in pairs)
    if total <= 0:
        return []
    return [(pid, v) for pid, v in pairs if v / total * 100 >= threshold_percent]


def _ranked_quotients(eligible: List[Tuple[str, float]], seats: int, method: str) -> List[dict]:
    rows = []
    for pid, votes in eligible:
        for div in _divisors(method, seats):
            rows.append({"party_id": pid, "votes": votes, "divisor": div, "quotient": votes / div})
    # stable: equal quotient and votes keep party order
    rows.sort(key=lambda r: (-r["quotient"], -r["votes"]))
    return rows


def _largest_remainder(eligible: List[Tuple[str, float]], seats: int) -> Dict[str, int]:
    total = sum(v for _, v in eligible)
    out = {pid: 0 for pid, _ in eligible}
    if total <= 0:
        return out

    exact = {pid: v / total * seats for pid, v in eligible}
    for pid, q in exact.items():
        out[pid] = int(math.floor(q))

    remaining = seats - sum(out.values())
    if remaining > 0:
        order = sorted(eligible, key=lambda pv: (-(exact[pv[0]] % 1), -pv[1]))
        for i in range(remaining):
            out[order[i % len(order)][0]] += 1
    return out


def allocate_seats_proportionally(
    party_votes: PartyVotes,
    seats: int,
    threshold_percent: float = 0.0,
    method: Optional[str] = DEFAULT_ALLOCATION_METHOD,
) -> Dict[str, int]:
    """
    Party id -> seats won.

    Highest averages (D'Hondt: divisors 1, 2, 3...; Sainte-Lague: 1, 3, 5...)
    over the parties whose vote share reaches threshold_percent. Equal
    quotients go to the party with more votes. An unrecognised method falls
    back to largest remainder. Every party appears in the result; no eligible
    party, no votes or no seats gives all zeros.
    """
    pairs = _as_pairs(party_votes)
    seats_out = {pid: 0 for pid, _ in pairs}
    seats = int(seats or 0)

    eligible = _eligible(pairs, threshold_percent)
    if not eligible or seats <= 0:
        return seats_out

    canonical = normalize_method(method)
    if canonical is None:
        print(f"[seats] unknown allocation method {method!r}; using largest remainder", flush=True)
        seats_out.update(_largest_remainder(eligible, seats))
        return seats_out

    for row in _ranked_quotients(eligible, seats, canonical)[:seats]:
        seats_out[row["party_id"]] += 1
    return seats_out


def quotient_table(
    party_votes: PartyVotes,
    seats: int,
    method: Optional[str] = DEFAULT_ALLOCATION_METHOD,
    threshold_percent: float = 0.0,
) -> pd.DataFrame:
    """Every quotient of the eligible parties, ranked, with the winning ones flagged."""
    canonical = normalize_method(method)
    seats = int(seats or 0)
    eligible = _eligible(_as_pairs(party_votes), threshold_percent)
    if canonical is None or seats <= 0 or not eligible:
        return pd.DataFrame(columns=QUOTIENT_COLUMNS)

    rows = _ranked_quotients(eligible, seats, canonical)
    df = pd.DataFrame(rows)
    df["rank"] = range(1, len(df) + 1)
    df["won"] = df["rank"] <= seats
    return df[QUOTIENT_COLUMNS]
