from __future__ import annotations

import math
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from polisim.elections.models import (
    FALLBACK_PARTY_COLOR,
    MEMBERS_ARRAY,
    SINGLE_HOLDER,
    Candidate,
    ElectionConfig,
    ElectionOutcome,
    Party,
    PartyVoteRow,
)
from polisim.elections.seat_allocation import allocate_seats_proportionally

PARTY_LIST_PR = "PartyListPR"
MMP = "MMP"
PLURALITY_SYSTEMS = ("FPTP", "TwoRoundSystem", "ElectoralCollege", "SNTV_MMD", "BlockVote", "PluralityMMD")

INDEPENDENT_PREFIXES = ("independent_", "ai_pol_")
DUAL_VOTE_TARGET = "dual_candidate_and_party"


# ----------------------------
# Helpers
# ----------------------------
def is_independent(party_id: Optional[str]) -> bool:
    return not party_id or str(party_id).startswith(INDEPENDENT_PREFIXES)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _party_index(parties: Iterable[Party]) -> Dict[str, Party]:
    return {p.id: p for p in parties}


def _top_n(candidates: Sequence[Candidate], n: int) -> List[Candidate]:
    # stable: equal votes keep input order
    return sorted(candidates, key=lambda c: -c.vote_count)[: max(0, n)]


def _with_party(c: Candidate, party_id: Optional[str], index: Mapping[str, Party]) -> Candidate:
    party = index.get(party_id) if party_id else None
    return replace(
        c,
        party_id=party_id,
        party_name=party.name if party else c.party_name,
        party_color=party.color if party else c.party_color,
    )


def _annotate_individuals(
    individuals: Iterable[Candidate],
    voted: Sequence[Candidate],
    index: Mapping[str, Party],
) -> List[Candidate]:
    votes_by_id = {c.id: c.votes for c in voted}
    out = []
    for c in individuals:
        c = _with_party(c, c.party_id, index)
        out.append(replace(c, votes=votes_by_id.get(c.id)))
    return out


def build_party_vote_summary(totals: Mapping[str, float], parties: Iterable[Party]) -> List[PartyVoteRow]:
    """Rows sorted by votes (descending); percentages of the summed totals."""
    index = _party_index(parties)
    grand = sum(v or 0 for v in totals.values())
    rows = []
    for pid, votes in totals.items():
        party = index.get(pid)
        rows.append(
            PartyVoteRow(
                id=pid,
                name=party.name if party else pid,
                color=party.color if party else FALLBACK_PARTY_COLOR,
                votes=votes or 0,
                percentage=(votes or 0) / grand * 100 if grand > 0 else 0.0,
            )
        )
    rows.sort(key=lambda r: -r.votes)
    return rows


def synthesize_party_votes(
    party_ids: Sequence[str],
    parties: Iterable[Party],
    total_votes: int,
) -> Dict[str, int]:
    """
    Split total_votes across party_ids by popularity (equal strength when a
    party has none), rounding each share and then walking the remainder one
    vote at a time over the parties in descending order of their share so the
    result sums exactly to total_votes.
    """
    party_ids = list(party_ids)
    if not party_ids or total_votes <= 0:
        return {}

    index = _party_index(parties)
    n = len(party_ids)
    strengths = {}
    for pid in party_ids:
        party = index.get(pid)
        strengths[pid] = (party.popularity if party and party.popularity else None) or 100 / n
    total_strength = sum(strengths.values())

    if total_strength > 0:
        totals = {pid: _round_half_up(s / total_strength * total_votes) for pid, s in strengths.items()}
    else:
        totals = {pid: total_votes // n for pid in party_ids}

    remainder = total_votes - sum(totals.values())
    if remainder:
        order = sorted(party_ids, key=lambda pid: -totals[pid])
        step = 1 if remainder > 0 else -1
        for k in range(abs(remainder)):
            totals[order[k % len(order)]] += step
    return totals


def _party_entity_totals(candidates: Iterable[Candidate]) -> Dict[str, float]:
    totals: Dict[str, float] = {}
    for c in candidates:
        if c.id and c.votes is not None:
            totals[c.id] = totals.get(c.id, 0) + c.votes
    return totals


def _fill_from_list(
    party_id: str,
    count: int,
    config: ElectionConfig,
    index: Mapping[str, Party],
    skip_ids: Optional[set] = None,
) -> List[Candidate]:
    if count <= 0:
        return []
    skip_ids = skip_ids or set()
    roster = [c for c in config.party_lists.get(party_id, []) if c.id and c.id not in skip_ids]
    return [_with_party(c, party_id, index) for c in roster[:count]]


def _list_individuals(config: ElectionConfig) -> List[Candidate]:
    return [c for roster in config.party_lists.values() for c in roster if c.id]


# ----------------------------
# Plurality family
# ----------------------------
def process_plurality_results(
    config: ElectionConfig,
    parties: Sequence[Party],
    candidates: Sequence[Candidate],
) -> ElectionOutcome:
    index = _party_index(parties)
    winners = _top_n(candidates, config.seats_to_fill)

    totals: Dict[str, float] = {}
    for c in candidates:
        if c.party_id:
            totals[c.party_id] = totals.get(c.party_id, 0) + c.vote_count

    seat_summary: Dict[str, int] = {}
    for w in winners:
        if w.party_id:
            seat_summary[w.party_id] = seat_summary.get(w.party_id, 0) + 1

    return ElectionOutcome(
        electoral_system=config.electoral_system,
        winners=winners,
        party_vote_summary=build_party_vote_summary(totals, parties),
        party_seat_summary=seat_summary,
        all_relevant_individuals=_annotate_individuals(candidates, candidates, index),
        seats_to_fill=config.seats_to_fill,
    )


# ----------------------------
# Party-list PR
# ----------------------------
def process_party_list_pr_results(
    config: ElectionConfig,
    parties: Sequence[Party],
    candidates: Sequence[Candidate],
) -> ElectionOutcome:
    index = _party_index(parties)

    if candidates and candidates[0].is_party_entity:
        totals = _party_entity_totals(candidates)
    elif config.party_lists and config.total_votes_cast > 0:
        totals = synthesize_party_votes(list(config.party_lists), parties, config.total_votes_cast)
    else:
        totals = {}

    summary = build_party_vote_summary(totals, parties)
    seats = allocate_seats_proportionally(
        summary, config.seats_to_fill, config.threshold_percent, config.allocation_method
    )

    winners: List[Candidate] = []
    seat_summary: Dict[str, int] = {}
    for pid, n in seats.items():
        seat_summary[pid] = n
        winners.extend(_fill_from_list(pid, n, config, index))

    return ElectionOutcome(
        electoral_system=config.electoral_system,
        winners=winners,
        party_vote_summary=summary,
        party_seat_summary=seat_summary,
        all_relevant_individuals=_list_individuals(config),
        seats_to_fill=config.seats_to_fill,
    )


# ----------------------------
# Mixed-member proportional
# ----------------------------
def mmp_constituency_seat_count(config: ElectionConfig) -> int:
    if config.mmp_constituency_seats:
        return int(config.mmp_constituency_seats)
    if config.vote_target == DUAL_VOTE_TARGET:
        return config.seats_to_fill // 2
    return config.seats_to_fill


def process_mmp_results(
    config: ElectionConfig,
    parties: Sequence[Party],
    candidates: Sequence[Candidate],
) -> ElectionOutcome:
    """
    Constituency seats by plurality, then list seats that top each party up
    to its proportional entitlement over seats_to_fill. A party already at or
    above its entitlement through constituency wins gets no list seats; no
    leveling seats are added for anyone else. seats_to_fill on the outcome
    is the number of seats actually filled, so list seats a short roster
    cannot staff are not counted.
    """
    index = _party_index(parties)

    party_votes = [c for c in candidates if c.is_party_entity and c.mmp_party_vote]
    constituency = [c for c in candidates if not c.is_party_entity]

    n_const = mmp_constituency_seat_count(config)
    const_winners = _top_n(constituency, n_const)

    direct: Dict[str, int] = {}
    for w in const_winners:
        if not is_independent(w.party_id):
            direct[w.party_id] = direct.get(w.party_id, 0) + 1

    # list-vote totals: party entities, else constituency votes by party, else popularity
    if party_votes:
        totals = _party_entity_totals(party_votes)
    elif constituency:
        totals = {}
        for c in constituency:
            if not is_independent(c.party_id) and c.votes is not None:
                totals[c.party_id] = totals.get(c.party_id, 0) + c.votes
    elif config.party_lists and config.total_votes_cast > 0:
        totals = synthesize_party_votes(list(config.party_lists), parties, config.total_votes_cast)
    else:
        totals = {}

    summary = build_party_vote_summary(totals, parties)
    entitlement = allocate_seats_proportionally(
        summary, config.seats_to_fill, config.threshold_percent, config.allocation_method
    )

    winners: List[Candidate] = list(const_winners)
    taken = {w.id for w in const_winners}
    seat_summary: Dict[str, int] = dict(direct)
    list_filled = 0

    for row in summary:
        pid = row.id
        d = direct.get(pid, 0)
        list_seats = max(0, entitlement.get(pid, 0) - d)
        if d > entitlement.get(pid, 0):
            print(f"[election] {pid}: overhang of {d - entitlement.get(pid, 0)} constituency seat(s)", flush=True)
        filled = _fill_from_list(pid, list_seats, config, index, skip_ids=taken)
        if len(filled) < list_seats:
            print(f"[election] {pid}: list too short ({len(filled)}/{list_seats} list seats filled)", flush=True)
        # a short list leaves its remaining entitlement empty
        seat_summary[pid] = d + len(filled)
        list_filled += len(filled)
        taken.update(c.id for c in filled)
        winners.extend(filled)

    # everyone involved, first occurrence wins the position
    pool: Dict[str, Candidate] = {}
    for c in _list_individuals(config) + constituency:
        pool[c.id] = c

    return ElectionOutcome(
        electoral_system=config.electoral_system,
        winners=winners,
        party_vote_summary=summary,
        party_seat_summary=seat_summary,
        all_relevant_individuals=_annotate_individuals(pool.values(), candidates, index),
        seats_to_fill=len(const_winners) + list_filled,
    )


# ----------------------------
# Dispatcher
# ----------------------------
def calculate_election_outcome(
    config: ElectionConfig,
    parties: Sequence[Party],
    candidates: Sequence[Candidate],
) -> ElectionOutcome:
    system = config.electoral_system
    if system == PARTY_LIST_PR:
        outcome = process_party_list_pr_results(config, parties, candidates)
    elif system == MMP:
        outcome = process_mmp_results(config, parties, candidates)
    elif system in PLURALITY_SYSTEMS:
        outcome = process_plurality_results(config, parties, candidates)
    else:
        print(f"[election] unknown electoral system {system!r}; falling back to plurality", flush=True)
        outcome = process_plurality_results(config, parties, candidates)

    outcome.winner_assignment = MEMBERS_ARRAY if config.seats_to_fill > 1 else SINGLE_HOLDER
    outcome.total_votes_cast = config.total_votes_cast
    if not outcome.seats_to_fill:
        outcome.seats_to_fill = config.seats_to_fill

    print(
        f"[election] {system}: {len(outcome.winners)} winner(s) for {outcome.seats_to_fill} seat(s)",
        flush=True,
    )
    return outcome
