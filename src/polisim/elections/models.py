from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional

DEFAULT_ALLOCATION_METHOD = "dHondt"
FALLBACK_PARTY_COLOR = "#888"

SINGLE_HOLDER = "SINGLE_HOLDER"
MEMBERS_ARRAY = "MEMBERS_ARRAY"


@dataclass(frozen=True)
class Candidate:
    """A constituency candidate, a list candidate, or a simulated party-vote entity."""
    id: str
    name: str = ""
    party_id: Optional[str] = None
    votes: Optional[float] = None
    is_party_entity: bool = False
    mmp_party_vote: bool = False
    party_name: Optional[str] = None
    party_color: Optional[str] = None

    @property
    def vote_count(self) -> float:
        return float(self.votes or 0)


@dataclass(frozen=True)
class Party:
    id: str
    name: str = ""
    color: str = FALLBACK_PARTY_COLOR
    popularity: Optional[float] = None


@dataclass
class ElectionConfig:
    electoral_system: str = "FPTP"
    seats_to_fill: int = 1
    threshold_percent: float = 0.0
    allocation_method: str = DEFAULT_ALLOCATION_METHOD
    # party id -> ordered list
    party_lists: Dict[str, List[Candidate]] = field(default_factory=dict)
    mmp_constituency_seats: Optional[int] = None
    vote_target: Optional[str] = None
    total_votes_cast: int = 0


@dataclass
class PartyVoteRow:
    id: str
    name: str
    color: str
    votes: float
    percentage: float


@dataclass
class ElectionOutcome:
    electoral_system: str
    winners: List[Candidate] = field(default_factory=list)
    party_vote_summary: List[PartyVoteRow] = field(default_factory=list)
    party_seat_summary: Dict[str, int] = field(default_factory=dict)
    all_relevant_individuals: List[Candidate] = field(default_factory=list)
    seats_to_fill: int = 0
    winner_assignment: str = SINGLE_HOLDER
    total_votes_cast: int = 0

    def to_record(self) -> dict:
        return {
            "electoral_system": self.electoral_system,
            "winners": [asdict(w) for w in self.winners],
            "party_vote_summary": [asdict(r) for r in self.party_vote_summary],
            "party_seat_summary": dict(self.party_seat_summary),
            "all_relevant_individuals": [asdict(c) for c in self.all_relevant_individuals],
            "seats_to_fill": self.seats_to_fill,
            "winner_assignment": self.winner_assignment,
            "total_votes_cast": self.total_votes_cast,
        }


# ----------------------------
# Loose-record parsing (game json)
# ----------------------------
def _first(record: Mapping[str, Any], *keys, default=None):
    for k in keys:
        if k in record and record[k] is not None:
            return record[k]
    return default


def candidate_from_record(record: Mapping[str, Any]) -> Candidate:
    votes = _first(record, "votes", "currentVotes")
    return Candidate(
        id=str(record["id"]),
        name=str(_first(record, "name", default="")),
        party_id=_first(record, "party_id", "partyId"),
        votes=float(votes) if votes is not None else None,
        is_party_entity=bool(_first(record, "is_party_entity", "isPartyEntity", default=False)),
        mmp_party_vote=bool(_first(record, "mmp_party_vote", "mmpPartyVote", default=False)),
        party_name=_first(record, "party_name", "partyName"),
        party_color=_first(record, "party_color", "partyColor"),
    )


def party_from_record(record: Mapping[str, Any]) -> Party:
    pop = record.get("popularity")
    return Party(
        id=str(record["id"]),
        name=str(record.get("name") or record["id"]),
        color=str(record.get("color") or FALLBACK_PARTY_COLOR),
        popularity=float(pop) if pop is not None else None,
    )


def election_config_from_record(record: Mapping[str, Any]) -> ElectionConfig:
    lists = _first(record, "party_lists", "partyLists", default={}) or {}
    mmp = _first(record, "mmp_data", "mmpData", default={}) or {}
    const_seats = _first(record, "mmp_constituency_seats", default=None)
    if const_seats is None:
        const_seats = mmp.get("numConstituencySeats")

    return ElectionConfig(
        electoral_system=str(_first(record, "electoral_system", "electoralSystem", default="FPTP")),
        seats_to_fill=int(_first(record, "seats_to_fill", "numberOfSeatsToFill", default=1)),
        threshold_percent=float(_first(record, "threshold_percent", "prThresholdPercent", default=0.0)),
        allocation_method=str(
            _first(record, "allocation_method", "prAllocationMethod", default=DEFAULT_ALLOCATION_METHOD)
        ),
        party_lists={
            str(pid): [candidate_from_record(c) for c in (cands or []) if c and c.get("id")]
            for pid, cands in lists.items()
        },
        mmp_constituency_seats=int(const_seats) if const_seats else None,
        vote_target=_first(record, "vote_target", "voteTarget"),
        total_votes_cast=int(_first(record, "total_votes_cast", "totalVotesActuallyCast", default=0)),
    )
