import pytest

from polisim.elections.models import (
    MEMBERS_ARRAY,
    SINGLE_HOLDER,
    Candidate,
    ElectionConfig,
    Party,
    candidate_from_record,
    election_config_from_record,
)
from polisim.elections.processors import (
    calculate_election_outcome,
    is_independent,
    mmp_constituency_seat_count,
    process_mmp_results,
    process_party_list_pr_results,
    process_plurality_results,
    synthesize_party_votes,
)

PARTIES = [
    Party("A", "Alpha", "#f00", popularity=50),
    Party("B", "Beta", "#00f", popularity=30),
    Party("C", "Gamma", "#0f0", popularity=20),
]


def _roster(party, n):
    return [Candidate(f"{party.lower()}{i}", f"{party} list {i}", party_id=party) for i in range(1, n + 1)]


def test_fptp_single_winner():
    candidates = [
        Candidate("1", "One", "A", votes=1000),
        Candidate("2", "Two", "B", votes=800),
        Candidate("3", "Three", "C", votes=1200),
    ]
    outcome = calculate_election_outcome(ElectionConfig("FPTP", seats_to_fill=1), PARTIES, candidates)

    assert [w.id for w in outcome.winners] == ["3"]
    assert outcome.winner_assignment == SINGLE_HOLDER
    assert outcome.party_seat_summary == {"C": 1}
    assert [r.id for r in outcome.party_vote_summary] == ["C", "A", "B"]
    assert outcome.party_vote_summary[0].percentage == pytest.approx(40.0)
    assert outcome.party_vote_summary[0].name == "Gamma"


def test_plurality_summary_and_annotations():
    candidates = [
        Candidate("1", "One", "A", votes=10),
        Candidate("2", "Two", "A", votes=30),
        Candidate("3", "Three", "zzz", votes=20),
        Candidate("4", "Four", None, votes=5),
    ]
    outcome = process_plurality_results(ElectionConfig("BlockVote", seats_to_fill=2), PARTIES, candidates)

    assert [w.id for w in outcome.winners] == ["2", "3"]
    assert outcome.party_seat_summary == {"A": 1, "zzz": 1}
    unknown = [r for r in outcome.party_vote_summary if r.id == "zzz"][0]
    assert unknown.color == "#888"
    assert unknown.name == "zzz"
    assert outcome.all_relevant_individuals[0].party_name == "Alpha"


def test_party_list_pr_from_party_entities():
    entities = [
        Candidate("A", "Alpha", votes=600, is_party_entity=True),
        Candidate("B", "Beta", votes=300, is_party_entity=True),
        Candidate("C", "Gamma", votes=100, is_party_entity=True),
    ]
    config = ElectionConfig(
        "PartyListPR",
        seats_to_fill=10,
        party_lists={"A": _roster("A", 8), "B": _roster("B", 3), "C": _roster("C", 2)},
    )
    outcome = calculate_election_outcome(config, PARTIES, entities)

    assert outcome.party_seat_summary == {"A": 6, "B": 3, "C": 1}
    assert len(outcome.winners) == 10
    assert [w.id for w in outcome.winners[:6]] == ["a1", "a2", "a3", "a4", "a5", "a6"]
    assert outcome.winners[0].party_color == "#f00"
    assert outcome.winner_assignment == MEMBERS_ARRAY
    assert len(outcome.all_relevant_individuals) == 13


def test_party_list_short_roster_keeps_seat_count():
    entities = [Candidate("A", votes=900, is_party_entity=True), Candidate("B", votes=100, is_party_entity=True)]
    config = ElectionConfig("PartyListPR", seats_to_fill=5, party_lists={"A": _roster("A", 2), "B": _roster("B", 2)})
    outcome = process_party_list_pr_results(config, PARTIES, entities)
    assert outcome.party_seat_summary["A"] == 5
    assert [w.id for w in outcome.winners] == ["a1", "a2"]


def test_party_list_threshold():
    entities = [
        Candidate("A", votes=600, is_party_entity=True),
        Candidate("B", votes=360, is_party_entity=True),
        Candidate("C", votes=40, is_party_entity=True),
    ]
    config = ElectionConfig("PartyListPR", seats_to_fill=10, threshold_percent=5)
    outcome = process_party_list_pr_results(config, PARTIES, entities)
    assert outcome.party_seat_summary["C"] == 0
    assert sum(outcome.party_seat_summary.values()) == 10


def test_party_list_synthesized_votes():
    config = ElectionConfig(
        "PartyListPR", seats_to_fill=10, total_votes_cast=1000,
        party_lists={"A": _roster("A", 10), "B": _roster("B", 10), "C": _roster("C", 10)},
    )
    outcome = process_party_list_pr_results(config, PARTIES, [])
    assert {r.id: r.votes for r in outcome.party_vote_summary} == {"A": 500, "B": 300, "C": 200}
    assert outcome.party_seat_summary == {"A": 5, "B": 3, "C": 2}


def test_synthesize_sums_exactly():
    even = [Party("x"), Party("y"), Party("z")]
    votes = synthesize_party_votes(["x", "y", "z"], even, 100)
    assert votes == {"x": 34, "y": 33, "z": 33}

    votes = synthesize_party_votes(["A", "B", "C"], PARTIES, 1001)
    assert sum(votes.values()) == 1001

    assert synthesize_party_votes(["A"], PARTIES, 0) == {}
    assert synthesize_party_votes([], PARTIES, 100) == {}


def test_is_independent():
    assert is_independent(None)
    assert is_independent("independent_42")
    assert is_independent("ai_pol_7")
    assert not is_independent("A")


def test_mmp_constituency_count():
    assert mmp_constituency_seat_count(ElectionConfig("MMP", seats_to_fill=10, mmp_constituency_seats=6)) == 6
    assert mmp_constituency_seat_count(ElectionConfig("MMP", seats_to_fill=9, vote_target="dual_candidate_and_party")) == 4
    assert mmp_constituency_seat_count(ElectionConfig("MMP", seats_to_fill=9)) == 9


def test_mmp_list_seats_compensate():
    constituency = [
        Candidate("a1", party_id="A", votes=500),
        Candidate("b1", party_id="B", votes=400),
        Candidate("a2", party_id="A", votes=300),
        Candidate("i1", party_id="independent_1", votes=450),
    ]
    config = ElectionConfig(
        "MMP", seats_to_fill=4, mmp_constituency_seats=2,
        party_lists={"A": [Candidate("a1", party_id="A")] + _roster("A", 4)[2:], "B": [Candidate("b1", party_id="B")]},
    )
    outcome = process_mmp_results(config, PARTIES, constituency)

    # constituency: a1, i1; party votes A 800 / B 400 -> entitlement A3 B1
    assert [w.id for w in outcome.winners] == ["a1", "i1", "a3", "a4", "b1"]
    assert outcome.party_seat_summary == {"A": 3, "B": 1}
    assert {r.id for r in outcome.party_vote_summary} == {"A", "B"}
    assert outcome.seats_to_fill == 5


def test_mmp_overhang_gets_no_list_seats(capsys):
    candidates = [
        Candidate("a1", party_id="A", votes=500),
        Candidate("b1", party_id="B", votes=450),
        Candidate("a2", party_id="A", votes=400),
        Candidate("A", is_party_entity=True, mmp_party_vote=True, votes=900),
        Candidate("B", is_party_entity=True, mmp_party_vote=True, votes=100),
    ]
    config = ElectionConfig(
        "MMP", seats_to_fill=4, mmp_constituency_seats=2,
        party_lists={"A": _roster("A", 6), "B": _roster("B", 2)},
    )
    outcome = process_mmp_results(config, PARTIES, candidates)

    assert outcome.party_seat_summary == {"A": 4, "B": 1}
    list_winners = [w.id for w in outcome.winners[2:]]
    assert list_winners == ["a2", "a3", "a4"]
    assert outcome.seats_to_fill == 5
    assert "overhang" in capsys.readouterr().out


def test_mmp_short_list_counts_only_filled_seats(capsys):
    constituency = [
        Candidate("a1", party_id="A", votes=500),
        Candidate("b1", party_id="B", votes=400),
        Candidate("a2", party_id="A", votes=300),
        Candidate("i1", party_id="independent_1", votes=450),
    ]
    config = ElectionConfig(
        "MMP", seats_to_fill=4, mmp_constituency_seats=2,
        party_lists={"A": [Candidate("a1", party_id="A"), Candidate("a3", party_id="A")], "B": [Candidate("b1", party_id="B")]},
    )
    outcome = process_mmp_results(config, PARTIES, constituency)

    # A is owed two list seats but only a3 is left on its list
    assert [w.id for w in outcome.winners] == ["a1", "i1", "a3", "b1"]
    assert outcome.party_seat_summary == {"A": 2, "B": 1}
    assert outcome.seats_to_fill == len(outcome.winners) == 4
    assert "list too short (1/2" in capsys.readouterr().out


def test_mmp_falls_back_to_synthesized_votes():
    config = ElectionConfig(
        "MMP", seats_to_fill=10, total_votes_cast=1000,
        party_lists={"A": _roster("A", 10), "B": _roster("B", 10), "C": _roster("C", 10)},
    )
    outcome = process_mmp_results(config, PARTIES, [])
    assert outcome.party_seat_summary == {"A": 5, "B": 3, "C": 2}
    assert len(outcome.winners) == 10


def test_unknown_system_falls_back_to_plurality(capsys):
    candidates = [Candidate("1", party_id="A", votes=5), Candidate("2", party_id="B", votes=9)]
    outcome = calculate_election_outcome(ElectionConfig("RankedChoice", seats_to_fill=1), PARTIES, candidates)
    assert [w.id for w in outcome.winners] == ["2"]
    assert "unknown electoral system" in capsys.readouterr().out


def test_zero_seats_gives_empty_summary():
    entities = [Candidate("A", votes=10, is_party_entity=True)]
    outcome = calculate_election_outcome(ElectionConfig("PartyListPR", seats_to_fill=0), PARTIES, entities)
    assert outcome.party_seat_summary == {"A": 0}
    assert outcome.winners == []


def test_records_from_game_json():
    cand = candidate_from_record({"id": 7, "name": "X", "partyId": "A", "currentVotes": 12, "isPartyEntity": False})
    assert cand == Candidate("7", "X", "A", votes=12.0)

    config = election_config_from_record({
        "electoralSystem": "MMP",
        "numberOfSeatsToFill": 8,
        "prThresholdPercent": 5,
        "prAllocationMethod": "SainteLague",
        "partyLists": {"A": [{"id": "a1", "name": "Ann"}, None]},
        "mmpData": {"numConstituencySeats": 4},
        "totalVotesActuallyCast": 1000,
    })
    assert config.seats_to_fill == 8
    assert config.mmp_constituency_seats == 4
    assert [c.id for c in config.party_lists["A"]] == ["a1"]
    assert config.allocation_method == "SainteLague"
