import pytest

from polisim.elections.models import PartyVoteRow
from polisim.elections.seat_allocation import (
    DHONDT,
    SAINTE_LAGUE,
    allocate_seats_proportionally,
    normalize_method,
    quotient_table,
)

VOTES = {"A": 600, "B": 300, "C": 100}
CLASSIC = {"A": 53_000, "B": 24_000, "C": 23_000}


def test_dhondt_example():
    assert allocate_seats_proportionally(VOTES, 10, 0, "dHondt") == {"A": 6, "B": 3, "C": 1}


def test_dhondt_vs_sainte_lague():
    assert allocate_seats_proportionally(CLASSIC, 7, method="dHondt") == {"A": 4, "B": 2, "C": 1}
    assert allocate_seats_proportionally(CLASSIC, 7, method="SainteLague") == {"A": 3, "B": 2, "C": 2}


def test_accepts_vote_rows():
    rows = [PartyVoteRow(pid, pid, "#888", v, 0.0) for pid, v in VOTES.items()]
    assert allocate_seats_proportionally(rows, 10) == {"A": 6, "B": 3, "C": 1}


def test_threshold_excludes_small_parties():
    seats = allocate_seats_proportionally({"A": 600, "B": 300, "C": 40}, 10, threshold_percent=5)
    assert seats["C"] == 0
    assert seats["A"] + seats["B"] == 10


def test_degenerate_inputs_give_zero_seats():
    assert allocate_seats_proportionally(VOTES, 0) == {"A": 0, "B": 0, "C": 0}
    assert allocate_seats_proportionally({"A": 0, "B": 0}, 5) == {"A": 0, "B": 0}
    assert allocate_seats_proportionally({"A": 10, "B": 10}, 5, threshold_percent=60) == {"A": 0, "B": 0}
    assert allocate_seats_proportionally({}, 5) == {}


def test_equal_quotients_go_to_the_larger_party():
    # A's first quotient ties B's second; B has more votes
    assert allocate_seats_proportionally({"A": 100, "B": 200}, 2) == {"A": 0, "B": 2}


def test_unknown_method_falls_back_to_largest_remainder(capsys):
    seats = allocate_seats_proportionally({"A": 5, "B": 3, "C": 2}, 4, method="Hare-Niemeyer")
    assert seats == {"A": 2, "B": 1, "C": 1}
    assert "largest remainder" in capsys.readouterr().out


def test_method_aliases():
    assert normalize_method("dhondt") == DHONDT
    assert normalize_method("sainteLague") == SAINTE_LAGUE
    assert normalize_method(None) == DHONDT
    assert normalize_method("borda") is None
    assert allocate_seats_proportionally(CLASSIC, 7, method="sainteLague") == {"A": 3, "B": 2, "C": 2}


@pytest.mark.parametrize("method", [DHONDT, SAINTE_LAGUE])
@pytest.mark.parametrize("seats", [1, 5, 17, 40])
def test_seat_total_and_monotonicity(method, seats):
    votes = {"A": 41_200, "B": 30_950, "C": 14_400, "D": 9_100, "E": 4_350}
    out = allocate_seats_proportionally(votes, seats, method=method)
    assert sum(out.values()) == seats
    ordered = sorted(votes, key=votes.get, reverse=True)
    for bigger, smaller in zip(ordered, ordered[1:]):
        assert out[bigger] >= out[smaller]


def test_quotient_table():
    df = quotient_table(VOTES, 10, "dHondt")
    assert list(df.columns) == ["party_id", "votes", "divisor", "quotient", "rank", "won"]
    assert len(df) == 30
    assert int(df["won"].sum()) == 10
    assert df.iloc[0]["party_id"] == "A"
    assert df.loc[df["won"]].groupby("party_id").size().to_dict() == {"A": 6, "B": 3, "C": 1}

    sl = quotient_table(VOTES, 3, "SainteLague")
    assert sorted(sl.loc[sl["party_id"] == "A", "divisor"].tolist()) == [1, 3, 5]

    assert quotient_table(VOTES, 0).empty
    assert quotient_table(VOTES, 3, "borda").empty
