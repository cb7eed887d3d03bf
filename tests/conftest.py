import itertools

import pytest

from polisim.data.regions import Region


def square_path(x, y, size=1):
    return f"M{x} {y} L{x + size} {y} L{x + size} {y + size} L{x} {y + size} Z"


@pytest.fixture
def square():
    return square_path


@pytest.fixture
def ten_equal_regions():
    return [Region(name=f"r{i}", population=50) for i in range(10)]


@pytest.fixture
def complete_adjacency(ten_equal_regions):
    names = [r.name for r in ten_equal_regions]
    adj = {n: set() for n in names}
    for a, b in itertools.combinations(names, 2):
        adj[a].add(b)
        adj[b].add(a)
    return adj


@pytest.fixture
def row_of_four():
    """Four unit squares in a row, 10 people each."""
    regions = [Region(name=n, population=10) for n in "abcd"]
    paths = {n: square_path(i, 0) for i, n in enumerate("abcd")}
    return regions, paths
