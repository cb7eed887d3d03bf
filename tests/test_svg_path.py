from polisim.geo.svg_path import distinct_points, parse_path_rings, parse_path_vertices

SQUARE = [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0), (0.0, 0.0)]


def test_absolute_square():
    rings = parse_path_rings("M0 0 L10 0 L10 10 L0 10 Z")
    assert rings == [SQUARE]


def test_relative_commands_match_absolute():
    assert parse_path_rings("m0 0 h10 v10 h-10 z") == [SQUARE]
    assert parse_path_rings("M0,0 l10,0 l0,10 l-10,0 z") == [SQUARE]


def test_ring_is_closed_without_z():
    ring = parse_path_vertices("M0 0 L10 0 L10 10 L0 10")
    assert ring[0] == ring[-1]
    assert len(ring) == 5


def test_implicit_lineto_after_move():
    assert parse_path_rings("M0 0 10 0 10 10 0 10 z") == [SQUARE]


def test_each_subpath_is_its_own_ring():
    rings = parse_path_rings("M0 0 L1 0 L1 1 Z M5 5 L6 5 L6 6 Z")
    assert len(rings) == 2
    assert rings[1][0] == (5.0, 5.0)


def test_relative_move_after_close_starts_from_subpath_start():
    rings = parse_path_rings("M10 10 l1 0 l0 1 z m5 0 l1 0 l0 1 z")
    assert rings[1][0] == (15.0, 10.0)


def test_curve_contributes_end_point():
    ring = parse_path_vertices("M0 0 C2 -2 8 -2 10 0 L10 10 L0 10 Z")
    assert (10.0, 0.0) in ring
    assert (2.0, -2.0) not in ring


def test_scientific_and_packed_numbers():
    ring = parse_path_vertices("M0 0L1e1 0L10-5z")
    assert ring == [(0.0, 0.0), (10.0, 0.0), (10.0, -5.0), (0.0, 0.0)]


def test_empty_input():
    assert parse_path_rings(None) == []
    assert parse_path_rings("") == []
    assert parse_path_vertices("###") == []


def test_distinct_points():
    assert distinct_points(SQUARE) == 4
    assert distinct_points([(0, 0), (0, 0)]) == 1
