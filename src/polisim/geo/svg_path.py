from __future__ import annotations

import re
from typing import List, Optional, Tuple

Point = Tuple[float, float]

# command letter followed by everything up to the next command letter
_COMMAND_RE = re.compile(r"[MmLlHhVvCcSsQqTtAaZz][^MmLlHhVvCcSsQqTtAaZz]*")
_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")

# number of arguments per segment for curve/arc commands; only the end point is kept
_CURVE_ARITY = {"c": 6, "s": 4, "q": 4, "t": 2, "a": 7}

MIN_RING_VERTICES = 4


def _numbers(chunk: str) -> List[float]:
    return [float(x) for x in _NUMBER_RE.findall(chunk)]


def _close(ring: List[Point]) -> List[Point]:
    if ring and ring[0] != ring[-1]:
        ring = ring + [ring[0]]
    return ring


def parse_path_rings(path_data: Optional[str]) -> List[List[Point]]:
    """
    Parse an SVG-style path string into a list of closed rings.

    Supports absolute and relative M/L/H/V/Z. Curve and arc commands
    (C/S/Q/T/A) contribute only their end point, so the ring follows the
    on-curve points of the outline. A new M after a closed ring starts a
    new ring. Every returned ring is closed (first vertex == last vertex).

    Rings shorter than MIN_RING_VERTICES are kept here; callers decide
    what is degenerate.
    """
    if not path_data:
        return []

    commands = _COMMAND_RE.findall(path_data)
    if not commands:
        return []

    rings: List[List[Point]] = []
    ring: List[Point] = []
    x = y = 0.0
    start_x = start_y = 0.0

    def flush():
        nonlocal ring
        if ring:
            rings.append(_close(ring))
        ring = []

    for command in commands:
        kind = command[0]
        rel = kind.islower()
        op = kind.lower()
        args = _numbers(command[1:])

        if op == "m":
            if len(args) < 2:
                continue
            # a move starts a fresh outline
            flush()
            if rel:
                x += args[0]
                y += args[1]
            else:
                x, y = args[0], args[1]
            start_x, start_y = x, y
            ring.append((x, y))
            # implicit lineto pairs after the first coordinate pair
            for i in range(2, len(args) - 1, 2):
                if rel:
                    x += args[i]
                    y += args[i + 1]
                else:
                    x, y = args[i], args[i + 1]
                ring.append((x, y))

        elif op == "l":
            for i in range(0, len(args) - 1, 2):
                if rel:
                    x += args[i]
                    y += args[i + 1]
                else:
                    x, y = args[i], args[i + 1]
                ring.append((x, y))

        elif op == "h":
            for v in args:
                x = x + v if rel else v
                ring.append((x, y))

        elif op == "v":
            for v in args:
                y = y + v if rel else v
                ring.append((x, y))

        elif op in _CURVE_ARITY:
            n = _CURVE_ARITY[op]
            for i in range(0, len(args) - n + 1, n):
                ex, ey = args[i + n - 2], args[i + n - 1]
                if rel:
                    x += ex
                    y += ey
                else:
                    x, y = ex, ey
                ring.append((x, y))

        elif op == "z":
            flush()
            # current point returns to the start of the closed subpath
            x, y = start_x, start_y

    flush()
    return rings


def parse_path_vertices(path_data: Optional[str]) -> List[Point]:
    """All vertices of the first ring, closed. Empty list when nothing parses."""
    rings = parse_path_rings(path_data)
    return rings[0] if rings else []


def distinct_points(ring: List[Point]) -> int:
    return len(set(ring))
