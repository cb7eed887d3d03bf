import argparse
import contextlib
import json
import sys
from pathlib import Path

from polisim.elections.models import candidate_from_record, election_config_from_record, party_from_record
from polisim.elections.processors import calculate_election_outcome

'''
Input json:
  {"election": {...}, "parties": [...], "candidates": [...]}
election takes the game's field names (electoralSystem, numberOfSeatsToFill,
prThresholdPercent, prAllocationMethod, partyLists, mmpData, voteTarget,
totalVotesActuallyCast) or their snake_case forms.
'''


def _print_summary(outcome, file=None):
    for row in outcome.party_vote_summary:
        seats = outcome.party_seat_summary.get(row.id, 0)
        print(f"  {row.name:<24} {row.votes:>12,.0f}  {row.percentage:6.2f}%  seats={seats}", file=file)


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("election_json")
    ap.add_argument("--out", default=None, help="write the outcome json here (default: stdout, diagnostics to stderr)")
    args = ap.parse_args()

    src = Path(args.election_json)
    if not src.exists():
        raise FileNotFoundError(f"Missing election file: {src}")
    raw = json.loads(src.read_text())
    if "election" not in raw:
        raise KeyError(f"{src} has no 'election' object. Found keys: {list(raw)}")

    config = election_config_from_record(raw["election"])
    parties = [party_from_record(p) for p in raw.get("parties", [])]
    candidates = [candidate_from_record(c) for c in raw.get("candidates", []) if c and c.get("id")]

    if args.out:
        outcome = calculate_election_outcome(config, parties, candidates)
        _print_summary(outcome)
        Path(args.out).write_text(json.dumps(outcome.to_record(), indent=2))
        print(f"✅ Wrote outcome to: {args.out}")
        return

    # stdout carries only the outcome json
    with contextlib.redirect_stdout(sys.stderr):
        outcome = calculate_election_outcome(config, parties, candidates)
        _print_summary(outcome)
    print(json.dumps(outcome.to_record(), indent=2))


if __name__ == "__main__":
    main()
