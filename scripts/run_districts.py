import argparse
from datetime import datetime
from pathlib import Path

from polisim.algos.congressional import generate_congressional_districts
from polisim.config import get_section, load_config
from polisim.data.export import export_plan
from polisim.data.region_pack import load_region_pack


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", default="config.yaml")
    ap.add_argument("--pack", default=None, help="region pack directory (overrides paths.pack_dir)")
    ap.add_argument("--out", default=None, help="run directory (default: <outputs_dir>/<state>_<timestamp>)")
    ap.add_argument("--districts", type=int, default=None, help="override district count")
    args = ap.parse_args()

    cfg = load_config(Path(args.config))

    pack_dir = args.pack or get_section(cfg, "paths", "pack_dir")
    if not pack_dir:
        raise KeyError("Missing pack directory. Provide --pack or paths.pack_dir in config")
    pack = load_region_pack(Path(pack_dir).expanduser())

    state_id = pack.state_id or get_section(cfg, "run", "state_id", default="")
    num_districts = args.districts or get_section(cfg, "run", "num_districts")

    plan = generate_congressional_districts(
        pack.regions,
        num_districts,
        pack.paths,
        state_id=state_id,
        config=cfg,
        adjacency=pack.adjacency,
    )

    if args.out:
        run_dir = Path(args.out).expanduser()
    else:
        outputs = Path(get_section(cfg, "paths", "outputs_dir", default="outputs")).expanduser()
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        run_dir = outputs / f"{state_id or 'state'}_{stamp}"

    export_plan(plan, run_dir, shapes=pack.shapes)
    print(f"stop={plan.stop_reason} iterations={plan.iterations} districts={plan.num_districts}")


if __name__ == "__main__":
    main()
