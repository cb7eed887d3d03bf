import pytest

from polisim.config import get_section, load_config


def test_load_config(tmp_path):
    p = tmp_path / "config.yaml"
    p.write_text("run:\n  state_id: USA_IL\nalgo:\n  balance:\n    max_iterations: 5\n")
    cfg = load_config(p)
    assert cfg["run"]["state_id"] == "USA_IL"
    assert get_section(cfg, "algo", "balance", "max_iterations") == 5


def test_empty_and_missing(tmp_path):
    p = tmp_path / "empty.yaml"
    p.write_text("")
    assert load_config(p) == {}
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_get_section_defaults():
    cfg = {"run": None, "paths": {"pack_dir": "x"}}
    assert get_section(cfg, "run", "state_id", default="") == ""
    assert get_section(cfg, "paths", "pack_dir") == "x"
    assert get_section(cfg, "paths", "pack_dir", "deeper") is None
    assert get_section({}, "anything", default=3) == 3
