"""Config defaults and JSON persistence."""

import json
from unittest.mock import patch

from echoy.config import Config


def test_config_defaults():
    """Verify Config initializes with correct defaults."""
    cfg = Config()

    assert cfg.provider == "openai"
    assert cfg.streaming is True
    assert cfg.context_policy == "turn"
    assert cfg.partial_stream_policy == "discard"
    assert cfg.thinking_interval == 0.3


def test_config_save_load(tmp_path):
    """Verify settings survive a save and load from disk."""
    fake_config_file = tmp_path / "settings.json"

    with patch("echoy.config.CONFIG_FILE", str(fake_config_file)):
        cfg = Config()
        cfg.model = "llama3"
        cfg.streaming = False
        cfg.save()

        cfg_loaded = Config()
        cfg_loaded.load()

    assert cfg_loaded.model == "llama3"
    assert cfg_loaded.streaming is False


def test_load_creates_missing_file(tmp_path):
    path = tmp_path / "config" / "settings.json"

    Config().load(str(path))

    assert path.exists()
    assert json.loads(path.read_text(encoding="utf-8"))["assistant_name"] == "Echoy"


def test_unknown_keys_are_ignored(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"model": "m", "bogus": 1}), encoding="utf-8")

    cfg = Config()
    cfg.load(str(path))

    assert cfg.model == "m"
    assert not hasattr(cfg, "bogus")
