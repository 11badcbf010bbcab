import json
import logging
import os

from sts_core.config import load_config
from sts_core.logs import setup_logging


def test_defaults_without_a_config_file(tmp_path):
    cfg = load_config(repo_root=str(tmp_path), environ={})
    assert cfg["active_provider"] == "rules"
    assert cfg["listening"]["volatile_cooldown_s"] == 0.8
    assert cfg["history"]["max_entries"] == 50
    assert cfg["logging"]["path"] == os.path.join(str(tmp_path), "logs", "sts.log")


def test_file_values_merge_over_defaults(tmp_path):
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "config.json").write_text(json.dumps({
        "active_provider": "openai",
        "listening": {"volatile_enabled": True},
    }))
    cfg = load_config(repo_root=str(tmp_path), environ={})
    assert cfg["active_provider"] == "openai"
    assert cfg["listening"]["volatile_enabled"] is True
    # untouched keys of the same block survive
    assert cfg["listening"]["min_volatile_chars"] == 3


def test_explicit_path(tmp_path):
    path = tmp_path / "other.json"
    path.write_text(json.dumps({"history": {"max_entries": 5}}))
    cfg = load_config(repo_root=str(tmp_path), path=str(path), environ={})
    assert cfg["history"]["max_entries"] == 5


def test_environment_overrides(tmp_path):
    cfg = load_config(repo_root=str(tmp_path), environ={
        "STS_PROVIDER": "mock",
        "WHISPER_MODEL": " base.en ",
        "WHISPER_LANG": "",
    })
    assert cfg["active_provider"] == "mock"
    assert cfg["whisper"]["model"] == "base.en"
    assert cfg["listening"]["language"] == "en"


def test_defaults_are_not_shared_between_loads(tmp_path):
    a = load_config(repo_root=str(tmp_path), environ={})
    a["listening"]["volatile_enabled"] = True
    b = load_config(repo_root=str(tmp_path), environ={})
    assert b["listening"]["volatile_enabled"] is False


def test_setup_logging_writes_to_file(tmp_path):
    cfg = load_config(repo_root=str(tmp_path), environ={})
    root = logging.getLogger()
    try:
        setup_logging(cfg)
        logging.getLogger("sts_core.test").info("[Test] hello")
        files = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
        assert len(files) == 1
        files[0].flush()
        assert "[Test] hello" in (tmp_path / "logs" / "sts.log").read_text(encoding="utf-8")
        assert logging.getLogger("openai").level == logging.WARNING
    finally:
        for h in list(root.handlers):
            if isinstance(h, logging.FileHandler):
                root.removeHandler(h)
                h.close()
