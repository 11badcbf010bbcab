import copy
import json
import os

_DEFAULTS = {
    "profile": "dev",
    "active_provider": "rules",
    "providers": {
        "openai": {"api_key_env": "OPENAI_API_KEY", "model": "gpt-4o"},
        "rules": {},
        "mock": {},
    },
    "extraction": {"timeout_s": 10.0, "temperature": 0.15},
    "classifier": {"local_rules_first": True},
    "listening": {
        "language": "en",
        "volatile_enabled": False,
        "volatile_cooldown_s": 0.8,
        "min_volatile_chars": 3,
    },
    "audio": {
        "sample_rate": 16000,
        "block_sec": 0.2,
        "vad_frame_ms": 30,        # 10, 20 or 30 ms only
        "vad_aggressiveness": 2,   # 0=least aggressive, 3=most aggressive
        "silence_hold": 0.6,       # trailing silence that closes an utterance
        "min_spoken": 0.3,
        "partial_every_s": 0.6,    # how often a volatile hypothesis is produced
        "max_utterance_s": 8.0,
        "device": None,
    },
    "whisper": {"model": "small", "device": "cpu", "compute_type": None, "beam_size": 1},
    "scene": {
        "anchor": [0.0, 1.0, -1.5],
        "spawn_min": [-0.5, -0.5, -0.5],
        "spawn_max": [0.5, 0.5, 0.3],
        "seed": None,
    },
    "simulation": {
        "center_strength": 0.05,
        "pair_strength": 0.05,
        "min_distance": 1e-3,
        "tick_hz": 60.0,
        "integrate": True,
        "damping": 0.1,
    },
    "history": {"max_entries": 50},
    "logging": {"level": "INFO", "to_file": True, "path": "logs/sts.log"},
}

# env var -> config path
_ENV_OVERRIDES = {
    "STS_PROVIDER": ("active_provider",),
    "WHISPER_MODEL": ("whisper", "model"),
    "WHISPER_LANG": ("listening", "language"),
    "FW_DEVICE": ("whisper", "device"),
    "STS_LOG_LEVEL": ("logging", "level"),
}


def _merge(a, b):
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(a.get(k), dict):
            _merge(a[k], v)
        else:
            a[k] = v
    return a


def _apply_env(cfg, environ):
    for var, path in _ENV_OVERRIDES.items():
        value = (environ.get(var) or "").strip()
        if not value:
            continue
        node = cfg
        for key in path[:-1]:
            node = node.setdefault(key, {})
        node[path[-1]] = value


def load_config(repo_root=None, path=None, environ=None):
    repo_root = repo_root or os.getcwd()
    cfg_path = path or os.path.join(repo_root, "config", "config.json")

    data = {}
    if os.path.isfile(cfg_path):
        with open(cfg_path, "r", encoding="utf-8") as f:
            data = json.load(f)

    cfg = _merge(copy.deepcopy(_DEFAULTS), data)
    _apply_env(cfg, os.environ if environ is None else environ)

    # normalize the log path to absolute; the directory is created when logging is set up
    log_path_rel = cfg.get("logging", {}).get("path")
    if log_path_rel and not os.path.isabs(log_path_rel):
        cfg["logging"]["path"] = os.path.join(repo_root, log_path_rel)

    cfg["_repo_root"] = repo_root  # handy for relative paths elsewhere
    return cfg
