# sts_core/logs.py
import logging
import os
from typing import Any, Dict

_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"

# libraries that are chatty at INFO
_NOISY = ("faster_whisper", "ctranslate2", "httpx", "httpcore", "openai", "urllib3",
          "huggingface_hub", "tokenizers", "onnxruntime")


def setup_logging(cfg: Dict[str, Any], verbose: bool = False) -> None:
    """Configure the root logger from the `logging` config block."""
    block = cfg.get("logging", {}) or {}
    level_name = "DEBUG" if verbose else str(block.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    handlers = [logging.StreamHandler()]
    path = block.get("path")
    if block.get("to_file") and path:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    logging.basicConfig(level=level, format=_FORMAT, datefmt="%H:%M:%S", handlers=handlers, force=True)
    for name in _NOISY:
        logging.getLogger(name).setLevel(logging.WARNING if not verbose else logging.INFO)
