import os
import sys

# Add repo root to path (parent of tests/)
_repo_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _repo_root not in sys.path:
    sys.path.insert(0, _repo_root)

import pytest

from sts_core.config import load_config
from sts_core.dispatcher import CommandDispatcher
from sts_core.providers.mock import MockProvider
from sts_core.scene import RecordingRenderer, Scene


@pytest.fixture
def cfg(tmp_path):
    c = load_config(repo_root=str(tmp_path), environ={})
    c["logging"]["to_file"] = False
    c["scene"]["seed"] = 7
    return c


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def make_dispatcher(cfg, renderer):
    """Dispatcher over a recording scene; the provider defaults to a mock backed by the local rules."""
    def _make(provider=None):
        scene = Scene.from_config(cfg, renderer=renderer)
        return CommandDispatcher.from_config(cfg, scene=scene, provider=provider or MockProvider())
    return _make
