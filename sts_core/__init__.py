"""Speech To Scene core: voice commands -> classified actions -> live 3D scene."""

__version__ = "0.1.0"
