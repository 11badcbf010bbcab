"""
Language agents: turn an utterance into an ActionKind and its parameters.
"""

from .classifier import CommandClassifier
from .extractors import ParameterExtractor

__all__ = ["CommandClassifier", "ParameterExtractor"]
