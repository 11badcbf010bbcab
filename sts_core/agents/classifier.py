"""
Command Classifier Agent

Responsibility: decide which ActionKind an utterance is
- Unambiguous keyword cues (system, movement, rotation, scaling) are read locally
- Everything else goes to the extraction service with the priority-rule prompt

This agent does NOT:
- Extract parameters (see extractors.py)
- Retry; a failed call surfaces as ClassificationFailure
"""

import logging

from ..commands.schema import ActionChoice, ActionKind
from ..errors import ClassificationFailure, ExtractionFailure, UnrecognizedActionKind
from ..prompts.templates import ACTION_INSTRUCTIONS
from .rules import keyword_kind

log = logging.getLogger(__name__)


class CommandClassifier:
    """Maps an utterance to an ActionKind."""

    def __init__(self, pipeline, local_rules_first: bool = True):
        """
        Args:
            pipeline: ExtractionPipeline wrapping the configured provider
            local_rules_first: short-circuit the keyword rules before asking the service
        """
        self.pipeline = pipeline
        self.local_rules_first = local_rules_first

    async def classify(self, utterance: str) -> ActionKind:
        if self.local_rules_first:
            kind = keyword_kind(utterance)
            if kind is not None:
                log.debug("[Classifier] local rule: %r -> %s", utterance, kind.value)
                return kind

        try:
            payload = await self.pipeline.respond(utterance, ACTION_INSTRUCTIONS, ActionChoice, "action")
        except ExtractionFailure as e:
            raise ClassificationFailure(str(e)) from e

        label = str(payload.get("kind") or payload.get("actionType") or "").strip().lower()
        try:
            kind = ActionKind(label)
        except ValueError:
            raise UnrecognizedActionKind(label) from None
        log.debug("[Classifier] %s: %r -> %s", self.pipeline.provider_name, utterance, kind.value)
        return kind
