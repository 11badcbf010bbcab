# sts_core/errors.py
"""
Error taxonomy.

Session setup errors abort a listening session and go back to the caller.
Command errors are recovered inside the dispatcher: they become one failed
log entry and listening carries on.
"""

from typing import Optional


class SceneVoiceError(Exception):
    """Base class for everything this package raises on purpose."""


# ---------------- Session setup (fatal to the session) ----------------

class SessionSetupError(SceneVoiceError):
    pass


class PermissionDenied(SessionSetupError):
    pass


class AudioSetupFailure(SessionSetupError):
    pass


class TranscriberSetupFailure(SessionSetupError):
    pass


# ---------------- Per-command (recovered locally) ----------------

class CommandError(SceneVoiceError):
    code = "command_error"
    # retryable -> the listener keeps the accumulated text so more speech can extend it
    retryable = False


class ClassificationFailure(CommandError):
    code = "classification_failure"
    retryable = True


class ExtractionFailure(CommandError):
    code = "extraction_failure"
    retryable = True

    def __init__(self, kind, message: Optional[str] = None):
        self.kind = kind
        label = getattr(kind, "value", kind)
        super().__init__(message or f"Could not extract {label} parameters")


class NoActiveEntity(CommandError):
    code = "no_active_entity"

    def __init__(self, message: str = "No active entity selected"):
        super().__init__(message)


class UnrecognizedActionKind(CommandError):
    code = "unrecognized_action_kind"

    def __init__(self, label: str = "", message: Optional[str] = None):
        self.label = label
        super().__init__(message or f"Unrecognized command type: {label!r}")


class DispatcherBusy(CommandError):
    code = "dispatcher_busy"
    retryable = True

    def __init__(self, message: str = "Another command is still being processed"):
        super().__init__(message)
