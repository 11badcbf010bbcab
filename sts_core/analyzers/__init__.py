from .command_log import CommandLog

__all__ = ["CommandLog"]
