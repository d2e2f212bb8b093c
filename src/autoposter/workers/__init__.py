"""Background workers for long-running async tasks."""

from autoposter.workers.log_stream_bridge import LogStreamBridge

__all__ = [
    "LogStreamBridge",
]
