"""Response streaming to connected clients."""

from autopr.streaming.emitter import ResponseEmitter

__all__ = ["ResponseEmitter"]
