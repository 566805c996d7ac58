"""Effects sub-package: deliver reward events to the rendering layer."""

from neurogate.effects.handlers import (
    DispatchResult,
    LogHandler,
    RewardDispatcher,
    RewardHandler,
    WebhookHandler,
    create_dispatcher,
)

__all__ = [
    "DispatchResult",
    "LogHandler",
    "RewardDispatcher",
    "RewardHandler",
    "WebhookHandler",
    "create_dispatcher",
]
