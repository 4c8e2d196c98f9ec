"""
Drawer services - the ORM-free shell around the engines.

Float-target resolution and propagation, dirty tracking and the transient
retry policy.  Nothing here touches the database directly.
"""

from drawer_services.broadcast import (
    BroadcastChannel,
    BroadcastHub,
    FloatCache,
    FloatTargetChanged,
    InMemoryFloatCache,
    LocalEventBus,
)
from drawer_services.float_target import (
    SETTINGS_CHANNEL,
    FloatTargetPublisher,
    FloatTargetResolver,
    FloatTargetSource,
    FloatTargetSubscription,
    ResolvedFloatTarget,
)
from drawer_services.retry import retry_on_transient
from drawer_services.signature_tracker import RecordSignatureTracker

__all__ = [
    "FloatTargetChanged",
    "LocalEventBus",
    "BroadcastHub",
    "BroadcastChannel",
    "FloatCache",
    "InMemoryFloatCache",
    "SETTINGS_CHANNEL",
    "FloatTargetSource",
    "ResolvedFloatTarget",
    "FloatTargetResolver",
    "FloatTargetPublisher",
    "FloatTargetSubscription",
    "RecordSignatureTracker",
    "retry_on_transient",
]
