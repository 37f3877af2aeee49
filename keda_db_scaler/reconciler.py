"""Glues the sync gate, the classifier and the patcher together.

The loop starts in SYNCING and moves to ARMED once every watched scope
has delivered its initial listing. It never goes back: a watch that
reconnects later does not close the gate again.
"""

from typing import Any

from .classifier import EventClassifier
from .models import ClusterEvent
from .patcher import ResourcePatcher
from .scaler_logger import ScalerLogger
from .sync_gate import SyncGate


STATE_SYNCING = "SYNCING"
STATE_ARMED = "ARMED"

NOTIFICATION_ADDED = "ADDED"
NOTIFICATION_MODIFIED = "MODIFIED"
NOTIFICATION_DELETED = "DELETED"


logger = ScalerLogger("reconciler").logger


class ReconciliationLoop:
    def __init__(
        self,
        classifier: EventClassifier,
        patcher: ResourcePatcher,
        gate: SyncGate | None = None,
    ):
        self.classifier = classifier
        self.patcher = patcher
        self.gate = gate or SyncGate()

    @property
    def state(self) -> str:
        return STATE_ARMED if self.gate.is_armed() else STATE_SYNCING

    def arm(self):
        if not self.gate.is_armed():
            logger.info("All scopes synced, acting on new events")
        self.gate.arm()

    def handle(self, notification_type: str, event: ClusterEvent) -> int:
        """Process one notification and return the number of successful patches.

        Add and update notifications are gated the same way; deletions
        carry no scale signal and are ignored.
        """
        if not self.gate.is_armed():
            return 0
        if notification_type == NOTIFICATION_DELETED:
            return 0

        decisions = self.classifier.decisions(event)
        if not decisions:
            return 0

        direction = "up" if decisions[0].desired_replicas else "down"
        logger.info(
            f"Scaled {direction}: {event.involved_object_namespace}/{event.involved_object_name}"
        )
        applied = 0
        for decision in decisions:
            if self.patcher.apply(decision):
                applied += 1
        return applied

    def handle_object(self, notification_type: str, obj: Any) -> int:
        """Like handle() but for a raw Kubernetes event object."""
        event = ClusterEvent.from_kube(obj)
        if event is None:
            return 0
        return self.handle(notification_type, event)
