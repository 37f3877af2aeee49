"""Maps KEDA scale events to replica changes of the dependent resources."""

from .models import ClusterEvent, ScaleDecision, TargetTemplate


KEDA_COMPONENT = "keda-operator"
REASON_ACTIVATED = "KEDAScaleTargetActivated"
REASON_DEACTIVATED = "KEDAScaleTargetDeactivated"

REPLICAS_FOR_REASON = {
    REASON_ACTIVATED: 1,
    REASON_DEACTIVATED: 0,
}


def base_name(name: str, suffix: str) -> str:
    """Return name without the trailing suffix, unchanged if it doesn't end with it."""
    if suffix and name.endswith(suffix):
        return name[: -len(suffix)]
    return name


class EventClassifier:
    def __init__(
        self,
        targets: list[TargetTemplate],
        watched_apps: list[str] | None = None,
        strip_suffix: str = "-core",
    ):
        if not targets:
            raise ValueError("at least one target template is required")
        self.targets = list(targets)
        self.watched_apps = frozenset(watched_apps or [])
        self.strip_suffix = strip_suffix

    def desired_replicas(self, event: ClusterEvent) -> int | None:
        """Return 0 or 1 for a scale signal we act on, None for anything else."""
        if event.source_component != KEDA_COMPONENT:
            return None
        if self.watched_apps and event.involved_object_name not in self.watched_apps:
            return None
        return REPLICAS_FOR_REASON.get(event.reason)

    def decisions(self, event: ClusterEvent) -> list[ScaleDecision]:
        """One decision per configured target, primary target first."""
        replicas = self.desired_replicas(event)
        if replicas is None:
            return []
        base = base_name(event.involved_object_name, self.strip_suffix)
        return [
            ScaleDecision(
                target_resource_name=t.render(base),
                target_namespace=event.involved_object_namespace,
                desired_replicas=replicas,
                target_kind=t.kind,
            )
            for t in self.targets
        ]

    def classify(self, event: ClusterEvent) -> ScaleDecision | None:
        decisions = self.decisions(event)
        return decisions[0] if decisions else None
