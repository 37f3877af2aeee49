"""Value types flowing from the event stream to the patch request."""

from dataclasses import dataclass
from typing import Any


KIND_STATEFULSET = "StatefulSet"
KIND_DEPLOYMENT = "Deployment"
SCALABLE_KINDS = (KIND_STATEFULSET, KIND_DEPLOYMENT)


@dataclass(frozen=True)
class ClusterEvent:
    """The fields of a Kubernetes Event the scaler looks at."""

    source_component: str
    reason: str
    involved_object_name: str
    involved_object_namespace: str

    @staticmethod
    def from_kube(obj: Any) -> "ClusterEvent | None":
        """Build from a V1Event/CoreV1Event or return None if it has no involved object."""
        involved = getattr(obj, "involved_object", None)
        name = getattr(involved, "name", None)
        if not name:
            return None
        source = getattr(obj, "source", None)
        component = getattr(source, "component", None) or getattr(obj, "reporting_component", None)
        return ClusterEvent(
            source_component=component or "",
            reason=getattr(obj, "reason", None) or "",
            involved_object_name=name,
            involved_object_namespace=getattr(involved, "namespace", None) or "",
        )


@dataclass(frozen=True)
class TargetTemplate:
    """A dependent resource scaled together with the KEDA target.

    `name_template` is formatted with `base`, the involved object name
    without its suffix, e.g. "{base}-postgresql".
    """

    kind: str
    name_template: str

    def render(self, base: str) -> str:
        return self.name_template.format(base=base)


@dataclass(frozen=True)
class ScaleDecision:
    target_resource_name: str
    target_namespace: str
    desired_replicas: int
    target_kind: str = KIND_STATEFULSET

    def patch_body(self) -> dict[str, Any]:
        return {"spec": {"replicas": self.desired_replicas}}
