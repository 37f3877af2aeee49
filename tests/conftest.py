from types import SimpleNamespace

import pytest
from kubernetes.client.rest import ApiException

from keda_db_scaler.classifier import EventClassifier
from keda_db_scaler.config import DEFAULT_TEMPLATE
from keda_db_scaler.models import ClusterEvent
from keda_db_scaler.patcher import ResourcePatcher
from keda_db_scaler.reconciler import ReconciliationLoop


def kube_event(
    name: str = "app-core",
    namespace: str = "ns1",
    reason: str = "KEDAScaleTargetActivated",
    component: str | None = "keda-operator",
    resource_version: str = "1",
):
    """Something shaped like a V1Event as returned by the client."""
    return SimpleNamespace(
        metadata=SimpleNamespace(name=f"{name}.1234", namespace=namespace, resource_version=resource_version),
        source=SimpleNamespace(component=component, host=None),
        reporting_component=None,
        reason=reason,
        involved_object=SimpleNamespace(kind="Deployment", name=name, namespace=namespace),
    )


def cluster_event(
    name: str = "app-core",
    namespace: str = "ns1",
    reason: str = "KEDAScaleTargetActivated",
    component: str = "keda-operator",
) -> ClusterEvent:
    return ClusterEvent(
        source_component=component,
        reason=reason,
        involved_object_name=name,
        involved_object_namespace=namespace,
    )


class FakeAppsApi:
    """Keeps replica counts per (kind, namespace, name) and records every patch."""

    def __init__(self, failing: set[str] | None = None):
        self.replicas: dict[tuple[str, str, str], int] = {}
        self.calls: list[dict] = []
        self.failing = failing or set()

    def _patch(self, kind, name, namespace, body, **kwargs):
        self.calls.append({"kind": kind, "name": name, "namespace": namespace, "body": body, **kwargs})
        if name in self.failing:
            raise ApiException(status=404, reason="Not Found")
        self.replicas[(kind, namespace, name)] = body["spec"]["replicas"]
        return SimpleNamespace(spec=SimpleNamespace(replicas=body["spec"]["replicas"]))

    def patch_namespaced_stateful_set(self, name, namespace, body, **kwargs):
        return self._patch("StatefulSet", name, namespace, body, **kwargs)

    def patch_namespaced_deployment(self, name, namespace, body, **kwargs):
        return self._patch("Deployment", name, namespace, body, **kwargs)


@pytest.fixture
def apps():
    return FakeAppsApi()


@pytest.fixture
def classifier():
    return EventClassifier(targets=[DEFAULT_TEMPLATE])


@pytest.fixture
def loop(classifier, apps):
    return ReconciliationLoop(classifier, ResourcePatcher(apps, timeout=5))
