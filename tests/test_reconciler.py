from unittest.mock import MagicMock

from keda_db_scaler.classifier import EventClassifier
from keda_db_scaler.config import DEFAULT_TEMPLATE
from keda_db_scaler.models import ScaleDecision, TargetTemplate
from keda_db_scaler.patcher import ResourcePatcher
from keda_db_scaler.reconciler import STATE_ARMED, STATE_SYNCING, ReconciliationLoop
from keda_db_scaler.sync_gate import SyncGate

from conftest import FakeAppsApi, cluster_event, kube_event


def spy_loop():
    patcher = MagicMock(spec=ResourcePatcher)
    patcher.apply.return_value = True
    return ReconciliationLoop(EventClassifier(targets=[DEFAULT_TEMPLATE]), patcher), patcher


def test_gate_starts_closed_and_stays_open():
    gate = SyncGate()
    assert not gate.is_armed()
    gate.arm()
    gate.arm()
    assert gate.is_armed()


def test_state_machine():
    loop, _ = spy_loop()
    assert loop.state == STATE_SYNCING
    loop.arm()
    assert loop.state == STATE_ARMED
    loop.arm()
    assert loop.state == STATE_ARMED


def test_nothing_is_patched_before_arming():
    loop, patcher = spy_loop()
    event = cluster_event()

    for notification in ["ADDED", "MODIFIED"]:
        assert loop.handle(notification, event) == 0
        assert loop.handle(notification, cluster_event(reason="KEDAScaleTargetDeactivated")) == 0
        assert loop.handle(notification, cluster_event(component="other")) == 0
    patcher.apply.assert_not_called()

    loop.arm()
    assert loop.handle("MODIFIED", event) == 1
    patcher.apply.assert_called_once_with(ScaleDecision("app-postgresql", "ns1", 1))


def test_pre_sync_events_are_not_replayed_on_arming():
    loop, patcher = spy_loop()
    loop.handle("ADDED", cluster_event())
    loop.arm()
    patcher.apply.assert_not_called()


def test_irrelevant_events_are_dropped_after_arming():
    loop, patcher = spy_loop()
    loop.arm()
    assert loop.handle("ADDED", cluster_event(component="other-operator")) == 0
    assert loop.handle("ADDED", cluster_event(reason="ScalingReplicaSet")) == 0
    patcher.apply.assert_not_called()


def test_deletions_are_ignored():
    loop, patcher = spy_loop()
    loop.arm()
    assert loop.handle("DELETED", cluster_event()) == 0
    patcher.apply.assert_not_called()


def test_same_signal_twice(loop, apps):
    loop.arm()
    loop.handle("ADDED", cluster_event())
    loop.handle("MODIFIED", cluster_event())
    assert len(apps.calls) == 2
    assert apps.replicas == {("StatefulSet", "ns1", "app-postgresql"): 1}


def test_failed_patch_does_not_stop_next_event(classifier):
    apps = FakeAppsApi(failing={"broken-postgresql"})
    loop = ReconciliationLoop(classifier, ResourcePatcher(apps))
    loop.arm()

    assert loop.handle("MODIFIED", cluster_event(name="broken-core")) == 0
    assert loop.handle("MODIFIED", cluster_event(name="app-core")) == 1
    assert apps.replicas == {("StatefulSet", "ns1", "app-postgresql"): 1}


def test_all_targets_are_patched_even_if_one_fails():
    apps = FakeAppsApi(failing={"app-postgresql"})
    classifier = EventClassifier(
        targets=[TargetTemplate("StatefulSet", "{base}-postgresql"), TargetTemplate("Deployment", "{base}-minio")]
    )
    loop = ReconciliationLoop(classifier, ResourcePatcher(apps))
    loop.arm()

    assert loop.handle("MODIFIED", cluster_event(reason="KEDAScaleTargetDeactivated")) == 1
    assert apps.replicas == {("Deployment", "ns1", "app-minio"): 0}


def test_historical_event_then_live_update(loop, apps):
    obj = kube_event(name="app-core", namespace="ns1", reason="KEDAScaleTargetActivated")

    loop.handle_object("ADDED", obj)
    loop.arm()
    assert apps.calls == []

    loop.handle_object("MODIFIED", obj)
    assert [(c["namespace"], c["name"], c["body"]) for c in apps.calls] == [
        ("ns1", "app-postgresql", {"spec": {"replicas": 1}})
    ]


def test_other_operator_after_arming(loop, apps):
    loop.arm()
    loop.handle_object("ADDED", kube_event(component="other-operator"))
    loop.handle_object("MODIFIED", kube_event(component="other-operator"))
    assert apps.calls == []


def test_object_without_involved_object(loop, apps):
    loop.arm()
    obj = kube_event()
    obj.involved_object = None
    assert loop.handle_object("ADDED", obj) == 0
    assert apps.calls == []
