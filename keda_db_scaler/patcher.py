"""Applies scale decisions as merge patches on the replica count.

Only spec.replicas is sent, so edits other actors make to the rest of
the resource are left alone and sending the same decision twice ends
in the same state. Failures are logged and dropped; KEDA re-emits its
activation events every polling cycle, which brings the next attempt.
"""

from kubernetes import client
from kubernetes.client.rest import ApiException

from .models import KIND_DEPLOYMENT, KIND_STATEFULSET, ScaleDecision
from .scaler_logger import ScalerLogger


logger = ScalerLogger("patcher").logger


class ResourcePatcher:
    def __init__(self, apps: client.AppsV1Api, timeout: float = 10.0):
        self.apps = apps
        self.timeout = timeout

    def _patch_fn(self, kind: str):
        if kind == KIND_STATEFULSET:
            return self.apps.patch_namespaced_stateful_set
        if kind == KIND_DEPLOYMENT:
            return self.apps.patch_namespaced_deployment
        return None

    def apply(self, decision: ScaleDecision) -> bool:
        """Patch the target's replica count. Returns False if the patch failed."""
        name = decision.target_resource_name
        ns = decision.target_namespace
        replicas = decision.desired_replicas

        patch = self._patch_fn(decision.target_kind)
        if patch is None:
            logger.error(f"Unsupported kind {decision.target_kind} for {ns}/{name}")
            return False

        logger.info(f"Scale {decision.target_kind} {ns}/{name} to {replicas} replicas")
        try:
            # the client sends a dict body as a strategic merge patch,
            # which for {"spec": {"replicas": n}} is a plain merge
            patch(
                name=name,
                namespace=ns,
                body=decision.patch_body(),
                _request_timeout=self.timeout,
            )
        except ApiException as e:
            logger.error(
                f"Failed to scale {decision.target_kind} {ns}/{name} to {replicas} replicas: "
                f"{e.status} {e.reason}"
            )
            return False
        except Exception as e:
            logger.error(f"Failed to scale {decision.target_kind} {ns}/{name} to {replicas} replicas: {e}")
            return False
        return True
