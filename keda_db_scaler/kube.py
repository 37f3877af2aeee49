from kubernetes import client, config

from .errors import ConfigError
from .scaler_logger import ScalerLogger


logger = ScalerLogger("kube").logger


def load_credentials(kubeconfig: str | None):
    """Load the in-cluster config, falling back to the KUBECONFIG file."""
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
        return
    except config.ConfigException:
        pass

    if not kubeconfig:
        raise ConfigError("no kubeconfig found! Make sure $KUBECONFIG points to a valid kubeconfig file")
    try:
        config.load_kube_config(config_file=kubeconfig)
    except (config.ConfigException, OSError) as e:
        raise ConfigError(f"failed to load kubeconfig {kubeconfig}: {e}") from e
    logger.info(f"Loaded kubeconfig {kubeconfig}")


def build_clients(kubeconfig: str | None) -> tuple[client.CoreV1Api, client.AppsV1Api]:
    load_credentials(kubeconfig)
    return client.CoreV1Api(), client.AppsV1Api()
