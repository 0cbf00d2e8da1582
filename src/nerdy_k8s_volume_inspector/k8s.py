from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, TypeVar
import logging

from kubernetes import client, config
from kubernetes.client import ApiException

from .models import PluginVolume
from .plugins import VolumePlugin

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT_SECONDS = 20
VERSION_NOT_AVAILABLE = "N/A"
VERSION_LABEL = "openebs.io/version"
COMPONENT_NAME_LABEL = "openebs.io/component-name"
NODE_NAME_LABEL = "kubernetes.io/nodename"
UPGRADE_JOB_SELECTOR = "cas-type=jiva,name=jiva-upgrade"
T = TypeVar("T")


@dataclass(frozen=True)
class KubernetesClients:
    api_client: client.ApiClient
    core_api: client.CoreV1Api
    apps_api: client.AppsV1Api
    batch_api: client.BatchV1Api
    custom_api: client.CustomObjectsApi
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS


class KubernetesDiscoveryError(RuntimeError):
    """Raised when a read against the cluster API fails."""


class KubernetesAuthenticationError(RuntimeError):
    """Raised when Kubernetes authentication configuration fails."""


class VolumeNotFoundError(LookupError):
    """Raised when a named volume or its plugin custom resource does not exist."""


def load_kubernetes_clients(
    *,
    kubeconfig_path: str | None,
    context: str | None,
    in_cluster: bool,
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS,
) -> KubernetesClients:
    if request_timeout_seconds <= 0:
        raise ValueError("request_timeout_seconds must be positive")

    expanded = _expand_kubeconfig_path(kubeconfig_path)
    try:
        if in_cluster:
            config.load_incluster_config()
        else:
            config.load_kube_config(config_file=expanded, context=context)
    except Exception as error:  # pylint: disable=broad-except
        raise KubernetesAuthenticationError(
            _format_authentication_error(
                in_cluster=in_cluster,
                kubeconfig_path=expanded,
                context=context,
                error=error,
            )
        ) from error

    api_client = client.ApiClient()
    return KubernetesClients(
        api_client=api_client,
        core_api=client.CoreV1Api(api_client),
        apps_api=client.AppsV1Api(api_client),
        batch_api=client.BatchV1Api(api_client),
        custom_api=client.CustomObjectsApi(api_client),
        request_timeout_seconds=request_timeout_seconds,
    )


def list_persistent_volumes(clients: KubernetesClients) -> list[client.V1PersistentVolume]:
    return _safe_kubernetes_discovery_call(
        operation="list PersistentVolumes",
        hint="Verify API reachability and RBAC verbs for persistentvolumes.",
        func=lambda: clients.core_api.list_persistent_volume(
            _request_timeout=clients.request_timeout_seconds,
        ).items,
    )


def read_persistent_volume(clients: KubernetesClients, name: str) -> client.V1PersistentVolume:
    try:
        return clients.core_api.read_persistent_volume(
            name=name,
            _request_timeout=clients.request_timeout_seconds,
        )
    except ApiException as error:
        if error.status == 404:
            raise VolumeNotFoundError(f"PersistentVolume '{name}' not found") from error
        raise KubernetesDiscoveryError(
            _format_api_exception_message(
                operation=f"read PersistentVolume '{name}'",
                hint="Verify RBAC allows get on persistentvolumes.",
                error=error,
            )
        ) from error


def list_plugin_volumes(clients: KubernetesClients, plugin: VolumePlugin) -> dict[str, PluginVolume]:
    """Return every volume custom resource of ``plugin`` keyed by name, across all namespaces."""
    response = _safe_kubernetes_discovery_call(
        operation=f"list {plugin.kind}s",
        hint=f"Confirm the {plugin.group} CRDs are installed and RBAC allows list on {plugin.plural}.",
        func=lambda: clients.custom_api.list_cluster_custom_object(
            group=plugin.group,
            version=plugin.version,
            plural=plugin.plural,
            _request_timeout=clients.request_timeout_seconds,
        ),
    )
    volumes: dict[str, PluginVolume] = {}
    for item in response.get("items", []):
        volume = _plugin_volume_from_object(item)
        volumes[volume.name] = volume
    return volumes


def read_plugin_volume(clients: KubernetesClients, plugin: VolumePlugin, name: str) -> PluginVolume | None:
    response = _safe_kubernetes_discovery_call(
        operation=f"get {plugin.kind} '{name}'",
        hint=f"Confirm the {plugin.group} CRDs are installed and RBAC allows list on {plugin.plural}.",
        func=lambda: clients.custom_api.list_cluster_custom_object(
            group=plugin.group,
            version=plugin.version,
            plural=plugin.plural,
            field_selector=f"metadata.name={name}",
            _request_timeout=clients.request_timeout_seconds,
        ),
    )
    for item in response.get("items", []):
        volume = _plugin_volume_from_object(item)
        if volume.name == name:
            return volume
    return None


def get_controller_version(clients: KubernetesClients, plugin: VolumePlugin) -> str:
    """Return the CSI controller version label, or ``N/A`` when it cannot be determined."""
    try:
        statefulsets = clients.apps_api.list_stateful_set_for_all_namespaces(
            label_selector=f"{COMPONENT_NAME_LABEL}={plugin.controller_name}",
            _request_timeout=clients.request_timeout_seconds,
        ).items
    except Exception as error:  # pylint: disable=broad-except
        logger.debug("Unable to look up %s controller: %s", plugin.controller_name, error)
        return VERSION_NOT_AVAILABLE

    if not statefulsets:
        return VERSION_NOT_AVAILABLE
    labels = (statefulsets[0].metadata.labels if statefulsets[0].metadata else None) or {}
    return labels.get(VERSION_LABEL) or VERSION_NOT_AVAILABLE


def list_upgrade_jobs(clients: KubernetesClients, namespace: str) -> list[client.V1Job]:
    return _safe_kubernetes_discovery_call(
        operation=f"list upgrade jobs in namespace '{namespace}'",
        hint="Check the OpenEBS namespace and RBAC verbs for jobs.",
        func=lambda: clients.batch_api.list_namespaced_job(
            namespace=namespace,
            label_selector=UPGRADE_JOB_SELECTOR,
            _request_timeout=clients.request_timeout_seconds,
        ).items,
    )


def list_job_pods(clients: KubernetesClients, job_name: str, namespace: str) -> list[client.V1Pod]:
    return _safe_kubernetes_discovery_call(
        operation=f"list pods of job '{namespace}/{job_name}'",
        hint="Check RBAC verbs for pods and confirm the job still exists.",
        func=lambda: clients.core_api.list_namespaced_pod(
            namespace=namespace,
            label_selector=f"job-name={job_name}",
            _request_timeout=clients.request_timeout_seconds,
        ).items,
    )


def read_pod_log(clients: KubernetesClients, pod_name: str, namespace: str) -> str:
    return _safe_kubernetes_discovery_call(
        operation=f"read logs of pod '{namespace}/{pod_name}'",
        hint="Verify RBAC allows get on pods/log.",
        func=lambda: clients.core_api.read_namespaced_pod_log(
            name=pod_name,
            namespace=namespace,
            _request_timeout=clients.request_timeout_seconds,
        ),
    )


def stream_pod_log(clients: KubernetesClients, pod_name: str, namespace: str) -> Iterator[str]:
    """Yield log lines from ``pod_name`` until the server closes the stream."""
    response = _safe_kubernetes_discovery_call(
        operation=f"open log stream of pod '{namespace}/{pod_name}'",
        hint="Verify RBAC allows get on pods/log and the pod has started.",
        func=lambda: clients.core_api.read_namespaced_pod_log(
            name=pod_name,
            namespace=namespace,
            follow=True,
            _preload_content=False,
        ),
    )
    try:
        for line in response:
            text = line.decode("utf-8", errors="replace") if isinstance(line, bytes) else line
            yield text.rstrip("\n")
    finally:
        response.release_conn()


def _plugin_volume_from_object(item: dict[str, Any]) -> PluginVolume:
    metadata = item.get("metadata") or {}
    spec = item.get("spec") or {}
    status = item.get("status") or {}
    labels = metadata.get("labels") or {}
    return PluginVolume(
        name=metadata.get("name", ""),
        namespace=metadata.get("namespace", ""),
        state=status.get("state", ""),
        node_name=labels.get(NODE_NAME_LABEL, ""),
        owner_node_id=spec.get("ownerNodeID", ""),
        capacity=str(spec.get("capacity", "")),
        attributes=dict(spec),
    )


def _safe_kubernetes_discovery_call(*, operation: str, hint: str, func: Callable[[], T]) -> T:
    try:
        return func()
    except ApiException as error:
        raise KubernetesDiscoveryError(
            _format_api_exception_message(
                operation=operation,
                hint=hint,
                error=error,
            )
        ) from error
    except Exception as error:
        raise KubernetesDiscoveryError(
            f"Failed to {operation}: {error}. {hint}"
        ) from error


def _format_api_exception_message(*, operation: str, hint: str, error: ApiException) -> str:
    status = error.status if error.status is not None else "unknown"
    reason = error.reason or "no reason provided"
    return f"Failed to {operation}: API status {status} ({reason}). {hint}"


def _expand_kubeconfig_path(kubeconfig_path: str | None) -> str | None:
    if kubeconfig_path is None:
        return None
    stripped = kubeconfig_path.strip()
    if not stripped:
        return None
    return str(Path(stripped).expanduser())


def _format_authentication_error(
    *,
    in_cluster: bool,
    kubeconfig_path: str | None,
    context: str | None,
    error: Exception,
) -> str:
    reason = str(error).strip() or error.__class__.__name__
    if in_cluster:
        return (
            "Kubernetes authentication setup failed while loading in-cluster service account credentials: "
            f"{reason}. Ensure the pod has a mounted service account token and Kubernetes service host "
            "environment variables."
        )

    kubeconfig_source = kubeconfig_path or "default kubeconfig search path"
    context_message = f" with context '{context}'" if context else ""
    return (
        "Kubernetes authentication setup failed while loading kubeconfig "
        f"from '{kubeconfig_source}'{context_message}: {reason}. "
        "Verify the kubeconfig path and context are valid."
    )
