from __future__ import annotations

from typing import Any, Iterable, TextIO
import logging

from kubernetes import client

from .k8s import (
    KubernetesClients,
    VolumeNotFoundError,
    get_controller_version,
    list_persistent_volumes,
    list_plugin_volumes,
    read_persistent_volume,
    read_plugin_volume,
)
from .plugins import PLUGINS, VolumePlugin, plugin_for_volume
from .printers import humanize_capacity, render_template

logger = logging.getLogger(__name__)

VOLUME_COLUMNS = (
    ("namespace", "Namespace"),
    ("name", "Name"),
    ("status", "Status"),
    ("version", "Version"),
    ("capacity", "Capacity"),
    ("storage_class", "Storage Class"),
    ("attached", "Attached"),
    ("access_mode", "Access Mode"),
    ("attached_node", "Attached Node"),
)

VolumeRow = list[Any]


class UnsupportedVolumeError(ValueError):
    """Raised when a volume was provisioned by a driver without a known plugin."""


def list_volume_rows(
    clients: KubernetesClients,
    pvs: Iterable[client.V1PersistentVolume],
    plugin: VolumePlugin,
    namespace: str = "",
) -> list[VolumeRow]:
    """Join PersistentVolumes owned by ``plugin`` with its volume custom resources.

    Rows keep the order of ``pvs``. A PersistentVolume whose custom resource is
    missing is reported and skipped. A non-empty ``namespace`` keeps only volumes
    whose custom resource lives in that namespace.
    """
    plugin_volumes = list_plugin_volumes(clients, plugin)
    version = get_controller_version(clients, plugin)

    rows: list[VolumeRow] = []
    owned_names: set[str] = set()
    for pv in pvs:
        if not plugin.owns(pv):
            continue
        name = pv.metadata.name
        owned_names.add(name)
        volume = plugin_volumes.get(name)
        if volume is None:
            logger.warning("couldn't find %s volume %s", plugin.cas_type, name)
            continue
        if namespace and namespace != volume.namespace:
            continue

        capacity = (pv.spec.capacity or {}).get("storage")
        access_modes = pv.spec.access_modes or []
        rows.append(
            [
                volume.namespace,
                name,
                volume.state,
                version,
                humanize_capacity(capacity),
                pv.spec.storage_class_name or "",
                pv.status.phase if pv.status else "",
                access_modes[0] if access_modes else "",
                volume.node_name,
            ]
        )

    for name, volume in plugin_volumes.items():
        if name in owned_names or (namespace and namespace != volume.namespace):
            continue
        logger.warning("couldn't find PersistentVolume for %s %s", plugin.kind, name)
    return rows


def list_volumes(
    clients: KubernetesClients,
    plugins: Iterable[VolumePlugin] | None = None,
    namespace: str = "",
) -> list[VolumeRow]:
    pvs = list_persistent_volumes(clients)
    rows: list[VolumeRow] = []
    for plugin in plugins or PLUGINS.values():
        rows.extend(list_volume_rows(clients, pvs, plugin, namespace))
    return rows


def describe_volume(
    clients: KubernetesClients,
    pv: client.V1PersistentVolume | None,
    plugin: VolumePlugin,
    out: TextIO,
) -> None:
    if pv is None:
        raise VolumeNotFoundError(f"{plugin.cas_type} volume not provided")
    if not plugin.owns(pv):
        raise UnsupportedVolumeError(
            f"PersistentVolume '{pv.metadata.name}' is not provisioned by {plugin.csi_driver}"
        )

    name = pv.metadata.name
    volume = read_plugin_volume(clients, plugin, name)
    if volume is None:
        raise VolumeNotFoundError(f"{plugin.kind} '{name}' not found")

    version = get_controller_version(clients, plugin)
    description = plugin.describe(pv, volume, version)
    out.write(render_template(plugin.describe_template, description))


def describe_volumes(clients: KubernetesClients, names: Iterable[str], out: TextIO) -> None:
    for name in names:
        pv = read_persistent_volume(clients, name)
        plugin = plugin_for_volume(pv)
        if plugin is None:
            driver = pv.spec.csi.driver if pv.spec and pv.spec.csi else "none"
            raise UnsupportedVolumeError(
                f"PersistentVolume '{name}' uses unsupported CSI driver '{driver}'. "
                f"Supported drivers: {', '.join(p.csi_driver for p in PLUGINS.values())}"
            )
        describe_volume(clients, pv, plugin, out)
