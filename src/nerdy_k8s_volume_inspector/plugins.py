from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from kubernetes import client

from .models import LVMVolumeDescription, PluginVolume, ZFSVolumeDescription
from .printers import access_modes_to_string

ZFS_CAS_TYPE = "zfs-localpv"
LVM_CAS_TYPE = "lvm-localpv"
ZFS_CSI_DRIVER = "zfs.csi.openebs.io"
LVM_CSI_DRIVER = "local.csi.openebs.io"

ZFS_VOLUME_TEMPLATE = """
{name} Details :
-----------------
Name          : {name}
Namespace     : {namespace}
AccessMode    : {access_mode}
CSIDriver     : {csi_driver}
Capacity      : {capacity}
PVC           : {pvc}
VolumePhase   : {volume_phase}
StorageClass  : {storage_class}
Version       : {version}
Status        : {status}
VolumeType    : {volume_type}
PoolName      : {pool_name}
FileSystem    : {file_system}
Compression   : {compression}
Deduplication : {dedup}
NodeID        : {node_id}
Recordsize    : {recordsize}
"""

LVM_VOLUME_TEMPLATE = """
{name} Details :
------------------
Name            : {name}
Namespace       : {namespace}
AccessMode      : {access_mode}
CSIDriver       : {csi_driver}
Capacity        : {capacity}
PVC             : {pvc}
VolumePhase     : {volume_phase}
StorageClass    : {storage_class}
Version         : {version}
Status          : {status}
VolumeGroup     : {volume_group}
Shared          : {shared}
ThinProvisioned : {thin_provisioned}
NodeID          : {node_id}
"""

VolumeDescriber = Callable[[client.V1PersistentVolume, PluginVolume, str], Any]


@dataclass(frozen=True)
class VolumePlugin:
    """Static description of a CSI volume plugin and its volume custom resource."""

    cas_type: str
    kind: str
    csi_driver: str
    group: str
    version: str
    plural: str
    controller_name: str
    describe_template: str
    describe: VolumeDescriber

    def owns(self, pv: client.V1PersistentVolume) -> bool:
        csi = pv.spec.csi if pv.spec else None
        return csi is not None and csi.driver == self.csi_driver


def _pv_claim_name(pv: client.V1PersistentVolume) -> str:
    claim_ref = pv.spec.claim_ref if pv.spec else None
    return (claim_ref.name if claim_ref else None) or ""


def _pv_capacity(pv: client.V1PersistentVolume) -> str:
    capacity = pv.spec.capacity if pv.spec else None
    return (capacity or {}).get("storage", "")


def _pv_phase(pv: client.V1PersistentVolume) -> str:
    return (pv.status.phase if pv.status else None) or ""


def _describe_zfs_volume(
    pv: client.V1PersistentVolume,
    volume: PluginVolume,
    version: str,
) -> ZFSVolumeDescription:
    return ZFSVolumeDescription(
        name=pv.metadata.name,
        namespace=volume.namespace,
        access_mode=access_modes_to_string(pv.spec.access_modes),
        csi_driver=pv.spec.csi.driver,
        capacity=_pv_capacity(pv),
        pvc=_pv_claim_name(pv),
        volume_phase=_pv_phase(pv),
        storage_class=pv.spec.storage_class_name or "",
        version=version,
        status=volume.state,
        volume_type=volume.attribute("volumeType"),
        pool_name=volume.attribute("poolName"),
        file_system=volume.attribute("fsType"),
        compression=volume.attribute("compression"),
        dedup=volume.attribute("dedup"),
        node_id=volume.owner_node_id,
        recordsize=volume.attribute("recordsize"),
    )


def _describe_lvm_volume(
    pv: client.V1PersistentVolume,
    volume: PluginVolume,
    version: str,
) -> LVMVolumeDescription:
    return LVMVolumeDescription(
        name=pv.metadata.name,
        namespace=volume.namespace,
        access_mode=access_modes_to_string(pv.spec.access_modes),
        csi_driver=pv.spec.csi.driver,
        capacity=_pv_capacity(pv),
        pvc=_pv_claim_name(pv),
        volume_phase=_pv_phase(pv),
        storage_class=pv.spec.storage_class_name or "",
        version=version,
        status=volume.state,
        volume_group=volume.attribute("volGroup"),
        shared=volume.attribute("shared", "no"),
        thin_provisioned=volume.attribute("thinProvision", "no"),
        node_id=volume.owner_node_id,
    )


ZFS_PLUGIN = VolumePlugin(
    cas_type=ZFS_CAS_TYPE,
    kind="ZFSVolume",
    csi_driver=ZFS_CSI_DRIVER,
    group="zfs.openebs.io",
    version="v1",
    plural="zfsvolumes",
    controller_name="openebs-zfs-controller",
    describe_template=ZFS_VOLUME_TEMPLATE,
    describe=_describe_zfs_volume,
)

LVM_PLUGIN = VolumePlugin(
    cas_type=LVM_CAS_TYPE,
    kind="LVMVolume",
    csi_driver=LVM_CSI_DRIVER,
    group="local.openebs.io",
    version="v1alpha1",
    plural="lvmvolumes",
    controller_name="openebs-lvm-controller",
    describe_template=LVM_VOLUME_TEMPLATE,
    describe=_describe_lvm_volume,
)

PLUGINS: dict[str, VolumePlugin] = {
    ZFS_PLUGIN.cas_type: ZFS_PLUGIN,
    LVM_PLUGIN.cas_type: LVM_PLUGIN,
}


def plugin_for_cas_type(cas_type: str) -> VolumePlugin | None:
    return PLUGINS.get(cas_type)


def plugin_for_volume(pv: client.V1PersistentVolume) -> VolumePlugin | None:
    for plugin in PLUGINS.values():
        if plugin.owns(pv):
            return plugin
    return None
