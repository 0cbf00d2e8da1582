from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class PluginVolume:
    name: str
    namespace: str
    state: str
    node_name: str
    owner_node_id: str
    capacity: str
    attributes: dict[str, Any] = field(default_factory=dict)

    def attribute(self, key: str, default: str = "") -> str:
        value = self.attributes.get(key)
        if value is None or value == "":
            return default
        return str(value)


@dataclass(frozen=True)
class ZFSVolumeDescription:
    name: str
    namespace: str
    access_mode: str
    csi_driver: str
    capacity: str
    pvc: str
    volume_phase: str
    storage_class: str
    version: str
    status: str
    volume_type: str
    pool_name: str
    file_system: str
    compression: str
    dedup: str
    node_id: str
    recordsize: str


@dataclass(frozen=True)
class LVMVolumeDescription:
    name: str
    namespace: str
    access_mode: str
    csi_driver: str
    capacity: str
    pvc: str
    volume_phase: str
    storage_class: str
    version: str
    status: str
    volume_group: str
    shared: str
    thin_provisioned: str
    node_id: str
