from __future__ import annotations

from io import StringIO
from types import SimpleNamespace
from unittest.mock import Mock
import logging

import pytest
from kubernetes.client import ApiException

from nerdy_k8s_volume_inspector.k8s import KubernetesClients, KubernetesDiscoveryError, VolumeNotFoundError
from nerdy_k8s_volume_inspector.plugins import LVM_PLUGIN, ZFS_PLUGIN
from nerdy_k8s_volume_inspector.volume import (
    UnsupportedVolumeError,
    describe_volume,
    describe_volumes,
    list_volume_rows,
    list_volumes,
)


def _pv(
    *,
    name: str,
    driver: str | None = "zfs.csi.openebs.io",
    capacity: str = "4Gi",
    storage_class: str = "zfs-sc",
    access_modes: list[str] | None = None,
    claim_name: str = "data-claim",
) -> SimpleNamespace:
    return SimpleNamespace(
        metadata=SimpleNamespace(name=name),
        spec=SimpleNamespace(
            csi=SimpleNamespace(driver=driver) if driver else None,
            capacity={"storage": capacity},
            storage_class_name=storage_class,
            access_modes=access_modes or ["ReadWriteOnce"],
            claim_ref=SimpleNamespace(name=claim_name),
        ),
        status=SimpleNamespace(phase="Bound"),
    )


def _zfs_volume(*, name: str, namespace: str = "openebs") -> dict:
    return {
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": {"kubernetes.io/nodename": "node1"},
        },
        "spec": {
            "ownerNodeID": "node1",
            "poolName": "zfspv-pool",
            "fsType": "zfs",
            "compression": "off",
            "dedup": "off",
            "recordsize": "4k",
            "volumeType": "DATASET",
            "capacity": "4294967296",
        },
        "status": {"state": "Ready"},
    }


def _lvm_volume(*, name: str, namespace: str = "lvmlocalpv", shared: str | None = None) -> dict:
    spec = {"ownerNodeID": "node2", "volGroup": "lvmvg", "capacity": "4294967296"}
    if shared is not None:
        spec["shared"] = shared
    return {
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": {"kubernetes.io/nodename": "node2"},
        },
        "spec": spec,
        "status": {"state": "Ready"},
    }


def _clients(
    *,
    custom_items: list[dict] | None = None,
    version: str | None = "1.9.0",
    pvs: list[SimpleNamespace] | None = None,
) -> KubernetesClients:
    custom_api = Mock()
    custom_api.list_cluster_custom_object.return_value = {"items": custom_items or []}

    apps_api = Mock()
    statefulsets = []
    if version is not None:
        statefulsets.append(SimpleNamespace(metadata=SimpleNamespace(labels={"openebs.io/version": version})))
    apps_api.list_stateful_set_for_all_namespaces.return_value = SimpleNamespace(items=statefulsets)

    core_api = Mock()
    core_api.list_persistent_volume.return_value = SimpleNamespace(items=pvs or [])

    return KubernetesClients(
        api_client=Mock(),
        core_api=core_api,
        apps_api=apps_api,
        batch_api=Mock(),
        custom_api=custom_api,
    )


def test_list_volume_rows_with_one_matching_and_foreign_volumes_returns_single_row() -> None:
    clients = _clients(custom_items=[_zfs_volume(name="pvc-1")])
    pvs = [
        _pv(name="pvc-1"),
        _pv(name="pvc-lvm", driver="local.csi.openebs.io"),
        _pv(name="pvc-hostpath", driver=None),
    ]

    rows = list_volume_rows(clients, pvs, ZFS_PLUGIN, "")

    assert rows == [
        ["openebs", "pvc-1", "Ready", "1.9.0", "4.0GiB", "zfs-sc", "Bound", "ReadWriteOnce", "node1"],
    ]


def test_list_volume_rows_with_missing_custom_resource_skips_row_and_warns(
    caplog: pytest.LogCaptureFixture,
) -> None:
    clients = _clients(custom_items=[])

    with caplog.at_level(logging.WARNING):
        rows = list_volume_rows(clients, [_pv(name="pvc-1")], ZFS_PLUGIN, "")

    assert rows == []
    assert "couldn't find zfs-localpv volume pvc-1" in caplog.text


def test_list_volume_rows_with_other_namespace_filter_returns_no_rows() -> None:
    clients = _clients(custom_items=[_zfs_volume(name="pvc-1", namespace="openebs")])

    rows = list_volume_rows(clients, [_pv(name="pvc-1")], ZFS_PLUGIN, "zfs-elsewhere")

    assert rows == []


def test_list_volume_rows_with_empty_namespace_filter_keeps_input_order() -> None:
    clients = _clients(
        custom_items=[
            _zfs_volume(name="pvc-b", namespace="team-b"),
            _zfs_volume(name="pvc-a", namespace="team-a"),
        ]
    )

    rows = list_volume_rows(clients, [_pv(name="pvc-a"), _pv(name="pvc-b")], ZFS_PLUGIN, "")

    assert [row[1] for row in rows] == ["pvc-a", "pvc-b"]
    assert [row[0] for row in rows] == ["team-a", "team-b"]


def test_list_volume_rows_with_matching_namespace_filter_keeps_row() -> None:
    clients = _clients(custom_items=[_lvm_volume(name="pvc-1")])

    rows = list_volume_rows(clients, [_pv(name="pvc-1", driver="local.csi.openebs.io")], LVM_PLUGIN, "lvmlocalpv")

    assert rows == [
        ["lvmlocalpv", "pvc-1", "Ready", "1.9.0", "4.0GiB", "zfs-sc", "Bound", "ReadWriteOnce", "node2"],
    ]


def test_list_volume_rows_without_controller_reports_version_not_available() -> None:
    clients = _clients(custom_items=[_zfs_volume(name="pvc-1")], version=None)

    rows = list_volume_rows(clients, [_pv(name="pvc-1")], ZFS_PLUGIN, "")

    assert rows[0][3] == "N/A"


def test_list_volume_rows_with_custom_resource_list_failure_raises_discovery_error() -> None:
    clients = _clients()
    clients.custom_api.list_cluster_custom_object.side_effect = ApiException(status=500, reason="boom")

    with pytest.raises(KubernetesDiscoveryError, match="list ZFSVolumes"):
        list_volume_rows(clients, [_pv(name="pvc-1")], ZFS_PLUGIN, "")


def test_list_volumes_combines_rows_from_each_plugin() -> None:
    pvs = [_pv(name="pvc-zfs"), _pv(name="pvc-lvm", driver="local.csi.openebs.io", capacity="20Gi")]
    clients = _clients(
        custom_items=[_zfs_volume(name="pvc-zfs"), _lvm_volume(name="pvc-lvm")],
        pvs=pvs,
    )

    rows = list_volumes(clients, [ZFS_PLUGIN, LVM_PLUGIN])

    assert [row[1] for row in rows] == ["pvc-zfs", "pvc-lvm"]
    assert rows[1][4] == "20GiB"
    clients.core_api.list_persistent_volume.assert_called_once()


def test_describe_volume_with_zfs_volume_renders_all_fields() -> None:
    clients = _clients(custom_items=[_zfs_volume(name="pvc-1")])
    out = StringIO()

    describe_volume(clients, _pv(name="pvc-1", access_modes=["ReadWriteOnce", "ReadOnlyMany"]), ZFS_PLUGIN, out)

    text = out.getvalue()
    assert "pvc-1 Details :" in text
    assert "AccessMode    : ReadWriteOnce ReadOnlyMany\n" in text
    assert "CSIDriver     : zfs.csi.openebs.io\n" in text
    assert "Capacity      : 4Gi\n" in text
    assert "PVC           : data-claim\n" in text
    assert "Version       : 1.9.0\n" in text
    assert "VolumeType    : DATASET\n" in text
    assert "PoolName      : zfspv-pool\n" in text
    assert "Deduplication : off\n" in text
    assert "NodeID        : node1\n" in text
    assert "Recordsize    : 4k\n" in text


def test_describe_volume_with_lvm_volume_defaults_optional_flags() -> None:
    clients = _clients(custom_items=[_lvm_volume(name="pvc-1")], version=None)
    out = StringIO()

    describe_volume(clients, _pv(name="pvc-1", driver="local.csi.openebs.io"), LVM_PLUGIN, out)

    text = out.getvalue()
    assert "Version         : N/A\n" in text
    assert "VolumeGroup     : lvmvg\n" in text
    assert "Shared          : no\n" in text
    assert "ThinProvisioned : no\n" in text


def test_describe_volume_with_missing_volume_raises_not_found() -> None:
    with pytest.raises(VolumeNotFoundError):
        describe_volume(_clients(), None, LVM_PLUGIN, StringIO())


def test_describe_volume_with_missing_custom_resource_raises_not_found() -> None:
    clients = _clients(custom_items=[])

    with pytest.raises(VolumeNotFoundError, match="ZFSVolume 'pvc-1' not found"):
        describe_volume(clients, _pv(name="pvc-1"), ZFS_PLUGIN, StringIO())


def test_describe_volume_with_foreign_driver_raises_unsupported() -> None:
    clients = _clients(custom_items=[_lvm_volume(name="pvc-1")])

    with pytest.raises(UnsupportedVolumeError):
        describe_volume(clients, _pv(name="pvc-1", driver="cstor.csi.openebs.io"), LVM_PLUGIN, StringIO())


def test_describe_volumes_resolves_plugin_from_driver() -> None:
    clients = _clients(custom_items=[_lvm_volume(name="pvc-1", shared="yes")])
    clients.core_api.read_persistent_volume.return_value = _pv(name="pvc-1", driver="local.csi.openebs.io")
    out = StringIO()

    describe_volumes(clients, ["pvc-1"], out)

    assert "Shared          : yes\n" in out.getvalue()
    clients.custom_api.list_cluster_custom_object.assert_called_once_with(
        group="local.openebs.io",
        version="v1alpha1",
        plural="lvmvolumes",
        field_selector="metadata.name=pvc-1",
        _request_timeout=20,
    )


def test_describe_volumes_with_unsupported_driver_raises_unsupported() -> None:
    clients = _clients()
    clients.core_api.read_persistent_volume.return_value = _pv(name="pvc-1", driver="cstor.csi.openebs.io")

    with pytest.raises(UnsupportedVolumeError, match="cstor.csi.openebs.io"):
        describe_volumes(clients, ["pvc-1"], StringIO())


def test_list_volume_rows_with_orphan_custom_resource_warns(caplog: pytest.LogCaptureFixture) -> None:
    clients = _clients(custom_items=[_zfs_volume(name="orphan-zv"), _zfs_volume(name="pvc-1")])

    with caplog.at_level(logging.WARNING):
        rows = list_volume_rows(clients, [_pv(name="pvc-1")], ZFS_PLUGIN, "")

    assert [row[1] for row in rows] == ["pvc-1"]
    assert "couldn't find PersistentVolume for ZFSVolume orphan-zv" in caplog.text
    assert "ZFSVolume pvc-1" not in caplog.text


def test_list_volume_rows_with_orphan_outside_namespace_filter_stays_quiet(caplog: pytest.LogCaptureFixture) -> None:
    clients = _clients(custom_items=[_zfs_volume(name="orphan-zv", namespace="team-b")])

    with caplog.at_level(logging.WARNING):
        rows = list_volume_rows(clients, [], ZFS_PLUGIN, "team-a")

    assert rows == []
    assert "orphan-zv" not in caplog.text
