from __future__ import annotations

from typing import TextIO
import logging

from kubernetes import client

from .k8s import (
    KubernetesClients,
    KubernetesDiscoveryError,
    list_job_pods,
    list_upgrade_jobs,
    read_pod_log,
    stream_pod_log,
)

logger = logging.getLogger(__name__)

SEPARATOR = "***************************************"


def get_job_status(clients: KubernetesClients, namespace: str, out: TextIO, *, wait: bool = False) -> None:
    """Print logs of every upgrade job pod, or follow the first pod when ``wait`` is set."""
    jobs = list_upgrade_jobs(clients, namespace)
    if not jobs:
        out.write(f"No upgrade-jobs Found in {namespace} namespace\n")
        return

    if wait:
        _follow_first_pod(clients, jobs[0], namespace, out)
        return

    for job in jobs:
        out.write(f"{SEPARATOR}\n")
        out.write(f"Job Name: {job.metadata.name}\n")
        _write_pod_logs(clients, job.metadata.name, namespace, out)
        out.write("\n")
    out.write(f"{SEPARATOR}\n")


def _write_pod_logs(clients: KubernetesClients, job_name: str, namespace: str, out: TextIO) -> None:
    try:
        pods = list_job_pods(clients, job_name, namespace)
    except KubernetesDiscoveryError as error:
        logger.error("error getting pods of job %s: %s", job_name, error)
        return

    if not pods:
        out.write("No pods are running for this job\n")
        return

    for pod in pods:
        out.write(f"From Pod: {pod.metadata.name}\n")
        try:
            logs = read_pod_log(clients, pod.metadata.name, namespace)
        except KubernetesDiscoveryError as error:
            logger.error("error getting logs of pod %s: %s", pod.metadata.name, error)
            logs = ""
        if not logs:
            out.write("-> No recent logs from the pod\n")
            continue
        out.write(logs if logs.endswith("\n") else f"{logs}\n")


def _follow_first_pod(clients: KubernetesClients, job: client.V1Job, namespace: str, out: TextIO) -> None:
    job_name = job.metadata.name
    pods = list_job_pods(clients, job_name, namespace)
    if not pods:
        out.write(f"No pods are running for the job: {job_name}\n")
        return

    for line in stream_pod_log(clients, pods[0].metadata.name, namespace):
        out.write(f"{line}\n")
        out.flush()
