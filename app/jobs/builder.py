"""Compile a submitted job config into a framework description."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import yaml

from app.core.config import LauncherConfig
from app.jobs.framework import (
    Capabilities,
    CompletionPolicy,
    Container,
    EnvVar,
    Framework,
    FrameworkSpec,
    HostPathVolumeSource,
    LocalObjectReference,
    ObjectMeta,
    PodSpec,
    PodTemplate,
    ResourceRequirements,
    RetryPolicy,
    SecretVolumeSource,
    SecurityContext,
    TaskRoleSpec,
    TaskSpec,
    Volume,
    VolumeMount,
)
from app.jobs.models import JobConfig, TaskRoleConfig
from app.jobs.naming import convert_name, encode_name, split_framework_name
from app.jobs.runtime_env import generate_framework_env, task_env

# Job retry count meaning "do not classify failures, plain retry only"
DISABLE_FANCY_RETRY = -2

GPU_RESOURCE = "nvidia.com/gpu"
HIVED_SCHEDULING_ENABLE = "hivedscheduler.microsoft.com/pod-scheduling-enable"
HIVED_SCHEDULING_SPEC = "hivedscheduler.microsoft.com/pod-scheduling-spec"
HIVED_GPU_ISOLATION = "hivedscheduler.microsoft.com/pod-gpu-isolation"

RUNTIME_VOLUME = "pai-vol"
LOG_VOLUME = "host-log"
SSH_SECRET_VOLUME = "job-ssh-secret-volume"
RUNTIME_PATH = "/usr/local/pai"


@dataclass(frozen=True)
class PlainGpu:
    """GPUs requested through the generic device plugin resource."""

    gpu: int


@dataclass(frozen=True)
class HivedScheduling:
    """GPUs placed by the hived scheduler from the task role's pod spec."""

    scheduler: str
    pod_spec: Optional[Dict[str, Any]]


GpuScheduling = Union[PlainGpu, HivedScheduling]


class FrameworkBuilder:
    """Builds a fresh Framework for every submission."""

    def __init__(self, launcher: LauncherConfig, rng: Optional[random.Random] = None):
        self.launcher = launcher
        self.rng = rng

    def gpu_scheduling(self, task_role: TaskRoleConfig) -> GpuScheduling:
        if self.launcher.hived_enabled:
            return HivedScheduling(scheduler=self.launcher.scheduler, pod_spec=task_role.hived_pod_spec)
        return PlainGpu(gpu=task_role.resource_per_instance.gpu)

    @staticmethod
    def completion_policy(task_role: TaskRoleConfig) -> CompletionPolicy:
        # fail fast: one failed task fails the role, success is never reached by count
        if task_role.completion is None:
            return CompletionPolicy(min_failed_task_count=1, min_succeeded_task_count=-1)
        return CompletionPolicy(
            min_failed_task_count=task_role.completion.min_failed_instances,
            min_succeeded_task_count=task_role.completion.min_succeeded_instances,
        )

    @staticmethod
    def job_retry_policy(config: JobConfig) -> RetryPolicy:
        return RetryPolicy(
            fancy_retry_policy=config.job_retry_count != DISABLE_FANCY_RETRY,
            max_retry_count=config.job_retry_count or 0,
        )

    def build_task_role(
        self,
        name: str,
        config: JobConfig,
        labels: Dict[str, str],
        env: list,
    ) -> TaskRoleSpec:
        task_role = config.task_roles[name]
        resource = task_role.resource_per_instance
        scheduling = self.gpu_scheduling(task_role)

        limits: Dict[str, Union[int, float, str]] = {
            "cpu": resource.cpu,
            "memory": f"{resource.memory_mb}Mi",
        }
        annotations = {"container.apparmor.security.beta.kubernetes.io/main": "unconfined"}
        main_env = []
        scheduler_name = None
        if isinstance(scheduling, HivedScheduling):
            scheduler_name = scheduling.scheduler
            limits[HIVED_SCHEDULING_ENABLE] = 1
            annotations[HIVED_SCHEDULING_SPEC] = yaml.safe_dump(scheduling.pod_spec)
            main_env.append(EnvVar.from_annotation("NVIDIA_VISIBLE_DEVICES", HIVED_GPU_ISOLATION))
        else:
            limits[GPU_RESOURCE] = scheduling.gpu
        main_env.extend(env)
        main_env.extend(task_env(self.rng))

        runtime_mounts = [
            VolumeMount(name=RUNTIME_VOLUME, mount_path=RUNTIME_PATH),
            VolumeMount(name=LOG_VOLUME, mount_path=f"{RUNTIME_PATH}/logs"),
        ]
        init_container = Container(
            name="init",
            image=self.launcher.runtime_image,
            image_pull_policy="Always",
            env=[
                EnvVar(name="USER_CMD", value=task_role.entrypoint),
                EnvVar(name="KUBE_APISERVER_ADDRESS", value=self.launcher.api_server_uri),
            ],
            volume_mounts=list(runtime_mounts),
        )
        main_container = Container(
            name="main",
            image=config.docker_image_uri(task_role.docker_image),
            command=[f"{RUNTIME_PATH}/run"],
            resources=ResourceRequirements(limits=limits),
            env=main_env,
            security_context=SecurityContext(
                capabilities=Capabilities(
                    add=["SYS_ADMIN", "IPC_LOCK", "DAC_READ_SEARCH"],
                    drop=["MKNOD"],
                ),
            ),
            volume_mounts=runtime_mounts + [
                VolumeMount(
                    name=SSH_SECRET_VOLUME,
                    mount_path=f"{RUNTIME_PATH}/ssh-secret",
                    read_only=True,
                ),
            ],
        )
        volumes = [
            Volume(name=RUNTIME_VOLUME, empty_dir={}),
            Volume(
                name=LOG_VOLUME,
                host_path=HostPathVolumeSource(
                    path=f"/var/log/pai/{labels['userName']}/{labels['jobName']}/{name}",
                ),
            ),
            Volume(name=SSH_SECRET_VOLUME, secret=SecretVolumeSource(secret_name="job-ssh-secret")),
        ]

        return TaskRoleSpec(
            name=convert_name(name),
            task_number=task_role.instances or 1,
            task=TaskSpec(
                # task restarts are left to the framework-level attempt retry
                retry_policy=RetryPolicy(fancy_retry_policy=True, max_retry_count=0),
                pod=PodTemplate(
                    metadata=ObjectMeta(
                        labels={**labels, "type": "kube-launcher-task"},
                        annotations=annotations,
                    ),
                    spec=PodSpec(
                        scheduler_name=scheduler_name,
                        init_containers=[init_container],
                        containers=[main_container],
                        volumes=volumes,
                        image_pull_secrets=[
                            LocalObjectReference(name=self.launcher.runtime_image_pull_secrets),
                        ],
                    ),
                ),
            ),
            framework_attempt_completion_policy=self.completion_policy(task_role),
        )

    def build(
        self,
        framework_name: str,
        virtual_cluster: str,
        config: JobConfig,
        raw_config: str,
    ) -> Framework:
        """Build the framework for ``user~job``; ``raw_config`` is stored verbatim."""
        username, job_name = split_framework_name(framework_name)
        labels = {
            "jobName": job_name,
            "userName": username,
            "virtualCluster": virtual_cluster,
        }
        env = [
            EnvVar(name=key, value=value)
            for key, value in generate_framework_env(framework_name, config).items()
        ]
        task_roles = [
            self.build_task_role(name, config, labels, env)
            for name in config.task_roles
        ]
        return Framework(
            api_version=self.launcher.api_version,
            metadata=ObjectMeta(
                name=encode_name(framework_name),
                labels=labels,
                annotations={"config": raw_config},
            ),
            spec=FrameworkSpec(
                execution_type="Start",
                retry_policy=self.job_retry_policy(config),
                task_roles=task_roles,
            ),
        )
