"""Job config and job view models."""

from __future__ import annotations

import math
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from app.core.exceptions import BadRequestException
from app.jobs.states import JobState


# ==================== Job config (as submitted) ====================


class ConfigModel(BaseModel):
    """Submitted job config keys are camelCase; unknown keys are kept."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class Prerequisite(ConfigModel):
    type: str
    name: str
    uri: Optional[str] = None


class ResourcePerInstance(ConfigModel):
    cpu: Union[int, float] = 1
    memory_mb: int = Field(default=2048, alias="memoryMB")
    gpu: int = 0


class CompletionConfig(ConfigModel):
    min_failed_instances: int = 1
    min_succeeded_instances: int = -1


class TaskRoleConfig(ConfigModel):
    instances: Optional[int] = 1
    docker_image: str
    entrypoint: str
    resource_per_instance: ResourcePerInstance = Field(default_factory=ResourcePerInstance)
    completion: Optional[CompletionConfig] = None
    hived_pod_spec: Optional[Dict[str, Any]] = None


class JobDefaults(ConfigModel):
    virtual_cluster: Optional[str] = None


class JobConfig(ConfigModel):
    protocol_version: Optional[Union[int, str]] = None
    name: Optional[str] = None
    type: Optional[str] = None
    job_retry_count: Optional[int] = 0
    prerequisites: List[Prerequisite] = Field(default_factory=list)
    task_roles: Dict[str, TaskRoleConfig]
    defaults: Optional[JobDefaults] = None
    extras: Optional[Dict[str, Any]] = None

    @property
    def virtual_cluster(self) -> str:
        if self.defaults is not None and self.defaults.virtual_cluster is not None:
            return self.defaults.virtual_cluster
        return "default"

    def docker_image_uri(self, image_name: str) -> str:
        for prerequisite in self.prerequisites:
            if prerequisite.type == "dockerimage" and prerequisite.name == image_name:
                if not prerequisite.uri:
                    break
                return prerequisite.uri
        raise BadRequestException(f"Docker image {image_name} is not defined in prerequisites.")


# ==================== Job views ====================


class ViewModel(BaseModel):
    """Responses are rendered with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _nan_to_none(value: float) -> Optional[float]:
    # NaN has no JSON representation
    if value is None or math.isnan(value):
        return None
    return value


class RetryDetails(ViewModel):
    user: int = 0
    platform: int = 0
    resource: int = 0


class JobSummary(ViewModel):
    name: str
    username: str
    state: JobState
    sub_state: Optional[str] = None
    execution_type: Optional[str] = None
    retries: int = 0
    retry_details: RetryDetails = Field(default_factory=RetryDetails)
    created_time: float = math.nan
    completed_time: float = math.nan
    app_exit_code: Optional[int] = None
    virtual_cluster: str = "unknown"
    total_gpu_number: int = 0
    total_task_number: int = 0
    total_task_role_number: int = 0

    @field_serializer("created_time", "completed_time", when_used="json")
    def _serialize_time(self, value: float) -> Optional[float]:
        return _nan_to_none(value)


class AppExitMessages(ViewModel):
    container: Optional[str] = None
    runtime: Optional[str] = None
    launcher: Optional[str] = None


class JobStatus(ViewModel):
    username: str
    state: JobState
    sub_state: Optional[str] = None
    execution_type: Optional[str] = None
    retries: int = 0
    retry_details: RetryDetails = Field(default_factory=RetryDetails)
    created_time: float = math.nan
    completed_time: float = math.nan
    app_id: Optional[str] = None
    app_progress: int = 0
    app_tracking_url: str = ""
    app_launched_time: float = math.nan
    app_completed_time: float = math.nan
    app_exit_code: Optional[int] = None
    app_exit_spec: Dict[str, Any] = Field(default_factory=dict)
    app_exit_diagnostics: Optional[str] = None
    app_exit_messages: AppExitMessages = Field(default_factory=AppExitMessages)
    app_exit_trigger_message: Optional[str] = None
    app_exit_trigger_task_role_name: Optional[str] = None
    app_exit_trigger_task_index: Optional[int] = None
    app_exit_type: Optional[str] = None
    virtual_cluster: str = "unknown"

    @field_serializer(
        "created_time", "completed_time", "app_launched_time", "app_completed_time",
        when_used="json",
    )
    def _serialize_time(self, value: float) -> Optional[float]:
        return _nan_to_none(value)


class TaskDetail(ViewModel):
    task_index: int
    task_state: JobState
    container_id: Optional[str] = None
    container_ip: Optional[str] = None
    container_ports: Dict[str, Any] = Field(default_factory=dict)
    container_gpus: int = 0
    container_log: str = ""
    container_exit_code: Optional[int] = None


class TaskRoleStatus(ViewModel):
    name: str


class TaskRoleDetail(ViewModel):
    task_role_status: TaskRoleStatus
    task_statuses: List[TaskDetail] = Field(default_factory=list)


class JobDetail(ViewModel):
    name: str
    job_status: JobStatus
    task_roles: Dict[str, TaskRoleDetail] = Field(default_factory=dict)


class ExecuteRequest(BaseModel):
    value: Literal["START", "STOP"]
