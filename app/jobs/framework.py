"""Typed framework description submitted to the framework controller.

Field names are snake_case here and rendered camelCase on the wire by
``Framework.to_request_body()``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class K8sModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ObjectMeta(K8sModel):
    name: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)


class FieldRef(K8sModel):
    field_path: str


class EnvVarSource(K8sModel):
    field_ref: FieldRef


class EnvVar(K8sModel):
    name: str
    value: Optional[str] = None
    value_from: Optional[EnvVarSource] = None

    @classmethod
    def from_annotation(cls, name: str, annotation: str) -> "EnvVar":
        """Env var resolved at runtime from a controller-populated pod annotation."""
        return cls(
            name=name,
            value_from=EnvVarSource(
                field_ref=FieldRef(field_path=f"metadata.annotations['{annotation}']"),
            ),
        )


class VolumeMount(K8sModel):
    name: str
    mount_path: str
    read_only: Optional[bool] = None


class ResourceRequirements(K8sModel):
    limits: Dict[str, Union[int, float, str]] = Field(default_factory=dict)


class Capabilities(K8sModel):
    add: List[str] = Field(default_factory=list)
    drop: List[str] = Field(default_factory=list)


class SecurityContext(K8sModel):
    capabilities: Capabilities


class Container(K8sModel):
    name: str
    image: str
    image_pull_policy: Optional[str] = None
    command: Optional[List[str]] = None
    resources: Optional[ResourceRequirements] = None
    env: List[EnvVar] = Field(default_factory=list)
    security_context: Optional[SecurityContext] = None
    volume_mounts: List[VolumeMount] = Field(default_factory=list)


class HostPathVolumeSource(K8sModel):
    path: str


class SecretVolumeSource(K8sModel):
    secret_name: str


class Volume(K8sModel):
    name: str
    empty_dir: Optional[Dict[str, Any]] = None
    host_path: Optional[HostPathVolumeSource] = None
    secret: Optional[SecretVolumeSource] = None


class LocalObjectReference(K8sModel):
    name: str


class PodSpec(K8sModel):
    privileged: bool = False
    restart_policy: str = "Never"
    service_account_name: str = "frameworkbarrier"
    scheduler_name: Optional[str] = None
    init_containers: List[Container] = Field(default_factory=list)
    containers: List[Container] = Field(default_factory=list)
    volumes: List[Volume] = Field(default_factory=list)
    image_pull_secrets: List[LocalObjectReference] = Field(default_factory=list)
    host_network: bool = True


class PodTemplate(K8sModel):
    metadata: ObjectMeta
    spec: PodSpec


class RetryPolicy(K8sModel):
    fancy_retry_policy: bool
    max_retry_count: int


class CompletionPolicy(K8sModel):
    min_failed_task_count: int = 1
    min_succeeded_task_count: int = -1


class TaskSpec(K8sModel):
    retry_policy: RetryPolicy
    pod: PodTemplate


class TaskRoleSpec(K8sModel):
    name: str
    task_number: int
    task: TaskSpec
    framework_attempt_completion_policy: CompletionPolicy


class FrameworkSpec(K8sModel):
    execution_type: str = "Start"
    retry_policy: RetryPolicy
    task_roles: List[TaskRoleSpec] = Field(default_factory=list)


class Framework(K8sModel):
    api_version: str
    kind: str = "Framework"
    metadata: ObjectMeta
    spec: FrameworkSpec

    def to_request_body(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
