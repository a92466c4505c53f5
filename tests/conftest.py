"""
Pytest configuration and shared fixtures.
"""

import json
from typing import Callable, List

import httpx
import yaml
import pytest

from app.core.config import LauncherConfig
from app.jobs.models import JobConfig

CONTROLLER_URI = "http://controller.test"

SAMPLE_CONFIG_YAML = """\
protocolVersion: 2
name: mnist
type: job
jobRetryCount: 1
prerequisites:
  - type: dockerimage
    name: pytorch
    uri: openpai/pytorch:1.4
taskRoles:
  worker:
    instances: 3
    dockerImage: pytorch
    entrypoint: python train.py
    resourcePerInstance:
      cpu: 4
      memoryMB: 8192
      gpu: 1
defaults:
  virtualCluster: vc1
"""


@pytest.fixture
def launcher() -> LauncherConfig:
    return LauncherConfig(api_server_uri=CONTROLLER_URI, runtime_image="runtime:latest")


@pytest.fixture
def hived_launcher() -> LauncherConfig:
    return LauncherConfig(
        api_server_uri=CONTROLLER_URI,
        runtime_image="runtime:latest",
        hived_enabled=True,
        scheduler="hivedscheduler",
    )


@pytest.fixture
def raw_config() -> str:
    return SAMPLE_CONFIG_YAML


@pytest.fixture
def job_config(raw_config) -> JobConfig:
    return JobConfig.model_validate(yaml.safe_load(raw_config))


def make_framework(
    name: str = "hex616c6963657e6d6e697374",
    state: str = "AttemptRunning",
    exit_code=None,
    start_time: str = "2020-01-01T00:00:00Z",
    completion_time=None,
    labels=None,
    annotations=None,
    task_roles=None,
) -> dict:
    """A framework object shaped like the controller returns it."""
    completion = None
    if exit_code is not None:
        completion = {
            "code": exit_code,
            "phrase": "Succeeded" if exit_code == 0 else "Failed",
            "type": {"name": "Succeeded" if exit_code == 0 else "Failed", "attributes": []},
            "diagnostics": "exited" if exit_code else "",
        }
    if task_roles is None:
        task_roles = [
            {
                "name": "worker",
                "taskStatuses": [
                    {
                        "index": index,
                        "state": state,
                        "attemptStatus": {
                            "podName": f"pod-{index}",
                            "podHostIP": f"10.0.0.{index}",
                            "completionStatus": completion,
                        },
                    }
                    for index in range(2)
                ],
            }
        ]
    metadata = {"name": name}
    if labels is not False:
        metadata["labels"] = labels or {"userName": "alice", "jobName": "mnist", "virtualCluster": "vc1"}
    if annotations is not None:
        metadata["annotations"] = annotations
    return {
        "metadata": metadata,
        "spec": {"executionType": "Start"},
        "status": {
            "state": state,
            "startTime": start_time,
            "completionTime": completion_time,
            "retryPolicyStatus": {"totalRetriedCount": 3, "accountableRetriedCount": 1},
            "attemptStatus": {
                "instanceUID": "uid-1",
                "completionStatus": completion,
                "taskRoleStatuses": task_roles,
            },
        },
    }


class Recorder:
    """Collects requests seen by a MockTransport handler."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.responder = responder
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


def mock_client(responder: Callable[[httpx.Request], httpx.Response]):
    recorder = Recorder(responder)
    return httpx.AsyncClient(transport=httpx.MockTransport(recorder)), recorder
