"""
Tests for the framework builder.
"""

import random

import pytest
import yaml

from app.core.exceptions import BadRequestException
from app.jobs.builder import FrameworkBuilder, HivedScheduling, PlainGpu
from app.jobs.models import JobConfig
from app.jobs.naming import encode_name


def _config(**overrides) -> JobConfig:
    data = {
        "prerequisites": [{"type": "dockerimage", "name": "img", "uri": "repo/img:1"}],
        "taskRoles": {
            "Worker_1": {
                "dockerImage": "img",
                "entrypoint": "sleep 1",
                "resourcePerInstance": {"cpu": 2, "memoryMB": 1024, "gpu": 2},
            },
        },
    }
    data.update(overrides)
    return JobConfig.model_validate(data)


def _env(container: dict) -> dict:
    return {item["name"]: item for item in container["env"]}


class TestFrameworkBuilder:
    """Tests for FrameworkBuilder.build."""

    def test_three_instances_with_default_completion(self, launcher, job_config, raw_config):
        """One task role, three instances, fail-fast completion policy."""
        framework = FrameworkBuilder(launcher).build("alice~mnist", "vc1", job_config, raw_config)
        body = framework.to_request_body()

        assert len(body["spec"]["taskRoles"]) == 1
        task_role = body["spec"]["taskRoles"][0]
        assert task_role["taskNumber"] == 3
        assert task_role["frameworkAttemptCompletionPolicy"] == {
            "minFailedTaskCount": 1,
            "minSucceededTaskCount": -1,
        }

    def test_metadata(self, launcher, job_config, raw_config):
        """Should encode the name, label the framework and store the raw config."""
        body = FrameworkBuilder(launcher).build("alice~mnist", "vc1", job_config, raw_config).to_request_body()

        assert body["apiVersion"] == launcher.api_version
        assert body["kind"] == "Framework"
        assert body["metadata"]["name"] == encode_name("alice~mnist")
        assert body["metadata"]["labels"] == {"jobName": "mnist", "userName": "alice", "virtualCluster": "vc1"}
        assert body["metadata"]["annotations"]["config"] == raw_config
        assert body["spec"]["executionType"] == "Start"

    def test_instances_default_to_one(self, launcher):
        body = FrameworkBuilder(launcher).build("alice~job", "default", _config(), "").to_request_body()

        assert body["spec"]["taskRoles"][0]["taskNumber"] == 1

    def test_task_role_name_is_converted(self, launcher):
        body = FrameworkBuilder(launcher).build("alice~job", "default", _config(), "").to_request_body()

        assert body["spec"]["taskRoles"][0]["name"] == "worker1"

    def test_explicit_completion_policy(self, launcher):
        data = _config().model_dump(by_alias=True, exclude_none=True)
        data["taskRoles"]["Worker_1"]["completion"] = {"minFailedInstances": 2, "minSucceededInstances": 1}
        config = JobConfig.model_validate(data)

        policy = FrameworkBuilder.completion_policy(config.task_roles["Worker_1"])

        assert policy.min_failed_task_count == 2
        assert policy.min_succeeded_task_count == 1

    def test_partial_completion_policy_keeps_defaults(self):
        config = _config()
        data = config.model_dump(by_alias=True, exclude_none=True)
        data["taskRoles"]["Worker_1"]["completion"] = {"minSucceededInstances": 3}

        policy = FrameworkBuilder.completion_policy(JobConfig.model_validate(data).task_roles["Worker_1"])

        assert policy.min_failed_task_count == 1
        assert policy.min_succeeded_task_count == 3

    @pytest.mark.parametrize("job_retry_count,fancy,max_count", [
        (-2, False, -2),
        (0, True, 0),
        (None, True, 0),
        (5, True, 5),
        (-1, True, -1),
    ])
    def test_job_retry_policy(self, job_retry_count, fancy, max_count):
        policy = FrameworkBuilder.job_retry_policy(_config(jobRetryCount=job_retry_count))

        assert policy.fancy_retry_policy is fancy
        assert policy.max_retry_count == max_count

    def test_absent_job_retry_count_enables_fancy_retry(self):
        data = _config().model_dump(by_alias=True, exclude_none=True)
        data.pop("jobRetryCount", None)

        policy = FrameworkBuilder.job_retry_policy(JobConfig.model_validate(data))

        assert policy.fancy_retry_policy is True
        assert policy.max_retry_count == 0

    def test_task_retry_policy_is_fixed(self, launcher):
        body = FrameworkBuilder(launcher).build("alice~job", "default", _config(), "").to_request_body()

        assert body["spec"]["taskRoles"][0]["task"]["retryPolicy"] == {
            "fancyRetryPolicy": True,
            "maxRetryCount": 0,
        }

    def test_pod_spec(self, launcher):
        body = FrameworkBuilder(launcher).build("alice~job", "default", _config(), "").to_request_body()
        pod = body["spec"]["taskRoles"][0]["task"]["pod"]
        spec = pod["spec"]

        assert pod["metadata"]["labels"]["type"] == "kube-launcher-task"
        assert spec["hostNetwork"] is True
        assert spec["restartPolicy"] == "Never"
        assert spec["serviceAccountName"] == "frameworkbarrier"
        assert spec["privileged"] is False
        assert "schedulerName" not in spec
        assert [c["name"] for c in spec["initContainers"]] == ["init"]
        assert [c["name"] for c in spec["containers"]] == ["main"]
        assert spec["imagePullSecrets"] == [{"name": launcher.runtime_image_pull_secrets}]

        volumes = {volume["name"]: volume for volume in spec["volumes"]}
        assert volumes["pai-vol"] == {"name": "pai-vol", "emptyDir": {}}
        assert volumes["host-log"]["hostPath"]["path"] == "/var/log/pai/alice/job/Worker_1"
        assert volumes["job-ssh-secret-volume"]["secret"] == {"secretName": "job-ssh-secret"}

    def test_init_container(self, launcher):
        body = FrameworkBuilder(launcher).build("alice~job", "default", _config(), "").to_request_body()
        init = body["spec"]["taskRoles"][0]["task"]["pod"]["spec"]["initContainers"][0]

        assert init["image"] == "runtime:latest"
        assert init["imagePullPolicy"] == "Always"
        assert _env(init)["USER_CMD"]["value"] == "sleep 1"
        assert _env(init)["KUBE_APISERVER_ADDRESS"]["value"] == launcher.api_server_uri

    def test_main_container_with_plain_gpu(self, launcher):
        body = FrameworkBuilder(launcher).build("alice~job", "default", _config(), "").to_request_body()
        main = body["spec"]["taskRoles"][0]["task"]["pod"]["spec"]["containers"][0]

        assert main["image"] == "repo/img:1"
        assert main["command"] == ["/usr/local/pai/run"]
        assert main["resources"]["limits"] == {"cpu": 2, "memory": "1024Mi", "nvidia.com/gpu": 2}
        assert main["securityContext"]["capabilities"] == {
            "add": ["SYS_ADMIN", "IPC_LOCK", "DAC_READ_SEARCH"],
            "drop": ["MKNOD"],
        }
        mounts = {mount["name"]: mount for mount in main["volumeMounts"]}
        assert mounts["job-ssh-secret-volume"]["readOnly"] is True
        assert "NVIDIA_VISIBLE_DEVICES" not in _env(main)

    def test_runtime_env(self, launcher):
        builder = FrameworkBuilder(launcher, rng=random.Random(0))
        body = builder.build("alice~job", "default", _config(), "").to_request_body()
        env = _env(body["spec"]["taskRoles"][0]["task"]["pod"]["spec"]["containers"][0])

        assert env["PAI_JOB_NAME"]["value"] == "job"
        assert env["PAI_USER_NAME"]["value"] == "alice"
        assert env["PAI_TASK_ROLE_LIST"]["value"] == "Worker_1"
        assert env["PAI_CURRENT_TASK_ROLE_NAME"]["valueFrom"]["fieldRef"]["fieldPath"] == (
            "metadata.annotations['FC_TASKROLE_NAME']"
        )
        assert env["PAI_TASK_INDEX"]["valueFrom"] == env["PAI_CURRENT_TASK_ROLE_CURRENT_TASK_INDEX"]["valueFrom"]
        for name in ("PAI_CURRENT_CONTAINER_PORT", "PAI_CONTAINER_SSH_PORT"):
            assert 10000 <= int(env[name]["value"]) < 20000

    def test_unknown_docker_image(self, launcher):
        config = _config(prerequisites=[])

        with pytest.raises(BadRequestException):
            FrameworkBuilder(launcher).build("alice~job", "default", config, "")


class TestHivedScheduling:
    """Tests for the hived scheduler path."""

    def test_gpu_scheduling_variant(self, launcher, hived_launcher):
        task_role = _config().task_roles["Worker_1"]

        assert FrameworkBuilder(launcher).gpu_scheduling(task_role) == PlainGpu(gpu=2)
        assert isinstance(FrameworkBuilder(hived_launcher).gpu_scheduling(task_role), HivedScheduling)

    def test_hived_pod(self, hived_launcher):
        pod_spec = {"virtualCluster": "vc1", "priority": 10, "gpuType": "K80", "gpuNumber": 2}
        data = _config().model_dump(by_alias=True, exclude_none=True)
        data["taskRoles"]["Worker_1"]["hivedPodSpec"] = pod_spec
        config = JobConfig.model_validate(data)

        body = FrameworkBuilder(hived_launcher).build("alice~job", "vc1", config, "").to_request_body()
        pod = body["spec"]["taskRoles"][0]["task"]["pod"]
        main = pod["spec"]["containers"][0]

        assert pod["spec"]["schedulerName"] == "hivedscheduler"
        assert "nvidia.com/gpu" not in main["resources"]["limits"]
        assert main["resources"]["limits"]["hivedscheduler.microsoft.com/pod-scheduling-enable"] == 1
        annotation = pod["metadata"]["annotations"]["hivedscheduler.microsoft.com/pod-scheduling-spec"]
        assert yaml.safe_load(annotation) == pod_spec
        assert _env(main)["NVIDIA_VISIBLE_DEVICES"]["valueFrom"]["fieldRef"]["fieldPath"] == (
            "metadata.annotations['hivedscheduler.microsoft.com/pod-gpu-isolation']"
        )
