"""Runtime environment variables injected into every task container."""

from __future__ import annotations

import random
from typing import Dict, List, Optional

from app.jobs.framework import EnvVar
from app.jobs.models import JobConfig
from app.jobs.naming import split_framework_name

TASK_ROLE_NAME_ANNOTATION = "FC_TASKROLE_NAME"
TASK_INDEX_ANNOTATION = "FC_TASK_INDEX"

# TODO: replace random ports with a host port allocator; two tasks on one host may collide
PORT_RANGE_START = 10000
PORT_RANGE_END = 20000


def generate_framework_env(framework_name: str, config: JobConfig) -> Dict[str, str]:
    """Static job-level environment shared by all task roles."""
    username, job_name = split_framework_name(framework_name)
    task_roles = list(config.task_roles)
    env = {
        "PAI_FRAMEWORK_NAME": framework_name,
        "PAI_JOB_NAME": job_name,
        "PAI_USER_NAME": username,
        "PAI_TASK_ROLE_COUNT": str(len(task_roles)),
        "PAI_TASK_ROLE_LIST": ",".join(task_roles),
    }
    for name, task_role in config.task_roles.items():
        resource = task_role.resource_per_instance
        completion = task_role.completion
        env[f"PAI_TASK_ROLE_TASK_COUNT_{name}"] = str(task_role.instances or 1)
        env[f"PAI_RESOURCE_{name}"] = f"{resource.gpu},{resource.cpu},{resource.memory_mb}"
        env[f"PAI_MIN_FAILED_TASK_COUNT_{name}"] = str(
            completion.min_failed_instances if completion else 1
        )
        env[f"PAI_MIN_SUCCEEDED_TASK_COUNT_{name}"] = str(
            completion.min_succeeded_instances if completion else -1
        )
    return env


def task_env(rng: Optional[random.Random] = None) -> List[EnvVar]:
    """Per-task variables resolved from pod annotations, plus service/ssh ports."""
    rng = rng or random
    return [
        EnvVar.from_annotation("PAI_CURRENT_TASK_ROLE_NAME", TASK_ROLE_NAME_ANNOTATION),
        EnvVar.from_annotation("PAI_CURRENT_TASK_ROLE_CURRENT_TASK_INDEX", TASK_INDEX_ANNOTATION),
        # backward compatibility
        EnvVar.from_annotation("PAI_TASK_INDEX", TASK_INDEX_ANNOTATION),
        EnvVar(
            name="PAI_CURRENT_CONTAINER_PORT",
            value=str(rng.randrange(PORT_RANGE_START, PORT_RANGE_END)),
        ),
        EnvVar(
            name="PAI_CONTAINER_SSH_PORT",
            value=str(rng.randrange(PORT_RANGE_START, PORT_RANGE_END)),
        ),
    ]
