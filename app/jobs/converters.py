"""Convert framework controller objects into job summary/detail views."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.jobs.models import (
    JobDetail,
    JobStatus,
    JobSummary,
    RetryDetails,
    TaskDetail,
    TaskRoleDetail,
    TaskRoleStatus,
)
from app.jobs.naming import decode_name
from app.jobs.states import convert_state, retry_details

UNKNOWN_LABEL = "unknown"


def to_epoch_ms(value: Any) -> float:
    """Milliseconds since epoch for a controller timestamp, NaN when absent or invalid.

    Timestamps without an offset are read as UTC.
    """
    if not isinstance(value, str) or not value:
        return math.nan
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return math.nan
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return float(round(parsed.timestamp() * 1000))


def _label(framework: Dict[str, Any], key: str) -> str:
    labels = framework.get("metadata", {}).get("labels") or {}
    value = labels.get(key)
    return value if value is not None else UNKNOWN_LABEL


def _completion_status(status: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return (status.get("attemptStatus") or {}).get("completionStatus")


def _task_role_statuses(status: Dict[str, Any]) -> list:
    return (status.get("attemptStatus") or {}).get("taskRoleStatuses") or []


def _retry_fields(status: Dict[str, Any]) -> Dict[str, Any]:
    retry_status = status.get("retryPolicyStatus") or {}
    total = retry_status.get("totalRetriedCount") or 0
    accountable = retry_status.get("accountableRetriedCount") or 0
    return {
        "retries": total,
        "retry_details": RetryDetails(**retry_details(total, accountable)),
    }


def _execution_type(framework: Dict[str, Any]) -> Optional[str]:
    execution_type = (framework.get("spec") or {}).get("executionType")
    return execution_type.upper() if execution_type else None


def convert_framework_summary(framework: Dict[str, Any]) -> JobSummary:
    status = framework.get("status") or {}
    completion = _completion_status(status)
    exit_code = completion.get("code") if completion else None
    task_role_statuses = _task_role_statuses(status)
    return JobSummary(
        name=decode_name(framework["metadata"]["name"]),
        username=_label(framework, "userName"),
        state=convert_state(status.get("state"), exit_code),
        sub_state=status.get("state"),
        execution_type=_execution_type(framework),
        **_retry_fields(status),
        created_time=to_epoch_ms(status.get("startTime")),
        completed_time=to_epoch_ms(status.get("completionTime")),
        app_exit_code=exit_code,
        virtual_cluster=_label(framework, "virtualCluster"),
        total_gpu_number=0,
        total_task_number=sum(
            len(role.get("taskStatuses") or []) for role in task_role_statuses
        ),
        total_task_role_number=len(task_role_statuses),
    )


def convert_task_detail(task_status: Dict[str, Any]) -> TaskDetail:
    attempt = task_status.get("attemptStatus") or {}
    completion = attempt.get("completionStatus")
    exit_code = completion.get("code") if completion else None
    return TaskDetail(
        task_index=task_status["index"],
        task_state=convert_state(task_status.get("state"), exit_code),
        container_id=attempt.get("podName"),
        container_ip=attempt.get("podHostIP"),
        # ports and gpus are not reported by the controller
        container_ports={},
        container_gpus=0,
        container_log="",
        container_exit_code=exit_code,
    )


def convert_framework_detail(framework: Dict[str, Any]) -> JobDetail:
    status = framework.get("status") or {}
    completion = _completion_status(status)
    exit_code = completion.get("code") if completion else None
    diagnostics = completion.get("diagnostics") if completion else None
    exit_type = ((completion.get("type") or {}).get("name")) if completion else None
    created_time = to_epoch_ms(status.get("startTime"))
    completed_time = to_epoch_ms(status.get("completionTime"))

    job_status = JobStatus(
        username=_label(framework, "userName"),
        state=convert_state(status.get("state"), exit_code),
        sub_state=status.get("state"),
        execution_type=_execution_type(framework),
        **_retry_fields(status),
        created_time=created_time,
        completed_time=completed_time,
        app_id=(status.get("attemptStatus") or {}).get("instanceUID"),
        app_progress=1 if completion else 0,
        app_tracking_url="",
        app_launched_time=created_time,
        app_completed_time=completed_time,
        app_exit_code=exit_code,
        app_exit_spec={},
        app_exit_diagnostics=diagnostics,
        app_exit_trigger_message=diagnostics,
        app_exit_trigger_task_role_name=None,
        app_exit_trigger_task_index=None,
        app_exit_type=exit_type,
        virtual_cluster=_label(framework, "virtualCluster"),
    )
    task_roles = {
        role["name"]: TaskRoleDetail(
            task_role_status=TaskRoleStatus(name=role["name"]),
            task_statuses=[convert_task_detail(task) for task in role.get("taskStatuses") or []],
        )
        for role in _task_role_statuses(status)
    }
    return JobDetail(
        name=decode_name(framework["metadata"]["name"]),
        job_status=job_status,
        task_roles=task_roles,
    )
