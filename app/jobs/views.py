"""Jobs API endpoints."""

from __future__ import annotations

import logging
from typing import Annotated, Any, List

import yaml
from fastapi import APIRouter, Depends, Path, Request, status
from pydantic import ValidationError

from app.core.config import get_settings
from app.core.dependencies import get_current_user, get_jobs_service, get_user_service
from app.core.exceptions import BadRequestException, ForbiddenException
from app.jobs.models import ExecuteRequest, JobConfig, JobDetail, JobSummary
from app.jobs.naming import SEPARATOR, split_framework_name
from app.jobs.service import JobsService
from app.users.service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])

FrameworkName = Annotated[str, Path(description="Job identifier, {username}~{jobName}")]


def _parse_framework_name(framework_name: str):
    username, job_name = split_framework_name(framework_name)
    if SEPARATOR not in framework_name or not username or not job_name:
        raise BadRequestException(f"Invalid job identifier {framework_name}, expected username~jobName.")
    return username, job_name


async def _require_owner_or_admin(username: str, current_user: dict, users: UserService) -> None:
    if current_user["username"] == username:
        return
    if not await users.check_user_group(current_user["username"], get_settings().ADMIN_GROUP_NAME):
        raise ForbiddenException(f"User {current_user['username']} is not allowed to modify jobs of {username}.")


@router.get("", response_model=List[JobSummary])
async def list_jobs(jobs: JobsService = Depends(get_jobs_service)):
    """List all jobs, newest first."""
    return await jobs.list()


@router.get("/{framework_name}", response_model=JobDetail)
async def get_job(
    framework_name: FrameworkName,
    jobs: JobsService = Depends(get_jobs_service),
):
    _parse_framework_name(framework_name)
    return await jobs.get(framework_name)


@router.put("/{framework_name}", status_code=status.HTTP_202_ACCEPTED)
async def submit_job(
    request: Request,
    framework_name: FrameworkName,
    current_user: dict = Depends(get_current_user),
    jobs: JobsService = Depends(get_jobs_service),
    users: UserService = Depends(get_user_service),
):
    """
    Submit a job. The request body is the YAML job config; it is stored
    verbatim so `GET /config` returns exactly what was submitted.
    """
    username, job_name = _parse_framework_name(framework_name)
    if current_user["username"] != username:
        raise ForbiddenException(f"User {current_user['username']} cannot submit jobs as {username}.")

    content = await request.body()
    try:
        raw_config = content.decode("utf-8")
        config = JobConfig.model_validate(yaml.safe_load(raw_config) or {})
    except (UnicodeDecodeError, yaml.YAMLError, ValidationError) as e:
        raise BadRequestException(f"Invalid job config: {e}")

    if not await users.check_user_vc(username, config.virtual_cluster):
        raise ForbiddenException(
            f"User {username} is not allowed to do operation in {config.virtual_cluster}."
        )

    await jobs.put(framework_name, config, raw_config)
    logger.info(f"Job {framework_name} submitted to virtual cluster {config.virtual_cluster}")
    return {"message": f"update job {job_name} successfully"}


@router.put("/{framework_name}/executionType", status_code=status.HTTP_202_ACCEPTED)
async def execute_job(
    body: ExecuteRequest,
    framework_name: FrameworkName,
    current_user: dict = Depends(get_current_user),
    jobs: JobsService = Depends(get_jobs_service),
    users: UserService = Depends(get_user_service),
):
    """Start or stop a job."""
    username, job_name = _parse_framework_name(framework_name)
    await _require_owner_or_admin(username, current_user, users)
    await jobs.execute(framework_name, body.value)
    return {"message": f"execute job {job_name} successfully"}


@router.get("/{framework_name}/config")
async def get_job_config(
    framework_name: FrameworkName,
    jobs: JobsService = Depends(get_jobs_service),
) -> Any:
    _parse_framework_name(framework_name)
    return await jobs.get_config(framework_name)


@router.get("/{framework_name}/ssh")
async def get_job_ssh_info(
    framework_name: FrameworkName,
    jobs: JobsService = Depends(get_jobs_service),
):
    _parse_framework_name(framework_name)
    return await jobs.get_ssh_info(framework_name)
