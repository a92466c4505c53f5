"""Jobs service - framework controller client (async)."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

import httpx
import yaml
from fastapi import status

from app.core.config import LauncherConfig
from app.core.exceptions import NoJobConfigError, NoJobError, NoJobSshInfoError, UpstreamError
from app.jobs.builder import FrameworkBuilder
from app.jobs.converters import convert_framework_detail, convert_framework_summary
from app.jobs.models import JobConfig, JobDetail, JobSummary
from app.jobs.naming import encode_name

logger = logging.getLogger(__name__)

MERGE_PATCH_HEADERS = {"Content-Type": "application/merge-patch+json"}


def _upstream_error(response: httpx.Response) -> UpstreamError:
    try:
        message = (response.json() or {}).get("message") or response.text
    except (ValueError, AttributeError):
        message = response.text
    logger.warning(f"Framework controller returned {response.status_code}: {message}")
    return UpstreamError(response.status_code, message)


def _created_time_key(job: JobSummary) -> float:
    # jobs without a start time go last
    return float("-inf") if math.isnan(job.created_time) else job.created_time


def normalize_execution_type(execution_type: str) -> str:
    """``STOP`` -> ``Stop``; the controller is case sensitive."""
    return f"{execution_type[:1].upper()}{execution_type[1:].lower()}"


class JobsService:
    """
    One request per call, no retries, no caching.

    Transport failures (no response) propagate as ``httpx.TransportError``;
    unexpected status codes become ``NoJobError`` / ``UpstreamError``.
    """

    def __init__(
        self,
        launcher: LauncherConfig,
        client: Optional[httpx.AsyncClient] = None,
        builder: Optional[FrameworkBuilder] = None,
    ):
        self.launcher = launcher
        self.client = client
        self.builder = builder or FrameworkBuilder(launcher)

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        kwargs.setdefault("headers", self.launcher.request_headers)
        if self.client is not None:
            return await self.client.request(method, url, **kwargs)
        async with httpx.AsyncClient() as client:
            return await client.request(method, url, **kwargs)

    async def _get_framework(self, framework_name: str) -> Dict[str, Any]:
        response = await self._request("GET", self.launcher.framework_path(encode_name(framework_name)))
        if response.status_code == status.HTTP_200_OK:
            return response.json()
        if response.status_code == status.HTTP_404_NOT_FOUND:
            raise NoJobError(framework_name)
        raise _upstream_error(response)

    async def list(self) -> List[JobSummary]:
        """All jobs, newest first."""
        response = await self._request("GET", self.launcher.frameworks_path())
        if response.status_code != status.HTTP_200_OK:
            raise _upstream_error(response)
        jobs = [convert_framework_summary(item) for item in response.json().get("items") or []]
        jobs.sort(key=_created_time_key, reverse=True)
        return jobs

    async def get(self, framework_name: str) -> JobDetail:
        return convert_framework_detail(await self._get_framework(framework_name))

    async def put(self, framework_name: str, config: JobConfig, raw_config: str) -> None:
        """Submit a new job; a duplicate name is rejected by the controller."""
        framework = self.builder.build(framework_name, config.virtual_cluster, config, raw_config)
        logger.info(f"Submitting job {framework_name} as framework {framework.metadata.name}")
        response = await self._request(
            "POST",
            self.launcher.frameworks_path(),
            json=framework.to_request_body(),
        )
        if response.status_code != status.HTTP_201_CREATED:
            raise _upstream_error(response)

    async def execute(self, framework_name: str, execution_type: str) -> None:
        """Merge-patch ``spec.executionType``; nothing else on the framework changes."""
        execution_type = normalize_execution_type(execution_type)
        logger.info(f"Setting execution type of job {framework_name} to {execution_type}")
        response = await self._request(
            "PATCH",
            self.launcher.framework_path(encode_name(framework_name)),
            headers=MERGE_PATCH_HEADERS,
            json={"spec": {"executionType": execution_type}},
        )
        if response.status_code != status.HTTP_200_OK:
            raise _upstream_error(response)

    async def get_config(self, framework_name: str) -> Any:
        """Parse the config text stored verbatim at submission."""
        framework = await self._get_framework(framework_name)
        annotations = framework.get("metadata", {}).get("annotations") or {}
        if not annotations.get("config"):
            raise NoJobConfigError(framework_name)
        return yaml.safe_load(annotations["config"])

    async def get_ssh_info(self, framework_name: str) -> Dict[str, Any]:
        """SSH info is not exposed by the framework controller."""
        raise NoJobSshInfoError(framework_name)
