"""
Kubernetes secret backed user storage.

Each user is one secret named after the hex-encoded username, with every
field base64 encoded in ``data`` (list/object fields as JSON).
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, List, Optional

import httpx
from fastapi import status
from passlib.context import CryptContext

from app.core.config import Settings
from app.core.exceptions import AppException, NotFoundException, error_status
from app.users.models import UserRecord

logger = logging.getLogger(__name__)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

JSON_FIELDS = ("grouplist", "extension")


class UserNotFoundError(NotFoundException):
    """No secret exists for the user."""

    code = "NoUserError"

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"User {username} is not found.")


class UserStoreError(AppException):
    """The Kubernetes API server rejected a user store request."""

    code = "UnknownError"

    def __init__(self, upstream_status: int, message: str = ""):
        self.upstream_status = upstream_status
        super().__init__(detail=message or "User store request failed", status_code=error_status(upstream_status))


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def secret_name(username: str) -> str:
    return username.encode("utf-8").hex()


def _b64encode(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def _b64decode(value: str) -> str:
    return base64.b64decode(value).decode("utf-8")


def record_to_secret(record: UserRecord) -> Dict[str, Any]:
    fields = record.model_dump(by_alias=True)
    data = {}
    for key, value in fields.items():
        if value is None:
            continue
        data[key] = _b64encode(json.dumps(value) if key in JSON_FIELDS else str(value))
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": secret_name(record.username)},
        "data": data,
    }


def secret_to_record(secret: Dict[str, Any]) -> UserRecord:
    data = secret.get("data") or {}
    fields: Dict[str, Any] = {}
    for key, value in data.items():
        decoded = _b64decode(value)
        fields[key] = json.loads(decoded) if key in JSON_FIELDS else decoded
    return UserRecord.model_validate(fields)


class K8sSecretUserStore:
    """CRUD for user records, one Kubernetes API call per operation."""

    def __init__(
        self,
        api_server_uri: str,
        namespace: str = "pai-user-v2",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_server_uri = api_server_uri.rstrip("/")
        self.namespace = namespace
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> "K8sSecretUserStore":
        return cls(settings.K8S_APISERVER_URI, settings.USER_SECRET_NAMESPACE, client=client)

    def secrets_path(self) -> str:
        return f"{self.api_server_uri}/api/v1/namespaces/{self.namespace}/secrets"

    def secret_path(self, username: str) -> str:
        return f"{self.secrets_path()}/{secret_name(username)}"

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self.client is not None:
            return await self.client.request(method, url, **kwargs)
        async with httpx.AsyncClient() as client:
            return await client.request(method, url, **kwargs)

    @staticmethod
    def _check(response: httpx.Response, username: Optional[str], *expected: int) -> None:
        if response.status_code in expected:
            return
        if response.status_code == status.HTTP_404_NOT_FOUND and username is not None:
            raise UserNotFoundError(username)
        try:
            message = (response.json() or {}).get("message") or response.text
        except (ValueError, AttributeError):
            message = response.text
        logger.warning(f"User store request failed with {response.status_code}: {message}")
        raise UserStoreError(response.status_code, message)

    async def read(self, username: str) -> UserRecord:
        response = await self._request("GET", self.secret_path(username))
        self._check(response, username, status.HTTP_200_OK)
        return secret_to_record(response.json())

    async def read_all(self) -> List[UserRecord]:
        response = await self._request("GET", self.secrets_path())
        self._check(response, None, status.HTTP_200_OK)
        return [secret_to_record(item) for item in response.json().get("items") or []]

    async def create(self, username: str, record: UserRecord) -> UserRecord:
        record = record.model_copy(update={"username": username})
        if record.password:
            record.password = hash_password(record.password)
        response = await self._request("POST", self.secrets_path(), json=record_to_secret(record))
        self._check(response, None, status.HTTP_200_OK, status.HTTP_201_CREATED)
        logger.info(f"Created user {username}")
        return record

    async def update(self, username: str, record: UserRecord, update_password: bool = False) -> UserRecord:
        record = record.model_copy(update={"username": username})
        if update_password and record.password:
            record.password = hash_password(record.password)
        response = await self._request("PUT", self.secret_path(username), json=record_to_secret(record))
        self._check(response, username, status.HTTP_200_OK)
        logger.info(f"Updated user {username}")
        return record

    async def remove(self, username: str) -> None:
        response = await self._request("DELETE", self.secret_path(username))
        self._check(response, username, status.HTTP_200_OK)
        logger.info(f"Removed user {username}")
