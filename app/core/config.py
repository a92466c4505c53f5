"""
Application configuration using Pydantic Settings.
Loads from environment variables / .env file.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "Job Gateway API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Framework controller (launcher)
    LAUNCHER_API_SERVER_URI: str = "http://localhost:8080"
    LAUNCHER_API_VERSION: str = "frameworkcontroller.microsoft.com/v1"
    LAUNCHER_NAMESPACE: str = "default"
    LAUNCHER_RUNTIME_IMAGE: str = "openpai/kube-runtime"
    LAUNCHER_RUNTIME_IMAGE_PULL_SECRETS: str = "pai-secret"
    LAUNCHER_HIVED_ENABLED: bool = False
    LAUNCHER_HIVED_SCHEDULER: str = "hivedscheduler"

    # User store (Kubernetes secrets)
    K8S_APISERVER_URI: str = "http://localhost:8080"
    USER_SECRET_NAMESPACE: str = "pai-user-v2"
    ADMIN_GROUP_NAME: str = "admingroup"

    # JWT
    JWT_SECRET_KEY: str = "your-super-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@dataclass(frozen=True)
class LauncherConfig:
    """Framework controller coordinates handed to the job builder and client."""

    api_server_uri: str
    api_version: str = "frameworkcontroller.microsoft.com/v1"
    namespace: str = "default"
    runtime_image: str = "openpai/kube-runtime"
    runtime_image_pull_secrets: str = "pai-secret"
    hived_enabled: bool = False
    scheduler: str = "hivedscheduler"
    request_headers: Dict[str, str] = field(
        default_factory=lambda: {"Content-Type": "application/json"}
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "LauncherConfig":
        return cls(
            api_server_uri=settings.LAUNCHER_API_SERVER_URI.rstrip("/"),
            api_version=settings.LAUNCHER_API_VERSION,
            namespace=settings.LAUNCHER_NAMESPACE,
            runtime_image=settings.LAUNCHER_RUNTIME_IMAGE,
            runtime_image_pull_secrets=settings.LAUNCHER_RUNTIME_IMAGE_PULL_SECRETS,
            hived_enabled=settings.LAUNCHER_HIVED_ENABLED,
            scheduler=settings.LAUNCHER_HIVED_SCHEDULER,
        )

    def frameworks_path(self) -> str:
        return (
            f"{self.api_server_uri}/apis/{self.api_version}"
            f"/namespaces/{self.namespace}/frameworks"
        )

    def framework_path(self, name: str) -> str:
        return f"{self.frameworks_path()}/{name}"


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


@lru_cache
def get_launcher_config() -> LauncherConfig:
    """Launcher config derived from the cached settings."""
    return LauncherConfig.from_settings(get_settings())
