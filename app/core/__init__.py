"""Core module - config, dependencies, exceptions."""

from app.core.config import get_settings, get_launcher_config, LauncherConfig, Settings
from app.core.exceptions import (
    AppException,
    NotFoundException,
    UnauthorizedException,
    ForbiddenException,
    BadRequestException,
    NoJobError,
    NoJobConfigError,
    NoJobSshInfoError,
    UpstreamError,
)

__all__ = [
    "get_settings",
    "get_launcher_config",
    "LauncherConfig",
    "Settings",
    "AppException",
    "NotFoundException",
    "UnauthorizedException",
    "ForbiddenException",
    "BadRequestException",
    "NoJobError",
    "NoJobConfigError",
    "NoJobSshInfoError",
    "UpstreamError",
]
