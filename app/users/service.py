"""User service - user records and group / virtual cluster checks.

Store errors are surfaced unchanged; only ``create_user_if_non_existent``
looks at the not-found status.
"""

from __future__ import annotations

from typing import List

from fastapi import status

from app.core.exceptions import AppException
from app.users.models import UserRecord
from app.users.store import K8sSecretUserStore, hash_password


class UserService:
    """Handles user records kept in the user store."""

    def __init__(self, store: K8sSecretUserStore, admin_group: str = "admingroup"):
        self.store = store
        self.admin_group = admin_group

    async def get_user(self, username: str) -> UserRecord:
        return await self.store.read(username)

    async def get_all_users(self) -> List[UserRecord]:
        return await self.store.read_all()

    async def create_user(self, username: str, record: UserRecord) -> UserRecord:
        return await self.store.create(username, record)

    async def update_user(self, username: str, record: UserRecord, update_password: bool = False) -> UserRecord:
        return await self.store.update(username, record, update_password)

    async def delete_user(self, username: str) -> None:
        await self.store.remove(username)

    @staticmethod
    async def get_encrypt_password(record: UserRecord) -> UserRecord:
        """Replace the plain password with its hash."""
        if record.password:
            record.password = hash_password(record.password)
        return record

    async def create_user_if_non_existent(self, username: str, record: UserRecord) -> None:
        try:
            await self.get_user(username)
        except AppException as e:
            if e.status_code != status.HTTP_404_NOT_FOUND:
                raise
            await self.create_user(username, record)

    async def check_user_group(self, username: str, group: str) -> bool:
        user = await self.store.read(username)
        # admin has the permission of all groups
        return user.in_group(group) or user.in_group(self.admin_group)

    async def check_user_vc(self, username: str, virtual_cluster: str) -> bool:
        user = await self.store.read(username)
        return user.has_virtual_cluster(virtual_cluster) or user.in_group(self.admin_group)
