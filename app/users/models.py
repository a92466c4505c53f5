"""User record models."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class UserExtension(BaseModel):
    """Free-form user extension; only the virtual cluster list is interpreted here."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    virtual_cluster: List[str] = Field(default_factory=list)


class UserRecord(BaseModel):
    """A user as stored in its Kubernetes secret."""

    username: str
    password: Optional[str] = None
    grouplist: List[str] = Field(default_factory=list)
    email: str = ""
    extension: UserExtension = Field(default_factory=UserExtension)

    def in_group(self, group: str) -> bool:
        return group in self.grouplist

    def has_virtual_cluster(self, virtual_cluster: str) -> bool:
        return virtual_cluster in self.extension.virtual_cluster
