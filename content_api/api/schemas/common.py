"""Request bodies shared by the post and category endpoints."""

import uuid

from pydantic import BaseModel, ConfigDict, Field


class DeleteWithTrashRequest(BaseModel):
    """
    Bulk delete request.

    With `trash=true`, live rows move to the trash and rows already in the
    trash are removed permanently. With `trash=false` every row is removed
    permanently.
    """

    model_config = ConfigDict(extra="forbid")

    ids: list[uuid.UUID] = Field(..., min_length=1, description="IDs to delete")
    trash: bool = Field(default=False, description="Move live rows to the trash")


class RestoreRequest(BaseModel):
    """Bulk restore request; IDs that are not in the trash are ignored."""

    model_config = ConfigDict(extra="forbid")

    ids: list[uuid.UUID] = Field(..., min_length=1, description="IDs to restore")
