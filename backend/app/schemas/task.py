"""Pydantic schemas for the task API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TaskCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    encrypted_data: str = Field(alias="encryptedData", min_length=1, max_length=10000)


class TaskUpdate(TaskCreate):
    pass


class TaskResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    username: str
    encrypted_data: str = Field(alias="encryptedData")
    created_at: datetime | None = Field(None, alias="createdAt")
    updated_at: datetime | None = Field(None, alias="updatedAt")
