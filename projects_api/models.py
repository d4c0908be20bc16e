"""
Request models for the project routes.

Required-field checks happen in the service so the literal 400 messages
stay in one place; these models only coerce types.
"""

from typing import Optional
from pydantic import BaseModel, Field


class ProjectImportRequest(BaseModel):
    """POST /api/projects/import body (connection descriptor + options)."""
    host: Optional[str] = None
    port: Optional[int] = Field(default=5432, ge=1, le=65535)
    username: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    projectName: Optional[str] = None
    waitForReady: bool = False


class QueryRequest(BaseModel):
    """POST /api/projects/{project_id}/query body."""
    query: Optional[str] = None
    naturalLanguageInput: Optional[str] = None
