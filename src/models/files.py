"""File tree data models for sandbox workspaces."""

# Standard library imports
from typing import List, Literal, Optional

# Third-party imports
from pydantic import BaseModel, Field


class FileNode(BaseModel):
    """A file or folder in a sandbox workspace.

    Folders carry ``children``; files carry ``content`` and a ``language``
    tag derived from the file extension.
    """

    name: str
    path: str = Field(..., description="Path relative to the workspace root")
    type: Literal["file", "folder"]
    content: Optional[str] = Field(default=None, description="File content (files only)")
    language: Optional[str] = Field(
        default=None, description="Editor language derived from the extension"
    )
    children: Optional[List["FileNode"]] = Field(
        default=None, description="Child nodes (folders only)"
    )


FileNode.model_rebuild()


class FileListResponse(BaseModel):
    """Response model for listing a sandbox workspace."""

    success: bool = True
    files: List[FileNode]


class WriteFileRequest(BaseModel):
    """Request model for writing a single file."""

    session_id: str = Field(..., alias="sessionId", min_length=1)
    path: str = Field(..., min_length=1, description="Path relative to the workspace")
    content: str = Field(default="")

    model_config = {"populate_by_name": True}


class SyncFilesRequest(BaseModel):
    """Request model for pushing a whole file tree into a sandbox."""

    session_id: str = Field(..., alias="sessionId", min_length=1)
    files: List[FileNode]

    model_config = {"populate_by_name": True}
