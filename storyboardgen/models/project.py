"""
Project Models
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from .generation import Captions


class ProjectOutput(BaseModel):
    """Index row pointing at one stored scene image."""
    scene_index: int = Field(ge=0)
    prompt: str
    title: Optional[str] = None
    description: Optional[str] = None
    image_pointer: str
    mime_type: str


class ProjectSummary(BaseModel):
    """Project list entry."""
    id: str
    name: str
    prompts: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProjectOutputDetail(BaseModel):
    """Stored output with a time-limited download URL."""
    scene_index: int
    prompt: str
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: str = ""
    mime_type: str
    created_at: Optional[datetime] = None


class ProjectDetail(BaseModel):
    """Project with its outputs resolved to signed URLs."""
    id: str
    name: str
    prompts: List[str] = Field(default_factory=list)
    captions: Captions = Field(default_factory=Captions)
    outputs: List[ProjectOutputDetail] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
