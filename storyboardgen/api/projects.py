"""
Projects API Routes
"""

from fastapi import APIRouter, HTTPException, Depends
from typing import List

from storyboardgen.models.project import ProjectDetail, ProjectSummary
from storyboardgen.api.deps import get_current_user_id, get_persistence
from storyboardgen.api.errors import to_http_exception
from storyboardgen.core.exceptions import StoryboardError
from storyboardgen.core.logging import get_logger
from storyboardgen.services import ProjectPersistence

router = APIRouter()
logger = get_logger("api.projects")


@router.get("", response_model=List[ProjectSummary])
async def list_projects(
    user_id: str = Depends(get_current_user_id),
    persistence: ProjectPersistence = Depends(get_persistence),
):
    """List all projects for current user, newest first."""
    try:
        return await persistence.list_projects(user_id)
    except StoryboardError as e:
        raise to_http_exception(e)


@router.get("/{project_id}", response_model=ProjectDetail)
async def get_project(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
    persistence: ProjectPersistence = Depends(get_persistence),
):
    """Get a project with signed URLs for its outputs."""
    try:
        project = await persistence.get_project_detail(user_id, project_id)
    except StoryboardError as e:
        raise to_http_exception(e)

    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project
