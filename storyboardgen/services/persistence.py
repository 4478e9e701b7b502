"""
Project Persistence

Saves a run as a project: the project row, one stored image per successful
scene and the output index. This is the only writer of object storage and
the project tables.
"""

import asyncio
from typing import List, Optional, Sequence, Tuple

from storyboardgen.core.config import settings
from storyboardgen.core.exceptions import PersistenceError, ValidationError
from storyboardgen.core.logging import get_logger
from storyboardgen.models.generation import Captions, SceneResult
from storyboardgen.models.project import (
    ProjectDetail,
    ProjectOutput,
    ProjectOutputDetail,
    ProjectSummary,
)
from storyboardgen.stores.base import ObjectStorage, ProjectStore
from .images import DEFAULT_MIME_TYPE, decode_data_url, extension_for, sniff_mime_type

logger = get_logger("services.persistence")

DEFAULT_PROJECT_NAME = "Untitled project"
FOREIGN_IMAGE_MESSAGE = "Scene images must be generated images or this account's stored outputs."


def output_path(user_id: str, project_id: str, scene_index: int, mime_type: str) -> str:
    """Storage path for one scene image."""
    return f"{user_id}/{project_id}/{scene_index}.{extension_for(mime_type)}"


class ProjectPersistence:
    """Project create/update, image upload and output index replacement."""

    def __init__(
        self,
        projects: ProjectStore,
        storage: ObjectStorage,
        signed_url_ttl: int = None,
    ):
        self.projects = projects
        self.storage = storage
        self.signed_url_ttl = signed_url_ttl or settings.signed_url_ttl_seconds

    async def save_run(
        self,
        user_id: str,
        project_id: Optional[str],
        project_name: Optional[str],
        prompts: Sequence[str],
        captions: Captions,
        results: Sequence[SceneResult],
    ) -> str:
        """Create or update the project and store every successful scene.

        Returns the project id. Scene images that are neither embedded nor
        this user's stored outputs raise ValidationError before anything is
        written; any other failure raises PersistenceError. Callers keep
        their in-memory results either way.
        """
        self.check_image_urls(user_id, results)
        fields = {
            "name": (project_name or "").strip() or DEFAULT_PROJECT_NAME,
            "prompts": list(prompts),
            "tiktok_captions": list(captions.tiktok),
            "instagram_captions": list(captions.instagram),
        }

        previous_paths: List[str] = []
        try:
            if project_id:
                await self.projects.update_project(user_id, project_id, fields)
                previous_paths = [row["file_path"] for row in await self.projects.get_outputs(project_id)]
            else:
                project_id = await self.projects.create_project(user_id, fields)

            outputs: List[ProjectOutput] = []
            for index, scene in enumerate(results):
                if not scene.image_url:
                    continue
                data, mime_type = await self.load_image(user_id, scene.image_url)
                path = output_path(user_id, project_id, index, mime_type)
                await self.storage.upload(path, data, mime_type)
                outputs.append(ProjectOutput(
                    scene_index=index,
                    prompt=scene.prompt,
                    title=scene.title,
                    description=scene.description,
                    image_pointer=path,
                    mime_type=mime_type,
                ))

            await self.projects.replace_outputs(project_id, outputs)

        except PersistenceError:
            raise
        except Exception as e:
            logger.error(f"Project save failed for {user_id} (project {project_id}): {e}")
            raise PersistenceError(
                "Failed to save project outputs",
                {"project_id": project_id} if project_id else {},
            ) from e

        stale = sorted(set(previous_paths) - {output.image_pointer for output in outputs})
        if stale:
            await self._remove_stale(project_id, stale)

        logger.info(f"Saved project {project_id} with {len(outputs)} output(s)")
        return project_id

    def stored_path(self, user_id: str, image_url: str) -> str:
        """Object path behind a signed URL for one of ``user_id``'s stored outputs.

        Any other URL raises ValidationError; it is never fetched.
        """
        path = self.storage.path_from_url(image_url)
        if not path or not path.startswith(f"{user_id}/") or ".." in path.split("/"):
            logger.warning(f"Rejected scene image URL for {user_id}: {image_url[:120]}")
            raise ValidationError(FOREIGN_IMAGE_MESSAGE, {"image_url": image_url[:120]})
        return path

    def check_image_urls(self, user_id: str, results: Sequence[SceneResult]) -> None:
        for scene in results:
            if scene.image_url and not scene.image_url.startswith("data:"):
                self.stored_path(user_id, scene.image_url)

    async def load_image(self, user_id: str, image_url: str) -> Tuple[bytes, str]:
        """Bytes and mime type of an embedded image or a stored output."""
        if image_url.startswith("data:"):
            return decode_data_url(image_url)
        data = await self.storage.download(self.stored_path(user_id, image_url))
        return data, sniff_mime_type(data) or DEFAULT_MIME_TYPE

    async def _remove_stale(self, project_id: str, paths: List[str]) -> None:
        try:
            await self.storage.remove(paths)
        except Exception as e:
            logger.warning(f"Could not remove replaced outputs of project {project_id} {paths}: {e}")

    async def list_projects(self, user_id: str) -> List[ProjectSummary]:
        try:
            rows = await self.projects.list_projects(user_id)
        except Exception as e:
            logger.error(f"List projects failed for {user_id}: {e}")
            raise PersistenceError("Failed to list projects") from e
        return [
            ProjectSummary(
                id=row["id"],
                name=row["name"],
                prompts=row.get("prompts") or [],
                created_at=row.get("created_at"),
                updated_at=row.get("updated_at"),
            )
            for row in rows
        ]

    async def get_project_detail(self, user_id: str, project_id: str) -> Optional[ProjectDetail]:
        """Project with outputs resolved to signed URLs, or None when not found."""
        try:
            project = await self.projects.get_project(user_id, project_id)
            if project is None:
                return None
            rows = await self.projects.get_outputs(project_id)
        except Exception as e:
            logger.error(f"Load project {project_id} failed: {e}")
            raise PersistenceError("Failed to load project", {"project_id": project_id}) from e

        urls = await asyncio.gather(*(self._signed_url(row["file_path"]) for row in rows))

        return ProjectDetail(
            id=project["id"],
            name=project["name"],
            prompts=project.get("prompts") or [],
            captions=Captions(
                tiktok=project.get("tiktok_captions") or [],
                instagram=project.get("instagram_captions") or [],
            ),
            outputs=[
                ProjectOutputDetail(
                    scene_index=row["scene_index"],
                    prompt=row["prompt"],
                    title=row.get("title"),
                    description=row.get("description"),
                    image_url=url,
                    mime_type=row["mime_type"],
                    created_at=row.get("created_at"),
                )
                for row, url in zip(rows, urls)
            ],
            created_at=project.get("created_at"),
            updated_at=project.get("updated_at"),
        )

    async def _signed_url(self, path: str) -> str:
        try:
            return await self.storage.create_signed_url(path, self.signed_url_ttl)
        except Exception as e:
            logger.warning(f"Signed URL failed for {path}: {e}")
            return ""
