"""
Regeneration Path

Re-runs a single scene of an existing run. Same credit terms as a
one-scene run: pre-flight for one credit, debit one on success. The prior
image, when there is one, is prepended to the references. A prior image
is either embedded or a signed URL for one of the user's stored outputs.
"""

import asyncio
from typing import List, Optional, Sequence

from storyboardgen.core.exceptions import ValidationError
from storyboardgen.core.logging import get_logger
from storyboardgen.models.generation import (
    Captions,
    GenerationOptions,
    ReferenceImage,
    SceneResult,
)
from .captions import set_caption
from .images import PREVIOUS_IMAGE_ID
from .orchestrator import MISSING_REFERENCES_MESSAGE, GenerationRun, SceneOrchestrator
from .usage_ledger import GenerationContext

logger = get_logger("services.regeneration")


class SceneRegenerator:
    """Single-scene retry on top of the orchestrator's collaborators."""

    def __init__(self, orchestrator: SceneOrchestrator):
        self.orchestrator = orchestrator

    async def regenerate_one(
        self,
        scene_index: int,
        results: Sequence[SceneResult],
        references: Sequence[ReferenceImage],
        context: GenerationContext,
        options: Optional[GenerationOptions] = None,
        prompts: Optional[Sequence[str]] = None,
        captions: Optional[Captions] = None,
        project_id: Optional[str] = None,
        project_name: Optional[str] = None,
    ) -> GenerationRun:
        """Regenerate ``results[scene_index]`` and re-save the whole run.

        Only that slot changes, and only once the new attempt settles.
        """
        results = list(results)
        captions = captions or Captions()
        if not references:
            raise ValidationError(MISSING_REFERENCES_MESSAGE)
        if not 0 <= scene_index < len(results):
            raise ValidationError(
                f"Scene index {scene_index} is out of range",
                {"scene_count": len(results)},
            )
        # Stored outputs are read back from storage; nothing else is fetched
        self.orchestrator.persistence.check_image_urls(context.user_id, results)

        ledger = self.orchestrator.ledger
        usage = await ledger.check_budget(context, 1)
        options = await self.orchestrator.resolve_options(context.user_id, options)

        target = results[scene_index]
        scene_references = await self._with_prior_image(context.user_id, target, references)

        logger.info(f"Regenerating scene {scene_index} for {context.user_id}")
        outcome = await self.orchestrator.render_scene(target.restart(), scene_references, options)
        results[scene_index] = outcome

        run = GenerationRun(results=results, captions=captions, usage=usage, project_id=project_id)

        if outcome.is_success:
            summaries, scene_captions = await asyncio.gather(
                self.orchestrator.summaries_for([target.prompt], options),
                self.orchestrator.captions_for([target.prompt], scene_references, options),
            )
            if summaries.titles or summaries.descriptions:
                results[scene_index] = outcome.with_summary(
                    summaries.titles[0] if summaries.titles else "",
                    summaries.descriptions[0] if summaries.descriptions else "",
                )
            if scene_captions.tiktok or scene_captions.instagram:
                run.captions = set_caption(
                    captions,
                    scene_index,
                    scene_captions.tiktok[0] if scene_captions.tiktok else "",
                    scene_captions.instagram[0] if scene_captions.instagram else "",
                )

        run.usage, run.credit_error = await self.orchestrator.settle_credits(
            context, [results[scene_index]], usage
        )

        # A failed attempt leaves the stored outputs as they were
        if outcome.is_success:
            run_prompts: List[str] = list(prompts) if prompts else [result.prompt for result in results]
            await self.orchestrator.save(run, context, run_prompts, project_name)
        return run

    async def _with_prior_image(
        self,
        user_id: str,
        target: SceneResult,
        references: Sequence[ReferenceImage],
    ) -> List[ReferenceImage]:
        if not target.image_url:
            return list(references)
        try:
            data, mime_type = await self.orchestrator.persistence.load_image(user_id, target.image_url)
        except Exception as e:
            logger.warning(f"Could not use previous image as reference: {e}")
            return list(references)
        return [ReferenceImage.from_bytes(data, mime_type, PREVIOUS_IMAGE_ID), *references]
