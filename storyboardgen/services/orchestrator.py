"""
Scene Generation Orchestrator

Runs one storyboard generation: validate, pre-flight the credit budget, fan
out every scene to the image model at once, settle all of them, debit once
for the successes, then hand the run to persistence.

Scene outcomes are addressed by index; a failure stays in its own slot and
never cancels a sibling. Nothing is retried automatically.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from storyboardgen.core.exceptions import (
    CreditExhaustedUpstreamError,
    CreditLimitExceededError,
    LedgerUnavailableError,
    ModelUnavailableError,
    PersistenceError,
    StoryboardError,
    ValidationError,
)
from storyboardgen.core.logging import get_logger
from storyboardgen.models.generation import (
    CaptionSettings,
    Captions,
    GenerationOptions,
    GenerationRunResponse,
    ReferenceImage,
    SceneResult,
    SceneSummaries,
)
from storyboardgen.models.usage import MonthlyUsage
from .caption_settings import CaptionSettingsService
from .captions import apply_hashtags
from .gemini import GeminiClient
from .persistence import ProjectPersistence
from .prompts import build_scene_prompt
from .usage_ledger import GenerationContext, UsageLedger

logger = get_logger("services.orchestrator")

MISSING_REFERENCES_MESSAGE = "Please upload at least one reference image for character consistency."
MISSING_PROMPTS_MESSAGE = "Please enter at least one scene prompt."
LIMIT_REACHED_MESSAGE = "Monthly credit limit reached. Please upgrade for more."


@dataclass
class GenerationRun:
    """Settled outcome of a run or a regeneration."""
    results: List[SceneResult]
    captions: Captions
    usage: Optional[MonthlyUsage] = None
    project_id: Optional[str] = None
    credit_error: Optional[StoryboardError] = None
    persistence_error: Optional[PersistenceError] = None

    @property
    def successful_count(self) -> int:
        return sum(1 for result in self.results if result.is_success)

    def to_response(self) -> GenerationRunResponse:
        return GenerationRunResponse(
            results=self.results,
            captions=self.captions,
            usage=self.usage,
            project_id=self.project_id,
            successful_count=self.successful_count,
            credit_error=self.credit_error.to_dict() if self.credit_error else None,
            persistence_error=self.persistence_error.message if self.persistence_error else None,
        )


class SceneOrchestrator:
    """Fans scene generation out to the model and aggregates the results."""

    def __init__(
        self,
        model: GeminiClient,
        ledger: UsageLedger,
        persistence: ProjectPersistence,
        caption_settings: Optional[CaptionSettingsService] = None,
    ):
        self.model = model
        self.ledger = ledger
        self.persistence = persistence
        self.caption_settings = caption_settings

    async def run_generation(
        self,
        prompts: Sequence[str],
        references: Sequence[ReferenceImage],
        context: GenerationContext,
        options: Optional[GenerationOptions] = None,
        project_id: Optional[str] = None,
        project_name: Optional[str] = None,
    ) -> GenerationRun:
        """Generate every scene and save the run.

        Raises ValidationError or InsufficientCreditsError before any model
        call. Everything after the pre-flight check is reported on the run.
        """
        prompts = [prompt.strip() for prompt in prompts if prompt and prompt.strip()]
        if not references:
            raise ValidationError(MISSING_REFERENCES_MESSAGE)
        if not prompts:
            raise ValidationError(MISSING_PROMPTS_MESSAGE)

        usage = await self.ledger.check_budget(context, len(prompts))
        options = await self.resolve_options(context.user_id, options)

        logger.info(f"Starting run for {context.user_id}: {len(prompts)} scene(s), {len(references)} reference(s)")
        results = [SceneResult.pending(prompt) for prompt in prompts]

        scene_outcomes, captions, summaries = await asyncio.gather(
            asyncio.gather(*(
                self.render_scene(results[index], references, options)
                for index in range(len(results))
            )),
            self.captions_for(prompts, references, options),
            self.summaries_for(prompts, options),
        )

        results = [
            outcome.with_summary(title, description)
            for outcome, title, description in zip(
                scene_outcomes,
                self._pad(summaries.titles, len(prompts)),
                self._pad(summaries.descriptions, len(prompts)),
            )
        ]

        run = GenerationRun(results=results, captions=captions, usage=usage, project_id=project_id)
        logger.info(
            f"Run settled for {context.user_id}: {run.successful_count}/{len(results)} scene(s) succeeded"
        )

        run.usage, run.credit_error = await self.settle_credits(context, results, usage)
        await self.save(run, context, prompts, project_name)
        return run

    async def resolve_options(
        self,
        user_id: str,
        options: Optional[GenerationOptions],
    ) -> GenerationOptions:
        """Fill omitted guidelines, caption rules and hashtags from saved settings."""
        options = options or GenerationOptions()
        if not options.needs_saved_settings:
            return options
        saved = CaptionSettings()
        if self.caption_settings is not None:
            try:
                saved = await self.caption_settings.get_settings(user_id)
            except PersistenceError as e:
                logger.warning(f"Using default caption settings for {user_id}: {e}")
        return options.with_settings(saved)

    async def render_scene(
        self,
        scene: SceneResult,
        references: Sequence[ReferenceImage],
        options: GenerationOptions,
    ) -> SceneResult:
        """Generate one scene image; failures come back on the result."""
        prompt = build_scene_prompt(scene.prompt, options.guidelines, options.transparent_background)
        try:
            image = await self.model.generate_image(prompt, references, options.size)
        except StoryboardError as e:
            logger.warning(f"Scene failed ({e.code}): {e.message}")
            return scene.fail(e.message, e.code)
        except Exception as e:
            logger.warning(f"Scene failed unexpectedly: {e}", exc_info=True)
            return scene.fail(str(e), ModelUnavailableError.code)
        return scene.succeed(image.to_data_url())

    async def captions_for(
        self,
        prompts: Sequence[str],
        references: Sequence[ReferenceImage],
        options: GenerationOptions,
    ) -> Captions:
        """Captions with approved hashtags applied; empty on failure."""
        try:
            captions = await self.model.generate_captions(
                prompts,
                references,
                options.caption_rules,
                options.guidelines,
                options.hashtags,
            )
        except Exception as e:
            logger.warning(f"Caption generation failed: {e}")
            return Captions()
        return apply_hashtags(captions, options.hashtags)

    async def summaries_for(self, prompts: Sequence[str], options: GenerationOptions) -> SceneSummaries:
        try:
            return await self.model.generate_summaries(prompts, options.guidelines)
        except Exception as e:
            logger.warning(f"Scene summary generation failed: {e}")
            return SceneSummaries()

    async def settle_credits(
        self,
        context: GenerationContext,
        results: Sequence[SceneResult],
        usage: Optional[MonthlyUsage],
    ) -> Tuple[Optional[MonthlyUsage], Optional[StoryboardError]]:
        """Debit once for the successful scenes and detect mid-run exhaustion."""
        successful = sum(1 for result in results if result.is_success)
        credit_error = None

        if successful:
            try:
                usage = await self.ledger.consume(context.user_id, successful, context.plan_type)
            except CreditLimitExceededError as e:
                logger.warning(f"Credits ran out mid-run for {context.user_id}: {e}")
                credit_error = CreditExhaustedUpstreamError(LIMIT_REACHED_MESSAGE, e.details)
            except LedgerUnavailableError as e:
                logger.error(f"Debit of {successful} credit(s) failed for {context.user_id}: {e}")
                credit_error = e
            await self.ledger.mark_free_generation(context)

        if credit_error is None and any(
            result.error_kind == CreditExhaustedUpstreamError.code for result in results
        ):
            credit_error = CreditExhaustedUpstreamError(LIMIT_REACHED_MESSAGE)

        if credit_error is not None:
            usage = await self.refresh_usage(context, usage)

        return usage, credit_error

    async def refresh_usage(
        self,
        context: GenerationContext,
        fallback: Optional[MonthlyUsage],
    ) -> Optional[MonthlyUsage]:
        try:
            return await self.ledger.get_usage(context.user_id, context.plan_type)
        except LedgerUnavailableError as e:
            logger.error(f"Usage refresh failed for {context.user_id}: {e}")
            return fallback

    async def save(
        self,
        run: GenerationRun,
        context: GenerationContext,
        prompts: Sequence[str],
        project_name: Optional[str],
    ) -> None:
        """Persist the run when any scene succeeded; failure is recorded on the run."""
        if not run.successful_count:
            return
        try:
            run.project_id = await self.persistence.save_run(
                context.user_id,
                run.project_id,
                project_name,
                prompts,
                run.captions,
                run.results,
            )
        except PersistenceError as e:
            logger.error(f"Run for {context.user_id} generated but not saved: {e}")
            # The project row may exist already; a retry must update it
            run.project_id = e.details.get("project_id") or run.project_id
            run.persistence_error = e

    @staticmethod
    def _pad(items: List[str], length: int) -> List[str]:
        return (list(items) + [""] * length)[:length]
