"""
Generation API Routes
"""

from fastapi import APIRouter, HTTPException, Depends, Request

from storyboardgen.models.generation import (
    GenerationRequest,
    GenerationRunResponse,
    RegenerateRequest,
    SuggestionRequest,
    SuggestionResponse,
)
from storyboardgen.api.deps import (
    get_current_user_id,
    get_generation_context,
    get_model_client,
    get_orchestrator,
    get_regenerator,
    limiter,
)
from storyboardgen.api.errors import to_http_exception
from storyboardgen.core.config import settings
from storyboardgen.core.exceptions import StoryboardError
from storyboardgen.core.logging import get_logger
from storyboardgen.services import (
    GenerationContext,
    GeminiClient,
    SceneOrchestrator,
    SceneRegenerator,
    split_prompts,
)

router = APIRouter()
logger = get_logger("api.generation")


@router.post("/runs", response_model=GenerationRunResponse)
@limiter.limit(settings.generation_rate_limit)
async def create_run(
    request: Request,
    run_request: GenerationRequest,
    context: GenerationContext = Depends(get_generation_context),
    orchestrator: SceneOrchestrator = Depends(get_orchestrator),
):
    """Generate every scene of a storyboard and save it as a project."""
    try:
        prompts = run_request.prompts or split_prompts(run_request.prompt_text or "")
        run = await orchestrator.run_generation(
            prompts,
            run_request.references,
            context,
            options=run_request.options,
            project_id=run_request.project_id,
            project_name=run_request.project_name,
        )
        return run.to_response()

    except HTTPException:
        raise
    except StoryboardError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Generation run error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Generation failed")


@router.post("/regenerate", response_model=GenerationRunResponse)
@limiter.limit(settings.generation_rate_limit)
async def regenerate_scene(
    request: Request,
    regenerate_request: RegenerateRequest,
    context: GenerationContext = Depends(get_generation_context),
    regenerator: SceneRegenerator = Depends(get_regenerator),
):
    """Regenerate one scene and re-save the run."""
    try:
        run = await regenerator.regenerate_one(
            regenerate_request.scene_index,
            regenerate_request.results,
            regenerate_request.references,
            context,
            options=regenerate_request.options,
            prompts=regenerate_request.prompts,
            captions=regenerate_request.captions,
            project_id=regenerate_request.project_id,
            project_name=regenerate_request.project_name,
        )
        return run.to_response()

    except HTTPException:
        raise
    except StoryboardError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Regeneration error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Regeneration failed")


@router.post("/suggestions", response_model=SuggestionResponse)
@limiter.limit(settings.suggestion_rate_limit)
async def suggest_scenes(
    request: Request,
    suggestion_request: SuggestionRequest,
    user_id: str = Depends(get_current_user_id),
    model: GeminiClient = Depends(get_model_client),
):
    """Draft scene prompts from a topic brief. Consumes no credits."""
    try:
        prompts = await model.suggest_scenes(suggestion_request.topic, suggestion_request.count)
        return SuggestionResponse(prompts=prompts)

    except StoryboardError as e:
        logger.warning(f"Scene suggestion failed for {user_id}: {e}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Scene suggestion error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to suggest scenes")
