"""Level generation API routes."""
from fastapi import APIRouter, Depends
from typing import Dict, Any

from ...models.schemas import GenerateMessage
from ...core.worker import GenerationWorker
from ..deps import get_generation_worker

router = APIRouter(prefix="/api", tags=["generate"])


@router.post("/generate")
async def generate_level(
    message: GenerateMessage,
    worker: GenerationWorker = Depends(get_generation_worker),
) -> Dict[str, Any]:
    """
    Generate a level from a ``generate`` message.

    Failures are reported in the body as an ``error`` message, the same way
    the worker answers any other caller.

    Args:
        message: GenerateMessage with levelNumber, screenWidth, screenHeight.
        worker: GenerationWorker dependency.

    Returns:
        ``levelReady`` or ``error`` message.
    """
    return await worker.handle_message(message.model_dump(exclude_unset=True))
