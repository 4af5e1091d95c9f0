"""Board analysis API routes."""
from fastapi import APIRouter, Depends, HTTPException

from ...models.schemas import AnalyzeRequest, AnalyzeResponse, HintRequest, HintResponse
from ...models.level import Block
from ...models.leveling_config import get_level_params
from ...core.analyzer import DependencyGraph
from ...core.blocking import detect_facing_deadlocks
from ...core.difficulty_assessor import DifficultyAssessor
from ...core.grid import get_board_rect, validate_dimensions
from ..deps import get_assessor

router = APIRouter(prefix="/api", tags=["analyze"])


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_board(
    request: AnalyzeRequest,
    assessor: DifficultyAssessor = Depends(get_assessor),
) -> AnalyzeResponse:
    """
    Analyze a board and return difficulty metrics.

    Args:
        request: AnalyzeRequest with blocks and screen size.
        assessor: DifficultyAssessor dependency.

    Returns:
        AnalyzeResponse with score, grade, depth and direction stats.
    """
    try:
        validate_dimensions(request.screenWidth, request.screenHeight)
        blocks = [Block.from_dict(b.to_block_dict(), assessor.sizing) for b in request.blocks]
        bounds = (request.screenWidth, request.screenHeight)
        params = get_level_params(request.level_number or 1)

        graph = DependencyGraph.build(blocks, bounds, assessor.detector)
        report = assessor.validate_board(
            blocks,
            bounds,
            params,
            seed=request.seed,
            board_rect=get_board_rect(request.screenWidth, request.screenHeight),
        )
        evaluation = report["evaluation"]
        return AnalyzeResponse(
            score=evaluation["score"],
            grade=evaluation["grade"],
            solvable=evaluation["solvable"],
            deadlock_probability=evaluation["deadlock_probability"],
            depth=evaluation["depth"],
            directions=evaluation["directions"],
            graph=graph.analyze_difficulty(),
            facing_deadlocks=detect_facing_deadlocks(blocks),
            verdict=evaluation["verdict"] if request.level_number else None,
            issues=report["issues"],
        )
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Analysis failed: {str(e)}")


@router.post("/analyze/hint", response_model=HintResponse)
async def get_hint(
    request: HintRequest,
    assessor: DifficultyAssessor = Depends(get_assessor),
) -> HintResponse:
    """
    Suggest the next block to remove.

    Args:
        request: HintRequest with the current blocks.
        assessor: DifficultyAssessor dependency.

    Returns:
        HintResponse with the hinted block and a full removal order.
    """
    try:
        validate_dimensions(request.screenWidth, request.screenHeight)
        blocks = [Block.from_dict(b.to_block_dict(), assessor.sizing) for b in request.blocks]
        graph = DependencyGraph.build(blocks, (request.screenWidth, request.screenHeight), assessor.detector)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Hint failed: {str(e)}")

    order = graph.topological_sort()
    hint = graph.get_hint()
    return HintResponse(
        block_id=hint.id if hint else None,
        depth=hint.depth if hint else None,
        solution_path=order,
        deadlocked=order is None,
    )
