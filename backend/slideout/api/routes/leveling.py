"""Leveling curve API routes."""
from fastapi import APIRouter, HTTPException, Query
from typing import Dict, List, Any

from ...models.leveling_config import (
    get_complete_level_config,
    generate_level_progression,
    get_leveling_config,
)


router = APIRouter(prefix="/api/leveling", tags=["leveling"])


@router.get("/config")
async def get_config() -> Dict[str, Any]:
    """
    Both level curves as static tables.

    Returns:
        - cycle_length: length of the relief cycle
        - reverse_fill: ramp length and the fixed parameters of levels 1 and 2
        - lane: phase table of the lane curve
    """
    return get_leveling_config()


@router.get("/level/{level_number}")
async def get_level_config(level_number: int) -> Dict[str, Any]:
    """
    Resolved parameters of one level for both curves.

    Args:
        level_number: Level number (>= 1)
    """
    try:
        return get_complete_level_config(level_number)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/progression")
async def get_level_progression(
    start_level: int = Query(default=1, ge=1, description="First level"),
    count: int = Query(default=10, ge=1, le=200, description="Number of levels"),
) -> List[Dict[str, Any]]:
    """
    Parameter summary for consecutive levels.

    Used to chart how block count and difficulty targets move across a
    range, relief levels included.
    """
    return generate_level_progression(start_level, count)
