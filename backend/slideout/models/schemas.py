"""Pydantic schemas for API request/response validation."""
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Any, Literal, Optional, Union


class GenerateMessage(BaseModel):
    """Generate request message."""
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = Field(default=None, description="Message type, must be 'generate'")
    levelNumber: Optional[Union[bool, int, float, str]] = Field(default=None, description="Level number (>= 1)")
    screenWidth: Optional[Union[bool, int, float, str]] = Field(default=None, description="Screen width in pixels")
    screenHeight: Optional[Union[bool, int, float, str]] = Field(default=None, description="Screen height in pixels")
    requestId: Optional[Union[int, float, str]] = Field(default=None, description="Opaque id echoed in the reply")
    useOldAlgorithm: bool = Field(default=False, description="Use the lane-uniform generator")


class BlockPayload(BaseModel):
    """One block on the wire."""
    model_config = ConfigDict(extra="ignore")

    id: int = Field(default=0, description="Block id")
    x: Optional[float] = Field(default=None, description="Bounding box left")
    y: Optional[float] = Field(default=None, description="Bounding box top")
    width: Optional[float] = Field(default=None, description="Bounding box width")
    height: Optional[float] = Field(default=None, description="Bounding box height")
    centerX: Optional[float] = Field(default=None, description="Center x (overrides x/width)")
    centerY: Optional[float] = Field(default=None, description="Center y (overrides y/height)")
    direction: int = Field(..., ge=0, le=3, description="0=up, 1=right, 2=down, 3=left")
    axis: Optional[Literal["row", "col"]] = Field(default=None, description="Domino orientation")
    gridRow: Optional[int] = Field(default=None, description="Grid row of the first cell")
    gridCol: Optional[int] = Field(default=None, description="Grid column of the first cell")
    type: Optional[str] = Field(default=None, description="Animal type")
    size: Optional[float] = Field(default=None, gt=0, description="Short side in pixels")
    depth: int = Field(default=0, description="Dependency depth")

    def to_block_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class AnalyzeRequest(BaseModel):
    """Request schema for board analysis."""
    blocks: List[BlockPayload] = Field(..., description="Blocks to analyze")
    screenWidth: float = Field(..., ge=0, description="Screen width in pixels")
    screenHeight: float = Field(..., ge=0, description="Screen height in pixels")
    level_number: Optional[int] = Field(default=None, ge=1, description="Level whose criteria to apply")
    seed: int = Field(default=0, description="Seed for the removal simulations")


class AnalyzeResponse(BaseModel):
    """Response schema for board analysis."""
    score: float = Field(..., ge=0, le=100, description="Difficulty score (0-100)")
    grade: str = Field(..., description="Difficulty grade (S/A/B/C/D)")
    solvable: bool = Field(..., description="A full removal order exists")
    deadlock_probability: Optional[float] = Field(default=None, ge=0, le=1, description="Share of random orders that get stuck, when estimated")
    depth: Dict[str, Any] = Field(..., description="Dependency depth stats")
    directions: Dict[str, Any] = Field(..., description="Direction balance stats")
    graph: Dict[str, Any] = Field(..., description="Dependency graph breakdown")
    facing_deadlocks: List[Dict[str, Any]] = Field(default=[], description="Facing pairs per lane")
    verdict: Optional[Dict[str, Any]] = Field(default=None, description="Acceptance verdict for level_number")
    issues: List[str] = Field(default=[], description="Validation issues")


class HintRequest(BaseModel):
    """Request schema for a hint."""
    blocks: List[BlockPayload] = Field(..., description="Current board")
    screenWidth: float = Field(..., ge=0, description="Screen width in pixels")
    screenHeight: float = Field(..., ge=0, description="Screen height in pixels")


class HintResponse(BaseModel):
    """Response schema for a hint."""
    block_id: Optional[int] = Field(default=None, description="Block to remove next, null when stuck")
    depth: Optional[int] = Field(default=None, description="Depth of the hinted block")
    solution_path: Optional[List[int]] = Field(default=None, description="Block ids in a full removal order")
    deadlocked: bool = Field(default=False, description="No full removal order exists")
