"""Utility helper functions."""
from typing import Dict, Any, List, Optional

from ..models.level import ANIMAL_TYPES

_ARROWS = {0: "^", 1: ">", 2: "v", 3: "<"}
_BLOCK_FIELDS = ("id", "x", "y", "width", "height", "direction")


def validate_level_data(level_data: Dict[str, Any]) -> tuple[bool, Optional[str]]:
    """
    Validate a ``levelData`` payload.

    Args:
        level_data: Payload with ``blocks`` and ``total``.

    Returns:
        Tuple of (is_valid, error_message).
    """
    blocks = level_data.get("blocks")
    if not isinstance(blocks, list):
        return False, "'blocks' must be an array"

    if level_data.get("total") != len(blocks):
        return False, f"'total' is {level_data.get('total')!r} but there are {len(blocks)} blocks"

    seen_ids = set()
    for i, block in enumerate(blocks):
        if not isinstance(block, dict):
            return False, f"Block {i} must be an object"

        for field in _BLOCK_FIELDS:
            if field not in block:
                return False, f"Block {i} missing '{field}' field"

        if block["id"] in seen_ids:
            return False, f"Duplicate block id {block['id']}"
        seen_ids.add(block["id"])

        if block["direction"] not in _ARROWS:
            return False, f"Block {block['id']} has invalid direction {block['direction']!r}"

        if block["width"] <= 0 or block["height"] <= 0:
            return False, f"Block {block['id']} has an empty rectangle"

        animal = block.get("type")
        if animal is not None and animal not in ANIMAL_TYPES:
            return False, f"Block {block['id']} has unknown type {animal!r}"

    return True, None


def format_board_for_display(blocks: List[Dict[str, Any]]) -> str:
    """
    Format grid blocks for human-readable display.

    Each domino is drawn as two arrows on its cells. Blocks without grid
    coordinates are counted but not drawn.

    Args:
        blocks: Block payloads.

    Returns:
        Formatted string representation.
    """
    cells = {}
    off_grid = 0
    for block in blocks:
        row, col = block.get("gridRow"), block.get("gridCol")
        if row is None or col is None:
            off_grid += 1
            continue
        arrow = _ARROWS.get(block["direction"], "?")
        second = (row + 1, col) if block.get("axis") == "row" else (row, col + 1)
        cells[(row, col)] = arrow
        cells[second] = arrow

    lines = [f"Board with {len(blocks)} blocks:"]
    lines.append("-" * 40)
    if cells:
        rows = [r for r, _ in cells]
        cols = [c for _, c in cells]
        for row in range(min(rows), max(rows) + 1):
            line = [cells.get((row, col), ".") for col in range(min(cols), max(cols) + 1)]
            lines.append("  " + " ".join(line))
    if off_grid:
        lines.append(f"({off_grid} blocks without grid coordinates)")

    return "\n".join(lines)
