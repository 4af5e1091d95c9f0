"""Tests for API endpoints."""
import pytest
from fastapi.testclient import TestClient

from slideout.core.grid import Grid, get_board_rect
from slideout.main import app
from slideout.models.level import Direction

SCREEN = {"screenWidth": 400, "screenHeight": 700}


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def grid():
    """Grid of a 400x700 screen."""
    return Grid.build(16, get_board_rect(400, 700))


def row_block(grid, block_id, row, col, direction):
    block = grid.block_from_cells(block_id, grid.get_cell(row, col), grid.get_cell(row + 1, col), direction)
    return block.to_dict()


@pytest.fixture
def chain_blocks(grid):
    """Three blocks in one lane, all sliding up."""
    return [
        row_block(grid, 10, 2, 0, Direction.UP),
        row_block(grid, 11, 0, 0, Direction.UP),
        row_block(grid, 12, -2, 0, Direction.UP),
    ]


@pytest.fixture
def facing_blocks(grid):
    """Two blocks sliding into each other."""
    return [
        row_block(grid, 1, -2, 0, Direction.DOWN),
        row_block(grid, 2, 0, 0, Direction.UP),
    ]


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_root(self, client):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Slideout Level Generator"
        assert data["endpoints"]["generate"] == "/api/generate"

    def test_health(self, client):
        """Test health check endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["strategy"] in ("reverse_fill", "lane_uniform", "depth_layered")


class TestGenerateEndpoint:
    """Test generate endpoint."""

    def test_generate_level(self, client):
        """Test that a generate message is answered with levelReady."""
        response = client.post(
            "/api/generate",
            json={"type": "generate", "levelNumber": 1, "requestId": "r1", **SCREEN},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["type"] == "levelReady"
        assert data["requestId"] == "r1"
        assert data["levelData"]["total"] == len(data["levelData"]["blocks"])
        assert "duration" in data

    def test_generate_unknown_type(self, client):
        """Test that a wrong message type is reported in the body."""
        response = client.post("/api/generate", json={"type": "status", "levelNumber": 1, **SCREEN})
        assert response.status_code == 200
        data = response.json()
        assert data["type"] == "error"
        assert "status" in data["error"]

    def test_generate_missing_type(self, client):
        """Test that a message without a type is reported in the body."""
        response = client.post("/api/generate", json={"levelNumber": 1, **SCREEN})
        assert response.status_code == 200
        assert response.json()["type"] == "error"

    def test_generate_invalid_level(self, client):
        """Test that an invalid level is reported in the body."""
        response = client.post("/api/generate", json={"type": "generate", "levelNumber": -2, **SCREEN})
        assert response.status_code == 200
        data = response.json()
        assert data["type"] == "error"
        assert data["levelNumber"] == -2

    @pytest.mark.parametrize("level_number", ["3", True, 2.5])
    def test_generate_mistyped_level(self, client, level_number):
        """Test that a mistyped level reaches the worker unchanged and is rejected."""
        response = client.post("/api/generate", json={"type": "generate", "levelNumber": level_number, **SCREEN})
        assert response.status_code == 200
        data = response.json()
        assert data["type"] == "error"
        assert data["levelNumber"] == level_number
        assert type(data["levelNumber"]) is type(level_number)

    def test_generate_object_level_rejected(self, client):
        """Test that a structured level number fails request validation."""
        response = client.post("/api/generate", json={"type": "generate", "levelNumber": {"n": 1}, **SCREEN})
        assert response.status_code == 422

    def test_generate_schema_types(self, client):
        """Test that the message fields are documented with concrete types."""
        schema = client.get("/openapi.json").json()["components"]["schemas"]["GenerateMessage"]
        level = schema["properties"]["levelNumber"]["anyOf"]
        assert {"type": "integer"} in level
        assert {"type": "string"} in level
        assert {"type": "null"} in level
        assert "anyOf" in schema["properties"]["requestId"]

    def test_generate_then_analyze(self, client):
        """Test that a generated board analyzes as solvable."""
        level = client.post("/api/generate", json={"type": "generate", "levelNumber": 1, **SCREEN}).json()
        response = client.post("/api/analyze", json={"blocks": level["levelData"]["blocks"], **SCREEN})
        assert response.status_code == 200
        data = response.json()
        assert data["solvable"] is True
        assert data["facing_deadlocks"] == []


class TestAnalyzeEndpoint:
    """Test analyze endpoints."""

    def test_analyze_chain(self, client, chain_blocks):
        """Test analysis of a three-block chain."""
        response = client.post("/api/analyze", json={"blocks": chain_blocks, **SCREEN})
        assert response.status_code == 200
        data = response.json()
        assert 0 <= data["score"] <= 100
        assert data["grade"] in ("S", "A", "B", "C", "D")
        assert data["solvable"] is True
        assert data["depth"]["max_depth"] == 2
        assert data["depth"]["removable_count"] == 1
        assert data["graph"]["block_count"] == 3
        assert data["verdict"] is None

    def test_analyze_with_level(self, client, chain_blocks):
        """Test that a level number adds the acceptance verdict."""
        response = client.post(
            "/api/analyze", json={"blocks": chain_blocks, "level_number": 1, **SCREEN}
        )
        assert response.status_code == 200
        verdict = response.json()["verdict"]
        assert set(verdict) == {"ok", "distance", "reasons"}

    def test_analyze_facing_pair(self, client, facing_blocks):
        """Test that a facing pair is reported as unsolvable."""
        response = client.post("/api/analyze", json={"blocks": facing_blocks, **SCREEN})
        assert response.status_code == 200
        data = response.json()
        assert data["solvable"] is False
        assert len(data["facing_deadlocks"]) == 1
        assert data["facing_deadlocks"][0]["pair"] == [1, 2]
        assert any("facing pair" in issue for issue in data["issues"])

    def test_analyze_empty_board(self, client):
        """Test analysis of a board without blocks."""
        response = client.post("/api/analyze", json={"blocks": [], **SCREEN})
        assert response.status_code == 200
        data = response.json()
        assert data["solvable"] is True
        assert data["depth"]["removable_count"] == 0

    def test_analyze_missing_position(self, client):
        """Test that a block without a position is rejected."""
        response = client.post("/api/analyze", json={"blocks": [{"id": 1, "direction": 0}], **SCREEN})
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Analysis failed")

    def test_analyze_invalid_direction(self, client):
        """Test that a direction outside 0-3 fails validation."""
        response = client.post(
            "/api/analyze",
            json={"blocks": [{"id": 1, "x": 10, "y": 10, "direction": 7}], **SCREEN},
        )
        assert response.status_code == 422

    def test_analyze_negative_screen(self, client, chain_blocks):
        """Test that a negative screen size fails validation."""
        response = client.post(
            "/api/analyze", json={"blocks": chain_blocks, "screenWidth": -1, "screenHeight": 700}
        )
        assert response.status_code == 422

    def test_hint_chain(self, client, chain_blocks):
        """Test the hint on a chain points at the free end."""
        response = client.post("/api/analyze/hint", json={"blocks": chain_blocks, **SCREEN})
        assert response.status_code == 200
        data = response.json()
        assert data["block_id"] == 12
        assert data["depth"] == 0
        assert data["solution_path"] == [12, 11, 10]
        assert data["deadlocked"] is False

    def test_hint_deadlock(self, client, facing_blocks):
        """Test the hint on a deadlocked board."""
        response = client.post("/api/analyze/hint", json={"blocks": facing_blocks, **SCREEN})
        assert response.status_code == 200
        data = response.json()
        assert data["block_id"] is None
        assert data["solution_path"] is None
        assert data["deadlocked"] is True

    def test_hint_duplicate_ids(self, client, chain_blocks):
        """Test that duplicate block ids are rejected."""
        blocks = chain_blocks + [dict(chain_blocks[0])]
        response = client.post("/api/analyze/hint", json={"blocks": blocks, **SCREEN})
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Hint failed")


class TestLevelingEndpoints:
    """Test leveling curve endpoints."""

    def test_config(self, client):
        """Test the static curve description."""
        response = client.get("/api/leveling/config")
        assert response.status_code == 200
        data = response.json()
        assert data["cycle_length"] == 5
        assert data["lane"]["phases"][0]["name"] == "tutorial"

    def test_level(self, client):
        """Test one resolved level."""
        response = client.get("/api/leveling/level/3")
        assert response.status_code == 200
        data = response.json()
        assert data["level_number"] == 3
        assert data["reverse_fill"]["block_count"] == 126

    def test_level_invalid(self, client):
        """Test that level 0 is rejected."""
        response = client.get("/api/leveling/level/0")
        assert response.status_code == 400

    def test_progression(self, client):
        """Test a short progression."""
        response = client.get("/api/leveling/progression", params={"start_level": 4, "count": 3})
        assert response.status_code == 200
        data = response.json()
        assert [p["level_number"] for p in data] == [4, 5, 6]
        assert data[1]["is_relief_level"] is True

    def test_progression_bounds(self, client):
        """Test that the count is bounded."""
        response = client.get("/api/leveling/progression", params={"count": 0})
        assert response.status_code == 422
