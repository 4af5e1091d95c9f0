"""Tests for the generation message boundary."""
import asyncio

import pytest

from slideout.core.generator import LevelGenerator
from slideout.core.worker import GenerationWorker, get_worker


@pytest.fixture(scope="module")
def worker():
    """Create worker instance with its own generator."""
    worker = GenerationWorker(LevelGenerator(), max_workers=2)
    yield worker
    worker.shutdown()


def generate_message(**overrides):
    message = {
        "type": "generate",
        "levelNumber": 1,
        "screenWidth": 400,
        "screenHeight": 700,
        "requestId": "req-1",
    }
    message.update(overrides)
    return message


class TestGenerationWorker:
    """Test cases for GenerationWorker."""

    def test_level_ready(self, worker):
        """Test the reply to a valid generate message."""
        reply = worker.process(generate_message())

        assert reply["type"] == "levelReady"
        assert reply["requestId"] == "req-1"
        assert reply["levelNumber"] == 1
        assert reply["duration"] >= 0
        level_data = reply["levelData"]
        assert level_data["total"] == len(level_data["blocks"])
        assert 0 < level_data["total"] <= 6

    def test_handle_message_async(self, worker):
        """Test that the async entry point runs on the pool."""
        reply = asyncio.run(worker.handle_message(generate_message(requestId=7)))

        assert reply["type"] == "levelReady"
        assert reply["requestId"] == 7

    def test_concurrent_requests(self, worker):
        """Test that parallel requests get their own replies."""
        async def run_both():
            return await asyncio.gather(
                worker.handle_message(generate_message(requestId="a")),
                worker.handle_message(generate_message(requestId="b")),
            )

        first, second = asyncio.run(run_both())
        assert (first["requestId"], second["requestId"]) == ("a", "b")
        assert first["levelData"] == second["levelData"]

    def test_old_algorithm(self, worker):
        """Test that useOldAlgorithm selects the lane-uniform generator."""
        reply = worker.process(generate_message(useOldAlgorithm=True))

        assert reply["type"] == "levelReady"
        assert reply["levelData"]["total"] > 6

    def test_unknown_type(self, worker):
        """Test that other message types are answered with an error."""
        reply = worker.process(generate_message(type="ping"))

        assert reply["type"] == "error"
        assert reply["requestId"] == "req-1"
        assert "ping" in reply["error"]

    def test_missing_field(self, worker):
        """Test that a missing dimension is reported."""
        message = generate_message()
        del message["screenHeight"]
        reply = worker.process(message)

        assert reply["type"] == "error"
        assert reply["levelNumber"] == 1
        assert "screenHeight" in reply["error"]

    def test_invalid_level(self, worker):
        """Test that a bad level number becomes an error reply."""
        reply = worker.process(generate_message(levelNumber=0))

        assert reply["type"] == "error"
        assert reply["levelNumber"] == 0
        assert "level_number" in reply["error"]

    def test_negative_dimensions(self, worker):
        """Test that a negative screen size becomes an error reply."""
        reply = worker.process(generate_message(screenWidth=-5))

        assert reply["type"] == "error"
        assert "screenWidth" in reply["error"]

    def test_non_dict_message(self, worker):
        """Test that a message that is not an object is rejected."""
        reply = worker.process(["generate"])

        assert reply["type"] == "error"
        assert reply["requestId"] is None
        assert "list" in reply["error"]

    def test_zero_size_screen(self, worker):
        """Test that a zero-width screen gives an empty level."""
        reply = worker.process(generate_message(screenWidth=0))

        assert reply["type"] == "levelReady"
        assert reply["levelData"] == {"blocks": [], "total": 0}

    def test_get_worker_singleton(self):
        """Test that get_worker returns a shared instance."""
        assert get_worker() is get_worker()
