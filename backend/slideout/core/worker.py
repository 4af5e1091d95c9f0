"""Message boundary: runs generation off the event loop and never raises."""
import asyncio
import time
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Any, Optional

from ..models.level import GeneratorStrategy
from .generator import LevelGenerator, get_generator
from ..utils.helpers import validate_level_data

logger = logging.getLogger(__name__)

GENERATE = "generate"
LEVEL_READY = "levelReady"
ERROR = "error"


class GenerationWorker:
    """Turns ``generate`` messages into ``levelReady`` or ``error`` replies.

    Every call builds its own grid and random stream, so requests can run
    side by side on the pool without locking.
    """

    def __init__(self, generator: Optional[LevelGenerator] = None, max_workers: int = 2):
        self.generator = generator or get_generator()
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="levelgen")

    def process(self, message: Dict[str, Any]) -> Dict[str, Any]:
        """Handle one message synchronously. Failures become ``error`` replies."""
        start_time = time.time()
        if not isinstance(message, dict):
            return _error(None, None, f"Message must be an object, got {type(message).__name__}")

        request_id = message.get("requestId")
        level_number = message.get("levelNumber")
        msg_type = message.get("type")
        if msg_type != GENERATE:
            return _error(request_id, level_number, f"Unknown message type: {msg_type!r}")

        try:
            for key in ("levelNumber", "screenWidth", "screenHeight"):
                if key not in message:
                    raise ValueError(f"Missing field: {key}")
            strategy = GeneratorStrategy.LANE_UNIFORM if message.get("useOldAlgorithm") else None
            result = self.generator.generate(
                level_number,
                message["screenWidth"],
                message["screenHeight"],
                strategy=strategy,
            )
        except Exception as e:
            logger.exception("Generation failed for level %r (request %r)", level_number, request_id)
            return _error(request_id, level_number, str(e) or type(e).__name__)

        level_data = result.board.to_payload()
        is_valid, problem = validate_level_data(level_data)
        if not is_valid:
            logger.error("Level %r produced a malformed payload: %s", level_number, problem)
            return _error(request_id, level_number, f"Malformed level data: {problem}")

        duration = int((time.time() - start_time) * 1000)
        return {
            "type": LEVEL_READY,
            "requestId": request_id,
            "levelNumber": level_number,
            "levelData": level_data,
            "duration": duration,
        }

    async def handle_message(self, message: Dict[str, Any]) -> Dict[str, Any]:
        """Run ``process`` on the worker pool and await the reply."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.process, message)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


def _error(request_id: Any, level_number: Any, error: str) -> Dict[str, Any]:
    return {
        "type": ERROR,
        "requestId": request_id,
        "levelNumber": level_number,
        "error": error,
    }


# Singleton instance
_worker: Optional[GenerationWorker] = None


def get_worker() -> GenerationWorker:
    """Get or create generation worker singleton instance."""
    global _worker
    if _worker is None:
        from ..config import get_settings

        _worker = GenerationWorker(max_workers=get_settings().worker_threads)
    return _worker
