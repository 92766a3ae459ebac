import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
TESTS_DIR = PROJECT_ROOT / "tests"
for path in (PROJECT_ROOT, SRC_DIR, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def close_calls(monkeypatch: pytest.MonkeyPatch) -> list:
    """Record every ``ChunkSink.close`` call made during a test."""
    from voice_studio.services.stream_relay import ChunkSink

    calls: list = []
    real_close = ChunkSink.close

    async def counting_close(self, error=None):
        calls.append(error)
        await real_close(self, error)

    monkeypatch.setattr(ChunkSink, "close", counting_close)
    return calls
