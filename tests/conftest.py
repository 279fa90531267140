"""Shared fixtures for linearray tests."""

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

WORD_COUNT = 200


@pytest.fixture
def words() -> list[bytes]:
    """Entries of the word-list fixture, without terminators."""
    return [f"word{i:03d}".encode() for i in range(WORD_COUNT)]


@pytest.fixture
def words_file(tmp_path: Path, words: list[bytes]) -> Path:
    """Word-list file, one entry per line, ending with a terminator."""
    path = tmp_path / "words.txt"
    path.write_bytes(b"".join(w + b"\n" for w in words))
    return path


@pytest.fixture
def make_file(tmp_path: Path) -> Callable[[bytes], Path]:
    """Factory writing raw bytes to a fresh file."""
    counter = iter(range(1_000_000))

    def _make(content: bytes, name: str | None = None) -> Path:
        path = tmp_path / (name or f"file{next(counter)}.txt")
        path.write_bytes(content)
        return path

    return _make


@pytest.fixture
def wait_until():
    """Poll a predicate on the event loop until it holds or time runs out."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.005)

    return _wait
