"""
Checkpoint storage for pipeline state.

The orchestrator saves the full PipelineState after every merged stage;
resume() loads it back. Three backends:

- MemoryCheckpointStore: process-local, the default
- FileCheckpointStore: one JSON file per session (CLI runs)
- RedisCheckpointStore: redis.asyncio with in-memory fallback when the
  server cannot be reached
"""
from abc import ABC, abstractmethod
import asyncio
import logging
import os
from pathlib import Path
from typing import Dict, Optional

import redis.asyncio as redis

from configs import CHECKPOINT_DIR, CHECKPOINT_TTL_SECONDS, REDIS_URL
from lakeschema.models import PipelineState

logger = logging.getLogger("lakeschema.checkpoints")


class CheckpointStore(ABC):
    """Durable snapshots of pipeline state, keyed by session id."""

    @abstractmethod
    async def save(self, state: PipelineState) -> None:
        pass

    @abstractmethod
    async def load(self, session_id: str) -> Optional[PipelineState]:
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        pass


class MemoryCheckpointStore(CheckpointStore):
    """Stores serialized snapshots so callers never share a mutable state."""

    def __init__(self):
        self._snapshots: Dict[str, str] = {}

    async def save(self, state: PipelineState) -> None:
        self._snapshots[state.session_id] = state.model_dump_json()

    async def load(self, session_id: str) -> Optional[PipelineState]:
        raw = self._snapshots.get(session_id)
        return PipelineState.model_validate_json(raw) if raw else None

    async def delete(self, session_id: str) -> None:
        self._snapshots.pop(session_id, None)


class FileCheckpointStore(CheckpointStore):
    """One <session_id>.json file per session in a directory."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _path(self, session_id: str) -> Path:
        safe = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in session_id)
        return self.directory / f"{safe}.json"

    def _write(self, path: Path, data: str):
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(data, encoding="utf-8")
        os.replace(tmp, path)

    async def save(self, state: PipelineState) -> None:
        await asyncio.to_thread(self._write, self._path(state.session_id), state.model_dump_json(indent=2))

    async def load(self, session_id: str) -> Optional[PipelineState]:
        path = self._path(session_id)
        if not path.exists():
            return None
        raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        return PipelineState.model_validate_json(raw)

    async def delete(self, session_id: str) -> None:
        path = self._path(session_id)
        if path.exists():
            await asyncio.to_thread(path.unlink)


class RedisCheckpointStore(CheckpointStore):
    """
    Redis-backed checkpoints. Connects lazily; if Redis is unreachable the
    store logs a warning and keeps snapshots in memory instead.
    """

    KEY_PREFIX = "lakeschema:checkpoint:"

    def __init__(self, redis_url: str, ttl: int = CHECKPOINT_TTL_SECONDS):
        self.redis_url = redis_url
        self.ttl = ttl
        self.redis_client = None
        self.use_redis = False
        self._memory = MemoryCheckpointStore()
        self._initialized = False

    async def initialize(self):
        if self._initialized:
            return
        try:
            self.redis_client = redis.from_url(self.redis_url, decode_responses=True)
            await self.redis_client.ping()
            self.use_redis = True
            logger.info(f"✅ Redis checkpoint store connected: {self.redis_url}")
        except (redis.RedisError, OSError) as e:
            logger.warning(f"⚠️ Redis connection failed (falling back to memory): {e}")
            self.redis_client = None
            self.use_redis = False
        self._initialized = True

    async def save(self, state: PipelineState) -> None:
        await self.initialize()
        if self.use_redis:
            await self.redis_client.setex(self.KEY_PREFIX + state.session_id, self.ttl, state.model_dump_json())
        else:
            await self._memory.save(state)

    async def load(self, session_id: str) -> Optional[PipelineState]:
        await self.initialize()
        if self.use_redis:
            raw = await self.redis_client.get(self.KEY_PREFIX + session_id)
            return PipelineState.model_validate_json(raw) if raw else None
        return await self._memory.load(session_id)

    async def delete(self, session_id: str) -> None:
        await self.initialize()
        if self.use_redis:
            await self.redis_client.delete(self.KEY_PREFIX + session_id)
        else:
            await self._memory.delete(session_id)


def create_checkpoint_store(redis_url: str = REDIS_URL, checkpoint_dir: str = CHECKPOINT_DIR) -> CheckpointStore:
    """Redis if REDIS_URL is set, else a checkpoint directory if configured, else memory."""
    if redis_url:
        return RedisCheckpointStore(redis_url)
    if checkpoint_dir:
        return FileCheckpointStore(checkpoint_dir)
    logger.info("ℹ️ No REDIS_URL or CHECKPOINT_DIR found. Using in-memory checkpoints.")
    return MemoryCheckpointStore()
