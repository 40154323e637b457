"""Storage, notification and checkpoint collaborators of the pipeline."""
from .checkpoints import (
    CheckpointStore,
    FileCheckpointStore,
    MemoryCheckpointStore,
    RedisCheckpointStore,
    create_checkpoint_store,
)
from .events import EventPublisher, EventSink, FanoutEventSink, InMemoryEventSink, LoggingEventSink
from .file_source import FileSource, FileStorage, InMemoryStorage, LocalDirectoryStorage

__all__ = [
    "CheckpointStore",
    "FileCheckpointStore",
    "MemoryCheckpointStore",
    "RedisCheckpointStore",
    "create_checkpoint_store",
    "EventPublisher",
    "EventSink",
    "FanoutEventSink",
    "InMemoryEventSink",
    "LoggingEventSink",
    "FileSource",
    "FileStorage",
    "InMemoryStorage",
    "LocalDirectoryStorage",
]
