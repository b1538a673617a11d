"""Reference and data-flow engine."""

from taskweave.flow.context import FlowContext
from taskweave.flow.decorators import (
    ExtensionDecorator,
    FileNameDecorator,
    MetadataDecorator,
    RefDecorator,
    TimestampedFileNameDecorator,
    TokenDecorator,
    apply_decorators,
)
from taskweave.flow.errors import (
    ArtifactMissingError,
    CommandExecutionError,
    DecorationError,
    DiscoveryError,
    DuplicateTaskError,
    ExecutionDirectoryError,
    FlowError,
    PersistenceError,
    ReferenceNotFoundError,
    UnknownTaskError,
)
from taskweave.flow.isolation import ExecutionDirectory
from taskweave.flow.references import ContentType, Reference, TaskLog, TransformMetadata

__all__ = [
    "ArtifactMissingError",
    "CommandExecutionError",
    "ContentType",
    "DecorationError",
    "DiscoveryError",
    "DuplicateTaskError",
    "ExecutionDirectory",
    "ExecutionDirectoryError",
    "ExtensionDecorator",
    "FileNameDecorator",
    "FlowContext",
    "FlowError",
    "MetadataDecorator",
    "PersistenceError",
    "RefDecorator",
    "Reference",
    "ReferenceNotFoundError",
    "TaskLog",
    "TimestampedFileNameDecorator",
    "TokenDecorator",
    "TransformMetadata",
    "UnknownTaskError",
    "apply_decorators",
]
