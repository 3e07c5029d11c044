"""Shared testing fixtures for the preserve_utils test suite."""

from .converters import StubConverter, identified  # noqa: F401
from .workspace import WorkspaceBuilder, build_tree  # noqa: F401

__all__ = [
    "StubConverter",
    "WorkspaceBuilder",
    "build_tree",
    "identified",
]
