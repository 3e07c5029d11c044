"""Public APIs for the archival conversion engine."""

from __future__ import annotations

from .models import (
    AttemptRecord,
    ConversionError,
    ConversionOutcome,
    ConversionStatus,
    ConversionStep,
    ErrorKind,
    IdentifiedFile,
    TableLockedError,
    TableNotSeededError,
    UnresolvableTargetError,
)
from .variants import ConversionJob, ConverterVariant, capability_map
from .probe import current_host_os, is_usable
from .registry import ConverterRegistry, default_registry
from .resolution import (
    KEEP_ORIGINAL,
    FolderOverride,
    FormatResolutionTable,
    SettingsEntry,
)
from .routes import plan_routes
from .settings import (
    ConversionSettings,
    SettingsError,
    load_settings,
    seeded_table,
)
from .manager import BatchSummary, ConversionManager
from .manifest import ManifestError, load_manifest
from .report import write_report
from .archive import ArchiveError, compress_outputs
from .config import (
    ConfigOverrides,
    ConvertConfig,
    LoadResult,
    PreserveConfigError,
    load_config,
)

__all__ = [
    "AttemptRecord",
    "ConversionError",
    "ConversionOutcome",
    "ConversionStatus",
    "ConversionStep",
    "ErrorKind",
    "IdentifiedFile",
    "TableLockedError",
    "TableNotSeededError",
    "UnresolvableTargetError",
    "ConversionJob",
    "ConverterVariant",
    "capability_map",
    "current_host_os",
    "is_usable",
    "ConverterRegistry",
    "default_registry",
    "KEEP_ORIGINAL",
    "FolderOverride",
    "FormatResolutionTable",
    "SettingsEntry",
    "plan_routes",
    "ConversionSettings",
    "SettingsError",
    "load_settings",
    "seeded_table",
    "BatchSummary",
    "ConversionManager",
    "ManifestError",
    "load_manifest",
    "write_report",
    "ArchiveError",
    "compress_outputs",
    "ConfigOverrides",
    "ConvertConfig",
    "LoadResult",
    "PreserveConfigError",
    "load_config",
]
