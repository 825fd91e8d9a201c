"""Regraft upgrade core – regenerate-and-merge workflow over git.

This package provides:

- :class:`UpgradeSessionOrchestrator` – The phase-by-phase upgrade workflow
- :class:`VersionResolver` – Current, target and plugin version resolution
- :class:`BranchLifecycleManager` – Isolation branch and merge-back
- :class:`RegenerationEngine` – Working tree cleanup, regeneration and commit
- :class:`ProcessRunner` – External command execution
"""

from regraft.upgrade.branches import BranchLifecycleManager
from regraft.upgrade.exceptions import (
    CommandFailedError,
    ConfigurationError,
    DirtyWorkingTreeError,
    NetworkError,
    NoUpdateAvailableError,
    PluginResolutionError,
    RegenerationFailedError,
    UpgradeEnvironmentError,
    UpgradeError,
)
from regraft.upgrade.models import (
    GLOBAL_VERSION,
    LATEST_VERSION,
    BranchState,
    MergeResult,
    Plugin,
    RegenerationRequest,
    UpgradeSession,
)
from regraft.upgrade.orchestrator import (
    UpgradeOptions,
    UpgradeReport,
    UpgradeSessionOrchestrator,
)
from regraft.upgrade.regeneration import RegenerationEngine, clean_working_tree
from regraft.upgrade.resolver import VersionResolver, check_update_available, parse_plugin_pins
from regraft.upgrade.runner import CommandResult, ProcessRunner

__all__ = [
    "GLOBAL_VERSION",
    "LATEST_VERSION",
    "BranchLifecycleManager",
    "BranchState",
    "CommandFailedError",
    "CommandResult",
    "ConfigurationError",
    "DirtyWorkingTreeError",
    "MergeResult",
    "NetworkError",
    "NoUpdateAvailableError",
    "Plugin",
    "PluginResolutionError",
    "ProcessRunner",
    "RegenerationEngine",
    "RegenerationFailedError",
    "RegenerationRequest",
    "UpgradeEnvironmentError",
    "UpgradeError",
    "UpgradeOptions",
    "UpgradeReport",
    "UpgradeSession",
    "UpgradeSessionOrchestrator",
    "VersionResolver",
    "check_update_available",
    "clean_working_tree",
    "parse_plugin_pins",
]
