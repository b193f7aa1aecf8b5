"""
Cleanup Scripts.

Registry of named data-quality checks over the catalog graph, with
optional automated fixes.
"""

from jinglegraph.cleanup.registry import (
    AutomationNotSupportedError,
    AutomationResult,
    AutomationResultItem,
    AutomationStatus,
    CleanupContext,
    CleanupScriptRegistry,
    EntityIssue,
    ScriptCategory,
    ScriptExecutionResult,
    ScriptMetadata,
    ScriptNotFoundError,
    Suggestion,
    SuggestionSummary,
    SuggestionType,
    create_cleanup_context,
)
from jinglegraph.cleanup.scripts import create_default_registry, register_default_scripts

__all__ = [
    # Registry
    "CleanupScriptRegistry",
    "CleanupContext",
    "create_cleanup_context",
    "create_default_registry",
    "register_default_scripts",
    # Results
    "ScriptMetadata",
    "ScriptCategory",
    "ScriptExecutionResult",
    "EntityIssue",
    "Suggestion",
    "SuggestionSummary",
    "SuggestionType",
    "AutomationResult",
    "AutomationResultItem",
    "AutomationStatus",
    # Errors
    "ScriptNotFoundError",
    "AutomationNotSupportedError",
]
