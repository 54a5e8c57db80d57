"""Heuristic detection of architectural and style conventions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Mapping, Sequence

from repo_memory.ingest.filters import file_name
from repo_memory.ingest.scanner import DirectoryInfo, KeyFile
from repo_memory.memory.models import DetectedPattern

Priority = Literal["high", "medium", "low"]

_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

_PASCAL_CASE_RE = re.compile(r"^[A-Z][a-z]+(?:[A-Z][a-z]+)*\.(?:tsx?|jsx?)$")
_KEBAB_CASE_RE = re.compile(r"^[a-z]+(?:-[a-z]+)+\.(?:ts|js|vue)$")
_TEST_SUFFIX_RE = re.compile(r"\.(test|spec)\.(?:ts|js|tsx|jsx)$")

MIN_PASCAL_FILES = 5
MIN_KEBAB_FILES = 5
MIN_TEST_FILES = 3
MIN_BARREL_FILES = 3


@dataclass(slots=True, frozen=True)
class PatternSuggestion:
    pattern: str
    reason: str
    priority: Priority

    def to_dict(self) -> dict[str, str]:
        return {"pattern": self.pattern, "reason": self.reason, "priority": self.priority}


def analyze_patterns(
    directories: Mapping[str, DirectoryInfo],
    key_files: Sequence[KeyFile | str],
    languages: Sequence[str],
) -> list[DetectedPattern]:
    """Run every rule set over a scanned tree; each rule contributes at most one pattern."""
    files = _collect_files(directories, key_files)
    patterns: list[DetectedPattern] = []
    patterns.extend(detect_architecture_patterns(directories))
    patterns.extend(detect_naming_patterns(files))
    patterns.extend(detect_testing_patterns(directories))
    patterns.extend(detect_error_handling_patterns(directories))
    patterns.extend(detect_api_patterns(directories))
    patterns.extend(detect_state_patterns(directories))
    return patterns


def _collect_files(directories: Mapping[str, DirectoryInfo], key_files: Sequence[KeyFile | str]) -> list[str]:
    files: list[str] = []
    for path, info in directories.items():
        files.extend(f"{path}/{name}" for name in info.files)
    for key_file in key_files:
        files.append(key_file if isinstance(key_file, str) else key_file.path)
    return list(dict.fromkeys(files))


def _basenames(directories: Mapping[str, DirectoryInfo]) -> set[str]:
    return {file_name(path).lower() for path in directories}


def _segments(directories: Mapping[str, DirectoryInfo]) -> list[list[str]]:
    return [path.lower().split("/") for path in directories]


def _any_segment(directories: Mapping[str, DirectoryInfo], *needles: str) -> list[str]:
    """Directories with a path segment containing any of ``needles``."""
    return [
        path
        for path in directories
        if any(needle in segment for segment in path.lower().split("/") for needle in needles)
    ]


def detect_architecture_patterns(directories: Mapping[str, DirectoryInfo]) -> list[DetectedPattern]:
    names = _basenames(directories)
    top_level = {path.lower() for path in directories if "/" not in path}
    patterns: list[DetectedPattern] = []

    if "apps" in top_level and "packages" in top_level:
        patterns.append(
            DetectedPattern(
                category="architecture",
                name="Monorepo Structure",
                description="This codebase uses a monorepo architecture with separate apps and shared packages.",
                confidence=0.95,
                examples=[
                    {"file": "apps/", "snippet": "Contains individual applications"},
                    {"file": "packages/", "snippet": "Contains shared libraries"},
                ],
            )
        )

    if {"controllers", "models", "views"} <= names:
        patterns.append(
            DetectedPattern(
                category="architecture",
                name="MVC Architecture",
                description="This codebase follows the Model-View-Controller architectural pattern.",
                confidence=0.9,
                examples=[
                    {"file": "controllers/", "snippet": "Request handlers"},
                    {"file": "models/", "snippet": "Data models"},
                    {"file": "views/", "snippet": "Template views"},
                ],
            )
        )

    if names & {"domain", "entities"} and names & {"use-cases", "usecases", "application"}:
        patterns.append(
            DetectedPattern(
                category="architecture",
                name="Clean Architecture",
                description="This codebase follows Clean/Hexagonal architecture with separate domain and use-case layers.",
                confidence=0.85,
                examples=[
                    {"file": "domain/", "snippet": "Core business entities"},
                    {"file": "use-cases/", "snippet": "Application business rules"},
                ],
            )
        )

    if names & {"features", "modules"}:
        patterns.append(
            DetectedPattern(
                category="architecture",
                name="Feature-Based Structure",
                description="This codebase organizes code by feature or module rather than by type.",
                confidence=0.85,
                examples=[{"file": "features/", "snippet": "Self-contained feature modules"}],
            )
        )

    if "services" in names:
        with_handlers = bool(names & {"controllers", "routes"})
        patterns.append(
            DetectedPattern(
                category="architecture",
                name="Service Layer Pattern",
                description="Business logic is encapsulated in service classes, separate from request handling.",
                confidence=0.85 if with_handlers else 0.7,
                examples=[{"file": "services/", "snippet": "Business logic services"}],
            )
        )

    if "components" in names and names & {"pages", "views"}:
        patterns.append(
            DetectedPattern(
                category="architecture",
                name="Component-Based UI",
                description="UI is built from reusable components composed into pages.",
                confidence=0.9,
                examples=[
                    {"file": "components/", "snippet": "Reusable UI components"},
                    {"file": "pages/", "snippet": "Page-level components"},
                ],
            )
        )

    return patterns


def detect_naming_patterns(files: Sequence[str]) -> list[DetectedPattern]:
    names = [file_name(path) for path in files]
    patterns: list[DetectedPattern] = []

    pascal = [name for name in names if _PASCAL_CASE_RE.match(name)]
    if len(pascal) > MIN_PASCAL_FILES:
        patterns.append(
            DetectedPattern(
                category="naming",
                name="PascalCase Components",
                description="React/Vue components use PascalCase naming convention.",
                confidence=0.9,
                examples=[{"file": name} for name in pascal[:3]],
            )
        )

    kebab = [name for name in names if _KEBAB_CASE_RE.match(name)]
    if len(kebab) > MIN_KEBAB_FILES:
        patterns.append(
            DetectedPattern(
                category="naming",
                name="kebab-case Files",
                description="Files use kebab-case naming convention.",
                confidence=0.85,
                examples=[{"file": name} for name in kebab[:3]],
            )
        )

    tests = [name for name in names if _TEST_SUFFIX_RE.search(name)]
    if len(tests) > MIN_TEST_FILES:
        suffix = ".spec." if ".spec." in tests[0] else ".test."
        patterns.append(
            DetectedPattern(
                category="naming",
                name="Test File Suffix",
                description=f"Test files use {suffix} suffix convention.",
                confidence=0.95,
                examples=[{"file": name} for name in tests[:3]],
            )
        )

    barrels = [path for path in files if path.endswith(("/index.ts", "/index.js"))]
    if len(barrels) > MIN_BARREL_FILES:
        patterns.append(
            DetectedPattern(
                category="naming",
                name="Barrel Exports",
                description="Directories use index files for barrel exports.",
                confidence=0.9,
                examples=[{"file": path} for path in barrels[:3]],
            )
        )

    return patterns


def detect_testing_patterns(directories: Mapping[str, DirectoryInfo]) -> list[DetectedPattern]:
    patterns: list[DetectedPattern] = []

    colocated = [path for path in directories if "__tests__" in path.split("/")]
    if colocated:
        patterns.append(
            DetectedPattern(
                category="testing",
                name="Colocated Tests",
                description="Tests are colocated with source code in __tests__ directories.",
                confidence=0.9,
                examples=[{"file": path} for path in colocated[:3]],
            )
        )

    separate = [path for path in directories if file_name(path).lower() in ("tests", "test", "spec")]
    if separate:
        patterns.append(
            DetectedPattern(
                category="testing",
                name="Separate Test Directory",
                description="Tests are organized in a separate tests directory.",
                confidence=0.85,
                examples=[{"file": f"{path}/"} for path in separate[:3]],
            )
        )

    e2e = _any_segment(directories, "e2e", "integration")
    if e2e:
        patterns.append(
            DetectedPattern(
                category="testing",
                name="E2E/Integration Tests",
                description="End-to-end or integration tests are maintained separately.",
                confidence=0.85,
                examples=[{"file": f"{path}/"} for path in e2e[:3]],
            )
        )

    fixtures = _any_segment(directories, "fixtures", "mocks")
    if fixtures:
        patterns.append(
            DetectedPattern(
                category="testing",
                name="Test Fixtures",
                description="Test fixtures and mocks are organized in dedicated directories.",
                confidence=0.8,
                examples=[{"file": f"{path}/"} for path in fixtures[:3]],
            )
        )

    return patterns


def detect_error_handling_patterns(directories: Mapping[str, DirectoryInfo]) -> list[DetectedPattern]:
    error_dirs = [path for path in directories if file_name(path).lower() in ("errors", "exceptions")]
    if not error_dirs:
        return []
    return [
        DetectedPattern(
            category="error-handling",
            name="Centralized Error Types",
            description="Error and exception types are defined in a dedicated module.",
            confidence=0.75,
            examples=[{"file": f"{path}/"} for path in error_dirs[:3]],
        )
    ]


def detect_api_patterns(directories: Mapping[str, DirectoryInfo]) -> list[DetectedPattern]:
    segments = _segments(directories)
    patterns: list[DetectedPattern] = []

    api_dirs = [path for path, parts in zip(directories, segments) if "api" in parts]
    if api_dirs:
        patterns.append(
            DetectedPattern(
                category="api",
                name="REST API Structure",
                description="API endpoints are organized under an api directory.",
                confidence=0.85,
                examples=[{"file": f"{path}/"} for path in api_dirs[:3]],
            )
        )

    app_router = [
        path
        for path, parts in zip(directories, segments)
        if any(parts[i] == "app" and parts[i + 1] == "api" for i in range(len(parts) - 1))
    ]
    if app_router:
        patterns.append(
            DetectedPattern(
                category="api",
                name="Next.js App Router API",
                description="API routes follow Next.js App Router convention with route.ts files.",
                confidence=0.9,
                examples=[{"file": f"{path}/"} for path in app_router[:3]],
            )
        )

    graphql = _any_segment(directories, "graphql", "schema")
    if graphql:
        patterns.append(
            DetectedPattern(
                category="api",
                name="GraphQL API",
                description="API uses GraphQL with organized schema and resolver files.",
                confidence=0.8,
                examples=[{"file": f"{path}/"} for path in graphql[:3]],
            )
        )

    trpc = _any_segment(directories, "trpc", "routers")
    if trpc:
        patterns.append(
            DetectedPattern(
                category="api",
                name="tRPC API",
                description="Type-safe API using tRPC with organized routers.",
                confidence=0.75,
                examples=[{"file": f"{path}/"} for path in trpc[:3]],
            )
        )

    return patterns


def detect_state_patterns(directories: Mapping[str, DirectoryInfo]) -> list[DetectedPattern]:
    patterns: list[DetectedPattern] = []

    stores = _any_segment(directories, "store", "redux")
    reducers = _any_segment(directories, "reducers", "slices")
    if stores and reducers:
        patterns.append(
            DetectedPattern(
                category="state",
                name="Redux State Management",
                description="Application state is managed using Redux with organized slices/reducers.",
                confidence=0.85,
                examples=[{"file": f"{stores[0]}/"}, {"file": f"{reducers[0]}/"}],
            )
        )

    contexts = _any_segment(directories, "contexts", "providers")
    if contexts:
        patterns.append(
            DetectedPattern(
                category="state",
                name="Context-Based State",
                description="State is managed using React Context with organized context providers.",
                confidence=0.8,
                examples=[{"file": f"{path}/"} for path in contexts[:3]],
            )
        )

    store_dirs = _any_segment(directories, "stores")
    if store_dirs:
        patterns.append(
            DetectedPattern(
                category="state",
                name="Store-Based State",
                description="State is managed using store pattern (Zustand, Jotai, or similar).",
                confidence=0.75,
                examples=[{"file": f"{path}/"} for path in store_dirs[:3]],
            )
        )

    hooks = _any_segment(directories, "hooks")
    if hooks:
        patterns.append(
            DetectedPattern(
                category="state",
                name="Custom Hooks",
                description="Custom React hooks are used for reusable stateful logic.",
                confidence=0.85,
                examples=[{"file": f"{path}/"} for path in hooks[:3]],
            )
        )

    return patterns


def suggest_patterns(patterns: Sequence[DetectedPattern], languages: Sequence[str]) -> list[PatternSuggestion]:
    """Compare detected patterns against a best-practice checklist, highest priority first."""

    def has(fragment: str) -> bool:
        fragment = fragment.lower()
        return any(fragment in pattern.name.lower() for pattern in patterns)

    langs = {language.lower() for language in languages}
    suggestions: list[PatternSuggestion] = []

    if not has("barrel") and (not langs or langs & {"typescript", "javascript"}):
        suggestions.append(
            PatternSuggestion(
                pattern="Barrel Exports",
                reason="Consider using index.ts files to simplify imports and create clear module boundaries.",
                priority="low",
            )
        )
    if not has("test") and not has("spec"):
        suggestions.append(
            PatternSuggestion(
                pattern="Colocated Tests",
                reason="Consider adding tests colocated with source files for better maintainability.",
                priority="high",
            )
        )
    if has("mvc") and not has("service"):
        suggestions.append(
            PatternSuggestion(
                pattern="Service Layer",
                reason="Consider extracting business logic into services to keep controllers thin.",
                priority="medium",
            )
        )
    if not any(pattern.category == "error-handling" for pattern in patterns):
        suggestions.append(
            PatternSuggestion(
                pattern="Centralized Error Handling",
                reason="Consider defining error types in one module so failures are classified consistently.",
                priority="medium",
            )
        )

    suggestions.sort(key=lambda item: _PRIORITY_ORDER[item.priority])
    return suggestions


__all__ = [
    "PatternSuggestion",
    "analyze_patterns",
    "detect_architecture_patterns",
    "detect_naming_patterns",
    "detect_testing_patterns",
    "detect_error_handling_patterns",
    "detect_api_patterns",
    "detect_state_patterns",
    "suggest_patterns",
]
