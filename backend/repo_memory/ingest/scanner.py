"""Repository structure scanning with framework and key-file detection."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Literal, Sequence

import orjson

from repo_memory.core.logging import get_logger
from repo_memory.ingest.filters import file_name, parent_directory
from repo_memory.ingest.types import TreeItem

logger = get_logger(__name__)

Importance = Literal["critical", "high", "medium"]

IMPORTANCE_ORDER: dict[str, int] = {"critical": 0, "high": 1, "medium": 2}
MAX_KEY_FILES = 50

# framework -> marker files and manifest dependency names
FRAMEWORK_INDICATORS: dict[str, dict[str, tuple[str, ...]]] = {
    "react": {"dependencies": ("react", "react-dom")},
    "next.js": {
        "files": ("next.config.js", "next.config.mjs", "next.config.ts"),
        "dependencies": ("next",),
    },
    "vue": {
        "files": ("vue.config.js", "nuxt.config.js", "nuxt.config.ts"),
        "dependencies": ("vue",),
    },
    "nuxt": {"files": ("nuxt.config.js", "nuxt.config.ts"), "dependencies": ("nuxt",)},
    "angular": {"files": ("angular.json",), "dependencies": ("@angular/core",)},
    "express": {"dependencies": ("express",)},
    "fastify": {"dependencies": ("fastify",)},
    "nest.js": {"dependencies": ("@nestjs/core",)},
    "django": {"files": ("manage.py", "django.conf")},
    "flask": {"files": ("app.py", "wsgi.py")},
    "rails": {"files": ("Gemfile", "config/routes.rb")},
    "spring-boot": {"files": ("pom.xml", "build.gradle")},
    "tailwindcss": {
        "files": ("tailwind.config.js", "tailwind.config.ts"),
        "dependencies": ("tailwindcss",),
    },
    "prisma": {
        "files": ("prisma/schema.prisma",),
        "dependencies": ("prisma", "@prisma/client"),
    },
}

BUILD_TOOL_INDICATORS: dict[str, tuple[str, ...]] = {
    "webpack": ("webpack.config.js", "webpack.config.ts"),
    "vite": ("vite.config.js", "vite.config.ts", "vite.config.mjs"),
    "rollup": ("rollup.config.js", "rollup.config.mjs"),
    "esbuild": ("esbuild.config.js",),
    "turbo": ("turbo.json",),
    "nx": ("nx.json",),
    "gradle": ("build.gradle", "build.gradle.kts"),
    "maven": ("pom.xml",),
    "cargo": ("Cargo.toml",),
    "make": ("Makefile",),
    "cmake": ("CMakeLists.txt",),
}

TESTING_INDICATORS: dict[str, dict[str, tuple[str, ...]]] = {
    "jest": {"files": ("jest.config.js", "jest.config.ts"), "dependencies": ("jest",)},
    "vitest": {"files": ("vitest.config.js", "vitest.config.ts"), "dependencies": ("vitest",)},
    "mocha": {"files": (".mocharc.js", ".mocharc.json"), "dependencies": ("mocha",)},
    "pytest": {"files": ("pytest.ini", "conftest.py")},
    "cypress": {"files": ("cypress.config.js", "cypress.config.ts"), "dependencies": ("cypress",)},
    "playwright": {
        "files": ("playwright.config.js", "playwright.config.ts"),
        "dependencies": ("@playwright/test",),
    },
    "rspec": {"files": ("spec/spec_helper.rb",)},
    "junit": {"files": ("src/test/java",)},
}

# checked in order; lockfiles win over the bare manifest they accompany
PACKAGE_MANAGER_MARKERS: tuple[tuple[str, str], ...] = (
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("bun.lockb", "bun"),
    ("package-lock.json", "npm"),
    ("package.json", "npm"),
    ("poetry.lock", "poetry"),
    ("requirements.txt", "pip"),
    ("pyproject.toml", "pip"),
    ("gemfile", "bundler"),
    ("go.mod", "go modules"),
    ("cargo.toml", "cargo"),
)

DIRECTORY_RESPONSIBILITIES: dict[str, str] = {
    "src": "Main source code",
    "lib": "Library/utility code",
    "utils": "Utility functions",
    "helpers": "Helper functions",
    "components": "UI components",
    "pages": "Page components/routes",
    "app": "Application core/routes",
    "api": "API routes/endpoints",
    "routes": "Route handlers",
    "controllers": "Request controllers",
    "services": "Business logic services",
    "models": "Data models",
    "entities": "Database entities",
    "schemas": "Schema definitions",
    "types": "Type definitions",
    "interfaces": "Interface definitions",
    "middleware": "Middleware functions",
    "hooks": "React/Vue hooks",
    "stores": "State management stores",
    "reducers": "Redux reducers",
    "actions": "Redux/Flux actions",
    "contexts": "React contexts",
    "providers": "Context providers",
    "layouts": "Layout components",
    "templates": "Template files",
    "views": "View templates",
    "public": "Static public assets",
    "static": "Static files",
    "assets": "Asset files",
    "images": "Image assets",
    "styles": "Stylesheet files",
    "css": "CSS stylesheets",
    "config": "Configuration files",
    "constants": "Constant definitions",
    "tests": "Test files",
    "__tests__": "Test files",
    "spec": "Test specifications",
    "scripts": "Build/automation scripts",
    "bin": "Executable scripts",
    "migrations": "Database migrations",
    "seeds": "Database seeds",
    "fixtures": "Test fixtures",
    "mocks": "Mock data/functions",
    "docs": "Documentation",
    "examples": "Example code",
    "packages": "Monorepo packages",
    "apps": "Monorepo applications",
    "workers": "Background workers",
    "jobs": "Background jobs",
    "queues": "Queue definitions",
    "handlers": "Event handlers",
    "events": "Event definitions",
    "prisma": "Prisma schema and migrations",
    "database": "Database-related code",
    "db": "Database-related code",
}


@dataclass(slots=True, frozen=True)
class KeyFileRule:
    pattern: str | re.Pattern[str]
    importance: Importance
    reason: str

    def matches(self, path: str) -> bool:
        if isinstance(self.pattern, str):
            return _has_path_suffix(path.lower(), self.pattern.lower())
        return self.pattern.search(path) is not None


KEY_FILE_RULES: tuple[KeyFileRule, ...] = (
    KeyFileRule("package.json", "critical", "Project configuration and dependencies"),
    KeyFileRule("tsconfig.json", "high", "TypeScript configuration"),
    KeyFileRule(re.compile(r".+\.config\.(js|ts|mjs)$"), "high", "Build/tool configuration"),
    KeyFileRule("README.md", "high", "Project documentation"),
    KeyFileRule(re.compile(r"prisma/schema\.prisma$"), "critical", "Database schema"),
    KeyFileRule(re.compile(r"Dockerfile$"), "high", "Container configuration"),
    KeyFileRule(re.compile(r"docker-compose\.ya?ml$"), "high", "Docker orchestration"),
    KeyFileRule(re.compile(r"\.env\.example$"), "medium", "Environment variable template"),
    KeyFileRule(re.compile(r"pyproject\.toml$"), "critical", "Python project configuration"),
    KeyFileRule(re.compile(r"(^|/)index\.(ts|js|tsx|jsx)$"), "medium", "Module entry point"),
    KeyFileRule(re.compile(r"(^|/)main\.(ts|js|py|go|rs)$"), "high", "Application entry point"),
    KeyFileRule(re.compile(r"(^|/)app\.(ts|js|tsx|jsx|py)$"), "high", "Application entry point"),
    KeyFileRule(re.compile(r"(^|/)routes?\.(ts|js)$"), "medium", "Route definitions"),
    KeyFileRule(re.compile(r"(^|/)schema\.(ts|js|graphql)$"), "high", "Schema definition"),
)

ENTRY_POINT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^src/index\.(ts|js|tsx|jsx)$"),
    re.compile(r"^src/main\.(ts|js|py|go|rs)$"),
    re.compile(r"^src/app\.(ts|js|tsx|jsx)$"),
    re.compile(r"^app/page\.(ts|js|tsx|jsx)$"),
    re.compile(r"^pages/index\.(ts|js|tsx|jsx)$"),
    re.compile(r"^index\.(ts|js|tsx|jsx)$"),
    re.compile(r"^main\.(ts|js|py|go|rs)$"),
    re.compile(r"^app\.py$"),
    re.compile(r"^server\.(ts|js)$"),
)


@dataclass(slots=True)
class DirectoryInfo:
    path: str
    responsibility: str | None
    files: list[str] = field(default_factory=list)
    subdirectories: list[str] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class KeyFile:
    path: str
    importance: Importance
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "importance": self.importance, "reason": self.reason}


@dataclass(slots=True)
class ScanResult:
    directories: dict[str, DirectoryInfo]
    directory_map: dict[str, dict[str, Any]]
    key_files: list[KeyFile]
    frameworks: list[str]
    build_tools: list[str]
    testing_frameworks: list[str]
    package_manager: str | None
    entry_points: list[str]
    files: list[str]
    summary: str
    architecture_summary: str


def scan_repository(tree: Sequence[TreeItem], default_branch: str = "main") -> ScanResult:
    """Classify a flat tree listing into directories, key files and detected tooling."""
    files = [item.path for item in tree if item.kind == "blob"]
    directories = _build_directories(files)

    frameworks = detect_frameworks(files)
    build_tools = detect_build_tools(files)
    testing_frameworks = detect_testing_frameworks(files)
    package_manager = detect_package_manager(files)
    key_files = find_key_files(files)
    entry_points = find_entry_points(files)

    directory_map = {
        path: {"responsibility": info.responsibility, "files": list(info.files), "exports": []}
        for path, info in directories.items()
        if info.responsibility
    }

    summary = _repository_summary(len(files), len(directory_map), frameworks, build_tools, package_manager)
    architecture_summary = _architecture_summary(directories, entry_points)
    logger.debug(
        "Scanned %s files on %s: %s directories, %s key files",
        len(files),
        default_branch,
        len(directories),
        len(key_files),
    )
    return ScanResult(
        directories=directories,
        directory_map=directory_map,
        key_files=key_files,
        frameworks=frameworks,
        build_tools=build_tools,
        testing_frameworks=testing_frameworks,
        package_manager=package_manager,
        entry_points=entry_points,
        files=files,
        summary=summary,
        architecture_summary=architecture_summary,
    )


def _build_directories(files: Sequence[str]) -> dict[str, DirectoryInfo]:
    directories: dict[str, DirectoryInfo] = {}
    for path in files:
        parts = path.split("/")
        current = ""
        for part in parts[:-1]:
            parent = current
            current = f"{current}/{part}" if current else part
            if current not in directories:
                directories[current] = DirectoryInfo(
                    path=current,
                    responsibility=DIRECTORY_RESPONSIBILITIES.get(part.lower()),
                )
                if parent:
                    directories[parent].subdirectories.append(part)
        if current:
            directories[current].files.append(parts[-1])
    return directories


def detect_frameworks(files: Sequence[str]) -> list[str]:
    lowered = [path.lower() for path in files]
    detected: list[str] = []
    for framework, indicators in FRAMEWORK_INDICATORS.items():
        markers = indicators.get("files", ())
        if any(_has_path_suffix(path, marker.lower()) for marker in markers for path in lowered):
            detected.append(framework)
    return detected


def detect_build_tools(files: Sequence[str]) -> list[str]:
    lowered = [path.lower() for path in files]
    return [
        tool
        for tool, markers in BUILD_TOOL_INDICATORS.items()
        if any(_has_path_suffix(path, marker.lower()) for marker in markers for path in lowered)
    ]


def detect_testing_frameworks(files: Sequence[str]) -> list[str]:
    lowered = [path.lower() for path in files]
    detected: list[str] = []
    for framework, indicators in TESTING_INDICATORS.items():
        markers = indicators.get("files", ())
        if any(marker.lower() in path for marker in markers for path in lowered):
            detected.append(framework)
    return detected


def detect_package_manager(files: Sequence[str]) -> str | None:
    root_files = {path.lower() for path in files if "/" not in path}
    for marker, manager in PACKAGE_MANAGER_MARKERS:
        if marker in root_files:
            return manager
    return None


def detect_manifest_frameworks(manifest_text: str) -> tuple[list[str], list[str]]:
    """Return ``(frameworks, testing_frameworks)`` declared as dependencies in a package.json body."""
    try:
        manifest = orjson.loads(manifest_text)
    except orjson.JSONDecodeError as exc:
        raise ValueError(f"package.json is not valid JSON: {exc}") from exc
    if not isinstance(manifest, dict):
        return [], []
    declared: set[str] = set()
    for section in ("dependencies", "devDependencies", "peerDependencies"):
        deps = manifest.get(section)
        if isinstance(deps, dict):
            declared.update(deps)
    frameworks = [
        name
        for name, indicators in FRAMEWORK_INDICATORS.items()
        if any(dep in declared for dep in indicators.get("dependencies", ()))
    ]
    testing = [
        name
        for name, indicators in TESTING_INDICATORS.items()
        if any(dep in declared for dep in indicators.get("dependencies", ()))
    ]
    return frameworks, testing


def find_key_files(files: Sequence[str]) -> list[KeyFile]:
    key_files: list[KeyFile] = []
    seen: set[str] = set()
    for path in files:
        if path in seen:
            continue
        for rule in KEY_FILE_RULES:
            if rule.matches(path):
                key_files.append(KeyFile(path=path, importance=rule.importance, reason=rule.reason))
                seen.add(path)
                break
    key_files.sort(key=lambda item: IMPORTANCE_ORDER[item.importance])
    return key_files[:MAX_KEY_FILES]


def find_entry_points(files: Sequence[str]) -> list[str]:
    return [path for path in files if any(pattern.match(path) for pattern in ENTRY_POINT_PATTERNS)]


def _has_path_suffix(path: str, marker: str) -> bool:
    return path == marker or path.endswith("/" + marker)


def _repository_summary(
    file_count: int,
    directory_count: int,
    frameworks: Sequence[str],
    build_tools: Sequence[str],
    package_manager: str | None,
) -> str:
    if file_count == 0:
        return ""
    parts = [f"This repository contains {file_count} files organized across {directory_count} directories."]
    if frameworks:
        parts.append(f"It uses {', '.join(frameworks)} as its main framework(s).")
    if build_tools:
        parts.append(f"Build tools include {', '.join(build_tools)}.")
    if package_manager:
        parts.append(f"Package management is handled by {package_manager}.")
    return " ".join(parts)


def _architecture_summary(directories: dict[str, DirectoryInfo], entry_points: Sequence[str]) -> str:
    names = {file_name(path).lower() for path in directories}
    top_level = {path.lower() for path in directories if not parent_directory(path)}
    parts: list[str] = []
    if "apps" in top_level and "packages" in top_level:
        parts.append("This is a monorepo with multiple applications and shared packages.")
    elif "components" in names and "pages" in names:
        parts.append("This follows a typical frontend application structure with components and pages.")
    elif "controllers" in names and "services" in names:
        parts.append("This follows an MVC or service-oriented architecture pattern.")
    elif "api" in names and "lib" in names:
        parts.append("This follows a modular architecture with API routes and library code.")
    if entry_points:
        parts.append(f"Main entry points: {', '.join(entry_points[:3])}.")
    return " ".join(parts)


__all__ = [
    "DirectoryInfo",
    "KeyFile",
    "ScanResult",
    "scan_repository",
    "detect_frameworks",
    "detect_build_tools",
    "detect_testing_frameworks",
    "detect_package_manager",
    "detect_manifest_frameworks",
    "find_key_files",
    "find_entry_points",
]
