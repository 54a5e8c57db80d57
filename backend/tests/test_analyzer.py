"""Tests for pattern analysis."""

from repo_memory.ingest.analyzer import analyze_patterns, detect_naming_patterns, suggest_patterns
from repo_memory.ingest.scanner import scan_repository
from repo_memory.ingest.types import TreeItem
from repo_memory.memory.models import DetectedPattern


def _analyze(*paths: str, languages: tuple[str, ...] = ("typescript",)) -> list[DetectedPattern]:
    scan = scan_repository([TreeItem(path=path, kind="blob", content_hash="x", size=1) for path in paths])
    return analyze_patterns(scan.directories, scan.key_files, list(languages))


def _names(patterns: list[DetectedPattern]) -> set[str]:
    return {pattern.name for pattern in patterns}


def test_empty_repository_has_no_patterns() -> None:
    assert analyze_patterns({}, [], []) == []


def test_every_pattern_is_well_formed() -> None:
    patterns = _analyze(
        "apps/web/src/components/Button.tsx",
        "apps/web/src/pages/index.tsx",
        "packages/ui/src/hooks/useTheme.ts",
        "src/errors/http-error.ts",
        "src/__tests__/app.test.ts",
    )
    assert patterns
    for pattern in patterns:
        assert 0.0 <= pattern.confidence <= 1.0
        assert pattern.category in {"architecture", "naming", "testing", "error-handling", "state", "api"}


def test_monorepo_requires_top_level_apps_and_packages() -> None:
    assert "Monorepo Structure" in _names(_analyze("apps/web/main.ts", "packages/ui/index.ts"))
    assert "Monorepo Structure" not in _names(_analyze("src/apps/web/main.ts", "src/packages/ui/index.ts"))


def test_service_layer_confidence_depends_on_handlers() -> None:
    alone = next(p for p in _analyze("src/services/user.ts") if p.name == "Service Layer Pattern")
    assert alone.confidence == 0.7
    with_routes = next(
        p for p in _analyze("src/services/user.ts", "src/routes/user.ts") if p.name == "Service Layer Pattern"
    )
    assert with_routes.confidence == 0.85


def test_mvc_and_component_ui() -> None:
    names = _names(
        _analyze(
            "app/controllers/users.rb",
            "app/models/user.rb",
            "app/views/users/index.erb",
            "web/components/Nav.tsx",
        )
    )
    assert "MVC Architecture" in names
    assert "Component-Based UI" in names


def test_naming_thresholds_are_strict() -> None:
    five = [f"src/components/Widget{name}.tsx" for name in ("Alpha", "Beta", "Gamma", "Delta", "Epsilon")]
    assert detect_naming_patterns(five) == []
    six = five + ["src/components/WidgetZeta.tsx"]
    assert _names(detect_naming_patterns(six)) == {"PascalCase Components"}


def test_test_suffix_and_barrels() -> None:
    files = [f"src/lib/mod{i}.spec.ts" for i in range(4)] + [f"src/mod{i}/index.ts" for i in range(4)]
    patterns = {p.name: p for p in detect_naming_patterns(files)}
    assert "Barrel Exports" in patterns
    assert patterns["Test File Suffix"].description == "Test files use .spec. suffix convention."


def test_testing_api_and_state_rules() -> None:
    names = _names(
        _analyze(
            "src/__tests__/app.test.ts",
            "tests/e2e/login.ts",
            "tests/fixtures/user.json",
            "src/app/api/users/route.ts",
            "src/graphql/resolvers.ts",
            "src/store/index.ts",
            "src/store/slices/user.ts",
            "src/contexts/Auth.tsx",
            "src/hooks/useAuth.ts",
        )
    )
    assert {"Colocated Tests", "Separate Test Directory", "E2E/Integration Tests", "Test Fixtures"} <= names
    assert {"REST API Structure", "Next.js App Router API", "GraphQL API"} <= names
    assert {"Redux State Management", "Context-Based State", "Custom Hooks"} <= names


def test_error_directories_detected() -> None:
    patterns = _analyze("src/errors/not-found.ts")
    error = next(p for p in patterns if p.category == "error-handling")
    assert error.name == "Centralized Error Types"


def test_suggestions_sorted_by_priority() -> None:
    patterns = [
        DetectedPattern(category="architecture", name="MVC Architecture", description="mvc", confidence=0.9),
    ]
    suggestions = suggest_patterns(patterns, ["typescript"])
    assert [s.priority for s in suggestions] == ["high", "medium", "medium", "low"]
    assert suggestions[0].pattern == "Colocated Tests"
    assert {s.pattern for s in suggestions} >= {"Service Layer", "Barrel Exports", "Centralized Error Handling"}


def test_barrel_suggestion_skipped_for_other_languages() -> None:
    suggestions = suggest_patterns([], ["python"])
    assert "Barrel Exports" not in {s.pattern for s in suggestions}
