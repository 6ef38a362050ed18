"""
Kernel Boundary & Invariants Contract.

Tests that enforce the kernel's architectural boundaries:

1. production_kernel/** may NOT import production_services or
   production_config. The kernel never depends upward.

2. production_kernel/domain/** is pure: no SQLAlchemy, no driver and no
   production_kernel.db imports. ORM model imports are allowed only under
   TYPE_CHECKING, for DTO converters.

3. Only ConsumptionService writes supply stock.

4. The kernel invariants declaration is complete and non-empty.

These tests read source code via AST; they cannot break anything.
"""

import ast
from pathlib import Path

from production_kernel.invariants import (
    ALL_KERNEL_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    KernelInvariant,
)

ROOT = Path(__file__).resolve().parents[2]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _python_files(package: str) -> list[Path]:
    """Return all .py files under a top-level package."""
    return sorted((ROOT / package).rglob("*.py"))


def _rel(path: Path) -> str:
    return path.relative_to(ROOT).as_posix()


def _type_checking_lines(tree: ast.AST) -> set[int]:
    """Line numbers of statements nested under ``if TYPE_CHECKING:``."""
    lines: set[int] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.If):
            test = node.test
            name = test.id if isinstance(test, ast.Name) else getattr(test, "attr", None)
            if name == "TYPE_CHECKING":
                for child in node.body:
                    for sub in ast.walk(child):
                        if hasattr(sub, "lineno"):
                            lines.add(sub.lineno)
    return lines


def _extract_imports(filepath: Path, include_type_checking: bool = True) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = ast.parse(filepath.read_text(encoding="utf-8"), filename=str(filepath))
    skipped = set() if include_type_checking else _type_checking_lines(tree)

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if getattr(node, "lineno", None) in skipped:
            continue
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _matches(module: str, prefix: str) -> bool:
    return module == prefix or module.startswith(f"{prefix}.")


# ---------------------------------------------------------------------------
# Test: Kernel has no upward dependencies
# ---------------------------------------------------------------------------


class TestKernelNoUpwardDependencies:
    """production_kernel/** must not import production_services or production_config."""

    def test_forbidden_list_names_both_upper_layers(self):
        assert set(FORBIDDEN_KERNEL_IMPORTS) == {"production_services", "production_config"}

    def test_kernel_does_not_import_forbidden_packages(self):
        violations: list[str] = []

        for filepath in _python_files("production_kernel"):
            for lineno, module in _extract_imports(filepath):
                for prefix in FORBIDDEN_KERNEL_IMPORTS:
                    if _matches(module, prefix):
                        violations.append(f"  {_rel(filepath)}:{lineno} imports '{module}'")

        assert not violations, (
            "Kernel boundary violation: production_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )


# ---------------------------------------------------------------------------
# Test: Domain purity
# ---------------------------------------------------------------------------


class TestDomainPurity:
    """production_kernel/domain/** holds values and rules, never persistence."""

    FORBIDDEN_PREFIXES = (
        "sqlalchemy",
        "psycopg2",
        "production_kernel.db",
        "production_kernel.services",
        "production_kernel.selectors",
    )

    def test_domain_has_no_persistence_imports(self):
        violations: list[str] = []

        for filepath in _python_files("production_kernel/domain"):
            for lineno, module in _extract_imports(filepath, include_type_checking=False):
                for prefix in self.FORBIDDEN_PREFIXES:
                    if _matches(module, prefix):
                        violations.append(f"  {_rel(filepath)}:{lineno} imports '{module}'")

        assert not violations, (
            "Domain purity violation:\n" + "\n".join(violations)
        )

    def test_model_imports_only_for_type_checking(self):
        violations: list[str] = []

        for filepath in _python_files("production_kernel/domain"):
            for lineno, module in _extract_imports(filepath, include_type_checking=False):
                if _matches(module, "production_kernel.models"):
                    violations.append(f"  {_rel(filepath)}:{lineno} imports '{module}'")

        assert not violations, (
            "Domain modules may import ORM models only under TYPE_CHECKING:\n"
            + "\n".join(violations)
        )


# ---------------------------------------------------------------------------
# Test: Single writer of stock
# ---------------------------------------------------------------------------


class TestSingleStockWriter:
    """Only ConsumptionService assigns SupplyItem.stock after creation."""

    ALLOWED = {
        "production_kernel/services/consumption_service.py",
    }

    def test_stock_assignments(self):
        violations: list[str] = []

        for package in ("production_kernel", "production_services", "production_config"):
            for filepath in _python_files(package):
                if _rel(filepath) in self.ALLOWED:
                    continue
                tree = ast.parse(filepath.read_text(encoding="utf-8"))
                for node in ast.walk(tree):
                    targets = []
                    if isinstance(node, ast.Assign):
                        targets = node.targets
                    elif isinstance(node, ast.AugAssign):
                        targets = [node.target]
                    for target in targets:
                        # self.stock on exceptions and DTOs is not a supply row
                        if (
                            isinstance(target, ast.Attribute)
                            and target.attr == "stock"
                            and not (isinstance(target.value, ast.Name) and target.value.id == "self")
                        ):
                            violations.append(f"  {_rel(filepath)}:{node.lineno}")

        assert not violations, (
            "Stock written outside ConsumptionService:\n" + "\n".join(violations)
        )


# ---------------------------------------------------------------------------
# Test: Invariants declaration
# ---------------------------------------------------------------------------


class TestKernelInvariantsDeclaration:

    def test_declaration_is_non_empty(self):
        assert len(ALL_KERNEL_INVARIANTS) > 0
        assert ALL_KERNEL_INVARIANTS == frozenset(KernelInvariant)

    def test_core_invariants_declared(self):
        values = {inv.value for inv in KernelInvariant}
        assert {
            "status_monotonicity",
            "stock_non_negative",
            "stock_conservation",
            "requirement_idempotency",
            "audit_append_only",
        } <= values

    def test_every_invariant_documented(self):
        source = (ROOT / "production_kernel" / "invariants.py").read_text(encoding="utf-8")
        tree = ast.parse(source)
        enum_class = next(
            node for node in tree.body
            if isinstance(node, ast.ClassDef) and node.name == "KernelInvariant"
        )
        body = enum_class.body
        for i, node in enumerate(body):
            if isinstance(node, ast.Assign):
                following = body[i + 1] if i + 1 < len(body) else None
                assert isinstance(following, ast.Expr) and isinstance(
                    following.value, ast.Constant
                ), f"{node.targets[0].id} has no docstring"
