"""
Layer boundaries and the kernel invariants contract.

Tests that enforce the package layering:

1. stock_kernel/** may NOT import stock_engines, stock_services or
   stock_config. The kernel never depends upward.

2. stock_engines/** may import only stock_kernel and sibling engines.

3. stock_config/** may import only stock_kernel.

4. stock_kernel/domain/** stays free of I/O libraries.

5. The kernel invariants declaration is complete and non-empty.

These tests read source code via AST -- they cannot break anything.
"""

import ast
from pathlib import Path

from stock_kernel.invariants import (
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


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = ast.parse(filepath.read_text(), filename=str(filepath))

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module and node.level == 0:
                results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(f"  {filepath.relative_to(ROOT)}:{lineno} imports '{module}'")
    return found


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestKernelNoUpwardDependencies:
    """stock_kernel/** must not import the outer packages."""

    def test_kernel_does_not_import_forbidden_packages(self):
        violations = _violations("stock_kernel", FORBIDDEN_KERNEL_IMPORTS)

        assert not violations, (
            "Kernel boundary violation -- stock_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )

    def test_forbidden_list_covers_outer_packages(self):
        assert set(FORBIDDEN_KERNEL_IMPORTS) == {
            "stock_engines", "stock_services", "stock_config",
        }


class TestEngineBoundary:
    """Engines are pure: kernel and sibling engines only."""

    def test_engines_do_not_import_services_or_config(self):
        violations = _violations("stock_engines", ("stock_services", "stock_config"))

        assert not violations, (
            "Engine boundary violation -- stock_engines/** must not import "
            "services or config:\n" + "\n".join(violations)
        )

    def test_engines_do_no_io(self):
        violations = _violations("stock_engines", ("sqlalchemy", "yaml", "asyncio"))

        assert not violations, "\n".join(violations)


class TestConfigBoundary:
    """Configuration sits on the kernel only."""

    def test_config_imports_kernel_only(self):
        violations = _violations("stock_config", ("stock_engines", "stock_services"))

        assert not violations, "\n".join(violations)


class TestDomainPurity:
    """stock_kernel/domain/** holds pure values."""

    def test_domain_has_no_io_imports(self):
        violations = _violations(
            "stock_kernel/domain", ("sqlalchemy", "yaml", "stock_kernel.db", "stock_kernel.models"),
        )

        assert not violations, "\n".join(violations)


class TestInvariantsContract:
    """The kernel invariants declaration is complete."""

    def test_invariants_declared(self):
        assert ALL_KERNEL_INVARIANTS == frozenset(KernelInvariant)
        assert {i.value for i in KernelInvariant} == {
            "conservation",
            "serial_range_exact",
            "serial_ranges_disjoint",
            "commit_time_conversion",
            "line_identity",
        }

    def test_every_invariant_documented(self):
        source = (ROOT / "stock_kernel" / "invariants.py").read_text()

        for invariant in KernelInvariant:
            assert f"{invariant.name} = " in source
