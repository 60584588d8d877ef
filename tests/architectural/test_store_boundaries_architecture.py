"""Architectural tests for the storage boundary.

Checks use static filesystem/AST inspection only, so no application code
is imported or executed.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Set

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[2]
APP_DIR = PROJECT_ROOT / "curlew"
ROUTES_DIR = APP_DIR / "routes"
LOGIC_DIR = APP_DIR / "logic"
DB_DIR = APP_DIR / "db"

SERVICE_MODULES = ["collection_tree.py", "order_sequences.py", "requests.py", "postman_import.py"]
REPOSITORY_ALIASES = {"repo", "request_repo", "collection_repo"}


@dataclass
class ParsedModule:
    path: Path
    tree: ast.AST


def parse_module(path: Path) -> ParsedModule:
    try:
        code = path.read_text(encoding="utf-8")
    except Exception as exc:  # pragma: no cover - explicit failure in test
        pytest.fail(f"Failed to read file {path}: {exc}")
    return ParsedModule(path=path, tree=ast.parse(code, filename=str(path)))


def py_files_under(*roots: Path) -> list[Path]:
    files: list[Path] = []
    for root in roots:
        for p in root.rglob("*.py"):
            if "__pycache__" in p.parts:
                continue
            files.append(p)
    return files


def imported_modules(pm: ParsedModule) -> Set[str]:
    names: Set[str] = set()
    for node in ast.walk(pm.tree):
        if isinstance(node, ast.Import):
            names.update(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            names.add(node.module)
            names.update(f"{node.module}.{alias.name}" for alias in node.names)
    return names


def imports_sql_text(pm: ParsedModule) -> bool:
    for node in ast.walk(pm.tree):
        if isinstance(node, ast.ImportFrom) and node.module == "sqlalchemy":
            if any(alias.name == "text" for alias in node.names):
                return True
    return False


def _with_calls(node: ast.AST) -> Iterable[str]:
    for child in ast.walk(node):
        if isinstance(child, ast.With):
            for item in child.items:
                expr = item.context_expr
                if isinstance(expr, ast.Call) and isinstance(expr.func, ast.Name):
                    yield expr.func.id


def _first_arg(fn: ast.FunctionDef) -> Optional[str]:
    return fn.args.args[0].arg if fn.args.args else None


def test_route_modules_never_touch_the_store() -> None:
    """Routes delegate to logic; they neither import SQLAlchemy nor repositories."""
    for path in py_files_under(ROUTES_DIR):
        mods = imported_modules(parse_module(path))
        offending = sorted(
            m for m in mods
            if m.startswith("sqlalchemy") or m.startswith("curlew.db") or ".repository_" in m
        )
        assert not offending, f"{path.name} imports storage modules: {offending}"


def test_textual_sql_confined_to_repositories_and_db() -> None:
    allowed = {p.resolve() for p in LOGIC_DIR.glob("repository_*.py")}
    allowed |= {p.resolve() for p in DB_DIR.glob("*.py")}
    allowed.add((APP_DIR / "main.py").resolve())
    for path in py_files_under(APP_DIR):
        if path.resolve() in allowed:
            continue
        assert not imports_sql_text(parse_module(path)), f"textual SQL outside repositories: {path}"


def test_repositories_take_connection_first() -> None:
    """Repository functions never open their own transaction."""
    for path in LOGIC_DIR.glob("repository_*.py"):
        pm = parse_module(path)
        for node in pm.tree.body:  # type: ignore[attr-defined]
            if isinstance(node, ast.FunctionDef) and not node.name.startswith("_"):
                if node.name in {"scope_clause"}:
                    continue
                assert _first_arg(node) == "conn", f"{path.name}:{node.name} must accept conn first"
        assert "transaction" not in set(_with_calls(pm.tree)), f"{path.name} opens a transaction"


@pytest.mark.parametrize("module_name", SERVICE_MODULES)
def test_service_operations_run_inside_a_transaction(module_name: str) -> None:
    """Public operations that reach a repository without a caller's conn open transaction()."""
    pm = parse_module(LOGIC_DIR / module_name)
    for node in pm.tree.body:  # type: ignore[attr-defined]
        if not isinstance(node, ast.FunctionDef) or node.name.startswith("_"):
            continue
        if _first_arg(node) == "conn":
            continue
        uses_repo = any(
            isinstance(n, ast.Attribute) and isinstance(n.value, ast.Name) and n.value.id in REPOSITORY_ALIASES
            for n in ast.walk(node)
        )
        if uses_repo or node.name == "import_collection":
            assert "transaction" in set(_with_calls(node)), f"{module_name}:{node.name} must use transaction()"


def test_schema_declares_no_foreign_keys() -> None:
    """Orphaned parent links and dangling request scopes must remain storable."""
    pm = parse_module(DB_DIR / "schema.py")
    for node in ast.walk(pm.tree):
        if isinstance(node, ast.Call):
            fn = node.func
            name = fn.id if isinstance(fn, ast.Name) else (fn.attr if isinstance(fn, ast.Attribute) else None)
            assert name not in {"ForeignKey", "ForeignKeyConstraint"}, "schema must not declare foreign keys"


def test_problem_codes_are_centralised() -> None:
    """Only the problem factory maps error classes to codes and statuses."""
    for path in py_files_under(ROUTES_DIR):
        text = path.read_text(encoding="utf-8")
        for code in ("invalid_hierarchy", "not_found", "import_format_error", "store_error"):
            assert code not in text, f"{path.name} hardcodes problem code {code}"
