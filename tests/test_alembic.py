"""
test_alembic.py — Verify Alembic migration setup and structure.

Reads migration sources with ast so nothing has to run inside Alembic's
runtime context (where op is a stub).

Called by: pytest
Depends on: alembic/, shipzone.models
"""

import ast
from pathlib import Path

from sqlalchemy import CheckConstraint

from shipzone.models import Base

ROOT = Path(__file__).parent.parent
MIGRATION_DIR = ROOT / "alembic" / "versions"


def _initial_migration() -> ast.Module:
    files = sorted(MIGRATION_DIR.glob("*.py"))
    assert len(files) >= 1, "No migration files found"
    return ast.parse(files[0].read_text())


def _assignments(tree: ast.Module) -> dict:
    found = {}
    for node in tree.body:
        if isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
            found[node.target.id] = node.value
        elif isinstance(node, ast.Assign):
            for t in node.targets:
                if isinstance(t, ast.Name):
                    found[t.id] = node.value
    return found


def _called_with_first_arg(tree: ast.Module, func_name: str) -> set[str]:
    names = set()
    for node in ast.walk(tree):
        if (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Attribute)
            and node.func.attr == func_name
            and node.args
            and isinstance(node.args[0], ast.Constant)
        ):
            names.add(node.args[0].value)
    return names


def test_initial_migration_has_required_attributes():
    tree = _initial_migration()
    assigns = _assignments(tree)
    assert "revision" in assigns
    assert isinstance(assigns["down_revision"], ast.Constant)
    assert assigns["down_revision"].value is None, "Initial migration should have no parent"

    funcs = {n.name for n in tree.body if isinstance(n, ast.FunctionDef)}
    assert {"upgrade", "downgrade"} <= funcs


def test_initial_migration_creates_every_model_table():
    created = _called_with_first_arg(_initial_migration(), "create_table")
    assert created == set(Base.metadata.tables)


def test_downgrade_drops_every_table():
    dropped = _called_with_first_arg(_initial_migration(), "drop_table")
    assert dropped == set(Base.metadata.tables)


def test_migration_indexes_match_models():
    created = _called_with_first_arg(_initial_migration(), "create_index")
    model_indexes = {ix.name for t in Base.metadata.tables.values() for ix in t.indexes}
    assert created == model_indexes


def test_env_py_imports_all_models():
    content = (ROOT / "alembic" / "env.py").read_text()
    assert "from shipzone.models import Base" in content


def test_no_create_all_in_main():
    """main.py must not create tables itself — startup.py and Alembic own schema."""
    content = (ROOT / "shipzone" / "main.py").read_text()
    assert "create_all" not in content


def test_migration_check_constraints_match_models():
    tree = _initial_migration()
    created = {
        kw.value.value
        for node in ast.walk(tree)
        if isinstance(node, ast.Call)
        and isinstance(node.func, ast.Attribute)
        and node.func.attr == "CheckConstraint"
        for kw in node.keywords
        if kw.arg == "name"
    }
    model_checks = {
        c.name
        for t in Base.metadata.tables.values()
        for c in t.constraints
        if isinstance(c, CheckConstraint)
    }
    assert created == model_checks == {"ck_warehouses_status", "ck_inquiries_status"}
