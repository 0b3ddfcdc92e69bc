"""Run structural validation over a skill tree project file.

Usage:
    python -m scripts.validate_project project.json
    python -m scripts.validate_project project.json --tree tree_main --reachability
    python -m scripts.validate_project project.json --json

Exit status is 1 when the document cannot be imported or has structural
errors, 0 otherwise (warnings do not fail).
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

from skilltree_planner.engine.structure import (
    ValidationReport,
    check_reachability,
    validate_project,
    validate_tree_in_project,
)
from skilltree_planner.logging_config import setup_logging
from skilltree_planner.models.project import Project
from skilltree_planner.persistence.project_io import load_project


def _report_payload(project: Project, report: ValidationReport, tree_id: str | None) -> dict[str, Any]:
    trees = [t for t in project.trees if tree_id is None or t.id == tree_id]
    return {
        "project": project.metadata.name,
        "is_valid": report.is_valid,
        "errors": [asdict(i) for i in report.errors],
        "warnings": [asdict(i) for i in report.warnings],
        "unreachable": {t.id: list(check_reachability(t).unreachable) for t in trees},
    }


def _render_text(project: Project, report: ValidationReport) -> str:
    lines = [
        f"Project: {project.metadata.name} ({len(project.trees)} tree(s))",
        f"  Errors:   {len(report.errors)}",
        f"  Warnings: {len(report.warnings)}",
    ]
    for issue in report.errors:
        lines.append(f"  ERROR   [{issue.tree_id}] {issue.code}: {issue.message}")
    for issue in report.warnings:
        lines.append(f"  WARNING [{issue.tree_id}] {issue.code}: {issue.message}")
    lines.append("  Result:   " + ("OK" if report.is_valid else "NOT SIMULATABLE"))
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate a skill tree project")
    parser.add_argument("path", type=Path, help="Project JSON file.")
    parser.add_argument("--tree", type=str, default=None, help="Only validate this tree id.")
    parser.add_argument(
        "--reachability", action="store_true",
        help="Also warn about nodes that can never be unlocked.",
    )
    parser.add_argument("--json", action="store_true", help="Emit machine-readable JSON output.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    loaded = load_project(args.path)
    if not loaded.success or loaded.project is None:
        print(f"Error: cannot import {args.path}")
        for message in loaded.errors:
            print(f"  - {message}")
        return 1
    project = loaded.project
    if args.tree is not None:
        report = validate_tree_in_project(
            project, args.tree, include_reachability=args.reachability
        )
    else:
        report = validate_project(project, include_reachability=args.reachability)

    if args.json:
        payload = _report_payload(project, report, args.tree)
        payload["import_warnings"] = list(loaded.warnings)
        print(json.dumps(payload, indent=2))
    else:
        for message in loaded.warnings:
            print(f"Warning: {message}")
        print(_render_text(project, report))
    return 0 if report.is_valid else 1


if __name__ == "__main__":
    raise SystemExit(main())
