"""Replay allocate/refund steps against one tree of a project file.

Usage examples:
    python -m scripts.simulate_build project.json allocate:warrior allocate:berserk
    python -m scripts.simulate_build project.json --tree tree_main refund:warrior --json
    python -m scripts.simulate_build project.json --mode edit reset allocate:root --save out.json

Steps are ``allocate:<node_id>``, ``refund:<node_id>`` or ``reset``. A
rejected step is reported and the replay continues from the unchanged tree.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from skilltree_planner.editor.actions import allocate_point, refund_point, reset_tree
from skilltree_planner.engine.status import all_node_statuses
from skilltree_planner.engine.structure import validate_tree
from skilltree_planner.logging_config import setup_logging
from skilltree_planner.models.constants import Mode
from skilltree_planner.models.project import InteractionContext, Project
from skilltree_planner.models.tree import Tree
from skilltree_planner.persistence.project_io import load_project, save_project


_STEP_KINDS = ("allocate", "refund", "reset")


def _parse_step(text: str) -> tuple[str, str | None]:
    kind, sep, node_id = text.strip().partition(":")
    kind = kind.lower()
    if kind not in _STEP_KINDS:
        raise ValueError(f"Unknown step kind: {text!r}")
    if kind == "reset":
        if sep:
            raise ValueError("reset takes no node id")
        return kind, None
    if not node_id:
        raise ValueError(f"{kind} needs a node id: {text!r}")
    return kind, node_id


def run_steps(
    project: Project,
    tree_id: str,
    steps: list[tuple[str, str | None]],
    context: InteractionContext,
) -> tuple[Project, list[dict[str, Any]]]:
    """Apply steps in order; return the final project and a per-step log."""
    log: list[dict[str, Any]] = []
    for kind, node_id in steps:
        if kind == "allocate":
            result = allocate_point(project, tree_id, node_id or "", context)
        elif kind == "refund":
            result = refund_point(project, tree_id, node_id or "", context)
        else:
            result = reset_tree(project, tree_id)
        log.append({
            "step": kind if node_id is None else f"{kind}:{node_id}",
            "ok": result.ok,
            "message": result.message,
            "cascaded": list(result.cascaded),
        })
        project = result.project
    return project, log


def _render_text(tree: Tree, log: list[dict[str, Any]]) -> str:
    lines = [f"Tree: {tree.name} ({tree.id})"]
    for entry in log:
        status = "ok" if entry["ok"] else "rejected"
        line = f"  {entry['step']:<24} {status}"
        if entry["message"]:
            line += f" - {entry['message']}"
        if entry["cascaded"]:
            line += f" (cascaded: {', '.join(entry['cascaded'])})"
        lines.append(line)
    pool = tree.point_pool
    lines.append(f"  Points: {pool.spent}/{pool.total} spent, {pool.available} available")
    statuses = all_node_statuses(tree)
    for node in tree.nodes:
        lines.append(
            f"    {node.name:<24} rank {node.current_rank}/{node.max_rank}"
            f"  {statuses[node.id].value}"
        )
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Simulate point allocation on a skill tree")
    parser.add_argument("path", type=Path, help="Project JSON file.")
    parser.add_argument("steps", nargs="*", help="allocate:<id>, refund:<id> or reset.")
    parser.add_argument("--tree", type=str, default=None, help="Tree id (default: first tree).")
    parser.add_argument(
        "--mode", choices=[m.value for m in Mode], default=Mode.PLAY.value,
        help="Edit mode skips prerequisite checks.",
    )
    parser.add_argument("--save", type=Path, default=None, help="Write the resulting project here.")
    parser.add_argument("--json", action="store_true", help="Emit machine-readable JSON output.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        steps = [_parse_step(s) for s in args.steps]
    except ValueError as exc:
        parser.error(str(exc))

    loaded = load_project(args.path)
    if not loaded.success or loaded.project is None:
        print(f"Error: cannot import {args.path}")
        for message in loaded.errors:
            print(f"  - {message}")
        return 1
    project = loaded.project
    if not project.trees:
        print("Error: project has no trees")
        return 1
    tree_id = args.tree or project.trees[0].id
    tree = project.find_tree(tree_id)
    if tree is None:
        print(f"Error: tree not found: {tree_id}")
        return 1

    report = validate_tree(tree)
    if not report.is_valid and args.mode == Mode.PLAY.value:
        print(f"Error: tree {tree_id} has structural errors and cannot be simulated:")
        for issue in report.errors:
            print(f"  - {issue.code}: {issue.message}")
        return 1

    context = InteractionContext(mode=Mode.parse(args.mode), active_tree_id=tree_id)
    project, log = run_steps(project, tree_id, steps, context)
    final_tree = project.find_tree(tree_id)
    if final_tree is None:
        print(f"Error: tree not found after replay: {tree_id}")
        return 1

    if args.save is not None:
        save_project(project, args.save)

    if args.json:
        statuses = all_node_statuses(final_tree)
        payload = {
            "tree_id": tree_id,
            "steps": log,
            "point_pool": {
                "total": final_tree.point_pool.total,
                "spent": final_tree.point_pool.spent,
            },
            "nodes": {
                node.id: {
                    "current_rank": node.current_rank,
                    "max_rank": node.max_rank,
                    "status": statuses[node.id].value,
                }
                for node in final_tree.nodes
            },
        }
        print(json.dumps(payload, indent=2))
    else:
        print(_render_text(final_tree, log))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
