"""Import dependency graph for internal modules.

Walks every .py file under a root package with `ast`, collecting edges
between project-internal modules (absolute imports with a tracked prefix
and relative imports resolved against the importing module). Package
`__init__` files are named after the package. Used in tests to enforce:
  - No cycles between core modules.
  - No forbidden edges (layering: foundation -> registry/engine ->
    lifecycle -> api).
"""
from __future__ import annotations

import ast
from pathlib import Path
from typing import Dict, Iterable, List, Set, Tuple


def _module_name(py: Path, root_path: Path) -> str:
    parts = list(py.relative_to(root_path).with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    return ".".join([root_path.name, *parts])


def _resolve_relative(
    module: str, is_package: bool, level: int, target: str | None
) -> str:
    base = module.split(".")
    # a package's own __init__ is its level-1 anchor
    drop = level - 1 if is_package else level
    if drop:
        base = base[:-drop]
    return ".".join(base + ([target] if target else []))


def build_import_graph(
    root: str | Path = "core", prefixes: Iterable[str] = ("core",)
) -> Dict[str, Set[str]]:
    root_path = Path(root)
    tracked = tuple(prefixes)
    edges: Dict[str, Set[str]] = {}

    def _track(src: str, dst: str) -> None:
        if dst == src:
            return
        if any(dst == p or dst.startswith(p + ".") for p in tracked):
            edges.setdefault(src, set()).add(dst)

    for py in sorted(root_path.rglob("*.py")):
        if "__pycache__" in py.parts:
            continue
        mod = _module_name(py, root_path)
        edges.setdefault(mod, set())
        try:
            tree = ast.parse(py.read_text(encoding="utf-8"))
        except SyntaxError:
            continue
        is_package = py.name == "__init__.py"
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    _track(mod, alias.name)
            elif isinstance(node, ast.ImportFrom):
                if node.level:
                    target = _resolve_relative(
                        mod, is_package, node.level, node.module
                    )
                else:
                    target = node.module or ""
                _track(mod, target)
    for targets in list(edges.values()):
        for dst in targets:
            edges.setdefault(dst, set())
    return edges


def detect_cycles(graph: Dict[str, Set[str]]) -> List[List[str]]:
    visited: Set[str] = set()
    stack: Set[str] = set()
    cycles: List[List[str]] = []

    def dfs(node: str, path: List[str]):
        if node in stack:
            if node in path:
                idx = path.index(node)
                cycles.append(path[idx:] + [node])
            return
        if node in visited:
            return
        visited.add(node)
        stack.add(node)
        for nxt in sorted(graph.get(node, ())):
            dfs(nxt, path + [nxt])
        stack.remove(node)

    for n in sorted(graph):
        if n not in visited:
            dfs(n, [n])
    return cycles


def _within(name: str, prefix: str) -> bool:
    return name == prefix or name.startswith(prefix + ".")


def forbidden_edges(
    graph: Dict[str, Set[str]], rules: List[Tuple[str, str]]
) -> List[Tuple[str, str]]:
    found: List[Tuple[str, str]] = []
    for src, targets in graph.items():
        for dst in targets:
            for a, b in rules:
                if _within(src, a) and _within(dst, b):
                    found.append((src, dst))
    return found


__all__ = [
    "build_import_graph",
    "detect_cycles",
    "forbidden_edges",
]
