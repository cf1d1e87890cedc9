"""Static outline of a pipeline definition for the diagram modes.

The pipeline file is parsed, never executed.
"""

from __future__ import annotations

import ast
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Sequence

from src.core.exceptions import UsageError

logger = logging.getLogger("bpipe.services.diagram")


class DiagramRenderer(ABC):
    @abstractmethod
    def render(self, mode: str, pipeline_path: Path, args: Sequence[str]) -> None: ...


def _run_order(tree: ast.Module) -> list[str]:
    """Stage names in the order passed to the first top-level ``run(...)`` call."""
    for node in tree.body:
        call = node.value if isinstance(node, (ast.Expr, ast.Assign)) else None
        if (
            isinstance(call, ast.Call)
            and isinstance(call.func, ast.Name)
            and call.func.id == "run"
        ):
            return [arg.id for arg in call.args if isinstance(arg, ast.Name)]
    return []


class OutlineRenderer(DiagramRenderer):
    def __init__(self, echo: Callable[[str], None] = print):
        self.echo = echo

    def render(self, mode: str, pipeline_path: Path, args: Sequence[str]) -> None:
        if not pipeline_path.is_file():
            raise UsageError(f"Could not understand command {pipeline_path} or find it as a file")
        try:
            tree = ast.parse(pipeline_path.read_text(encoding="utf-8"), filename=str(pipeline_path))
        except SyntaxError as e:
            raise UsageError(f"Pipeline {pipeline_path} could not be parsed: {e}") from e

        stages = {
            node.name: ast.get_docstring(node)
            for node in tree.body
            if isinstance(node, ast.FunctionDef)
        }
        order = _run_order(tree) or list(stages)
        logger.info("Rendering %s for %s (%d stages)", mode, pipeline_path, len(order))

        self.echo(f"Pipeline {pipeline_path.name}")
        if args:
            self.echo(f"Inputs: {' '.join(args)}")
        self.echo(" -> ".join(order) if order else "(no stages)")
        if mode == "documentation":
            for name in order:
                self.echo(f"\n{name}\n    {stages.get(name) or 'No documentation'}")
