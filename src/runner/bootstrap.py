"""Compile and execute a pipeline definition against the parameter environment.

The definition runs with a namespace seeded from the parameter environment,
the engine's exported names and the trailing positional arguments (bound as
``args``). Top-level assignments pass through the environment, so names set
with ``-p`` keep their command-line value.

A ``NameError`` raised from inside the definition is reported as an
``UndefinedVariableError`` with the offending name and line; everything else
propagates untouched.
"""

from __future__ import annotations

import ast
import builtins
import logging
import re
from pathlib import Path
from types import TracebackType
from typing import Any, Optional, Sequence

from src.core.exceptions import UndefinedVariableError, UsageError
from src.runner.params import ParameterEnvironment
from src.services.engine import PipelineEngine

logger = logging.getLogger("bpipe.runner.bootstrap")

PIPELINE_ARGS_NAME = "args"
INLINE_FILENAME = "<bpipe execute>"

# "name 'x' is not defined", "cannot access local variable 'x' ...",
# "local variable 'x' referenced before assignment"
_NAME_ERROR_RE = re.compile(r"(?:name|variable) '([^']+)'")
_DISCARD_NAME = "_bpipe_discarded"


def load_pipeline_src(path: Path) -> str:
    """Read a pipeline file.

    Raises:
        UsageError: If the file does not exist.
    """
    if not path.is_file():
        raise UsageError(f"Could not understand command {path} or find it as a file")
    return path.read_text(encoding="utf-8")


def inline_pipeline_src(body: str) -> str:
    """Wrap the body given to `bpipe execute` into a single ``run(...)`` call."""
    return f"run({body})\n"


class _ScriptNamespace(dict):
    """Globals of the running definition.

    Module-level stores and deletes arrive here; writes to locked names are dropped.
    """

    def __init__(self, env: ParameterEnvironment, seed: dict[str, Any]):
        super().__init__(seed)
        self._env = env

    def __setitem__(self, name: str, value: Any) -> None:
        if self._env.assign(name, value):
            super().__setitem__(name, value)

    def __delitem__(self, name: str) -> None:
        if not self._env.is_locked(name):
            super().__delitem__(name)


class _LockedGlobalStores(ast.NodeTransformer):
    """Drop stores to locked parameters made under a ``global`` declaration.

    Those stores write the globals dict directly and never reach
    ``_ScriptNamespace.__setitem__``, so they are redirected to a throwaway
    local before the definition is compiled. Reads are left alone.
    """

    def __init__(self, env: ParameterEnvironment):
        self.env = env
        self.dropped: list[tuple[str, int]] = []
        self._scopes: list[set[str]] = []

    def _locked_global(self, name: str) -> bool:
        return name in self._scopes[-1] and self.env.is_locked(name)

    def _drop(self, name: str, node: ast.AST) -> None:
        self.dropped.append((name, getattr(node, "lineno", 0)))

    def _visit_scope(self, node: ast.AST) -> ast.AST:
        # a def or class name binds in the enclosing scope
        if getattr(node, "name", None) and self._locked_global(node.name):
            self._drop(node.name, node)
            node.name = _DISCARD_NAME
        self._scopes.append(set())
        self.generic_visit(node)
        self._scopes.pop()
        return node

    visit_Module = _visit_scope
    visit_FunctionDef = _visit_scope
    visit_AsyncFunctionDef = _visit_scope
    visit_Lambda = _visit_scope
    visit_ClassDef = _visit_scope

    def visit_Global(self, node: ast.Global) -> ast.AST:
        self._scopes[-1].update(node.names)
        return node

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> ast.AST:
        if node.name and self._locked_global(node.name):
            self._drop(node.name, node)
            node.name = _DISCARD_NAME
        return self.generic_visit(node)

    def visit_alias(self, node: ast.alias) -> ast.AST:
        bound = node.asname or node.name.split(".")[0]
        if node.name != "*" and self._locked_global(bound):
            self._drop(bound, node)
            node.asname = _DISCARD_NAME
        return node

    def visit_Name(self, node: ast.Name) -> ast.AST:
        if isinstance(node.ctx, ast.Store) and self._locked_global(node.id):
            self._drop(node.id, node)
            return ast.copy_location(ast.Name(id=_DISCARD_NAME, ctx=ast.Store()), node)
        return node

    def visit_AugAssign(self, node: ast.AugAssign) -> ast.AST:
        target = node.target
        if not (isinstance(target, ast.Name) and self._locked_global(target.id)):
            return self.generic_visit(node)
        self._drop(target.id, node)
        # the right-hand side is still evaluated
        value = ast.BinOp(left=ast.Name(id=target.id, ctx=ast.Load()), op=node.op,
                          right=self.visit(node.value))
        assign = ast.Assign(targets=[ast.Name(id=_DISCARD_NAME, ctx=ast.Store())], value=value)
        return ast.copy_location(assign, node)

    def visit_Delete(self, node: ast.Delete) -> ast.AST:
        kept = []
        for target in node.targets:
            if isinstance(target, ast.Name) and self._locked_global(target.id):
                self._drop(target.id, node)
            else:
                kept.append(self.visit(target))
        if not kept:
            return ast.copy_location(ast.Pass(), node)
        node.targets = kept
        return node


def _compile_pipeline(source: str, filename: str, env: ParameterEnvironment) -> Any:
    tree = ast.parse(source, filename=filename)
    guard = _LockedGlobalStores(env)
    tree = ast.fix_missing_locations(guard.visit(tree))
    for name, line in guard.dropped:
        logger.debug("Ignoring global store to parameter %s on line %d", name, line)
    return compile(tree, filename, "exec")


def _script_line(tb: Optional[TracebackType], filename: str) -> Optional[int]:
    """Line of the innermost frame, if that frame belongs to the definition."""
    last = None
    while tb is not None:
        last = tb
        tb = tb.tb_next
    if last is None or last.tb_frame.f_code.co_filename != filename:
        return None
    return last.tb_lineno


class ScriptBootstrap:
    def __init__(self, env: ParameterEnvironment, engine: PipelineEngine):
        self.env = env
        self.engine = engine

    def namespace(self) -> dict[str, Any]:
        seed: dict[str, Any] = {"__builtins__": builtins, "__name__": "__pipeline__"}
        seed.update(self.engine.exports())
        seed.update(self.env.values())
        return _ScriptNamespace(self.env, seed)

    def run(self, source: str, filename: str, pipeline_args: Sequence[str]) -> dict[str, Any]:
        """Execute the definition and return its final namespace.

        Raises:
            UndefinedVariableError: The definition used a name nothing defined.
        """
        self.env.assign(PIPELINE_ARGS_NAME, list(pipeline_args))
        inputs = self.env.get(PIPELINE_ARGS_NAME)
        self.engine.inputs = list(inputs) if isinstance(inputs, (list, tuple)) else [inputs]

        code = _compile_pipeline(source, filename, self.env)
        namespace = self.namespace()
        logger.info("Running pipeline %s with arguments %s", filename, list(pipeline_args))
        try:
            exec(code, namespace)
        except NameError as e:
            line = _script_line(e.__traceback__, filename)
            if line is None:
                raise
            name = getattr(e, "name", None)
            if not name:
                match = _NAME_ERROR_RE.search(str(e))
                name = match.group(1) if match else str(e)
            raise UndefinedVariableError(name, line) from e
        return namespace
