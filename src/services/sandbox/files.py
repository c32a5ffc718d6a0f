"""Workspace file enumeration and writes for sandbox sessions."""

import base64
import posixpath
import shlex
from typing import Dict, List, Optional, Tuple

import structlog

from ...config import Settings
from ...models.errors import (
    FileWriteError,
    PlaygroundException,
    SessionNotFoundError,
    ValidationError,
)
from ...models.files import FileNode
from .executor import CommandExecutor
from .registry import SessionRegistry

logger = structlog.get_logger(__name__)

PLAIN_TEXT = "plaintext"

LANGUAGE_BY_EXTENSION: Dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".json": "json",
    ".md": "markdown",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".sh": "shell",
    ".sql": "sql",
    ".prisma": "prisma",
    ".py": "python",
    ".xml": "xml",
    ".graphql": "graphql",
}


def detect_language(filename: str) -> str:
    """Map a filename to an editor language; unknown extensions are plain text."""
    _, ext = posixpath.splitext(filename.lower())
    return LANGUAGE_BY_EXTENSION.get(ext, PLAIN_TEXT)


def validate_relative_path(path: str) -> str:
    """Normalize a workspace-relative path, rejecting escapes.

    Raises:
        ValidationError: absolute paths, empty paths or '..' segments
    """
    if not path or path.startswith("/"):
        raise ValidationError(f"Path must be relative to the workspace: {path!r}")
    parts = [p for p in path.split("/") if p not in ("", ".")]
    if not parts or any(p == ".." for p in parts):
        raise ValidationError(f"Invalid workspace path: {path!r}")
    return "/".join(parts)


def parse_listing(output: str) -> List[Tuple[str, bool]]:
    """Parse listing lines into (relative path, is_directory).

    Directories are listed with a trailing slash.
    """
    entries: List[Tuple[str, bool]] = []
    seen = set()
    for raw in output.splitlines():
        line = raw.strip()
        if line.startswith("./"):
            line = line[2:]
        is_dir = line.endswith("/")
        path = line.rstrip("/")
        if not path or path == "." or path in seen:
            continue
        seen.add(path)
        entries.append((path, is_dir))
    return entries


def build_tree(
    entries: List[Tuple[str, bool]], contents: Dict[str, Optional[str]]
) -> List[FileNode]:
    """Assemble a nested FileNode tree from flat listing entries."""
    root: List[FileNode] = []
    folders: Dict[str, FileNode] = {}

    def children_of(parent: str) -> List[FileNode]:
        if not parent:
            return root
        folder = folders.get(parent)
        if folder is None:
            folder = _ensure_folder(parent)
        return folder.children

    def _ensure_folder(path: str) -> FileNode:
        node = folders.get(path)
        if node is not None:
            return node
        node = FileNode(
            name=posixpath.basename(path), path=path, type="folder", children=[]
        )
        folders[path] = node
        children_of(posixpath.dirname(path)).append(node)
        return node

    for path, is_dir in sorted(entries, key=lambda e: e[0].count("/")):
        if is_dir:
            _ensure_folder(path)
            continue
        name = posixpath.basename(path)
        children_of(posixpath.dirname(path)).append(
            FileNode(
                name=name,
                path=path,
                type="file",
                content=contents.get(path),
                language=detect_language(name),
            )
        )

    def _sort(nodes: List[FileNode]) -> None:
        nodes.sort(key=lambda n: (n.type != "folder", n.name.lower()))
        for n in nodes:
            if n.children:
                _sort(n.children)

    _sort(root)
    return root


class FileSyncer:
    """Lists and writes files in a session's workspace volume."""

    def __init__(
        self,
        registry: SessionRegistry,
        executor: CommandExecutor,
        settings: Settings,
    ):
        self._registry = registry
        self._executor = executor
        self._settings = settings

    @property
    def workspace_dir(self) -> str:
        return self._settings.workspace_dir

    def build_listing_command(self) -> str:
        """Shell command listing the workspace; directories get a trailing slash."""
        prune = " -o ".join(
            f"-name {shlex.quote(name)}" for name in self._settings.list_excluded_dirs
        )
        hidden = "-name '.*' ! -name '.'"
        if prune:
            prune_expr = f"\\( {prune} -o \\( {hidden} \\) \\) -prune"
        else:
            prune_expr = f"\\( {hidden} \\) -prune"
        base = f"find . -maxdepth {self._settings.list_max_depth} {prune_expr} -o"
        return (
            f"{{ {base} -type d -print | sed 's|$|/|'; "
            f"{base} -type f -print; }}"
        )

    async def list_files(self, session_id: str) -> List[FileNode]:
        """Return the workspace file tree with file contents.

        Simulation sessions and listing failures yield an empty list.

        Raises:
            SessionNotFoundError: Unknown session id
        """
        session = self._registry.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if session.is_simulated:
            return []

        try:
            result = await self._executor.exec(
                session_id, self.build_listing_command(), workdir=self.workspace_dir
            )
        except SessionNotFoundError:
            raise
        except PlaygroundException as e:
            logger.warning("Workspace listing failed", session_id=session_id, error=e.message)
            return []

        if result.exit_code != 0:
            logger.warning(
                "Workspace listing returned non-zero exit code",
                session_id=session_id,
                exit_code=result.exit_code,
                stderr=result.stderr[:200],
            )
            return []

        entries = parse_listing(result.stdout)
        contents: Dict[str, Optional[str]] = {}
        for path, is_dir in entries:
            if not is_dir:
                contents[path] = await self._read_file(session_id, path)

        return build_tree(entries, contents)

    async def _read_file(self, session_id: str, path: str) -> Optional[str]:
        command = f"head -c {self._settings.max_file_read_bytes} -- {shlex.quote(path)}"
        try:
            result = await self._executor.exec(
                session_id, command, workdir=self.workspace_dir
            )
        except PlaygroundException as e:
            logger.debug("File read failed", session_id=session_id, path=path, error=e.message)
            return None
        if result.exit_code != 0:
            return None
        return result.stdout

    async def write_file(self, session_id: str, relative_path: str, content: str) -> None:
        """Write content to a workspace-relative path inside the sandbox.

        Waits a bounded time for the session to be registered and for its
        sandbox to be created, so callers may race ahead of create_sandbox.

        Raises:
            ValidationError: The path escapes the workspace
            SessionNotFoundError: The session never appeared
            SandboxNotReadyError: The sandbox is still being created
            FileWriteError: The write command failed
        """
        path = validate_relative_path(relative_path)
        retries = self._settings.ready_wait_retries
        backoff = self._settings.ready_wait_backoff_seconds

        await self._registry.wait_for_session(session_id, retries, backoff)
        session = await self._registry.wait_until_ready(session_id, retries, backoff)

        if session.is_simulated:
            return

        encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
        parent = posixpath.dirname(path)
        command = ""
        if parent:
            command = f"mkdir -p -- {shlex.quote(parent)} && "
        command += f"printf '%s' {shlex.quote(encoded)} | base64 -d > {shlex.quote(path)}"

        result = await self._executor.exec(session_id, command, workdir=self.workspace_dir)
        if result.exit_code != 0:
            logger.error(
                "File write failed",
                session_id=session_id,
                path=path,
                exit_code=result.exit_code,
                stderr=result.stderr[:200],
            )
            raise FileWriteError(path, result.stderr.strip() or f"exit code {result.exit_code}")

        logger.debug("File written", session_id=session_id, path=path, size=len(content))

    async def sync_files(
        self, session_id: str, nodes: List[FileNode], prefix: str = ""
    ) -> int:
        """Write every file node of a tree into the workspace.

        Paths are rebuilt from node names so the tree's own nesting decides
        where each file lands.

        Returns:
            Number of files written
        """
        written = 0
        for node in nodes:
            node_path = f"{prefix}/{node.name}" if prefix else node.name
            if node.type == "folder" and node.children:
                written += await self.sync_files(session_id, node.children, node_path)
            elif node.type == "file" and node.content is not None:
                await self.write_file(session_id, node_path, node.content)
                written += 1
        return written
