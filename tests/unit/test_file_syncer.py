"""Unit tests for workspace listing and file writes."""

import asyncio

import pytest

from src.models.errors import FileWriteError, SessionNotFoundError, ValidationError
from src.models.exec import ExecResult
from src.models.files import FileNode
from src.services.sandbox.files import (
    build_tree,
    detect_language,
    parse_listing,
    validate_relative_path,
)


class TestHelpers:
    """Test the pure listing helpers."""

    @pytest.mark.parametrize(
        "filename,language",
        [
            ("index.ts", "typescript"),
            ("App.TSX", "typescript"),
            ("server.js", "javascript"),
            ("package.json", "json"),
            ("README.md", "markdown"),
            ("schema.prisma", "prisma"),
            ("Dockerfile", "plaintext"),
            ("notes.xyz", "plaintext"),
        ],
    )
    def test_detect_language(self, filename, language):
        assert detect_language(filename) == language

    def test_validate_relative_path_normalizes(self):
        assert validate_relative_path("./src//index.ts") == "src/index.ts"

    @pytest.mark.parametrize("path", ["", "/etc/passwd", "../x", "a/../../b", "."])
    def test_validate_relative_path_rejects(self, path):
        with pytest.raises(ValidationError):
            validate_relative_path(path)

    def test_parse_listing_classifies_by_trailing_slash(self):
        output = "./src/\n./src/index.ts\n./package.json\n\n./src/\n"
        assert parse_listing(output) == [
            ("src", True),
            ("src/index.ts", False),
            ("package.json", False),
        ]

    def test_build_tree_nests_and_sorts_folders_first(self):
        entries = [
            ("package.json", False),
            ("src", True),
            ("src/index.ts", False),
            ("src/routes", True),
            ("src/routes/users.ts", False),
        ]
        contents = {"package.json": "{}", "src/index.ts": "x", "src/routes/users.ts": "y"}

        tree = build_tree(entries, contents)

        assert [n.name for n in tree] == ["src", "package.json"]
        src = tree[0]
        assert src.type == "folder"
        assert [n.name for n in src.children] == ["routes", "index.ts"]
        users = src.children[0].children[0]
        assert users.path == "src/routes/users.ts"
        assert users.content == "y"
        assert users.language == "typescript"

    def test_build_tree_creates_missing_parent_folders(self):
        tree = build_tree([("a/b/c.txt", False)], {"a/b/c.txt": "hi"})
        assert tree[0].name == "a"
        assert tree[0].children[0].name == "b"
        assert tree[0].children[0].children[0].content == "hi"

    def test_listing_command_excludes_hidden_and_dependency_dirs(self, orchestrator):
        command = orchestrator.files.build_listing_command()
        assert "-maxdepth 4" in command
        assert "-name node_modules" in command
        assert "-name '.*'" in command
        assert "-prune" in command


class TestListFiles:
    """Test list_files."""

    @pytest.mark.asyncio
    async def test_unknown_session_rejected(self, orchestrator):
        with pytest.raises(SessionNotFoundError):
            await orchestrator.list_files("missing")

    @pytest.mark.asyncio
    async def test_simulated_session_lists_nothing(self, orchestrator, fake_runtime):
        fake_runtime.available = False
        await orchestrator.create_sandbox("s2")
        assert await orchestrator.list_files("s2") == []

    @pytest.mark.asyncio
    async def test_listing_failure_fails_soft(self, orchestrator, fake_runtime):
        await orchestrator.create_sandbox("s1")
        fake_runtime.exec_handler = lambda c, a, w: ExecResult("", "find: error", 2)
        assert await orchestrator.list_files("s1") == []

    @pytest.mark.asyncio
    async def test_lists_tree_with_contents(self, orchestrator, workspace_files):
        workspace_files.update({"package.json": "{}", "src/index.ts": "console.log(1)"})
        await orchestrator.create_sandbox("s1")

        tree = await orchestrator.list_files("s1")

        assert [n.name for n in tree] == ["src", "package.json"]
        index = tree[0].children[0]
        assert index.content == "console.log(1)"
        assert index.language == "typescript"


class TestWriteFile:
    """Test write_file and sync_files."""

    @pytest.mark.asyncio
    async def test_write_builds_single_safe_command(self, orchestrator, fake_runtime):
        await orchestrator.create_sandbox("s1")

        await orchestrator.write_file("s1", "a/b.txt", "it's $HOME")

        _, argv, workdir = fake_runtime.exec_calls[-1]
        command = argv[2]
        assert command.startswith("mkdir -p -- a && printf '%s' ")
        assert command.endswith("| base64 -d > a/b.txt")
        assert "$HOME" not in command
        assert workdir == "/workspace"

    @pytest.mark.asyncio
    async def test_write_top_level_file_skips_mkdir(self, orchestrator, fake_runtime):
        await orchestrator.create_sandbox("s1")
        await orchestrator.write_file("s1", "index.js", "")
        assert not fake_runtime.exec_calls[-1][1][2].startswith("mkdir")

    @pytest.mark.asyncio
    async def test_write_failure_raises(self, orchestrator, fake_runtime):
        await orchestrator.create_sandbox("s1")
        fake_runtime.exec_handler = lambda c, a, w: ExecResult("", "read-only", 1)

        with pytest.raises(FileWriteError):
            await orchestrator.write_file("s1", "a.txt", "x")

    @pytest.mark.asyncio
    async def test_write_rejects_escaping_path(self, orchestrator):
        await orchestrator.create_sandbox("s1")
        with pytest.raises(ValidationError):
            await orchestrator.write_file("s1", "../outside.txt", "x")

    @pytest.mark.asyncio
    async def test_write_to_unknown_session_fails_after_retries(self, orchestrator):
        with pytest.raises(SessionNotFoundError):
            await orchestrator.write_file("never", "a.txt", "x")

    @pytest.mark.asyncio
    async def test_write_to_simulated_session_is_noop(self, orchestrator, fake_runtime):
        fake_runtime.available = False
        await orchestrator.create_sandbox("s2")
        await orchestrator.write_file("s2", "a.txt", "x")
        assert fake_runtime.exec_calls == []

    @pytest.mark.asyncio
    async def test_write_racing_create_succeeds(
        self, orchestrator, fake_runtime, workspace_files
    ):
        fake_runtime.create_gate = asyncio.Event()
        write = asyncio.create_task(orchestrator.write_file("s3", "a/b.txt", "hello"))
        await asyncio.sleep(0.01)
        create = asyncio.create_task(orchestrator.create_sandbox("s3"))
        await asyncio.sleep(0.01)
        fake_runtime.create_gate.set()

        await create
        await write

        tree = await orchestrator.list_files("s3")
        assert tree[0].name == "a"
        assert tree[0].children[0].content == "hello"

    @pytest.mark.asyncio
    async def test_sync_writes_every_file_in_tree(self, orchestrator, workspace_files):
        await orchestrator.create_sandbox("s1")
        nodes = [
            FileNode(name="package.json", path="package.json", type="file", content="{}"),
            FileNode(
                name="src",
                path="src",
                type="folder",
                children=[
                    FileNode(name="index.ts", path="ignored", type="file", content="x"),
                    FileNode(name="empty", path="src/empty", type="folder", children=[]),
                ],
            ),
        ]

        written = await orchestrator.sync_files("s1", nodes)

        assert written == 2
        assert workspace_files == {"package.json": "{}", "src/index.ts": "x"}
