"""Starter project generation inside freshly created sandboxes."""

from typing import Optional

import structlog

from ...config import Settings
from ...models.exec import ExecResult
from ...models.errors import PlaygroundException
from ...models.session import ProjectType
from .executor import CommandExecutor

logger = structlog.get_logger(__name__)


class ProjectBootstrapper:
    """Runs the external scaffolding command in a new sandbox's workspace.

    A failed bootstrap is logged and otherwise ignored; the sandbox stays
    usable with an empty workspace.
    """

    def __init__(self, executor: CommandExecutor, settings: Settings):
        self._executor = executor
        self._settings = settings

    def build_command(self, project_type: ProjectType) -> str:
        variant = ProjectType(project_type).value
        return self._settings.bootstrap_command.format(variant=variant)

    def _truncate(self, text: str) -> str:
        limit = self._settings.bootstrap_log_truncate_chars
        if len(text) <= limit:
            return text
        return text[:limit] + "..."

    async def bootstrap(
        self, session_id: str, project_type: ProjectType
    ) -> Optional[ExecResult]:
        """Populate the workspace with a starter project.

        Returns:
            The scaffolding command's result, or None if it could not run
        """
        if not self._settings.bootstrap_enabled:
            return None

        command = self.build_command(project_type)
        logger.info(
            "Bootstrapping sandbox project",
            session_id=session_id,
            project_type=ProjectType(project_type).value,
        )
        try:
            result = await self._executor.exec(
                session_id,
                command,
                workdir=self._settings.workspace_dir,
                timeout=self._settings.bootstrap_timeout_seconds,
            )
        except PlaygroundException as e:
            logger.error("Project bootstrap failed", session_id=session_id, error=e.message)
            return None

        log = logger.info if result.exit_code == 0 else logger.warning
        log(
            "Project bootstrap finished",
            session_id=session_id,
            exit_code=result.exit_code,
            stdout=self._truncate(result.stdout),
            stderr=self._truncate(result.stderr),
        )
        return result
