"""Scene build pipeline.

Writes scene files to an isolated temporary workspace, links the shared
dependencies, runs the SDK build tool and reads back the bundled output.

Process:
1. Create a uniquely named temporary directory
2. Write scene files, recreating directories implied by their paths
3. Symlink the shared node_modules into the workspace
4. Run the build command with install skipped
5. Read the bundled output (bin/index.js)
6. Copy assets (models, images, sounds, scene.json), never .ts/.tsx sources
7. Remove the workspace on every exit path

A compiler failure is returned as a failed BuildResult carrying the
diagnostic text. Environment failures raise BuildEnvironmentError.
"""

import asyncio
import logging
import re
import shutil
import subprocess
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Mapping

from scenelab.config import Settings
from scenelab.exceptions import BuildEnvironmentError, InvalidDescriptor, MissingDescriptor
from scenelab.models import FileSet
from scenelab.services.build_workspace import SharedDependencies
from scenelab.services.scene_export import DESCRIPTOR_FILE, parse_descriptor

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = {".ts", ".tsx"}


@dataclass
class BuildResult:
    """Outcome of one build invocation."""

    success: bool
    built_files: FileSet = field(default_factory=dict)
    stdout: str = ""
    stderr: str = ""
    duration_seconds: float = 0.0

    @property
    def diagnostic(self) -> str:
        """Text to show the collaborator when asking for a fix."""
        return self.stderr or self.stdout or "Build failed without diagnostic output"

    @classmethod
    def failure(cls, stderr: str, stdout: str = "", duration_seconds: float = 0.0) -> "BuildResult":
        return cls(success=False, stdout=stdout, stderr=stderr, duration_seconds=duration_seconds)


def _workspace_relative(filepath: str) -> PurePosixPath:
    return PurePosixPath(filepath.replace("\\", "/").lstrip("/"))


class ScenePipeline:
    """Builds scenes with the external SDK build tool."""

    def __init__(self, settings: Settings, dependencies: SharedDependencies):
        self.dependencies = dependencies
        self.command = list(settings.build_command)
        self.timeout = settings.build_timeout_seconds
        self.output_path = settings.build_output_path
        self.asset_extensions = {ext.lower() for ext in settings.build_asset_extensions}

    async def build(self, scene_id: str, files: Mapping[str, str]) -> BuildResult:
        """Build a file set without blocking the event loop.

        The whole invocation, cleanup included, runs in one worker thread, so
        a cancelled caller never leaves a half-removed workspace behind.
        """
        return await asyncio.to_thread(self.build_sync, scene_id, dict(files))

    def build_sync(self, scene_id: str, files: Mapping[str, str]) -> BuildResult:
        """Build a file set in an isolated workspace.

        Raises:
            BuildEnvironmentError: shared dependencies are not initialized,
                the workspace cannot be created, or the build tool is missing
        """
        # Fail before touching the filesystem if startup never ran
        self.dependencies.node_modules_path

        safe_id = re.sub(r"[^A-Za-z0-9_.-]", "_", scene_id)
        try:
            workdir = Path(tempfile.mkdtemp(prefix=f"scene-{safe_id}-"))
        except OSError as e:
            raise BuildEnvironmentError(f"Failed to create build workspace: {e}") from e

        logger.info(f"Building scene {scene_id} in {workdir}")
        started = time.monotonic()
        try:
            result = self._build_in(scene_id, files, workdir)
            result.duration_seconds = round(time.monotonic() - started, 3)
            return result
        finally:
            try:
                shutil.rmtree(workdir)
                logger.debug(f"Cleaned up build workspace {workdir}")
            except OSError as e:
                logger.error(f"Failed to clean up build workspace {workdir}: {e}")

    def _build_in(self, scene_id: str, files: Mapping[str, str], workdir: Path) -> BuildResult:
        try:
            self._write_files(files, workdir)
            self.dependencies.link_into(workdir)
        except (OSError, ValueError) as e:
            logger.warning(f"Workspace setup failed for scene {scene_id}: {e}")
            return BuildResult.failure(f"Failed to prepare build workspace: {e}")

        try:
            parse_descriptor(files)
        except (MissingDescriptor, InvalidDescriptor) as e:
            return BuildResult.failure(e.message)

        try:
            completed = subprocess.run(
                self.command,
                cwd=workdir,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Build timed out after {self.timeout} seconds for scene {scene_id}")
            return BuildResult.failure(f"Build timed out after {self.timeout} seconds")
        except OSError as e:
            raise BuildEnvironmentError(f"Failed to run build command {self.command[0]}: {e}") from e

        if completed.returncode != 0:
            logger.warning(f"Build failed with code {completed.returncode} for scene {scene_id}")
            return BuildResult.failure(
                completed.stderr.strip() or completed.stdout.strip(),
                stdout=completed.stdout,
            )

        output_file = workdir / self.output_path
        try:
            bundle = output_file.read_text(encoding="utf-8")
        except OSError as e:
            return BuildResult.failure(
                f"Build output not found at {self.output_path}: {e}",
                stdout=completed.stdout,
            )

        built_files: FileSet = {self.output_path: bundle}
        built_files.update(self._collect_assets(files))

        logger.info(
            f"Build succeeded for scene {scene_id}: {len(bundle)} bytes bundled, "
            f"{len(built_files)} files total"
        )
        return BuildResult(success=True, built_files=built_files, stdout=completed.stdout)

    @staticmethod
    def _write_files(files: Mapping[str, str], workdir: Path) -> None:
        root = workdir.resolve()
        for filepath, content in files.items():
            target = (workdir / _workspace_relative(filepath)).resolve()
            if root not in target.parents:
                raise ValueError(f"File path escapes the workspace: {filepath}")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        logger.debug(f"Wrote {len(files)} files to {workdir}")

    def _collect_assets(self, files: Mapping[str, str]) -> FileSet:
        """Non-source files that ship alongside the bundle."""
        assets: FileSet = {}
        for filepath, content in files.items():
            relative = str(_workspace_relative(filepath))
            suffix = PurePosixPath(relative).suffix.lower()
            if suffix in SOURCE_EXTENSIONS:
                continue
            if relative == DESCRIPTOR_FILE or suffix in self.asset_extensions:
                assets[relative] = content
        return assets
