"""Shared build dependency workspace.

Dependencies are installed once into a persistent workspace; every build
symlinks that node_modules directory instead of installing its own.
"""

import json
import logging
import shutil
import subprocess
import threading
from pathlib import Path

from scenelab.config import Settings
from scenelab.exceptions import BuildEnvironmentError

logger = logging.getLogger(__name__)

WORKSPACE_PACKAGE_NAME = "scene-lab-build-workspace"


class SharedDependencies:
    """Create-once, read-only-after dependency set shared by all builds."""

    def __init__(self, settings: Settings):
        self.workspace_dir = Path(settings.build_workspace_dir).expanduser()
        self.install_command = list(settings.dependency_install_command)
        self.install_timeout = settings.dependency_install_timeout_seconds
        self.dependencies = dict(settings.sdk_dependencies)
        self._node_modules: Path | None = None
        self._lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        return self._node_modules is not None

    @property
    def node_modules_path(self) -> Path:
        """Path of the shared node_modules directory.

        Raises:
            BuildEnvironmentError: initialize() has not completed
        """
        if self._node_modules is None:
            raise BuildEnvironmentError(
                "Build workspace not initialized. Call initialize() at startup."
            )
        return self._node_modules

    def initialize(self) -> Path:
        """Write package.json and install dependencies if not already present.

        Safe to call concurrently; only the first caller does any work.
        Blocking, so run it in a worker thread from async code.

        Raises:
            BuildEnvironmentError: workspace could not be created or installed
        """
        with self._lock:
            if self._node_modules is not None:
                logger.debug(f"Build workspace already initialized at {self._node_modules}")
                return self._node_modules

            node_modules = self.workspace_dir / "node_modules"
            try:
                logger.info(f"Preparing build workspace at {self.workspace_dir}")
                self.workspace_dir.mkdir(parents=True, exist_ok=True)
                package_json = {
                    "name": WORKSPACE_PACKAGE_NAME,
                    "version": "1.0.0",
                    "private": True,
                    "dependencies": self.dependencies,
                }
                (self.workspace_dir / "package.json").write_text(
                    json.dumps(package_json, indent=2), encoding="utf-8"
                )
            except OSError as e:
                raise BuildEnvironmentError(f"Failed to create build workspace: {e}") from e

            if node_modules.is_dir():
                logger.info("Found existing node_modules, skipping install")
            else:
                self._install()
                if not node_modules.is_dir():
                    raise BuildEnvironmentError(
                        f"Dependency install finished but {node_modules} is missing"
                    )

            self._node_modules = node_modules
            logger.info(f"Build workspace initialized: {node_modules}")
            return node_modules

    def _install(self) -> None:
        logger.info(f"Installing build dependencies with {' '.join(self.install_command)} (this may take a minute)")
        try:
            result = subprocess.run(
                self.install_command,
                cwd=self.workspace_dir,
                capture_output=True,
                text=True,
                timeout=self.install_timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise BuildEnvironmentError(
                f"Dependency install timed out after {self.install_timeout} seconds"
            ) from e
        except OSError as e:
            raise BuildEnvironmentError(f"Failed to run dependency install: {e}") from e

        if result.stdout:
            logger.debug(f"install stdout: {result.stdout}")
        if result.returncode != 0:
            raise BuildEnvironmentError(
                f"Dependency install failed with code {result.returncode}",
                stderr=result.stderr,
            )

    def link_into(self, target_dir: Path) -> Path:
        """Symlink the shared node_modules into a build directory."""
        link = target_dir / "node_modules"
        if link.is_symlink() or link.exists():
            logger.debug(f"node_modules already present at {link}")
            return link
        link.symlink_to(self.node_modules_path, target_is_directory=True)
        return link

    def cleanup(self) -> None:
        """Remove the shared workspace to force a reinstall on next initialize()."""
        with self._lock:
            shutil.rmtree(self.workspace_dir, ignore_errors=True)
            self._node_modules = None
            logger.info(f"Removed build workspace {self.workspace_dir}")
