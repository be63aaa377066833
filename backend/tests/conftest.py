"""Shared fixtures: isolated settings, fake collaborator and fake build pipeline."""

import sys
from pathlib import Path

import pytest

from scenelab.config import Settings
from scenelab.exceptions import CollaboratorError
from scenelab.services.build_workspace import SharedDependencies
from scenelab.services.collaborator import CollaboratorResult
from scenelab.services.scene_build import BuildResult, ScenePipeline
from scenelab.services.scene_store import SceneStore

# Stand-in for the SDK build tool: "compiles" src/index.ts into bin/index.js
# and rejects sources containing SYNTAX_ERROR the way tsc would.
COMPILER_SCRIPT = """
import pathlib, sys
src = pathlib.Path('src/index.ts').read_text()
if 'SYNTAX_ERROR' in src:
    sys.stderr.write("src/index.ts(1,1): error TS1005: ';' expected.")
    sys.exit(1)
pathlib.Path('bin').mkdir(exist_ok=True)
pathlib.Path('bin/index.js').write_text('// compiled\\n' + src)
"""


def make_settings(tmp_path: Path, **overrides) -> Settings:
    values = dict(
        public_base_url="http://testserver",
        build_workspace_dir=tmp_path / "build-workspace",
        build_command=[sys.executable, "-c", COMPILER_SCRIPT],
        build_timeout_seconds=30,
        dependency_install_command=[sys.executable, "-c", "import os; os.mkdir('node_modules')"],
        dependency_install_timeout_seconds=30,
        max_build_retries=2,
        collaborator_timeout_seconds=5,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def dependencies(settings) -> SharedDependencies:
    deps = SharedDependencies(settings)
    deps.initialize()
    return deps


@pytest.fixture
def pipeline(settings, dependencies) -> ScenePipeline:
    return ScenePipeline(settings, dependencies)


@pytest.fixture
def store() -> SceneStore:
    return SceneStore()


class FakeCollaborator:
    """Returns scripted results (or raises scripted errors) in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[dict] = []

    def add(self, files: dict[str, str], explanation: str = "Done") -> "FakeCollaborator":
        self.responses.append(CollaboratorResult(files=files, explanation=explanation))
        return self

    async def generate_scene_modification(self, prompt, current_files, history):
        self.calls.append(
            {"prompt": prompt, "files": dict(current_files), "history": list(history)}
        )
        if not self.responses:
            raise CollaboratorError("No scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakePipeline:
    """Build pipeline with scripted outcomes; succeeds by default."""

    def __init__(self, *outcomes: BuildResult):
        self.outcomes = list(outcomes)
        self.builds: list[dict[str, str]] = []

    async def build(self, scene_id, files):
        self.builds.append(dict(files))
        if self.outcomes:
            return self.outcomes.pop(0)
        return succeeded_build(files)


def succeeded_build(files=None) -> BuildResult:
    built = {"bin/index.js": "// compiled"}
    for path, content in (files or {}).items():
        if path.lstrip("/") == "scene.json":
            built["scene.json"] = content
    return BuildResult(success=True, built_files=built)


def failed_build(stderr: str = "error TS2304: Cannot find name 'foo'.") -> BuildResult:
    return BuildResult.failure(stderr)


@pytest.fixture
def fake_collaborator() -> FakeCollaborator:
    return FakeCollaborator()


@pytest.fixture
def fake_pipeline() -> FakePipeline:
    return FakePipeline()
