"""Application configuration via environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Scene Lab"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    log_format: Literal["text", "json"] = "text"

    # CORS
    cors_origins: list[str] = ["http://localhost:5173"]

    # Serving
    public_base_url: str = "http://localhost:3001"
    catalyst_url: str = "https://peer.decentraland.org"

    # Code-generation collaborator
    llm_provider: Literal["anthropic", "openai"] = "anthropic"
    llm_model: str = "claude-sonnet-4-20250514"
    llm_max_tokens: int = 8000
    anthropic_api_key: str | None = None
    openai_api_key: str | None = None
    collaborator_timeout_seconds: float = 180.0

    # Build-validate-retry
    max_build_retries: int = 2  # 3 attempts total
    build_timeout_seconds: float = 120.0
    build_command: list[str] = [
        "npx",
        "@dcl/sdk-commands",
        "build",
        "--skip-install",
        "--production",
    ]
    build_output_path: str = "bin/index.js"
    build_asset_extensions: list[str] = [
        ".glb", ".gltf", ".png", ".jpg", ".jpeg", ".gif", ".mp3", ".ogg", ".wav", ".json",
    ]

    # Shared dependency workspace (installed once, symlinked into every build)
    build_workspace_dir: Path = Path.home() / ".scene-lab" / "build-workspace"
    dependency_install_command: list[str] = ["npm", "install"]
    dependency_install_timeout_seconds: float = 300.0  # 5 minutes
    sdk_dependencies: dict[str, str] = {
        "@dcl/sdk": "^7.0.0",
        "@dcl/ecs": "^7.0.0",
    }

    def scene_base_url(self, scene_id: str) -> str:
        """Public base URL under which a live scene is served."""
        return f"{self.public_base_url.rstrip('/')}/scenes/{scene_id}"

    def snapshot_base_url(self, scene_id: str, entry_id: str) -> str:
        """Public base URL under which a historical snapshot is served."""
        return f"{self.scene_base_url(scene_id)}/snapshots/{entry_id}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
