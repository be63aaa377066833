"""Export models: content-addressed bundle plus its discovery record."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field


class RealmConfigurations(BaseModel):
    """Realm configuration advertised to viewers."""

    model_config = ConfigDict(populate_by_name=True)

    network_id: int = Field(0, alias="networkId")
    global_scenes_urn: list[str] = Field(default_factory=list, alias="globalScenesUrn")
    scenes_urn: list[str] = Field(default_factory=list, alias="scenesUrn")
    realm_name: str = Field(alias="realmName")


class ServiceStatus(BaseModel):
    healthy: bool
    public_url: str = Field("", alias="publicUrl")

    model_config = ConfigDict(populate_by_name=True)


class CommsStatus(BaseModel):
    healthy: bool = True
    protocol: str = "v3"
    fixed_adapter: str = Field("offline:offline", alias="fixedAdapter")

    model_config = ConfigDict(populate_by_name=True)


class AboutResponse(BaseModel):
    """Discovery ("about") record telling a viewer where to fetch an export."""

    model_config = ConfigDict(populate_by_name=True)

    healthy: bool = True
    accepting_users: bool = Field(True, alias="acceptingUsers")
    configurations: RealmConfigurations
    content: ServiceStatus
    comms: CommsStatus = Field(default_factory=CommsStatus)
    lambdas: ServiceStatus
    bff: ServiceStatus = Field(default_factory=lambda: ServiceStatus(healthy=False))

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)


@dataclass(frozen=True)
class SceneExport:
    """Output of content-addressing a file set.

    ``hashed_files`` maps content hash to raw bytes and includes the
    serialized manifest under ``entity_id``.
    """

    entity_id: str
    hashed_files: Mapping[str, bytes]
    about: AboutResponse
    content: tuple[tuple[str, str], ...] = field(default=())

    def __post_init__(self):
        object.__setattr__(self, "hashed_files", MappingProxyType(dict(self.hashed_files)))

    def get_content(self, content_hash: str) -> bytes | None:
        return self.hashed_files.get(content_hash)

    @property
    def content_hashes(self) -> frozenset[str]:
        """Hashes referenced by the manifest, excluding the manifest itself."""
        return frozenset(h for _, h in self.content)
