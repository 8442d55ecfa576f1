"""Typed records decoded from Confluence REST responses."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class SpaceLinks(BaseModel):
    """Hyperlinks attached to a space."""

    webui: str = ""
    self_: str = Field(default="", alias="self")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SpaceExpandable(BaseModel):
    """Expansion hints for a space."""

    metadata: str = ""
    icon: str = ""
    description: str = ""
    homepage: str = ""

    model_config = ConfigDict(extra="ignore")


class Space(BaseModel):
    """A single entry of the space collection."""

    id: int = 0
    key: str = ""
    name: str = ""
    type: str = ""
    links: SpaceLinks = Field(default_factory=SpaceLinks, alias="_links")
    expandable: SpaceExpandable = Field(
        default_factory=SpaceExpandable, alias="_expandable"
    )

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SpaceResponse(BaseModel):
    """Payload of ``GET /rest/api/space``."""

    results: List[Space] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")
