"""Static neighborhood adjacency and borough lookup, loaded once from YAML."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

UNKNOWN_BOROUGH = "Unknown"


class NeighborhoodTable(BaseModel):
    """Area -> fallback areas, the last-resort list, and area -> borough.

    All lookups are case-insensitive; keys are stored lowercased.
    """

    similar: dict[str, list[str]] = Field(default_factory=dict)
    default_similar: list[str] = Field(default_factory=list)
    last_resort: list[str] = Field(default_factory=list)
    last_resort_region: str = "the city"
    boroughs: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("similar")
    @classmethod
    def lowercase_keys(cls, v: dict[str, list[str]]) -> dict[str, list[str]]:
        return {k.lower(): list(areas) for k, areas in v.items()}

    def similar_to(self, area: str) -> list[str]:
        """Ordered fallback areas for ``area`` (the default list when unknown)."""
        return list(self.similar.get((area or "").lower(), self.default_similar))

    def borough_of(self, area: str) -> str:
        key = (area or "").lower()
        for borough, areas in self.boroughs.items():
            if key in areas:
                return borough
        return UNKNOWN_BOROUGH

    @classmethod
    def from_yaml(cls, path: str | Path) -> "NeighborhoodTable":
        """Load the table from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Neighborhood table not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
