"""Schema and writer for the published free-models artifact."""

from __future__ import annotations

import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator


class ModelEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model_id: str = Field(alias="modelId", min_length=1)
    is_free: bool = Field(alias="isFree")


class RawStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    total_models_found: PositiveInt = Field(alias="totalModelsFound")
    scrape_timestamp: PositiveInt = Field(alias="scrapeTimestamp")
    all_models: Optional[List[ModelEntry]] = Field(default=None, alias="allModels")


class FreeModelsOutput(BaseModel):
    """Contents of ``zen-free-models.json``."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    updated_at: datetime = Field(alias="updatedAt")
    source: str
    model_ids: List[str] = Field(alias="modelIds")
    raw: Optional[RawStats] = None

    @field_validator("updated_at")
    @classmethod
    def _require_offset(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("updatedAt must carry a UTC offset")
        return value

    @field_validator("source")
    @classmethod
    def _require_url(cls, value: str) -> str:
        if not value.startswith(("https://", "http://")):
            raise ValueError("source must be an http(s) URL")
        return value

    @field_validator("model_ids")
    @classmethod
    def _require_ids(cls, value: List[str]) -> List[str]:
        if any(not identifier for identifier in value):
            raise ValueError("modelIds must not contain empty strings")
        return value

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def build_output(identifiers: Sequence[str], free_ids: Sequence[str], source: str) -> FreeModelsOutput:
    """Wrap the matched identifiers, sorted and de-duplicated, with run metadata."""

    model_ids = sorted(set(free_ids))
    free = set(model_ids)
    return FreeModelsOutput(
        updated_at=datetime.now(timezone.utc),
        source=source,
        model_ids=model_ids,
        raw=RawStats(
            total_models_found=len(identifiers),
            scrape_timestamp=int(time.time() * 1000),
            all_models=[ModelEntry(model_id=identifier, is_free=identifier in free) for identifier in identifiers],
        ),
    )


def write_output(output: FreeModelsOutput, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp.{os.getpid()}")
    try:
        tmp.write_text(output.to_json() + "\n", encoding="utf-8")
        os.replace(tmp, path)
    finally:
        if tmp.exists():
            tmp.unlink()
    return path


def load_output(path: str | Path) -> FreeModelsOutput:
    return FreeModelsOutput.model_validate_json(Path(path).read_text(encoding="utf-8"))
