import json

import pytest
from pydantic import ValidationError

from zen_free_models.output import FreeModelsOutput, build_output, load_output, write_output


def test_build_output_sorts_and_dedupes():
    output = build_output(["glm-4.7-free", "big-pickle", "gpt-5"], ["glm-4.7-free", "big-pickle", "glm-4.7-free"], "https://opencode.ai/docs/zen/")
    assert output.model_ids == ["big-pickle", "glm-4.7-free"]
    assert output.raw.total_models_found == 3
    assert [(entry.model_id, entry.is_free) for entry in output.raw.all_models] == [
        ("glm-4.7-free", True),
        ("big-pickle", True),
        ("gpt-5", False),
    ]
    assert output.updated_at.tzinfo is not None


def test_json_uses_published_field_names():
    data = json.loads(build_output(["a"], ["a"], "https://example.test/").to_json())
    assert set(data) == {"updatedAt", "source", "modelIds", "raw"}
    assert set(data["raw"]) == {"totalModelsFound", "scrapeTimestamp", "allModels"}
    assert data["raw"]["allModels"] == [{"modelId": "a", "isFree": True}]


def test_write_output_replaces_file(tmp_path):
    path = tmp_path / "out" / "zen-free-models.json"
    write_output(build_output(["a", "b"], ["b"], "https://example.test/"), path)
    assert load_output(path).model_ids == ["b"]
    assert [p.name for p in path.parent.iterdir()] == ["zen-free-models.json"]


def test_schema_rejects_bad_values():
    with pytest.raises(ValidationError):
        FreeModelsOutput.model_validate({"updatedAt": "2026-01-01T00:00:00Z", "source": "ftp://x", "modelIds": []})
    with pytest.raises(ValidationError):
        FreeModelsOutput.model_validate({"updatedAt": "2026-01-01T00:00:00Z", "source": "https://x", "modelIds": [""]})
    with pytest.raises(ValidationError):
        build_output([], [], "https://example.test/")
