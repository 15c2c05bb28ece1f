import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / 'src'))

import objects as G  # type: ignore
import content_env  # type: ignore
from register import register_content, LOCAL_CONTENT  # type: ignore


def write(folder: Path, model: str, name: str, data) -> None:
    target = folder / model
    target.mkdir(parents=True, exist_ok=True)
    text = data if isinstance(data, str) else json.dumps(data)
    (target / f"{name}.json").write_text(text, encoding="utf-8")


def test_loads_definitions_by_folder_name(tmp_path):
    write(tmp_path, "GoalDefinition", "eat", {"id": "eat", "units_required": 2, "recurrence": 10})
    write(tmp_path, "ItemType", "bread", {"id": "bread"})
    registry = register_content([tmp_path])
    goal = registry["GoalDefinition"]["eat"]
    assert isinstance(goal, G.GoalDefinition)
    assert goal.recurrence == 10
    assert registry["ItemType"]["bread"].unit_name == "unit"
    assert registry["ActorDefinition"] == {}


def test_invalid_files_are_skipped(tmp_path, caplog):
    write(tmp_path, "GoalDefinition", "broken", "{not json")
    write(tmp_path, "GoalDefinition", "bad_progress", {"id": "x", "units_required": 1, "initial_progress": 1})
    write(tmp_path, "GoalDefinition", "ok", {"id": "ok"})
    registry = register_content([tmp_path])
    assert list(registry["GoalDefinition"]) == ["ok"]
    assert "Error parsing" in caplog.text


def test_meta_and_unknown_folders_ignored(tmp_path):
    write(tmp_path, "meta", "GoalDefinition", {"id": "ignored"})
    write(tmp_path, "Widget", "w", {"id": "w"})
    registry = register_content([tmp_path])
    assert "Widget" not in registry
    assert registry["GoalDefinition"] == {}


def test_later_folders_override(tmp_path):
    base, mod = tmp_path / "base", tmp_path / "mod"
    write(base, "ItemType", "bread", {"id": "bread", "unit_name": "loaf"})
    write(mod, "ItemType", "bread", {"id": "bread", "unit_name": "slice"})
    registry = register_content([base, mod, tmp_path / "missing"])
    assert registry["ItemType"]["bread"].unit_name == "slice"


def test_actor_definition_validates_hierarchy(tmp_path):
    write(tmp_path, "ActorDefinition", "a", {"id": "a", "hierarchy": ["eat"], "satisfactions": {"rest": ["bed"]}})
    write(tmp_path, "ActorDefinition", "b", {"id": "b", "hierarchy": ["eat", "eat"]})
    assert register_content([tmp_path])["ActorDefinition"] == {}


def test_bundled_content_loads():
    registry = register_content([LOCAL_CONTENT])
    assert set(registry["GoalDefinition"]) == {"eat", "shelter", "rest", "leisure"}
    actor_def = registry["ActorDefinition"]["Actor"]
    assert actor_def.item_types() <= set(registry["ItemType"])


def test_write_schemas(tmp_path):
    written = content_env.write_schemas(tmp_path)
    names = {p.parent.name for p in written}
    assert names == {"GoalDefinition", "ItemType", "ActorDefinition"}
    schema = json.loads((tmp_path / "meta" / "GoalDefinition" / "schema.json").read_text())
    assert "units_required" in schema["properties"]
