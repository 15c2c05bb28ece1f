# src/register.py
"""
Scans the local `content/` directory plus any extra content folders, loads
every JSON definition into its Pydantic model and collects them in a registry.
The model is chosen by folder name: content/GoalDefinition/*.json, etc.
Subfolders named "meta" or starting with a dot are ignored.
Later folders override earlier definitions with the same `id`.
"""
import json
import logging
import inspect
from pathlib import Path
from typing import List, Dict, Type

from pydantic import BaseModel, ValidationError

import objects

logger = logging.getLogger(__name__)

# Extra content folders (relative to project root), applied after local content
MOD_PATHS = [
    Path(__file__).resolve().parent.parent / "content_custom",
]
# Local content directory
LOCAL_CONTENT = Path(__file__).resolve().parent.parent / "content"

Registry = Dict[str, Dict[str, BaseModel]]


def is_valid_folder(path: Path) -> bool:
    return (
        path.is_dir()
        and not path.name.startswith('.')
        and path.name != 'meta'
    )


def load_models() -> Dict[str, Type[BaseModel]]:
    """
    Public content models defined in objects.py, keyed by class name.
    Runtime models (leading underscore) are never loaded from disk.
    """
    models: Dict[str, Type[BaseModel]] = {}
    for name, cls in inspect.getmembers(objects, inspect.isclass):
        if issubclass(cls, BaseModel) and cls is not BaseModel and not name.startswith("_"):
            if "id" in cls.model_fields:
                models[name] = cls
    return models


def register_content(folders: List[Path]) -> Registry:
    """
    Load all JSON files in each valid subfolder of the given folders and
    return { model_name: { id: instance, ... } }.
    Unparseable files are logged and skipped.
    """
    models = load_models()
    registry: Registry = {name: {} for name in models}

    for folder in folders:
        if not folder.exists():
            continue
        for sub in sorted(folder.iterdir()):
            if not is_valid_folder(sub):
                continue
            model_name = sub.name
            model_cls = models.get(model_name)
            if model_cls is None:
                logger.debug("skipping unknown content folder %s", sub)
                continue
            for json_file in sorted(sub.glob("*.json")):
                try:
                    data = json.loads(json_file.read_text(encoding="utf-8"))
                    instance = model_cls.model_validate(data)
                except (OSError, json.JSONDecodeError, ValidationError) as e:
                    logger.error("Error parsing %s: %s", json_file, e)
                    continue
                if instance.id in registry[model_name]:
                    logger.info("%s %s overridden by %s", model_name, instance.id, json_file)
                registry[model_name][instance.id] = instance

    return registry


def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    registry = register_content([LOCAL_CONTENT] + MOD_PATHS)
    for model_name, collection in registry.items():
        logger.info("Loaded %d %s entries.", len(collection), model_name)


if __name__ == "__main__":
    main()
