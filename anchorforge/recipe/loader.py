"""Load recipes from YAML or JSON documents."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import Recipe, RecipeError


def parse_recipe(data: Any) -> Recipe:
    """Validate an already-decoded recipe document.

    Raises:
        RecipeError: If the document is not a mapping or fails validation.
    """
    if not isinstance(data, dict):
        raise RecipeError(f"recipe must be a mapping, got {type(data).__name__}")
    try:
        return Recipe.model_validate(data)
    except ValidationError as exc:
        raise RecipeError(f"invalid recipe: {exc}") from exc


def loads_recipe(text: str, fmt: str = "yaml") -> Recipe:
    """Parse recipe *text* in ``yaml`` (the default) or ``json`` format."""
    try:
        if fmt == "json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise RecipeError(f"cannot parse recipe as {fmt}: {exc}") from exc
    return parse_recipe(data)


def load_recipe(path: str | Path) -> Recipe:
    """Read and validate the recipe at *path*.

    Files ending in ``.json`` are parsed as JSON, everything else as YAML.
    If the recipe has no name, the file stem is used.

    Raises:
        RecipeError: If the file is missing, unparsable or invalid.
    """
    recipe_path = Path(path)
    try:
        text = recipe_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise RecipeError(f"recipe file not found: {recipe_path}") from exc

    fmt = "json" if recipe_path.suffix.lower() == ".json" else "yaml"
    recipe = loads_recipe(text, fmt)
    if "name" not in recipe.model_fields_set:
        recipe.name = recipe_path.stem
    return recipe
