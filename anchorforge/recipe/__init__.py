"""Recipes: ordered, declarative scaffolding steps.

Quick usage::

    from anchorforge.recipe import load_recipe

    recipe = load_recipe("bootstrap.yaml")
    for step in recipe.steps:
        print(step.kind, step.label())
"""

from anchorforge.recipe.loader import load_recipe, loads_recipe, parse_recipe
from anchorforge.recipe.models import (
    CommandStep,
    CommitStep,
    CreateStep,
    FileSelect,
    PatchStep,
    Recipe,
    RecipeError,
    RemoveStep,
    Step,
    StepResult,
    StepStatus,
)

__all__ = [
    "CommandStep",
    "CommitStep",
    "CreateStep",
    "FileSelect",
    "PatchStep",
    "Recipe",
    "RecipeError",
    "RemoveStep",
    "Step",
    "StepResult",
    "StepStatus",
    "load_recipe",
    "loads_recipe",
    "parse_recipe",
]
