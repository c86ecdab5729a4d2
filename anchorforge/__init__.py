"""anchorforge -- declarative, anchored patching for project scaffolding.

The patcher (:mod:`anchorforge.patcher`) turns a file's text plus a patch
directive into new text, or reports that the anchor was missing.  Recipes
(:mod:`anchorforge.recipe`) list patches, file creation, commands and a final
git commit as data, and :mod:`anchorforge.runner` applies them in order.
"""

__version__ = "0.1.0"
