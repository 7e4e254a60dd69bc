"""
Recipe Harvest - turn arbitrary recipe web pages into structured recipes.

Subpackages:
- recipe_import: fetching, extraction strategies, normalization
- db: job and recipe persistence
- web: job orchestration and the HTTP API
"""

__version__ = "0.3.0"
