"""
LLMS CMS Generator

llms.txt & llms-full.txt generator for content-managed websites.
"""

__all__ = [
    "__version__",
    "config",
    "model",
    "tree_source",
    "matcher",
    "categorization",
    "exclusion",
    "translation",
    "language",
    "generator",
    "store",
    "service",
]

__version__ = "0.1.0"
