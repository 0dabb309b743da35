# research coach backend: ai helpers for the pre-entrance research workflow
__version__ = "1.0.0"
