# relish/__init__.py
"""Video-to-recipe ingestion: discovery, media extraction, description,
structured recipe extraction and semantic entity resolution."""

__version__ = "0.3.0"
