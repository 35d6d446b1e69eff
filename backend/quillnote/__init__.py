"""Quillnote: personal notes backend with a best-effort document-store mirror."""

__version__ = "0.1.0"
