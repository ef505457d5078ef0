"""ICD-10-CM guideline encoder."""

__version__ = "0.1.0"
