"""Kalimat: Quranic vocabulary learning service."""

__version__ = "0.1.0"
