# Path: core/export/__init__.py
# Purpose: Package initializer for exporting selected matches.
# Layer: core/export.
# Details: Exposes the exporter and its options.

from .exporter import Exporter, ExportOptions, ExportReport, default_output_path

__all__ = ["Exporter", "ExportOptions", "ExportReport", "default_output_path"]
