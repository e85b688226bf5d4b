# Path: core/__init__.py
# Purpose: Package initializer for core application layer.
# Layer: core.
# Details: Aggregates subpackages for fingerprinting, indexing, matching, storage, tasks, export, and models.
