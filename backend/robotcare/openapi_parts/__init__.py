"""Modular pieces for the programmatic OpenAPI builder.

Constants (entity and action registries) and small schema helpers live here so
the builder stays a readable top-down assembly.
"""

__all__ = [
    "constants",
    "helpers",
]
