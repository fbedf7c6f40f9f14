"""
pipespine: query analytics pipes over HTTP and turn the JSON rows into typed,
time-aligned frames.

Layers, leaves first::

    core/        errors, logging, settings
    transform/   pure response → frame engine
    sources/     HTTP client and wire models
    ops/         query, batch, variable, health operations
    cli/, api/   typer and FastAPI surfaces over ops
"""

__version__ = "0.1.0"
