"""nodeforge core: catalogue model, node lifecycle and graph serialization.

This package contains the schema catalogue, the live node model and the
destroy / tree-check / serialize engines derived from it.  It has **no**
dependency on typer or any CLI framework.
"""
from __future__ import annotations
