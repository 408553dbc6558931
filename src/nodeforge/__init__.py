"""nodeforge: AST node catalogues and the operations derived from them."""
from __future__ import annotations

__version__ = "0.4.0"

__all__ = ["__version__"]
