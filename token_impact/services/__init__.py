"""Business logic services: symbols, pricing, aggregation, assembly."""

from .assembler import QuoteAssembler, select_best_venue
from .pricing import compute_impact, visible_liquidity
from .symbols import SymbolCatalog, SymbolNormalizer, SymbolTable

__all__ = [
    "QuoteAssembler",
    "select_best_venue",
    "compute_impact",
    "visible_liquidity",
    "SymbolCatalog",
    "SymbolNormalizer",
    "SymbolTable",
]
