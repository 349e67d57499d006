"""dexer: compiles module dexing properties into declarative build actions."""

from .domain.dex.builder import DexRequest, DexResult, compile_dex

__version__ = "0.1.0"
__all__ = ["DexRequest", "DexResult", "compile_dex", "__version__"]
