"""
Package initializer for protocolkb.
"""

__version__ = "1.0.0"

# Version metadata: included in all output artifacts
ENGINE_VERSION = __version__
CONTRACT_VERSION = "engine_contract_v1"
TAXONOMY_VERSION = "2025.1"

__all__ = ["__version__", "ENGINE_VERSION", "CONTRACT_VERSION", "TAXONOMY_VERSION"]
