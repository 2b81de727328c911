"""codeatlas - multi-language code entity and dependency indexer."""

try:
    from importlib.metadata import version

    __version__ = version("codeatlas")
except Exception:
    __version__ = "0.0.0.dev0+local"  # Fallback for development
