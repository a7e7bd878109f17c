from advads_hub import __version__

__all__ = ["__version__"]
