"""Multi-client TCP chat server with a tab-separated message protocol."""

__version__ = "0.1.0"
__all__ = ["handler", "protocol", "registry", "server"]