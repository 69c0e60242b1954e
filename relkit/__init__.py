"""relkit: release lane for Sparkle-updated macOS applications."""

__version__ = "0.1.0"
