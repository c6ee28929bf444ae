"""JarScan - catalogue the classes inside Java archives."""

__version__ = "0.1.0"
