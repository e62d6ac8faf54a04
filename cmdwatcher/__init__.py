"""
CmdWatcher: run shell commands when files change in watched folders.

Provides both a CLI and library API for subscribing to filesystem
notifications and dispatching them to per-folder command rules.
"""

__version__ = "0.1.0"
