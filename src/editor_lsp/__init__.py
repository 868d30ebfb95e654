"""
Editor LSP client

The session and synchronization core that lets a text editor talk to a
Language Server Protocol server over JSON-RPC.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
