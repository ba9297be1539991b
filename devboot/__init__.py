"""
devboot — developer-environment bootstrap toolkit.

Converges a fresh Ubuntu host to a known toolchain (system Python and
pip, an isolated virtualenv, Ansible pinned inside it) and describes
the VM that hosts it.
"""

__version__ = "0.1.0"
