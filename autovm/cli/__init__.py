"""CLI package exports for top-level command entry points."""

from __future__ import annotations

from .main import AutoVMModalCLI, main

__all__ = ['AutoVMModalCLI', 'main']
