"""
kpack: packs an application source tree into a deployable layout.

Keep this __init__ lightweight; import pipeline pieces from their modules:
  from kpack.core.orchestrator import Packager
  from kpack.config.loader import PackOptions, load_pack_config
"""

from __future__ import annotations

__version__ = "0.3.0"

__all__ = ["__version__"]
