"""Background removal adapters."""

from media_engine.adapters.cutout.base import CutoutProvider
from media_engine.adapters.cutout.removebg import RemoveBgProvider
from media_engine.adapters.cutout.stub import StubCutoutProvider

__all__ = [
    "CutoutProvider",
    "RemoveBgProvider",
    "StubCutoutProvider",
]
