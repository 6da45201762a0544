"""Utility helpers."""

from media_engine.utils.async_utils import gather_settled, run_async

__all__ = ["gather_settled", "run_async"]
