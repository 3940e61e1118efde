"""可視化パッケージ"""

from .renderer import FrameRenderer

__all__ = ["FrameRenderer"]
