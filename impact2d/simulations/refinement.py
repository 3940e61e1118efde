"""適応格子の細分化・粗視化を毎ステップ実行するモジュール"""

import logging
from typing import Optional

from ..numerics.adaptivity import AdaptResult
from .config import AdaptivityConfig


class AdaptiveRefinementController:
    """追跡する場のウェーブレット誤差に基づいて格子を適応させる

    追跡する場と許容誤差は AdaptivityConfig.tolerances の順序で渡されます。
    """

    def __init__(
        self,
        engine,
        adaptivity: AdaptivityConfig,
        max_level: int,
        logger: Optional[logging.Logger] = None,
    ):
        self.engine = engine
        self.names = adaptivity.field_names
        self.tolerances = adaptivity.tolerance_values
        self.max_level = max_level
        self.logger = logger or logging.getLogger(__name__)
        self.total_refined = 0
        self.total_coarsened = 0

    def adapt_step(self) -> AdaptResult:
        """1回の適応処理

        Returns:
            分割・統合されたセル数
        """
        result = self.engine.adapt(self.names, self.tolerances, self.max_level)
        self.total_refined += result.refined
        self.total_coarsened += result.coarsened
        self.logger.debug(
            f"格子適応: 分割 {result.refined}, 統合 {result.coarsened}, "
            f"葉セル数 {result.cells}"
        )
        return result
