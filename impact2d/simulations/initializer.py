"""シミュレーションの初期化を担当するモジュール

このモジュールは、液滴衝突シミュレーションの初期状態を設定します。

1. 液滴の周囲（半径 seed_radius_factor·D/2 の円内）を最大レベルまで細分化
2. 円の符号付き関数から副格子サンプリングで体積分率 f0 を計算
3. f0 を f にコピーし、液滴内部に落下速度 u.y = -U₀·f を与える
"""

import logging
import math
from typing import Optional

from ..core.field import FieldRegistry
from ..physics import circle, fraction_from_levelset
from .config import SimulationConfig

# 体積分率の計算に用いる1方向あたりの副格子点数
FRACTION_SAMPLES = 8


class InitialConditionBuilder:
    """初期条件の構築クラス"""

    def __init__(
        self,
        fields: FieldRegistry,
        engine,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            fields: 物理場レジストリ（"f", "u" が宣言済みであること）
            engine: 適応格子エンジン（refine_where を持つ）
            logger: ロガー
        """
        self.fields = fields
        self.engine = engine
        self.logger = logger or logging.getLogger(__name__)

    def seed(self, config: SimulationConfig) -> float:
        """初期の界面形状と速度場を設定

        Args:
            config: シミュレーション設定

        Returns:
            初期の液相面積（体積分率のセル面積重み付き総和）
        """
        diameter = config.droplet.diameter
        height = config.droplet.start_height
        velocity = config.droplet.impact_velocity
        max_level = config.domain.max_level

        # 液滴周囲の細分化
        seed_radius = config.adaptivity.seed_radius_factor * diameter / 2.0

        def near_droplet(x, y, level):
            return x**2 + (y - height) ** 2 < seed_radius**2

        refined = self.engine.refine_where(near_droplet, max_level)
        self.logger.info(
            f"液滴周囲を細分化: {refined}セルを分割, 葉セル数 {self.fields.mesh.n_cells}"
        )

        # 体積分率
        if "f0" not in self.fields:
            self.fields.declare_field("f0", prolongation="fraction")
        self.fields.set_prolongation("f0", "fraction")
        self.fields.set_prolongation("f", "fraction")

        mesh = self.fields.mesh
        x, y = mesh.centers()
        fraction = fraction_from_levelset(
            circle(0.0, height, diameter / 2.0),
            x,
            y,
            mesh.cell_size(),
            samples=FRACTION_SAMPLES,
        )
        self.fields.set_values("f0", fraction)

        # 液滴内部に落下速度を与える
        self.fields.set_values("f", fraction)
        self.fields.set_values("u.x", 0.0)
        self.fields.set_values("u.y", -velocity * fraction)

        area = self.fields.integrate("f")
        exact = math.pi * (diameter / 2.0) ** 2
        self.logger.info(
            f"初期液相面積: {area:.6e} (解析値 {exact:.6e}, "
            f"相対誤差 {abs(area - exact) / exact:.2e})"
        )
        self.logger.debug(f"レベル別セル数: {mesh.level_histogram()}")
        return area
