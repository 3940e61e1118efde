"""液滴衝突の二相流シミュレーション

適応格子上の体積分率（VOF）法による二相流ソルバーを、
イベントスケジューラで初期条件・格子適応・診断出力と組み合わせて実行します。
"""

__version__ = "0.1.0"
