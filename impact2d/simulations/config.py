"""シミュレーション設定を管理するモジュール

液滴衝突シミュレーションの設定を、セクションごとのデータクラスとして保持します。
各セクションは辞書との相互変換（from_dict / to_dict）と妥当性検証（validate）を持ち、
SimulationConfig がそれらをまとめて YAML ファイルとの入出力を担当します。

デフォルト値は水滴（直径1mm）が空気中を速度1m/sで落下し、
一辺30mmの正方形領域の底面に衝突する条件です。
"""

import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml

from ..numerics.poisson import PoissonConfig

# 適応格子で追跡する場（ベクトル場は成分ごと）
TRACKED_FIELDS = ("f", "p", "u.x", "u.y")

IMAGE_FORMATS = ("png", "jpg", "pdf", "svg")


class ConfigurationError(ValueError):
    """設定値が不正な場合の例外"""


def _number(value: Any, name: str, kind=float):
    """YAMLから読んだ値を数値に変換

    PyYAML は "30e-3" のような指数表記を文字列として読むため、明示的に変換します。
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} は数値である必要があります: {value!r}")
    try:
        converted = kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} は数値である必要があります: {value!r}") from e
    if kind is int and float(value) != converted:
        raise ConfigurationError(f"{name} は整数である必要があります: {value!r}")
    return converted


def _section(config_dict: Optional[Dict[str, Any]], name: str) -> Dict[str, Any]:
    """サブセクションを取得（未指定なら空の辞書）"""
    if config_dict is None:
        return {}
    section = config_dict.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"{name} セクションは辞書である必要があります")
    return section


def _check_keys(section: Dict[str, Any], allowed, name: str) -> None:
    unknown = set(section) - set(allowed)
    if unknown:
        raise ConfigurationError(f"{name} に未知の設定項目があります: {sorted(unknown)}")


def _positive(value: float, name: str) -> None:
    if not (math.isfinite(value) and value > 0):
        raise ConfigurationError(f"{name} は正の値である必要があります: {value}")


@dataclass(frozen=True)
class DomainConfig:
    """計算領域の設定

    Attributes:
        box_length: 正方形領域の一辺 [m]
        base_resolution: 基本格子数（2のべき乗）
        max_level: 最大細分化レベル
    """

    box_length: float = 30e-3
    base_resolution: int = 64
    max_level: int = 8

    @property
    def base_level(self) -> int:
        return int(round(math.log2(self.base_resolution)))

    @property
    def finest_cell_size(self) -> float:
        """最大レベルのセル幅"""
        return self.box_length / 2**self.max_level

    def validate(self) -> None:
        """設定値の妥当性を検証"""
        _positive(self.box_length, "domain.box_length")
        n = self.base_resolution
        if n < 1 or n & (n - 1):
            raise ConfigurationError(
                f"domain.base_resolution は2のべき乗である必要があります: {n}"
            )
        if self.max_level < self.base_level:
            raise ConfigurationError(
                f"domain.max_level ({self.max_level}) は基本レベル "
                f"({self.base_level}) 以上である必要があります"
            )

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "DomainConfig":
        _check_keys(config_dict, ("box_length", "base_resolution", "max_level"), "domain")
        default = cls()
        return cls(
            box_length=_number(
                config_dict.get("box_length", default.box_length), "domain.box_length"
            ),
            base_resolution=_number(
                config_dict.get("base_resolution", default.base_resolution),
                "domain.base_resolution",
                int,
            ),
            max_level=_number(
                config_dict.get("max_level", default.max_level), "domain.max_level", int
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "box_length": self.box_length,
            "base_resolution": self.base_resolution,
            "max_level": self.max_level,
        }


@dataclass(frozen=True)
class DropletConfig:
    """液滴の設定

    Attributes:
        diameter: 直径 D [m]
        start_height: 初期の中心高さ h₀ [m]
        impact_velocity: 初期の落下速度 U₀ [m/s]（下向きを正）
    """

    diameter: float = 1e-3
    start_height: float = 5e-3
    impact_velocity: float = 1.0

    def validate(self) -> None:
        _positive(self.diameter, "droplet.diameter")
        _positive(self.start_height, "droplet.start_height")
        _positive(self.impact_velocity, "droplet.impact_velocity")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "DropletConfig":
        keys = ("diameter", "start_height", "impact_velocity")
        _check_keys(config_dict, keys, "droplet")
        default = cls()
        return cls(
            **{
                key: _number(config_dict.get(key, getattr(default, key)), f"droplet.{key}")
                for key in keys
            }
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "diameter": self.diameter,
            "start_height": self.start_height,
            "impact_velocity": self.impact_velocity,
        }


@dataclass(frozen=True)
class PhaseConfig:
    """流体の物性値"""

    density: float  # 密度 [kg/m³]
    viscosity: float  # 粘性係数 [Pa·s]

    def validate(self, name: str = "phase") -> None:
        _positive(self.density, f"{name}.density")
        _positive(self.viscosity, f"{name}.viscosity")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any], default: "PhaseConfig", name: str):
        _check_keys(config_dict, ("density", "viscosity"), name)
        return cls(
            density=_number(config_dict.get("density", default.density), f"{name}.density"),
            viscosity=_number(
                config_dict.get("viscosity", default.viscosity), f"{name}.viscosity"
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"density": self.density, "viscosity": self.viscosity}


@dataclass(frozen=True)
class PhasesConfig:
    """二相の物性値（液相: 水、気相: 空気）"""

    liquid: PhaseConfig = field(default_factory=lambda: PhaseConfig(997.0, 0.89e-3))
    gas: PhaseConfig = field(default_factory=lambda: PhaseConfig(1.293, 1.8e-5))

    def validate(self) -> None:
        self.liquid.validate("phases.liquid")
        self.gas.validate("phases.gas")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "PhasesConfig":
        _check_keys(config_dict, ("liquid", "gas"), "phases")
        default = cls()
        return cls(
            liquid=PhaseConfig.from_dict(
                _section(config_dict, "liquid"), default.liquid, "phases.liquid"
            ),
            gas=PhaseConfig.from_dict(
                _section(config_dict, "gas"), default.gas, "phases.gas"
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"liquid": self.liquid.to_dict(), "gas": self.gas.to_dict()}


@dataclass(frozen=True)
class PhysicsConfig:
    """物理モデルの設定"""

    surface_tension: float = 72.8e-3  # 表面張力係数 [N/m]

    def validate(self) -> None:
        _positive(self.surface_tension, "physics.surface_tension")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "PhysicsConfig":
        _check_keys(config_dict, ("surface_tension",), "physics")
        return cls(
            surface_tension=_number(
                config_dict.get("surface_tension", cls().surface_tension),
                "physics.surface_tension",
            )
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"surface_tension": self.surface_tension}


@dataclass(frozen=True)
class AdaptivityConfig:
    """適応格子の設定

    Attributes:
        tolerances: 追跡する場ごとのウェーブレット誤差の許容値
            （TRACKED_FIELDS のすべての場が必要、読み取り専用）
        seed_radius_factor: 初期細分化の半径（液滴半径に対する倍率）
        coarsen_ratio: 粗視化の閾値（許容値に対する比）
    """

    tolerances: Mapping[str, float] = field(
        default_factory=lambda: MappingProxyType({name: 0.01 for name in TRACKED_FIELDS})
    )
    seed_radius_factor: float = math.sqrt(2.0)
    coarsen_ratio: float = 2.0 / 3.0

    def __post_init__(self):
        # 呼び出し側の辞書を複製して読み取り専用にする
        object.__setattr__(self, "tolerances", MappingProxyType(dict(self.tolerances)))

    @property
    def field_names(self) -> Tuple[str, ...]:
        return TRACKED_FIELDS

    @property
    def tolerance_values(self) -> Tuple[float, ...]:
        return tuple(self.tolerances[name] for name in TRACKED_FIELDS)

    def validate(self) -> None:
        for name in self.tolerances:
            if name not in TRACKED_FIELDS:
                raise ConfigurationError(
                    f"adaptivity.tolerances に未知の場があります: {name!r}"
                    f"（有効な値: {TRACKED_FIELDS}）"
                )
        missing = [name for name in TRACKED_FIELDS if name not in self.tolerances]
        if missing:
            raise ConfigurationError(
                f"adaptivity.tolerances に場 {missing} の許容値がありません"
            )
        for name in TRACKED_FIELDS:
            _positive(self.tolerances[name], f"adaptivity.tolerances[{name}]")
        if self.seed_radius_factor < 1.0 or not math.isfinite(self.seed_radius_factor):
            raise ConfigurationError(
                "adaptivity.seed_radius_factor は1以上である必要があります"
            )
        if not 0.0 < self.coarsen_ratio < 1.0:
            raise ConfigurationError(
                "adaptivity.coarsen_ratio は0と1の間である必要があります"
            )

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "AdaptivityConfig":
        _check_keys(
            config_dict, ("tolerances", "seed_radius_factor", "coarsen_ratio"), "adaptivity"
        )
        default = cls()
        tolerances = config_dict.get("tolerances", default.tolerances)
        if not isinstance(tolerances, Mapping):
            raise ConfigurationError("adaptivity.tolerances は辞書である必要があります")
        return cls(
            tolerances={
                str(name): _number(tol, f"adaptivity.tolerances[{name}]")
                for name, tol in tolerances.items()
            },
            seed_radius_factor=_number(
                config_dict.get("seed_radius_factor", default.seed_radius_factor),
                "adaptivity.seed_radius_factor",
            ),
            coarsen_ratio=_number(
                config_dict.get("coarsen_ratio", default.coarsen_ratio),
                "adaptivity.coarsen_ratio",
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tolerances": dict(self.tolerances),
            "seed_radius_factor": self.seed_radius_factor,
            "coarsen_ratio": self.coarsen_ratio,
        }


@dataclass(frozen=True)
class TimeConfig:
    """時間積分の設定

    Attributes:
        end_time: 終了時刻 [s]
        cfl: CFL数
        max_iterations: 反復回数の上限（Noneなら無制限）
    """

    end_time: float = 0.03
    cfl: float = 0.5
    max_iterations: Optional[int] = None

    def validate(self) -> None:
        _positive(self.end_time, "time.end_time")
        if not 0.0 < self.cfl <= 1.0:
            raise ConfigurationError("time.cfl は0より大きく1以下である必要があります")
        if self.max_iterations is not None and self.max_iterations < 1:
            raise ConfigurationError("time.max_iterations は正の整数である必要があります")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "TimeConfig":
        _check_keys(config_dict, ("end_time", "cfl", "max_iterations"), "time")
        default = cls()
        max_iterations = config_dict.get("max_iterations")
        return cls(
            end_time=_number(config_dict.get("end_time", default.end_time), "time.end_time"),
            cfl=_number(config_dict.get("cfl", default.cfl), "time.cfl"),
            max_iterations=(
                None
                if max_iterations is None
                else _number(max_iterations, "time.max_iterations", int)
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "end_time": self.end_time,
            "cfl": self.cfl,
            "max_iterations": self.max_iterations,
        }


@dataclass(frozen=True)
class SolverConfig:
    """流体ソルバーの設定"""

    poisson: PoissonConfig = field(default_factory=PoissonConfig)
    curvature_smoothing: int = 2

    def validate(self) -> None:
        try:
            self.poisson.validate()
        except ValueError as e:
            raise ConfigurationError(f"solver.poisson: {e}") from e
        if self.curvature_smoothing < 0:
            raise ConfigurationError("solver.curvature_smoothing は非負である必要があります")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "SolverConfig":
        _check_keys(config_dict, ("poisson", "curvature_smoothing"), "solver")
        poisson = _section(config_dict, "poisson")
        default = PoissonConfig()
        _check_keys(
            poisson,
            ("omega", "tolerance", "max_iterations", "check_interval"),
            "solver.poisson",
        )
        return cls(
            poisson=PoissonConfig(
                omega=_number(poisson.get("omega", default.omega), "solver.poisson.omega"),
                tolerance=_number(
                    poisson.get("tolerance", default.tolerance), "solver.poisson.tolerance"
                ),
                max_iterations=_number(
                    poisson.get("max_iterations", default.max_iterations),
                    "solver.poisson.max_iterations",
                    int,
                ),
                check_interval=_number(
                    poisson.get("check_interval", default.check_interval),
                    "solver.poisson.check_interval",
                    int,
                ),
            ),
            curvature_smoothing=_number(
                config_dict.get("curvature_smoothing", cls.curvature_smoothing),
                "solver.curvature_smoothing",
                int,
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "poisson": {
                "omega": self.poisson.omega,
                "tolerance": self.poisson.tolerance,
                "max_iterations": self.poisson.max_iterations,
                "check_interval": self.poisson.check_interval,
            },
            "curvature_smoothing": self.curvature_smoothing,
        }


@dataclass(frozen=True)
class ViewConfig:
    """描画の視点

    Attributes:
        tx, ty: 領域サイズで正規化した平行移動量（表示中心は (-tx·L, -ty·L)）
        width, height: 画像サイズ [pixel]
    """

    tx: float = 0.0
    ty: float = -0.5
    width: int = 800
    height: int = 800

    def validate(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ConfigurationError("output.view の画像サイズは正である必要があります")

    def to_dict(self) -> Dict[str, Any]:
        return {"tx": self.tx, "ty": self.ty, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class OutputConfig:
    """出力の設定

    Attributes:
        root_dir: 実行ディレクトリを作成する親ディレクトリ
        frame_interval: フレーム画像の出力間隔 [s]
        log_interval: ステップログの出力間隔 [反復回数]
        index_digits: ファイル名の反復番号の桁数
        image_format: 画像形式
        view: 描画の視点
        spread: カラーマップの範囲（平均 ± spread·標準偏差、負なら最小〜最大）
        linear: 色の線形補間
        render_frames: フレーム画像を出力するかどうか
        dpi: 画像の解像度
    """

    root_dir: str = "."
    frame_interval: float = 1e-4
    log_interval: int = 1
    index_digits: int = 8
    image_format: str = "png"
    view: ViewConfig = field(default_factory=ViewConfig)
    spread: float = 10.0
    linear: bool = True
    render_frames: bool = True
    dpi: int = 100

    def validate(self) -> None:
        if not str(self.root_dir):
            raise ConfigurationError("output.root_dir は空にできません")
        _positive(self.frame_interval, "output.frame_interval")
        if self.log_interval < 1:
            raise ConfigurationError("output.log_interval は正の整数である必要があります")
        if self.index_digits < 1:
            raise ConfigurationError("output.index_digits は正の整数である必要があります")
        if self.image_format not in IMAGE_FORMATS:
            raise ConfigurationError(
                f"output.image_format は {IMAGE_FORMATS} のいずれかである必要があります"
            )
        if self.spread == 0 or not math.isfinite(self.spread):
            raise ConfigurationError("output.spread は0以外の有限値である必要があります")
        if self.dpi < 1:
            raise ConfigurationError("output.dpi は正の整数である必要があります")
        self.view.validate()

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "OutputConfig":
        _check_keys(
            config_dict,
            (
                "root_dir",
                "frame_interval",
                "log_interval",
                "index_digits",
                "image_format",
                "view",
                "spread",
                "linear",
                "render_frames",
                "dpi",
            ),
            "output",
        )
        default = cls()
        view = _section(config_dict, "view")
        _check_keys(view, ("tx", "ty", "width", "height"), "output.view")
        return cls(
            root_dir=str(config_dict.get("root_dir", default.root_dir)),
            frame_interval=_number(
                config_dict.get("frame_interval", default.frame_interval),
                "output.frame_interval",
            ),
            log_interval=_number(
                config_dict.get("log_interval", default.log_interval),
                "output.log_interval",
                int,
            ),
            index_digits=_number(
                config_dict.get("index_digits", default.index_digits),
                "output.index_digits",
                int,
            ),
            image_format=str(config_dict.get("image_format", default.image_format)).lower(),
            view=ViewConfig(
                tx=_number(view.get("tx", default.view.tx), "output.view.tx"),
                ty=_number(view.get("ty", default.view.ty), "output.view.ty"),
                width=_number(view.get("width", default.view.width), "output.view.width", int),
                height=_number(
                    view.get("height", default.view.height), "output.view.height", int
                ),
            ),
            spread=_number(config_dict.get("spread", default.spread), "output.spread"),
            linear=bool(config_dict.get("linear", default.linear)),
            render_frames=bool(config_dict.get("render_frames", default.render_frames)),
            dpi=_number(config_dict.get("dpi", default.dpi), "output.dpi", int),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root_dir": self.root_dir,
            "frame_interval": self.frame_interval,
            "log_interval": self.log_interval,
            "index_digits": self.index_digits,
            "image_format": self.image_format,
            "view": self.view.to_dict(),
            "spread": self.spread,
            "linear": self.linear,
            "render_frames": self.render_frames,
            "dpi": self.dpi,
        }


@dataclass(frozen=True)
class SimulationConfig:
    """シミュレーション全体の設定

    logging セクションは内容を解釈せずに保持し、
    ロギングパッケージの LogConfig.from_dict に渡します。
    """

    domain: DomainConfig = field(default_factory=DomainConfig)
    droplet: DropletConfig = field(default_factory=DropletConfig)
    phases: PhasesConfig = field(default_factory=PhasesConfig)
    physics: PhysicsConfig = field(default_factory=PhysicsConfig)
    adaptivity: AdaptivityConfig = field(default_factory=AdaptivityConfig)
    time: TimeConfig = field(default_factory=TimeConfig)
    solver: SolverConfig = field(default_factory=SolverConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        """設定値の妥当性を検証

        各セクションの検証に加えて、液滴と領域の幾何学的な整合性を確認します。

        Raises:
            ConfigurationError: 不正な設定値が含まれる場合
        """
        self.domain.validate()
        self.droplet.validate()
        self.phases.validate()
        self.physics.validate()
        self.adaptivity.validate()
        self.time.validate()
        self.solver.validate()
        self.output.validate()
        self._validate_geometry()

    def _validate_geometry(self) -> None:
        length = self.domain.box_length
        diameter = self.droplet.diameter
        radius = 0.5 * diameter
        height = self.droplet.start_height

        if diameter >= length:
            raise ConfigurationError(
                f"液滴の直径 ({diameter:g}) は領域サイズ ({length:g}) より小さい必要があります"
            )
        if height - radius <= 0.0:
            raise ConfigurationError(
                f"液滴が底面に接しています（h₀ - D/2 = {height - radius:g}）"
            )
        if height + radius >= length:
            raise ConfigurationError(
                f"液滴が領域の上端からはみ出しています（h₀ + D/2 = {height + radius:g}）"
            )
        seed_radius = self.adaptivity.seed_radius_factor * radius
        if seed_radius >= 0.5 * length:
            raise ConfigurationError(
                f"初期細分化の半径 ({seed_radius:g}) が領域の横幅を超えています"
            )
        cells = diameter / self.domain.finest_cell_size
        if cells < 4.0:
            raise ConfigurationError(
                f"液滴の直径が最大レベルのセル {cells:.2f} 個分しかありません"
                "（4セル以上が必要です）"
            )

    def with_output_root(self, root_dir: Union[str, Path]) -> "SimulationConfig":
        """出力先の親ディレクトリを差し替えた設定を返す"""
        return replace(self, output=replace(self.output, root_dir=str(root_dir)))

    @classmethod
    def from_dict(cls, config_dict: Optional[Dict[str, Any]]) -> "SimulationConfig":
        """辞書から設定を生成（未指定のセクションはデフォルト値）"""
        config_dict = config_dict or {}
        if not isinstance(config_dict, dict):
            raise ConfigurationError("設定はセクションの辞書である必要があります")
        _check_keys(
            config_dict,
            (
                "domain",
                "droplet",
                "phases",
                "physics",
                "adaptivity",
                "time",
                "solver",
                "output",
                "logging",
            ),
            "設定ファイル",
        )
        return cls(
            domain=DomainConfig.from_dict(_section(config_dict, "domain")),
            droplet=DropletConfig.from_dict(_section(config_dict, "droplet")),
            phases=PhasesConfig.from_dict(_section(config_dict, "phases")),
            physics=PhysicsConfig.from_dict(_section(config_dict, "physics")),
            adaptivity=AdaptivityConfig.from_dict(_section(config_dict, "adaptivity")),
            time=TimeConfig.from_dict(_section(config_dict, "time")),
            solver=SolverConfig.from_dict(_section(config_dict, "solver")),
            output=OutputConfig.from_dict(_section(config_dict, "output")),
            logging=dict(_section(config_dict, "logging")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """設定を辞書形式にシリアライズ"""
        return {
            "domain": self.domain.to_dict(),
            "droplet": self.droplet.to_dict(),
            "phases": self.phases.to_dict(),
            "physics": self.physics.to_dict(),
            "adaptivity": self.adaptivity.to_dict(),
            "time": self.time.to_dict(),
            "solver": self.solver.to_dict(),
            "output": self.output.to_dict(),
            "logging": dict(self.logging),
        }

    @classmethod
    def from_yaml(cls, filepath: Union[str, Path]) -> "SimulationConfig":
        """YAMLファイルから設定を読み込んで検証

        Args:
            filepath: 設定ファイルのパス

        Returns:
            検証済みの設定

        Raises:
            ConfigurationError: ファイルの内容が不正な場合
        """
        with open(filepath, "r", encoding="utf-8") as f:
            try:
                config_dict = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"設定ファイルを解析できません: {e}") from e

        config = cls.from_dict(config_dict)
        config.validate()
        return config

    def save(self, filepath: Union[str, Path]) -> None:
        """設定をYAMLファイルに保存"""
        with open(filepath, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
