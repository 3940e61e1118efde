import sys
import argparse
from pathlib import Path
from typing import Optional, Sequence

from .logger import SimulationLogger, LogConfig
from .simulations import ConfigurationError, SimulationConfig, SimulationRunner


def parse_args(argv: Optional[Sequence[str]] = None):
    """コマンドライン引数をパース"""
    parser = argparse.ArgumentParser(description="液滴衝突の二相流シミュレーション")
    parser.add_argument(
        "--config", type=str, help="設定ファイルのパス（省略時はデフォルト設定）"
    )
    parser.add_argument("--output-root", type=str, help="出力先の親ディレクトリ")
    parser.add_argument("--debug", action="store_true", help="デバッグモードを有効化")
    return parser.parse_args(argv)


def load_config(args) -> SimulationConfig:
    """設定を読み込んで検証"""
    if args.config:
        config = SimulationConfig.from_yaml(args.config)
    else:
        config = SimulationConfig()
    if args.output_root:
        config = config.with_output_root(args.output_root)
    config.validate()
    return config


def setup_logging(config: SimulationConfig, debug: bool) -> SimulationLogger:
    """ロギングを設定"""
    log_config = LogConfig.from_dict(config.logging)
    if "log_dir" not in config.logging:
        log_config.log_dir = Path(config.output.root_dir) / "logs"
    if debug:
        log_config.level = "debug"
        log_config.console_logging["level"] = "debug"
    return SimulationLogger("impact2d", log_config)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """メイン関数"""
    args = parse_args(argv)

    try:
        config = load_config(args)
    except (ConfigurationError, OSError) as e:
        print(f"設定の読み込みに失敗しました: {e}", file=sys.stderr)
        return 1

    try:
        logger = setup_logging(config, args.debug)
    except (ValueError, OSError) as e:
        print(f"ロギングの設定に失敗しました: {e}", file=sys.stderr)
        return 1

    try:
        with logger:
            runner = SimulationRunner(config, logger.start_section("runner"))
            summary = runner.run()
            logger.info(f"実行結果: {summary.to_dict()}")
        return 0

    except Exception as e:
        logger.error(f"シミュレーション中にエラーが発生: {e}")
        return 1

    finally:
        logger.close()


if __name__ == "__main__":
    sys.exit(main())
