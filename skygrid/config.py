#!/usr/bin/env python3
"""
SkyGrid 設定管理システム

グリッドの分割レベルや検索の既定値をdataclassで管理し、
YAMLファイルからの読み込み・保存を提供します。
"""

import logging
from dataclasses import dataclass, field, fields, asdict
from typing import Optional, Dict, Any
from pathlib import Path

import yaml

from . import get_logger
from .constants import DEFAULT_MAX_LEVEL, MAX_HALF_SPACES

logger = get_logger(__name__)


@dataclass
class GridConfig:
    """測地グリッド設定"""
    # 構築時の最大分割レベル
    max_level: int = DEFAULT_MAX_LEVEL

    # 点検索の入力が単位ベクトルか確認する
    check_unit_vectors: bool = True


@dataclass
class SearchConfig:
    """領域検索設定"""
    # Noneの場合はグリッドの最大レベルまで検索
    default_search_level: Optional[int] = None

    # 半空間の最大数（固定容量）
    max_half_spaces: int = MAX_HALF_SPACES

    # 検索ごとに統計をDEBUGログ出力する
    log_query_stats: bool = False


@dataclass
class SkyGridConfig:
    """プロジェクト全体設定"""
    grid: GridConfig = field(default_factory=GridConfig)
    search: SearchConfig = field(default_factory=SearchConfig)

    # ログ設定
    log_level: str = "INFO"
    log_format_style: str = "detailed"




# 設定ファイルの探索順
DEFAULT_CONFIG_NAMES = ("skygrid.yaml", "config.yaml")
USER_CONFIG_PATH = Path.home() / ".skygrid" / "config.yaml"


def find_config_file() -> Optional[Path]:
    """既定の場所から最初に見つかった設定ファイル"""
    project_root = Path(__file__).resolve().parent.parent
    candidates = [project_root / name for name in DEFAULT_CONFIG_NAMES] + [USER_CONFIG_PATH]
    return next((path for path in candidates if path.is_file()), None)


class ConfigManager:
    """YAML設定の読み込み・保存・検証"""

    def __init__(self):
        self._config: Optional[SkyGridConfig] = None
        self._source: Optional[Path] = None

    @property
    def source(self) -> Optional[Path]:
        """最後に読み書きした設定ファイル"""
        return self._source

    def load_config(self, config_file: Optional[Path] = None) -> SkyGridConfig:
        """
        YAMLファイルから設定を読み込む

        ファイルが無い・壊れている・値が範囲外の場合は警告を出して既定値を使います。

        Args:
            config_file: 設定ファイル（Noneなら既定の場所を探索）
        """
        path = Path(config_file) if config_file is not None else find_config_file()
        self._config = SkyGridConfig()
        self._source = None

        if path is None or not path.is_file():
            logger.debug(f"Config file not found ({path}), using defaults")
            return self._config

        try:
            with path.open('r', encoding='utf-8') as f:
                raw = yaml.safe_load(f)
            self._config = self._dict_to_config({} if raw is None else raw)
            self._source = path
            logger.info(f"Loaded config: {path}")
        except (OSError, yaml.YAMLError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring config {path}: {e}")

        return self._config

    def save_config(self, config_file: Optional[Path] = None) -> bool:
        """
        現在の設定をYAMLで保存

        Returns:
            保存できたかどうか
        """
        if self._config is None:
            logger.error("save_config called before any config was loaded")
            return False

        path = Path(config_file) if config_file is not None else (self._source or Path(DEFAULT_CONFIG_NAMES[0]))
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open('w', encoding='utf-8') as f:
                yaml.safe_dump(self._config_to_dict(self._config), f,
                               default_flow_style=False, allow_unicode=True, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Could not write config {path}: {e}")
            return False

        self._source = path
        logger.info(f"Saved config: {path}")
        return True

    def get_config(self) -> SkyGridConfig:
        if self._config is None:
            return self.load_config()
        return self._config

    def set_config(self, config: SkyGridConfig) -> None:
        """設定を差し替え（テスト・CLI用）"""
        self._validate(config)
        self._config = config

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> SkyGridConfig:
        if not isinstance(config_dict, dict):
            raise TypeError(f"Config root must be a mapping, got {type(config_dict).__name__}")

        config = SkyGridConfig()
        for section in ('grid', 'search'):
            values = config_dict.get(section) or {}
            if not isinstance(values, dict):
                raise TypeError(f"Config section '{section}' must be a mapping")
            target = getattr(config, section)
            known = {f.name for f in fields(target)}
            for key, value in values.items():
                if key not in known:
                    logger.warning(f"Unknown config key ignored: {section}.{key}")
                    continue
                setattr(target, key, value)

        for key in ('log_level', 'log_format_style'):
            if key in config_dict:
                setattr(config, key, str(config_dict[key]))

        self._validate(config)
        return config

    @staticmethod
    def _config_to_dict(config: SkyGridConfig) -> Dict[str, Any]:
        return asdict(config)

    @staticmethod
    def _validate(config: SkyGridConfig) -> None:
        """設定値の範囲チェック"""
        if int(config.grid.max_level) < 0:
            raise ValueError(f"grid.max_level must be >= 0: {config.grid.max_level}")
        if not 1 <= int(config.search.max_half_spaces) <= MAX_HALF_SPACES:
            raise ValueError(
                f"search.max_half_spaces must be in [1, {MAX_HALF_SPACES}]: "
                f"{config.search.max_half_spaces}"
            )
        level = config.search.default_search_level
        if level is not None and int(level) < 0:
            raise ValueError(f"search.default_search_level must be >= 0: {level}")
        if not isinstance(logging.getLevelName(str(config.log_level).upper()), int):
            raise ValueError(f"log_level is not a logging level name: {config.log_level}")


_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """プロセス共通の ConfigManager"""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> SkyGridConfig:
    return get_config_manager().get_config()


def load_config(config_file: Optional[Path] = None) -> SkyGridConfig:
    return get_config_manager().load_config(config_file)


def save_config(config_file: Optional[Path] = None) -> bool:
    return get_config_manager().save_config(config_file)
