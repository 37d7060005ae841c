#!/usr/bin/env python3
"""
TetraSurf 設定管理システム

近傍数・抽出解像度・並列度などの設定値を統一管理し、
Magic Numberのハードコーディングを解消します。
"""

import yaml
from dataclasses import dataclass, field, asdict, fields
from typing import Optional, Dict, Any
from pathlib import Path

from . import get_logger
from .constants import (
    DEFAULT_KN, DEFAULT_KI, DEFAULT_KD, BBOX_RATIO, MAX_NEIGHBOR_GROWTH,
    PLANE_RANK_TOLERANCE, ORIENTATION_TOLERANCE, DEFAULT_VOXEL_SIZE, DEFAULT_GRID_PADDING,
    DEFAULT_NUM_WORKERS, DEFAULT_CHUNK_SIZE, WELD_LOCK_STRIPES
)

logger = get_logger(__name__)


@dataclass
class NormalConfig:
    """法線推定・補間設定"""
    # 近傍数
    kn: int = DEFAULT_KN                 # 法線推定
    ki: int = DEFAULT_KI                 # 法線補間
    kd: int = DEFAULT_KD                 # 距離値計算
    
    # 近傍形状チェック
    bbox_ratio: float = BBOX_RATIO
    max_neighbor_growth: int = MAX_NEIGHBOR_GROWTH
    
    # 数値判定
    rank_tolerance: float = PLANE_RANK_TOLERANCE
    orientation_tolerance: float = ORIENTATION_TOLERANCE
    
    # 補間パスを実行するか
    interpolate: bool = True
    
    # 空間インデックス ("kdtree", "brute_force")
    index_type: str = "kdtree"


@dataclass
class ExtractionConfig:
    """等値面抽出設定"""
    voxel_size: float = DEFAULT_VOXEL_SIZE
    padding: int = DEFAULT_GRID_PADDING   # 占有セル周囲のセル層数
    compute_normals: bool = True          # 出力メッシュの頂点法線を計算するか


@dataclass
class ParallelConfig:
    """並列処理設定"""
    num_workers: int = DEFAULT_NUM_WORKERS
    chunk_size: int = DEFAULT_CHUNK_SIZE
    weld_lock_stripes: int = WELD_LOCK_STRIPES


@dataclass
class TetraSurfConfig:
    """プロジェクト全体設定"""
    normals: NormalConfig = field(default_factory=NormalConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    parallel: ParallelConfig = field(default_factory=ParallelConfig)
    
    # ログ設定
    log_level: str = "INFO"
    log_format_style: str = "detailed"
    
    def validate(self) -> None:
        """設定値を検証（不正値は ValueError）"""
        # 平面フィットには自身以外に2点以上の近傍が必要
        if self.normals.kn < 2:
            raise ValueError(f"normals.kn must be >= 2, got {self.normals.kn}")
        for name in ("ki", "kd"):
            value = getattr(self.normals, name)
            if value < 1:
                raise ValueError(f"normals.{name} must be >= 1, got {value}")
        if not (0.0 < self.normals.bbox_ratio < 1.0):
            raise ValueError(f"normals.bbox_ratio must be in (0,1), got {self.normals.bbox_ratio}")
        if self.normals.max_neighbor_growth < 1:
            raise ValueError("normals.max_neighbor_growth must be >= 1")
        if self.normals.index_type not in ("kdtree", "brute_force"):
            raise ValueError(f"Unknown index type: {self.normals.index_type}")
        if self.extraction.voxel_size <= 0.0:
            raise ValueError(f"extraction.voxel_size must be positive, got {self.extraction.voxel_size}")
        if self.extraction.padding < 0:
            raise ValueError(f"extraction.padding must be >= 0, got {self.extraction.padding}")
        if self.parallel.chunk_size < 1 or self.parallel.weld_lock_stripes < 1:
            raise ValueError("parallel.chunk_size and parallel.weld_lock_stripes must be >= 1")


_SECTIONS = ("normals", "extraction", "parallel")


class ConfigManager:
    """設定管理クラス"""
    
    def __init__(self):
        self._config: Optional[TetraSurfConfig] = None
        self._config_file_path: Optional[Path] = None
    
    def load_config(self, config_file: Optional[Path] = None) -> TetraSurfConfig:
        """
        設定ファイルを読み込み
        
        Args:
            config_file: 設定ファイルパス（Noneの場合はデフォルト設定）
            
        Returns:
            読み込まれた設定
        """
        if config_file is None:
            # デフォルト設定ファイルを探す
            project_root = Path(__file__).parent.parent
            default_paths = [
                project_root / "tetrasurf.yaml",
                project_root / "config.yaml",
                Path.home() / ".tetrasurf" / "config.yaml"
            ]
            
            for path in default_paths:
                if path.exists():
                    config_file = path
                    break
        
        if config_file and config_file.exists():
            try:
                with open(config_file, 'r', encoding='utf-8') as f:
                    config_dict = yaml.safe_load(f) or {}
                
                self._config = self._dict_to_config(config_dict)
                self._config.validate()
                self._config_file_path = config_file
                logger.info(f"Configuration loaded from {config_file}")
                
            except (OSError, yaml.YAMLError, ValueError, TypeError) as e:
                logger.warning(f"Failed to load config from {config_file}: {e}")
                logger.info("Using default configuration")
                self._config = TetraSurfConfig()
        else:
            logger.info("No config file found, using default configuration")
            self._config = TetraSurfConfig()
        
        return self._config
    
    def save_config(self, config_file: Optional[Path] = None) -> bool:
        """
        設定をファイルに保存
        
        Args:
            config_file: 保存先ファイルパス
            
        Returns:
            保存成功したかどうか
        """
        if self._config is None:
            logger.error("No configuration to save")
            return False
        
        if config_file is None:
            config_file = self._config_file_path or Path("tetrasurf.yaml")
        
        try:
            config_dict = self._config_to_dict(self._config)
            
            # ディレクトリが存在しない場合は作成
            config_file.parent.mkdir(parents=True, exist_ok=True)
            
            with open(config_file, 'w', encoding='utf-8') as f:
                yaml.dump(config_dict, f, default_flow_style=False,
                         allow_unicode=True, indent=2)
            
            logger.info(f"Configuration saved to {config_file}")
            return True
            
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to save config to {config_file}: {e}")
            return False
    
    def get_config(self) -> TetraSurfConfig:
        """現在の設定を取得"""
        if self._config is None:
            self._config = self.load_config()
        return self._config
    
    def set_config(self, config: TetraSurfConfig) -> None:
        """設定を差し替え"""
        config.validate()
        self._config = config
    
    def _dict_to_config(self, config_dict: Dict[str, Any]) -> TetraSurfConfig:
        """辞書を設定オブジェクトに変換"""
        config = TetraSurfConfig()
        
        for section_name in _SECTIONS:
            section_dict = config_dict.get(section_name)
            if not isinstance(section_dict, dict):
                continue
            section = getattr(config, section_name)
            known = {f.name for f in fields(section)}
            for key, value in section_dict.items():
                if key in known:
                    setattr(section, key, value)
                else:
                    logger.warning(f"Unknown config key ignored: {section_name}.{key}")
        
        for key in ("log_level", "log_format_style"):
            if key in config_dict:
                setattr(config, key, config_dict[key])
        
        return config
    
    def _config_to_dict(self, config: TetraSurfConfig) -> Dict[str, Any]:
        """設定オブジェクトを辞書に変換"""
        return asdict(config)


# グローバル設定マネージャー
_config_manager: Optional[ConfigManager] = None

def get_config_manager() -> ConfigManager:
    """グローバル設定マネージャーを取得"""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager

def get_config() -> TetraSurfConfig:
    """現在の設定を取得"""
    return get_config_manager().get_config()

def load_config(config_file: Optional[Path] = None) -> TetraSurfConfig:
    """設定を読み込み"""
    return get_config_manager().load_config(config_file)

def save_config(config_file: Optional[Path] = None) -> bool:
    """設定を保存"""
    return get_config_manager().save_config(config_file)
