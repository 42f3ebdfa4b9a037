"""Pipeline configuration loaded from YAML.

Example (config/pipeline.yml):

    data_dir: data
    session_pattern: "session*.pkl"
    test_files: [data/test/test1.pkl, data/test/test2.pkl]
    window: [0.0, 0.4]
    seed: 141
    train_frac: 0.8
    n_estimators: 500
"""
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import yaml

from .io import discover_session_files


@dataclass
class PipelineConfig:
    data_dir: Optional[str] = None
    session_pattern: str = "session*.pkl"
    session_files: List[str] = field(default_factory=list)
    feature_table: Optional[str] = None
    test_files: List[str] = field(default_factory=list)
    window: Tuple[float, float] = (0.0, 0.4)
    seed: int = 0
    train_frac: float = 0.8
    n_estimators: int = 500
    n_jobs: Optional[int] = None
    max_missing_frac: float = 0.5
    ci_method: str = "exact"
    confidence: float = 0.95
    top_n: int = 10
    refit_full: bool = True
    out_dir: str = "outputs"

    def __post_init__(self):
        if len(self.window) != 2 or float(self.window[1]) <= float(self.window[0]):
            raise ValueError(f"window must be [start, stop] with stop > start, got {self.window}")
        self.window = (float(self.window[0]), float(self.window[1]))
        if not 0.0 < float(self.train_frac) < 1.0:
            raise ValueError(f"train_frac must be in (0, 1), got {self.train_frac}")
        if self.ci_method not in ("exact", "wilson", "wilsoncc"):
            raise ValueError(f"ci_method must be 'exact', 'wilson' or 'wilsoncc', got {self.ci_method}")
        if int(self.n_estimators) < 1:
            raise ValueError("n_estimators must be positive")
        self.session_files = [str(p) for p in self.session_files]
        self.test_files = [str(p) for p in self.test_files]

    def resolve_session_files(self) -> List[str]:
        """Explicit `session_files` win over globbing `data_dir`."""
        if self.session_files:
            return list(self.session_files)
        if self.data_dir is None:
            return []
        return [str(p) for p in discover_session_files(self.data_dir, self.session_pattern)]


def config_from_dict(raw: Dict[str, Any]) -> PipelineConfig:
    known = {f.name for f in fields(PipelineConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {unknown}")
    return PipelineConfig(**raw)


def load_config(path: str) -> PipelineConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    raw = yaml.safe_load(p.read_text()) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config {path} must be a mapping, got {type(raw).__name__}")
    return config_from_dict(raw)
