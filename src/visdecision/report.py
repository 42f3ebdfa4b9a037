"""Write the pipeline's computed tables and two quick-look figures.

Functions
---------
- write_report(result, outdir, top_n, overwrite): CSV/JSON tables + PNGs,
  returns a dict of written paths.
"""
from pathlib import Path
from typing import Callable, Dict
import json
import logging
import numpy as np
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt

from .evaluate import metrics_to_json

logger = logging.getLogger(__name__)


def safe_save(path: Path, save_fn: Callable[[Path], None], overwrite: bool) -> bool:
    """Save only if the file is new or `overwrite` is set."""
    if path.exists() and not overwrite:
        logger.info('File exists and overwrite not set, skipping save: %s', path)
        return False
    save_fn(path)
    logger.info('Wrote %s', path)
    return True


def plot_top_importances(importance, path: Path, top_n: int = 10):
    top = importance.head(top_n).iloc[::-1]
    fig, ax = plt.subplots(figsize=(7, max(3, 0.35 * len(top) + 1)))
    ax.barh(top["feature"], top["importance"], color="C0")
    ax.set_xlabel("Importance (mean decrease in impurity)")
    ax.set_title(f"Top-{len(top)} features")
    fig.tight_layout()
    fig.savefig(str(path), dpi=120)
    plt.close(fig)


def plot_confusion(table, path: Path, title: str = "Validation confusion matrix"):
    counts = table.to_numpy()
    fig, ax = plt.subplots(figsize=(4, 3.6))
    im = ax.imshow(counts, cmap="Blues")
    for i in range(counts.shape[0]):
        for j in range(counts.shape[1]):
            ax.text(j, i, int(counts[i, j]), ha="center", va="center",
                    color="white" if counts[i, j] > counts.max() / 2 else "black")
    ax.set_xticks(np.arange(counts.shape[1]), [str(c) for c in table.columns])
    ax.set_yticks(np.arange(counts.shape[0]), [str(r) for r in table.index])
    ax.set_xlabel("True feedback")
    ax.set_ylabel("Predicted feedback")
    ax.set_title(title)
    fig.colorbar(im, ax=ax, fraction=0.046)
    fig.tight_layout()
    fig.savefig(str(path), dpi=120)
    plt.close(fig)


def write_report(result, outdir: str, top_n: int = 10, overwrite: bool = False) -> Dict[str, str]:
    out = Path(outdir)
    out.mkdir(parents=True, exist_ok=True)

    def _json(obj):
        return lambda p: p.write_text(json.dumps(obj, indent=2))

    targets = {
        "session_info": (out / "session_info.csv", lambda p: result.session_info.to_csv(p, index=False)),
        "mouse_summary": (out / "mouse_summary.csv", lambda p: result.mouse_summary.to_csv(p, index=False)),
        "stimulus_summary": (out / "stimulus_summary.csv", lambda p: result.stimulus_summary.to_csv(p, index=False)),
        "feature_table": (out / "feature_table.csv", lambda p: result.table.to_csv(p, index=False)),
        "importance": (out / "feature_importance.csv", lambda p: result.importance.to_csv(p, index=False)),
        "confusion_matrix": (out / "confusion_matrix.csv", lambda p: result.metrics["confusion_matrix"].to_csv(p)),
        "metrics": (out / "validation_metrics.json", _json(metrics_to_json(result.metrics))),
        "valid_predictions": (out / "validation_predictions.csv", lambda p: result.valid_predictions.to_csv(p, index=False)),
        "importance_plot": (out / "feature_importance_top.png",
                            lambda p: plot_top_importances(result.importance, p, top_n=top_n)),
        "confusion_plot": (out / "confusion_matrix.png",
                           lambda p: plot_confusion(result.metrics["confusion_matrix"], p)),
    }
    if len(result.test_predictions):
        targets["test_predictions"] = (out / "test_predictions.csv",
                                       lambda p: result.test_predictions.to_csv(p, index=False))
    if result.test_metrics is not None:
        targets["test_metrics"] = (out / "test_metrics.json", _json(metrics_to_json(result.test_metrics)))

    written = {}
    for key, (path, fn) in targets.items():
        safe_save(path, fn, overwrite=overwrite)
        written[key] = str(path)
    return written
