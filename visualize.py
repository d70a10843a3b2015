from pathlib import Path
from typing import Mapping, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns


def _finish(fig, output_path: Optional[Path], show: bool) -> Optional[Path]:
    fig.tight_layout()
    if output_path is not None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=200)
    if show:
        plt.show()
    plt.close(fig)
    return output_path


def scatter_by_outcome(
    df: pd.DataFrame,
    x: str,
    y: str,
    label: str = "HeartDisease",
    labels: Optional[Mapping[int, str]] = None,
    output_path: Optional[Path] = None,
    show: bool = False,
    s: int = 15,
    alpha: float = 0.6,
) -> Optional[Path]:
    """
    Scatter two numeric columns against each other, coloured by a label column.

    Parameters
    ----------
    df : pandas.DataFrame
        Data containing ``x``, ``y`` and ``label``.
    x, y : str
        Column names for the horizontal and vertical axes.
    label : str
        Column used for the colour (hue).
    labels : mapping, optional
        Display names for the label values, e.g. ``{0: "no disease", 1: "disease"}``.
    output_path : Path, optional
        Where to save the figure; nothing is written when omitted.
    """
    missing = [c for c in (x, y, label) if c not in df.columns]
    if missing:
        raise ValueError(f"Missing columns: {missing}")

    plot_df = df[[x, y, label]].copy()
    if labels:
        plot_df[label] = plot_df[label].map(lambda v: labels.get(v, v))

    fig, ax = plt.subplots(figsize=(7, 5))
    sns.scatterplot(data=plot_df, x=x, y=y, hue=label, s=s, alpha=alpha, ax=ax)
    ax.set_title(f"{y} vs {x} by {label}")
    ax.grid(True, ls="--", alpha=0.4)
    return _finish(fig, output_path, show)


def plot_cv_accuracy(
    fold_frame: pd.DataFrame,
    output_path: Optional[Path] = None,
    show: bool = False,
    title: str = "Repeated CV accuracy by model",
) -> Optional[Path]:
    """Boxplot of fold accuracies per specification with the mean marked."""
    order = list(dict.fromkeys(fold_frame["spec"]))
    fig, ax = plt.subplots(figsize=(max(6, 2.5 * len(order)), 5))
    sns.boxplot(data=fold_frame, x="spec", y="accuracy", order=order, ax=ax)
    means = fold_frame.groupby("spec")["accuracy"].mean().reindex(order)
    ax.scatter(range(len(order)), means.values, marker="D", color="black", zorder=3, label="mean")
    ax.set_xlabel("Model")
    ax.set_ylabel("Fold accuracy")
    ax.set_ylim(0.0, 1.0)
    ax.set_title(title)
    ax.legend(loc="lower right")
    ax.grid(True, axis="y", ls="--", alpha=0.4)
    return _finish(fig, output_path, show)


def plot_confusion_matrix(
    matrix: pd.DataFrame,
    output_path: Optional[Path] = None,
    show: bool = False,
    title: str = "Confusion matrix (test set)",
) -> Optional[Path]:
    """Heatmap of a square count table whose rows are actual and columns predicted labels."""
    labels: Sequence[str] = [str(c) for c in matrix.columns]
    counts = matrix.to_numpy()
    fig, ax = plt.subplots(figsize=(5, 4.5))
    ax.imshow(counts, cmap="Blues")
    ax.set_title(title)
    ax.set_xlabel("Predicted")
    ax.set_ylabel("Actual")
    ax.set_xticks(range(len(labels)))
    ax.set_xticklabels(labels)
    ax.set_yticks(range(len(labels)))
    ax.set_yticklabels([str(i) for i in matrix.index])

    threshold = counts.max() / 2 if counts.size else 0
    for i in range(counts.shape[0]):
        for j in range(counts.shape[1]):
            color = "white" if counts[i, j] > threshold else "black"
            ax.text(j, i, str(counts[i, j]), ha="center", va="center", color=color)
    return _finish(fig, output_path, show)


def plot_lambda_curve(
    lambdas: np.ndarray,
    mean_errors: np.ndarray,
    lambda_min: float,
    lambda_1se: float,
    response: str,
    output_path: Optional[Path] = None,
    show: bool = False,
) -> Optional[Path]:
    """CV error as a function of the penalty, with lambda.min and lambda.1se marked."""
    fig, ax = plt.subplots(figsize=(7, 5))
    ax.plot(lambdas, mean_errors, marker="o")
    ax.axvline(lambda_min, color="C1", ls="--", label=f"λ min = {lambda_min:.4g}")
    ax.axvline(lambda_1se, color="C2", ls=":", label=f"λ 1se = {lambda_1se:.4g}")
    ax.set_xscale("log")
    ax.set_xlabel("Regularization strength (lambda)")
    ax.set_ylabel("CV MSE")
    ax.set_title(f"{response}: CV error vs lambda")
    ax.legend()
    ax.grid(True, which="both", ls="--", alpha=0.4)
    return _finish(fig, output_path, show)
