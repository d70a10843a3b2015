"""
Resampled comparison of logistic regression models for the heart-disease outcome.

``compare`` scores candidate specifications with repeated v-fold cross-validation on
the training split, ``select_best`` picks the highest mean accuracy and
``evaluate_holdout`` reports the confusion matrix of the chosen model on the test split.
Run ``python -m logistic_regression.run`` for the full step.
"""

from .comparator import build_design_matrix, compare, evaluate_holdout, select_best
from .run import main
from .specs import ComparisonResult, ConfusionOutcome, FoldResult, ModelSpecification, ResamplingPlan

__all__ = [
    "ModelSpecification",
    "ResamplingPlan",
    "FoldResult",
    "ComparisonResult",
    "ConfusionOutcome",
    "build_design_matrix",
    "compare",
    "select_best",
    "evaluate_holdout",
    "main",
]
