from __future__ import annotations

import math
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import RepeatedKFold, RepeatedStratifiedKFold

from common.config import N_FOLDS, N_REPEATS, SEED
from common.errors import InvalidSpecification


@dataclass(frozen=True)
class ModelSpecification:
    """Outcome plus the explanatory terms of one logistic model.

    A term is either a column name (``"Age"``) or an interaction of columns
    joined by ``":"`` (``"Age:MaxHR"``).
    """

    name: str
    outcome: str
    terms: Tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.outcome:
            raise InvalidSpecification("A model specification needs an outcome column.")
        if not self.terms:
            raise InvalidSpecification(f"Specification '{self.name}' has no explanatory terms.")
        if self.outcome in self.explanatory_columns:
            raise InvalidSpecification(f"Outcome '{self.outcome}' cannot also be an explanatory term.")

    @classmethod
    def from_formula(cls, formula: str, name: Optional[str] = None) -> "ModelSpecification":
        """
        Parse an R-style formula such as ``"HeartDisease ~ Age * MaxHR + Sex"``.

        ``+`` separates terms, ``:`` builds an interaction and ``a * b`` expands to
        ``a + b + a:b``. Repeated terms are kept once, in first-seen order.
        """
        if formula.count("~") != 1:
            raise InvalidSpecification(f"Formula must contain exactly one '~': {formula!r}")
        lhs, rhs = (part.strip() for part in formula.split("~"))
        if not lhs or not rhs:
            raise InvalidSpecification(f"Formula needs both an outcome and terms: {formula!r}")

        terms: List[str] = []
        for chunk in rhs.split("+"):
            chunk = chunk.strip()
            if not chunk:
                raise InvalidSpecification(f"Empty term in formula {formula!r}")
            factors = [":".join(p.strip() for p in f.split(":")) for f in chunk.split("*")]
            if any(not p for f in factors for p in f.split(":")):
                raise InvalidSpecification(f"Malformed term {chunk!r} in formula {formula!r}")
            for term in _expand_product(factors):
                if term not in terms:
                    terms.append(term)

        spec_name = name or "+".join(terms)
        return cls(name=spec_name, outcome=lhs, terms=tuple(terms))

    @property
    def explanatory_columns(self) -> Tuple[str, ...]:
        cols: List[str] = []
        for term in self.terms:
            for col in term.split(":"):
                col = col.strip()
                if col not in cols:
                    cols.append(col)
        return tuple(cols)

    @property
    def n_terms(self) -> int:
        return len(self.terms)

    @property
    def formula(self) -> str:
        return f"{self.outcome} ~ {' + '.join(self.terms)}"

    def to_dict(self) -> dict:
        return {"name": self.name, "outcome": self.outcome, "terms": list(self.terms), "formula": self.formula}


def _expand_product(factors: Sequence[str]) -> List[str]:
    # a*b*c -> every non-empty combination, lower orders first
    expanded: List[str] = []
    for order in range(1, len(factors) + 1):
        for combo in combinations(factors, order):
            expanded.append(":".join(combo))
    return expanded


@dataclass(frozen=True)
class ResamplingPlan:
    """Repeated v-fold cross-validation plan on the training partition."""

    n_folds: int = N_FOLDS
    n_repeats: int = N_REPEATS
    random_state: int = SEED
    stratified: bool = True
    n_jobs: Optional[int] = None

    def __post_init__(self) -> None:
        if self.n_folds < 2:
            raise ValueError(f"n_folds must be at least 2, got {self.n_folds}")
        if self.n_repeats < 1:
            raise ValueError(f"n_repeats must be at least 1, got {self.n_repeats}")

    @property
    def n_results(self) -> int:
        return self.n_folds * self.n_repeats

    def splits(self, X: np.ndarray, y: np.ndarray) -> Iterator[Tuple[int, int, np.ndarray, np.ndarray]]:
        """Yield ``(repeat, fold, train_idx, test_idx)`` with 1-based repeat/fold numbers."""
        if self.stratified:
            cv = RepeatedStratifiedKFold(
                n_splits=self.n_folds, n_repeats=self.n_repeats, random_state=self.random_state
            )
        else:
            cv = RepeatedKFold(n_splits=self.n_folds, n_repeats=self.n_repeats, random_state=self.random_state)
        for i, (train_idx, test_idx) in enumerate(cv.split(X, y)):
            repeat, fold = divmod(i, self.n_folds)
            yield repeat + 1, fold + 1, train_idx, test_idx

    def to_dict(self) -> dict:
        return {
            "n_folds": self.n_folds,
            "n_repeats": self.n_repeats,
            "random_state": self.random_state,
            "stratified": self.stratified,
        }


@dataclass(frozen=True)
class FoldResult:
    spec_name: str
    repeat: int
    fold: int
    accuracy: float
    n_train: int
    n_test: int


@dataclass
class ComparisonResult:
    """Fold-level accuracies of every candidate specification."""

    specs: List[ModelSpecification]
    fold_results: List[FoldResult]
    plan: ResamplingPlan

    def results_for(self, name: str) -> List[FoldResult]:
        if name not in {s.name for s in self.specs}:
            raise KeyError(f"No specification named '{name}' in this comparison.")
        return [r for r in self.fold_results if r.spec_name == name]

    def mean_metric(self, name: str) -> float:
        return float(np.mean([r.accuracy for r in self.results_for(name)]))

    def std_metric(self, name: str) -> float:
        values = [r.accuracy for r in self.results_for(name)]
        return float(np.std(values, ddof=1)) if len(values) > 1 else 0.0

    @property
    def means(self) -> Dict[str, float]:
        return {spec.name: self.mean_metric(spec.name) for spec in self.specs}

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame.from_records(
            [
                {
                    "spec": r.spec_name,
                    "repeat": r.repeat,
                    "fold": r.fold,
                    "accuracy": r.accuracy,
                    "n_train": r.n_train,
                    "n_test": r.n_test,
                }
                for r in self.fold_results
            ],
            columns=["spec", "repeat", "fold", "accuracy", "n_train", "n_test"],
        )

    def to_dict(self) -> dict:
        return {
            "plan": self.plan.to_dict(),
            "specs": [
                {
                    **spec.to_dict(),
                    "mean_accuracy": self.mean_metric(spec.name),
                    "std_accuracy": self.std_metric(spec.name),
                    "n_results": len(self.results_for(spec.name)),
                }
                for spec in self.specs
            ],
        }


@dataclass(frozen=True)
class ConfusionOutcome:
    """2x2 predicted-vs-actual counts with ``positive_label`` as the positive class."""

    positive_label: int
    negative_label: int
    tp: int
    fn: int
    fp: int
    tn: int
    labels: Dict[int, str] = field(default_factory=dict, compare=False)

    @property
    def total(self) -> int:
        return self.tp + self.fn + self.fp + self.tn

    @property
    def sensitivity(self) -> float:
        return _ratio(self.tp, self.tp + self.fn)

    @property
    def specificity(self) -> float:
        return _ratio(self.tn, self.tn + self.fp)

    @property
    def false_negative_rate(self) -> float:
        return _ratio(self.fn, self.tp + self.fn)

    @property
    def false_positive_rate(self) -> float:
        return _ratio(self.fp, self.tn + self.fp)

    @property
    def accuracy(self) -> float:
        return _ratio(self.tp + self.tn, self.total)

    def matrix(self) -> pd.DataFrame:
        """Rows are actual labels, columns predicted labels, positive class first."""
        order = [self.positive_label, self.negative_label]
        names = [self.labels.get(lab, str(lab)) for lab in order]
        return pd.DataFrame(
            [[self.tp, self.fn], [self.fp, self.tn]],
            index=pd.Index(names, name="actual"),
            columns=pd.Index(names, name="predicted"),
        )

    def to_dict(self) -> dict:
        return {
            "positive_label": self.positive_label,
            "negative_label": self.negative_label,
            "tp": self.tp,
            "fn": self.fn,
            "fp": self.fp,
            "tn": self.tn,
            "total": self.total,
            "sensitivity": self.sensitivity,
            "specificity": self.specificity,
            "false_negative_rate": self.false_negative_rate,
            "false_positive_rate": self.false_positive_rate,
            "accuracy": self.accuracy,
        }


def _ratio(num: int, den: int) -> float:
    return num / den if den > 0 else math.nan
