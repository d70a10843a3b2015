import math

import numpy as np
import pytest

from common.errors import InvalidSpecification
from logistic_regression.specs import ComparisonResult, ConfusionOutcome, FoldResult, ModelSpecification, ResamplingPlan


def test_formula_with_main_effects():
    spec = ModelSpecification.from_formula("HeartDisease ~ Age + MaxHR + ExerciseAngina")
    assert spec.outcome == "HeartDisease"
    assert spec.terms == ("Age", "MaxHR", "ExerciseAngina")
    assert spec.name == "Age+MaxHR+ExerciseAngina"
    assert spec.formula == "HeartDisease ~ Age + MaxHR + ExerciseAngina"


def test_formula_star_expands_to_main_effects_and_interaction():
    spec = ModelSpecification.from_formula("HeartDisease ~ Age * MaxHR + Age", name="inter")
    assert spec.name == "inter"
    assert spec.terms == ("Age", "MaxHR", "Age:MaxHR")
    assert spec.explanatory_columns == ("Age", "MaxHR")
    assert spec.n_terms == 3


def test_formula_colon_is_interaction_only():
    spec = ModelSpecification.from_formula("y ~ Age:Sex")
    assert spec.terms == ("Age:Sex",)
    assert spec.explanatory_columns == ("Age", "Sex")


@pytest.mark.parametrize(
    "formula",
    ["Age + MaxHR", "y ~", "~ Age", "y ~ Age + + MaxHR", "y ~ Age * ", "y ~ y + Age", "y ~ a ~ b"],
)
def test_malformed_formulas(formula):
    with pytest.raises(InvalidSpecification):
        ModelSpecification.from_formula(formula)


def test_plan_validates_counts():
    with pytest.raises(ValueError):
        ResamplingPlan(n_folds=1)
    with pytest.raises(ValueError):
        ResamplingPlan(n_repeats=0)
    assert ResamplingPlan(n_folds=10, n_repeats=3).n_results == 30


@pytest.mark.parametrize("stratified", [True, False])
def test_folds_partition_each_repeat(stratified):
    y = np.array([0, 1] * 25 + [1] * 11)
    plan = ResamplingPlan(n_folds=5, n_repeats=3, random_state=7, stratified=stratified)
    splits = list(plan.splits(np.zeros((len(y), 1)), y))
    assert len(splits) == 15

    for repeat in (1, 2, 3):
        held_out = [test for r, _, _, test in splits if r == repeat]
        assert [f for r, f, _, _ in splits if r == repeat] == [1, 2, 3, 4, 5]
        combined = np.concatenate(held_out)
        assert len(combined) == len(y)
        assert set(combined) == set(range(len(y)))
        sizes = [len(t) for t in held_out]
        assert max(sizes) - min(sizes) <= 1
        for _, _, train, test in (s for s in splits if s[0] == repeat):
            assert set(train).isdisjoint(test)
            assert len(train) + len(test) == len(y)

    first = [test.tolist() for r, _, _, test in splits if r == 1]
    second = [test.tolist() for r, _, _, test in splits if r == 2]
    assert first != second


def test_comparison_result_aggregates():
    a = ModelSpecification("a", "y", ("x1",))
    b = ModelSpecification("b", "y", ("x1", "x2"))
    plan = ResamplingPlan(n_folds=2, n_repeats=1)
    results = [
        FoldResult("a", 1, 1, 0.6, 10, 10),
        FoldResult("a", 1, 2, 0.8, 10, 10),
        FoldResult("b", 1, 1, 0.5, 10, 10),
        FoldResult("b", 1, 2, 0.5, 10, 10),
    ]
    comparison = ComparisonResult(specs=[a, b], fold_results=results, plan=plan)
    assert comparison.means == pytest.approx({"a": 0.7, "b": 0.5})
    assert comparison.std_metric("b") == 0.0
    assert len(comparison.to_frame()) == 4
    assert comparison.to_dict()["specs"][0]["n_results"] == 2
    with pytest.raises(KeyError):
        comparison.results_for("c")


def test_confusion_outcome_metrics_follow_counts():
    outcome = ConfusionOutcome(positive_label=0, negative_label=1, tp=30, fn=10, fp=6, tn=54)
    assert outcome.total == 100
    assert outcome.sensitivity == 30 / 40
    assert outcome.specificity == 54 / 60
    assert outcome.accuracy == 84 / 100
    assert outcome.sensitivity + outcome.false_negative_rate == pytest.approx(1.0)
    assert outcome.specificity + outcome.false_positive_rate == pytest.approx(1.0)

    matrix = outcome.matrix()
    assert matrix.to_numpy().tolist() == [[30, 10], [6, 54]]
    assert int(matrix.to_numpy().sum()) == outcome.total


def test_confusion_outcome_empty_class_is_nan():
    outcome = ConfusionOutcome(positive_label=0, negative_label=1, tp=0, fn=0, fp=3, tn=2)
    assert math.isnan(outcome.sensitivity)
    assert outcome.specificity == 2 / 5


def test_formula_interaction_spacing_is_normalised():
    spec = ModelSpecification.from_formula("y ~ Age : MaxHR + Age:MaxHR")
    assert spec.terms == ("Age:MaxHR",)
    assert spec.n_terms == 1
    assert spec.explanatory_columns == ("Age", "MaxHR")


@pytest.mark.parametrize("formula", ["y ~ Age:", "y ~ :MaxHR", "y ~ Age : : MaxHR"])
def test_formula_rejects_empty_interaction_parts(formula):
    with pytest.raises(InvalidSpecification):
        ModelSpecification.from_formula(formula)
