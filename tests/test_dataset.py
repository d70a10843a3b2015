import pandas as pd
import pytest

from common.dataset import HEART_ENCODINGS, CategoricalEncoding, encode_categoricals, load_dataset, split_train_test


def test_encoding_mapping_is_fixed_and_invertible():
    enc = HEART_ENCODINGS["ChestPainType"]
    assert enc.mapping == {"ASY": 0, "ATA": 1, "NAP": 2, "TA": 3}
    assert enc.code("NAP") == 2
    assert enc.label(2) == "NAP"
    with pytest.raises(ValueError):
        enc.code("XYZ")
    with pytest.raises(ValueError):
        enc.label(7)


def test_encode_categoricals_uses_declared_order_for_any_subset(heart_raw):
    subset = heart_raw[heart_raw["ST_Slope"] != "Up"]
    encoded = encode_categoricals(subset)
    assert list(encoded["ST_Slope"].cat.categories) == ["Up", "Flat", "Down"]
    dummies = pd.get_dummies(encoded["ST_Slope"], prefix="ST_Slope", drop_first=True)
    assert list(dummies.columns) == ["ST_Slope_Flat", "ST_Slope_Down"]


def test_encode_categoricals_rejects_undeclared_levels(heart_raw):
    bad = heart_raw.copy()
    bad.loc[bad.index[0], "Sex"] = "X"
    with pytest.raises(ValueError, match="Sex"):
        encode_categoricals(bad)


def test_encode_categoricals_does_not_mutate_input(heart_raw):
    before = heart_raw.copy()
    encode_categoricals(heart_raw)
    pd.testing.assert_frame_equal(heart_raw, before)


def test_custom_encoding_only_touches_declared_columns(heart_raw):
    encoded = encode_categoricals(heart_raw, {"Sex": CategoricalEncoding("Sex", ("F", "M"))})
    assert list(encoded["Sex"].cat.categories) == ["F", "M"]
    assert not isinstance(encoded["ChestPainType"].dtype, pd.CategoricalDtype)


def test_load_dataset_reads_and_encodes(heart_csv):
    df = load_dataset(heart_csv)
    assert len(df) == 200
    assert isinstance(df["ExerciseAngina"].dtype, pd.CategoricalDtype)
    assert list(df["FastingBS"].cat.categories) == [0, 1]


def test_load_dataset_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_dataset(tmp_path / "nope.csv")


def test_split_918_records_into_734_and_184(make_heart):
    df = encode_categoricals(make_heart(n=918, seed=3))
    partition = split_train_test(df, test_size=0.2, random_state=1)
    assert len(partition.train) == 734
    assert len(partition.test) == 184
    assert set(partition.train.index).isdisjoint(partition.test.index)
    assert set(partition.train.index) | set(partition.test.index) == set(df.index)


def test_split_is_reproducible_per_seed(heart_df):
    a = split_train_test(heart_df, random_state=5)
    b = split_train_test(heart_df, random_state=5)
    c = split_train_test(heart_df, random_state=6)
    assert a.test.index.equals(b.test.index)
    assert not a.test.index.equals(c.test.index)


def test_split_rejects_bad_fraction(heart_df):
    with pytest.raises(ValueError):
        split_train_test(heart_df, test_size=1.5)
