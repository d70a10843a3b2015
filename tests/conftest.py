import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from common.dataset import encode_categoricals


def make_heart_frame(n: int = 200, seed: int = 0) -> pd.DataFrame:
    """Synthetic records with the columns and level sets of the heart dataset."""
    rng = np.random.default_rng(seed)
    age = rng.integers(30, 78, size=n)
    angina = rng.choice(["N", "Y"], size=n, p=[0.6, 0.4])
    max_hr = np.clip(210 - 0.9 * age + rng.normal(0, 15, size=n) - 10 * (angina == "Y"), 60, 202).round()
    logit = 0.04 * (age - 54) - 0.025 * (max_hr - 137) + 1.4 * (angina == "Y") - 0.5
    disease = (rng.random(n) < 1 / (1 + np.exp(-logit))).astype(int)

    df = pd.DataFrame(
        {
            "Age": age,
            "Sex": rng.choice(["M", "F"], size=n, p=[0.75, 0.25]),
            "ChestPainType": rng.choice(["ASY", "ATA", "NAP", "TA"], size=n, p=[0.5, 0.2, 0.22, 0.08]),
            "RestingBP": rng.normal(132, 18, size=n).round(),
            "Cholesterol": rng.normal(200, 45, size=n).round(),
            "FastingBS": rng.choice([0, 1], size=n, p=[0.75, 0.25]),
            "RestingECG": rng.choice(["Normal", "ST", "LVH"], size=n, p=[0.6, 0.2, 0.2]),
            "MaxHR": max_hr,
            "ExerciseAngina": angina,
            "Oldpeak": np.clip(rng.normal(0.9, 1.0, size=n), 0, None).round(1),
            "ST_Slope": rng.choice(["Up", "Flat", "Down"], size=n, p=[0.43, 0.5, 0.07]),
            "HeartDisease": disease,
        }
    )
    return df


@pytest.fixture
def heart_raw() -> pd.DataFrame:
    return make_heart_frame()


@pytest.fixture
def heart_df(heart_raw) -> pd.DataFrame:
    return encode_categoricals(heart_raw)


@pytest.fixture
def heart_csv(tmp_path, heart_raw):
    path = tmp_path / "heart.csv"
    heart_raw.to_csv(path, index=False)
    return path


@pytest.fixture
def make_heart():
    return make_heart_frame
