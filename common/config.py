from pathlib import Path

PROJECT_DIR = Path(__file__).resolve().parent.parent
DATA_PATH = PROJECT_DIR / "data" / "heart.csv"
RESULTS_DIR = PROJECT_DIR / "results"

OUTCOME = "HeartDisease"  # binary target (0 = no disease, 1 = disease)

SEED = 1
TEST_SIZE = 0.2
N_FOLDS = 10
N_REPEATS = 3

# Sensitivity/specificity are reported with "no disease" as the positive class.
POSITIVE_LABEL = 0

DEFAULT_FORMULAS = [
    f"{OUTCOME} ~ Age + MaxHR",
    f"{OUTCOME} ~ Age + MaxHR + ExerciseAngina",
]
