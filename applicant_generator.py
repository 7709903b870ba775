"""
Generate a synthetic credit-application book, draw default labels from a
logistic risk score, and split it into train / test sets.

Run:
    python applicant_generator.py --n 5000 --out-dir data
"""
from __future__ import annotations
import argparse, logging, pathlib, numpy as np, pandas as pd
from dataclasses import dataclass
from sklearn.model_selection import train_test_split

from errors import InvalidArgument, MissingResource

log = logging.getLogger(__name__)

# ---- parameter priors -------------------------------------------------------
AGE_NORM         = (45, 12)                    # μ, σ
AGE_BOUNDS       = (18, 80)
INCOME_LOGN      = (10.5, 0.8)                 # μ, σ of log-income (thousands)
INCOME_BOUNDS    = (15_000, 250_000)
EMPLOYMENT_NORM  = (8, 5)
EMPLOYMENT_MAX   = 40
HISTORY_NORM     = (12, 6)
CREDIT_LINES_LAM = 4                           # Poisson λ
DELINQ_LAM       = 0.5
LOAN_LOGN        = (9.8, 0.7)                  # μ, σ of log-amount (thousands)
RATE_NORM        = (12, 4)
RATE_BOUNDS      = (5, 25)
DTI_NORM         = (0.35, 0.15)
DTI_BOUNDS       = (0.0, 0.8)
UTIL_NORM        = (0.45, 0.25)
UTIL_BOUNDS      = (0.0, 1.0)
PTI_NORM         = (0.15, 0.08)
PTI_BOUNDS       = (0.05, 0.4)
THOUSANDS        = 1_000

P_TERM    = {36: 0.7, 60: 0.3}
P_PURPOSE = {"debt_consolidation": 0.5, "home_improvement": 0.2, "business": 0.15, "other": 0.15}
P_HOUSING = {"mortgage": 0.5, "rent": 0.35, "own": 0.15}

FEATURE_SEED = 42
SPLIT_SEED   = 123
TRAIN_FRAC   = 0.7

APPLICANT_COLUMNS = [
    "customer_id", "age", "income", "employment_length",
    "credit_history_length", "num_credit_lines", "num_delinquencies",
    "loan_amount", "interest_rate", "loan_term",
    "debt_to_income", "credit_utilization", "payment_to_income",
    "loan_purpose", "housing_status",
]
LABEL_COLUMN = "default"

# ---- feature synthesizer ----------------------------------------------------
def _check_count(n) -> int:
    if isinstance(n, bool) or not isinstance(n, (int, np.integer)) or n <= 0:
        raise InvalidArgument(f"applicant count must be a positive integer, got {n!r}")
    return int(n)


def _categorical(rng, probs: dict, size: int) -> np.ndarray:
    return rng.choice(list(probs), size, p=list(probs.values()))


def generate_applicants(n: int, rng=None) -> pd.DataFrame:
    n   = _check_count(n)
    rng = rng or np.random.default_rng()

    age    = np.rint(rng.normal(*AGE_NORM, n)).clip(*AGE_BOUNDS).astype(int)
    income = (np.exp(rng.normal(*INCOME_LOGN, n)) * THOUSANDS).clip(*INCOME_BOUNDS)
    emp    = np.maximum(0, np.rint(rng.normal(*EMPLOYMENT_NORM, n))).clip(None, EMPLOYMENT_MAX).astype(int)
    hist   = np.maximum(0, np.rint(rng.normal(*HISTORY_NORM, n))).astype(int)
    lines  = rng.poisson(CREDIT_LINES_LAM, n)
    delinq = rng.poisson(DELINQ_LAM, n)
    amount = np.exp(rng.normal(*LOAN_LOGN, n)) * THOUSANDS
    rate   = rng.normal(*RATE_NORM, n).clip(*RATE_BOUNDS)
    term   = _categorical(rng, P_TERM, n)
    dti    = rng.normal(*DTI_NORM, n).clip(*DTI_BOUNDS)
    util   = rng.normal(*UTIL_NORM, n).clip(*UTIL_BOUNDS)
    pti    = rng.normal(*PTI_NORM, n).clip(*PTI_BOUNDS)
    purpose = _categorical(rng, P_PURPOSE, n)
    housing = _categorical(rng, P_HOUSING, n)

    return pd.DataFrame(dict(
        customer_id=np.arange(1, n + 1),
        age=age, income=income, employment_length=emp,
        credit_history_length=hist, num_credit_lines=lines, num_delinquencies=delinq,
        loan_amount=amount, interest_rate=rate, loan_term=term,
        debt_to_income=dti, credit_utilization=util, payment_to_income=pti,
        loan_purpose=purpose, housing_status=housing,
    ))

# ---- risk label generator ---------------------------------------------------
@dataclass(frozen=True)
class RiskWeights:
    """Weights and centres of the latent linear risk score.

    Each term is ``(feature - centre) * weight``; delinquencies enter
    uncentred and income enters as ``log(income)``.
    """
    dti: float = 3.0
    dti_centre: float = 0.35
    utilization: float = 2.0
    utilization_centre: float = 0.45
    delinquency: float = 0.8
    log_income: float = -0.5
    log_income_centre: float = 10.5
    history: float = -0.05
    history_centre: float = 12.0
    rate: float = 0.1
    rate_centre: float = 12.0
    payment_ratio: float = 2.0
    payment_ratio_centre: float = 0.15
    noise_sd: float = 0.5


DEFAULT_WEIGHTS = RiskWeights()


def latent_risk_score(df: pd.DataFrame, w: RiskWeights = DEFAULT_WEIGHTS) -> np.ndarray:
    """Deterministic part of the risk score (no noise)."""
    score = ((df["debt_to_income"]        - w.dti_centre)           * w.dti
           + (df["credit_utilization"]    - w.utilization_centre)   * w.utilization
           +  df["num_delinquencies"]                               * w.delinquency
           + (np.log(df["income"])        - w.log_income_centre)    * w.log_income
           + (df["credit_history_length"] - w.history_centre)       * w.history
           + (df["interest_rate"]         - w.rate_centre)          * w.rate
           + (df["payment_to_income"]     - w.payment_ratio_centre) * w.payment_ratio)
    return score.to_numpy(dtype=float)


def logistic(x):
    return 1.0 / (1.0 + np.exp(-x))


def generate_labels(applicants: pd.DataFrame, rng=None,
                    weights: RiskWeights = DEFAULT_WEIGHTS) -> pd.DataFrame:
    """Add ``default_prob`` and the 0/1 ``default`` label to a copy of *applicants*.

    All randomness (score noise and the Bernoulli draw) comes from *rng*,
    which should be a different stream from the one that drew the features.
    """
    if len(applicants) == 0:
        raise InvalidArgument("cannot label an empty applicant set")
    if weights.noise_sd < 0:
        raise InvalidArgument(f"noise_sd must be non-negative, got {weights.noise_sd}")
    rng = rng or np.random.default_rng()

    score = latent_risk_score(applicants, weights) + rng.normal(0.0, weights.noise_sd, len(applicants))
    prob  = logistic(score)
    out   = applicants.copy()
    out["default_prob"] = prob
    out[LABEL_COLUMN]   = rng.binomial(1, prob)
    return out

# ---- dataset partitioner ----------------------------------------------------
def split_dataset(data: pd.DataFrame, train_frac: float = TRAIN_FRAC,
                  seed: int = SPLIT_SEED, stratify: str | None = None):
    """Random train/test split without replacement; ``len(train) == round(train_frac * N)``."""
    if len(data) == 0:
        raise InvalidArgument("cannot split an empty dataset")
    if not 0.0 < train_frac < 1.0:
        raise InvalidArgument(f"train_frac must lie in (0, 1), got {train_frac}")

    n, n_train = len(data), int(round(train_frac * len(data)))
    if n_train in (0, n):                      # sklearn refuses an empty side
        order = np.random.default_rng(seed).permutation(n)
        return data.iloc[order[:n_train]], data.iloc[order[n_train:]]

    train, test = train_test_split(data, train_size=n_train, random_state=seed, shuffle=True,
                                   stratify=data[stratify] if stratify else None)
    log.info("split %d rows → %d train / %d test", n, len(train), len(test))
    return train, test


def generate_credit_data(n: int, seed: int = FEATURE_SEED,
                         weights: RiskWeights = DEFAULT_WEIGHTS,
                         keep_prob: bool = False) -> pd.DataFrame:
    """Features and labels drawn from two child streams of ``SeedSequence(seed)``."""
    feature_ss, label_ss = np.random.SeedSequence(seed).spawn(2)
    applicants = generate_applicants(n, np.random.default_rng(feature_ss))
    data       = generate_labels(applicants, np.random.default_rng(label_ss), weights)
    log.info("generated %d applicants, default rate %.4f", len(data), data[LABEL_COLUMN].mean())
    return data if keep_prob else data.drop(columns="default_prob")

# ---- table I/O --------------------------------------------------------------
def read_table(path) -> pd.DataFrame:
    path = pathlib.Path(path)
    if not path.exists():
        raise MissingResource(path, "input file")
    return pd.read_parquet(path) if path.suffix == ".parquet" else pd.read_csv(path)


def write_table(df: pd.DataFrame, path) -> pathlib.Path:
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == ".parquet":
        df.to_parquet(path, index=False)
    else:
        df.to_csv(path, index=False)
    return path


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--n", type=int, default=5_000)
    ap.add_argument("--seed", type=int, default=FEATURE_SEED)
    ap.add_argument("--split-seed", type=int, default=SPLIT_SEED)
    ap.add_argument("--out-dir", type=pathlib.Path, default=pathlib.Path("data"))
    ap.add_argument("--format", choices=["csv", "parquet"], default="csv")
    ap.add_argument("--stratify", action="store_true", help="stratify the split on the default label")
    ap.add_argument("--keep-prob", action="store_true", help="keep the surrogate default_prob column")
    args = ap.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    data = generate_credit_data(args.n, args.seed, keep_prob=args.keep_prob)
    train, test = split_dataset(data, seed=args.split_seed,
                                stratify=LABEL_COLUMN if args.stratify else None)
    for name, frame in (("credit_data", data), ("train_data", train), ("test_data", test)):
        out = write_table(frame, args.out_dir / f"{name}.{args.format}")
        print(f"✓ saved {len(frame):,} applications → {out}")
    print(f"  default rate: {data[LABEL_COLUMN].mean():.2%}")
