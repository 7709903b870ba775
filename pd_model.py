"""
Model boundary for the scorecard: the design matrix a PD model sees, PD
prediction for new applications, and a reference logistic-regression fit
persisted to models/pd_logreg.pkl.

The scorecard itself only needs ``predict_proba``; any fitted estimator that
exposes ``feature_names_in_`` can be dropped in.

Run:
    python pd_model.py --data data/credit_data.csv --out models/pd_logreg.pkl
"""
from __future__ import annotations
import argparse, logging, pathlib, numpy as np, pandas as pd
from sklearn.base import BaseEstimator
from sklearn.linear_model import LogisticRegression
from sklearn.metrics import roc_auc_score
from sklearn.pipeline import make_pipeline
from sklearn.preprocessing import StandardScaler

from applicant_generator import LABEL_COLUMN, P_HOUSING, P_PURPOSE, SPLIT_SEED, read_table, split_dataset
from errors import InvalidArgument, MissingResource

log = logging.getLogger(__name__)

NUMERIC = ["age", "employment_length", "credit_history_length", "num_credit_lines",
           "num_delinquencies", "interest_rate", "debt_to_income",
           "credit_utilization", "payment_to_income"]
CATEGORIES = {"loan_purpose": list(P_PURPOSE), "housing_status": list(P_HOUSING)}

# ── feature engineering ───────────────────────────────────────────────────────

def build_design_matrix(df: pd.DataFrame, feature_names=None) -> pd.DataFrame:
    X = df[NUMERIC].astype(float)
    X["ln_income"]      = np.log(df["income"])
    X["ln_loan_amount"] = np.log(df["loan_amount"])
    X["term_60"]        = (df["loan_term"] == 60).astype(float)

    # fixed level sets so a small batch yields the same dummy columns as training
    for col, levels in CATEGORIES.items():
        cat = pd.Categorical(df[col], categories=levels)
        X = X.join(pd.get_dummies(cat, prefix=col, dtype=float).set_index(X.index))

    # align columns with the fitted model
    if feature_names is not None:
        for col in feature_names:
            if col not in X:
                X[col] = 0.0
        X = X[list(feature_names)]
    return X


def predict_pd(model: BaseEstimator, df: pd.DataFrame) -> np.ndarray:
    X = build_design_matrix(df, getattr(model, "feature_names_in_", None))
    return model.predict_proba(X)[:, 1]

# ── fit / persist ─────────────────────────────────────────────────────────────

def load_model(path) -> BaseEstimator:
    path = pathlib.Path(path)
    if not path.exists():
        raise MissingResource(path, "model file")
    return pd.read_pickle(path)


def fit_reference_model(train: pd.DataFrame, class_weight=None) -> BaseEstimator:
    if train[LABEL_COLUMN].nunique() < 2:
        raise InvalidArgument("training data needs both default outcomes")
    clf = make_pipeline(StandardScaler(),
                        LogisticRegression(max_iter=1000, solver="lbfgs", class_weight=class_weight))
    clf.fit(build_design_matrix(train), train[LABEL_COLUMN].astype(int))
    log.info("fitted reference PD model on %d rows", len(train))
    return clf


def train(data_path: pathlib.Path, out_path: pathlib.Path, seed: int = SPLIT_SEED) -> BaseEstimator:
    data = read_table(data_path)
    tr, te = split_dataset(data, seed=seed, stratify=LABEL_COLUMN)

    clf = fit_reference_model(tr)
    auc = roc_auc_score(te[LABEL_COLUMN], predict_pd(clf, te))
    print(f"AUC test: {auc:.3f}")

    out_path = pathlib.Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    pd.to_pickle(clf, out_path)
    print(f"✓ model saved → {out_path}")
    return clf


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--data", type=pathlib.Path, required=True)
    ap.add_argument("--out",  type=pathlib.Path, default=pathlib.Path("models/pd_logreg.pkl"))
    ap.add_argument("--split-seed", type=int, default=SPLIT_SEED)
    args = ap.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    train(args.data, args.out, args.split_seed)
