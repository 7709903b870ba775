"""
Scorecard: probability of default → 0–1000 risk score → one of five ordered
risk tiers, each carrying a fixed LGD and a recommended action.
"""
from __future__ import annotations
import enum, logging, numpy as np, pandas as pd
from typing import NamedTuple

from errors import InvalidArgument, SchemaMismatch

log = logging.getLogger(__name__)

SCORE_SCALE = 1_000


class RiskTier(enum.IntEnum):
    LOW         = 0
    MEDIUM_LOW  = 1
    MEDIUM      = 2
    MEDIUM_HIGH = 3
    HIGH        = 4


class ScoreBand(NamedTuple):
    lower: int
    upper: int                  # exclusive, except for the last band
    tier: RiskTier
    label: str
    recommendation: str
    lgd: float


# ── band table (ascending, first match wins) ───────────────────────────────────
SCORECARD = (
    ScoreBand(0,   200,  RiskTier.LOW,         "Low Risk",         "Auto-Approve",                 0.30),
    ScoreBand(200, 400,  RiskTier.MEDIUM_LOW,  "Medium-Low Risk",  "Approve with Standard Terms",  0.40),
    ScoreBand(400, 600,  RiskTier.MEDIUM,      "Medium Risk",      "Manual Review Required",       0.50),
    ScoreBand(600, 800,  RiskTier.MEDIUM_HIGH, "Medium-High Risk", "Approve with Enhanced Terms",  0.60),
    ScoreBand(800, 1000, RiskTier.HIGH,        "High Risk",        "Decline or Secured Loan Only", 0.70),
)
TIER_LABELS     = [b.label for b in SCORECARD]
HIGH_RISK_LABEL = SCORECARD[-1].label

_UPPER_EDGES     = np.array([b.upper for b in SCORECARD[:-1]])
_LABELS          = np.array(TIER_LABELS, dtype=object)
_RECOMMENDATIONS = np.array([b.recommendation for b in SCORECARD], dtype=object)
_LGDS            = np.array([b.lgd for b in SCORECARD])


class ScorecardResult(NamedTuple):
    risk_score: int
    risk_tier: str
    recommendation: str
    lgd: float


def to_risk_score(prob_default):
    return np.rint(np.asarray(prob_default, dtype=float) * SCORE_SCALE).astype(int)


def band_index(risk_score) -> np.ndarray:
    """Index into SCORECARD for each score: lower edge inclusive, upper exclusive."""
    return np.searchsorted(_UPPER_EDGES, np.asarray(risk_score), side="right")


def band_for_score(risk_score: int) -> ScoreBand:
    if not 0 <= risk_score <= SCORE_SCALE:
        raise InvalidArgument(f"risk_score must lie in [0, {SCORE_SCALE}], got {risk_score}")
    for band in SCORECARD:
        if risk_score < band.upper:
            return band
    return SCORECARD[-1]


def score_probability(prob_default: float) -> ScorecardResult:
    if not 0.0 <= prob_default <= 1.0:         # also rejects NaN
        raise InvalidArgument(f"prob_default must lie in [0, 1], got {prob_default}")
    score = int(to_risk_score(prob_default))
    band  = band_for_score(score)
    return ScorecardResult(score, band.label, band.recommendation, band.lgd)


def expected_loss(prob_default, lgd, exposure):
    return np.multiply(np.multiply(prob_default, lgd), exposure)


def score_applications(applications: pd.DataFrame, prob_default,
                       id_column: str = "customer_id") -> pd.DataFrame:
    """Attach PD, score, tier, recommendation, LGD and expected loss to a copy of *applications*.

    *prob_default* is one probability per row, produced by any external model
    (or by the synthetic label generator). Values outside [0, 1] are rejected,
    never clamped.
    """
    if len(applications) == 0:
        raise InvalidArgument("no applications to score")
    if "loan_amount" not in applications:
        raise SchemaMismatch({"loan_amount": "missing"})

    prob = np.asarray(prob_default, dtype=float)
    if prob.shape != (len(applications),):
        raise InvalidArgument(f"expected {len(applications)} probabilities, got shape {prob.shape}")

    bad = ~((prob >= 0.0) & (prob <= 1.0))
    if bad.any():
        ids = (applications[id_column].to_numpy()[bad] if id_column in applications
               else np.flatnonzero(bad))
        raise InvalidArgument(f"prob_default outside [0, 1] for {int(bad.sum())} applicant(s); "
                              f"first {id_column}s: {ids[:5].tolist()}")

    scored = applications.copy()
    idx = band_index(to_risk_score(prob))
    scored["prob_default"]   = prob
    scored["risk_score"]     = to_risk_score(prob)
    scored["risk_tier"]      = _LABELS[idx]
    scored["recommendation"] = _RECOMMENDATIONS[idx]
    scored["lgd"]            = _LGDS[idx]
    scored["expected_loss"]  = expected_loss(prob, scored["lgd"].to_numpy(), scored["loan_amount"].to_numpy(dtype=float))
    log.info("scored %d applications, mean risk score %.1f", len(scored), scored["risk_score"].mean())
    return scored
