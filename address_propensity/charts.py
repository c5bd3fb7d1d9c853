"""Histograms of a propensity load, written as PNG files."""

import logging
from collections import Counter
from collections.abc import Sequence
from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from .schemas import MAX_PROPENSITY_SCORE  # noqa: E402

SCORE_DISTRIBUTION_FILE = "propensity_score_distribution.png"
ZIPCODE_DISTRIBUTION_FILE = "score_zipcode_distribution.png"

logger = logging.getLogger(__name__)

ScoreZip = tuple[int, str | None]


def plot_score_distribution(score_zips: Sequence[ScoreZip], out_dir: Path) -> Path:
    """Histogram of scores over the full score range."""
    path = Path(out_dir) / SCORE_DISTRIBUTION_FILE
    scores = [score for score, _ in score_zips]

    fig, ax = plt.subplots(figsize=(6.4, 4.8))
    ax.hist(scores, bins=range(0, MAX_PROPENSITY_SCORE + 10, 10), color="tab:red", alpha=0.5)
    ax.set_title("Propensity Score Distribution")
    ax.set_xlabel("Score")
    ax.set_ylabel("Count")
    fig.tight_layout()
    fig.savefig(path, dpi=100)
    plt.close(fig)

    logger.info(f"Propensity score visualization was saved to {path}")
    return path


def zipcode_score_counts(score_zips: Sequence[ScoreZip]) -> Counter:
    """Number of zip codes by how many scores each holds."""
    per_zip = Counter(zip_code for _, zip_code in score_zips if zip_code)
    return Counter(per_zip.values())


def plot_zipcode_distribution(score_zips: Sequence[ScoreZip], out_dir: Path) -> Path:
    path = Path(out_dir) / ZIPCODE_DISTRIBUTION_FILE
    tallies = zipcode_score_counts(score_zips)

    fig, ax = plt.subplots(figsize=(6.4, 4.8))
    if tallies:
        sizes = sorted(tallies)
        ax.bar(sizes, [tallies[s] for s in sizes], color="tab:red", alpha=0.5)
    ax.set_title("Propensity Zipcode Distribution")
    ax.set_xlabel("# Scores in Zipcode")
    ax.set_ylabel("# of Zipcodes")
    fig.tight_layout()
    fig.savefig(path, dpi=100)
    plt.close(fig)

    logger.info(f"Zipcode propensity population visualization was saved to {path}")
    return path
