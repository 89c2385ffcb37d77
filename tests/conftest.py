"""Shared pytest fixtures for all test modules."""

from pathlib import Path

import numpy as np
import pandas as pd
import pytest


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests of a single module")
    config.addinivalue_line("markers", "integration: end-to-end tests through the public API")
    config.addinivalue_line("markers", "slow: tests running many model fits")


@pytest.fixture
def cross_sectional_df() -> pd.DataFrame:
    """
    100 subjects, 3 metabolites, continuous and binary variables of interest.

    met_1 depends strongly on pfas and disease; met_2 and met_3 are noise.
    """
    rng = np.random.default_rng(20240501)
    n = 100
    age = rng.normal(50, 10, n)
    sex = rng.integers(0, 2, n)
    pfas = rng.normal(0, 1, n)
    disease = rng.integers(0, 2, n)
    return pd.DataFrame(
        {
            "age": age,
            "sex": sex,
            "pfas": pfas,
            "disease": disease,
            "met_1": 2.0 * pfas + 1.5 * disease + 0.02 * age + rng.normal(0, 0.5, n),
            "met_2": rng.normal(0, 1, n),
            "met_3": 0.01 * age + rng.normal(0, 1, n),
        }
    )


@pytest.fixture
def matched_df() -> pd.DataFrame:
    """60 matched sets of one case and two controls; met_1 is raised in cases."""
    rng = np.random.default_rng(7)
    rows = []
    for set_id in range(60):
        for status in (1, 0, 0):
            rows.append(
                {
                    "case": status,
                    "set_id": set_id,
                    "bmi": rng.normal(25, 3),
                    "met_1": rng.normal(0.8 * status, 1),
                    "met_2": rng.normal(0, 1),
                }
            )
    return pd.DataFrame(rows)


@pytest.fixture
def repeated_df() -> pd.DataFrame:
    """40 subjects with 4 visits each; met_1 tracks the time-varying exposure."""
    rng = np.random.default_rng(11)
    rows = []
    for subject in range(40):
        intercept = rng.normal(0, 1)
        for visit in range(4):
            exposure = rng.normal(0, 1)
            rows.append(
                {
                    "subject": f"S{subject:02d}",
                    "visit": visit,
                    "exposure": exposure,
                    "met_1": intercept + 1.2 * exposure + rng.normal(0, 0.5),
                    "met_2": intercept + rng.normal(0, 1),
                }
            )
    return pd.DataFrame(rows)


@pytest.fixture
def mixture_df() -> pd.DataFrame:
    """150 subjects, 3 mixture exposures, 2 features; met_1 increases with every exposure."""
    rng = np.random.default_rng(3)
    n = 150
    exposures = rng.lognormal(0, 0.5, size=(n, 3))
    df = pd.DataFrame(exposures, columns=["pfoa", "pfos", "pfna"])
    df["age"] = rng.normal(40, 8, n)
    df["met_1"] = 0.3 * exposures.sum(axis=1) + rng.normal(0, 0.5, n)
    df["met_2"] = rng.normal(0, 1, n)
    df["met_bin"] = rng.integers(0, 2, n)
    return df


@pytest.fixture
def write_table(tmp_path: Path):
    """Write a DataFrame to ``tmp_path`` and return the file path."""

    def _write(df: pd.DataFrame, name: str = "data.csv") -> Path:
        path = tmp_path / name
        sep = "\t" if path.suffix in (".tsv", ".tab") else ","
        df.to_csv(path, sep=sep, index=False)
        return path

    return _write
