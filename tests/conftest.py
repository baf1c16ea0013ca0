"""Shared fixtures for the explorer tests."""

import pytest

from zone_processing.grouping import build_group_index


def make_feature(**properties):
    return {"type": "Feature", "geometry": None, "properties": properties}


@pytest.fixture
def sample_features():
    """Two ZIP codes: 75001 with two zones, 75002 with one empty zone."""
    return [
        make_feature(Zip="75001", Female=10, Male=5),
        make_feature(Zip="75001", Female=3, Male=2),
        make_feature(Zip="75002", Female=0, Male=0),
    ]


@pytest.fixture
def school_features():
    """Zones carrying grades, school counts and text attributes."""
    return [
        make_feature(
            Zip="75001", district="Dallas ISD", Female=120, Male=100, pop=5000,
            Pre_K=20, KG=40, Grade_1=50, Grade_2=60, Grade_3=50, Schl_Cn=2, Stdnt_R=15.5,
        ),
        make_feature(
            Zip="75002", district="Plano ISD", Female=80, Male=90, pop=3000,
            Pre_K=10, KG=30, Grade_1=40, Grade_2=50, Grade_3=40, Schl_Cn=1, Stdnt_R=17.0,
        ),
        make_feature(
            ZIP="75003", district="Plano ISD", Female=30, Male=20, pop="1,200",
            Pre_K=5, KG=10, Grade_1=15, Grade_2=10, Grade_3=10, Schl_Cn=0, Stdnt_R="n/a",
        ),
    ]


@pytest.fixture
def sample_index(sample_features):
    return build_group_index(sample_features)


@pytest.fixture
def school_index(school_features):
    return build_group_index(school_features)
