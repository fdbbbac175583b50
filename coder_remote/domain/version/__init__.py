"""
Version domain module
"""
from .featureset import FeatureSet, SemVer, feature_set_for_version, parse_version

__all__ = [
    "FeatureSet",
    "SemVer",
    "feature_set_for_version",
    "parse_version",
]
