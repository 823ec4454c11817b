"""
NetShield - Feature Mapper
Encodes a FeatureVector into the fixed numeric row a trained model expects.

Categorical fields (protocol_type, service, flag) are encoded by their index
in the fixed vocabularies from netshield.schemas, so the encoding is stable
across processes and matches how training rows are produced.
"""

import logging
from typing import Any, Dict, List, Tuple

import numpy as np

from netshield.schemas import FeatureVector, KDD_SERVICES, PROTOCOL_TYPES, TCP_FLAGS

logger = logging.getLogger(__name__)

# Column order of the encoded row; identical to the KDD record layout
FEATURE_ORDER: List[str] = list(FeatureVector.model_fields.keys())

CATEGORICAL_VOCABULARIES: Dict[str, Tuple[str, ...]] = {
    "protocol_type": PROTOCOL_TYPES,
    "service": KDD_SERVICES,
    "flag": TCP_FLAGS,
}


def encode_categorical(name: str, value: str) -> int:
    """
    Index of a categorical value in its vocabulary.

    Raises:
        ValueError: if the value is outside the vocabulary
    """
    vocabulary = CATEGORICAL_VOCABULARIES[name]
    try:
        return vocabulary.index(value)
    except ValueError:
        raise ValueError(f"{name}={value!r} is not in the known vocabulary") from None


def map_features_to_array(features: FeatureVector, feature_list: List[str] = None) -> np.ndarray:
    """
    Map a FeatureVector to a 1D float row.

    Args:
        features: Validated feature vector
        feature_list: Column order expected by the model (defaults to FEATURE_ORDER).
            Unknown column names are filled with 0.0 and logged once per call.

    Returns:
        numpy array of shape (len(feature_list),)
    """
    columns = feature_list or FEATURE_ORDER
    values: Dict[str, Any] = features.model_dump()

    row = np.zeros(len(columns), dtype=float)
    missing = []
    for i, name in enumerate(columns):
        if name not in values:
            missing.append(name)
            continue
        if name in CATEGORICAL_VOCABULARIES:
            row[i] = encode_categorical(name, values[name])
        else:
            row[i] = float(values[name])

    if missing:
        logger.debug(f"Feature columns not provided by FeatureVector, filled with 0: {missing}")

    return row
