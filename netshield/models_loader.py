"""
NetShield - Model Loader
Model-backed classifier that can replace the rule ensemble without touching
the aggregator.

The bundle is a joblib file holding either a bare scikit-learn estimator or a
dict {"model": estimator, "feature_list": [...], "label_map": {...}}. Any
estimator with predict_proba works. When no model is loaded, or a prediction
fails, classification falls back to the rule classifier.
"""

from __future__ import annotations

import os
import logging
from typing import Optional, Dict, Any, Tuple, Union, List, Mapping

import numpy as np

from netshield.config import settings
from netshield.detectors.feature_mapper import map_features_to_array, FEATURE_ORDER
from netshield.detectors.rules import Classifier, RuleClassifier, DETECTION_RULES, parse_features
from netshield.detectors.severity import AttackType, Severity, get_score_severity, more_severe
from netshield.schemas import FeatureVector, Verdict

logger = logging.getLogger(__name__)

LabelKey = Union[int, str, np.integer, np.str_]

# KDD attack names grouped into their families
KDD_ATTACK_FAMILIES: Dict[str, AttackType] = {
    "normal": AttackType.NORMAL,
    "back": AttackType.DOS, "land": AttackType.DOS, "neptune": AttackType.DOS,
    "pod": AttackType.DOS, "smurf": AttackType.DOS, "teardrop": AttackType.DOS,
    "ipsweep": AttackType.PROBE, "nmap": AttackType.PROBE,
    "portsweep": AttackType.PROBE, "satan": AttackType.PROBE,
    "ftp_write": AttackType.R2L, "guess_passwd": AttackType.R2L, "imap": AttackType.R2L,
    "multihop": AttackType.R2L, "phf": AttackType.R2L, "spy": AttackType.R2L,
    "warezclient": AttackType.R2L, "warezmaster": AttackType.R2L,
    "buffer_overflow": AttackType.U2R, "loadmodule": AttackType.U2R,
    "perl": AttackType.U2R, "rootkit": AttackType.U2R,
}

# Severity each family carries regardless of confidence
FAMILY_SEVERITY: Dict[AttackType, Severity] = {
    rule.attack_type: rule.severity for rule in DETECTION_RULES
}


def label_to_attack_type(label: str) -> Optional[AttackType]:
    """
    Resolve a model label to an attack family.

    Accepts family names ("DoS", "r2l") and KDD attack names ("neptune").
    Returns None for unknown labels.
    """
    norm = (label or "").strip().rstrip(".").lower()
    for family in AttackType:
        if family.value.lower() == norm:
            return family
    return KDD_ATTACK_FAMILIES.get(norm)


class ModelClassifier(Classifier):
    """
    Classifier backed by a trained scikit-learn estimator.
    """

    name = "model"

    def __init__(self, fallback: Optional[Classifier] = None, threshold: float = None):
        self.model = None
        self.feature_list: List[str] = list(FEATURE_ORDER)
        self.label_map: Dict[str, int] = {}
        self.inverse_label_map: Dict[int, str] = {}
        self.loaded: bool = False
        self.threshold = settings.classifier_threshold if threshold is None else threshold
        self.fallback = fallback or RuleClassifier(threshold=self.threshold)

    def load(self, model_path: str) -> bool:
        """Load the joblib bundle. Returns False (and keeps the fallback) on any problem."""
        try:
            import joblib

            if not model_path or not os.path.exists(model_path):
                logger.warning(f"Classifier model not found at {model_path!r}, using rules")
                return False

            bundle = joblib.load(model_path)
            if isinstance(bundle, dict):
                model = bundle.get("model")
                self.feature_list = list(bundle.get("feature_list") or FEATURE_ORDER)
                self.label_map = dict(bundle.get("label_map") or {})
            else:
                model = bundle

            if not hasattr(model, "predict_proba"):
                logger.error("Loaded classifier model does not have predict_proba method")
                return False

            self.model = model
            self.inverse_label_map = {int(v): k for k, v in self.label_map.items()}
            self.loaded = True
            logger.info(f"Classifier model loaded from {model_path}")
            logger.info(f"  - Features: {len(self.feature_list)}")
            logger.info(f"  - Labels: {list(self.label_map.keys()) or list(getattr(model, 'classes_', []))}")
            return True

        except Exception as e:
            logger.error(f"Failed to load classifier model: {e}")
            self.model = None
            self.loaded = False
            return False

    def predict(self, features: np.ndarray) -> Tuple[str, float, np.ndarray]:
        """
        Predict the label for one encoded row.
        Returns (label_name, confidence, all_probabilities); ("UNKNOWN", 0.0, []) on failure.
        """
        if not self.loaded or self.model is None:
            return "UNKNOWN", 0.0, np.array([])

        try:
            row = features.reshape(-1)
            X = np.asarray([row], dtype=float)

            proba = self.model.predict_proba(X)[0]
            if proba is None or len(proba) == 0:
                return "UNKNOWN", 0.0, np.array([])

            classes = getattr(self.model, "classes_", None)
            label_key, score = self._extract_label_and_score(proba, classes)
            return self._label_from_key(label_key), score, proba

        except Exception as e:
            logger.error(f"Classifier model prediction error: {e}")
            return "UNKNOWN", 0.0, np.array([])

    def _extract_label_and_score(
        self,
        proba: np.ndarray,
        classes: Optional[np.ndarray] = None,
    ) -> Tuple[LabelKey, float]:
        """Argmax class key plus its probability."""
        argmax_idx = int(np.argmax(proba))
        score = float(proba[argmax_idx])

        if classes is not None and len(classes) == len(proba):
            return classes[argmax_idx], score
        return argmax_idx, score

    def _label_from_key(self, label_key: LabelKey) -> str:
        """String classes pass through; numeric classes go through the label map."""
        if isinstance(label_key, (str, np.str_)):
            return str(label_key)
        try:
            label_id = int(label_key)
            return self.inverse_label_map.get(label_id, str(label_id))
        except (TypeError, ValueError):
            return str(label_key)

    def classify(self, features: Union[FeatureVector, Mapping[str, Any]]) -> Verdict:
        features = parse_features(features)

        if not self.loaded:
            return self.fallback.classify(features)

        label, score, _ = self.predict(map_features_to_array(features, self.feature_list))
        attack_type = label_to_attack_type(label)
        if attack_type is None:
            logger.warning(f"Model returned unmapped label {label!r}, falling back to rules")
            return self.fallback.classify(features)

        confidence = min(max(score, 0.0), 1.0)
        is_malicious = attack_type != AttackType.NORMAL and confidence > self.threshold
        if not is_malicious:
            return Verdict(is_malicious=False, attack_type=AttackType.NORMAL,
                           severity=Severity.LOW, confidence=confidence)

        severity = more_severe(get_score_severity(confidence), FAMILY_SEVERITY[attack_type])
        return Verdict(is_malicious=True, attack_type=attack_type, severity=severity, confidence=confidence)


def build_classifier() -> Classifier:
    """Create the classifier configured by settings: the model when it loads, the rules otherwise."""
    rng = np.random.default_rng(settings.classifier_seed)
    rules = RuleClassifier(
        threshold=settings.classifier_threshold,
        perturbation=settings.classifier_perturbation,
        rng=rng,
    )
    if not settings.model_path:
        logger.info("No MODEL_PATH configured, using rule classifier")
        return rules

    model_classifier = ModelClassifier(fallback=rules, threshold=settings.classifier_threshold)
    if model_classifier.load(settings.model_path):
        return model_classifier
    return rules


def get_classifier_status(classifier: Classifier) -> Dict[str, Any]:
    """Describe the active classifier for the health endpoint."""
    status: Dict[str, Any] = {"backend": classifier.name}
    if isinstance(classifier, ModelClassifier):
        status["loaded"] = classifier.loaded
        status["features_count"] = len(classifier.feature_list)
        status["labels"] = list(classifier.label_map.keys())
    if isinstance(classifier, RuleClassifier):
        status["threshold"] = classifier.threshold
        status["rules"] = [rule.name for rule in classifier.rules]
    return status
