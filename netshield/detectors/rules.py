"""
NetShield - Rule Classifier
Threshold-rule ensemble that turns a FeatureVector into a Verdict.

Rules are evaluated independently and in order; every rule that fires adds
its increment to the suspicion score. When several rules fire, the LAST
firing rule decides the attack family (and its rule severity), so a
privilege-escalation signal overrides an earlier volume signal.

A small non-negative random perturbation models classifier uncertainty.
The random source is a numpy Generator passed in by the caller; tests pass
a seeded or mocked generator (or perturbation=0) for determinism.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
from pydantic import ValidationError

from netshield.errors import InvalidInput
from netshield.schemas import FeatureVector, Verdict
from netshield.detectors.severity import AttackType, Severity, get_score_severity, more_severe

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.4
DEFAULT_PERTURBATION = 0.05


@dataclass(frozen=True)
class DetectionRule:
    """One threshold check with the family it proposes when it fires."""
    name: str
    attack_type: AttackType
    severity: Severity
    increment: float
    matches: Callable[[FeatureVector], bool]


def _volume(f: FeatureVector) -> bool:
    return f.count > 500 or f.src_bytes > 10000


def _service_diversity(f: FeatureVector) -> bool:
    return f.dst_host_count > 100 and f.same_srv_rate < 0.1


def _authentication(f: FeatureVector) -> bool:
    return f.num_failed_logins > 3 or f.is_guest_login == 1 or f.num_compromised > 0


def _privilege(f: FeatureVector) -> bool:
    return f.num_root > 0 or f.root_shell > 0 or f.su_attempted > 0


# Evaluation order matters: later firing rules override the proposed family
DETECTION_RULES: Tuple[DetectionRule, ...] = (
    DetectionRule("volume", AttackType.DOS, Severity.HIGH, 0.3, _volume),
    DetectionRule("service_diversity", AttackType.PROBE, Severity.MEDIUM, 0.4, _service_diversity),
    DetectionRule("authentication", AttackType.R2L, Severity.CRITICAL, 0.5, _authentication),
    DetectionRule("privilege", AttackType.U2R, Severity.CRITICAL, 0.6, _privilege),
)


def parse_features(data: Union[FeatureVector, Mapping[str, Any]]) -> FeatureVector:
    """
    Validate raw feature data.

    Raises:
        InvalidInput: on missing fields, wrong types or out-of-range values
    """
    if isinstance(data, FeatureVector):
        return data
    if not isinstance(data, Mapping):
        raise InvalidInput("features must be an object")
    try:
        return FeatureVector.model_validate(dict(data))
    except ValidationError as e:
        raise InvalidInput(describe_validation_error(e, prefix="features")) from e


def describe_validation_error(error: ValidationError, prefix: str = "") -> str:
    """Short one-line summary of a pydantic error, naming the first bad field."""
    first = error.errors()[0]
    location = ".".join(str(p) for p in ((prefix,) if prefix else ()) + tuple(first["loc"]))
    extra = f" (+{error.error_count() - 1} more)" if error.error_count() > 1 else ""
    return f"{location}: {first['msg']}{extra}"


class Classifier(ABC):
    """Capability: map a feature vector to a verdict."""

    name: str = "classifier"

    @abstractmethod
    def classify(self, features: Union[FeatureVector, Mapping[str, Any]]) -> Verdict:
        ...


class RuleClassifier(Classifier):
    """Additive threshold-rule classifier."""

    name = "rules"

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        perturbation: float = DEFAULT_PERTURBATION,
        rng: Optional[np.random.Generator] = None,
        rules: Sequence[DetectionRule] = DETECTION_RULES,
    ):
        if perturbation < 0:
            raise ValueError("perturbation must be non-negative")
        self.threshold = threshold
        self.perturbation = perturbation
        self.rules = tuple(rules)
        self._rng = rng if rng is not None else np.random.default_rng()

    def fired_rules(self, features: FeatureVector) -> List[DetectionRule]:
        """Rules that fire for these features, in evaluation order."""
        return [rule for rule in self.rules if rule.matches(features)]

    def _noise(self) -> float:
        if self.perturbation == 0:
            return 0.0
        return float(self._rng.uniform(0.0, self.perturbation))

    def classify(self, features: Union[FeatureVector, Mapping[str, Any]]) -> Verdict:
        """
        Classify one feature vector.

        Returns:
            Verdict; attack_type is Normal and severity Low whenever the
            suspicion score does not exceed the threshold.

        Raises:
            InvalidInput: if the features fail validation
        """
        features = parse_features(features)

        fired = self.fired_rules(features)
        score = sum(rule.increment for rule in fired) + self._noise()
        is_malicious = score > self.threshold

        attack_type = AttackType.NORMAL
        severity = Severity.LOW
        if is_malicious:
            severity = get_score_severity(score)
            if fired:
                winner = fired[-1]
                attack_type = winner.attack_type
                severity = more_severe(severity, winner.severity)

        verdict = Verdict(
            is_malicious=is_malicious,
            attack_type=attack_type,
            severity=severity,
            confidence=min(score, 1.0),
        )
        logger.debug(
            f"Rule verdict: fired={[r.name for r in fired]} score={score:.3f} "
            f"-> {verdict.attack_type.value}/{verdict.severity.value}"
        )
        return verdict
