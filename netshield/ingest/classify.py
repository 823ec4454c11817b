"""
NetShield - Classification Endpoint
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import ValidationError

from netshield.config import settings
from netshield.demo import generate_demo_traffic, generate_sample_attack
from netshield.dependencies import get_classifier, get_store
from netshield.detectors.rules import Classifier, describe_validation_error
from netshield.errors import InvalidInput, StoreUnavailable
from netshield.repository import auto_block, record_alert, record_traffic
from netshield.schemas import ClassifyRequest, ClassifyResponse, DemoResponse
from netshield.store import DataStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["classification"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}


def parse_classify_request(body: Any) -> ClassifyRequest:
    """
    Validate a decoded JSON body.

    Raises:
        InvalidInput: body is not an object or fails validation
    """
    if not isinstance(body, dict):
        raise InvalidInput("request body must be a JSON object")
    try:
        return ClassifyRequest.model_validate(body)
    except ValidationError as e:
        raise InvalidInput(describe_validation_error(e)) from e


@router.options("/classify")
async def classify_preflight():
    """CORS preflight."""
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/classify", response_model=ClassifyResponse)
async def classify_packet(
    request: Request,
    store: DataStore = Depends(get_store),
    classifier: Classifier = Depends(get_classifier),
):
    """
    Classify one feature vector.
    Malicious verdicts are stored as alerts; storage failures are reported
    through alert_stored and never hide the verdict.
    """
    try:
        body = await request.json()
    except ValueError:
        raise InvalidInput("request body must be valid JSON")

    payload = parse_classify_request(body)
    features = payload.features
    verdict = classifier.classify(features)

    alert = None
    if verdict.is_malicious:
        try:
            alert = await record_alert(store, verdict, payload.source_ip, payload.dest_ip, features=features)
        except StoreUnavailable as e:
            logger.warning(f"Alert not stored for {payload.source_ip}: {e}")

    if alert is not None and settings.auto_block_enabled:
        try:
            await auto_block(store, alert)
        except StoreUnavailable as e:
            logger.warning(f"Auto-block failed for {alert.source_ip}: {e}")

    try:
        await record_traffic(
            store,
            normal=0 if verdict.is_malicious else 1,
            malicious=1 if verdict.is_malicious else 0,
            bytes_transferred=features.src_bytes + features.dst_bytes,
        )
    except StoreUnavailable as e:
        logger.warning(f"Traffic stats not updated: {e}")

    logger.debug(
        f"Classified {payload.source_ip} -> {payload.dest_ip}: "
        f"{verdict.attack_type.value}/{verdict.severity.value} ({verdict.confidence:.2f})"
    )
    return ClassifyResponse(prediction=verdict, alert_stored=alert is not None)


@router.get("/classify", response_model=DemoResponse)
async def classify_action(
    action: Optional[str] = Query(None),
    store: DataStore = Depends(get_store),
):
    """Demo data actions: generate_demo_traffic, generate_sample_attack."""
    if action == "generate_demo_traffic":
        alerts_created, blocks_created = await generate_demo_traffic(store)
    elif action == "generate_sample_attack":
        alerts_created, blocks_created = await generate_sample_attack(store)
    else:
        raise InvalidInput(f"unknown action: {action!r}")

    return DemoResponse(success=True, alerts_created=alerts_created, blocks_created=blocks_created)
