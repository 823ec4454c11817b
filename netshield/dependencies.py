"""
NetShield - Request Dependencies
Components are created once in the application lifespan and kept on app.state.
"""

from typing import Optional

from fastapi import Request

from netshield.detectors.rules import Classifier
from netshield.monitor import AlertMonitor
from netshield.store import DataStore


def get_store(request: Request) -> DataStore:
    return request.app.state.store


def get_classifier(request: Request) -> Classifier:
    return request.app.state.classifier


def get_monitor(request: Request) -> Optional[AlertMonitor]:
    return getattr(request.app.state, "monitor", None)
