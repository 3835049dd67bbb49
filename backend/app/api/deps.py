"""
Request dependencies.

The chain reader, store and controller are built once in the app lifespan
and stored on app.state; tests override these with dependency_overrides.
"""

from fastapi import Request

from app.services.chain import ChainReader
from app.services.store import ReconciliationStore
from app.services.sync import SyncController


def get_chain(request: Request) -> ChainReader:
    return request.app.state.chain


def get_store(request: Request) -> ReconciliationStore:
    return request.app.state.store


def get_controller(request: Request) -> SyncController:
    return request.app.state.controller
