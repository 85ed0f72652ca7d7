"""
FastAPI dependency providers for the engine services.

The store, event bus and ingestion service are built once in the app
lifespan and kept on app.state; routes receive them through Depends so tests
can swap in isolated instances with app.dependency_overrides or a fresh app.
"""

from fastapi import Request

from app.services.entity_store import EntityStore
from app.services.event_bus import EventBus
from app.services.ingestion_service import IngestionService


def get_store(request: Request) -> EntityStore:
    return request.app.state.store


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.store.events


def get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion_service
