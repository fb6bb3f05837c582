"""Factory functions for candidates, import records and queue rows."""

import uuid
from datetime import datetime, timezone
from typing import Any

from services.discovery.pipeline.candidates import CandidatePlace, ImportRecord


def make_candidate(**overrides: Any) -> CandidatePlace:
    base = {
        "name": "Le Chien Heureux",
        "category": "cafes",
        "address": "12 Rue de Rivoli, 75004 Paris",
        "description": "Water bowls at the door and a dog menu.",
        "neighborhood": "Le Marais",
        "dog_features": {"waterBowl": True, "dogMenu": True},
        "price_level": 2,
        "confidence": 70,
        "reasoning": "Frequently reviewed as dog friendly.",
    }
    base.update(overrides)
    return CandidatePlace(**base)


def make_record(city_slug: str = "paris", **overrides: Any) -> ImportRecord:
    return ImportRecord(city_slug=city_slug, place=make_candidate(**overrides))


def make_queue_row(**overrides: Any) -> dict:
    """Factory for validation_queue rows as raw SQL returns them."""
    base = {
        "id": str(uuid.uuid4()),
        "city": "paris",
        "name": "Le Chien Heureux",
        "localized_name": None,
        "category": "cafes",
        "address": "12 Rue de Rivoli, 75004 Paris",
        "neighborhood": "Le Marais",
        "phone": None,
        "website": None,
        "description": "Water bowls at the door.",
        "localized_description": "Gamelles d'eau a l'entree.",
        "dog_features": '{"waterBowl": true}',
        "price_level": 2,
        "confidence": 70,
        "reasoning": "Well known.",
        "source": "llm-research",
        "latitude": None,
        "longitude": None,
        "status": "pending",
        "research_task_id": "research-1-abc123",
        "reviewed_by": None,
        "reviewed_at": None,
        "created_at": datetime(2026, 3, 1, tzinfo=timezone.utc),
    }
    base.update(overrides)
    return base
