"""
Meal Description Migration Job

Backfills localized descriptions, benefits, ingredients and recipes for
meals created before those fields existed. A meal stays eligible until it
has all of description_localized, benefits and ingredients, so a failed
meal is picked up again on the next pass.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from nutribatch.core.config import settings
from nutribatch.core.exceptions import TransformError
from nutribatch.core.utils import utcnow
from nutribatch.engine.definition import JobDefinition
from nutribatch.engine.eligibility import missing_any
from nutribatch.engine.records import DELETE_FIELD, RecordStore, TargetRecord
from nutribatch.jobs.prompts import MEAL_DESCRIPTION_SYSTEM_PROMPT, describe_meal
from nutribatch.schemas.meal import MealEnrichment
from nutribatch.services.openai_client import ChatModelClient

logger = logging.getLogger(__name__)

JOB_NAME = "meal_descriptions"

REQUIRED_FIELDS = ("title_localized", "description_localized", "benefits")

ENRICHED_FIELDS = (
    "title_localized",
    "description_localized",
    "benefits",
    "improvements",
    "ingredients",
    "recipe",
    "healthy_alternatives",
    "meal_type",
    "difficulty",
    "prep_time_minutes",
    "is_comfort_food",
    "is_healthy_alternative",
)

is_eligible = missing_any("description_localized", "benefits", "ingredients")


def validate_enrichment(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Keep known fields, coerced to their column types.

    ValueError if a required localized field is missing or any kept field
    has a value the meal table cannot store.
    """
    missing = [
        name for name in REQUIRED_FIELDS
        if not isinstance(payload.get(name), dict) or not payload[name]
    ]
    if missing:
        raise ValueError(f"Invalid response structure: missing {', '.join(missing)}")

    enrichment = MealEnrichment.model_validate(payload)
    return enrichment.model_dump(include=set(ENRICHED_FIELDS), exclude_unset=True)


def failure_patch(record: TargetRecord, error: TransformError, at: datetime) -> Dict[str, Any]:
    return {
        "description_update_failed": True,
        "description_update_error": error.message[:1000],
        "description_update_failed_at": at,
        "updated_time": at,
    }


def make_apply(client: ChatModelClient, model: Optional[str] = None):
    model = model or settings.OPENAI_MIGRATION_MODEL

    async def apply(record: TargetRecord) -> Dict[str, Any]:
        logger.info(f"[{JOB_NAME}] Generating descriptions for {record.key} ({record.get('title')})")
        payload = await client.complete_json(model, MEAL_DESCRIPTION_SYSTEM_PROMPT, describe_meal(record.data))

        patch = validate_enrichment(payload)
        patch.update({
            "updated_time": utcnow(),
            "description_update_failed": DELETE_FIELD,
            "description_update_error": DELETE_FIELD,
            "description_update_failed_at": DELETE_FIELD,
        })
        return patch

    return apply


def describe(record: TargetRecord) -> Dict[str, Any]:
    return {
        "title": record.get("title"),
        "has_description": bool(record.get("description_localized")),
        "has_benefits": bool(record.get("benefits")),
        "has_ingredients": bool(record.get("ingredients")),
        "last_error": record.get("description_update_error"),
    }


def build_job(meal_store: RecordStore, client: ChatModelClient) -> JobDefinition:
    return JobDefinition(
        name=JOB_NAME,
        store=meal_store,
        is_eligible=is_eligible,
        apply=make_apply(client),
        failure_patch=failure_patch,
        page_size=5,
        batch_quota=5,
        lock_ttl=timedelta(minutes=settings.MEAL_DESCRIPTIONS_LOCK_TTL_MINUTES),
        max_attempts=settings.BATCH_RETRY_ATTEMPTS,
        backoff_base_seconds=settings.BATCH_BACKOFF_BASE_SECONDS,
        item_pause_seconds=settings.BATCH_ITEM_PAUSE_SECONDS,
        page_pause_seconds=settings.BATCH_PAGE_PAUSE_SECONDS,
        preflight=client.check_configured,
        describe=describe,
        description="Backfill localized descriptions, benefits and ingredients on existing meals",
    )
