"""
Meal Image Regeneration Job

Regenerates every meal photo with the current image model. A meal is done
once image_generation_source matches the configured source; meals without
any title are skipped because there is nothing to prompt with.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from nutribatch.core.config import settings
from nutribatch.core.exceptions import TransformError
from nutribatch.core.utils import utcnow
from nutribatch.engine.definition import JobDefinition
from nutribatch.engine.eligibility import EligibilityFilter, all_of, any_of, field_not_equal, has_any, nested_present
from nutribatch.engine.records import DELETE_FIELD, RecordStore, TargetRecord
from nutribatch.services.image_client import RecraftImageClient, build_food_prompt

logger = logging.getLogger(__name__)

JOB_NAME = "meal_images"


def english_text(record: TargetRecord, localized: str, fallback: Optional[str] = None) -> Optional[str]:
    value = record.get(localized)
    if isinstance(value, dict) and value.get("en"):
        return value["en"]
    return record.get(fallback) if fallback else None


def make_is_eligible(source: str) -> EligibilityFilter:
    return all_of(
        field_not_equal("image_generation_source", source),
        any_of(nested_present("title_localized", "en"), has_any("title")),
    )


def failure_patch(record: TargetRecord, error: TransformError, at: datetime) -> Dict[str, Any]:
    return {
        "image_generation_failed": True,
        "image_generation_error": error.message[:1000],
        "image_generation_failed_at": at,
        "updated_time": at,
    }


def make_apply(client: RecraftImageClient, source: str):
    async def apply(record: TargetRecord) -> Dict[str, Any]:
        title = english_text(record, "title_localized", "title")
        prompt = build_food_prompt(
            title,
            description=english_text(record, "description_localized"),
            meal_type=record.get("meal_type"),
            tags=record.get("tags") or [],
        )

        logger.info(f"[{JOB_NAME}] Generating image for {record.key} ({title})")
        image = await client.generate(prompt)

        now = utcnow()
        return {
            "photo": image.url,
            "image_generated_at": now,
            "image_generation_source": source,
            "previous_photo_regenerated": True,
            "updated_time": now,
            "image_generation_failed": False,
            "image_generation_error": DELETE_FIELD,
            "image_generation_failed_at": DELETE_FIELD,
        }

    return apply


def describe(record: TargetRecord) -> Dict[str, Any]:
    photo = record.get("photo")
    return {
        "title": english_text(record, "title_localized", "title"),
        "has_photo": bool(photo),
        "photo": photo[:100] if photo else None,
        "image_generation_source": record.get("image_generation_source"),
        "image_generation_failed": bool(record.get("image_generation_failed")),
    }


def build_job(meal_store: RecordStore, client: RecraftImageClient) -> JobDefinition:
    source = settings.IMAGE_GENERATION_SOURCE
    return JobDefinition(
        name=JOB_NAME,
        store=meal_store,
        is_eligible=make_is_eligible(source),
        apply=make_apply(client, source),
        failure_patch=failure_patch,
        page_size=200,
        batch_quota=10,
        lock_ttl=timedelta(minutes=settings.MEAL_IMAGES_LOCK_TTL_MINUTES),
        max_attempts=settings.BATCH_RETRY_ATTEMPTS,
        backoff_base_seconds=settings.BATCH_BACKOFF_BASE_SECONDS,
        item_pause_seconds=settings.BATCH_ITEM_PAUSE_SECONDS,
        page_pause_seconds=settings.BATCH_PAGE_PAUSE_SECONDS,
        preflight=client.check_configured,
        describe=describe,
        description=f"Regenerate meal photos until every meal is tagged {source}",
    )
