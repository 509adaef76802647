"""
Tag Meal Generation Job

Walks the tag collection and, for each tag not yet generated, asks the chat
model for exactly three meals featuring it. The meals are inserted into the
meal store and the tag is flagged is_generated. New meals carry no image
source, so the image job picks them up on its next pass.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from nutribatch.core.config import settings
from nutribatch.core.exceptions import TransformError
from nutribatch.core.utils import utcnow
from nutribatch.engine.definition import JobDefinition
from nutribatch.engine.eligibility import all_of, field_not_equal, has_any
from nutribatch.engine.records import DELETE_FIELD, RecordStore, TargetRecord
from nutribatch.jobs.meal_descriptions import ENRICHED_FIELDS
from nutribatch.jobs.prompts import tag_meals_system_prompt
from nutribatch.schemas.meal import GeneratedMealDocument
from nutribatch.services.openai_client import ChatModelClient

logger = logging.getLogger(__name__)

JOB_NAME = "tag_meals"

MEALS_PER_TAG = 3

BASE_FIELDS = ("title", "comment", "calories", "proteins", "fats", "carbohydrates", "tags")

is_eligible = all_of(field_not_equal("is_generated", True), has_any("name"))


def validate_meals(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    meals = payload.get("meals")
    if not isinstance(meals, list) or len(meals) != MEALS_PER_TAG:
        count = len(meals) if isinstance(meals, list) else None
        raise ValueError(f"Expected {MEALS_PER_TAG} meals, got {count}")

    documents = []
    for index, meal in enumerate(meals, start=1):
        if not isinstance(meal, dict) or not meal.get("title"):
            raise ValueError(f"Meal {index} has no title")
        try:
            validated = GeneratedMealDocument.model_validate(meal)
        except ValidationError as e:
            raise ValueError(f"Meal {index} is invalid: {e}") from e
        document = validated.model_dump(include=set(BASE_FIELDS + ENRICHED_FIELDS), exclude_unset=True)
        document["language"] = "en"
        documents.append(document)
    return documents


def failure_patch(record: TargetRecord, error: TransformError, at: datetime) -> Dict[str, Any]:
    return {
        "generation_failed": True,
        "generation_error": error.message[:1000],
        "generation_failed_at": at,
        "updated_time": at,
    }


def make_apply(client: ChatModelClient, meal_store: RecordStore, model: Optional[str] = None):
    model = model or settings.OPENAI_TEXT_MODEL

    async def apply(record: TargetRecord) -> Dict[str, Any]:
        tag_name = record.get("name")
        logger.info(f"[{JOB_NAME}] Generating {MEALS_PER_TAG} meals for tag '{tag_name}'")

        payload = await client.complete_json(
            model,
            tag_meals_system_prompt(tag_name),
            f'Generate {MEALS_PER_TAG} meals for tag "{tag_name}"',
        )
        documents = validate_meals(payload)

        for document in documents:
            document["created_time"] = utcnow()
            meal_key = await meal_store.add(document)
            logger.info(f"[{JOB_NAME}] Saved meal {meal_key}: {document['title']}")

        return {
            "is_generated": True,
            "updated_time": utcnow(),
            "generation_failed": False,
            "generation_error": DELETE_FIELD,
            "generation_failed_at": DELETE_FIELD,
        }

    return apply


def describe(record: TargetRecord) -> Dict[str, Any]:
    return {
        "name": record.get("name"),
        "is_generated": bool(record.get("is_generated")),
        "last_error": record.get("generation_error"),
    }


def build_job(tag_store: RecordStore, meal_store: RecordStore, client: ChatModelClient) -> JobDefinition:
    return JobDefinition(
        name=JOB_NAME,
        store=tag_store,
        is_eligible=is_eligible,
        apply=make_apply(client, meal_store),
        failure_patch=failure_patch,
        page_size=50,
        batch_quota=1,
        lock_ttl=timedelta(minutes=settings.TAG_MEALS_LOCK_TTL_MINUTES),
        max_attempts=settings.BATCH_RETRY_ATTEMPTS,
        backoff_base_seconds=settings.BATCH_BACKOFF_BASE_SECONDS,
        item_pause_seconds=settings.BATCH_ITEM_PAUSE_SECONDS,
        page_pause_seconds=settings.BATCH_PAGE_PAUSE_SECONDS,
        preflight=client.check_configured,
        describe=describe,
        description=f"Generate {MEALS_PER_TAG} meals for each tag that has none yet",
    )
