"""
Job Registry

Wires the concrete jobs to their stores and clients and exposes the shared
BatchEngine used by the scheduler and the admin routes.
"""
import logging
from typing import List, Optional

from nutribatch.engine.batch_engine import BatchEngine
from nutribatch.engine.clock import Clock
from nutribatch.engine.definition import JobDefinition
from nutribatch.engine.records import RecordStore
from nutribatch.engine.state import StateBackend
from nutribatch.jobs import meal_descriptions, meal_images, tag_meals
from nutribatch.models.meal import GeneratedMeal, Tag
from nutribatch.services.image_client import RecraftImageClient
from nutribatch.services.openai_client import ChatModelClient
from nutribatch.services.record_store import SqlRecordStore
from nutribatch.services.sql_state import SqlStateBackend

logger = logging.getLogger(__name__)


def build_jobs(
    meal_store: RecordStore,
    tag_store: RecordStore,
    chat_client: Optional[ChatModelClient] = None,
    image_client: Optional[RecraftImageClient] = None,
) -> List[JobDefinition]:
    chat_client = chat_client or ChatModelClient()
    image_client = image_client or RecraftImageClient()
    return [
        meal_descriptions.build_job(meal_store, chat_client),
        meal_images.build_job(meal_store, image_client),
        tag_meals.build_job(tag_store, meal_store, chat_client),
    ]


def build_engine(
    state_backend: Optional[StateBackend] = None,
    meal_store: Optional[RecordStore] = None,
    tag_store: Optional[RecordStore] = None,
    chat_client: Optional[ChatModelClient] = None,
    image_client: Optional[RecraftImageClient] = None,
    clock: Optional[Clock] = None,
) -> BatchEngine:
    """Engine over the SQL stores unless other stores are passed in."""
    jobs = build_jobs(
        meal_store or SqlRecordStore(GeneratedMeal),
        tag_store or SqlRecordStore(Tag),
        chat_client=chat_client,
        image_client=image_client,
    )
    engine = BatchEngine(state_backend or SqlStateBackend(), jobs, clock=clock)
    logger.info(f"Batch engine ready with jobs: {', '.join(engine.job_names())}")
    return engine


_batch_engine: Optional[BatchEngine] = None


def get_batch_engine() -> BatchEngine:
    """Process-wide engine for the app and the scheduler."""
    global _batch_engine
    if _batch_engine is None:
        _batch_engine = build_engine()
    return _batch_engine
