"""
Database Models

Importing this package registers every table on Base.metadata.
"""
from nutribatch.models.pipeline import BatchJobState
from nutribatch.models.meal import GeneratedMeal, Tag, new_record_id

__all__ = [
    "BatchJobState",
    "GeneratedMeal",
    "Tag",
    "new_record_id",
]
