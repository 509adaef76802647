"""
Nutrition Record Models

- GeneratedMeal: meal documents enriched by the description and image jobs
- Tag: meal tags walked by the tag-driven generation job

Keys are string identifiers assigned at creation; the batch engine orders
and resumes by them.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, JSON, Float

from nutribatch.core.database import Base
from nutribatch.core.utils import new_record_id, utcnow


class GeneratedMeal(Base):
    """A meal suggestion with localized descriptions and a generated photo."""
    __tablename__ = "generated_meals"

    id = Column(String(64), primary_key=True, default=new_record_id)

    # Source fields
    title = Column(String(255), nullable=True)
    comment = Column(Text, nullable=True)
    language = Column(String(8), nullable=True, default="en")
    calories = Column(Float, nullable=True)
    proteins = Column(Float, nullable=True)
    fats = Column(Float, nullable=True)
    carbohydrates = Column(Float, nullable=True)
    tags = Column(JSON, nullable=True)

    # Enriched fields ({"en": ..., "ru": ...})
    title_localized = Column(JSON, nullable=True)
    description_localized = Column(JSON, nullable=True)
    benefits = Column(JSON, nullable=True)
    improvements = Column(JSON, nullable=True)
    ingredients = Column(JSON, nullable=True)
    recipe = Column(JSON, nullable=True)
    healthy_alternatives = Column(JSON, nullable=True)
    meal_type = Column(String(20), nullable=True)  # full_meal, snack, drink
    difficulty = Column(String(20), nullable=True)  # very_easy, easy, medium
    prep_time_minutes = Column(Integer, nullable=True)
    is_comfort_food = Column(Boolean, nullable=True)
    is_healthy_alternative = Column(Boolean, nullable=True)

    # Description migration failure markers
    description_update_failed = Column(Boolean, nullable=True)
    description_update_error = Column(Text, nullable=True)
    description_update_failed_at = Column(DateTime(timezone=True), nullable=True)

    # Photo
    photo = Column(String(1000), nullable=True)
    image_generation_source = Column(String(50), nullable=True)
    image_generated_at = Column(DateTime(timezone=True), nullable=True)
    previous_photo_regenerated = Column(Boolean, nullable=True)

    # Image regeneration failure markers
    image_generation_failed = Column(Boolean, nullable=True)
    image_generation_error = Column(Text, nullable=True)
    image_generation_failed_at = Column(DateTime(timezone=True), nullable=True)

    created_time = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_time = Column(DateTime(timezone=True), nullable=True)


class Tag(Base):
    """A meal tag; is_generated flips once meals were generated for it."""
    __tablename__ = "tags"

    id = Column(String(64), primary_key=True, default=new_record_id)
    name = Column(String(100), nullable=False, unique=True)
    is_generated = Column(Boolean, nullable=False, default=False)

    generation_failed = Column(Boolean, nullable=True)
    generation_error = Column(Text, nullable=True)
    generation_failed_at = Column(DateTime(timezone=True), nullable=True)

    created_time = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_time = Column(DateTime(timezone=True), nullable=True)
