"""
Meal schemas

Shape of the chat model's meal output before it is written to the
generated_meals table. Values are coerced where the conversion is
unambiguous ("false" -> False, "15" -> 15); anything else raises a pydantic
ValidationError, which is a ValueError.
"""
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

LocalizedText = Dict[str, str]


class MealAttributes(BaseModel):
    """Enriched meal fields, all optional. Unknown keys are dropped."""
    model_config = ConfigDict(extra="ignore")

    title_localized: Optional[LocalizedText] = None
    description_localized: Optional[LocalizedText] = None
    benefits: Optional[LocalizedText] = None
    improvements: Optional[LocalizedText] = None
    ingredients: Optional[Dict[str, List[str]]] = None
    recipe: Optional[LocalizedText] = None
    healthy_alternatives: Optional[LocalizedText] = None
    meal_type: Optional[Literal["full_meal", "snack", "drink"]] = None
    difficulty: Optional[Literal["very_easy", "easy", "medium"]] = None
    prep_time_minutes: Optional[int] = Field(None, ge=0)
    is_comfort_food: Optional[bool] = None
    is_healthy_alternative: Optional[bool] = None


class MealEnrichment(MealAttributes):
    """Description migration output; the three localized texts are required."""
    title_localized: LocalizedText
    description_localized: LocalizedText
    benefits: LocalizedText


class GeneratedMealDocument(MealAttributes):
    """A new meal produced for a tag."""
    title: str = Field(min_length=1, max_length=255)
    comment: Optional[str] = None
    calories: Optional[float] = Field(None, ge=0)
    proteins: Optional[float] = Field(None, ge=0)
    fats: Optional[float] = Field(None, ge=0)
    carbohydrates: Optional[float] = Field(None, ge=0)
    tags: Optional[List[str]] = None
