from nutribatch.schemas.meal import GeneratedMealDocument, MealAttributes, MealEnrichment
