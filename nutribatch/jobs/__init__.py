"""
Jobs Package

Batch jobs built on the engine:
- meal_descriptions: localized description backfill
- meal_images: photo regeneration
- tag_meals: tag-driven meal generation
"""
