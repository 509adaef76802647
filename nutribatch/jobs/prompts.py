"""
Chat model prompts for the meal jobs.
"""
from nutribatch.jobs.tags import ALL_TAGS

MEAL_SCHEMA = """{
  "title_localized": {"en": "English title (<=35 chars)", "ru": "Russian title (<=35 chars)"},
  "description_localized": {"en": "Taste, texture, aroma and nutritional value (2-3 sentences)", "ru": "..."},
  "benefits": {"en": "Specific health benefits, vitamins, minerals and nutrients", "ru": "..."},
  "improvements": {"en": "Healthier cooking methods, portions, substitutions or timing", "ru": "..."},
  "ingredients": {"en": ["ingredient1", "ingredient2"], "ru": ["..."]},
  "recipe": {"en": "DETAILED step-by-step instructions with prep time, method, temperature, serving tips", "ru": "..."},
  "healthy_alternatives": {"en": "Healthy ingredient swaps and substitutions", "ru": "..."},
  "meal_type": "full_meal|snack|drink",
  "difficulty": "very_easy|easy|medium",
  "prep_time_minutes": 15,
  "is_comfort_food": false,
  "is_healthy_alternative": true
}"""

MEAL_DESCRIPTION_SYSTEM_PROMPT = f"""You are a professional nutrition coach following MyPlate guidelines.
You have an existing meal that needs enhanced descriptions. Generate comprehensive information for this meal.

Requirements:
- Title: max 35 characters (both languages)
- Generate realistic, detailed descriptions
- Cooking time: 0-20 minutes maximum
- Always provide detailed cooking instructions; for simple items like fruit, explain how to select, prepare and serve

Available tags: {", ".join(ALL_TAGS)}

Return ONLY a JSON object with this exact structure:
{MEAL_SCHEMA}

Focus on realistic, achievable recipes that match the existing meal data and nutritional profile."""


TAG_MEALS_SYSTEM_PROMPT = """You are a professional nutrition coach following MyPlate guidelines.

Generate exactly 3 diverse meals that prominently feature the tag "{tag}".

Requirements:
- Title: max 35 characters (both languages)
- Calories: vary between ~50 (snack), ~150 (light meal), ~350 (full meal)
- Realistic American dishes, including comfort foods and healthy alternatives
- Include simple snacks (like "Apple" or "Banana") when appropriate
- Cooking time: 0-20 minutes maximum
- Mix of meal types: full meals, snacks, drinks
- Always provide detailed cooking instructions

Available tags: {tags}

Return ONLY a JSON object of the form {{"meals": [meal, meal, meal]}} where each meal has
"title", "comment", "calories", "proteins", "fats", "carbohydrates", "tags" and the fields:
{schema}

Focus on realistic, achievable meals that Americans actually eat."""


def describe_meal(data: dict) -> str:
    tags = data.get("tags") or []
    return "\n".join([
        "Generate enhanced description for this meal:",
        "Existing meal:",
        f"- Title: {data.get('title')}",
        f"- Description: {data.get('comment') or 'No description'}",
        f"- Calories: {data.get('calories')}",
        f"- Proteins: {data.get('proteins')}g",
        f"- Fats: {data.get('fats')}g",
        f"- Carbs: {data.get('carbohydrates')}g",
        f"- Tags: {', '.join(tags) if tags else 'None'}",
        f"- Language: {data.get('language') or 'en'}",
    ])


def tag_meals_system_prompt(tag_name: str) -> str:
    return TAG_MEALS_SYSTEM_PROMPT.format(tag=tag_name, tags=", ".join(ALL_TAGS), schema=MEAL_SCHEMA)
