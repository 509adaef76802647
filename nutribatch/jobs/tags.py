"""
Meal tag vocabulary offered to the chat model when generating or enriching
meals.
"""

NUTRITION_TAGS = (
    # Food groups
    "vegetable", "fruit", "grain_whole", "grain_refined",
    "protein_meat_red", "protein_meat_white", "protein_fish",
    "protein_fish_fatty", "protein_egg", "protein_legumes",
    "protein_nuts", "dairy_lowfat", "dairy_highfat",
    # Macros and calories
    "high_protein", "high_fiber", "high_carb", "high_fat",
    "low_calorie", "high_calorie", "low_carb", "low_fat",
    # Micronutrients
    "gut_friendly", "high_omega_3", "high_iodine",
    "high_calcium", "high_magnesium", "high_iron",
    "high_vitamin_c", "high_vitamin_d", "high_zinc",
    "high_potassium", "high_folate", "high_selenium",
    "high_antioxidants",
    # Meal time
    "breakfast", "lunch", "dinner", "snack",
    # Dietary restrictions
    "vegetarian", "vegan", "gluten_free", "kid_friendly",
    "low_salt", "no_added_sugar",
    # Convenience
    "quick_easy", "seasonal",
)

TASTE_PREFERENCE_TAGS = (
    "no_fish", "no_seafood", "no_dairy", "no_nuts", "no_eggs",
    "no_spicy", "no_sweet", "no_bitter", "no_sour",
    "loves_chocolate", "loves_cheese", "loves_spicy",
)

MEAL_TYPE_TAGS = (
    "quick_snack", "fruit_snack", "protein_snack", "veggie_snack",
    "comfort_food", "healthy_alternative", "traditional_american",
    "single_ingredient",
)

CONVENIENCE_TAGS = (
    "under_5_min", "under_10_min", "no_cooking_required",
    "beginner_friendly", "grab_and_go",
)

ALL_TAGS = NUTRITION_TAGS + TASTE_PREFERENCE_TAGS + MEAL_TYPE_TAGS + CONVENIENCE_TAGS
