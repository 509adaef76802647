"""
Unit Tests for the meal description, meal image and tag meal jobs

The chat and image clients are replaced with AsyncMock-backed fakes; jobs run
through the real BatchDriver over in-memory stores.
"""
from unittest.mock import AsyncMock

import pytest

from nutribatch.core.exceptions import ConfigurationError
from nutribatch.engine.records import InMemoryRecordStore, TargetRecord
from nutribatch.jobs import meal_descriptions, meal_images, tag_meals
from nutribatch.services.image_client import GeneratedImage
from nutribatch.services.openai_client import ChatModelClient

ENRICHMENT = {
    "title_localized": {"en": "Greek yogurt bowl", "ru": "Греческий йогурт"},
    "description_localized": {"en": "Creamy yogurt with berries", "ru": "Йогурт с ягодами"},
    "benefits": {"en": "High in protein", "ru": "Много белка"},
    "ingredients": {"en": ["yogurt", "berries"], "ru": ["йогурт", "ягоды"]},
    "meal_type": "full_meal",
    "prep_time_minutes": 5,
    "unexpected": "dropped",
}


class FakeChatClient:
    def __init__(self, *responses):
        self.complete_json = AsyncMock(side_effect=list(responses))
        self.configured = True

    def check_configured(self):
        if not self.configured:
            raise ConfigurationError("OPENAI_API_KEY is not set")


class FakeImageClient:
    def __init__(self, url="https://img.recraft.ai/meal.png"):
        self.generate = AsyncMock(side_effect=lambda prompt: GeneratedImage(url=url, prompt=prompt, model="recraftv3"))

    def check_configured(self):
        pass


def meal_tags(count):
    return [
        {
            "title": f"Meal {i}",
            "calories": 300 + i,
            "tags": ["high-protein"],
            "title_localized": {"en": f"Meal {i}"},
            "description_localized": {"en": "Tasty"},
            "benefits": {"en": "Filling"},
            "secret": "dropped",
        }
        for i in range(1, count + 1)
    ]


class TestMealDescriptions:
    def test_eligibility(self):
        assert meal_descriptions.is_eligible(TargetRecord("a", {"title": "Oatmeal"})) is True
        assert meal_descriptions.is_eligible(TargetRecord("b", {
            "description_localized": {"en": "x"},
            "benefits": {"en": "y"},
            "ingredients": {"en": ["z"]},
        })) is False

    def test_validate_enrichment_keeps_known_fields(self):
        patch = meal_descriptions.validate_enrichment(ENRICHMENT)
        assert "unexpected" not in patch
        assert patch["prep_time_minutes"] == 5

    def test_validate_enrichment_coerces_column_types(self):
        patch = meal_descriptions.validate_enrichment(
            dict(ENRICHMENT, is_comfort_food="false", prep_time_minutes="15")
        )
        assert patch["is_comfort_food"] is False
        assert patch["prep_time_minutes"] == 15

    @pytest.mark.parametrize("field,value", [
        ("is_comfort_food", "sometimes"),
        ("prep_time_minutes", "ten"),
        ("meal_type", "brunch"),
        ("difficulty", "expert"),
        ("benefits", {"en": ["not", "text"]}),
    ])
    def test_validate_enrichment_rejects_bad_types(self, field, value):
        with pytest.raises(ValueError):
            meal_descriptions.validate_enrichment(dict(ENRICHMENT, **{field: value}))

    def test_validate_enrichment_rejects_missing_fields(self):
        with pytest.raises(ValueError, match="benefits"):
            meal_descriptions.validate_enrichment({
                "title_localized": {"en": "x"},
                "description_localized": {"en": "y"},
            })

    @pytest.mark.asyncio
    async def test_step_enriches_meal(self, driver):
        store = InMemoryRecordStore({
            "m1": {"title": "Greek yogurt", "calories": 150, "description_update_error": "old"},
        })
        client = FakeChatClient(ENRICHMENT)
        job = meal_descriptions.build_job(store, client)

        summary = await driver.run_single_step(job)

        assert summary.updated == 1
        doc = store.snapshot("m1")
        assert doc["benefits"]["en"] == "High in protein"
        assert "description_update_error" not in doc
        assert "unexpected" not in doc
        model, _, user_prompt = client.complete_json.await_args.args
        assert model == "gpt-5-mini"
        assert "Greek yogurt" in user_prompt
        assert "150" in user_prompt

    @pytest.mark.asyncio
    async def test_invalid_response_marks_failure(self, driver):
        store = InMemoryRecordStore({"m1": {"title": "Soup"}})
        bad = {"title_localized": {"en": "Soup"}}
        job = meal_descriptions.build_job(store, FakeChatClient(bad, bad, bad))

        summary = await driver.run_single_step(job)

        assert summary.failed == 1
        doc = store.snapshot("m1")
        assert doc["description_update_failed"] is True
        assert "Invalid response structure" in doc["description_update_error"]
        assert doc["description_update_failed_at"] == driver.clock.now()
        # Still eligible for the next pass
        assert meal_descriptions.is_eligible(TargetRecord("m1", doc)) is True

    @pytest.mark.asyncio
    async def test_missing_api_key_fails_before_any_record(self, driver):
        store = InMemoryRecordStore({"m1": {"title": "Soup"}})
        job = meal_descriptions.build_job(store, ChatModelClient(api_key=""))

        with pytest.raises(ConfigurationError):
            await driver.run_single_step(job)
        assert store.patch_calls == []

    def test_describe(self):
        info = meal_descriptions.describe(TargetRecord("m1", {"title": "Soup", "benefits": {"en": "x"}}))
        assert info == {
            "title": "Soup",
            "has_description": False,
            "has_benefits": True,
            "has_ingredients": False,
            "last_error": None,
        }


class TestMealImages:
    def test_eligibility(self):
        eligible = meal_images.make_is_eligible("recraft-v3")
        assert eligible(TargetRecord("a", {"title": "Soup"})) is True
        assert eligible(TargetRecord("b", {"title": "Soup", "image_generation_source": "dall-e-3"})) is True
        assert eligible(TargetRecord("c", {"title": "Soup", "image_generation_source": "recraft-v3"})) is False
        assert eligible(TargetRecord("d", {"calories": 100})) is False

    def test_english_text_prefers_localized(self):
        record = TargetRecord("a", {"title": "Суп", "title_localized": {"en": "Soup", "ru": "Суп"}})
        assert meal_images.english_text(record, "title_localized", "title") == "Soup"
        assert meal_images.english_text(TargetRecord("b", {"title": "Суп"}), "title_localized", "title") == "Суп"

    @pytest.mark.asyncio
    async def test_step_regenerates_photo(self, driver):
        store = InMemoryRecordStore({
            "m1": {"title": "Tomato soup", "photo": "https://old/1.png", "image_generation_error": "timeout"},
            "m2": {"title": "Done", "image_generation_source": "recraft-v3"},
        })
        client = FakeImageClient()
        job = meal_images.build_job(store, client)

        summary = await driver.run_single_step(job)

        assert summary.processed == 1
        doc = store.snapshot("m1")
        assert doc["photo"] == "https://img.recraft.ai/meal.png"
        assert doc["image_generation_source"] == "recraft-v3"
        assert doc["previous_photo_regenerated"] is True
        assert doc["image_generation_failed"] is False
        assert "image_generation_error" not in doc
        prompt = client.generate.await_args.args[0]
        assert prompt.startswith("Professional food photography of Tomato soup.")
        assert store.snapshot("m2") == {"title": "Done", "image_generation_source": "recraft-v3"}

    @pytest.mark.asyncio
    async def test_generation_failure_marks_record(self, driver):
        store = InMemoryRecordStore({"m1": {"title": "Soup", "photo": "https://old/1.png"}})
        client = FakeImageClient()
        client.generate.side_effect = RuntimeError("Recraft API returned 500")
        job = meal_images.build_job(store, client)

        summary = await driver.run_single_step(job)

        assert summary.failed == 1
        doc = store.snapshot("m1")
        assert doc["photo"] == "https://old/1.png"
        assert doc["image_generation_failed"] is True
        assert "500" in doc["image_generation_error"]


class TestTagMeals:
    def test_eligibility(self):
        assert tag_meals.is_eligible(TargetRecord("t1", {"name": "high-protein"})) is True
        assert tag_meals.is_eligible(TargetRecord("t2", {"name": "vegan", "is_generated": True})) is False
        assert tag_meals.is_eligible(TargetRecord("t3", {})) is False

    def test_validate_meals(self):
        documents = tag_meals.validate_meals({"meals": meal_tags(3)})
        assert [d["title"] for d in documents] == ["Meal 1", "Meal 2", "Meal 3"]
        assert all(d["language"] == "en" for d in documents)
        assert "secret" not in documents[0]

    def test_validate_meals_requires_exact_count(self):
        with pytest.raises(ValueError, match="Expected 3 meals, got 2"):
            tag_meals.validate_meals({"meals": meal_tags(2)})
        with pytest.raises(ValueError, match="got None"):
            tag_meals.validate_meals({"dishes": []})

    def test_validate_meals_requires_titles(self):
        meals = meal_tags(3)
        meals[1]["title"] = ""
        with pytest.raises(ValueError, match="Meal 2 has no title"):
            tag_meals.validate_meals({"meals": meals})

    def test_validate_meals_coerces_and_rejects_types(self):
        meals = meal_tags(3)
        meals[0]["calories"] = "250"
        meals[0]["is_healthy_alternative"] = "true"
        documents = tag_meals.validate_meals({"meals": meals})
        assert documents[0]["calories"] == 250.0
        assert documents[0]["is_healthy_alternative"] is True

        meals[2]["calories"] = "lots"
        with pytest.raises(ValueError, match="Meal 3 is invalid"):
            tag_meals.validate_meals({"meals": meals})

    @pytest.mark.asyncio
    async def test_step_generates_meals_for_one_tag(self, driver):
        tags = InMemoryRecordStore({
            "t1": {"name": "high-protein"},
            "t2": {"name": "vegan"},
        })
        meals = InMemoryRecordStore()
        client = FakeChatClient({"meals": meal_tags(3)})
        job = tag_meals.build_job(tags, meals, client)

        summary = await driver.run_single_step(job)

        # Quota of one tag per step
        assert summary.processed == 1
        assert summary.has_more is True
        assert tags.snapshot("t1")["is_generated"] is True
        assert "is_generated" not in tags.snapshot("t2")
        assert len(meals) == 3

        page = await meals.get_page(None, 10)
        assert [r.get("title") for r in page] == ["Meal 1", "Meal 2", "Meal 3"]
        assert all(r.get("created_time") is not None for r in page)
        # New meals are picked up by the image job
        eligible = meal_images.make_is_eligible("recraft-v3")
        assert all(eligible(r) for r in page)

    @pytest.mark.asyncio
    async def test_bad_generation_marks_tag_and_inserts_nothing(self, driver):
        tags = InMemoryRecordStore({"t1": {"name": "keto"}})
        meals = InMemoryRecordStore()
        short = {"meals": meal_tags(1)}
        job = tag_meals.build_job(tags, meals, FakeChatClient(short, short, short))

        summary = await driver.run_single_step(job)

        assert summary.failed == 1
        doc = tags.snapshot("t1")
        assert doc["generation_failed"] is True
        assert "Expected 3 meals" in doc["generation_error"]
        assert "is_generated" not in doc
        assert len(meals) == 0
