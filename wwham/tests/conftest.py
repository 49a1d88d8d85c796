import pytest

from wwham.chatbot_engine import ChatbotEngine
from wwham.rules_loader import DatasetStore, load_dataset
from wwham.schema import Dataset


@pytest.fixture(scope="session")
def dataset() -> Dataset:
    return load_dataset()


@pytest.fixture
def store(dataset) -> DatasetStore:
    return DatasetStore.from_dataset(dataset)


@pytest.fixture
def engine(store) -> ChatbotEngine:
    return ChatbotEngine(store)


@pytest.fixture
def tiny_dataset() -> Dataset:
    return Dataset(
        version="test",
        conditions=[
            {
                "id": "cond-a",
                "name": "Alpha ache",
                "aliases": ["alpha"],
                "symptom_keywords": ["alpha ache", "glorbal"],
                "red_flags": [
                    {"id": "scary", "text": "Scary symptom: see a doctor.", "patterns": ["\\bscary\\b"]},
                    {"id": "long", "text": "Too long: see a GP.", "slot_equals": {"duration": ["> 7 days"]}},
                ],
                "options": [
                    {
                        "class_id": "med-one",
                        "class_name": "Med One",
                        "members_examples": ["medone tablets"],
                        "age_limits": {"min_years": 12, "note": "Teens and adults only."},
                        "pregnancy": {"suitability": "avoid"},
                        "contraindications": ["kidney disease"],
                    },
                    {
                        "class_id": "med-two",
                        "class_name": "Med Two",
                        "members_examples": ["medtwo"],
                        "pregnancy": {"suitability": "caution"},
                        "breastfeeding": {"suitability": "caution", "note": "Ask first when breastfeeding."},
                    },
                    {
                        "class_id": "med-two-copy",
                        "class_name": "Med Two",
                        "members_examples": ["medtwo"],
                    },
                ],
                "default_self_care": ["Rest.", "Rest.", "Drink water."],
            },
            {
                "id": "cond-b",
                "name": "Beta burn",
                "aliases": ["beta"],
                "symptom_keywords": ["beta burn", "glorbat"],
                "options": [],
            },
        ],
        global_rules=[
            {
                "id": "medone-warfarin",
                "applies_to": ["medone"],
                "criteria": {"meds_any": ["warfarin"]},
                "reason": "Med One interacts with warfarin.",
            },
            {
                "id": "medtwo-young",
                "applies_to": ["med-two"],
                "criteria": {"age_lt_years": 5},
                "reason": "Med Two is not for under 5s.",
            },
        ],
    )
