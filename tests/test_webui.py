from copy import deepcopy

from ogbridge.errors import CommandError, NetworkError
from ogbridge.meal_plan import IngredientSuggester
from ogbridge.types import match_list_by_name
from ogbridge.webui import create_app


class FakeClient:
    """Stands in for OurGroceriesClient behind the routes."""

    def __init__(self, lists, items):
        self.lists = lists
        self.items = items
        self.added = []
        self.removed = []
        self.toggled = []
        self.cleared = []
        self.error = None

    def _check(self):
        if self.error is not None:
            raise self.error

    def get_lists(self):
        self._check()
        return deepcopy(self.lists)

    def find_list_by_name(self, name):
        self._check()
        return match_list_by_name(self.lists, name)

    def get_list_items(self, list_id):
        self._check()
        return deepcopy(self.items.get(list_id, []))

    def add_item_to_list(self, list_id, value, category_id=None, auto_category=False, note=None):
        self._check()
        self.added.append({"list_id": list_id, "value": value, "auto_category": auto_category, "note": note})
        return {}

    def add_items_to_list(self, list_id, items, auto_category=True):
        names = []
        for item in items:
            name = item if isinstance(item, str) else item.get("name")
            if not name:
                raise ValueError("Item has no name")
            note = None if isinstance(item, str) else item.get("note")
            self.add_item_to_list(list_id, name, auto_category=auto_category, note=note)
            names.append(name)
        return names

    def remove_item_from_list(self, list_id, item_id):
        self._check()
        self.removed.append((list_id, item_id))
        return {}

    def toggle_item_crossed_off(self, list_id, item_id, crossed_off):
        self._check()
        self.toggled.append((list_id, item_id, crossed_off))
        return {}

    def delete_all_crossed_off(self, list_id):
        self._check()
        self.cleared.append(list_id)
        return {}


class FakeSuggester(IngredientSuggester):
    def __init__(self):
        self.model = "fake"
        self.asked = []

    def suggest(self, meal_names):
        self.asked.append(list(meal_names))
        return [{"name": name, "ingredients": [{"name": "Tortillas", "note": "8 pack"}]} for name in meal_names]


def sample_data():
    lists = [
        {"id": "l1", "name": "Weekly Shop"},
        {"id": "l2", "name": "Shopping List"},
        {"id": "mp", "name": "Meal Planner"},
    ]
    items = {
        "l2": [{"id": "i1", "value": "milk", "crossedOff": False}],
        "mp": [
            {"id": "m1", "value": "Tacos", "crossedOff": False},
            {"id": "m2", "value": "Leftovers", "crossedOff": False, "note": "from Sunday"},
        ],
    }
    return lists, items


def build_client(api_key="", suggester=None):
    lists, items = sample_data()
    fake = FakeClient(lists, items)
    app = create_app(fake, api_key=api_key, suggester=suggester)
    return app.test_client(), fake


def test_health_endpoint():
    client, _ = build_client()
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_api_key_required_when_configured():
    client, _ = build_client(api_key="sekrit")

    assert client.get("/lists").status_code == 401
    assert client.get("/lists", headers={"X-API-Key": "wrong"}).status_code == 401
    assert client.get("/lists").get_json() == {"error": "Invalid or missing API key"}

    assert client.get("/lists", headers={"X-API-Key": "sekrit"}).status_code == 200
    assert client.get("/lists?key=sekrit").status_code == 200
    assert client.get("/lists?apiKey=sekrit").status_code == 200


def test_preflight_bypasses_api_key_and_gets_cors_headers():
    client, _ = build_client(api_key="sekrit")
    response = client.options("/lists", headers={"Origin": "https://claude.ai"})

    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "https://claude.ai"
    assert "DELETE" in response.headers["Access-Control-Allow-Methods"]
    assert "X-API-Key" in response.headers["Access-Control-Allow-Headers"]


def test_get_lists_and_items():
    client, _ = build_client()

    lists = client.get("/lists").get_json()["lists"]
    assert [l["name"] for l in lists] == ["Weekly Shop", "Shopping List", "Meal Planner"]

    items = client.get("/lists/l2/items").get_json()["items"]
    assert items == [{"id": "i1", "value": "milk", "crossedOff": False}]


def test_add_items_to_list_by_id():
    client, fake = build_client()
    response = client.post("/lists/l2/items", json={"items": ["eggs", {"name": "flour", "note": "1kg"}]})

    assert response.status_code == 200
    assert response.get_json() == {"added": 2, "items": ["eggs", "flour"]}
    assert fake.added[1] == {"list_id": "l2", "value": "flour", "auto_category": True, "note": "1kg"}


def test_add_items_rejects_bad_body():
    client, fake = build_client()

    assert client.post("/lists/l2/items", json={}).status_code == 400
    assert client.post("/lists/l2/items", json={"items": "eggs"}).status_code == 400
    assert client.post("/lists/l2/items", json={"items": [{"note": "x"}]}).status_code == 400
    assert client.post("/lists/l2/items", json=["milk"]).status_code == 400
    assert client.post("/lists/add-by-name", json=["milk"]).status_code == 400
    assert fake.added == []


def test_add_by_name_uses_exact_match():
    client, fake = build_client()
    response = client.post("/lists/add-by-name", json={
        "listName": "shopping list",
        "items": ["bread"],
        "autoCategory": False,
    })

    assert response.status_code == 200
    assert response.get_json() == {
        "list": {"id": "l2", "name": "Shopping List"},
        "added": 1,
        "items": ["bread"],
    }
    assert fake.added[0]["auto_category"] is False


def test_add_by_name_unknown_list_lists_alternatives():
    client, fake = build_client()
    response = client.post("/lists/add-by-name", json={"listName": "Hardware", "items": ["nails"]})

    assert response.status_code == 404
    payload = response.get_json()
    assert payload["error"] == 'List "Hardware" not found'
    assert payload["availableLists"] == ["Weekly Shop", "Shopping List", "Meal Planner"]
    assert fake.added == []


def test_remove_toggle_and_clear():
    client, fake = build_client()

    assert client.delete("/lists/l2/items/i1").get_json() == {"removed": True}
    assert client.post("/lists/l2/items/i1/toggle", json={"crossedOff": True}).get_json() == {"toggled": True}
    assert client.post("/lists/l2/crossed-off/delete").get_json() == {"deleted": True}

    assert fake.removed == [("l2", "i1")]
    assert fake.toggled == [("l2", "i1", True)]
    assert fake.cleared == ["l2"]


def test_toggle_requires_boolean():
    client, fake = build_client()
    assert client.post("/lists/l2/items/i1/toggle", json={"crossedOff": "yes"}).status_code == 400
    assert client.post("/lists/l2/items/i1/toggle", json=[True]).status_code == 400
    assert fake.toggled == []


def test_upstream_errors_map_to_502():
    client, fake = build_client()

    fake.error = CommandError("getOverview", 500)
    response = client.get("/lists")
    assert response.status_code == 502
    assert "getOverview" in response.get_json()["error"]

    fake.error = NetworkError("timed out")
    assert client.get("/lists/l2/items").status_code == 502


def test_add_link_adds_items_with_notes():
    client, fake = build_client()
    response = client.get("/add?list=Shopping+List&items=milk,+eggs,&notes=2L|free+range")

    assert response.status_code == 200
    html = response.get_data(as_text=True)
    assert "Added 2 items to Shopping List" in html
    assert "(free range)" in html
    assert [(a["value"], a["note"]) for a in fake.added] == [("milk", "2L"), ("eggs", "free range")]
    assert all(a["auto_category"] for a in fake.added)


def test_add_link_escapes_item_names():
    client, _ = build_client()
    html = client.get("/add?list=Shopping+List&items=<script>").get_data(as_text=True)
    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_add_link_errors():
    client, fake = build_client()

    missing = client.get("/add?list=Shopping+List")
    assert missing.status_code == 400
    assert "Missing list or items" in missing.get_data(as_text=True)

    unknown = client.get("/add?list=Hardware&items=nails")
    assert unknown.status_code == 404
    assert "Available: Weekly Shop, Shopping List, Meal Planner" in unknown.get_data(as_text=True)
    assert fake.added == []


def test_meal_plan_ingredients_requires_anthropic_key():
    client, _ = build_client()
    response = client.post("/meal-plan/ingredients", json={})
    assert response.status_code == 500
    assert response.get_json()["error"] == "ANTHROPIC_API_KEY not configured"


def test_meal_plan_ingredients():
    suggester = FakeSuggester()
    client, _ = build_client(suggester=suggester)

    response = client.post("/meal-plan/ingredients", json={})

    assert response.status_code == 200
    meals = response.get_json()["meals"]
    assert meals[0] == {"name": "Leftovers", "note": "from Sunday", "ingredients": []}
    assert meals[1]["name"] == "Tacos"
    assert suggester.asked == [["Tacos"]]


def test_meal_plan_ingredients_without_meal_planner_list():
    client, fake = build_client(suggester=FakeSuggester())
    fake.lists = [l for l in fake.lists if l["name"] != "Meal Planner"]

    response = client.post("/meal-plan/ingredients", json={})
    assert response.status_code == 404


def test_meal_plan_page_embeds_key():
    client, _ = build_client(api_key="sekrit")
    response = client.get("/meal-plan?key=sekrit")

    assert response.status_code == 200
    html = response.get_data(as_text=True)
    assert 'const API_KEY = "sekrit";' in html
    assert 'const SHOPPING_LIST = "Shopping List";' in html
