"""
OurGroceries bridge: JSON API + browser pages.

Run with:
    python -m ogbridge --username <EMAIL> --password <PASSWORD>
or:
    ogbridge --api-key <KEY>   (credentials from OG_USERNAME / OG_PASSWORD)
"""

from __future__ import annotations

import hmac
import logging
from typing import Any, Optional

from flask import Flask, jsonify, render_template_string, request

from .api import OurGroceriesClient
from .errors import OurGroceriesError
from .meal_plan import (
    MEAL_PLAN_LIST,
    SHOPPING_LIST,
    IngredientSuggester,
    suggest_meal_plan_ingredients,
)

CORS_METHODS = "GET, POST, DELETE"
CORS_HEADERS = "Content-Type, X-API-Key"

ADD_RESULT_HTML = """
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>OurGroceries</title>
</head>
<body>
  <div style="font-family:system-ui;max-width:400px;margin:40px auto;text-align:center">
  {% if error %}
    <h2>&#10060; {{ error }}</h2>
    {% if available %}<p>Available: {{ available|join(", ") }}</p>{% endif %}
  {% else %}
    <h2>&#9989; Added {{ added|length }} item{{ "" if added|length == 1 else "s" }} to {{ list_name }}</h2>
    <ul style="text-align:left;list-style:none;padding:0">
      {% for name, note in added %}
      <li style="padding:6px 0;border-bottom:1px solid #eee">&#128722; {{ name }}
        {% if note %}<span style="color:#888">({{ note }})</span>{% endif %}</li>
      {% endfor %}
    </ul>
    <p style="margin-top:20px"><a href="javascript:window.close()">Close this tab</a></p>
  {% endif %}
  </div>
</body>
</html>
"""

MEAL_PLAN_HTML = """
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>Meal Planner &rarr; Shopping List</title>
  <style>
    :root {
      --tq: #2bb5b2;
      --tq-dark: #1a8f8c;
      --sand: #faf6f1;
      --ink: #2d3436;
      --ink-soft: #636e72;
      --ink-faint: #b2bec3;
      --amber: #f0c75e;
      --amber-bg: #fdf6e3;
      --green: #27ae60;
      --red: #e74c3c;
      --card: #ffffff;
      --radius: 16px;
    }

    * { box-sizing: border-box; margin: 0; padding: 0; }
    body {
      font-family: "DM Sans", -apple-system, BlinkMacSystemFont, sans-serif;
      background: var(--sand);
      color: var(--ink);
      min-height: 100vh;
    }

    .container { max-width: 540px; margin: 0 auto; padding: 0 16px 32px; }

    header {
      text-align: center;
      padding: 28px 0 24px;
      background: linear-gradient(135deg, var(--tq) 0%, var(--tq-dark) 100%);
      color: #fff;
      margin-bottom: 16px;
    }
    header p { font-size: 0.85rem; opacity: 0.75; margin-top: 4px; }

    .card {
      background: var(--card);
      border-radius: var(--radius);
      padding: 20px;
      margin-bottom: 14px;
      box-shadow: 0 2px 12px rgba(0,0,0,0.05);
    }
    .card h2 { font-size: 1.15rem; font-weight: 500; margin-bottom: 12px; }

    .meal-note {
      background: var(--amber-bg);
      border-left: 3px solid var(--amber);
      border-radius: 10px;
      padding: 12px 14px;
      font-size: 0.85rem;
      color: #8b7034;
    }

    .ingredient-list { list-style: none; }
    .ingredient-list li {
      padding: 10px 0;
      border-bottom: 1px solid rgba(0,0,0,0.05);
      display: flex;
      gap: 10px;
    }
    .ingredient-list li.unchecked { opacity: 0.45; }
    .ing-note { display: block; font-size: 0.78rem; color: var(--ink-soft); }

    .footer { position: sticky; bottom: 0; background: var(--sand); padding: 16px 0 8px; }
    .item-count { text-align: center; color: var(--ink-soft); margin-bottom: 10px; font-size: 0.82rem; }

    .btn {
      display: block; width: 100%; border: none; border-radius: var(--radius);
      font-size: 1.05rem; font-weight: 600; cursor: pointer; padding: 16px;
      background: var(--tq); color: #fff;
    }
    .btn:disabled { background: var(--ink-faint); cursor: not-allowed; }

    .status { text-align: center; color: var(--ink-soft); padding: 40px 0; }
    .status.err { color: var(--red); }
    .status.ok { color: var(--green); }
  </style>
</head>
<body>
  <header>
    <h1>Meal Planner</h1>
    <p>Review ingredients &amp; add to your shopping list</p>
  </header>
  <div class="container">
    <div id="app"><div class="status">Generating your ingredient list...</div></div>
  </div>

  <script>
    const API_KEY = {{ api_key|tojson }};
    const SHOPPING_LIST = {{ shopping_list|tojson }};

    function headers() {
      return { 'Content-Type': 'application/json', 'X-API-Key': API_KEY };
    }

    function esc(v) {
      return String(v ?? '').replace(/[&<>\"]/g, (s) => ({'&':'&amp;','<':'&lt;','>':'&gt;','"':'&quot;'}[s]));
    }

    function setStatus(text, cls='') {
      document.getElementById('app').innerHTML = `<div class="status ${cls}">${esc(text)}</div>`;
    }

    async function postJson(path, body) {
      const res = await fetch(path, { method: 'POST', headers: headers(), body: JSON.stringify(body) });
      const data = await res.json().catch(() => ({ error: res.statusText }));
      if (!res.ok) throw new Error(data.error || `HTTP ${res.status}`);
      return data;
    }

    function updateCount() {
      const n = document.querySelectorAll('input[type="checkbox"]:checked').length;
      const el = document.getElementById('item-count');
      if (el) el.textContent = `${n} item${n === 1 ? '' : 's'} selected`;
    }

    function render(meals) {
      if (!meals || !meals.length) {
        setStatus('No meals found in your Meal Planner list.');
        return;
      }

      let cb = 0;
      const cards = meals.map((meal) => {
        if (meal.note) {
          return `<div class="card"><h2>${esc(meal.name)}</h2>
            <div class="meal-note">${esc(meal.note)}: no ingredients needed</div></div>`;
        }
        const rows = (meal.ingredients || []).map((ing) => {
          const id = `cb-${cb++}`;
          return `<li><input type="checkbox" id="${id}" checked
              data-ingredient="${esc(ing.name)}" data-note="${esc(ing.note || '')}">
            <label for="${id}">${esc(ing.name)}${ing.note ? `<span class="ing-note">${esc(ing.note)}</span>` : ''}</label></li>`;
        }).join('');
        return `<div class="card"><h2>${esc(meal.name)}</h2><ul class="ingredient-list">${rows}</ul></div>`;
      }).join('');

      document.getElementById('app').innerHTML = cards +
        '<div class="footer"><div class="item-count" id="item-count"></div>' +
        '<button class="btn" id="add-btn" onclick="addToList()">Add to Shopping List</button></div>';

      document.querySelectorAll('input[type="checkbox"]').forEach((box) => {
        box.addEventListener('change', () => {
          box.closest('li').classList.toggle('unchecked', !box.checked);
          updateCount();
        });
      });
      updateCount();
    }

    async function addToList() {
      const checked = document.querySelectorAll('input[type="checkbox"]:checked');
      if (!checked.length) { alert('No items selected!'); return; }

      const items = Array.from(checked).map((box) => {
        const item = { name: box.dataset.ingredient };
        if (box.dataset.note) item.note = box.dataset.note;
        return item;
      });

      const btn = document.getElementById('add-btn');
      btn.disabled = true;
      btn.textContent = 'Adding...';
      try {
        const data = await postJson('/lists/add-by-name', { listName: SHOPPING_LIST, items });
        setStatus(`Added ${data.added} item${data.added === 1 ? '' : 's'} to ${data.list.name}`, 'ok');
      } catch (err) {
        btn.disabled = false;
        btn.textContent = 'Add to Shopping List';
        alert(`Error: ${err.message}`);
      }
    }

    async function load() {
      try {
        const data = await postJson('/meal-plan/ingredients', {});
        render(data.meals);
      } catch (err) {
        setStatus(`Something went wrong: ${err.message}`, 'err');
      }
    }

    load();
  </script>
</body>
</html>
"""


def _provided_api_key() -> Optional[str]:
    return (
        request.headers.get("X-API-Key")
        or request.args.get("apiKey")
        or request.args.get("key")
    )


def _upstream_error(exc: OurGroceriesError):
    logging.error("OurGroceries request failed: %s", exc)
    return jsonify({"error": str(exc)}), 502


def _json_object_body() -> Optional[dict[str, Any]]:
    """Request body as a JSON object. Missing bodies read as {}, other JSON values as None."""
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        return None
    return body


def _items_from_body(body: dict[str, Any]) -> Optional[list[Any]]:
    items = body.get("items")
    if not isinstance(items, list) or not items:
        return None
    return items


def create_app(
    client: OurGroceriesClient,
    api_key: str = "",
    suggester: Optional[IngredientSuggester] = None,
) -> Flask:
    app = Flask(__name__)

    @app.before_request
    def check_api_key():
        if not api_key or request.method == "OPTIONS":
            return None
        provided = _provided_api_key() or ""
        if not hmac.compare_digest(provided.encode(), api_key.encode()):
            return jsonify({"error": "Invalid or missing API key"}), 401
        return None

    @app.after_request
    def add_cors_headers(resp):
        origin = request.headers.get("Origin")
        if origin:
            resp.headers["Access-Control-Allow-Origin"] = origin
            resp.headers["Access-Control-Allow-Methods"] = CORS_METHODS
            resp.headers["Access-Control-Allow-Headers"] = CORS_HEADERS
            resp.headers["Vary"] = "Origin"
        return resp

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.get("/lists")
    def get_lists():
        try:
            return jsonify({"lists": client.get_lists()})
        except OurGroceriesError as exc:
            return _upstream_error(exc)

    @app.get("/lists/<list_id>/items")
    def get_list_items(list_id: str):
        try:
            return jsonify({"items": client.get_list_items(list_id)})
        except OurGroceriesError as exc:
            return _upstream_error(exc)

    @app.post("/lists/<list_id>/items")
    def add_items(list_id: str):
        body = _json_object_body()
        if body is None:
            return jsonify({"error": "Body must be a JSON object"}), 400
        items = _items_from_body(body)
        if items is None:
            return jsonify({"error": "Body must contain a non-empty 'items' array"}), 400

        try:
            added = client.add_items_to_list(
                list_id,
                items,
                auto_category=bool(body.get("autoCategory", True)),
            )
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        except OurGroceriesError as exc:
            return _upstream_error(exc)

        return jsonify({"added": len(added), "items": added})

    @app.post("/lists/add-by-name")
    def add_items_by_list_name():
        body = _json_object_body()
        if body is None:
            return jsonify({"error": "Body must be a JSON object"}), 400
        list_name = body.get("listName")
        items = _items_from_body(body)
        if not list_name or items is None:
            return jsonify({"error": "Body must contain 'listName' and a non-empty 'items' array"}), 400

        try:
            found = client.find_list_by_name(list_name)
            if found is None:
                all_lists = client.get_lists()
                return jsonify({
                    "error": f'List "{list_name}" not found',
                    "availableLists": [l.get("name") for l in all_lists],
                }), 404

            added = client.add_items_to_list(
                found["id"],
                items,
                auto_category=bool(body.get("autoCategory", True)),
            )
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        except OurGroceriesError as exc:
            return _upstream_error(exc)

        return jsonify({
            "list": {"id": found["id"], "name": found.get("name")},
            "added": len(added),
            "items": added,
        })

    @app.delete("/lists/<list_id>/items/<item_id>")
    def remove_item(list_id: str, item_id: str):
        try:
            client.remove_item_from_list(list_id, item_id)
        except OurGroceriesError as exc:
            return _upstream_error(exc)
        return jsonify({"removed": True})

    @app.post("/lists/<list_id>/items/<item_id>/toggle")
    def toggle_item(list_id: str, item_id: str):
        body = _json_object_body()
        if body is None:
            return jsonify({"error": "Body must be a JSON object"}), 400
        if not isinstance(body.get("crossedOff"), bool):
            return jsonify({"error": "Body must contain a boolean 'crossedOff'"}), 400
        try:
            client.toggle_item_crossed_off(list_id, item_id, body["crossedOff"])
        except OurGroceriesError as exc:
            return _upstream_error(exc)
        return jsonify({"toggled": True})

    @app.post("/lists/<list_id>/crossed-off/delete")
    def delete_crossed_off(list_id: str):
        try:
            client.delete_all_crossed_off(list_id)
        except OurGroceriesError as exc:
            return _upstream_error(exc)
        return jsonify({"deleted": True})

    @app.get("/add")
    def add_via_link():
        # Browser-link entry point for sandboxed pages that cannot fetch():
        # /add?list=Shopping+List&items=milk,eggs&notes=|free+range&key=...
        list_name = request.args.get("list")
        raw_items = request.args.get("items")
        if not list_name or not raw_items:
            return render_template_string(
                ADD_RESULT_HTML, error="Missing list or items parameter"
            ), 400

        names = [i.strip() for i in raw_items.split(",") if i.strip()]
        raw_notes = request.args.get("notes")
        notes = raw_notes.split("|") if raw_notes else []

        try:
            found = client.find_list_by_name(list_name)
            if found is None:
                available = [l.get("name") for l in client.get_lists()]
                return render_template_string(
                    ADD_RESULT_HTML,
                    error=f"List not found: {list_name}",
                    available=available,
                ), 404

            added = []
            for i, name in enumerate(names):
                note = notes[i] if i < len(notes) and notes[i] else None
                client.add_item_to_list(found["id"], name, auto_category=True, note=note)
                added.append((name, note))
        except OurGroceriesError as exc:
            logging.error("OurGroceries request failed: %s", exc)
            return render_template_string(ADD_RESULT_HTML, error=f"Error: {exc}"), 502

        return render_template_string(
            ADD_RESULT_HTML,
            error=None,
            added=added,
            list_name=found.get("name"),
        )

    @app.post("/meal-plan/ingredients")
    def meal_plan_ingredients():
        if suggester is None:
            return jsonify({"error": "ANTHROPIC_API_KEY not configured"}), 500

        try:
            meals = suggest_meal_plan_ingredients(client, suggester)
        except OurGroceriesError as exc:
            return _upstream_error(exc)

        if meals is None:
            return jsonify({"error": f'"{MEAL_PLAN_LIST}" list not found in OurGroceries'}), 404
        return jsonify({"meals": meals})

    @app.get("/meal-plan")
    def meal_plan_page() -> str:
        return render_template_string(
            MEAL_PLAN_HTML,
            api_key=request.args.get("key", ""),
            shopping_list=SHOPPING_LIST,
        )

    return app
