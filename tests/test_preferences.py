from client.preferences import (
    USER_KEY,
    JsonFilePreferenceStore,
    MemoryPreferenceStore,
    categories_key,
    clear_identity,
    load_custom_categories,
    load_identity,
    save_custom_categories,
    save_identity,
)
from models.category import PALETTE, Category
from models.user import Identity


def test_memory_store_returns_copies():
    store = MemoryPreferenceStore()
    store.set("k", {"items": [1, 2]})
    value = store.get("k")
    value["items"].append(3)
    assert store.get("k") == {"items": [1, 2]}
    assert store.get("missing", "default") == "default"


def test_json_file_store_survives_reload(tmp_path):
    path = tmp_path / "prefs.json"
    store = JsonFilePreferenceStore(path)
    save_identity(store, Identity(id="u1", email="a@b.c", name="Ana"))
    store.set("other", 5)

    reloaded = JsonFilePreferenceStore(path)
    assert load_identity(reloaded) == Identity(id="u1", email="a@b.c", name="Ana")
    assert reloaded.get("other") == 5

    clear_identity(reloaded)
    assert load_identity(JsonFilePreferenceStore(path)) is None


def test_json_file_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "prefs.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonFilePreferenceStore(path)
    assert store.get(USER_KEY) is None
    store.clear()
    assert path.read_text(encoding="utf-8") == "{}"


def test_malformed_identity_is_discarded():
    store = MemoryPreferenceStore({USER_KEY: {"id": "u1"}})
    assert load_identity(store) is None
    assert store.get(USER_KEY) is None


def test_custom_categories_round_trip_and_skip_bad_entries():
    store = MemoryPreferenceStore()
    categories = [Category(id="k1", name="Gifts", color=PALETTE[2], icon="gift")]
    save_custom_categories(store, "u1", categories)
    assert load_custom_categories(store, "u1") == categories

    store.set(categories_key("u2"), [{"name": "no id"}, {"id": "k", "name": "Ok", "color": PALETTE[0]}])
    assert [c.name for c in load_custom_categories(store, "u2")] == ["Ok"]


def test_custom_categories_ignore_a_stored_value_that_is_not_a_list():
    store = MemoryPreferenceStore()
    store.set(categories_key("u1"), 7)
    assert load_custom_categories(store, "u1") == []
    store.set(categories_key("u1"), {"id": "k1", "name": "Gifts", "color": PALETTE[2]})
    assert load_custom_categories(store, "u1") == []


def test_no_identity_means_no_custom_categories():
    store = MemoryPreferenceStore()
    save_custom_categories(store, "u1", [Category(id="k1", name="Gifts", color=PALETTE[2])])
    assert load_custom_categories(store, None) == []
