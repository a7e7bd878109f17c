"""Tests for the in-memory and JSON-file content stores."""
from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from advads_hub.store import InMemoryContentStore, JsonFileContentStore, StoreError, build_store


class TestInMemoryPosts:
    def test_insert_and_get(self):
        store = InMemoryContentStore()

        post_id = store.insert_post(post_type="advanced_ads", title="T", content="C", status="draft")

        post = store.get_post(post_id)
        assert post.title == "T"
        assert post.status == "draft"

    def test_returned_records_are_copies(self):
        store = InMemoryContentStore()
        post_id = store.insert_post(post_type="advanced_ads", title="T")

        store.get_post(post_id).title = "mutated"

        assert store.get_post(post_id).title == "T"

    def test_get_posts_newest_first_and_limited(self):
        store = InMemoryContentStore()
        ids = [store.insert_post(post_type="advanced_ads", title=str(i)) for i in range(5)]

        posts = store.get_posts(post_type="advanced_ads", limit=3)

        assert [p.id for p in posts] == list(reversed(ids))[:3]

    def test_invalid_status(self):
        with pytest.raises(StoreError) as exc:
            InMemoryContentStore().insert_post(post_type="advanced_ads", status="any")
        assert exc.value.code == "invalid_status"

    def test_slug_unique_per_post_type(self):
        store = InMemoryContentStore()
        store.insert_post(post_type="advanced_ads_plcmnt", slug="top")
        store.insert_post(post_type="other", slug="top")

        with pytest.raises(StoreError) as exc:
            store.insert_post(post_type="advanced_ads_plcmnt", slug="top")
        assert exc.value.code == "duplicate_slug"

    def test_insert_with_meta(self):
        store = InMemoryContentStore()
        meta = {"type": "header", "options": {"priority": 10}}

        post_id = store.insert_post(post_type="advanced_ads_plcmnt", slug="top", meta=meta)
        meta["options"]["priority"] = 0

        assert store.get_post_meta(post_id, "type") == "header"
        assert store.get_post_meta(post_id, "options") == {"priority": 10}

    def test_duplicate_slug_writes_no_meta(self):
        store = InMemoryContentStore()
        first = store.insert_post(post_type="advanced_ads_plcmnt", slug="top")

        with pytest.raises(StoreError):
            store.insert_post(post_type="advanced_ads_plcmnt", slug="top", meta={"type": "header"})

        assert store.get_post_meta(first, "type") is None
        assert store.get_post_meta(first + 1, "type") is None

    def test_update_missing_post(self):
        with pytest.raises(StoreError):
            InMemoryContentStore().update_post(5, title="x")

    def test_soft_then_hard_delete(self):
        store = InMemoryContentStore()
        post_id = store.insert_post(post_type="advanced_ads", slug="a")

        assert store.delete_post(post_id, force=False) is True
        assert store.get_post(post_id).status == "trash"
        assert store.get_post_by_slug("a", post_type="advanced_ads") is None
        assert store.delete_post(post_id, force=False) is True
        assert store.get_post(post_id) is None
        assert store.delete_post(post_id) is False


class TestInMemoryOptionsAndTerms:
    def test_option_roundtrip_and_delete(self):
        store = InMemoryContentStore()

        assert store.get_option("x", {}) == {}
        store.update_option("x", {"a": 1})
        assert store.get_option("x") == {"a": 1}
        assert store.delete_option("x") is True
        assert store.delete_option("x") is False

    def test_term_uniqueness(self):
        store = InMemoryContentStore()
        store.insert_term("advanced_ads_groups", "Sidebar")

        with pytest.raises(StoreError) as exc:
            store.insert_term("advanced_ads_groups", "sidebar")
        assert exc.value.code == "term_exists"

        with pytest.raises(StoreError) as exc:
            store.insert_term("advanced_ads_groups", "Other", slug="sidebar")
        assert exc.value.code == "duplicate_term_slug"

    def test_term_count_tracks_published_posts(self):
        store = InMemoryContentStore()
        term = store.insert_term("advanced_ads_groups", "G")
        live = store.insert_post(post_type="advanced_ads")
        draft = store.insert_post(post_type="advanced_ads", status="draft")

        store.set_object_terms(live, [term.term_id], "advanced_ads_groups")
        store.set_object_terms(draft, [term.term_id], "advanced_ads_groups")

        assert store.get_term(term.term_id, "advanced_ads_groups").count == 1
        assert store.get_object_terms(live, "advanced_ads_groups") == [term.term_id]

        store.delete_term(term.term_id, "advanced_ads_groups")
        assert store.get_object_terms(live, "advanced_ads_groups") == []

    def test_term_in_other_taxonomy_not_visible(self):
        store = InMemoryContentStore()
        term = store.insert_term("category", "News")

        assert store.get_term(term.term_id, "advanced_ads_groups") is None
        assert store.delete_term(term.term_id, "advanced_ads_groups") is False


class TestJsonFileContentStore:
    def test_state_survives_reload(self, tmp_path):
        path = tmp_path / "store.json"
        store = JsonFileContentStore(path)
        post_id = store.insert_post(post_type="advanced_ads", title="Persisted")
        store.update_post_meta(post_id, "advanced_ads_ad_options", {"type": "plain"})
        term = store.insert_term("advanced_ads_groups", "G")
        store.set_object_terms(post_id, [term.term_id], "advanced_ads_groups")
        store.update_option("advads-ad-groups", {str(term.term_id): {"a": 1}})

        reloaded = JsonFileContentStore(path)

        assert reloaded.get_post(post_id).title == "Persisted"
        assert reloaded.get_post_meta(post_id, "advanced_ads_ad_options") == {"type": "plain"}
        assert reloaded.get_term(term.term_id, "advanced_ads_groups").count == 1
        assert reloaded.get_option("advads-ad-groups") == {str(term.term_id): {"a": 1}}
        # Ids keep increasing after reload.
        assert reloaded.insert_post(post_type="advanced_ads") == post_id + 1

    def test_file_is_json(self, tmp_path):
        path = tmp_path / "nested" / "store.json"
        JsonFileContentStore(path).update_option("advanced-ads", {"a": 1})

        assert json.loads(path.read_text())["options"] == {"advanced-ads": {"a": 1}}


class TestBuildStore:
    def test_memory_default(self):
        assert isinstance(build_store(SimpleNamespace(store_backend="memory")), InMemoryContentStore)

    def test_file_backend(self, tmp_path):
        store = build_store(SimpleNamespace(store_backend="file", store_path=str(tmp_path / "s.json")))

        assert isinstance(store, JsonFileContentStore)
