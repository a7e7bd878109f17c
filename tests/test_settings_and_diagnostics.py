"""Tests for the settings and diagnose abilities."""
from __future__ import annotations

from advads_hub.abilities.ads import AD_POST_TYPE
from advads_hub.abilities.diagnostics import ISSUE_NO_PUBLISHED_ADS, ISSUE_NO_PUBLISHER_ID
from advads_hub.abilities.placements import PLACEMENT_POST_TYPE
from advads_hub.abilities.registry import AbilityContext
from advads_hub.auth import admin_caller


class TestSettings:
    def test_empty_store_returns_three_empty_documents(self, run):
        assert run("advads/get-settings") == {
            "success": True,
            "settings": {"general": {}, "adsense": {}, "privacy": {}},
        }

    def test_update_merges_shallowly(self, run, store):
        store.update_option("advanced-ads", {"keep": 1, "nested": {"a": 1, "b": 2}, "over": "old"})

        result = run("advads/update-settings", {"general": {"over": "new", "nested": {"c": 3}, "added": True}})

        assert result == {"success": True, "updated": ["general"], "message": "Settings updated."}
        assert store.get_option("advanced-ads") == {
            "keep": 1,
            "nested": {"c": 3},
            "over": "new",
            "added": True,
        }

    def test_only_present_documents_touched(self, run, store):
        result = run("advads/update-settings", {"adsense": {"adsense-id": "pub-1"}, "privacy": {"enabled": 1}})

        assert result["updated"] == ["adsense", "privacy"]
        assert store.get_option("advanced-ads") is None
        assert run("advads/get-settings")["settings"]["adsense"] == {"adsense-id": "pub-1"}

    def test_nothing_to_update(self, run):
        assert run("advads/update-settings")["updated"] == []

    def test_non_object_document_rejected(self, run):
        assert run("advads/update-settings", {"general": ["x"]})["code"] == "invalid_input"


class TestDiagnose:
    def test_unconfigured_store(self, run):
        result = run("advads/diagnose")

        assert result["healthy"] is False
        assert result["issues"] == [ISSUE_NO_PUBLISHER_ID, ISSUE_NO_PUBLISHED_ADS]
        assert result["info"] == {
            "adsense_id": "Not set",
            "auto_ads": "Disabled",
            "placement_count": 0,
            "published_ads": 0,
            "version": "2.0.3",
        }

    def test_healthy(self, run, store):
        store.update_option("advanced-ads-adsense", {"adsense-id": "pub-123", "page-level-enabled": True})
        store.insert_post(post_type=AD_POST_TYPE, title="A", content="x", status="publish")
        store.insert_post(post_type=AD_POST_TYPE, title="B", content="x", status="draft")
        store.insert_post(post_type=PLACEMENT_POST_TYPE, title="P", slug="p", status="publish")
        store.insert_post(post_type=PLACEMENT_POST_TYPE, title="Q", slug="q", status="draft")

        result = run("advads/diagnose")

        assert result["healthy"] is True
        assert result["issues"] == []
        assert result["info"]["adsense_id"] == "pub-123"
        assert result["info"]["auto_ads"] == "Enabled"
        assert result["info"]["published_ads"] == 1
        assert result["info"]["placement_count"] == 1

    def test_empty_publisher_id_is_an_issue(self, run, store):
        store.update_option("advanced-ads-adsense", {"adsense-id": ""})
        store.insert_post(post_type=AD_POST_TYPE, title="A", content="x")

        result = run("advads/diagnose")

        assert result["issues"] == [ISSUE_NO_PUBLISHER_ID]
        assert result["info"]["adsense_id"] == "Not set"

    def test_counts_all_published_ads_beyond_list_limit(self, run, store):
        for i in range(120):
            store.insert_post(post_type=AD_POST_TYPE, title=f"A{i}", content="x")

        assert run("advads/diagnose")["info"]["published_ads"] == 120

    def test_version_unknown_when_not_declared(self, run, store):
        ctx = AbilityContext(store=store, caller=admin_caller(), platform_version=None)

        assert run("advads/diagnose", context=ctx)["info"]["version"] == "unknown"
