"""Tests for the RDS Data API wrapper and the SQL-backed content store."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from advads_hub.rds_data import RdsData, RdsDataEnv
from advads_hub.rds_store import RdsContentStore
from advads_hub.store import StoreError


def _client_error(message: str) -> ClientError:
    return ClientError({"Error": {"Code": "BadRequestException", "Message": message}}, "ExecuteStatement")


def _rds(client: MagicMock) -> RdsData:
    return RdsData(RdsDataEnv(resource_arn="arn:cluster", secret_arn="arn:secret", database="ads"), client=client)


class TestRdsData:
    def test_build_parameters(self):
        params = RdsData.build_parameters({"n": None, "b": True, "i": 3, "f": 1.5, "j": {"a": 1}, "s": "x"})

        assert params == [
            {"name": "n", "value": {"isNull": True}},
            {"name": "b", "value": {"booleanValue": True}},
            {"name": "i", "value": {"longValue": 3}},
            {"name": "f", "value": {"doubleValue": 1.5}},
            {"name": "j", "value": {"stringValue": '{"a": 1}'}},
            {"name": "s", "value": {"stringValue": "x"}},
        ]

    def test_query_maps_columns(self):
        client = MagicMock()
        client.execute_statement.return_value = {
            "columnMetadata": [{"name": "id"}, {"name": "title"}],
            "records": [[{"longValue": 7}, {"stringValue": "Ad"}], [{"longValue": 8}, {"isNull": True}]],
        }

        rows = _rds(client).query("SELECT id, title FROM advads_posts")

        assert rows == [{"id": 7, "title": "Ad"}, {"id": 8, "title": None}]
        assert client.execute_statement.call_args.kwargs["database"] == "ads"

    def test_transaction_commits(self):
        client = MagicMock()
        client.begin_transaction.return_value = {"transactionId": "tx-1"}
        db = _rds(client)

        with db.transaction() as tx:
            db.execute("SELECT 1", transaction_id=tx)

        client.commit_transaction.assert_called_once()
        client.rollback_transaction.assert_not_called()
        assert client.execute_statement.call_args.kwargs["transactionId"] == "tx-1"

    def test_transaction_rolls_back_on_error(self):
        client = MagicMock()
        client.begin_transaction.return_value = {"transactionId": "tx-2"}

        with pytest.raises(ValueError):
            with _rds(client).transaction():
                raise ValueError("boom")

        client.rollback_transaction.assert_called_once()
        client.commit_transaction.assert_not_called()


class TestRdsContentStore:
    def test_get_post(self):
        db = MagicMock()
        db.query_one.return_value = {
            "id": 4,
            "post_type": "advanced_ads",
            "title": "T",
            "content": "C",
            "status": "draft",
            "slug": "",
        }

        post = RdsContentStore(db).get_post(4)

        assert post.id == 4
        assert post.status == "draft"
        assert db.query_one.call_args.args[1] == {"id": 4}

    def test_get_posts_any_excludes_trash(self):
        db = MagicMock()
        db.query.return_value = []

        RdsContentStore(db).get_posts(post_type="advanced_ads", status="any", limit=100)

        sql, params = db.query.call_args.args
        assert "status <> 'trash'" in sql
        assert params == {"post_type": "advanced_ads", "limit": 100}

    def test_duplicate_slug_maps_to_store_error(self):
        db = MagicMock()
        db.query_one.side_effect = _client_error(
            'ERROR: duplicate key value violates unique constraint "advads_posts_type_slug_uq"'
        )

        with pytest.raises(StoreError) as exc:
            RdsContentStore(db).insert_post(post_type="advanced_ads_plcmnt", title="P", slug="top")
        assert exc.value.code == "duplicate_slug"

    def test_insert_with_meta_is_one_transaction(self):
        db = MagicMock()
        db.transaction.return_value.__enter__.return_value = "tx-9"
        db.query_one.return_value = {"id": 12}

        post_id = RdsContentStore(db).insert_post(post_type="advanced_ads_plcmnt", slug="top", meta={"type": "header"})

        assert post_id == 12
        assert db.query_one.call_args.kwargs["transaction_id"] == "tx-9"
        sql, params = db.execute.call_args.args
        assert "INSERT INTO advads_postmeta" in sql
        assert params["post_id"] == 12
        assert db.execute.call_args.kwargs["transaction_id"] == "tx-9"

    def test_meta_failure_rolls_back_post(self):
        client = MagicMock()
        client.begin_transaction.return_value = {"transactionId": "tx-3"}
        client.execute_statement.side_effect = [
            {"columnMetadata": [{"name": "id"}], "records": [[{"longValue": 5}]]},
            _client_error("value too long"),
        ]

        with pytest.raises(StoreError) as exc:
            RdsContentStore(_rds(client)).insert_post(post_type="advanced_ads_plcmnt", slug="top", meta={"type": "x"})

        assert exc.value.code == "db_error"
        client.rollback_transaction.assert_called_once()
        client.commit_transaction.assert_not_called()

    def test_update_missing_post(self):
        db = MagicMock()
        db.query_one.return_value = None

        with pytest.raises(StoreError) as exc:
            RdsContentStore(db).update_post(9, title="x")
        assert exc.value.code == "invalid_post"

    def test_options_are_json(self):
        db = MagicMock()
        db.query_one.return_value = {"value": '{"adsense-id": "pub-1"}'}
        store = RdsContentStore(db)

        assert store.get_option("advanced-ads-adsense") == {"adsense-id": "pub-1"}

        db.query_one.return_value = None
        assert store.get_option("missing", {}) == {}

    def test_update_option_upserts_jsonb(self):
        db = MagicMock()

        RdsContentStore(db).update_option("advanced-ads", {"a": 1})

        sql, params = db.execute.call_args.args
        assert "ON CONFLICT (name)" in sql
        assert params == {"name": "advanced-ads", "value": '{"a": 1}'}

    def test_term_name_conflict(self):
        db = MagicMock()
        db.query_one.return_value = {"term_id": 3}
        db.execute.side_effect = _client_error('duplicate key value violates unique constraint "advads_terms_taxonomy_name_uq"')

        with pytest.raises(StoreError) as exc:
            RdsContentStore(db).insert_term("advanced_ads_groups", "Sidebar")
        assert exc.value.code == "term_exists"

    def test_get_terms_failure_raises_store_error(self):
        db = MagicMock()
        db.query.side_effect = _client_error("relation does not exist")

        with pytest.raises(StoreError):
            RdsContentStore(db).get_terms("advanced_ads_groups")
