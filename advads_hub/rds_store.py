"""ContentStore backed by PostgreSQL through the RDS Data API.

Schema: advads_hub/sql/001_init.sql. Uniqueness (placement slugs, term names and slugs) is
enforced by database indexes; violations surface as StoreError.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Mapping

from botocore.exceptions import ClientError

from advads_hub.rds_data import RdsData
from advads_hub.sanitize import sanitize_title
from advads_hub.store import POST_STATUSES, Post, StoreError, Term

logger = logging.getLogger(__name__)

_POST_COLUMNS = "id, post_type, title, content, status, slug"
_TERM_SELECT = """
    SELECT t.term_id, t.taxonomy, t.name, t.slug,
           (SELECT count(*) FROM advads_term_relationships r
              JOIN advads_posts p ON p.id = r.post_id
             WHERE r.term_id = t.term_id AND p.status = 'publish') AS count
    FROM advads_terms t
"""


def _store_error(e: ClientError) -> StoreError:
    msg = str(e)
    if "advads_posts_type_slug_uq" in msg:
        return StoreError("Duplicate slug for post type.", code="duplicate_slug")
    if "advads_terms_taxonomy_name_uq" in msg:
        return StoreError("A term with the name provided already exists in this taxonomy.", code="term_exists")
    if "advads_terms_taxonomy_slug_uq" in msg:
        return StoreError("The slug is already in use by another term.", code="duplicate_term_slug")
    logger.warning("RDS statement failed: %s", msg)
    return StoreError("Database error.", code="db_error")


def _row_to_post(row: dict[str, Any]) -> Post:
    return Post(
        id=int(row["id"]),
        post_type=row["post_type"],
        title=row.get("title") or "",
        content=row.get("content") or "",
        status=row.get("status") or "publish",
        slug=row.get("slug") or "",
    )


def _row_to_term(row: dict[str, Any]) -> Term:
    return Term(
        term_id=int(row["term_id"]),
        taxonomy=row["taxonomy"],
        name=row["name"],
        slug=row["slug"],
        count=int(row.get("count") or 0),
    )


def _loads(value: Any, default: Any) -> Any:
    if value is None:
        return default
    return json.loads(value) if isinstance(value, str) else value


class RdsContentStore:
    def __init__(self, db: RdsData) -> None:
        self.db = db

    # --- posts ---

    def get_post(self, post_id: int) -> Post | None:
        row = self.db.query_one(f"SELECT {_POST_COLUMNS} FROM advads_posts WHERE id = :id", {"id": int(post_id)})
        return _row_to_post(row) if row else None

    def get_posts(self, *, post_type: str, status: str = "any", limit: int | None = 100) -> list[Post]:
        sql = f"SELECT {_POST_COLUMNS} FROM advads_posts WHERE post_type = :post_type"
        params: dict[str, Any] = {"post_type": post_type}
        if status == "any":
            sql += " AND status <> 'trash'"
        else:
            sql += " AND status = :status"
            params["status"] = status
        sql += " ORDER BY id DESC"
        if limit is not None and limit >= 0:
            sql += " LIMIT :limit"
            params["limit"] = int(limit)
        return [_row_to_post(r) for r in self.db.query(sql, params)]

    def count_posts(self, *, post_type: str, status: str = "publish") -> int:
        row = self.db.query_one(
            "SELECT count(*) AS n FROM advads_posts WHERE post_type = :post_type AND status = :status",
            {"post_type": post_type, "status": status},
        )
        return int(row["n"]) if row else 0

    def get_post_by_slug(self, slug: str, *, post_type: str) -> Post | None:
        row = self.db.query_one(
            f"""
            SELECT {_POST_COLUMNS} FROM advads_posts
            WHERE post_type = :post_type AND slug = :slug AND status <> 'trash'
            LIMIT 1
            """,
            {"post_type": post_type, "slug": slug},
        )
        return _row_to_post(row) if row else None

    def insert_post(
        self,
        *,
        post_type: str,
        title: str = "",
        content: str = "",
        status: str = "publish",
        slug: str = "",
        meta: Mapping[str, Any] | None = None,
    ) -> int:
        if status not in POST_STATUSES:
            raise StoreError(f"Invalid post status: {status}", code="invalid_status")
        try:
            with self.db.transaction() as tx:
                row = self.db.query_one(
                    """
                    INSERT INTO advads_posts (post_type, title, content, status, slug)
                    VALUES (:post_type, :title, :content, :status, :slug)
                    RETURNING id
                    """,
                    {"post_type": post_type, "title": title, "content": content, "status": status, "slug": slug},
                    transaction_id=tx,
                )
                if not row:
                    raise StoreError("Insert returned no id.", code="db_error")
                post_id = int(row["id"])
                for key, value in (meta or {}).items():
                    self._upsert_meta(post_id, key, value, transaction_id=tx)
        except ClientError as e:
            raise _store_error(e) from e
        return post_id

    def update_post(
        self,
        post_id: int,
        *,
        title: str | None = None,
        content: str | None = None,
        status: str | None = None,
        slug: str | None = None,
    ) -> None:
        if status is not None and status not in POST_STATUSES:
            raise StoreError(f"Invalid post status: {status}", code="invalid_status")
        fields = {k: v for k, v in (("title", title), ("content", content), ("status", status), ("slug", slug)) if v is not None}
        sets = ", ".join(f"{k} = :{k}" for k in fields)
        sql = f"UPDATE advads_posts SET {sets + ', ' if sets else ''}updated_at = now() WHERE id = :id RETURNING id"
        try:
            row = self.db.query_one(sql, {**fields, "id": int(post_id)})
        except ClientError as e:
            raise _store_error(e) from e
        if not row:
            raise StoreError("Invalid post ID.", code="invalid_post")

    def delete_post(self, post_id: int, *, force: bool = True) -> bool:
        post = self.get_post(post_id)
        if post is None:
            return False
        try:
            if not force and post.status != "trash":
                with self.db.transaction() as tx:
                    self._upsert_meta(post.id, "_trash_meta_status", post.status, transaction_id=tx)
                    self.db.execute(
                        "UPDATE advads_posts SET status = 'trash', updated_at = now() WHERE id = :id",
                        {"id": post.id},
                        transaction_id=tx,
                    )
            else:
                # postmeta and term relationships cascade.
                self.db.execute("DELETE FROM advads_posts WHERE id = :id", {"id": post.id})
        except ClientError as e:
            logger.warning("delete_post %s failed: %s", post.id, e)
            return False
        return True

    # --- post meta ---

    def get_post_meta(self, post_id: int, key: str, default: Any = None) -> Any:
        row = self.db.query_one(
            "SELECT meta_value::text AS meta_value FROM advads_postmeta WHERE post_id = :post_id AND meta_key = :key",
            {"post_id": int(post_id), "key": key},
        )
        if row is None:
            return default
        return _loads(row.get("meta_value"), default)

    def _upsert_meta(self, post_id: int, key: str, value: Any, *, transaction_id: str | None = None) -> None:
        self.db.execute(
            """
            INSERT INTO advads_postmeta (post_id, meta_key, meta_value)
            VALUES (:post_id, :key, :value::jsonb)
            ON CONFLICT (post_id, meta_key) DO UPDATE SET meta_value = EXCLUDED.meta_value
            """,
            {"post_id": int(post_id), "key": key, "value": json.dumps(value)},
            transaction_id=transaction_id,
        )

    def update_post_meta(self, post_id: int, key: str, value: Any) -> None:
        try:
            self._upsert_meta(post_id, key, value)
        except ClientError as e:
            raise _store_error(e) from e

    # --- options ---

    def get_option(self, name: str, default: Any = None) -> Any:
        row = self.db.query_one("SELECT value::text AS value FROM advads_options WHERE name = :name", {"name": name})
        if row is None:
            return default
        return _loads(row.get("value"), default)

    def update_option(self, name: str, value: Any) -> None:
        try:
            self.db.execute(
                """
                INSERT INTO advads_options (name, value) VALUES (:name, :value::jsonb)
                ON CONFLICT (name) DO UPDATE SET value = EXCLUDED.value
                """,
                {"name": name, "value": json.dumps(value)},
            )
        except ClientError as e:
            raise _store_error(e) from e

    def delete_option(self, name: str) -> bool:
        rows = self.db.query("DELETE FROM advads_options WHERE name = :name RETURNING name", {"name": name})
        return bool(rows)

    # --- taxonomy ---

    def get_terms(self, taxonomy: str) -> list[Term]:
        try:
            rows = self.db.query(_TERM_SELECT + " WHERE t.taxonomy = :taxonomy ORDER BY lower(t.name)", {"taxonomy": taxonomy})
        except ClientError as e:
            raise _store_error(e) from e
        return [_row_to_term(r) for r in rows]

    def get_term(self, term_id: int, taxonomy: str) -> Term | None:
        row = self.db.query_one(
            _TERM_SELECT + " WHERE t.term_id = :term_id AND t.taxonomy = :taxonomy",
            {"term_id": int(term_id), "taxonomy": taxonomy},
        )
        return _row_to_term(row) if row else None

    def insert_term(self, taxonomy: str, name: str, *, slug: str | None = None) -> Term:
        name = (name or "").strip()
        if not name:
            raise StoreError("A name is required for this term.", code="empty_term_name")
        try:
            with self.db.transaction() as tx:
                seq = self.db.query_one(
                    "SELECT nextval(pg_get_serial_sequence('advads_terms', 'term_id')) AS term_id",
                    transaction_id=tx,
                )
                term_id = int(seq["term_id"]) if seq else 0
                self.db.execute(
                    """
                    INSERT INTO advads_terms (term_id, taxonomy, name, slug)
                    VALUES (:term_id, :taxonomy, :name, :slug)
                    """,
                    {
                        "term_id": term_id,
                        "taxonomy": taxonomy,
                        "name": name,
                        "slug": sanitize_title(slug or name) or str(term_id),
                    },
                    transaction_id=tx,
                )
        except ClientError as e:
            raise _store_error(e) from e
        term = self.get_term(term_id, taxonomy)
        if term is None:
            raise StoreError("Term could not be read back.", code="db_error")
        return term

    def update_term(self, term_id: int, taxonomy: str, *, name: str | None = None, slug: str | None = None) -> Term:
        current = self.get_term(term_id, taxonomy)
        if current is None:
            raise StoreError("Term does not exist.", code="invalid_term")
        new_name = current.name if name is None else name.strip()
        if not new_name:
            raise StoreError("A name is required for this term.", code="empty_term_name")
        new_slug = current.slug if slug is None else (sanitize_title(slug) or current.slug)
        try:
            self.db.execute(
                "UPDATE advads_terms SET name = :name, slug = :slug WHERE term_id = :term_id",
                {"name": new_name, "slug": new_slug, "term_id": current.term_id},
            )
        except ClientError as e:
            raise _store_error(e) from e
        return self.get_term(current.term_id, taxonomy) or current

    def delete_term(self, term_id: int, taxonomy: str) -> bool:
        try:
            rows = self.db.query(
                "DELETE FROM advads_terms WHERE term_id = :term_id AND taxonomy = :taxonomy RETURNING term_id",
                {"term_id": int(term_id), "taxonomy": taxonomy},
            )
        except ClientError as e:
            logger.warning("delete_term %s failed: %s", term_id, e)
            return False
        return bool(rows)

    def set_object_terms(self, post_id: int, term_ids: list[int], taxonomy: str) -> None:
        wanted = sorted({int(t) for t in term_ids})
        for t in wanted:
            if self.get_term(t, taxonomy) is None:
                raise StoreError(f"Invalid term ID: {t}", code="invalid_term")
        try:
            with self.db.transaction() as tx:
                self.db.execute(
                    """
                    DELETE FROM advads_term_relationships
                    WHERE post_id = :post_id
                      AND term_id IN (SELECT term_id FROM advads_terms WHERE taxonomy = :taxonomy)
                    """,
                    {"post_id": int(post_id), "taxonomy": taxonomy},
                    transaction_id=tx,
                )
                for t in wanted:
                    self.db.execute(
                        "INSERT INTO advads_term_relationships (post_id, term_id) VALUES (:post_id, :term_id)",
                        {"post_id": int(post_id), "term_id": t},
                        transaction_id=tx,
                    )
        except ClientError as e:
            raise _store_error(e) from e

    def get_object_terms(self, post_id: int, taxonomy: str) -> list[int]:
        rows = self.db.query(
            """
            SELECT r.term_id FROM advads_term_relationships r
            JOIN advads_terms t ON t.term_id = r.term_id
            WHERE r.post_id = :post_id AND t.taxonomy = :taxonomy
            ORDER BY r.term_id
            """,
            {"post_id": int(post_id), "taxonomy": taxonomy},
        )
        return [int(r["term_id"]) for r in rows]
