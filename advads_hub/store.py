"""Content store adapter.

Abilities never talk to a database directly; they go through the primitives
declared on ``ContentStore``: posts (ads and placements), post meta, a flat
option table and a taxonomy-term table for groups.

Backends:
- InMemoryContentStore: tests and local runs
- JsonFileContentStore: in-memory store persisted to one JSON file (CLI)
- RdsContentStore (advads_hub.rds_store): Aurora/RDS Data API
"""
from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Mapping, Protocol

from advads_hub.sanitize import sanitize_title

logger = logging.getLogger(__name__)

POST_STATUSES = ("publish", "draft", "pending", "private", "future", "trash")


class StoreError(Exception):
    """A storage primitive refused the operation.

    ``message`` is safe to hand back to the caller verbatim.
    """

    def __init__(self, message: str, *, code: str = "store_error") -> None:
        super().__init__(message)
        self.message = message
        self.code = code


@dataclass
class Post:
    id: int
    post_type: str
    title: str = ""
    content: str = ""
    status: str = "publish"
    slug: str = ""


@dataclass
class Term:
    term_id: int
    taxonomy: str
    name: str
    slug: str
    count: int = 0


class ContentStore(Protocol):
    # --- posts ---
    def get_post(self, post_id: int) -> Post | None: ...

    def get_posts(self, *, post_type: str, status: str = "any", limit: int | None = 100) -> list[Post]: ...

    def count_posts(self, *, post_type: str, status: str = "publish") -> int: ...

    def get_post_by_slug(self, slug: str, *, post_type: str) -> Post | None: ...

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
        """Insert a post and, atomically with it, its initial meta."""
        ...

    def update_post(
        self,
        post_id: int,
        *,
        title: str | None = None,
        content: str | None = None,
        status: str | None = None,
        slug: str | None = None,
    ) -> None: ...

    def delete_post(self, post_id: int, *, force: bool = True) -> bool: ...

    # --- post meta ---
    def get_post_meta(self, post_id: int, key: str, default: Any = None) -> Any: ...

    def update_post_meta(self, post_id: int, key: str, value: Any) -> None: ...

    # --- options ---
    def get_option(self, name: str, default: Any = None) -> Any: ...

    def update_option(self, name: str, value: Any) -> None: ...

    def delete_option(self, name: str) -> bool: ...

    # --- taxonomy ---
    def get_terms(self, taxonomy: str) -> list[Term]: ...

    def get_term(self, term_id: int, taxonomy: str) -> Term | None: ...

    def insert_term(self, taxonomy: str, name: str, *, slug: str | None = None) -> Term: ...

    def update_term(self, term_id: int, taxonomy: str, *, name: str | None = None, slug: str | None = None) -> Term: ...

    def delete_term(self, term_id: int, taxonomy: str) -> bool: ...

    def set_object_terms(self, post_id: int, term_ids: list[int], taxonomy: str) -> None: ...

    def get_object_terms(self, post_id: int, taxonomy: str) -> list[int]: ...


class InMemoryContentStore:
    """Dict-backed store.

    Non-empty post slugs are unique per post type and term names/slugs are
    unique per taxonomy; violations raise StoreError under the store lock, so a
    check-then-insert race cannot produce duplicates.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._posts: dict[int, Post] = {}
        self._meta: dict[int, dict[str, Any]] = {}
        self._options: dict[str, Any] = {}
        self._terms: dict[int, Term] = {}
        # post_id -> term ids (taxonomy is on the Term)
        self._relationships: dict[int, set[int]] = {}
        self._next_post_id = 1
        self._next_term_id = 1

    def _commit(self) -> None:
        """Hook called after every write while the lock is held."""

    # --- posts ---

    def get_post(self, post_id: int) -> Post | None:
        with self._lock:
            post = self._posts.get(int(post_id))
            return copy.deepcopy(post) if post else None

    def get_posts(self, *, post_type: str, status: str = "any", limit: int | None = 100) -> list[Post]:
        with self._lock:
            matches = [
                p
                for p in self._posts.values()
                if p.post_type == post_type and (p.status == status if status != "any" else p.status != "trash")
            ]
            # Newest first.
            matches.sort(key=lambda p: p.id, reverse=True)
            if limit is not None and limit >= 0:
                matches = matches[:limit]
            return [copy.deepcopy(p) for p in matches]

    def count_posts(self, *, post_type: str, status: str = "publish") -> int:
        return len(self.get_posts(post_type=post_type, status=status, limit=None))

    def get_post_by_slug(self, slug: str, *, post_type: str) -> Post | None:
        with self._lock:
            for p in self._posts.values():
                if p.post_type == post_type and p.slug == slug and p.status != "trash":
                    return copy.deepcopy(p)
            return None

    def _check_slug(self, slug: str, post_type: str, *, exclude_id: int | None = None) -> None:
        if not slug:
            return
        for p in self._posts.values():
            if p.id != exclude_id and p.post_type == post_type and p.slug == slug and p.status != "trash":
                raise StoreError(f"Duplicate slug for {post_type}: {slug}", code="duplicate_slug")

    @staticmethod
    def _check_status(status: str) -> None:
        if status not in POST_STATUSES:
            raise StoreError(f"Invalid post status: {status}", code="invalid_status")

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
        self._check_status(status)
        with self._lock:
            self._check_slug(slug, post_type)
            post_id = self._next_post_id
            self._next_post_id += 1
            self._posts[post_id] = Post(
                id=post_id, post_type=post_type, title=title, content=content, status=status, slug=slug
            )
            if meta:
                self._meta[post_id] = copy.deepcopy(dict(meta))
            self._commit()
        logger.debug("Inserted %s post %d", post_type, post_id)
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
        if status is not None:
            self._check_status(status)
        with self._lock:
            post = self._posts.get(int(post_id))
            if post is None:
                raise StoreError("Invalid post ID.", code="invalid_post")
            if slug is not None:
                self._check_slug(slug, post.post_type, exclude_id=post.id)
                post.slug = slug
            if title is not None:
                post.title = title
            if content is not None:
                post.content = content
            if status is not None:
                post.status = status
            self._commit()

    def delete_post(self, post_id: int, *, force: bool = True) -> bool:
        with self._lock:
            post = self._posts.get(int(post_id))
            if post is None:
                return False
            if not force and post.status != "trash":
                self._meta.setdefault(post.id, {})["_trash_meta_status"] = post.status
                post.status = "trash"
            else:
                del self._posts[post.id]
                self._meta.pop(post.id, None)
                self._relationships.pop(post.id, None)
            self._commit()
        return True

    # --- post meta ---

    def get_post_meta(self, post_id: int, key: str, default: Any = None) -> Any:
        with self._lock:
            meta = self._meta.get(int(post_id), {})
            if key not in meta:
                return default
            return copy.deepcopy(meta[key])

    def update_post_meta(self, post_id: int, key: str, value: Any) -> None:
        with self._lock:
            if int(post_id) not in self._posts:
                raise StoreError("Invalid post ID.", code="invalid_post")
            self._meta.setdefault(int(post_id), {})[key] = copy.deepcopy(value)
            self._commit()

    # --- options ---

    def get_option(self, name: str, default: Any = None) -> Any:
        with self._lock:
            if name not in self._options:
                return default
            return copy.deepcopy(self._options[name])

    def update_option(self, name: str, value: Any) -> None:
        with self._lock:
            self._options[name] = copy.deepcopy(value)
            self._commit()

    def delete_option(self, name: str) -> bool:
        with self._lock:
            if name not in self._options:
                return False
            del self._options[name]
            self._commit()
            return True

    # --- taxonomy ---

    def _term_count(self, term_id: int) -> int:
        return sum(
            1
            for post_id, term_ids in self._relationships.items()
            if term_id in term_ids and self._posts.get(post_id) is not None and self._posts[post_id].status == "publish"
        )

    def _with_count(self, term: Term) -> Term:
        out = copy.deepcopy(term)
        out.count = self._term_count(term.term_id)
        return out

    def get_terms(self, taxonomy: str) -> list[Term]:
        with self._lock:
            terms = [t for t in self._terms.values() if t.taxonomy == taxonomy]
            terms.sort(key=lambda t: t.name.lower())
            return [self._with_count(t) for t in terms]

    def get_term(self, term_id: int, taxonomy: str) -> Term | None:
        with self._lock:
            term = self._terms.get(int(term_id))
            if term is None or term.taxonomy != taxonomy:
                return None
            return self._with_count(term)

    def _check_term(self, taxonomy: str, name: str, slug: str, *, exclude_id: int | None = None) -> None:
        for t in self._terms.values():
            if t.taxonomy != taxonomy or t.term_id == exclude_id:
                continue
            if t.name.lower() == name.lower():
                raise StoreError("A term with the name provided already exists in this taxonomy.", code="term_exists")
            if t.slug == slug:
                raise StoreError(f'The slug "{slug}" is already in use by another term.', code="duplicate_term_slug")

    def insert_term(self, taxonomy: str, name: str, *, slug: str | None = None) -> Term:
        name = (name or "").strip()
        if not name:
            raise StoreError("A name is required for this term.", code="empty_term_name")
        with self._lock:
            term_id = self._next_term_id
            term_slug = sanitize_title(slug or name) or str(term_id)
            self._check_term(taxonomy, name, term_slug)
            self._next_term_id += 1
            term = Term(term_id=term_id, taxonomy=taxonomy, name=name, slug=term_slug)
            self._terms[term_id] = term
            self._commit()
            return self._with_count(term)

    def update_term(self, term_id: int, taxonomy: str, *, name: str | None = None, slug: str | None = None) -> Term:
        with self._lock:
            term = self._terms.get(int(term_id))
            if term is None or term.taxonomy != taxonomy:
                raise StoreError("Term does not exist.", code="invalid_term")
            new_name = term.name if name is None else name.strip()
            if not new_name:
                raise StoreError("A name is required for this term.", code="empty_term_name")
            new_slug = term.slug if slug is None else (sanitize_title(slug) or term.slug)
            self._check_term(taxonomy, new_name, new_slug, exclude_id=term.term_id)
            term.name = new_name
            term.slug = new_slug
            self._commit()
            return self._with_count(term)

    def delete_term(self, term_id: int, taxonomy: str) -> bool:
        with self._lock:
            term = self._terms.get(int(term_id))
            if term is None or term.taxonomy != taxonomy:
                return False
            del self._terms[term.term_id]
            for term_ids in self._relationships.values():
                term_ids.discard(term.term_id)
            self._commit()
            return True

    def set_object_terms(self, post_id: int, term_ids: list[int], taxonomy: str) -> None:
        with self._lock:
            if int(post_id) not in self._posts:
                raise StoreError("Invalid post ID.", code="invalid_post")
            wanted = {int(t) for t in term_ids}
            for t in wanted:
                term = self._terms.get(t)
                if term is None or term.taxonomy != taxonomy:
                    raise StoreError(f"Invalid term ID: {t}", code="invalid_term")
            current = self._relationships.setdefault(int(post_id), set())
            # Only replace memberships within this taxonomy.
            current.difference_update({t for t in current if self._terms[t].taxonomy == taxonomy})
            current.update(wanted)
            self._commit()

    def get_object_terms(self, post_id: int, taxonomy: str) -> list[int]:
        with self._lock:
            term_ids = self._relationships.get(int(post_id), set())
            return sorted(t for t in term_ids if self._terms[t].taxonomy == taxonomy)


class JsonFileContentStore(InMemoryContentStore):
    """InMemoryContentStore persisted to a single JSON document after each write."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        super().__init__()
        self.path = Path(path)
        if self.path.exists():
            self._load()

    def _load(self) -> None:
        with open(self.path, encoding="utf-8") as f:
            state = json.load(f)
        self._posts = {int(p["id"]): Post(**p) for p in state.get("posts", [])}
        self._meta = {int(k): v for k, v in (state.get("meta") or {}).items()}
        self._options = dict(state.get("options") or {})
        self._terms = {int(t["term_id"]): Term(**t) for t in state.get("terms", [])}
        self._relationships = {int(k): {int(t) for t in v} for k, v in (state.get("relationships") or {}).items()}
        self._next_post_id = int(state.get("next_post_id") or (max(self._posts, default=0) + 1))
        self._next_term_id = int(state.get("next_term_id") or (max(self._terms, default=0) + 1))
        logger.debug("Loaded content store from %s (%d posts, %d terms)", self.path, len(self._posts), len(self._terms))

    def _commit(self) -> None:
        state = {
            "posts": [asdict(p) for p in self._posts.values()],
            "meta": {str(k): v for k, v in self._meta.items()},
            "options": self._options,
            "terms": [asdict(t) for t in self._terms.values()],
            "relationships": {str(k): sorted(v) for k, v in self._relationships.items()},
            "next_post_id": self._next_post_id,
            "next_term_id": self._next_term_id,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".advads-", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(state, f, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise


def build_store(cfg: Any) -> ContentStore:
    """Create the store backend named by ``cfg.store_backend``."""
    backend = getattr(cfg, "store_backend", "memory")
    if backend == "file":
        return JsonFileContentStore(cfg.store_path)
    if backend == "rds":
        from advads_hub.rds_data import RdsData, RdsDataEnv
        from advads_hub.rds_store import RdsContentStore

        db = RdsData(RdsDataEnv(resource_arn=cfg.db_resource_arn, secret_arn=cfg.db_secret_arn, database=cfg.db_name))
        return RdsContentStore(db)
    return InMemoryContentStore()
