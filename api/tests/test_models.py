"""Test that the declared schema builds on an empty database."""

from sqlalchemy import create_engine, inspect

from contentgraph import models  # noqa: F401  (registers the tables)
from contentgraph.db import Base


def test_create_all_on_fresh_engine():
    fresh = create_engine("sqlite+pysqlite:///:memory:")
    try:
        Base.metadata.create_all(bind=fresh)

        indexes = {ix["name"]: ix["column_names"] for ix in inspect(fresh).get_indexes("posts")}
    finally:
        fresh.dispose()

    assert indexes["ix_posts_deleted_at"] == ["is_deleted", "deleted_at"]
    assert indexes["ix_posts_is_deleted"] == ["is_deleted"]
