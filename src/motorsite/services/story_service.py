# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Story aggregate: a story and the rows that hang off it."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from motorsite.core.errors import NotFoundError
from motorsite.infra.store import TableStore

logger = logging.getLogger(__name__)

STORIES = "stories"

# Dependent tables, in deletion order: (table, column referencing the story, extra filter)
DEPENDENTS = [
    ("files", "story_id", {}),
    ("comments", "story_id", {}),
    ("reads", "story_id", {}),
    ("polls", "entity_id", {"entity_name": "story"}),
    ("favorites", "story_id", {}),
    ("tags", "story_id", {}),
]


class StoryService:
    def __init__(self, store: TableStore):
        self.store = store

    def get(self, story_id: int) -> Optional[Dict[str, Any]]:
        return self.store.find_one(STORIES, id=story_id)

    def delete(self, story_id: int) -> Dict[str, int]:
        """Delete a story and its dependent rows in one transaction.

        Returns the number of rows removed per table. Raises NotFoundError if
        the story does not exist.
        """
        removed: Dict[str, int] = {}
        with self.store.transaction():
            story = self.store.find_one(STORIES, id=story_id)
            if story is None:
                raise NotFoundError(f"Story {story_id} not found")

            for table, column, extra in DEPENDENTS:
                rows = self.store.find_all(table, **{column: story_id, **extra})
                removed[table] = sum(self.store.delete(table, r["id"]) for r in rows)

            removed[STORIES] = self.store.delete(STORIES, story_id)

        logger.info("Story %s deleted (%s)", story_id, removed)
        return removed
