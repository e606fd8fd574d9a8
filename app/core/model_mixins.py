"""
Reusable abstract mixins combined with core.models.BaseModel.

Available Mixins:
    UUIDPrimaryKeyMixin: UUID primary key
    VersionedMixin: monotonically increasing ``version`` bumped on every update

Usage:
    class Transaction(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
        ...
"""

from __future__ import annotations

import uuid

from django.db import models
from django.db.models import F


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use a UUID primary key instead of an auto-increment integer.

    Identifiers appear in notification links and API URLs, so they must
    not reveal record counts or be guessable.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class VersionedMixin(models.Model):
    """
    Optimistic-locking counter.

    Every update increments ``version`` in the database with an F()
    expression, so two writers that loaded the same row can be told
    apart by ``payments.locks.lock_for_transition(expected_version=...)``.

    Note:
        Only ``version`` is refreshed after save. Models with a protected
        FSMField must be re-fetched with ``objects.get(pk=...)`` rather
        than a full ``refresh_from_db()``.
    """

    version = models.PositiveIntegerField(
        default=1,
        help_text="Incremented on every update for optimistic locking",
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None and "version" not in update_fields:
                kwargs["update_fields"] = [*update_fields, "version"]
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])
