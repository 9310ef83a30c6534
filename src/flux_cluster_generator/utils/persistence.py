"""kopf state storage that never copies Secret values into annotations."""

from __future__ import annotations

from typing import Any, Iterable

import kopf

SECRET_VALUE_FIELDS = ("data", "stringData")


class KeysOnlyDiffBaseStorage(kopf.AnnotationsDiffBaseStorage):
    """Diff-base storage keeping only the key names of a Secret's data.

    The last-handled essence is written to an annotation readable by anyone who
    can read the Secret's metadata, so values are replaced with their sorted key
    names. Adding or removing a key still shows up as a change.
    """

    def build(
        self,
        *,
        body: kopf.Body,
        extra_fields: Iterable[Any] | None = None,
    ) -> Any:
        essence = super().build(body=body, extra_fields=extra_fields)
        for field in SECRET_VALUE_FIELDS:
            if field in essence:
                essence[field] = sorted(essence[field] or {})
        return essence
