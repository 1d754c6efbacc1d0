"""Backup bundle encoding.

A bundle is a zip archive named ``backup-YYYY-MM-DD.zip`` holding a
single JSON document of the same stem::

    {
      "metadata":   {"format_version", "generated_at", "source", "trigger"},
      "sql_dump":   {"table": "poses", "rows": [...]},
      "nosql_dump": {"collection": "images", "documents": [...]}
    }
"""

from __future__ import annotations

import io
import json
import zipfile
from datetime import datetime

from posemaster.models import (
    BUNDLE_FORMAT_VERSION,
    BackupManifest,
    ImageRecord,
    PoseRecord,
)
from posemaster.store.dual import StoreSnapshot

BUNDLE_PREFIX = "backups"
SQL_TABLE = "poses"
NOSQL_COLLECTION = "images"


def bundle_name_for(day: datetime) -> str:
    """One bundle per UTC calendar day; a later successful run replaces it."""
    return f"backup-{day.date().isoformat()}"


def bundle_key(name: str) -> str:
    return f"{BUNDLE_PREFIX}/{name}.zip"


def staging_key(name: str) -> str:
    """Hidden key a bundle is written to until its run succeeds."""
    return f"{BUNDLE_PREFIX}/.{name}.zip.partial"


def build_manifest(
    snapshot: StoreSnapshot,
    *,
    trigger: str,
    source: str,
) -> BackupManifest:
    return BackupManifest(
        bundle_name=bundle_name_for(snapshot.taken_at),
        snapshot_at=snapshot.taken_at,
        metadata={
            "format_version": BUNDLE_FORMAT_VERSION,
            "generated_at": snapshot.taken_at.isoformat(),
            "source": source,
            "trigger": trigger,
        },
        poses=list(snapshot.poses),
        images=list(snapshot.images),
    )


def encode_bundle(manifest: BackupManifest) -> bytes:
    document = {
        "metadata": manifest.metadata,
        "sql_dump": {
            "table": SQL_TABLE,
            "rows": [p.to_dict() for p in manifest.poses],
        },
        "nosql_dump": {
            "collection": NOSQL_COLLECTION,
            "documents": [i.to_dict() for i in manifest.images],
        },
    }
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(f"{manifest.bundle_name}.json", json.dumps(document, indent=2))
    return buf.getvalue()


def load_bundle(data: bytes) -> BackupManifest:
    """Parse an archive produced by :func:`encode_bundle`.

    Raises ValueError if the archive does not hold exactly one JSON
    document with the expected sections.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            members = [n for n in zf.namelist() if n.endswith(".json")]
            if len(members) != 1:
                raise ValueError(f"Expected one JSON document, found {len(members)}")
            name = members[0]
            document = json.loads(zf.read(name))
    except zipfile.BadZipFile as exc:
        raise ValueError("Not a backup archive") from exc

    try:
        metadata = document["metadata"]
        rows = document["sql_dump"]["rows"]
        documents = document["nosql_dump"]["documents"]
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Backup document is missing section {exc}") from exc

    return BackupManifest(
        bundle_name=name.removesuffix(".json"),
        snapshot_at=datetime.fromisoformat(metadata["generated_at"]),
        metadata=metadata,
        poses=[PoseRecord.from_dict(r) for r in rows],
        images=[ImageRecord.from_dict(d) for d in documents],
    )
