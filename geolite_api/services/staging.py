"""
Unpacks distributor archives into a per-attempt staging directory
"""

import io
import logging
import os
import tarfile
import zlib
from typing import Optional

from ..errors import StagingError

logger = logging.getLogger("geolite.staging")

DB_SUFFIX = ".mmdb"


class ArchiveStager:
    """Extracts the single database file from a tar.gz archive.

    Only the database member is written out; other members (license, readme)
    are ignored, and member paths are flattened into the staging directory.
    """

    def __init__(self, filename: Optional[str] = None):
        # e.g. "GeoLite2-City.mmdb"; None accepts any single .mmdb member
        self.filename = filename

    def _select_member(self, archive: tarfile.TarFile) -> tarfile.TarInfo:
        candidates = [
            m for m in archive.getmembers()
            if m.isfile() and m.name.endswith(DB_SUFFIX)
        ]
        if self.filename:
            candidates = [m for m in candidates if os.path.basename(m.name) == self.filename]
        if not candidates:
            raise StagingError("archive does not contain a database file")
        if len(candidates) > 1:
            names = ", ".join(m.name for m in candidates)
            raise StagingError(f"archive contains more than one database file: {names}")
        return candidates[0]

    def stage(self, data: bytes, dest_dir: str) -> str:
        """Unpack `data` into `dest_dir` and return the path of the database file"""
        try:
            with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as archive:
                member = self._select_member(archive)
                src = archive.extractfile(member)
                if src is None:
                    raise StagingError(f"cannot read archive member {member.name}")
                out_path = os.path.join(dest_dir, os.path.basename(member.name))
                with src, open(out_path, "wb") as out:
                    while True:
                        chunk = src.read(1024 * 1024)
                        if not chunk:
                            break
                        out.write(chunk)
        except (tarfile.TarError, EOFError, zlib.error, OSError) as e:
            raise StagingError(f"cannot unpack archive: {e}") from e

        logger.info("Database file staged", extra={
            "component": "staging",
            "member": member.name,
            "path": out_path,
        })
        return out_path
