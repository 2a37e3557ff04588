from __future__ import annotations

import io
import logging
import zipfile
from typing import Dict, Iterable, List, Mapping, Optional

from .errors import ArchiveIOError, MalformedTemplate

logger = logging.getLogger(__name__)


class XlsxArchive:
    """
    Read-only view over an OOXML zip container.

    The bytes it was opened from are never modified; `clone_with` builds a
    new container where only the given parts differ.
    """

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        try:
            with zipfile.ZipFile(io.BytesIO(self._data)) as zf:
                self._infos: List[zipfile.ZipInfo] = zf.infolist()
                self._parts: Dict[str, bytes] = {i.filename: zf.read(i) for i in self._infos}
        except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as e:
            raise ArchiveIOError(f"not a readable XLSX container: {e}") from e
        except (OSError, RuntimeError, NotImplementedError) as e:
            # encrypted entries, unsupported compression, truncated streams
            raise ArchiveIOError(f"cannot read XLSX container: {e}") from e

    @property
    def data(self) -> bytes:
        return self._data

    @property
    def names(self) -> List[str]:
        return [i.filename for i in self._infos]

    def has(self, path: str) -> bool:
        return path in self._parts

    def read(self, path: str) -> bytes:
        try:
            return self._parts[path]
        except KeyError:
            raise MalformedTemplate(f"missing part: {path}") from None

    def read_optional(self, path: str) -> Optional[bytes]:
        return self._parts.get(path)

    def read_text(self, path: str) -> str:
        return self.read(path).decode("utf-8")

    def clone_with(
        self, replacements: Mapping[str, bytes], *, drop: Iterable[str] = ()
    ) -> bytes:
        """
        Write a new container: same entries in the same order, replaced
        parts swapped in place, parts that did not exist appended at the end,
        parts named in `drop` left out.
        """
        out = io.BytesIO()
        pending = dict(replacements)
        dropped = set(drop)
        try:
            with zipfile.ZipFile(out, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                for info in self._infos:
                    if info.filename in dropped:
                        continue
                    payload = pending.pop(info.filename, None)
                    if payload is None:
                        payload = self._parts[info.filename]
                    target = zipfile.ZipInfo(info.filename, date_time=info.date_time)
                    target.compress_type = zipfile.ZIP_DEFLATED
                    target.external_attr = info.external_attr
                    zf.writestr(target, payload)
                for name, payload in pending.items():
                    zf.writestr(name, payload, compress_type=zipfile.ZIP_DEFLATED)
        except (OSError, ValueError) as e:
            raise ArchiveIOError(f"cannot write XLSX container: {e}") from e

        if pending:
            logger.debug("archive: added parts %s", sorted(pending))
        if dropped:
            logger.debug("archive: dropped parts %s", sorted(dropped))
        return out.getvalue()
