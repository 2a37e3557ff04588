from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from lxml import etree

from .errors import MalformedTemplate
from .xml import NS_MAIN, XML_SPACE, parse_xml, qn, serialize_xml, xml_safe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SharedString:
    """One <si> entry: its display text, and whether it came from the template."""

    text: str
    from_template: bool = True


def si_text(si: etree._Element) -> str:
    """Concatenate every <t> of an <si> (plain or rich text), skipping phonetic runs."""
    parts: List[str] = []
    for t in si.iter(qn("t")):
        parent = t.getparent()
        if parent is not None and parent.tag == qn("rPh"):
            continue
        parts.append(t.text or "")
    return "".join(parts)


def parse_shared_strings(xml_bytes: Optional[bytes]) -> Tuple[SharedString, ...]:
    if not xml_bytes:
        return ()
    root = parse_xml(xml_bytes, what="shared strings")
    return tuple(SharedString(si_text(si)) for si in root.findall(qn("si")))


class SharedStringTable:
    """
    Deduplicated string pool for one generation run.

    Entries that came with the template keep their index and their <si>
    markup (rich text runs, phonetics) untouched; new strings are plain
    <si><t> entries appended after them.
    """

    def __init__(
        self,
        entries: Iterable[SharedString] = (),
        *,
        source_xml: Optional[bytes] = None,
    ) -> None:
        self._source_xml = source_xml
        self._entries: List[SharedString] = list(entries)
        self._original_count = len(self._entries)
        self._index: Dict[str, int] = {}
        for i, e in enumerate(self._entries):
            # first occurrence wins for duplicated template strings
            self._index.setdefault(e.text, i)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> str:
        return self._entries[index].text

    @property
    def original_count(self) -> int:
        return self._original_count

    @property
    def added(self) -> List[str]:
        return [e.text for e in self._entries[self._original_count:]]

    @property
    def changed(self) -> bool:
        return len(self._entries) != self._original_count

    def text_at(self, index: int) -> str:
        if 0 <= index < len(self._entries):
            return self._entries[index].text
        return ""

    def lookup(self, text: str) -> Optional[int]:
        return self._index.get(text)

    def get_or_add(self, text: str) -> int:
        idx = self._index.get(text)
        if idx is not None:
            return idx
        idx = len(self._entries)
        self._entries.append(SharedString(text, from_template=False))
        self._index[text] = idx
        return idx

    def to_xml(self) -> bytes:
        """
        Serialize: template <si> nodes as they were, then the new ones.
        count / uniqueCount are both set to the entry count.
        """
        if self._source_xml:
            root = parse_xml(self._source_xml, what="shared strings")
            existing = len(root.findall(qn("si")))
            if existing != self._original_count:
                raise MalformedTemplate(
                    f"shared strings changed under the table: {existing} != {self._original_count}"
                )
        else:
            root = etree.Element(qn("sst"), nsmap={None: NS_MAIN})

        for text in self.added:
            si = etree.SubElement(root, qn("si"))
            t = etree.SubElement(si, qn("t"))
            t.text = xml_safe(text)
            if text != text.strip():
                t.set(XML_SPACE, "preserve")

        total = str(len(self._entries))
        root.set("count", total)
        root.set("uniqueCount", total)
        logger.debug(
            "shared strings: %d from template, %d added",
            self._original_count,
            len(self._entries) - self._original_count,
        )
        return serialize_xml(root)
