"""XML documentation comments shipped next to an assembly (``Foo.dll`` + ``Foo.xml``)."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class XmlDocumentation:
    """Maps documentation ids (``T:Ns.Type``, ``M:Ns.Type.Method(System.String)``) to comments."""

    def __init__(self, members: Dict[str, ET.Element]):
        self._members = members

    @classmethod
    def load(cls, path: str) -> Optional["XmlDocumentation"]:
        try:
            tree = ET.parse(path)
        except (OSError, ET.ParseError) as exc:
            logger.warning("Ignoring unreadable documentation file %s: %s", path, exc)
            return None
        members = {}
        for element in tree.getroot().iter("member"):
            name = element.get("name")
            if name:
                members[name] = element
        logger.debug("Loaded %d documentation entries from %s", len(members), path)
        return cls(members)

    def __len__(self) -> int:
        return len(self._members)

    def _find(self, doc_id: str) -> Optional[ET.Element]:
        element = self._members.get(doc_id)
        if element is not None or "(" not in doc_id:
            return element
        # Parameter type spelling can differ (generic instantiations); fall back to the only overload.
        prefix = doc_id.split("(", 1)[0] + "("
        matches = [e for k, e in self._members.items() if k.startswith(prefix)]
        return matches[0] if len(matches) == 1 else None

    def comment_text(self, doc_id: Optional[str], indent: int = 0) -> Optional[str]:
        """Inner XML of the member's comment, each line prefixed with ``///``."""
        if not doc_id:
            return None
        element = self._find(doc_id)
        if element is None:
            return None
        inner = (element.text or "") + "".join(ET.tostring(child, encoding="unicode") for child in element)
        lines = [line.strip() for line in inner.strip().splitlines()]
        if not any(lines):
            return None
        pad = " " * indent
        return "\n".join(f"{pad}/// {line}" for line in lines)
