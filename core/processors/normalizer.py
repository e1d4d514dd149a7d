"""
NameGuard Name Normalizer

Canonicalizes raw display names into identity keys so that casing,
accents and look-alike decorations cannot be used to register a second
identity for an existing name.

    "Stéve"  -> "steve"
    ".Steve" -> "steve"   (bridge prefix stripped)
    "S t-eve" -> "steve"
"""

import re
import unicodedata


_DISALLOWED = re.compile(r"[^a-z0-9_]")
_DISALLOWED_KEEP_DOT = re.compile(r"[^a-z0-9_.]")


class NameNormalizer:
    """
    Pure, idempotent name canonicalization.

    Steps:
        1. Strip leading bridge marker characters (unless preserved)
        2. Unicode NFKD decomposition
        3. Remove combining marks (diacritics)
        4. Lowercase
        5. Drop everything outside [a-z0-9_] ([a-z0-9_.] when preserving
           the bridge prefix)
    """

    def __init__(self, bridge_prefix_chars: str = ".", preserve_bridge_prefix: bool = False) -> None:
        self.bridge_prefix_chars = bridge_prefix_chars
        self.preserve_bridge_prefix = preserve_bridge_prefix

    def strip_legacy_prefix(self, raw: str) -> str:
        """Display form with leading bridge markers removed, case preserved."""
        if not self.bridge_prefix_chars:
            return raw
        return raw.lstrip(self.bridge_prefix_chars)

    def normalize(self, raw: str) -> str:
        """Canonical identity key for a raw display name."""
        text = raw if self.preserve_bridge_prefix else self.strip_legacy_prefix(raw)

        decomposed = unicodedata.normalize("NFKD", text)
        stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
        lowered = stripped.lower()

        if self.preserve_bridge_prefix:
            return _DISALLOWED_KEEP_DOT.sub("", lowered)

        # Markers may themselves be allowed characters; strip again for idempotence
        return self.strip_legacy_prefix(_DISALLOWED.sub("", lowered))
