# Overview: Pluggable fuzzy-match policies for vendor names and product descriptions.

"""
Matching Strategies

The vendor and description matches are deliberately crude (a LIKE substring
search). They are kept behind one-method strategy objects so the policy can
be replaced without touching the resolver or the submission coordinator.

DEFAULTS:
- Vendor: first whitespace token of the name, case-insensitive substring
  of vendor name or short code
- Description: first 20 characters of the description, case-insensitive
  substring of the product description
"""

from __future__ import annotations

from abc import ABC, abstractmethod


DESCRIPTION_PREFIX_LENGTH = 20


def like_contains(term: str) -> str:
    """Build an escaped '%term%' pattern for ILIKE (escape char is backslash)."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class VendorMatchStrategy(ABC):
    @abstractmethod
    def search_term(self, vendor_name: str | None) -> str | None:
        """Return the substring to search vendors for, or None for no search."""


class FirstTokenVendorMatch(VendorMatchStrategy):
    """'Coca-Cola Bottling Co' matches any vendor containing 'coca-cola'."""

    def search_term(self, vendor_name: str | None) -> str | None:
        if not vendor_name:
            return None
        tokens = vendor_name.strip().split()
        return tokens[0] if tokens else None


class DescriptionMatchStrategy(ABC):
    @abstractmethod
    def search_term(self, description: str | None) -> str | None:
        """Return the substring to search product descriptions for, or None."""


class DescriptionPrefixMatch(DescriptionMatchStrategy):
    def __init__(self, length: int = DESCRIPTION_PREFIX_LENGTH):
        self.length = length

    def search_term(self, description: str | None) -> str | None:
        if not description:
            return None
        term = description.strip()[: self.length]
        return term or None


DEFAULT_VENDOR_MATCH = FirstTokenVendorMatch()
DEFAULT_DESCRIPTION_MATCH = DescriptionPrefixMatch()
