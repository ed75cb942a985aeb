"""Filename classification for sales-order packets.

Each file in a remote folder is assigned one category from its name alone:

    "PO_1001.pdf"          → order
    "Purchase Order.pdf"   → order
    "INV_1001.pdf"         → invoice
    "Facture 2024-03.pdf"  → invoice
    "PO_INV_1001.pdf"      → other   (both signals)
    "random.pdf"           → other

Files that carry both an order and an invoice signal are classified ``other``
so nothing is auto-imported as a record type it may not be.
"""

import os
import re
from typing import Any, List, Set

from folder_sync.models import FileCategory


# Whole tokens; "PO1001" splits into "po" + "1001"
ORDER_TOKENS = {"po"}
INVOICE_TOKENS = {"inv"}

# Matched anywhere in the lowercased stem
ORDER_WORDS = ("order", "sales")
INVOICE_WORDS = ("invoice", "facture", "factura", "rechnung")

_TOKEN_RE = re.compile(r"[^\W\d_]+|\d+")


def tokenize_filename(file_name: Any) -> List[str]:
    """Split a filename (extension removed) into lowercase letter/digit runs.

    Examples:
        >>> tokenize_filename("PO_1001.pdf")
        ['po', '1001']
        >>> tokenize_filename("inv2024-03")
        ['inv', '2024', '03']
    """
    stem = _stem(file_name)
    return _TOKEN_RE.findall(stem)


def classify(file_name: Any) -> FileCategory:
    """Classify a filename as order, invoice or other.

    Total over its input: empty names, names without an extension and
    non-string values all come back as a category.

    Args:
        file_name: File name as listed by the folder source

    Returns:
        FileCategory for the file
    """
    stem = _stem(file_name)
    if not stem:
        return FileCategory.OTHER

    tokens = set(_TOKEN_RE.findall(stem))

    is_order = _has_signal(stem, tokens, ORDER_TOKENS, ORDER_WORDS)
    is_invoice = _has_signal(stem, tokens, INVOICE_TOKENS, INVOICE_WORDS)

    if is_order and not is_invoice:
        return FileCategory.ORDER
    if is_invoice and not is_order:
        return FileCategory.INVOICE
    return FileCategory.OTHER


def _stem(file_name: Any) -> str:
    if file_name is None:
        return ""
    name = str(file_name).strip().lower()
    stem, _ext = os.path.splitext(name)
    return stem


def _has_signal(stem: str, tokens: Set[str], signal_tokens: Set[str], signal_words) -> bool:
    if tokens & signal_tokens:
        return True
    return any(word in stem for word in signal_words)
