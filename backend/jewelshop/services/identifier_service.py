# Overview: Service-layer operations for identifiers; mints tag ids, barcodes, and document numbers.

"""
Identifier Minting

FORMATS:
- Tag id:   {MetalCode}{purityDigits}-{timestamp8}-{rand4}   e.g. G22-48213377-7QXA
            MetalCode: G=GOLD, S=SILVER, P=PLATINUM, X=anything else
- Barcode:  STK-{product8}-{seq8}                            e.g. STK-00000042-48213377
- Invoice:  INV-YYYYMMDD-NNNN
- PO:       PO-YYYYMMDD-NNNN

Tag ids and barcodes are minted in batches and checked against existing
rows (and against each other) before use. Colliding values are replaced
and re-checked a bounded number of times.
"""

from __future__ import annotations

import itertools
import re
import secrets
import string
import time

from ..errors import ConflictError
from ..repositories.stock import StockItemRepository
from jewelshop.time_utils import utcnow


METAL_CODES = {"GOLD": "G", "SILVER": "S", "PLATINUM": "P"}

_RAND_ALPHABET = string.ascii_uppercase + string.digits

MAX_MINT_ROUNDS = 5

TAG_ID_PATTERN = re.compile(r"^[GSPX][0-9]*-[0-9]{8}-[A-Z0-9]{4}$")
BARCODE_PATTERN = re.compile(r"^[A-Z]+-[A-Z0-9]+-[0-9]+$")


class IdentifierExhaustedError(ConflictError):
    """Raised when unique identifiers could not be minted after every round."""
    code = "IDENTIFIER_EXHAUSTED"


def metal_code(metal_type: str) -> str:
    return METAL_CODES.get((metal_type or "").upper(), "X")


def purity_digits(purity: str) -> str:
    return re.sub(r"[^0-9]", "", purity or "")


def _timestamp8() -> str:
    return str(int(time.time() * 1000))[-8:]


def _rand(length: int) -> str:
    return "".join(secrets.choice(_RAND_ALPHABET) for _ in range(length))


def generate_tag_id(metal_type: str, purity: str) -> str:
    return f"{metal_code(metal_type)}{purity_digits(purity)}-{_timestamp8()}-{_rand(4)}"


def generate_barcode(product_id: int, sequence: int) -> str:
    return f"STK-{product_id:08d}-{sequence % 100_000_000:08d}"


def generate_invoice_number() -> str:
    return f"INV-{utcnow():%Y%m%d}-{secrets.randbelow(10000):04d}"


def generate_po_number() -> str:
    return f"PO-{utcnow():%Y%m%d}-{secrets.randbelow(10000):04d}"


def _top_up(values: list[str], count: int, make, seen: set[str]) -> None:
    """Append unseen candidates until `count` is reached or the tries run out."""
    tries = 0
    while len(values) < count and tries < count * 4:
        tries += 1
        candidate = make()
        if candidate in seen:
            continue
        seen.add(candidate)
        values.append(candidate)


def mint_stock_identifiers(
    stock_repo: StockItemRepository,
    *,
    product_id: int,
    metal_type: str,
    purity: str,
    count: int,
) -> list[tuple[str, str]]:
    """
    Mint `count` (tag_id, barcode) pairs that are unique among themselves
    and against every existing StockItem.
    """
    if count <= 0:
        return []

    sequence = itertools.count(int(time.time() * 1000) + secrets.randbelow(1000))
    tags: list[str] = []
    barcodes: list[str] = []
    seen: set[str] = set()

    for _ in range(MAX_MINT_ROUNDS):
        _top_up(tags, count, lambda: generate_tag_id(metal_type, purity), seen)
        _top_up(barcodes, count, lambda: generate_barcode(product_id, next(sequence)), seen)
        if len(tags) < count or len(barcodes) < count:
            continue

        taken = stock_repo.existing_identifiers(tags, barcodes)
        if not taken:
            return list(zip(tags, barcodes))

        tags = [t for t in tags if t not in taken]
        barcodes = [b for b in barcodes if b not in taken]
        # Jump the sequence so replacements do not walk into the same range
        sequence = itertools.count(next(sequence) + 1000 + secrets.randbelow(100_000))

    raise IdentifierExhaustedError(f"Could not mint {count} unique stock identifiers")
