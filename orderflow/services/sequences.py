from __future__ import annotations

import re

from sqlalchemy import select
from sqlalchemy.orm import Session

from orderflow.app.db.models.core_types import DocumentKind
from orderflow.app.db.models.models_v1 import Order, Quotation, SequenceCounter


PREFIXES = {
    DocumentKind.order: "NPO",
    DocumentKind.quotation: "NPQ",
}

_DOCUMENT_MODELS = {
    DocumentKind.order: Order,
    DocumentKind.quotation: Quotation,
}

_CUSTOM_ID_RE = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<year>\d{4})-(?P<seq>\d{5,})$")


def format_custom_id(prefix: str, year: int, sequence: int) -> str:
    return f"{prefix}-{year}-{sequence:05d}"


def parse_custom_id(custom_id: str) -> tuple[str, int, int]:
    m = _CUSTOM_ID_RE.match(custom_id or "")
    if not m:
        raise ValueError(f"Malformed custom id: {custom_id!r}")
    return m.group("prefix"), int(m.group("year")), int(m.group("seq"))


def _max_existing_sequence(db: Session, kind: DocumentKind, year: int) -> int:
    """Highest suffix already stored for prefix/year (0 when none)."""
    prefix = PREFIXES[kind]
    model = _DOCUMENT_MODELS[kind]
    rows = db.execute(
        select(model.custom_id).where(model.custom_id.like(f"{prefix}-{year}-%"))
    ).scalars()

    highest = 0
    for custom_id in rows:
        try:
            _, _, seq = parse_custom_id(custom_id)
        except ValueError:
            continue
        highest = max(highest, seq)
    return highest


def next_custom_id(db: Session, kind: DocumentKind, *, year: int) -> str:
    """
    Allocate the next custom id for (kind, year).

    Must run inside the transaction that inserts the numbered row:
    - the counter row is locked (FOR UPDATE) until that transaction ends;
    - a first allocation for the year seeds the counter from existing rows;
    - values already present in the table are skipped;
    - two transactions racing to create the counter row, or a collision on
      custom_id, fail with IntegrityError -> SequenceConflictError at commit
      and are retried by the caller.
    """
    prefix = PREFIXES[kind]

    counter = (
        db.execute(
            select(SequenceCounter)
            .where(SequenceCounter.prefix == prefix)
            .where(SequenceCounter.year == year)
            .with_for_update()
        )
        .scalar_one_or_none()
    )

    if not counter:
        counter = SequenceCounter(
            prefix=prefix,
            year=year,
            last_value=_max_existing_sequence(db, kind, year),
        )
        db.add(counter)
        db.flush()

    # a counter behind the data (manual inserts, restored dumps) skips taken values
    model = _DOCUMENT_MODELS[kind]
    while True:
        counter.last_value += 1
        candidate = format_custom_id(prefix, year, counter.last_value)
        if db.execute(select(model.id).where(model.custom_id == candidate)).first() is None:
            break
    db.flush()

    return candidate
