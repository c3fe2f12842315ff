from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Boolean,
    Float,
    ForeignKey,
    Numeric,
    Text,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from orderflow.app.db.base import Base, BigIntPK
from orderflow.app.db.models.core_types import (
    AcceptState,
    DeliveryStatus,
    DocumentKind,
    Role,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- MASTER DATA ----------
class Client(Base):
    __tablename__ = "clients"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    client_type: Mapped[str] = mapped_column(String(64), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    tax_number: Mapped[str | None] = mapped_column(String(64))  # optional for cash clients
    branch_number: Mapped[str] = mapped_column(String(64), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    street: Mapped[str | None] = mapped_column(String(255))
    city: Mapped[str | None] = mapped_column(String(128))
    region: Mapped[str | None] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


# ---------- STAFF (one table per role) ----------
class _StaffColumns:
    role_tag: ClassVar[Role]

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    identity_ref: Mapped[str | None] = mapped_column(String(128))
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    fcm_token: Mapped[str | None] = mapped_column(String(512))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class Driver(_StaffColumns, Base):
    __tablename__ = "drivers"
    role_tag = Role.driver


class Supervisor(_StaffColumns, Base):
    __tablename__ = "supervisors"
    role_tag = Role.supervisor


class Storekeeper(_StaffColumns, Base):
    __tablename__ = "storekeepers"
    role_tag = Role.storekeeper


class Manager(_StaffColumns, Base):
    __tablename__ = "managers"
    role_tag = Role.manager


class SalesRep(_StaffColumns, Base):
    __tablename__ = "salesreps"
    role_tag = Role.sales_rep


STAFF_MODELS: dict[Role, type[_StaffColumns]] = {
    Role.driver: Driver,
    Role.supervisor: Supervisor,
    Role.storekeeper: Storekeeper,
    Role.manager: Manager,
    Role.sales_rep: SalesRep,
}


# ---------- ORDERS / QUOTATIONS ----------
class _DocumentColumns:
    kind: ClassVar[DocumentKind]

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    custom_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    username: Mapped[str | None] = mapped_column(String(255), index=True)  # creating sales rep

    delivery_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    delivery_type: Mapped[str] = mapped_column(String(64), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    storekeeper_notes: Mapped[str | None] = mapped_column(Text)

    # Derived from line items, rewritten together on every (re)pricing
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    total_vat: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    total_subtotal: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)

    status: Mapped[str] = mapped_column(String(32), default=DeliveryStatus.not_delivered.value, nullable=False)
    actual_delivery_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    supervisoraccept: Mapped[str] = mapped_column(String(16), default=AcceptState.pending.value, nullable=False)
    storekeeperaccept: Mapped[str] = mapped_column(String(16), default=AcceptState.pending.value, nullable=False)
    manageraccept: Mapped[str] = mapped_column(String(16), default=AcceptState.pending.value, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    @declared_attr
    def client_id(cls) -> Mapped[int]:
        return mapped_column(ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False, index=True)

    @declared_attr
    def client(cls) -> Mapped[Client]:
        return relationship(Client)

    @declared_attr.directive
    def __table_args__(cls):
        return tuple(
            CheckConstraint(
                f"{flag} IN ('pending', 'accepted')",
                name=f"ck_{cls.__tablename__}_{flag}",
            )
            for flag in ("supervisoraccept", "storekeeperaccept", "manageraccept")
        )


class _LineColumns:
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    section: Mapped[str] = mapped_column(String(128), nullable=False)
    type: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    vat: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    @declared_attr.directive
    def __table_args__(cls):
        return (
            CheckConstraint("quantity > 0", name=f"ck_{cls.__tablename__}_qty_pos"),
            CheckConstraint("price >= 0", name=f"ck_{cls.__tablename__}_price_nonneg"),
        )


class Order(_DocumentColumns, Base):
    __tablename__ = "orders"
    kind = DocumentKind.order

    products: Mapped[list["OrderProduct"]] = relationship(
        back_populates="order",
        order_by="OrderProduct.id",
        passive_deletes="all",
    )


class OrderProduct(_LineColumns, Base):
    __tablename__ = "order_products"
    # RESTRICT: children must be removed before their order
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    order: Mapped[Order] = relationship(back_populates="products")


class Quotation(_DocumentColumns, Base):
    __tablename__ = "quotations"
    kind = DocumentKind.quotation

    supervisor_id: Mapped[int | None] = mapped_column(ForeignKey("supervisors.id", ondelete="SET NULL"))

    supervisor: Mapped[Supervisor | None] = relationship()
    products: Mapped[list["QuotationProduct"]] = relationship(
        back_populates="quotation",
        order_by="QuotationProduct.id",
        passive_deletes="all",
    )


class QuotationProduct(_LineColumns, Base):
    __tablename__ = "quotation_products"
    quotation_id: Mapped[int] = mapped_column(
        ForeignKey("quotations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    quotation: Mapped[Quotation] = relationship(back_populates="products")


# ---------- SEQUENCES ----------
class SequenceCounter(Base):
    __tablename__ = "sequence_counters"
    prefix: Mapped[str] = mapped_column(String(8), primary_key=True)
    year: Mapped[int] = mapped_column(Integer, primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (CheckConstraint("last_value >= 0", name="ck_sequence_counter_nonneg"),)
