"""
Module: production_kernel.models.status_change
Responsibility: Append-only record of every status an order has entered,
    including its creation in the queued state.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - previous_status is NULL only for the creation record.
    - Rows are never updated or deleted (db.immutability).
    - Replaying an order's records oldest-first follows the legal transition
      graph (checked by HistorySelector.replay_status).
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from production_kernel.db.base import Base


class StatusChangeRecord(Base):
    __tablename__ = "status_changes"

    __table_args__ = (
        Index("idx_status_change_order", "order_id"),
        Index("idx_status_change_actor", "actor_id"),
        Index("idx_status_change_new_status", "new_status"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    order_id: Mapped[str] = mapped_column(
        String(16),
        ForeignKey("orders.id"),
        nullable=False,
    )

    previous_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    new_status: Mapped[str] = mapped_column(String(20), nullable=False)

    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<StatusChangeRecord #{self.seq} {self.order_id}: "
            f"{self.previous_status} -> {self.new_status}>"
        )
