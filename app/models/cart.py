# app/models/cart.py
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer, UniqueConstraint

from app.db.session import Base


class CartModel(Base):
    __tablename__ = "carts"
    __table_args__ = (
        Index("ix_carts_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Timestamps are written explicitly by the store so callers get them back without a refresh.
    created_at = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at = mapped_column(DateTime(timezone=True), nullable=False)

    line_items: Mapped[list["LineItemModel"]] = relationship(
        "LineItemModel", back_populates="cart", cascade="all, delete-orphan", passive_deletes=True
    )


class LineItemModel(Base):
    __tablename__ = "line_items"
    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="uq_line_items_cart_product"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cart_id: Mapped[int] = mapped_column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    product_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at = mapped_column(DateTime(timezone=True), nullable=False)

    cart = relationship("CartModel", back_populates="line_items")
