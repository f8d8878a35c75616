# models.py
"""
Database models for the storefront.

This file defines all SQLAlchemy models used by the application,
providing a single source of truth for the record store behind the API.
"""

import uuid

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, func
)
from sqlalchemy import Uuid as SA_UUID
from sqlalchemy.orm import relationship

from db import Base


# -----------------------
# Catalog
# -----------------------
class PricingTier(Base):
    __tablename__ = "pricing_tiers"
    id = Column(SA_UUID, primary_key=True, default=uuid.uuid4)
    name = Column(String(128), nullable=False)
    min_qty = Column(Integer, nullable=False)
    max_qty = Column(Integer, nullable=True)  # NULL means open-ended
    garment_markup_percentage = Column(Float, nullable=False, default=50.0)

    print_pricing = relationship("PrintPricing", back_populates="tier", cascade="all, delete-orphan")


class PrintPricing(Base):
    __tablename__ = "print_pricing"
    id = Column(SA_UUID, primary_key=True, default=uuid.uuid4)
    tier_id = Column(SA_UUID, ForeignKey("pricing_tiers.id", ondelete="CASCADE"), nullable=False, index=True)
    num_colors = Column(Integer, nullable=False)
    cost_per_shirt = Column(Float, nullable=False)
    setup_fee_per_screen = Column(Float, nullable=False)

    tier = relationship("PricingTier", back_populates="print_pricing")


class AppConfig(Base):
    __tablename__ = "app_config"
    id = Column(Integer, primary_key=True, default=1)
    deposit_percentage = Column(Float, nullable=False, default=50.0)
    min_order_quantity = Column(Integer, nullable=False, default=24)
    max_ink_colors = Column(Integer, nullable=False, default=4)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Garment(Base):
    __tablename__ = "garments"
    id = Column(SA_UUID, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    brand = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(64), nullable=True)
    fit_type = Column(String(16), nullable=True, default="unisex")
    active = Column(Boolean, nullable=False, default=True)
    base_cost = Column(Float, nullable=False)
    customer_price = Column(Float, nullable=True)
    pricing_tier_id = Column(SA_UUID, ForeignKey("pricing_tiers.id"), nullable=True)
    thumbnail_url = Column(String(1024), nullable=True)
    available_colors = Column(JSON, nullable=False, default=list)
    color_images = Column(JSON, nullable=False, default=dict)       # color -> front image URL
    color_back_images = Column(JSON, nullable=False, default=dict)  # color -> back image URL
    size_range = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class DiscountCode(Base):
    __tablename__ = "discount_codes"
    id = Column(SA_UUID, primary_key=True, default=uuid.uuid4)
    code = Column(String(64), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    discount_type = Column(String(16), nullable=False)  # 'percentage' or 'fixed'
    discount_value = Column(Float, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


# -----------------------
# Customers & drafts
# -----------------------
class Customer(Base):
    __tablename__ = "customers"
    id = Column(SA_UUID, primary_key=True, default=uuid.uuid4)
    email = Column(String(320), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)
    organization_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    drafts = relationship("OrderDraft", back_populates="customer", cascade="all, delete-orphan")


class OrderDraft(Base):
    __tablename__ = "order_drafts"
    id = Column(SA_UUID, primary_key=True, default=uuid.uuid4)
    customer_id = Column(SA_UUID, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    garment_id = Column(SA_UUID, nullable=True)
    selected_colors = Column(JSON, nullable=False, default=list)
    selected_garments = Column(JSON, nullable=True)
    color_size_quantities = Column(JSON, nullable=False, default=dict)
    print_config = Column(JSON, nullable=False, default=dict)
    artwork_file_records = Column(JSON, nullable=False, default=dict)
    artwork_transforms = Column(JSON, nullable=False, default=dict)
    vectorized_svg_data = Column(JSON, nullable=False, default=dict)
    customer_name = Column(String(255), nullable=True)
    email = Column(String(320), nullable=True)
    phone = Column(String(32), nullable=True)
    organization_name = Column(String(255), nullable=True)
    need_by_date = Column(String(32), nullable=True)
    shipping_address = Column(JSON, nullable=True)
    quote = Column(JSON, nullable=True)
    text_description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer", back_populates="drafts")


# -----------------------
# Orders
# -----------------------
class PendingOrder(Base):
    """
    Order content captured before the deposit is paid.

    The payment intent carries this row's id in its metadata; the Stripe
    webhook turns it into an `Order` once the payment succeeds.
    Unpaid rows are left in place.
    """
    __tablename__ = "pending_orders"
    id = Column(SA_UUID, primary_key=True, default=uuid.uuid4)
    customer_id = Column(SA_UUID, nullable=True)
    customer_name = Column(String(255), nullable=False)
    email = Column(String(320), nullable=False)
    phone = Column(String(32), nullable=False)
    shipping_address = Column(JSON, nullable=False)
    organization_name = Column(String(255), nullable=True)
    need_by_date = Column(String(32), nullable=True)
    garment_id = Column(SA_UUID, nullable=False)
    color_size_quantities = Column(JSON, nullable=False, default=dict)
    selected_garments = Column(JSON, nullable=True)
    print_config = Column(JSON, nullable=False)
    artwork_data = Column(JSON, nullable=True)
    discount_code_id = Column(SA_UUID, nullable=True)
    discount_amount = Column(Float, nullable=True)
    stripe_payment_intent_id = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Order(Base):
    __tablename__ = "orders"
    id = Column(SA_UUID, primary_key=True, default=uuid.uuid4)
    customer_id = Column(SA_UUID, nullable=True, index=True)
    customer_name = Column(String(255), nullable=False)
    email = Column(String(320), nullable=False)
    phone = Column(String(32), nullable=False)
    shipping_address = Column(JSON, nullable=False)
    organization_name = Column(String(255), nullable=True)
    need_by_date = Column(String(32), nullable=True)

    garment_id = Column(SA_UUID, nullable=False)
    color_size_quantities = Column(JSON, nullable=False, default=dict)
    selected_garments = Column(JSON, nullable=True)
    total_quantity = Column(Integer, nullable=False)
    print_config = Column(JSON, nullable=False)

    total_cost = Column(Float, nullable=False)
    deposit_amount = Column(Float, nullable=False)
    deposit_paid = Column(Boolean, nullable=False, default=False)
    balance_due = Column(Float, nullable=False)
    discount_code_id = Column(SA_UUID, nullable=True)
    discount_amount = Column(Float, nullable=True)

    status = Column(String(32), nullable=False, default="pending_art_review", index=True)
    stripe_payment_intent_id = Column(String(255), nullable=True, unique=True, index=True)
    pending_order_id = Column(SA_UUID, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    artwork_files = relationship("ArtworkFile", back_populates="order", cascade="all, delete-orphan")


class ArtworkFile(Base):
    __tablename__ = "artwork_files"
    id = Column(SA_UUID, primary_key=True, default=uuid.uuid4)
    order_id = Column(SA_UUID, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    location = Column(String(32), nullable=False)
    file_url = Column(String(1024), nullable=False)
    vectorized_file_url = Column(String(1024), nullable=True)
    is_vector = Column(Boolean, nullable=False, default=False)
    vectorization_status = Column(String(16), nullable=False, default="not_needed")
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=True)
    transform = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    order = relationship("Order", back_populates="artwork_files")


# -----------------------
# Campaigns
# -----------------------
class Campaign(Base):
    __tablename__ = "campaigns"
    id = Column(SA_UUID, primary_key=True, default=uuid.uuid4)
    slug = Column(String(64), unique=True, nullable=False, index=True)
    organizer_id = Column(SA_UUID, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    deadline = Column(String(32), nullable=False)
    payment_style = Column(String(16), nullable=False, default="everyone_pays")
    status = Column(String(16), nullable=False, default="active")
    garment_id = Column(SA_UUID, nullable=False)
    selected_colors = Column(JSON, nullable=False, default=list)
    garment_configs = Column(JSON, nullable=False, default=dict)  # garment id -> {price, colors}
    print_config = Column(JSON, nullable=False)
    artwork_urls = Column(JSON, nullable=False, default=dict)
    artwork_transforms = Column(JSON, nullable=False, default=dict)
    price_per_shirt = Column(Float, nullable=False, default=0.0)
    organizer_name = Column(String(255), nullable=True)
    organizer_email = Column(String(320), nullable=True)
    mockup_image_url = Column(String(1024), nullable=True)
    mockup_image_urls = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
