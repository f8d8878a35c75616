# schemas.py
"""
Pydantic data model shared by the API routes and the storefront core.

The same classes describe the request/response contracts of the backend
and the in-memory state the client-side order store keeps.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

SIZES = ["XS", "S", "M", "L", "XL", "2XL", "3XL"]


# ===================================================================
# Print configuration & artwork
# ===================================================================

class PrintLocation(str, Enum):
    FRONT = "front"
    BACK = "back"
    LEFT_CHEST = "left_chest"
    RIGHT_CHEST = "right_chest"
    FULL_BACK = "full_back"


class LocationConfig(BaseModel):
    enabled: bool = False
    num_colors: int = Field(1, ge=1, le=4)


class PrintConfig(BaseModel):
    """Print location -> {enabled, num_colors}. Missing locations count as disabled."""
    locations: Dict[PrintLocation, LocationConfig] = Field(default_factory=dict)

    def enabled_locations(self) -> List[PrintLocation]:
        return [loc for loc in PrintLocation if loc in self.locations and self.locations[loc].enabled]

    def colors_for(self, location: PrintLocation) -> int:
        config = self.locations.get(location)
        return config.num_colors if config and config.enabled else 0


class ArtworkTransform(BaseModel):
    """Placement of an artwork on the 500x550 design canvas."""
    x: float
    y: float
    scale: float = 1.0
    rotation: float = 0.0


class ArtworkRecord(BaseModel):
    """An artwork file that already lives in temporary storage."""
    location: PrintLocation
    file_url: str
    file_name: str
    file_size: Optional[int] = None
    transform: Optional[ArtworkTransform] = None
    vectorized_file_url: Optional[str] = None
    is_vectorized: bool = False
    width: Optional[int] = None
    height: Optional[int] = None


# ===================================================================
# Customer
# ===================================================================

class ShippingAddress(BaseModel):
    line1: str = ""
    line2: Optional[str] = None
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = "US"


class CustomerInfo(BaseModel):
    customer_name: str = ""
    email: str = ""
    phone: str = ""
    organization_name: Optional[str] = None
    need_by_date: Optional[str] = None


# ===================================================================
# Catalog & quotes
# ===================================================================

class GarmentOut(BaseModel):
    id: uuid.UUID
    name: str
    brand: str
    description: Optional[str] = None
    category: Optional[str] = None
    fit_type: Optional[str] = None
    base_cost: float
    customer_price: Optional[float] = None
    thumbnail_url: Optional[str] = None
    available_colors: List[str] = Field(default_factory=list)
    color_images: Dict[str, str] = Field(default_factory=dict)
    color_back_images: Dict[str, str] = Field(default_factory=dict)
    size_range: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True


class GarmentQuantity(BaseModel):
    garment_id: uuid.UUID
    quantity: int = Field(..., ge=0)


class QuoteRequest(BaseModel):
    """Either `garment_id` + `quantity` or a `garments` list."""
    garment_id: Optional[uuid.UUID] = None
    quantity: Optional[int] = None
    garments: Optional[List[GarmentQuantity]] = None
    print_config: PrintConfig


class GarmentBreakdown(BaseModel):
    garment_id: str
    garment_name: Optional[str] = None
    quantity: int
    unit_price: float
    garment_cost: float


class Quote(BaseModel):
    garment_cost: float
    garment_cost_per_shirt: float
    print_cost: float
    print_cost_per_shirt: float
    setup_fees: float
    total_screens: int
    subtotal: float
    total: float
    per_shirt_price: float
    deposit_amount: float
    balance_due: float
    garment_breakdown: Optional[List[GarmentBreakdown]] = None
    total_quantity: Optional[int] = None


# ===================================================================
# Discounts
# ===================================================================

class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class AppliedDiscount(BaseModel):
    code: str
    discount_type: DiscountType
    discount_value: float
    discount_amount: float
    discount_code_id: Optional[uuid.UUID] = None


class DiscountValidateRequest(BaseModel):
    code: str
    subtotal: float


class DiscountValidateResponse(BaseModel):
    valid: bool
    discount: Optional[AppliedDiscount] = None
    discount_code_id: Optional[uuid.UUID] = None
    message: Optional[str] = None


# ===================================================================
# Orders & payments
# ===================================================================

class GarmentSelection(BaseModel):
    """One garment line of a multi-garment order."""
    colors: List[str] = Field(default_factory=list)
    color_size_quantities: Dict[str, Dict[str, int]] = Field(default_factory=dict)


class OrderCreate(BaseModel):
    garment_id: uuid.UUID
    color_size_quantities: Dict[str, Dict[str, int]]
    selected_garments: Optional[Dict[str, GarmentSelection]] = None
    print_config: PrintConfig
    customer_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1)
    shipping_address: ShippingAddress
    organization_name: Optional[str] = None
    need_by_date: Optional[str] = None


class PendingOrderCreate(OrderCreate):
    customer_id: Optional[uuid.UUID] = None
    discount_code_id: Optional[uuid.UUID] = None
    discount_amount: Optional[float] = None
    artwork_data: List[ArtworkRecord] = Field(default_factory=list)


class CreatedResponse(BaseModel):
    id: uuid.UUID


class PaymentIntentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: float = Field(..., gt=0)
    order_id: Optional[uuid.UUID] = Field(None, alias="orderId")
    pending_order_id: Optional[uuid.UUID] = Field(None, alias="pendingOrderId")
    customer_email: Optional[str] = Field(None, alias="customerEmail")


class PaymentIntentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    client_secret: str = Field(..., alias="clientSecret")
    payment_intent_id: str = Field(..., alias="paymentIntentId")


class CheckOrderResponse(BaseModel):
    order_id: Optional[uuid.UUID] = None
    status: str


class ArtworkFileOut(BaseModel):
    id: uuid.UUID
    location: str
    file_url: str
    vectorized_file_url: Optional[str] = None
    file_name: str
    transform: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    id: uuid.UUID
    customer_name: str
    email: str
    garment_id: uuid.UUID
    total_quantity: int
    total_cost: float
    deposit_amount: float
    deposit_paid: bool
    balance_due: float
    status: str
    created_at: Optional[datetime] = None
    artwork_files: List[ArtworkFileOut] = Field(default_factory=list)

    class Config:
        from_attributes = True


# ===================================================================
# Artwork services
# ===================================================================

class TempUploadResponse(BaseModel):
    file_url: str
    file_name: str
    file_size: int
    location: PrintLocation
    transform: Optional[ArtworkTransform] = None
    is_vectorized: bool = False
    width: Optional[int] = None
    height: Optional[int] = None


class GenerateArtworkRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(..., min_length=1, max_length=2000)
    reference_images: List[str] = Field(default_factory=list, alias="referenceImages")


class GeneratedImageResponse(BaseModel):
    image: str
    message: Optional[str] = None


class RemoveBackgroundRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_base64: str = Field(..., alias="imageBase64")


class VectorizeResponse(BaseModel):
    svg_data_url: str
    svg_size: int
    color_count: int


# ===================================================================
# Campaigns
# ===================================================================

class PaymentStyle(str, Enum):
    EVERYONE_PAYS = "everyone_pays"
    ORGANIZER_PAYS = "organizer_pays"


class CampaignGarmentConfig(BaseModel):
    price: float = 0.0
    colors: List[str] = Field(default_factory=list)


class CampaignCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    deadline: str
    payment_style: PaymentStyle = PaymentStyle.EVERYONE_PAYS
    garment_id: uuid.UUID
    selected_colors: List[str] = Field(default_factory=list)
    garment_configs: Optional[Dict[str, CampaignGarmentConfig]] = None
    print_config: PrintConfig
    artwork_urls: Dict[str, str] = Field(default_factory=dict)
    artwork_transforms: Dict[str, ArtworkTransform] = Field(default_factory=dict)
    price_per_shirt: float = 0.0
    organizer_name: Optional[str] = None
    organizer_email: Optional[str] = None
    mockup_image_url: Optional[str] = None
    mockup_image_urls: Dict[str, str] = Field(default_factory=dict)


class CampaignCreated(BaseModel):
    id: uuid.UUID
    slug: str


class CampaignPriceRequest(BaseModel):
    garment_ids: List[uuid.UUID] = Field(..., min_length=1)
    print_config: PrintConfig


class CampaignPriceResponse(BaseModel):
    prices: Dict[str, float]
    missing_garments: List[str] = Field(default_factory=list)


class CampaignOut(BaseModel):
    id: uuid.UUID
    slug: str
    name: str
    deadline: str
    payment_style: str
    status: str
    garment_id: uuid.UUID
    selected_colors: List[str]
    garment_configs: Dict[str, Any]
    print_config: Dict[str, Any]
    artwork_urls: Dict[str, str]
    price_per_shirt: float
    organizer_name: Optional[str] = None
    mockup_image_url: Optional[str] = None
    mockup_image_urls: Dict[str, str] = Field(default_factory=dict)

    class Config:
        from_attributes = True


# ===================================================================
# Drafts
# ===================================================================

class DraftIn(BaseModel):
    """Draft snapshot; `draft_id` updates an existing draft instead of creating one."""
    draft_id: Optional[uuid.UUID] = None
    name: Optional[str] = None
    garment_id: Optional[uuid.UUID] = None
    selected_colors: List[str] = Field(default_factory=list)
    selected_garments: Optional[Dict[str, GarmentSelection]] = None
    color_size_quantities: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    print_config: PrintConfig = Field(default_factory=PrintConfig)
    artwork_file_records: Dict[str, ArtworkRecord] = Field(default_factory=dict)
    artwork_transforms: Dict[str, ArtworkTransform] = Field(default_factory=dict)
    vectorized_svg_data: Dict[str, str] = Field(default_factory=dict)
    customer_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    organization_name: Optional[str] = None
    need_by_date: Optional[str] = None
    shipping_address: Optional[ShippingAddress] = None
    quote: Optional[Quote] = None
    text_description: Optional[str] = None


class DraftOut(BaseModel):
    id: uuid.UUID
    name: Optional[str] = None
    garment_id: Optional[uuid.UUID] = None
    selected_colors: List[str] = Field(default_factory=list)
    selected_garments: Optional[Dict[str, Any]] = None
    color_size_quantities: Dict[str, Any] = Field(default_factory=dict)
    print_config: Dict[str, Any] = Field(default_factory=dict)
    artwork_file_records: Dict[str, Any] = Field(default_factory=dict)
    artwork_transforms: Dict[str, Any] = Field(default_factory=dict)
    vectorized_svg_data: Dict[str, str] = Field(default_factory=dict)
    customer_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    organization_name: Optional[str] = None
    need_by_date: Optional[str] = None
    shipping_address: Optional[Dict[str, Any]] = None
    quote: Optional[Dict[str, Any]] = None
    text_description: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
