"""
Database Schemas for the Fashion Commerce back office

Each Pydantic model correlates to a MongoDB collection. The collection name is the lowercase of the class name.
- User -> "user"
- Inventory -> "inventory"
- RetrievedInventory -> "retrievedinventory"
- Promotion -> "promotion"
- CustomOrder -> "customorder"
- Order -> "order"
- Feedback -> "feedback"
- Design -> "design"

Field names are the stored document keys and are used as-is on the wire.
Request models sit next to the collection they write to.
"""

from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, EmailStr, Field, field_validator

ClothingType = Literal["tshirt", "dress", "pants", "jacket"]
GarmentSize = Literal["XS", "S", "M", "L", "XL", "XXL"]
StockLevel = Literal["in-stock", "low-stock", "out-of-stock"]


def split_csv(value):
    if value is None or isinstance(value, list):
        return value
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


def as_text(value):
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


Text = Annotated[str, BeforeValidator(as_text)]
CsvList = Annotated[List[str], BeforeValidator(split_csv)]


# -----------------------------
# Users
# -----------------------------
class User(BaseModel):
    userID: int = Field(..., description="Auto-incrementing business key")
    UserName: str = Field(..., min_length=1, description="Display name")
    email: EmailStr = Field(..., description="Unique email address")
    password: str = Field(..., description="BCrypt password hash")
    mobile: Text = Field(..., pattern=r"^[0-9]{10}$", description="10 digit mobile number")
    role: Literal["admin", "customer"] = "customer"
    address: Optional[str] = None
    image: Optional[str] = None


class UserCreate(BaseModel):
    UserName: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    mobile: Optional[Text] = None
    role: Optional[str] = None
    address: Optional[str] = None
    image: Optional[str] = None


class UserUpdate(BaseModel):
    UserName: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    mobile: Optional[Text] = None
    role: Optional[Literal["admin", "customer"]] = None
    address: Optional[str] = None
    image: Optional[str] = None


class SignupRequest(BaseModel):
    UserName: str
    email: EmailStr
    password: str = Field(..., min_length=6)
    mobile: Text = Field(..., pattern=r"^[0-9]{10}$")
    address: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


# -----------------------------
# Inventory
# -----------------------------
class InventoryBase(BaseModel):
    ItemName: str = Field(..., min_length=1)
    Category: str = Field(..., min_length=1)
    Brand: str = Field(..., min_length=1)
    Sizes: CsvList = Field(default_factory=list, description="Comma-separated input is split")
    Colors: CsvList = Field(default_factory=list, description="Comma-separated input is split")
    Gender: Literal["Men", "Women", "Unisex"]
    Style: Literal["Casual", "Formal", "Athletic"]
    Location: str = Field(..., min_length=1, description="e.g. 'Warehouse A', 'Aisle 5'")
    Quantity: int = Field(..., ge=0)
    reorderThreshold: int = Field(..., ge=0)
    SupplierName: str = Field(..., min_length=1)
    SupplierContact: str = Field(..., min_length=1)
    unitPrice: Optional[float] = Field(None, ge=0)


class InventoryCreate(InventoryBase):
    inventoryID: Optional[int] = Field(None, ge=1, description="Assigned from a sequence when omitted")
    image: Optional[str] = Field(None, description="Image URL or uploaded file path")


class Inventory(InventoryBase):
    inventoryID: int
    image: str
    StockStatus: StockLevel


class InventoryUpdate(BaseModel):
    ItemName: Optional[str] = None
    Category: Optional[str] = None
    Brand: Optional[str] = None
    Sizes: Optional[CsvList] = None
    Colors: Optional[CsvList] = None
    Gender: Optional[Literal["Men", "Women", "Unisex"]] = None
    Style: Optional[Literal["Casual", "Formal", "Athletic"]] = None
    Location: Optional[str] = None
    Quantity: Optional[int] = Field(None, ge=0)
    reorderThreshold: Optional[int] = Field(None, ge=0)
    SupplierName: Optional[str] = None
    SupplierContact: Optional[str] = None
    unitPrice: Optional[float] = Field(None, ge=0)
    image: Optional[str] = None


class StockStatusUpdate(BaseModel):
    Quantity: Optional[Any] = None
    action: Optional[Literal["retrieve", "add"]] = None
    unitPrice: Optional[float] = Field(None, ge=0)


class RetrievedInventory(BaseModel):
    inventoryID: int
    ItemName: str
    Category: str
    Brand: str
    Sizes: List[str] = Field(default_factory=list)
    Colors: List[str] = Field(default_factory=list)
    Gender: Optional[str] = None
    Style: str
    image: str
    retrievedQuantity: int = Field(..., ge=1)
    unitPrice: Optional[float] = None
    finalPrice: Optional[float] = None
    promotionID: Optional[int] = None
    sentToStore: bool = False
    sentToStoreDate: Optional[datetime] = None
    retrievedDate: datetime


class RetrievedPriceUpdate(BaseModel):
    unitPrice: Optional[float] = Field(None, ge=0)
    finalPrice: Optional[float] = Field(None, ge=0)


class SendToStoreRequest(BaseModel):
    unitPrice: Optional[float] = Field(None, ge=0)
    promotionID: Optional[int] = None


# -----------------------------
# Promotions
# -----------------------------
class PromotionBase(BaseModel):
    type: Literal["Discount Code", "Loyalty"]
    discountType: Optional[Literal["flat", "percentage"]] = None
    discountValue: Optional[float] = Field(None, ge=0)
    discountPercentage: Optional[float] = Field(None, ge=0, le=100)
    validUntil: datetime
    promoCode: Optional[Text] = None
    applicableProducts: List[str] = Field(default_factory=list)
    applicableCategories: List[str] = Field(default_factory=list)
    minimumPurchase: float = Field(0, ge=0)


class PromotionCreate(PromotionBase):
    promotionID: Optional[int] = Field(None, ge=1)


class Promotion(PromotionBase):
    promotionID: int
    usageCount: int = 0
    promoCreatedDate: datetime


class PromotionUpdate(BaseModel):
    type: Optional[Literal["Discount Code", "Loyalty"]] = None
    discountType: Optional[Literal["flat", "percentage"]] = None
    discountValue: Optional[float] = Field(None, ge=0)
    discountPercentage: Optional[float] = Field(None, ge=0, le=100)
    validUntil: Optional[datetime] = None
    promoCode: Optional[Text] = None
    applicableProducts: Optional[List[str]] = None
    applicableCategories: Optional[List[str]] = None
    minimumPurchase: Optional[float] = Field(None, ge=0)


# -----------------------------
# Snapshots shared by orders
# -----------------------------
class CustomerInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    mobile: Optional[Text] = None


class DeliveryInfo(BaseModel):
    address: Optional[str] = None
    city: Optional[str] = None
    postalCode: Optional[Text] = None


# -----------------------------
# Custom orders
# -----------------------------
class CustomOrderCreate(BaseModel):
    # required fields are checked by the route to report them together
    userId: Optional[str] = None
    designId: Optional[str] = None
    imageUrl: Optional[str] = None
    clothingType: Optional[ClothingType] = None
    size: Optional[GarmentSize] = None
    quantity: int = Field(1, ge=1)
    specialInstructions: Optional[str] = None
    customerInfo: Optional[CustomerInfo] = None
    deliveryInfo: Optional[DeliveryInfo] = None

    @field_validator("specialInstructions")
    @classmethod
    def strip_instructions(cls, v):
        return v.strip() if isinstance(v, str) else v


class CustomOrder(BaseModel):
    userId: str
    designId: Optional[str] = None
    imageUrl: str
    clothingType: ClothingType
    size: GarmentSize
    quantity: int = Field(1, ge=1)
    specialInstructions: Optional[str] = None
    status: Literal["pending", "approved", "rejected", "processing", "shipped", "delivered", "cancelled"] = "pending"
    price: float = Field(0, ge=0)
    customerInfo: Optional[CustomerInfo] = None
    deliveryInfo: Optional[DeliveryInfo] = None
    convertedToOrder: bool = False
    orderId: Optional[str] = None
    conversionError: Optional[str] = None
    rejectionReason: Optional[str] = None


class StatusUpdate(BaseModel):
    status: Optional[str] = None


class RejectRequest(BaseModel):
    reason: Optional[str] = None


# -----------------------------
# Orders
# -----------------------------
class OrderItem(BaseModel):
    itemId: Text
    quantity: int = Field(1, ge=1)
    price: float = Field(..., ge=0, description="Unit price at purchase time")
    title: str = ""
    size: Optional[str] = None
    color: Optional[str] = None
    img: Optional[str] = None
    category: Optional[str] = None


class Order(BaseModel):
    orderId: str
    userId: Optional[str] = None
    items: List[OrderItem]
    total: float = Field(..., ge=0)
    discount: float = Field(0, ge=0)
    promoCode: Optional[Text] = None
    customerInfo: CustomerInfo
    deliveryInfo: DeliveryInfo
    paymentMethod: str = "Cash"
    status: Literal["pending", "processing", "shipped", "delivered", "cancelled"] = "pending"


class CheckoutRequest(BaseModel):
    userId: Optional[str] = None
    items: List[OrderItem] = Field(..., min_length=1)
    customerInfo: CustomerInfo = Field(default_factory=CustomerInfo)
    deliveryInfo: DeliveryInfo = Field(default_factory=DeliveryInfo)
    paymentMethod: str = "Cash"
    promoCode: Optional[Text] = None


# -----------------------------
# Feedback
# -----------------------------
def rating_text(value):
    value = as_text(value)
    if isinstance(value, str) and value.strip() in {"1", "2", "3", "4", "5"}:
        return value.strip()
    raise ValueError("Rating must be between 1 and 5")


class FeedbackItem(BaseModel):
    itemTitle: str
    quantity: int
    price: float
    img: Optional[str] = None


class Feedback(BaseModel):
    feedbackID: int
    userId: str
    orderId: str
    orderDate: Optional[datetime] = None
    items: List[FeedbackItem]
    rating: str
    comment: Optional[str] = None


class FeedbackCreate(BaseModel):
    userId: Optional[str] = None
    orderId: Optional[str] = None
    rating: Optional[str] = None
    comment: Optional[str] = None
    items: Optional[List[str]] = Field(None, description="Item ids to review; defaults to the whole order")

    @field_validator("rating", mode="before")
    @classmethod
    def check_rating(cls, v):
        return None if v is None else rating_text(v)

    @field_validator("items", mode="before")
    @classmethod
    def item_ids(cls, v):
        if isinstance(v, list):
            return [str(i.get("itemId", "")) if isinstance(i, dict) else str(i) for i in v]
        return v


class FeedbackUpdate(BaseModel):
    rating: Optional[str] = None
    comment: Optional[str] = None

    @field_validator("rating", mode="before")
    @classmethod
    def check_rating(cls, v):
        return None if v is None else rating_text(v)


# -----------------------------
# Designs
# -----------------------------
class Design(BaseModel):
    userId: str
    imageUrl: str = Field(..., min_length=1)
    clothingType: ClothingType = "tshirt"
    prompt: str = ""
    previewType: Literal["2d", "3d"] = "2d"
    isFavorite: bool = False
    modelPath: Optional[str] = None


class DesignCreate(BaseModel):
    imageUrl: str = Field(..., min_length=1)
    clothingType: ClothingType = "tshirt"
    prompt: str = ""
    previewType: Literal["2d", "3d"] = "2d"
    modelPath: Optional[str] = None
