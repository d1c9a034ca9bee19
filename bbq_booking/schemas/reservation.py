from datetime import date
from pydantic import BaseModel, Field
from typing import List, Optional, Dict

class QuoteIn(BaseModel):
    facilityId: str
    reservationDate: date
    timeSlots: List[int] = Field(default_factory=list)

class QuoteOut(BaseModel):
    amount: int
    unitPrice: int
    slotCount: int
    isWeekend: bool

class SiteAvailabilityOut(BaseModel):
    siteName: str = ""
    siteNumber: str = ""
    occupiedSlots: List[int]
    availableSlots: List[int]

class AvailabilityOut(BaseModel):
    facilityId: str
    date: date
    sites: Dict[str, SiteAvailabilityOut]

class ReservationCreate(BaseModel):
    facilityId: str
    siteId: str
    reservationDate: date
    timeSlots: List[int]
    # guest fields are ignored when the request carries a customer's bearer token
    guestName: Optional[str] = None
    guestPhone: Optional[str] = None
    guestEmail: Optional[str] = None  # plain str to allow .local and other dev domains
    specialRequests: Optional[str] = None

class ReservationCreated(BaseModel):
    reservationId: str
    amount: int
    status: str
    paymentStatus: str
    timeSlots: List[int]
    timeSlotLabels: List[str] = []

class ReservationOut(BaseModel):
    id: str
    facilityId: str
    siteId: str
    reservationDate: date
    timeSlots: List[int]
    timeSlotLabels: List[str] = []
    totalAmount: int
    status: str
    paymentStatus: str
    userId: Optional[str] = None
    guestName: Optional[str] = None
    guestPhone: Optional[str] = None
    guestEmail: Optional[str] = None
    specialRequests: Optional[str] = None
    cancellationReason: Optional[str] = None
    cancellationFee: Optional[int] = None
    refundAmount: Optional[int] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    cancelledAt: Optional[str] = None

class AdminReservationOut(ReservationOut):
    adminMemo: Optional[str] = None

class TransitionIn(BaseModel):
    action: str  # approve | reject | cancel | mark_refunded
    memo: Optional[str] = None

class GuestCancelIn(BaseModel):
    guestPhone: Optional[str] = None
    reason: Optional[str] = None

class TransitionOut(BaseModel):
    reservationId: str
    status: str
    paymentStatus: str
    cancellationFee: Optional[int] = None
    refundAmount: Optional[int] = None

class CancellationQuoteOut(BaseModel):
    allowed: bool
    feeAmount: int
    refundAmount: int
    feeRate: float
    penaltyApplied: bool = False
    reason: Optional[str] = None
