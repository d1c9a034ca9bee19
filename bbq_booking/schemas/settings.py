from pydantic import BaseModel
from typing import List, Optional

class TimeSlotIn(BaseModel):
    id: int
    name: str
    time: str  # HH:MM-HH:MM

class TimeSlotOut(TimeSlotIn):
    startTime: str
    endTime: str
    label: str

class PolicyIn(BaseModel):
    maxAdvanceBookingDays: Optional[int] = None
    minAdvanceBookingHours: Optional[int] = None
    cancellationDeadlineHours: Optional[int] = None
    cancellationPenaltyHours: Optional[int] = None
    # [[hours_upper_bound, rate], ...]
    cancellationFeeTiers: Optional[List[List[float]]] = None

class PolicyOut(BaseModel):
    maxAdvanceBookingDays: int
    minAdvanceBookingHours: int
    cancellationDeadlineHours: int
    cancellationPenaltyHours: int
    cancellationFeeTiers: List[List[float]]
    description: str = ""
