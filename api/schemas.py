from pydantic import BaseModel, Field
from typing import List, Literal, Optional, Union


STOP_CATEGORY = Literal["regular", "possible"]
TRANSFER_CLASSIFICATION = Literal["full_transfer", "partial_transfer", "no_transfer"]


class OptimizationRequest(BaseModel):
    # Optional so the planner reports the missing field itself (400, not 422)
    date: Optional[str] = None
    requesterId: Optional[Union[str, int]] = None
    useEnhancedStops: bool = False


class PassengerTransferItem(BaseModel):
    studentId: str
    studentName: str
    rollNumber: str
    currentStop: Optional[str] = None
    targetRoute: str
    targetRouteId: str
    matchingStop: str
    stopCategory: STOP_CATEGORY
    sourceRouteName: Optional[str] = None  # possible stops only
    availableCapacity: int
    matchTier: str
    transferType: Literal["regular_stop", "possible_stop"]


class UnmatchedPassengerItem(BaseModel):
    studentId: str
    studentName: Optional[str] = None
    currentStop: Optional[str] = None
    reason: str


class RouteOptimizationResultItem(BaseModel):
    routeId: str
    routeName: str
    routeNumber: Optional[str] = None
    currentPassengers: int
    transferablePassengers: int
    transferClassification: TRANSFER_CLASSIFICATION
    potentialSavings: int
    passengerTransfers: List[PassengerTransferItem]
    unmatchedPassengers: List[UnmatchedPassengerItem] = []
    enhancedStopsUsed: int


class OptimizationSummary(BaseModel):
    totalLowCrowdBuses: int
    totalPassengersAffected: int
    fullTransfers: int
    partialTransfers: int
    noTransfers: int
    potentialSavings: int
    enhancedStopsUsed: int


class RouteAnalysisItem(BaseModel):
    routeId: str
    routeName: str
    routeNumber: Optional[str] = None
    passengerCount: int
    loadCategory: Literal["no_bookings", "low_crowd", "normal"]


class OptimizationResponse(BaseModel):
    hasLowCrowdRoutes: Literal[True] = True
    optimizationId: Optional[int] = None  # None if the audit record could not be written
    optimizationDate: str
    createdBy: Optional[str] = None
    createdAt: Optional[str] = None
    summary: OptimizationSummary
    lowCrowdRoutes: List[RouteOptimizationResultItem]
    useEnhancedStops: bool
    routeAnalysis: List[RouteAnalysisItem] = []


class NoLowCrowdResponse(BaseModel):
    hasLowCrowdRoutes: Literal[False] = False
    message: str
    optimizationDate: str
    routeAnalysis: List[RouteAnalysisItem]


class OptimizationHistoryItem(BaseModel):
    optimizationId: int
    optimizationDate: str
    createdBy: str
    createdAt: str
    useEnhancedStops: bool
    summary: OptimizationSummary


class OptimizationRecordResponse(OptimizationHistoryItem):
    lowCrowdRoutes: List[RouteOptimizationResultItem]


# --- Stop Schemas ---

class StopItem(BaseModel):
    id: Optional[int] = None
    route_id: str
    stop_name: str
    stop_time: Optional[str] = None
    sequence_order: int
    stop_category: STOP_CATEGORY
    source_route_id: Optional[str] = None
    source_route_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_major_stop: bool = False


class RouteStopsResponse(BaseModel):
    routeId: str
    stops: List[StopItem]


class PossibleStopsResponse(BaseModel):
    possibleStops: List[StopItem]


class PossibleStopCandidate(BaseModel):
    # Required fields are checked by StopRegistry so the error names the field
    stop_name: Optional[str] = Field(None, max_length=120)
    stop_time: Optional[str] = Field(None, max_length=16)
    sequence_order: Optional[int] = Field(None, ge=0)
    source_route_id: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    is_major_stop: bool = False


class AddPossibleStopsRequest(BaseModel):
    possibleStops: Optional[List[PossibleStopCandidate]] = None


class SkippedStopItem(BaseModel):
    stop_name: str
    source_route_id: str


class AddPossibleStopsResponse(BaseModel):
    message: str
    addedCount: int
    skippedCount: int
    skippedStops: List[SkippedStopItem]
    data: List[StopItem]


class DeleteStopResponse(BaseModel):
    message: str


class SearchRouteInfo(BaseModel):
    id: str
    route_name: str
    route_number: Optional[str] = None


class SearchStopItem(BaseModel):
    id: int
    stop_name: str
    stop_time: Optional[str] = None
    sequence_order: int
    route_id: str
    is_major_stop: bool = False


class SearchStopGroup(BaseModel):
    route: SearchRouteInfo
    stops: List[SearchStopItem]


class SearchStopsResponse(BaseModel):
    stops: List[SearchStopGroup]
    totalCount: int
    message: str


# --- Parameter Schemas ---

class OptimizationParamsRequest(BaseModel):
    nominal_capacity: Optional[int] = Field(None, ge=1, le=200)
    low_crowd_threshold: Optional[int] = Field(None, ge=1, le=200)
    full_transfer_savings: Optional[int] = Field(None, ge=0)
    per_passenger_savings: Optional[int] = Field(None, ge=0)
    decrement_on_assign: Optional[bool] = None
    run_deadline_seconds: Optional[float] = Field(None, gt=0, le=600)


class OptimizationParamsResponse(BaseModel):
    nominal_capacity: int
    low_crowd_threshold: int
    full_transfer_savings: int
    per_passenger_savings: int
    decrement_on_assign: bool
    run_deadline_seconds: float
    landmark_keywords: List[str]
    location_tokens: List[str]
