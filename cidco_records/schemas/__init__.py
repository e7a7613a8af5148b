# Pydantic schemas
from cidco_records.schemas.auth import (
    UserLogin,
    UserResponse,
    LoginResponse,
    UserCreate,
    UpdatePasswordRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    ActionResponse,
)
from cidco_records.schemas.registry import (
    SearchRequest,
    SummaryRow,
    SummaryTotals,
    SummaryOverview,
    EvidenceBundle,
    MessageResponse,
)
