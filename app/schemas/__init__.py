from .schemas_exam_schedule import (
    CanonicalSchedule,
    DataSource,
    ExamScheduleCreate,
    ExamScheduleResponse,
    ExamScheduleUpdate,
    ExamType,
    InternalDeadline,
    OfficialSession,
    RegistrationStatus,
)

__all__ = [
    # reconciliation
    "ExamType",
    "DataSource",
    "OfficialSession",
    "InternalDeadline",
    "CanonicalSchedule",
    "RegistrationStatus",
    # api
    "ExamScheduleCreate",
    "ExamScheduleUpdate",
    "ExamScheduleResponse",
]
