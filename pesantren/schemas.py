"""
Request Schemas

Pydantic models validating the JSON bodies accepted by the API. Field names
follow the camelCase keys the clients send and the documents store.

Create schemas carry the required fields; the matching Update schemas make
every field optional and are dumped with `exclude_unset=True` so a PUT only
touches the fields it names.
"""

from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

class ChatMessageCreate(BaseModel):
    chatId: str = Field(..., min_length=1, description="Chat the message belongs to")
    text: str = Field(..., min_length=1, max_length=1000, description="Message body")


class ChatCreate(BaseModel):
    participantId: str = Field(..., min_length=1, description="The other participant")
    participantName: str = Field(..., min_length=1, description="Display name of the other participant")


class MessageStatusUpdate(BaseModel):
    status: Literal["delivered", "read"]


# ---------------------------------------------------------------------------
# Classes
# ---------------------------------------------------------------------------

TIME_PATTERN = r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$"


def _minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


class ScheduleSchema(BaseModel):
    days: List[str] = Field(..., min_length=1, max_length=6, description="Pilih 1 sampai 6 hari")
    startTime: str = Field(..., pattern=TIME_PATTERN, description="HH:MM")
    endTime: str = Field(..., pattern=TIME_PATTERN, description="HH:MM")

    @field_validator("startTime", "endTime")
    @classmethod
    def pad_time(cls, value: str) -> str:
        # stored times are compared as strings, so "9:00" becomes "09:00"
        hours, minutes = value.split(":")
        return f"{int(hours):02d}:{minutes}"

    @model_validator(mode="after")
    def check_duration(self) -> "ScheduleSchema":
        duration = _minutes(self.endTime) - _minutes(self.startTime)
        if duration <= 0:
            raise ValueError("Waktu selesai harus setelah waktu mulai")
        if not 30 <= duration <= 360:
            raise ValueError("Durasi kelas minimal 30 menit dan maksimal 6 jam")
        return self


CLASS_NAME_PATTERN = r"^[a-zA-Z0-9\s\-]+$"
ACADEMIC_YEAR_PATTERN = r"^\d{4}/\d{4}$"


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=50, pattern=CLASS_NAME_PATTERN, description="Nama kelas")
    academicYear: str = Field(..., pattern=ACADEMIC_YEAR_PATTERN, description="YYYY/YYYY")
    ustadId: str = Field(..., min_length=1, description="Pengajar")
    schedule: ScheduleSchema
    studentIds: List[str] = Field(..., min_length=1, max_length=50, description="1 sampai 50 santri")


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=50, pattern=CLASS_NAME_PATTERN)
    academicYear: Optional[str] = Field(None, pattern=ACADEMIC_YEAR_PATTERN)
    ustadId: Optional[str] = Field(None, min_length=1)
    schedule: Optional[ScheduleSchema] = None
    studentIds: Optional[List[str]] = Field(None, min_length=1, max_length=50)
    status: Optional[Literal["active", "inactive"]] = None


class SubjectList(BaseModel):
    subjects: List[str] = Field(..., description="Subject names taught in the class")


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

class AcademicReportCreate(BaseModel):
    studentId: str = Field(..., min_length=1, description="ID Santri")
    subject: str = Field(..., min_length=1, description="Mata pelajaran")
    gradeType: Literal["number", "letter", "description"]
    gradeNumber: Optional[float] = Field(None, ge=0, le=100)
    gradeLetter: Optional[Literal["A", "B", "C", "D", "E"]] = None
    gradeDescription: Optional[str] = None
    semester: str = Field(..., min_length=1)
    academicYear: str = Field(..., min_length=4)
    notes: Optional[str] = None
    attachments: Optional[List[str]] = None


class AcademicReportUpdate(BaseModel):
    studentId: Optional[str] = Field(None, min_length=1)
    subject: Optional[str] = Field(None, min_length=1)
    gradeType: Optional[Literal["number", "letter", "description"]] = None
    gradeNumber: Optional[float] = Field(None, ge=0, le=100)
    gradeLetter: Optional[Literal["A", "B", "C", "D", "E"]] = None
    gradeDescription: Optional[str] = None
    semester: Optional[str] = Field(None, min_length=1)
    academicYear: Optional[str] = Field(None, min_length=4)
    notes: Optional[str] = None
    attachments: Optional[List[str]] = None


FluencyLevel = Literal["excellent", "good", "fair", "poor"]


class QuranReportCreate(BaseModel):
    studentId: str = Field(..., min_length=1, description="ID Santri")
    surah: str = Field(..., min_length=1, description="Nama surat")
    ayatStart: int = Field(..., ge=1)
    ayatEnd: int = Field(..., ge=1)
    fluencyLevel: FluencyLevel
    testDate: str = Field(..., min_length=1)
    notes: Optional[str] = None
    nextAssignment: Optional[str] = None
    attachments: Optional[List[str]] = None


class QuranReportUpdate(BaseModel):
    studentId: Optional[str] = Field(None, min_length=1)
    surah: Optional[str] = Field(None, min_length=1)
    ayatStart: Optional[int] = Field(None, ge=1)
    ayatEnd: Optional[int] = Field(None, ge=1)
    fluencyLevel: Optional[FluencyLevel] = None
    testDate: Optional[str] = Field(None, min_length=1)
    notes: Optional[str] = None
    nextAssignment: Optional[str] = None
    attachments: Optional[List[str]] = None


BehaviorCategory = Literal["academic", "behavior", "discipline", "health", "other"]
Priority = Literal["low", "medium", "high", "critical"]
BehaviorStatus = Literal["open", "in_progress", "resolved", "closed"]


class BehaviorReportCreate(BaseModel):
    studentId: str = Field(..., min_length=1, description="ID Santri")
    category: BehaviorCategory
    priority: Priority
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=10, description="Deskripsi minimal 10 karakter")
    incidentDate: str = Field(..., min_length=1)
    location: Optional[str] = None
    actionTaken: Optional[str] = None
    status: BehaviorStatus = "open"
    followUpRequired: bool = False
    followUpDate: Optional[str] = None
    attachments: Optional[List[str]] = None


class BehaviorReportUpdate(BaseModel):
    studentId: Optional[str] = Field(None, min_length=1)
    category: Optional[BehaviorCategory] = None
    priority: Optional[Priority] = None
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=10)
    incidentDate: Optional[str] = Field(None, min_length=1)
    location: Optional[str] = None
    actionTaken: Optional[str] = None
    status: Optional[BehaviorStatus] = None
    followUpRequired: Optional[bool] = None
    followUpDate: Optional[str] = None
    attachments: Optional[List[str]] = None


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class NotificationCreate(BaseModel):
    type: Literal["behavior_report", "quran_report", "academic_report", "system"]
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    reportId: Optional[str] = None
    priority: Optional[Priority] = None
    targetRole: Optional[Literal["admin", "ustad", "orangtua"]] = None
    actionUrl: Optional[str] = None


class NotificationMarkRead(BaseModel):
    ids: List[Annotated[str, Field(min_length=1)]] = Field(..., min_length=1, description="ID notifikasi wajib diisi")


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------

class SantriEntry(BaseModel):
    """A child record kept inside a parent's `santri` map."""
    name: str = Field(..., min_length=1)
    nis: Optional[str] = None
    tahunDaftar: Optional[str] = None
    gender: Optional[str] = None
    tempatLahir: Optional[str] = None
    tanggalLahir: Optional[str] = None


class OrangtuaData(BaseModel):
    name: str = Field(..., min_length=3, description="Name must be at least 3 characters long")
    email: EmailStr
    password: str = Field(..., min_length=6, description="Password must be at least 6 characters long")
    phone: Optional[str] = None


class OrangtuaCreate(BaseModel):
    orangtuaData: OrangtuaData
    santriList: List[SantriEntry] = Field(default_factory=list)


class OrangtuaUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3)
    phone: Optional[str] = None
    newSantriList: List[SantriEntry] = Field(default_factory=list)


class UstadData(BaseModel):
    name: str = Field(..., min_length=3)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None
    specialization: Optional[str] = None


class UstadCreate(BaseModel):
    ustadData: UstadData


class UstadUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3)
    phone: Optional[str] = None
    specialization: Optional[str] = None


class EnhancedSantriCreate(BaseModel):
    name: str = Field(..., min_length=1, description="Nama santri wajib diisi")
    nis: str = Field(..., min_length=1, description="NIS wajib diisi")
    gender: Literal["L", "P"]
    tempatLahir: str = Field(..., min_length=1)
    tanggalLahir: str = Field(..., min_length=1)
    tahunDaftar: str = Field(..., min_length=1)
    orangTuaId: str = Field(..., min_length=1)


class EnhancedSantriUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    nis: Optional[str] = Field(None, min_length=1)
    gender: Optional[Literal["L", "P"]] = None
    tempatLahir: Optional[str] = Field(None, min_length=1)
    tanggalLahir: Optional[str] = Field(None, min_length=1)
    tahunDaftar: Optional[str] = Field(None, min_length=1)



# ---------------------------------------------------------------------------
# Registration and role requests
# ---------------------------------------------------------------------------

class RegistrationStudent(BaseModel):
    """Every child field is required when a parent signs up."""
    name: str = Field(..., min_length=1)
    nis: str = Field(..., min_length=1)
    tahunDaftar: str = Field(..., min_length=1)
    gender: Literal["L", "P"]
    tempatLahir: str = Field(..., min_length=1)
    tanggalLahir: str = Field(..., min_length=1)


class Registration(BaseModel):
    parentName: str = Field(..., min_length=3, max_length=120, description="Nama orang tua")
    email: EmailStr
    password: str = Field(..., min_length=6, description="Password minimal 6 karakter")
    phone: Optional[str] = Field(None, max_length=20)
    role: Literal["orangtua"] = "orangtua"
    students: List[RegistrationStudent] = Field(..., min_length=1, description="Data murid harus diisi")

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value: Optional[str]) -> Optional[str]:
        if value and len("".join(filter(str.isdigit, value))) < 10:
            raise ValueError("Nomor HP tidak valid")
        return value


class RoleRequestCreate(BaseModel):
    requestedRole: Literal["admin", "ustad", "orangtua"]
    reason: str = Field(..., min_length=1, max_length=500)


class RoleRequestDecision(BaseModel):
    action: Literal["approve", "reject"]
    adminNote: str = Field("", max_length=500)
