"""
Firestore document models using Python dataclasses.

Models include:
  - An `id` field for the Firestore document ID
  - A `to_dict()` instance method for serialization (camelCase keys, as
    stored in Firestore)
  - A `from_dict(data, doc_id)` classmethod where documents are read back
  - Sensible defaults for all fields

Timestamps are ISO-8601 strings on the documents; `_parse_datetime` turns
them into aware datetimes wherever the code needs to compare them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


MESSAGE_STATUSES = ('sent', 'delivered', 'read')

# report kind -> collection name
REPORT_COLLECTIONS = {
    'academic': 'academicReports',
    'quran': 'quranReports',
    'behavior': 'behaviorReports',
}


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------

def _parse_datetime(value) -> Optional[datetime]:
    """Convert a value to an aware datetime. Accepts datetime objects,
    ISO-format strings, and Firestore DatetimeWithNanoseconds objects."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        # Handle ISO format strings (with or without trailing Z)
        value = value.replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(value)
        except (ValueError, TypeError):
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def parse_datetime(value) -> Optional[datetime]:
    return _parse_datetime(value)


def _clock_minutes(value) -> Optional[int]:
    """Minutes since midnight for an "H:MM" or "HH:MM" string."""
    try:
        hours, minutes = str(value).split(":")
        return int(hours) * 60 + int(minutes)
    except ValueError:
        return None


# ===========================================================================
# 1. User
# ===========================================================================

@dataclass
class User:
    id: Optional[str] = None
    name: str = ""
    email: str = ""
    role: str = "orangtua"
    phone: Optional[str] = None
    specialization: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "phone": self.phone or "",
        }
        if self.created_at:
            data["createdAt"] = self.created_at
        if self.specialization is not None:
            data["specialization"] = self.specialization
        return data


# ===========================================================================
# 2. Class schedule / Class
# ===========================================================================

@dataclass
class Schedule:
    days: List[str] = field(default_factory=list)
    start_time: str = ""
    end_time: str = ""

    def overlaps(self, other: Schedule) -> bool:
        """Two schedules clash when they share a day and their HH:MM ranges
        intersect (end times are exclusive)."""
        if not set(self.days) & set(other.days):
            return False
        bounds = [_clock_minutes(t) for t in (self.start_time, self.end_time, other.start_time, other.end_time)]
        if None in bounds:
            return False
        start, end, other_start, other_end = bounds
        return start < other_end and end > other_start

    def to_dict(self) -> Dict[str, Any]:
        return {"days": list(self.days), "startTime": self.start_time, "endTime": self.end_time}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Schedule:
        data = data or {}
        return cls(
            days=list(data.get("days") or []),
            start_time=data.get("startTime", ""),
            end_time=data.get("endTime", ""),
        )


@dataclass
class Classroom:
    id: Optional[str] = None
    name: str = ""
    academic_year: str = ""
    ustad_id: str = ""
    ustad_name: str = ""
    schedule: Schedule = field(default_factory=Schedule)
    student_ids: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    status: str = "active"

    @property
    def student_count(self) -> int:
        return len(self.student_ids)

    def enrolls(self, student_id: str) -> bool:
        return student_id in self.student_ids

    @staticmethod
    def enrollment_map(student_ids, enrolled_at, existing=None) -> Dict[str, Dict[str, Any]]:
        """Build the studentId -> {enrolledAt, status} map, keeping entries
        that already exist."""
        existing = existing or {}
        result = {}
        for student_id in student_ids:
            result[student_id] = existing.get(student_id) or {
                "enrolledAt": enrolled_at,
                "status": "active",
            }
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Classroom:
        student_ids = data.get("studentIds") or {}
        if isinstance(student_ids, list):
            student_ids = {sid: {} for sid in student_ids}
        return cls(
            id=doc_id or data.get("id"),
            name=data.get("name", ""),
            academic_year=data.get("academicYear", ""),
            ustad_id=data.get("ustadId", ""),
            ustad_name=data.get("ustadName", ""),
            schedule=Schedule.from_dict(data.get("schedule")),
            student_ids=student_ids,
            status=data.get("status", "active"),
        )


# ===========================================================================
# 3. Chat / Message
# ===========================================================================

@dataclass
class Chat:
    id: Optional[str] = None
    participant1_id: str = ""
    participant1_name: str = ""
    participant2_id: str = ""
    participant2_name: str = ""
    last_message: str = ""
    last_message_time: Optional[str] = None
    created_at: Optional[str] = None

    def has_participant(self, uid: str) -> bool:
        return uid in (self.participant1_id, self.participant2_id)

    def other_participant(self, uid: str):
        """Return (id, name) of the participant who is not `uid`."""
        if self.participant1_id == uid:
            return self.participant2_id, self.participant2_name
        return self.participant1_id, self.participant1_name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "participant1Id": self.participant1_id,
            "participant1Name": self.participant1_name,
            "participant2Id": self.participant2_id,
            "participant2Name": self.participant2_name,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Chat:
        return cls(
            id=doc_id or data.get("id"),
            participant1_id=data.get("participant1Id", ""),
            participant1_name=data.get("participant1Name", ""),
            participant2_id=data.get("participant2Id", ""),
            participant2_name=data.get("participant2Name", ""),
            last_message=data.get("lastMessage", ""),
            last_message_time=data.get("lastMessageTime"),
            created_at=data.get("createdAt"),
        )


@dataclass
class Message:
    id: Optional[str] = None
    text: str = ""
    sender_id: str = ""
    sender_name: str = ""
    created_at: Optional[str] = None
    status: str = "sent"
    status_timestamp: Dict[str, str] = field(default_factory=dict)

    @staticmethod
    def rank(status: Optional[str]) -> int:
        try:
            return MESSAGE_STATUSES.index(status)
        except ValueError:
            return 0

    def is_below(self, status: str) -> bool:
        return self.rank(self.status) < self.rank(status)

    def advance(self, status: str, now: str) -> bool:
        """Move the message forward to `status`. Returns False when the
        message is already at or past it."""
        if not self.is_below(status):
            return False
        if status == "read" and "delivered" not in self.status_timestamp:
            self.status_timestamp["delivered"] = now
        self.status_timestamp[status] = now
        self.status = status
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "senderId": self.sender_id,
            "senderName": self.sender_name,
            "createdAt": self.created_at,
            "status": self.status,
            "statusTimestamp": dict(self.status_timestamp),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Message:
        status = data.get("status") or "sent"
        if status not in MESSAGE_STATUSES:
            status = "sent"
        return cls(
            id=doc_id or data.get("id"),
            text=data.get("text", ""),
            sender_id=data.get("senderId", ""),
            sender_name=data.get("senderName", ""),
            created_at=data.get("createdAt"),
            status=status,
            status_timestamp=dict(data.get("statusTimestamp") or {}),
        )


# ===========================================================================
# 4. Santri record (normalised from the parent link formats)
# ===========================================================================

@dataclass
class SantriRecord:
    id: str = ""
    name: str = ""
    nis: str = ""
    gender: str = ""
    tempat_lahir: str = ""
    tanggal_lahir: str = ""
    tahun_daftar: str = ""
    created_at: Optional[str] = None
    source: str = "object"
    parent_id: Optional[str] = None
    parent_name: str = ""
    parent_email: str = ""
    parent_phone: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Stored shape inside a parent's `santri` map."""
        return {
            "name": self.name,
            "nis": self.nis,
            "gender": self.gender,
            "tempatLahir": self.tempat_lahir,
            "tanggalLahir": self.tanggal_lahir,
            "tahunDaftar": self.tahun_daftar,
            "createdAt": self.created_at,
        }

    def to_listing(self) -> Dict[str, Any]:
        """Flattened view with the parent's contact details."""
        return {
            "id": self.id,
            "userId": self.parent_id,
            "name": self.name,
            "nis": self.nis,
            "jenisKelamin": self.gender,
            "tempatLahir": self.tempat_lahir,
            "tanggalLahir": self.tanggal_lahir,
            "tahunDaftar": self.tahun_daftar,
            "createdAt": self.created_at,
            "orangTuaId": self.parent_id,
            "orangTuaName": self.parent_name,
            "orangTuaEmail": self.parent_email,
            "orangTuaPhone": self.parent_phone,
            "dataSource": self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: str, source: str = "object") -> SantriRecord:
        return cls(
            id=doc_id,
            name=data.get("name", ""),
            nis=data.get("nis", "") or "",
            gender=data.get("gender") or data.get("jenisKelamin") or "",
            tempat_lahir=data.get("tempatLahir", "") or "",
            tanggal_lahir=data.get("tanggalLahir", "") or "",
            tahun_daftar=data.get("tahunDaftar") or data.get("entryYear") or "",
            created_at=data.get("createdAt"),
            source=source,
        )
