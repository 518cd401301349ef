"""Report queries, ustad access checks and the audit / archive writes."""

import logging

from pesantren import firestore_dao as dao
from pesantren.firestore_models import REPORT_COLLECTIONS, Classroom
from pesantren.schemas import (
    AcademicReportCreate, AcademicReportUpdate,
    QuranReportCreate, QuranReportUpdate,
    BehaviorReportCreate, BehaviorReportUpdate,
)

logger = logging.getLogger(__name__)

LABELS = {
    'academic': 'Laporan akademik',
    'quran': 'Laporan hafalan Quran',
    'behavior': 'Laporan perilaku',
}

SCHEMAS = {
    'academic': (AcademicReportCreate, AcademicReportUpdate),
    'quran': (QuranReportCreate, QuranReportUpdate),
    'behavior': (BehaviorReportCreate, BehaviorReportUpdate),
}

# exact-match query parameters per kind
EXACT_FILTERS = {
    'academic': ('studentId', 'subject', 'semester', 'academicYear', 'ustadId'),
    'quran': ('studentId', 'fluencyLevel', 'ustadId'),
    'behavior': ('studentId', 'category', 'priority', 'status', 'ustadId'),
}

# field compared against dateFrom / dateTo, also the sort key
DATE_FIELDS = {
    'academic': 'createdAt',
    'quran': 'testDate',
    'behavior': 'incidentDate',
}


def collection_for(kind):
    return REPORT_COLLECTIONS[kind]


def filter_reports(kind, reports, args):
    """Apply the query-string filters for `kind` to a list of reports."""
    result = []
    date_field = DATE_FIELDS[kind]
    date_from = args.get('dateFrom')
    date_to = args.get('dateTo')
    surah = (args.get('surah') or '').lower() if kind == 'quran' else ''

    for report in reports:
        if any(args.get(f) and report.get(f) != args.get(f) for f in EXACT_FILTERS[kind]):
            continue
        if surah and surah not in (report.get('surah') or '').lower():
            continue
        if kind != 'academic':
            value = report.get(date_field) or ''
            if date_from and value < date_from:
                continue
            if date_to and value > date_to:
                continue
        result.append(report)
    return result


def sort_reports(kind, reports):
    # Quran reports sort on the test date, the others on creation time
    key = 'testDate' if kind == 'quran' else 'createdAt'
    return sorted(reports, key=lambda r: r.get(key) or '', reverse=True)


def visible_reports(kind, user):
    """Reports the acting admin or ustad may see."""
    ustad_id = user.uid if user.is_ustad() else None
    return dao.get_reports(collection_for(kind), ustad_id=ustad_id)


def can_access_student(ustad_id, student_id):
    """An ustad may report on students enrolled in one of their classes."""
    for data in dao.get_classes_by_ustad(ustad_id):
        if Classroom.from_dict(data).enrolls(student_id):
            return True
    return False


def notify_high_priority(report_id, report):
    """Admin notification for high and critical behavior reports."""
    priority = report.get('priority')
    if priority not in ('high', 'critical'):
        return None
    label = 'Kritis' if priority == 'critical' else 'Prioritas Tinggi'
    notification_id = dao.create_notification({
        'type': 'behavior_report',
        'title': f"Laporan {label}: {report.get('title', '')}",
        'message': (f"Santri {report.get('studentName', '')} memiliki laporan "
                    f"{report.get('category', '')} dengan prioritas {priority}"),
        'reportId': report_id,
        'priority': priority,
        'targetRole': 'admin',
    })
    logger.info('Notification %s created for behavior report %s', notification_id, report_id)
    return notification_id


def update_with_audit(kind, report_id, previous, changes, user):
    """Record the previous version in the audit trail, then apply changes."""
    collection = collection_for(kind)
    previous = {k: v for k, v in previous.items() if k != 'id'}
    dao.add_audit_entry(collection, report_id, {
        'action': 'update',
        'previousData': previous,
        'updatedBy': user.uid,
        'updatedByName': user.name or '',
    })
    update_data = dict(changes)
    update_data.update({
        'updatedAt': dao.now_iso(),
        'updatedBy': user.uid,
        'updatedByName': user.name or '',
    })
    dao.update_report(collection, report_id, update_data)
    return update_data


def delete_with_archive(kind, report_id, report, user):
    """Archive the report under deletedReports/{kind}, then remove it."""
    dao.archive_deleted_report(kind, {
        'originalReportId': report_id,
        'reportData': {k: v for k, v in report.items() if k != 'id'},
        'deletedBy': user.uid,
        'deletedByName': user.name or '',
    })
    dao.delete_report(collection_for(kind), report_id)
