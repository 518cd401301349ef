"""Dashboard statistics for the admin and ustad dashboards."""

from datetime import datetime, timedelta, timezone

from pesantren import firestore_dao as dao
from pesantren.firestore_models import REPORT_COLLECTIONS, Classroom, parse_datetime

ONLINE_WINDOW = timedelta(minutes=30)
ACTIVE_CHAT_WINDOW = timedelta(hours=24)

# dashboard category -> report kind
CATEGORY_KINDS = {
    'hafalan': 'quran',
    'akademik': 'academic',
    'perilaku': 'behavior',
}


def _month_start(now):
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _week_start(now):
    # Weeks start on Sunday
    start = now - timedelta(days=(now.weekday() + 1) % 7)
    return start.replace(hour=0, minute=0, second=0, microsecond=0)


def _since(value, start):
    dt = parse_datetime(value)
    return dt is not None and dt >= start


def _count_active_chats(chats, now):
    return sum(1 for c in chats if _since(c.get('lastMessageTime'), now - ACTIVE_CHAT_WINDOW))


def admin_stats(now=None):
    now = now or datetime.now(timezone.utc)
    month_start = _month_start(now)

    users = dao.get_all_users()
    by_role = {'santri': 0, 'ustad': 0, 'orangtua': 0}
    new_this_month = 0
    ustad_online = 0
    for user in users:
        role = user.get('role')
        if role in by_role:
            by_role[role] += 1
        if _since(user.get('createdAt'), month_start):
            new_this_month += 1
        if role == 'ustad' and _since(user.get('lastActive'), now - ONLINE_WINDOW):
            ustad_online += 1

    classes = dao.get_all_classes()
    chats = dao.get_all_chats()

    total_reports = 0
    reports_this_month = 0
    for collection in REPORT_COLLECTIONS.values():
        for report in dao.get_reports(collection):
            total_reports += 1
            if _since(report.get('createdAt'), month_start):
                reports_this_month += 1

    return {
        'totalUsers': len(users),
        'totalSantri': by_role['santri'],
        'totalUstad': by_role['ustad'],
        'totalOrangtua': by_role['orangtua'],
        'totalClasses': len(classes),
        'activeClasses': sum(1 for c in classes if c.get('status') == 'active'),
        'totalChats': len(chats),
        'activeChats': _count_active_chats(chats, now),
        'newUsersThisMonth': new_this_month,
        'ustadOnline': ustad_online,
        'totalLaporan': total_reports,
        'laporanThisMonth': reports_this_month,
    }


def ustad_stats(ustad_id, now=None):
    now = now or datetime.now(timezone.utc)
    month_start = _month_start(now)
    week_start = _week_start(now)

    classes = dao.get_classes_by_ustad(ustad_id)
    student_ids = set()
    for cls in classes:
        student_ids.update(Classroom.from_dict(cls).student_ids)

    chats = dao.get_chats_for_user(ustad_id)

    total_reports = 0
    this_week = 0
    this_month = 0
    by_category = {}
    for category, kind in CATEGORY_KINDS.items():
        reports = dao.get_reports(REPORT_COLLECTIONS[kind], ustad_id=ustad_id)
        by_category[category] = len(reports)
        total_reports += len(reports)
        for report in reports:
            if _since(report.get('createdAt'), week_start):
                this_week += 1
            if _since(report.get('createdAt'), month_start):
                this_month += 1

    return {
        'totalClasses': len(classes),
        'totalStudents': len(student_ids),
        'totalChats': len(chats),
        'activeChats': _count_active_chats(chats, now),
        'totalLaporan': total_reports,
        'laporanThisWeek': this_week,
        'laporanThisMonth': this_month,
        'laporanByCategory': by_category,
    }
