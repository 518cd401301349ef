import logging
import re

from flask import Blueprint, jsonify, request
from pydantic import ValidationError

from pesantren.api_utils import json_body, page_args, paginate, validation_error
from pesantren.decorators import get_current_user, role_required
from pesantren import firestore_dao as dao
from pesantren.firestore_models import Classroom, Schedule
from pesantren.schemas import ClassCreate, ClassUpdate, SubjectList

logger = logging.getLogger(__name__)

bp = Blueprint('classes', __name__, url_prefix='/api/classes')


def find_schedule_conflict(ustad_id, schedule, exclude_class_id=None):
    """Return conflict details for the first class of the same ustad whose
    schedule overlaps, or None."""
    for data in dao.get_classes_by_ustad(ustad_id):
        if exclude_class_id and data['id'] == exclude_class_id:
            continue
        existing = Classroom.from_dict(data, data['id'])
        if schedule.overlaps(existing.schedule):
            return {
                'conflict': True,
                'className': existing.name,
                'conflictSchedule': existing.schedule.to_dict(),
            }
    return None


def _load_ustad(ustad_id):
    """Returns (ustad, error_response)."""
    ustad = dao.get_user(ustad_id)
    if not ustad:
        return None, (jsonify({'error': 'Pengajar tidak ditemukan'}), 404)
    if ustad.get('role') != 'ustad':
        return None, (jsonify({'error': 'User yang dipilih bukan pengajar'}), 400)
    return ustad, None


def _conflict_response(conflict):
    return jsonify({'error': 'Jadwal bertentangan dengan kelas lain', 'conflict': conflict}), 409


@bp.route('', methods=['GET'])
@role_required('admin', 'ustad')
def list_classes():
    user = get_current_user()
    academic_year = request.args.get('academicYear')
    ustad_filter = request.args.get('ustadId')
    page, limit = page_args()

    if user.is_ustad():
        classes = dao.get_classes_by_ustad(user.uid)
    else:
        classes = dao.get_all_classes()

    result = []
    for data in classes:
        if academic_year and data.get('academicYear') != academic_year:
            continue
        if ustad_filter and data.get('ustadId') != ustad_filter:
            continue
        data['studentCount'] = Classroom.from_dict(data).student_count
        result.append(data)

    items, total, total_pages = paginate(result, page, limit)
    return jsonify({
        'classes': items,
        'total': total,
        'page': page,
        'limit': limit,
        'totalPages': total_pages,
    })


@bp.route('', methods=['POST'])
@role_required('admin')
def create_class():
    user = get_current_user()
    try:
        payload = ClassCreate.model_validate(json_body())
    except ValidationError as e:
        return validation_error(e)

    ustad, error = _load_ustad(payload.ustadId)
    if error:
        return error

    schedule = Schedule.from_dict(payload.schedule.model_dump())
    conflict = find_schedule_conflict(payload.ustadId, schedule)
    if conflict:
        return _conflict_response(conflict)

    for existing in dao.get_classes_by_ustad(payload.ustadId):
        if existing.get('name') == payload.name and existing.get('academicYear') == payload.academicYear:
            return jsonify({
                'error': 'Kelas dengan nama, tahun akademik, dan pengajar yang sama sudah ada',
            }), 409

    now = dao.now_iso()
    class_data = {
        'name': payload.name,
        'academicYear': payload.academicYear,
        'ustadId': payload.ustadId,
        'ustadName': ustad.get('name', ''),
        'schedule': schedule.to_dict(),
        'studentIds': Classroom.enrollment_map(payload.studentIds, now),
        'createdAt': now,
        'createdBy': user.uid,
        'createdByName': user.name,
        'status': 'active',
    }
    class_id = dao.create_class(class_data)
    logger.info('Class %s created by %s', class_id, user.uid)

    return jsonify({
        'message': 'Kelas berhasil dibuat',
        'classId': class_id,
        'classData': dict(class_data, id=class_id),
    })


@bp.route('', methods=['PUT'])
@role_required('admin')
def update_class():
    user = get_current_user()
    class_id = request.args.get('id')
    if not class_id:
        return jsonify({'error': 'ID kelas wajib diisi'}), 400

    try:
        payload = ClassUpdate.model_validate(json_body())
    except ValidationError as e:
        return validation_error(e)

    existing = dao.get_class(class_id)
    if not existing:
        return jsonify({'error': 'Kelas tidak ditemukan'}), 404
    current = Classroom.from_dict(existing, class_id)

    update_data = payload.model_dump(exclude_unset=True, exclude_none=True)

    if 'ustadId' in update_data and update_data['ustadId'] != current.ustad_id:
        ustad, error = _load_ustad(update_data['ustadId'])
        if error:
            return error
        update_data['ustadName'] = ustad.get('name', '')

    if 'schedule' in update_data or 'ustadId' in update_data:
        schedule = Schedule.from_dict(update_data['schedule']) if 'schedule' in update_data else current.schedule
        conflict = find_schedule_conflict(update_data.get('ustadId', current.ustad_id), schedule, class_id)
        if conflict:
            return _conflict_response(conflict)

    now = dao.now_iso()
    if 'studentIds' in update_data:
        update_data['studentIds'] = Classroom.enrollment_map(
            update_data['studentIds'], now, existing=current.student_ids
        )

    update_data.update({
        'updatedAt': now,
        'updatedBy': user.uid,
        'updatedByName': user.name,
    })
    dao.update_class(class_id, update_data)
    logger.info('Class %s updated by %s', class_id, user.uid)

    return jsonify({
        'message': 'Data kelas berhasil diperbarui',
        'classId': class_id,
        'updateData': update_data,
    })


@bp.route('', methods=['DELETE'])
@role_required('admin')
def delete_class():
    class_id = request.args.get('id')
    if not class_id:
        return jsonify({'error': 'ID kelas wajib diisi'}), 400

    if not dao.get_class(class_id):
        return jsonify({'error': 'Kelas tidak ditemukan'}), 404

    dao.delete_class(class_id)
    logger.info('Class %s deleted', class_id)
    return jsonify({'message': 'Kelas berhasil dihapus', 'classId': class_id})


# ---------------------------------------------------------------------------
# Subjects
# ---------------------------------------------------------------------------

_NOT_A_SUBJECT = re.compile(r'^(Kelas \d+|[A-Z]|\d+)$')


def _slug(name):
    return re.sub(r'\s+', '-', name.lower())


def class_subjects(class_id, class_data, ustad=None):
    """Stored subjects, the subject named in the class title ("Kelas 1 -
    Fiqih") and the ustad's specialization list, without duplicates."""
    class_name = class_data.get('name', '')
    subjects = []

    def add(name, id_):
        if any(s['name'].lower() == name.lower() for s in subjects):
            return
        subjects.append({'id': id_, 'name': name, 'classId': class_id, 'className': class_name})

    for name in class_data.get('subjects') or []:
        add(name, f'{class_id}-{_slug(name)}')

    subject_name = class_name.split(' - ')[-1].strip()
    if len(subject_name) > 1 and not _NOT_A_SUBJECT.match(subject_name):
        add(subject_name, f'{class_id}-{_slug(subject_name)}')

    specialization = (ustad or {}).get('specialization') or ''
    for name in (s.strip() for s in specialization.split(',')):
        if name:
            add(name, f'{class_id}-spec-{_slug(name)}')

    return subjects


@bp.route('/<class_id>/subjects', methods=['GET'])
@role_required('admin', 'ustad')
def get_subjects(class_id):
    user = get_current_user()
    class_data = dao.get_class(class_id)
    if not class_data:
        return jsonify({
            'subjects': [],
            'total': 0,
            'message': f'Class {class_id} not found, using default subjects',
        })

    if user.is_ustad() and class_data.get('ustadId') != user.uid:
        return jsonify({'error': 'Unauthorized'}), 401

    ustad = dao.get_user(class_data.get('ustadId'))
    subjects = class_subjects(class_id, class_data, ustad)
    return jsonify({'subjects': subjects, 'total': len(subjects)})


@bp.route('/<class_id>/subjects', methods=['POST'])
@role_required('admin')
def set_subjects(class_id):
    try:
        payload = SubjectList.model_validate(json_body())
    except ValidationError as e:
        return validation_error(e)

    if not dao.get_class(class_id):
        return jsonify({'error': 'Kelas tidak ditemukan'}), 404

    names = [name.strip() for name in payload.subjects if name.strip()]
    dao.update_class(class_id, {'subjects': names})
    return jsonify({'message': 'Mata pelajaran berhasil disimpan', 'subjects': names})
