import logging

from flask import Blueprint, Response, abort, jsonify, request
from pydantic import ValidationError

from pesantren.api_utils import json_body, page_args, paginate, validation_error
from pesantren.decorators import get_current_user, role_required
from pesantren import firestore_dao as dao
from pesantren.services import reports as report_service
from pesantren.services.exports import EXPORT_FORMATS, export_reports

logger = logging.getLogger(__name__)

bp = Blueprint('reports', __name__, url_prefix='/api/reports')


def _check_kind(kind):
    if kind not in report_service.LABELS:
        abort(404)


@bp.route('/<kind>', methods=['GET'])
@role_required('admin', 'ustad')
def list_reports(kind):
    _check_kind(kind)
    user = get_current_user()
    page, limit = page_args()

    reports = report_service.visible_reports(kind, user)
    reports = report_service.filter_reports(kind, reports, request.args)
    reports = report_service.sort_reports(kind, reports)

    items, total, total_pages = paginate(reports, page, limit)
    return jsonify({
        'reports': items,
        'total': total,
        'page': page,
        'limit': limit,
        'totalPages': total_pages,
    })


@bp.route('/<kind>', methods=['POST'])
@role_required('admin', 'ustad')
def create_report(kind):
    _check_kind(kind)
    user = get_current_user()
    create_schema, _ = report_service.SCHEMAS[kind]
    try:
        payload = create_schema.model_validate(json_body())
    except ValidationError as e:
        return validation_error(e)

    if user.is_ustad() and not report_service.can_access_student(user.uid, payload.studentId):
        return jsonify({'error': 'Anda tidak memiliki akses ke santri ini'}), 403

    student = dao.get_user(payload.studentId)
    if not student:
        return jsonify({'error': 'Santri tidak ditemukan'}), 404
    if student.get('role') != 'santri':
        return jsonify({'error': 'User yang dipilih bukan santri'}), 400

    now = dao.now_iso()
    report_data = payload.model_dump(exclude_none=True)
    report_data.update({
        'ustadId': user.uid,
        'ustadName': user.name or '',
        'studentName': student.get('name', ''),
        'createdAt': now,
        'updatedAt': now,
    })
    report_id = dao.create_report(report_service.collection_for(kind), report_data)
    logger.info('%s report %s created by %s', kind, report_id, user.uid)

    if kind == 'behavior':
        report_service.notify_high_priority(report_id, report_data)

    return jsonify({
        'message': f'{report_service.LABELS[kind]} berhasil dibuat',
        'reportId': report_id,
        'reportData': dict(report_data, id=report_id),
    })


@bp.route('/<kind>', methods=['PUT'])
@role_required('admin', 'ustad')
def update_report(kind):
    _check_kind(kind)
    user = get_current_user()
    report_id = request.args.get('id')
    if not report_id:
        return jsonify({'error': 'ID laporan wajib diisi'}), 400

    _, update_schema = report_service.SCHEMAS[kind]
    try:
        payload = update_schema.model_validate(json_body())
    except ValidationError as e:
        return validation_error(e)

    report = dao.get_report(report_service.collection_for(kind), report_id)
    if not report:
        return jsonify({'error': 'Laporan tidak ditemukan'}), 404
    if user.is_ustad() and report.get('ustadId') != user.uid:
        return jsonify({'error': 'Anda tidak dapat mengedit laporan ini'}), 403

    update_data = report_service.update_with_audit(
        kind, report_id, report, payload.model_dump(exclude_unset=True), user
    )
    logger.info('%s report %s updated by %s', kind, report_id, user.uid)

    return jsonify({
        'message': f'{report_service.LABELS[kind]} berhasil diperbarui',
        'reportId': report_id,
        'updateData': update_data,
    })


@bp.route('/<kind>', methods=['DELETE'])
@role_required('admin', 'ustad')
def delete_report(kind):
    _check_kind(kind)
    user = get_current_user()
    report_id = request.args.get('id')
    if not report_id:
        return jsonify({'error': 'ID laporan wajib diisi'}), 400

    report = dao.get_report(report_service.collection_for(kind), report_id)
    if not report:
        return jsonify({'error': 'Laporan tidak ditemukan'}), 404
    if user.is_ustad() and report.get('ustadId') != user.uid:
        return jsonify({'error': 'Anda tidak dapat menghapus laporan ini'}), 403

    report_service.delete_with_archive(kind, report_id, report, user)
    logger.info('%s report %s deleted by %s', kind, report_id, user.uid)

    return jsonify({
        'message': f'{report_service.LABELS[kind]} berhasil dihapus',
        'reportId': report_id,
    })


@bp.route('/<kind>/export', methods=['GET'])
@role_required('admin', 'ustad')
def export(kind):
    _check_kind(kind)
    fmt = request.args.get('format', 'xlsx')
    if fmt not in EXPORT_FORMATS:
        return jsonify({'error': f'Format tidak didukung: {fmt}'}), 400

    user = get_current_user()
    reports = report_service.visible_reports(kind, user)
    reports = report_service.filter_reports(kind, reports, request.args)
    reports = report_service.sort_reports(kind, reports)

    payload, mimetype, filename = export_reports(kind, reports, fmt)
    return Response(
        payload,
        mimetype=mimetype,
        headers={'Content-Disposition': f'attachment; filename={filename}'}
    )
