"""Report exports to CSV, XLSX and PDF."""

import csv
import io
import logging
from xml.sax.saxutils import escape

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ('xlsx', 'pdf', 'csv')

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

# (header, document field) per report kind
EXPORT_COLUMNS = {
    'academic': [
        ('Santri', 'studentName'),
        ('Mata Pelajaran', 'subject'),
        ('Jenis Nilai', 'gradeType'),
        ('Nilai', 'grade'),
        ('Semester', 'semester'),
        ('Tahun Akademik', 'academicYear'),
        ('Ustad', 'ustadName'),
        ('Catatan', 'notes'),
        ('Dibuat', 'createdAt'),
    ],
    'quran': [
        ('Santri', 'studentName'),
        ('Surat', 'surah'),
        ('Ayat Awal', 'ayatStart'),
        ('Ayat Akhir', 'ayatEnd'),
        ('Kelancaran', 'fluencyLevel'),
        ('Tanggal Uji', 'testDate'),
        ('Tugas Berikutnya', 'nextAssignment'),
        ('Ustad', 'ustadName'),
        ('Catatan', 'notes'),
    ],
    'behavior': [
        ('Santri', 'studentName'),
        ('Kategori', 'category'),
        ('Prioritas', 'priority'),
        ('Judul', 'title'),
        ('Deskripsi', 'description'),
        ('Tanggal Kejadian', 'incidentDate'),
        ('Status', 'status'),
        ('Tindak Lanjut', 'followUpRequired'),
        ('Ustad', 'ustadName'),
    ],
}

TITLES = {
    'academic': 'Laporan Akademik',
    'quran': 'Laporan Hafalan Quran',
    'behavior': 'Laporan Perilaku',
}


def _cell(report, field):
    if field == 'grade':
        grade_type = report.get('gradeType')
        if grade_type == 'number':
            value = report.get('gradeNumber')
        elif grade_type == 'letter':
            value = report.get('gradeLetter')
        else:
            value = report.get('gradeDescription')
    else:
        value = report.get(field)
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'Ya' if value else 'Tidak'
    return value


def rows_for(kind, reports):
    """Header row followed by one row per report."""
    columns = EXPORT_COLUMNS[kind]
    rows = [[header for header, _ in columns]]
    for report in reports:
        rows.append([_cell(report, field) for _, field in columns])
    return rows


def to_csv(kind, reports):
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerows(rows_for(kind, reports))
    return output.getvalue().encode('utf-8')


def to_xlsx(kind, reports):
    wb = Workbook()
    ws = wb.active
    ws.title = TITLES[kind][:31]

    rows = rows_for(kind, reports)
    for row in rows:
        ws.append(row)

    header_font = Font(bold=True)
    header_fill = PatternFill(start_color='E0E0E0', end_color='E0E0E0', fill_type='solid')
    for index in range(1, len(rows[0]) + 1):
        cell = ws.cell(row=1, column=index)
        cell.font = header_font
        cell.fill = header_fill
        ws.column_dimensions[get_column_letter(index)].width = 20

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output.getvalue()


def to_pdf(kind, reports):
    output = io.BytesIO()
    doc = SimpleDocTemplate(
        output,
        pagesize=landscape(A4),
        rightMargin=36,
        leftMargin=36,
        topMargin=36,
        bottomMargin=36,
    )
    styles = getSampleStyleSheet()
    cell_style = styles['BodyText']
    cell_style.fontSize = 8
    cell_style.leading = 10

    rows = rows_for(kind, reports)
    data = [rows[0]] + [[Paragraph(escape(str(value)), cell_style) for value in row] for row in rows[1:]]

    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#E0E0E0')),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 8),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
    ]))

    story = [
        Paragraph(TITLES[kind], styles['Title']),
        Paragraph(f'Jumlah laporan: {len(reports)}', styles['Normal']),
        Spacer(1, 12),
        table,
    ]
    doc.build(story)
    return output.getvalue()


def export_reports(kind, reports, fmt):
    """Render reports as `fmt`. Returns (payload, mimetype, filename)."""
    if fmt == 'xlsx':
        payload, mimetype = to_xlsx(kind, reports), XLSX_MIMETYPE
    elif fmt == 'pdf':
        payload, mimetype = to_pdf(kind, reports), 'application/pdf'
    elif fmt == 'csv':
        payload, mimetype = to_csv(kind, reports), 'text/csv'
    else:
        raise ValueError(f'Unsupported export format: {fmt}')
    logger.info('Exported %d %s reports as %s', len(reports), kind, fmt)
    return payload, mimetype, f'laporan_{kind}.{fmt}'
