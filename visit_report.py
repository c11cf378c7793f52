"""
Visit Report Module

Renders the visit analytics into a PDF with reportlab:
- the "Mingguan", "Bulanan" and "Tahunan" statistics cards with trend arrows
- the overall visit summary and the visitor category distribution
- the current page of the visit table (header row repeated across pages)
- the month calendar of booking requests and scheduled events, at most two
  entries per day followed by a "+N lainnya" line

Usage:
    from visit_report import create_visit_report

    create_visit_report(
        "laporan_kunjungan.pdf",
        stats=calculate_all_period_stats(visits, now=now),
        page_result=paginate_visits(visits),
        cells=build_month_grid(2025, 3, bookings, events),
        year=2025,
        month=3,
    )
"""

import logging
from datetime import datetime
from typing import Any, List, Optional, TYPE_CHECKING
from xml.sax.saxutils import escape

if TYPE_CHECKING:
    from reportlab.platypus import Flowable

from reportlab.graphics.shapes import Drawing, Rect, String
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import (
    SimpleDocTemplate,
    Paragraph,
    Spacer,
    Table,
    TableStyle,
    PageBreak,
)

from constants import (
    DAY_NAMES_SHORT_ID,
    DAYS_IN_WEEK,
    VISITOR_CATEGORIES,
    VISITOR_CATEGORY_LABELS,
    VISITOR_CATEGORY_DESCRIPTIONS,
    PageLayoutMM,
    FontSizes,
)
from calendar_day_bucket_merger import CalendarDayCell, format_month_title
from date_utilities import format_date_only, format_number_id, get_current_datetime
from period_comparison_calculator import (
    CategoryShare,
    PeriodStats,
    TrendDirection,
    VisitSummary,
    get_trend_direction,
    format_change_text,
)
from table_pagination import PageResult

logger = logging.getLogger(__name__)


# Trend colors
TREND_UP_COLOR = colors.HexColor("#059669")    # Emerald green
TREND_DOWN_COLOR = colors.HexColor("#DC2626")  # Red
TREND_FLAT_COLOR = colors.HexColor("#6B7280")  # Gray

# Table styling colors
TABLE_HEADER_BG = colors.HexColor("#1F2937")
TABLE_HEADER_TEXT = colors.white
TABLE_ROW_ALT_BG = colors.HexColor("#F9FAFB")
TABLE_ROW_EVEN_BG = colors.white
TABLE_BORDER_COLOR = colors.HexColor("#D1D5DB")

CALENDAR_PADDING_BG = colors.HexColor("#F3F4F6")
CALENDAR_TODAY_BG = colors.HexColor("#DBEAFE")

CARD_ACCENT_COLORS = (
    colors.HexColor("#3B82F6"),  # Mingguan
    colors.HexColor("#22C55E"),  # Bulanan
    colors.HexColor("#8B5CF6"),  # Tahunan
)


def get_trend_color(trend: TrendDirection):
    """Get the reportlab color for a trend direction."""
    if trend == TrendDirection.UP:
        return TREND_UP_COLOR
    elif trend == TrendDirection.DOWN:
        return TREND_DOWN_COLOR
    else:
        return TREND_FLAT_COLOR


def get_arrow_symbol(trend: TrendDirection) -> str:
    """Get the arrow symbol for a trend direction ("" without comparison)."""
    if trend == TrendDirection.UP:
        return "↑"
    elif trend == TrendDirection.DOWN:
        return "↓"
    elif trend == TrendDirection.FLAT:
        return "→"
    return ""


def get_table_base_style() -> list:
    """Base TableStyle commands shared by the report tables."""
    return [
        ('GRID', (0, 0), (-1, -1), 0.5, TABLE_BORDER_COLOR),
        ('LINEBELOW', (0, 0), (-1, 0), 1.5, TABLE_HEADER_BG),
        ('BACKGROUND', (0, 0), (-1, 0), TABLE_HEADER_BG),
        ('TEXTCOLOR', (0, 0), (-1, 0), TABLE_HEADER_TEXT),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), FontSizes.TABLE_HEADER),
        ('FONTSIZE', (0, 1), (-1, -1), FontSizes.TABLE_BODY),
        ('TOPPADDING', (0, 0), (-1, -1), 5),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ]


def apply_alternating_row_colors(table_style: list, num_data_rows: int, start_row: int = 1) -> list:
    """Append alternating row backgrounds for the data rows of a table."""
    for i in range(num_data_rows):
        row_idx = start_row + i
        background = TABLE_ROW_EVEN_BG if i % 2 == 0 else TABLE_ROW_ALT_BG
        table_style.append(('BACKGROUND', (0, row_idx), (-1, row_idx), background))
    return table_style


def create_stat_card(stats: PeriodStats, width: float = 160, height: float = 70,
                     accent_color=CARD_ACCENT_COLORS[0]) -> Drawing:
    """Create one statistics card.

    The card shows the period total, the card title, the period line and,
    when a comparison was requested, the colored change with a trend arrow.

    Args:
        stats: PeriodStats of the card
        width: Card width in points
        height: Card height in points
        accent_color: Color of the left accent bar

    Returns:
        Drawing object representing the card
    """
    drawing = Drawing(width, height)

    drawing.add(Rect(0, 0, width, height,
                     fillColor=colors.white, strokeColor=TABLE_BORDER_COLOR, strokeWidth=0.5))
    drawing.add(Rect(0, 0, 4, height, fillColor=accent_color, strokeColor=None))

    drawing.add(String(12, height - 16, stats.label,
                       fontName='Helvetica-Bold', fontSize=9,
                       fillColor=colors.HexColor("#374151")))
    drawing.add(String(12, height - 36, format_number_id(stats.value),
                       fontName='Helvetica-Bold', fontSize=18,
                       fillColor=colors.HexColor("#111827")))
    drawing.add(String(12, height - 50, stats.period,
                       fontName='Helvetica', fontSize=7,
                       fillColor=colors.HexColor("#6B7280")))

    if stats.comparison is not None:
        trend = get_trend_direction(stats)
        change_text = f"{get_arrow_symbol(trend)} {format_change_text(stats.comparison)}".strip()
        drawing.add(String(12, 8, change_text,
                           fontName='Helvetica-Bold', fontSize=7,
                           fillColor=get_trend_color(trend)))

    return drawing


def create_stat_cards_row(stats: List[PeriodStats], width: float = 500) -> Table:
    """Lay the statistics cards out side by side."""
    card_spacing = 8
    column_width = width / max(len(stats), 1)

    cards = [
        create_stat_card(s, width=column_width - card_spacing,
                         accent_color=CARD_ACCENT_COLORS[i % len(CARD_ACCENT_COLORS)])
        for i, s in enumerate(stats)
    ]

    row = Table([cards], colWidths=[column_width] * len(cards))
    row.setStyle(TableStyle([
        ('LEFTPADDING', (0, 0), (-1, -1), 0),
        ('RIGHTPADDING', (0, 0), (-1, -1), 0),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
    ]))
    return row


def create_summary_table(summary: VisitSummary) -> Table:
    data = [
        ["Total Pengunjung", "Jumlah Hari", "Rata-rata per Hari", "Hari Tertinggi"],
        [
            format_number_id(summary.total_visitors),
            format_number_id(summary.total_days),
            format_number_id(summary.average_per_day),
            f"{format_number_id(summary.highest_day_count)} ({summary.highest_day_date})",
        ],
    ]
    table = Table(data, colWidths=[40*mm, 35*mm, 40*mm, 50*mm])
    style = get_table_base_style()
    style.append(('ALIGN', (0, 0), (-1, -1), 'CENTER'))
    table.setStyle(TableStyle(style))
    return table


def create_category_distribution_table(distribution: List[CategoryShare]) -> Table:
    """Visitor counts and shares per age category, one column per category."""
    data = [
        [VISITOR_CATEGORY_LABELS[s.category] for s in distribution],
        [format_number_id(s.count) for s in distribution],
        [f"{s.percent}%" for s in distribution],
    ]
    table = Table(data, colWidths=[33*mm] * len(distribution))
    style = get_table_base_style()
    style.append(('ALIGN', (0, 0), (-1, -1), 'CENTER'))
    style.append(('TEXTCOLOR', (0, 2), (-1, 2), TREND_FLAT_COLOR))
    table.setStyle(TableStyle(style))
    return table


def create_visit_table(page_result: PageResult) -> List["Flowable"]:
    """Create the visit table for one page, with its paging line.

    Returns:
        List of reportlab Flowables
    """
    styles = getSampleStyleSheet()
    flowables = []

    header = (
        ["Tanggal"]
        + [f"{VISITOR_CATEGORY_LABELS[c]}\n{VISITOR_CATEGORY_DESCRIPTIONS[c]}" for c in VISITOR_CATEGORIES]
        + ["Total"]
    )
    data = [header]
    for visit in page_result.items:
        counts = visit.category_counts()
        data.append(
            [format_date_only(visit.date) if visit.date else "-"]
            + [format_number_id(counts[c]) for c in VISITOR_CATEGORIES]
            + [format_number_id(visit.total)]
        )

    if not page_result.items:
        data.append(["Tidak ada data kunjungan"] + [""] * (len(header) - 1))

    col_widths = [35*mm] + [20*mm] * len(VISITOR_CATEGORIES) + [22*mm]
    table = Table(data, colWidths=col_widths, repeatRows=1, splitByRow=True)

    style = get_table_base_style()
    apply_alternating_row_colors(style, num_data_rows=len(data) - 1)
    style.extend([
        ('ALIGN', (0, 0), (0, -1), 'LEFT'),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('ALIGN', (1, 0), (-1, 0), 'CENTER'),
        ('FONTNAME', (-1, 1), (-1, -1), 'Helvetica-Bold'),
    ])
    if not page_result.items:
        style.append(('SPAN', (0, 1), (-1, 1)))
    table.setStyle(TableStyle(style))
    flowables.append(table)

    flowables.append(Spacer(1, PageLayoutMM.SMALL_SPACING*mm))
    paging_text = (
        f"Halaman {page_result.page} dari {max(page_result.total_pages, 1)} "
        f"({format_number_id(page_result.total_items)} data)"
    )
    if not page_result.is_valid_range:
        paging_text += " - rentang tanggal tidak valid"
    flowables.append(Paragraph(paging_text, styles['Normal']))

    return flowables


def format_calendar_cell(cell: CalendarDayCell, style: ParagraphStyle) -> Any:
    """Render one calendar cell as a Paragraph ("" for padding cells)."""
    if cell.day is None:
        return ""

    lines = [f"<b>{cell.day}</b>"]
    for entry in cell.visible_entries:
        lines.append(f'<font color="{entry.color}">{escape(entry.title or "-")}</font>')
    if cell.overflow_count:
        lines.append(f'<font color="#6B7280">{cell.overflow_label}</font>')

    return Paragraph("<br/>".join(lines), style)


def build_calendar_rows(cells: List[CalendarDayCell], style: ParagraphStyle) -> List[List[Any]]:
    """Split the month cells into week rows of seven.

    The last week is filled up with empty strings for rendering only.
    """
    rendered = [format_calendar_cell(cell, style) for cell in cells]
    remainder = len(rendered) % DAYS_IN_WEEK
    if remainder:
        rendered.extend([""] * (DAYS_IN_WEEK - remainder))
    return [rendered[i:i + DAYS_IN_WEEK] for i in range(0, len(rendered), DAYS_IN_WEEK)]


def create_calendar_section(cells: List[CalendarDayCell], year: int, month: int,
                            width: float = 180*mm) -> List["Flowable"]:
    """Create the month calendar section."""
    styles = getSampleStyleSheet()
    cell_style = ParagraphStyle(
        'CalendarCell',
        parent=styles['Normal'],
        fontSize=FontSizes.CALENDAR_ENTRY,
        leading=FontSizes.CALENDAR_ENTRY + 2,
    )

    flowables = [
        Paragraph(f"Kalender Kunjungan - {format_month_title(year, month)}", styles['Heading2']),
        Spacer(1, PageLayoutMM.SMALL_SPACING*mm),
    ]

    week_rows = build_calendar_rows(cells, cell_style)
    data = [list(DAY_NAMES_SHORT_ID)] + week_rows
    col_width = width / DAYS_IN_WEEK
    row_heights = [8*mm] + [PageLayoutMM.CALENDAR_CELL_HEIGHT*mm] * len(week_rows)

    table = Table(data, colWidths=[col_width] * DAYS_IN_WEEK, rowHeights=row_heights)
    style = get_table_base_style()
    style.extend([
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('VALIGN', (0, 1), (-1, -1), 'TOP'),
    ])

    for index, cell in enumerate(cells):
        row, col = divmod(index, DAYS_IN_WEEK)
        position = (col, row + 1)
        if cell.day is None:
            style.append(('BACKGROUND', position, position, CALENDAR_PADDING_BG))
        elif cell.is_today:
            style.append(('BACKGROUND', position, position, CALENDAR_TODAY_BG))

    table.setStyle(TableStyle(style))
    flowables.append(table)

    booked_days = sum(1 for c in cells if c.total_items)
    logger.debug(f"Calendar {year}-{month:02d}: {booked_days} days with entries")
    return flowables


def create_visit_report(
    filename: str,
    stats: List[PeriodStats],
    page_result: PageResult,
    cells: List[CalendarDayCell],
    year: int,
    month: int,
    summary: Optional[VisitSummary] = None,
    distribution: Optional[List[CategoryShare]] = None,
    generated_at: Optional[datetime] = None
) -> str:
    """Write the visit analytics PDF.

    Args:
        filename: Output path
        stats: Statistics cards (usually weekly, monthly, yearly)
        page_result: The visit table page to render
        cells: Month grid from build_month_grid()
        year: Calendar year of the grid
        month: Calendar month of the grid
        summary: Optional overall visit summary
        distribution: Optional visitor category distribution
        generated_at: Timestamp printed under the title (defaults to now)

    Returns:
        The filename written
    """
    if generated_at is None:
        generated_at = get_current_datetime()

    doc = SimpleDocTemplate(filename, pagesize=A4,
                            leftMargin=PageLayoutMM.MARGIN*mm, rightMargin=PageLayoutMM.MARGIN*mm,
                            topMargin=PageLayoutMM.MARGIN*mm, bottomMargin=PageLayoutMM.MARGIN*mm)

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle('ReportTitle', parent=styles['Title'], fontSize=FontSizes.TITLE)
    subtitle_style = ParagraphStyle('ReportSubtitle', parent=styles['Normal'],
                                    fontSize=FontSizes.SUBTITLE,
                                    textColor=colors.HexColor("#6B7280"))
    heading_style = styles['Heading2']

    story = [
        Paragraph("Laporan Kunjungan RPTRA", title_style),
        Paragraph(
            f"Dibuat {format_date_only(generated_at)} {generated_at.strftime('%H:%M')}",
            subtitle_style
        ),
        Spacer(1, PageLayoutMM.SECTION_SPACING*mm),
        Paragraph("Statistik Pengunjung", heading_style),
        Spacer(1, PageLayoutMM.SMALL_SPACING*mm),
    ]

    if stats:
        story.append(create_stat_cards_row(stats, width=doc.width))
    else:
        story.append(Paragraph("Belum ada data statistik", styles['Normal']))
    story.append(Spacer(1, PageLayoutMM.SECTION_SPACING*mm))

    if summary is not None:
        story.append(Paragraph("Ringkasan", heading_style))
        story.append(Spacer(1, PageLayoutMM.SMALL_SPACING*mm))
        story.append(create_summary_table(summary))
        story.append(Spacer(1, PageLayoutMM.SECTION_SPACING*mm))

    if distribution:
        story.append(Paragraph("Distribusi Kategori Pengunjung", heading_style))
        story.append(Spacer(1, PageLayoutMM.SMALL_SPACING*mm))
        story.append(create_category_distribution_table(distribution))
        story.append(Spacer(1, PageLayoutMM.SECTION_SPACING*mm))

    story.append(Paragraph("Data Kunjungan", heading_style))
    story.append(Spacer(1, PageLayoutMM.SMALL_SPACING*mm))
    story.extend(create_visit_table(page_result))

    story.append(PageBreak())
    story.extend(create_calendar_section(cells, year, month, width=doc.width))

    doc.build(story)
    logger.info(f"Visit report written to {filename}")
    return filename
