"""
PDF Report Generator

Renders a project cost report (estimate, and actuals when recorded) as PDF.
"""

from io import BytesIO
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import (
    SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, HRFlowable
)
from reportlab.lib.enums import TA_CENTER, TA_LEFT

from costing import ProjectEstimateTotals, ReportData


def _gbp(value: Optional[Decimal]) -> str:
    if value is None:
        return '-'
    return f'£{value:,.2f}'


class EstimateReportGenerator:
    """Generates PDF reports for project cost estimates."""

    PRIMARY_COLOR = colors.HexColor('#2C5F8D')
    SECONDARY_COLOR = colors.HexColor('#1F2937')
    LIGHT_GRAY = colors.HexColor('#F3F4F6')
    BORDER_COLOR = colors.HexColor('#E5E7EB')
    OVER_COLOR = colors.HexColor('#B91C1C')
    UNDER_COLOR = colors.HexColor('#047857')

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        """Setup custom paragraph styles."""
        self.styles.add(ParagraphStyle(
            name='ReportTitle',
            parent=self.styles['Heading1'],
            fontSize=22,
            textColor=self.SECONDARY_COLOR,
            spaceAfter=16,
            alignment=TA_LEFT
        ))

        self.styles.add(ParagraphStyle(
            name='ReportSection',
            parent=self.styles['Heading2'],
            fontSize=14,
            textColor=self.SECONDARY_COLOR,
            spaceBefore=18,
            spaceAfter=10
        ))

        self.styles.add(ParagraphStyle(
            name='ReportBody',
            parent=self.styles['Normal'],
            fontSize=10,
            textColor=self.SECONDARY_COLOR,
            spaceAfter=6
        ))

        self.styles.add(ParagraphStyle(
            name='ReportFooter',
            parent=self.styles['Normal'],
            fontSize=8,
            textColor=colors.gray,
            alignment=TA_CENTER
        ))

    def generate_report(
        self,
        report: ReportData,
        totals: ProjectEstimateTotals,
    ) -> BytesIO:
        """
        Generate a PDF report for a project.

        Returns: BytesIO buffer containing the PDF
        """
        buffer = BytesIO()

        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=0.75*inch,
            leftMargin=0.75*inch,
            topMargin=0.75*inch,
            bottomMargin=0.75*inch
        )

        story = []
        story.extend(self._build_header(report))
        story.extend(self._build_summary(report, totals))
        story.extend(self._build_category_table(totals))
        story.extend(self._build_line_items(report))
        if report.notes:
            story.append(Paragraph('Notes', self.styles['ReportSection']))
            story.append(Paragraph(escape(report.notes), self.styles['ReportBody']))
        story.extend(self._build_footer())

        doc.build(story)
        buffer.seek(0)
        return buffer

    def _build_header(self, report: ReportData) -> List:
        elements = [
            Paragraph('<b>Project Cost Report</b>', self.styles['ReportTitle']),
            Paragraph(f'<b>Project:</b> {escape(report.project_name)}', self.styles['ReportBody']),
            Paragraph(f'<b>Project ID:</b> {report.project_id}', self.styles['ReportBody']),
        ]
        if report.completion_date:
            elements.append(Paragraph(
                f'<b>Completion Date:</b> {report.completion_date}',
                self.styles['ReportBody']
            ))
        elements.append(Spacer(1, 10))
        elements.append(HRFlowable(width="100%", thickness=1, color=self.BORDER_COLOR, spaceAfter=10))
        return elements

    def _build_summary(self, report: ReportData, totals: ProjectEstimateTotals) -> List:
        """Cost summary: estimate breakdown plus actual and variance when present."""
        elements = [Paragraph('Cost Summary', self.styles['ReportSection'])]

        estimated = report.estimated_costs
        data = [
            ['Subtotal', _gbp(estimated['subtotal'])],
            [f'Contingency ({totals.contingency_percentage}%)', _gbp(estimated['contingency'])],
            ['Contractor Costs', _gbp(totals.contractor_cost_total)],
            ['Volunteer / Management Costs', _gbp(totals.volunteer_cost_total)],
        ]
        if estimated.get('cost_per_floor_area') is not None:
            data.append(['Cost per m²', _gbp(estimated['cost_per_floor_area'])])
        if report.actual_costs:
            actual_total = report.actual_costs['grand_total']
            data.append(['Actual Total', _gbp(actual_total)])
            data.append(['Variance', _gbp(actual_total - estimated['grand_total'])])
        data.append(['Estimated Total', _gbp(estimated['grand_total'])])

        table = Table(data, colWidths=[3*inch, 2*inch])
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (0, -1), self.LIGHT_GRAY),
            ('TEXTCOLOR', (0, 0), (-1, -1), self.SECONDARY_COLOR),
            ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
            ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
            ('FONTNAME', (1, -1), (1, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 10),
            ('FONTSIZE', (1, -1), (1, -1), 13),
            ('TEXTCOLOR', (1, -1), (1, -1), self.PRIMARY_COLOR),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
            ('TOPPADDING', (0, 0), (-1, -1), 6),
            ('GRID', (0, 0), (-1, -1), 0.5, self.BORDER_COLOR),
        ]))
        elements.append(table)
        return elements

    def _build_category_table(self, totals: ProjectEstimateTotals) -> List:
        elements = [Paragraph('Cost Breakdown by Category', self.styles['ReportSection'])]

        data = [['Category', 'Lines', 'Total', 'Share']]
        for category in totals.categories:
            share = ''
            if totals.subtotal:
                share = f'{category.category_total / totals.subtotal * 100:.1f}%'
            data.append([
                category.category_name,
                str(len(category.line_items)),
                _gbp(category.category_total),
                share,
            ])

        table = Table(data, colWidths=[3*inch, 0.8*inch, 1.5*inch, 0.9*inch])
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), self.PRIMARY_COLOR),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
            ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, self.LIGHT_GRAY]),
            ('GRID', (0, 0), (-1, -1), 0.5, self.BORDER_COLOR),
        ]))
        elements.append(table)
        return elements

    def _build_line_items(self, report: ReportData) -> List:
        elements = [Paragraph('Line Items', self.styles['ReportSection'])]

        with_actuals = report.actual_costs is not None
        header = ['Description', 'Category', 'Estimated']
        if with_actuals:
            header += ['Actual', 'Variance']
        data = [header]

        style_commands = [
            ('BACKGROUND', (0, 0), (-1, 0), self.PRIMARY_COLOR),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 8),
            ('ALIGN', (2, 0), (-1, -1), 'RIGHT'),
            ('GRID', (0, 0), (-1, -1), 0.5, self.BORDER_COLOR),
        ]

        for row_idx, item in enumerate(report.line_items, start=1):
            row = [item['description'], item['category'], _gbp(item['estimated'])]
            if with_actuals:
                row += [_gbp(item['actual']), _gbp(item['variance'])]
                if item['variance'] is not None and item['variance'] != 0:
                    color = self.OVER_COLOR if item['variance'] > 0 else self.UNDER_COLOR
                    style_commands.append(('TEXTCOLOR', (4, row_idx), (4, row_idx), color))
            data.append(row)

        col_widths = [2.4*inch, 1.6*inch, 1*inch] + ([0.9*inch, 0.9*inch] if with_actuals else [])
        table = Table(data, colWidths=col_widths, repeatRows=1)
        table.setStyle(TableStyle(style_commands))
        elements.append(table)
        return elements

    def _build_footer(self) -> List:
        return [
            HRFlowable(width="100%", thickness=1, color=self.BORDER_COLOR, spaceBefore=20, spaceAfter=10),
            Paragraph(
                f'Generated on {datetime.now().strftime("%d %B %Y at %H:%M")}',
                self.styles['ReportFooter']
            ),
        ]
