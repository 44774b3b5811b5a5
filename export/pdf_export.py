"""Simulation report export."""
from __future__ import annotations

from io import BytesIO
from typing import Mapping, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from core.presets import DISCLAIMER, SYSTEM_LABELS
from core.utils import fmt_brl, fmt_pct
from habitasim import __version__
from habitasim.models import LoanRequest, SimulationResult
from habitasim.reporting import schedule_frame

GRID = TableStyle([('BACKGROUND',(0,0),(-1,0), colors.lightgrey),('BOX',(0,0),(-1,-1),1,colors.black),('INNERGRID',(0,0),(-1,-1),0.5,colors.grey),('FONTSIZE',(0,0),(-1,-1),8)])
PREVIEW_INSTALLMENTS = 12


def _request_rows(request: LoanRequest) -> list[list]:
    return [
        ["Property value", fmt_brl(request.property_value)],
        ["Requested financing", fmt_brl(request.requested_principal)],
        ["Down payment", fmt_brl(request.property_value - request.requested_principal)],
        ["Term", f"{request.term_months} months"],
        ["System", SYSTEM_LABELS.get(request.amortization_system, request.amortization_system)],
        ["Correction index", request.correction_index],
        ["Property type", request.property_type],
        ["Combined monthly income", fmt_brl(request.combined_monthly_income)],
        ["Subsidized program", "yes" if request.subsidized_program else "no"],
        ["Closing costs financed", "yes" if request.finance_closing_costs else "no"],
    ]


def _summary_rows(results: Mapping[str, SimulationResult]) -> list[list]:
    rows = [["Lender", "Status", "Financed", "Rate", "CET", "1st installment", "Last installment", "Total paid"]]
    for r in results.values():
        if not r.feasible:
            rows.append([r.lender_name, "not available", "-", "-", "-", "-", "-", "-"])
            continue
        status = "income alert" if r.affordability_warning else "ok"
        rows.append([
            r.lender_name, status, fmt_brl(r.financed_amount), fmt_pct(r.nominal_annual_rate),
            fmt_pct(r.effective_annual_cost_rate), fmt_brl(r.first_installment),
            fmt_brl(r.last_installment), fmt_brl(r.totals.total_paid),
        ])
    return rows


def _installment_rows(result: SimulationResult) -> list[list]:
    df = schedule_frame(result).head(PREVIEW_INSTALLMENTS)
    rows = [["#", "Payment", "Interest", "Amortization", "MIP", "DFI", "Balance"]]
    for rec in df.itertuples(index=False):
        rows.append([rec.Installment, fmt_brl(rec.Payment), fmt_brl(rec.Interest), fmt_brl(rec.Amortization),
                     fmt_brl(rec.MIP), fmt_brl(rec.DFI), fmt_brl(rec.Balance)])
    return rows


def build_simulation_pdf(
    request: LoanRequest,
    results: Mapping[str, SimulationResult],
    branding: Optional[dict] = None,
    out_path: Optional[str] = None,
) -> bytes:
    """Render the comparison report and return the PDF bytes.

    Results are only read.  When ``out_path`` is given the same bytes are
    also written there.
    """

    branding = branding or {}
    styles = getSampleStyleSheet()
    buf = BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=A4, leftMargin=36, rightMargin=36, topMargin=36, bottomMargin=36,
                            title=branding.get("title", "Financing Simulation"))
    story = []
    title = branding.get("title", "Financing Simulation")
    story += [Paragraph(f"<b>{escape(title)}</b>", styles['Title']), Spacer(1, 6)]
    if branding.get("broker"): story.append(Paragraph(f"Broker: {escape(branding['broker'])}  |  CRECI: {escape(str(branding.get('creci','')))}", styles['Normal']))
    if branding.get("contact"): story.append(Paragraph(f"Contact: {escape(branding['contact'])}", styles['Normal']))
    story += [Spacer(1, 12)]

    t = Table([["Simulation data", ""]] + _request_rows(request), hAlign='LEFT', colWidths=[200, 320])
    t.setStyle(GRID)
    story += [t, Spacer(1, 12)]

    if results:
        t = Table(_summary_rows(results), hAlign='LEFT')
        t.setStyle(GRID)
        story += [Paragraph("<b>Lender comparison</b>", styles['Heading3']), Spacer(1, 6), t, Spacer(1, 12)]

    for r in results.values():
        story.append(Paragraph(f"<b>{escape(r.lender_name)}</b>", styles['Heading3']))
        if not r.feasible:
            for reason in r.rejection_reasons:
                story.append(Paragraph(f"- {escape(reason.message)}", styles['Normal']))
            story.append(Spacer(1, 12))
            continue
        if r.adjustment_note: story.append(Paragraph(escape(r.adjustment_note), styles['Normal']))
        if r.program_tier: story.append(Paragraph(f"Program tier: {escape(r.program_tier)}", styles['Normal']))
        t = Table(_installment_rows(r), hAlign='LEFT')
        t.setStyle(GRID)
        story += [Spacer(1, 6), t, Spacer(1, 6)]
        for note in r.notes:
            story.append(Paragraph(f"<font size=8>{escape(note)}</font>", styles['Normal']))
        story.append(Spacer(1, 12))

    story += [Spacer(1, 12), Paragraph(f"<font size=8>{DISCLAIMER}</font>", styles['Normal']),
              Paragraph(f"<font size=7>habitasim {__version__}</font>", styles['Normal'])]
    doc.build(story)
    data = buf.getvalue()
    if out_path:
        with open(out_path, "wb") as f:
            f.write(data)
    return data
