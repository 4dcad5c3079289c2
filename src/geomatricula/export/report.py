"""Technical report ("laudo técnico") rendering with fpdf2."""

from __future__ import annotations

from datetime import date

from geomatricula.core.types import ExtractionMethod
from geomatricula.geometry.models import ParcelResult
from geomatricula.projects.models import ProjectInfo

NOT_INFORMED = "Não informado"

_MONTHS = (
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
)

_METHOD_WORDING = {
    ExtractionMethod.REGEX: "automatizado (regex)",
    ExtractionMethod.AI: "assistido por IA",
    ExtractionMethod.HYBRID: "híbrido (regex + IA)",
}

# Core PDF fonts are latin-1 only
_LATIN1_REPLACEMENTS = str.maketrans({
    "′": "'", "’": "'", "‘": "'",
    "″": '"', "“": '"', "”": '"',
    "–": "-", "—": "-", "˚": "°",
})

# column widths for the memorial table, mm
_TABLE_COLUMNS = (("Ponto", 18), ("Rumo/Azimute", 42), ("Distância", 28), ("Confrontante", 62), ("Observação", 40))


def _latin1(text: str) -> str:
    return text.translate(_LATIN1_REPLACEMENTS).encode("latin-1", "replace").decode("latin-1")


def format_number(value: float, decimals: int = 2) -> str:
    """Brazilian number formatting: ``12487.35`` -> ``12.487,35``."""
    text = f"{value:,.{decimals}f}"
    return text.replace(",", "\x00").replace(".", ",").replace("\x00", ".")


def format_date(day: date) -> str:
    return f"{day.day:02d} de {_MONTHS[day.month - 1]} de {day.year}"


def quality_status(confidence_score: int) -> str:
    if confidence_score >= 80:
        return "APROVADO"
    if confidence_score >= 60:
        return "APROVADO COM RESSALVAS"
    return "PENDENTE DE REVISÃO"


def closure_assessment(closure_error: float) -> str:
    if closure_error <= 0.5:
        return "o que está dentro dos limites aceitáveis para levantamentos topográficos convencionais."
    if closure_error <= 1.0:
        return "o que representa um valor limítrofe, recomendando-se verificação dos dados originais."
    return (
        "o que indica possível inconsistência nos dados da matrícula, "
        "recomendando-se levantamento topográfico in loco."
    )


def analysis_paragraphs(info: ProjectInfo, result: ParcelResult) -> list[str]:
    """The technical analysis narrative, one string per paragraph."""
    matricula = f"nº {info.matricula}" if info.matricula else "do imóvel"
    paragraphs = [
        f"O presente laudo técnico foi elaborado com base na análise documental da matrícula "
        f"{matricula}, localizado em {info.city}/{info.state}.",
        f"A reconstrução do polígono a partir dos rumos e distâncias descritos no documento "
        f"resultou em uma área calculada de {format_number(result.area_computed)} m² "
        f"e perímetro de {format_number(result.perimeter_computed)} m.",
        f"O erro de fechamento obtido foi de {format_number(result.closure_error)} m, "
        f"{closure_assessment(result.closure_error)}",
        f"A extração dos dados foi realizada por método {_METHOD_WORDING[result.extraction_method]}, "
        f"com índice de confiança de {result.confidence_score}%.",
    ]
    if info.observations:
        paragraphs.append(f"Observações: {info.observations}")
    return paragraphs


class ReportRenderer:
    """Renders the technical report of a parcel as PDF."""

    def render_pdf(self, info: ProjectInfo, result: ParcelResult, analysis_date: date | None = None) -> bytes:
        """Render the report.

        Sections: identification, analysis result, descriptive memorial,
        technical analysis and the signature block.
        """
        from fpdf import FPDF

        analysis_date = analysis_date or date.today()

        pdf = FPDF()
        pdf.add_page()
        pdf.set_auto_page_break(auto=True, margin=15)

        def line(text: str, height: float = 7) -> None:
            pdf.cell(0, height, _latin1(text), new_x="LMARGIN", new_y="NEXT")

        def heading(text: str) -> None:
            pdf.ln(4)
            pdf.set_font("Helvetica", "B", 12)
            line(text, 10)
            pdf.set_font("Helvetica", "", 10)

        pdf.set_font("Helvetica", "B", 18)
        line("LAUDO TÉCNICO", 12)
        pdf.set_font("Helvetica", "", 11)
        line("Levantamento Topográfico e Análise de Matrícula", 8)
        pdf.set_font("Helvetica", "I", 9)
        line(f"{format_date(analysis_date)} - Documento gerado automaticamente", 6)

        heading("1. IDENTIFICAÇÃO DO IMÓVEL")
        line(f"Projeto: {info.name}")
        line(f"Matrícula: {info.matricula or NOT_INFORMED}")
        line(f"Proprietário: {info.owner or NOT_INFORMED}")
        line(f"Cartório: {info.registry_office or NOT_INFORMED}")
        line(f"Endereço: {info.property_address or NOT_INFORMED}")
        line(f"Localização: {info.city}, {info.state}")

        heading("2. RESULTADO DA ANÁLISE")
        line(f"Área: {format_number(result.area_computed)} m²")
        line(f"Perímetro: {format_number(result.perimeter_computed)} m")
        line(f"Erro de fechamento: {format_number(result.closure_error)} m")
        line(f"Confiança: {result.confidence_score}%")
        pdf.set_font("Helvetica", "B", 10)
        line(f"Status: {quality_status(result.confidence_score)}")
        pdf.set_font("Helvetica", "", 10)
        if result.area_declared:
            difference = abs(result.area_computed - result.area_declared)
            line(f"Área declarada na matrícula: {format_number(result.area_declared)} m²")
            line(
                f"Diferença: {format_number(difference)} m² "
                f"({format_number(difference / result.area_declared * 100)}%)"
            )
        for warning in result.warnings:
            line(f"Alerta ({warning.severity}): {warning.message}")

        heading("3. MEMORIAL DESCRITIVO")
        pdf.set_font("Helvetica", "B", 9)
        for title, width in _TABLE_COLUMNS:
            pdf.cell(width, 7, _latin1(title), border=1)
        pdf.ln()
        pdf.set_font("Helvetica", "", 9)
        for segment in result.segments:
            row = (
                f"P{segment.index}",
                segment.bearing_raw,
                f"{format_number(segment.distance_m)} m",
                segment.neighbor or "-",
                segment.custom_name or "-",
            )
            for (_, width), value in zip(_TABLE_COLUMNS, row):
                pdf.cell(width, 6, _latin1(value)[:40], border=1)
            pdf.ln()

        heading("4. ANÁLISE TÉCNICA")
        for paragraph in analysis_paragraphs(info, result):
            pdf.multi_cell(0, 6, _latin1(paragraph))
            pdf.ln(2)

        pdf.ln(15)
        line("_" * 40)
        line(info.technical_responsible or "Responsável Técnico")
        if info.crea:
            line(f"CREA: {info.crea}")
        pdf.ln(5)
        line(f"{info.city}/{info.state}, {format_date(analysis_date)}")

        return bytes(pdf.output())
