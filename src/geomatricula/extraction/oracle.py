"""LLM-backed oracles for deed extraction and chat-driven segment revision.

Both oracles only talk to the model and coerce its reply. They never touch
geometry: the caller feeds the coerced output to the pure core.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx
from pydantic import BaseModel

from geomatricula.extraction.normalize import (
    ExtractedMatricula,
    coerce_extraction,
    parse_oracle_json,
)
from geomatricula.geometry.models import Segment
from geomatricula.llm.client import LLMClient, LLMResponseError, Message

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10

EXTRACTION_SYSTEM_PROMPT = """\
Você é um especialista em análise de matrículas de imóveis rurais e urbanos brasileiros.

Matrículas RURAIS trazem memorial descritivo com rumos ou azimutes e distâncias
("segue com azimute 112°30' por 48,72m até o ponto P2, confrontando com ...").
Matrículas URBANAS trazem dimensões simples ("7,50 metros de frente e de fundos,
por 20,00 metros de cada lado") ou deflexões ("12 metros, deflete à esquerda, ...").

Para deflexões, gere segmentos: azimute inicial 90°, "deflete à direita" soma 90°,
"deflete à esquerda" subtrai 90°, normalize entre 0° e 360°.
Para urbanos simples, preencha urbanDimensions em vez de segments.
Coordenadas UTM aparecem como "N= 7382536.544 e E= 283131.811"; extraia as do
primeiro vértice. No Brasil o hemisfério é sempre "S".

Responda somente com JSON:
{
  "matricula": "string", "owner": "string (proprietário atual)",
  "registryOffice": "string", "city": "string", "state": "UF",
  "propertyAddress": "string", "neighborhood": "string", "road": "string",
  "propertyType": "rural" | "urbano",
  "areaDeclared": number | null, "perimeterDeclared": number | null,
  "utmCoordinates": {"zone": number | null, "hemisphere": "N" | "S",
                     "firstVertex": {"n": number, "e": number} | null} | null,
  "segments": [{"index": number, "bearingRaw": "string", "distanceM": number,
                "confrontation": "string"}],
  "urbanDimensions": {"front": number | null, "back": number | null,
                      "rightSide": number | null, "leftSide": number | null,
                      "frontConfrontation": "string", "backConfrontation": "string",
                      "rightConfrontation": "string", "leftConfrontation": "string"} | null
}"""

REVISION_SYSTEM_PROMPT = """\
Você é um assistente especialista em georreferenciamento de matrículas brasileiras.

CONTEXTO ATUAL:
{context}

SEGMENTOS ATUAIS:
{segments}

Quando o usuário pedir uma correção, devolva o array COMPLETO de segmentos em
"updatedSegments". Se a alteração não condiz com a matrícula original, marque
"requiresConfirmation": true e explique o risco em "warningMessage".
Use sempre o formato de rumo "Az NNN°MM'SS\\"".
Todas as alterações são registradas em log de auditoria.

Responda somente com JSON:
{{"response": "string", "updatedSegments": [...] | null,
  "requiresConfirmation": boolean, "warningMessage": "string" | null,
  "changeDescription": "string"}}"""


class OracleResponseError(ValueError):
    """The oracle was unreachable or answered with something unusable."""


class PropertyContext(BaseModel):
    """Deed facts given to the revision oracle alongside the segments."""

    matricula: str = ""
    owner: str = ""
    city: str = ""
    state: str = ""
    area_declared: float | None = None
    closure_error: float | None = None


class RevisionReply(BaseModel):
    """Coerced revision oracle answer.

    ``updated_segments`` stays raw: the revision protocol validates it as a
    whole-traverse replacement.
    """

    response_text: str
    updated_segments: Any = None
    requires_confirmation: bool = False
    warning_message: str | None = None
    change_description: str | None = None
    raw_content: str = ""


class ExtractionOracle:
    """Turns deed text or a deed image into an :class:`ExtractedMatricula`.

    Args:
        llm_client: Provider used for completions.
        vision_model: Model name used for image requests. Defaults to the
            client's configured ``vision_model``.
    """

    def __init__(self, llm_client: LLMClient, vision_model: str | None = None) -> None:
        self._llm = llm_client
        self._vision_model = vision_model or llm_client.config.vision_model

    async def extract_from_text(self, document_text: str) -> ExtractedMatricula:
        if not document_text.strip():
            raise OracleResponseError("Empty document text")
        messages: list[Message] = [
            {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
            {"role": "user", "content": f"Analise este texto de matrícula e extraia os dados:\n\n{document_text}"},
        ]
        return await self._extract(messages)

    async def extract_from_image(self, image_data_url: str) -> ExtractedMatricula:
        """Extract from a scanned deed given as a ``data:image/...;base64,`` URL."""
        messages: list[Message] = [
            {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Analise esta imagem de matrícula de imóvel brasileiro e extraia todos os dados:"},
                    {"type": "image_url", "image_url": {"url": image_data_url}},
                ],
            },
        ]
        return await self._extract(messages, model=self._vision_model)

    async def _extract(self, messages: list[Message], model: str | None = None) -> ExtractedMatricula:
        try:
            content = await self._llm.chat(messages, model=model)
        except (httpx.HTTPError, LLMResponseError) as exc:
            logger.exception("Extraction oracle request failed")
            raise OracleResponseError(f"Extraction oracle unavailable: {exc}") from exc

        payload = parse_oracle_json(content)
        if payload is None:
            raise OracleResponseError("Extraction oracle did not return a JSON object")

        extracted = coerce_extraction(payload)
        logger.info(
            "Extracted matricula %r: %d segments, urban=%s",
            extracted.matricula, len(extracted.segments), extracted.urban_dimensions is not None,
        )
        return extracted


def _describe_segments(segments: Sequence[Segment]) -> str:
    return "\n".join(
        f"P{s.index}: Rumo {s.bearing_raw}, Distância {s.distance_m}m, "
        f"Confrontante: {s.neighbor or 'N/A'}"
        for s in segments
    )


def _describe_context(context: PropertyContext) -> str:
    closure = f"{context.closure_error:.2f} metros" if context.closure_error is not None else "N/A"
    area = f"{context.area_declared} m²" if context.area_declared is not None else "N/A"
    return "\n".join([
        f"- Matrícula: {context.matricula or 'N/A'}",
        f"- Proprietário: {context.owner or 'N/A'}",
        f"- Cidade/Estado: {context.city or 'N/A'}, {context.state or 'N/A'}",
        f"- Área declarada: {area}",
        f"- Erro de fechamento atual: {closure}",
    ])


class RevisionOracle:
    """Asks the model to revise a traverse from a free-text user request."""

    def __init__(self, llm_client: LLMClient) -> None:
        self._llm = llm_client

    def build_messages(
        self,
        current_segments: Sequence[Segment],
        property_context: PropertyContext,
        request: str,
        history: Sequence[Message] | None = None,
        image_data_url: str | None = None,
    ) -> list[Message]:
        system = REVISION_SYSTEM_PROMPT.format(
            context=_describe_context(property_context),
            segments=_describe_segments(current_segments),
        )
        messages: list[Message] = [{"role": "system", "content": system}]
        messages.extend(list(history or [])[-HISTORY_LIMIT:])
        if image_data_url:
            messages.append({
                "role": "user",
                "content": [
                    {"type": "text", "text": request},
                    {"type": "image_url", "image_url": {"url": image_data_url}},
                ],
            })
        else:
            messages.append({"role": "user", "content": request})
        return messages

    async def propose(
        self,
        current_segments: Sequence[Segment],
        property_context: PropertyContext,
        request: str,
        history: Sequence[Message] | None = None,
        image_data_url: str | None = None,
    ) -> RevisionReply:
        """Send the request to the model and coerce its reply.

        A prose reply (no JSON) is valid: it becomes a text-only answer with
        no segment changes.

        Raises:
            OracleResponseError: If the model could not be reached or sent
                back a malformed completion.
        """
        messages = self.build_messages(
            current_segments, property_context, request, history, image_data_url
        )
        try:
            content = await self._llm.chat(messages)
        except (httpx.HTTPError, LLMResponseError) as exc:
            logger.exception("Revision oracle request failed")
            raise OracleResponseError(f"Revision oracle unavailable: {exc}") from exc

        return coerce_revision_reply(content)


def coerce_revision_reply(content: str) -> RevisionReply:
    payload = parse_oracle_json(content)
    if payload is None:
        return RevisionReply(response_text=content, raw_content=content)

    segments = payload.get("updated_segments", payload.get("updatedSegments"))
    response_text = payload.get("response")
    return RevisionReply(
        response_text=response_text if isinstance(response_text, str) else content,
        updated_segments=segments,
        requires_confirmation=bool(payload.get("requires_confirmation", payload.get("requiresConfirmation", False))),
        warning_message=payload.get("warning_message", payload.get("warningMessage")) or None,
        change_description=payload.get("change_description", payload.get("changeDescription")) or None,
        raw_content=content,
    )
