"""Classification prompts for construction-site photos."""

from typing import Optional

from obra_photo.models.result import ExifData, PreProcessedOCR

UNIDENTIFIED = "NAO_IDENTIFICADO"

DISCIPLINES = (
    "FUNDACAO | ESTRUTURA | PORTICO_FREE_FLOW | CONTENCAO | TERRAPLENAGEM | "
    "DRENAGEM | PAVIMENTACAO | SINALIZACAO | BARREIRAS | ACABAMENTO | "
    "REVESTIMENTO | ALVENARIA | HIDRAULICA | ELETRICA | SEGURANCA | "
    "PAISAGISMO | MANUTENCAO | DEMOLICAO | OAC_OAE | OUTROS"
)

# Short prompt used when the client already read the site sign
OCR_HINT_PROMPT = """Você é um engenheiro civil. Classifique esta foto de obra com base nos dados já extraídos.

## DADOS JÁ EXTRAÍDOS (OCR + EXIF)
{hints}

## TAREFA (APENAS CLASSIFICAÇÃO VISUAL)
1. FRENTE (portico): P-10, CORTINA_01, BSO_04, FREE_FLOW_P11.
   Use "{default_portico}" se não identificar.
2. DISCIPLINA: {disciplines}
3. SERVIÇO: específico da disciplina
4. DESCRIÇÃO: o que você vê (1-2 frases)

## RESPOSTA JSON
{{
  "portico": "P_11",
  "disciplina": "CONTENCAO",
  "servico": "PROTENSAO_TIRANTE",
  "analise_tecnica": "Descrição curta",
  "confidence": 0.85
}}

Responda APENAS com JSON."""


# Full prompt used when the model has to read the photo itself
FULL_PROMPT = """Você é um engenheiro civil sênior especialista em obras de infraestrutura rodoviária.
{hints}
## 1. LEITURA DE TEXTO (OCR)
Transcreva todo texto visível: placas de obra (rodovia, KM, sentido, empresa,
contrato), datas e horários, identificadores (P-10, Cortina 01, BSO 04).

## 2. CLASSIFICAÇÃO
- FRENTE (portico): P-10, CORTINA_01, BSO_04. Use "{default_portico}" se não identificar.
- RODOVIA: SP_270, BR_116
- KM: 94+050
- SENTIDO: LESTE / OESTE
- DISCIPLINA: {disciplines}
- SERVIÇO: específico da disciplina
- DATA: DD/MM/YYYY

## ALERTAS
sem_placa, texto_ilegivel, evidencia_fraca: true/false

## RESPOSTA JSON
{{
  "portico": "P_11",
  "disciplina": "CONTENCAO",
  "servico": "PROTENSAO_TIRANTE",
  "data": "29/08/2025",
  "rodovia": "SP_270",
  "km_inicio": "94+050",
  "sentido": "LESTE",
  "analise_tecnica": "Descrição",
  "confidence": 0.85,
  "ocr_text": "Texto encontrado",
  "alertas": {{"sem_placa": false, "texto_ilegivel": false, "evidencia_fraca": false}}
}}

Responda APENAS com JSON válido."""


def has_ocr_hints(ocr: Optional[PreProcessedOCR]) -> bool:
    """Whether the client-side OCR found enough to use the short prompt."""
    return ocr is not None and bool(ocr.raw_text or ocr.has_placa)


def _exif_lines(exif: Optional[ExifData]) -> list[str]:
    lines = []
    if exif is not None and exif.date:
        lines.append(f"Data EXIF: {exif.date}")
    if exif is not None and exif.gps is not None:
        lines.append(f"GPS: {exif.gps.lat:.4f}, {exif.gps.lon:.4f}")
    return lines


def _ocr_lines(ocr: PreProcessedOCR) -> list[str]:
    lines = []
    if ocr.raw_text:
        lines.append(f'Texto OCR: "{ocr.raw_text}"')
    if ocr.rodovia:
        lines.append(f"Rodovia: {ocr.rodovia}")
    if ocr.km_inicio:
        km = ocr.km_inicio + (f" a {ocr.km_fim}" if ocr.km_fim else "")
        lines.append(f"KM: {km}")
    if ocr.sentido:
        lines.append(f"Sentido: {ocr.sentido}")
    if ocr.frente_servico:
        lines.append(f"Frente identificada: {ocr.frente_servico}")
    if ocr.data:
        lines.append(f"Data detectada: {ocr.data}")
    return lines


def build_prompt(
    default_portico: Optional[str] = None,
    exif: Optional[ExifData] = None,
    ocr: Optional[PreProcessedOCR] = None,
    empresa: Optional[str] = None,
) -> str:
    """
    Build the classification prompt for one photo.

    Args:
        default_portico: Service front to fall back on.
        exif: Photo metadata supplied by the client.
        ocr: Fields already extracted by the client's local OCR.
        empresa: Contractor name, given as context.

    Returns:
        Prompt text.
    """
    portico = default_portico or UNIDENTIFIED
    context = [f"Empresa: {empresa}"] if empresa else []

    if has_ocr_hints(ocr):
        hints = "\n".join(context + _ocr_lines(ocr) + _exif_lines(exif))
        return OCR_HINT_PROMPT.format(
            hints=hints, default_portico=portico, disciplines=DISCIPLINES
        )

    lines = context + _exif_lines(exif)
    hints = "\n## DADOS EXIF E CONTEXTO\n" + "\n".join(lines) + "\n" if lines else ""
    return FULL_PROMPT.format(hints=hints, default_portico=portico, disciplines=DISCIPLINES)
