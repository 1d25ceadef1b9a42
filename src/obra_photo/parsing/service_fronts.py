"""Catalog of service fronts recognizable in photo text.

Each entry carries a regex with an optional ``num`` group holding the
front's own identifier (``BSO 04`` -> ``BSO_04``). Entries are tried in
``match_priority`` order, so a sub-categorized entry such as
``CORTINA_ATIRANTADA`` is preferred over the generic ``CORTINA``.
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

# Shared fragments
_SEP = r"[\s\-_]*"
_NUM = r"(?P<num>\d{1,2})"
_CODE = r"(?P<num>[A-Z]?\d+[A-Z0-9\-]*)"


@dataclass(frozen=True)
class ServiceFront:
    """A catalog entry describing one kind of construction front."""

    id: str
    name: str
    pattern: str
    category: str
    subcategory: Optional[str] = None
    variations: tuple[str, ...] = field(default_factory=tuple)

    @property
    def regex(self) -> re.Pattern[str]:
        return _compile(self.pattern)


@dataclass(frozen=True)
class ServiceFrontMatch:
    """A catalog entry found in a piece of text."""

    front: ServiceFront
    identifier: str
    matched_text: str


@lru_cache(maxsize=None)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def _front(
    id: str,
    name: str,
    pattern: str,
    category: str,
    subcategory: Optional[str] = None,
    *variations: str,
) -> ServiceFront:
    return ServiceFront(
        id=id,
        name=name,
        pattern=pattern,
        category=category,
        subcategory=subcategory,
        variations=variations,
    )


OAE_FRONTS: tuple[ServiceFront, ...] = (
    _front("PONTE", "Ponte", rf"\bPONTE{_SEP}{_CODE}?\b", "OAE", "Travessia", "ponte", "bridge"),
    _front("VIADUTO", "Viaduto", rf"\bVIADUTO{_SEP}{_CODE}?\b", "OAE", "Travessia", "viaduto", "viad"),
    _front("PASSARELA", "Passarela", rf"\bPASSARELA{_SEP}{_NUM}?\b", "OAE", "Pedestres", "passarela"),
    _front("TUNEL", "Túnel", rf"\bT[UÚ]NEL{_SEP}{_CODE}?\b", "OAE", "Subterrâneo", "túnel", "tunel"),
    _front("GALERIA", "Galeria", rf"\bGALERIA{_SEP}{_CODE}?\b", "OAE", "Drenagem", "galeria"),
    _front("BUEIRO", "Bueiro", rf"\bBUEIRO{_SEP}(?:CELULAR|TUBULAR)?{_SEP}{_CODE}?\b", "OAE", "Drenagem", "bueiro"),
    _front("OAE", "OAE (Genérico)", rf"\bOAE{_SEP}{_NUM}?\b", "OAE", None, "oae", "obra de arte especial"),
    _front("ELEVADO", "Elevado", rf"\bELEVADO{_SEP}{_CODE}?\b", "OAE", "Travessia", "elevado"),
    _front("TRINCHEIRA", "Trincheira", rf"\bTRINCHEIRA{_SEP}{_CODE}?\b", "OAE", "Subterrâneo", "trincheira"),
    _front("MERGULHAO", "Mergulhão", rf"\bMERGULH[AÃ]O{_SEP}{_CODE}?\b", "OAE", "Subterrâneo", "mergulhão"),
)

CONTENCAO_FRONTS: tuple[ServiceFront, ...] = (
    _front("CORTINA_ATIRANTADA", "Cortina Atirantada", rf"\bCORTINA{_SEP}ATIRANTADA{_SEP}{_NUM}?\b", "Contenção", "Atirantada", "cortina atirantada"),
    _front("CORTINA", "Cortina", rf"\bCORTINA{_SEP}{_NUM}?\b", "Contenção", None, "cortina"),
    _front("MURO_ARRIMO", "Muro de Arrimo", rf"\bMURO{_SEP}(?:DE{_SEP})?(?:ARRIMO|CONTEN[CÇ][AÃ]O){_SEP}{_NUM}?\b", "Contenção", "Gravidade", "muro de arrimo"),
    _front("GABIAO", "Gabião", rf"\bGABI[AÃ]O{_SEP}(?:CAIXA|COLCH[AÃ]O|MANTA)?{_SEP}{_NUM}?\b", "Contenção", "Flexível", "gabião"),
    _front("SOLO_GRAMPEADO", "Solo Grampeado", rf"\bSOLO{_SEP}GRAMPEADO\b", "Contenção", "Reforçado", "solo grampeado"),
    _front("TERRA_ARMADA", "Terra Armada", rf"\bTERRA{_SEP}ARMADA\b", "Contenção", "Reforçado", "terra armada"),
    _front("TIRANTE", "Tirante", rf"\bTIRANTE{_SEP}(?P<num>T?\d+)?\b", "Contenção", "Ancoragem", "tirante"),
    _front("TALUDE", "Talude", rf"\bTALUDE{_SEP}{_NUM}?\b", "Contenção", "Natural", "talude"),
    _front("ENROCAMENTO", "Enrocamento", rf"\bENROCAMENTO{_SEP}{_NUM}?\b", "Contenção", "Proteção", "enrocamento"),
)

RODOVIARIA_FRONTS: tuple[ServiceFront, ...] = (
    _front("BSO", "BSO - Base de Serviço Operacional", rf"\bBSO{_SEP}{_NUM}\b", "Rodoviária", "Operação", "bso", "base operacional"),
    _front("PORTICO", "Pórtico", rf"\bP[OÓ]RTICO{_SEP}{_NUM}?\b", "Rodoviária", "Sinalização", "pórtico", "portico", "gantry"),
    _front("FREE_FLOW", "Free Flow", rf"\bFREE{_SEP}FLOW{_SEP}(?P<num>P[\-\s]*\d+|[A-Z]?\d+)?\b", "Rodoviária", "Pedágio", "free flow", "freeflow"),
    _front("PRACA_PEDAGIO", "Praça de Pedágio", rf"\bPRA[CÇ]A{_SEP}(?:DE{_SEP})?PED[AÁ]GIO{_SEP}{_NUM}?\b", "Rodoviária", "Pedágio", "praça de pedágio"),
    _front("SAU", "SAU - Serviço de Atendimento ao Usuário", rf"\bSAU{_SEP}{_NUM}?\b", "Rodoviária", "Operação", "sau"),
    _front("PMV", "PMV - Painel de Mensagem Variável", rf"\bPMV{_SEP}{_NUM}?\b", "Rodoviária", "Sinalização", "pmv"),
    _front("CCO", "CCO - Centro de Controle Operacional", rf"\bCCO{_SEP}{_NUM}?\b", "Rodoviária", "Operação", "cco"),
    _front("RETORNO", "Retorno", rf"\bRETORNO{_SEP}{_NUM}?\b", "Rodoviária", "Geometria", "retorno"),
    _front("ROTATORIA", "Rotatória", rf"\bROTAT[OÓ]RIA{_SEP}{_NUM}?\b", "Rodoviária", "Geometria", "rotatória"),
    _front("TREVO", "Trevo", rf"\bTREVO{_SEP}{_NUM}?\b", "Rodoviária", "Geometria", "trevo"),
    _front("POSTO_PESAGEM", "Posto de Pesagem", rf"\bPOSTO{_SEP}(?:DE{_SEP})?PESAGEM{_SEP}{_NUM}?\b", "Rodoviária", "Fiscalização", "posto de pesagem"),
    _front("AREA_DESCANSO", "Área de Descanso", rf"\b[AÁ]REA{_SEP}(?:DE{_SEP})?DESCANSO{_SEP}{_NUM}?\b", "Rodoviária", "Apoio", "área de descanso"),
)

PAVIMENTACAO_FRONTS: tuple[ServiceFront, ...] = (
    _front("PAVIMENTACAO", "Pavimentação", rf"\bPAVIMENTA[CÇ][AÃ]O{_SEP}{_NUM}?\b", "Pavimentação", None, "pavimentação"),
    _front("RECAPEAMENTO", "Recapeamento", rf"\bRECAPEAMENTO{_SEP}{_NUM}?\b", "Pavimentação", "Restauração", "recapeamento"),
    _front("FRESAGEM", "Fresagem", rf"\bFRESAGEM{_SEP}{_NUM}?\b", "Pavimentação", "Restauração", "fresagem"),
    _front("CBUQ", "CBUQ", rf"\bCBUQ{_SEP}{_NUM}?\b", "Pavimentação", "Revestimento", "cbuq"),
    _front("TAPA_BURACO", "Tapa-Buraco", rf"\bTAPA{_SEP}BURACO{_SEP}{_NUM}?\b", "Pavimentação", "Manutenção", "tapa buraco"),
)

TERRAPLENAGEM_FRONTS: tuple[ServiceFront, ...] = (
    _front("TERRAPLENAGEM", "Terraplenagem", rf"\bTERRAPLENAGEM{_SEP}{_NUM}?\b", "Terraplenagem", None, "terraplenagem"),
    _front("ATERRO", "Aterro", rf"\bATERRO{_SEP}{_NUM}?\b", "Terraplenagem", "Movimento", "aterro"),
    _front("BOTA_FORA", "Bota-Fora", rf"\bBOTA{_SEP}FORA{_SEP}{_NUM}?\b", "Terraplenagem", "Descarte", "bota fora"),
    _front("JAZIDA", "Jazida", rf"\bJAZIDA{_SEP}{_NUM}?\b", "Terraplenagem", "Fonte", "jazida"),
)

DRENAGEM_FRONTS: tuple[ServiceFront, ...] = (
    _front("DRENAGEM", "Drenagem", rf"\bDRENAGEM{_SEP}(?:SUPERFICIAL|PROFUNDA)?{_SEP}{_NUM}?\b", "Drenagem", None, "drenagem"),
    _front("SARJETA", "Sarjeta", rf"\bSARJETA{_SEP}{_NUM}?\b", "Drenagem", "Superficial", "sarjeta"),
    _front("MEIO_FIO", "Meio-Fio", rf"\bMEIO{_SEP}FIO{_SEP}{_NUM}?\b", "Drenagem", "Superficial", "meio fio"),
    _front("VALETA", "Valeta", rf"\bVALETA{_SEP}{_NUM}?\b", "Drenagem", "Superficial", "valeta"),
    _front("DESCIDA_AGUA", "Descida d'Água", rf"\bDESCIDA{_SEP}(?:D[E']{_SEP})?[AÁ]GUA{_SEP}{_NUM}?\b", "Drenagem", "Superficial", "descida d'água"),
    _front("POCO_VISITA", "Poço de Visita", rf"\bPO[CÇ]O{_SEP}(?:DE{_SEP})?VISITA{_SEP}{_NUM}?\b", "Drenagem", "Inspeção", "poço de visita"),
    _front("DISSIPADOR", "Dissipador", rf"\bDISSIPADOR{_SEP}(?:DE{_SEP}ENERGIA)?{_SEP}{_NUM}?\b", "Drenagem", "Proteção", "dissipador"),
)

SINALIZACAO_FRONTS: tuple[ServiceFront, ...] = (
    _front("SINALIZACAO_HORIZONTAL", "Sinalização Horizontal", rf"\bSINALIZA[CÇ][AÃ]O{_SEP}HORIZONTAL{_SEP}{_NUM}?\b", "Sinalização", "Horizontal", "sinalização horizontal"),
    _front("SINALIZACAO_VERTICAL", "Sinalização Vertical", rf"\bSINALIZA[CÇ][AÃ]O{_SEP}VERTICAL{_SEP}{_NUM}?\b", "Sinalização", "Vertical", "sinalização vertical"),
    _front("DEFENSA", "Defensa Metálica", rf"\b(?:DEFENSA|GUARD{_SEP}RAIL){_SEP}{_NUM}?\b", "Sinalização", "Segurança", "defensa", "guard rail"),
    _front("BARREIRA_CONCRETO", "Barreira de Concreto", rf"\b(?:BARREIRA{_SEP}(?:DE{_SEP})?CONCRETO|NEW{_SEP}JERSEY){_SEP}{_NUM}?\b", "Sinalização", "Segurança", "barreira de concreto", "new jersey"),
)

SANEAMENTO_FRONTS: tuple[ServiceFront, ...] = (
    _front("REDE_AGUA", "Rede de Água", rf"\b(?:REDE{_SEP}(?:DE{_SEP})?[AÁ]GUA|ADUTORA){_SEP}{_NUM}?\b", "Saneamento", "Água", "rede de água", "adutora"),
    _front("REDE_ESGOTO", "Rede de Esgoto", rf"\bREDE{_SEP}(?:DE{_SEP})?ESGOTO{_SEP}{_NUM}?\b", "Saneamento", "Esgoto", "rede de esgoto"),
    _front("ELEVATORIA", "Estação Elevatória", rf"\bELEVAT[OÓ]RIA{_SEP}{_NUM}?\b", "Saneamento", "Bombeamento", "elevatória"),
)

ELETRICA_FRONTS: tuple[ServiceFront, ...] = (
    _front("REDE_ELETRICA", "Rede Elétrica", rf"\bREDE{_SEP}EL[EÉ]TRICA{_SEP}{_NUM}?\b", "Elétrica", None, "rede elétrica"),
    _front("SUBESTACAO", "Subestação", rf"\bSUBESTA[CÇ][AÃ]O{_SEP}{_NUM}?\b", "Elétrica", "Transformação", "subestação"),
    _front("ILUMINACAO", "Iluminação", rf"\bILUMINA[CÇ][AÃ]O{_SEP}(?:P[UÚ]BLICA)?{_SEP}{_NUM}?\b", "Elétrica", "Iluminação", "iluminação"),
)

EDIFICACAO_FRONTS: tuple[ServiceFront, ...] = (
    _front("FUNDACAO", "Fundação", rf"\b(?:FUNDA[CÇ][AÃ]O|SAPATA|TUBUL[AÃ]O){_SEP}{_NUM}?\b", "Edificação", "Infraestrutura", "fundação", "sapata"),
    _front("ALVENARIA", "Alvenaria", rf"\bALVENARIA{_SEP}{_NUM}?\b", "Edificação", "Vedação", "alvenaria"),
    _front("COBERTURA", "Cobertura", rf"\bCOBERTURA{_SEP}{_NUM}?\b", "Edificação", "Cobertura", "cobertura"),
)

CATEGORIES: dict[str, tuple[ServiceFront, ...]] = {
    "OAE": OAE_FRONTS,
    "CONTENCAO": CONTENCAO_FRONTS,
    "RODOVIARIA": RODOVIARIA_FRONTS,
    "PAVIMENTACAO": PAVIMENTACAO_FRONTS,
    "TERRAPLENAGEM": TERRAPLENAGEM_FRONTS,
    "DRENAGEM": DRENAGEM_FRONTS,
    "SINALIZACAO": SINALIZACAO_FRONTS,
    "SANEAMENTO": SANEAMENTO_FRONTS,
    "ELETRICA": ELETRICA_FRONTS,
    "EDIFICACAO": EDIFICACAO_FRONTS,
}

ALL_FRONTS: tuple[ServiceFront, ...] = tuple(
    front for fronts in CATEGORIES.values() for front in fronts
)


def match_priority(front: ServiceFront) -> tuple[int, int, str]:
    """
    Sort key deciding which catalog entry wins when several match.

    Sub-categorized entries come before generic ones, then longer ids
    before shorter ones; the id itself breaks the remaining ties.
    """
    return (0 if front.subcategory else 1, -len(front.id), front.id)


def prioritized(fronts: tuple[ServiceFront, ...] = ALL_FRONTS) -> list[ServiceFront]:
    """Return catalog entries in matching order."""
    return sorted(fronts, key=match_priority)


def format_identifier(front_id: str, raw: Optional[str]) -> str:
    """Combine a front id with its captured number or code."""
    if not raw:
        return front_id
    code = re.sub(r"[\s\-]", "", raw.upper())
    if not code:
        return front_id
    if code.isdigit():
        code = code.zfill(2)
    return f"{front_id}_{code}"


def identify_service_front(
    text: str, fronts: tuple[ServiceFront, ...] = ALL_FRONTS
) -> Optional[ServiceFrontMatch]:
    """
    Find the highest-priority service front mentioned in ``text``.

    Args:
        text: Free text, typically OCR output.
        fronts: Catalog to search.

    Returns:
        The winning match, or None when no entry matches.
    """
    if not text:
        return None
    normalized = text.upper()
    for front in prioritized(fronts):
        match = front.regex.search(normalized)
        if match:
            raw = match.groupdict().get("num")
            return ServiceFrontMatch(
                front=front,
                identifier=format_identifier(front.id, raw),
                matched_text=match.group(0).strip(),
            )
    return None


def get_front_by_id(front_id: str) -> Optional[ServiceFront]:
    for front in ALL_FRONTS:
        if front.id == front_id:
            return front
    return None


def get_fronts_by_category(category: str) -> list[ServiceFront]:
    return [front for front in ALL_FRONTS if front.category == category]


def all_variations() -> list[str]:
    """All textual variations across the catalog, for search boxes."""
    return [variation for front in ALL_FRONTS for variation in front.variations]
