"""
Patta Field Extractor - Rule-based extraction of land-title fields

Each scored field has an ordered list of compiled patterns covering English
labels and one Devanagari label. The first pattern whose capture group
matches wins and later patterns for that field are skipped.

Every value then passes through validate_fields(), the single acceptance
stage shared with manual record entry. Rejected text fields are replaced by
sentinel strings so the stored record is never blank.
"""

import math
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from fra_patta.core.logging_config import logger
from fra_patta.services.document_text import load_document_text


# ============================================
# Sentinels
# ============================================

NAME_REQUIRED = "Name extraction required"
DISTRICT_REQUIRED = "District required"
VILLAGE_REQUIRED = "Village required"
STATE_REQUIRED = "State required"

PROCESSING_REQUIRED = "Document Processing Required"
MANUAL_ENTRY_REQUIRED = "Manual Entry Required"

LOCATION_SENTINELS = {
    "district": DISTRICT_REQUIRED,
    "village": VILLAGE_REQUIRED,
    "state": STATE_REQUIRED,
}

SENTINELS = frozenset({
    NAME_REQUIRED,
    DISTRICT_REQUIRED,
    VILLAGE_REQUIRED,
    STATE_REQUIRED,
    PROCESSING_REQUIRED,
    MANUAL_ENTRY_REQUIRED,
})

TEXT_FIELDS = ("claimant_name", "district", "village", "state")
SCORED_FIELDS = TEXT_FIELDS + ("land_area", "approval_date")

NAME_MAX_LENGTH = 100
LOCATION_MAX_LENGTH = 50


# ============================================
# Patterns
# ============================================

# Capture ends before a separator or digit (, ; : | ( 0-9) or before the next field label
_LATIN_LABELS = (
    r"claimant|applicant|holder|beneficiary|name|district|dist|village|gram|"
    r"state|area|land|approval|approved|dated|date|lat|latitude|lon|long|longitude|"
    r"tehsil|taluka|block|survey|khasra"
)
_DEVANAGARI_LABELS = r"श्री|जिला|गाँव|राज्य|क्षेत्रफल|दिनांक"

_STOP = (
    r"(?=\s*[,;:|(\d]|\s*$|\s+(?:" + _LATIN_LABELS + r")\b|\s*(?:" + _DEVANAGARI_LABELS + r"))"
)
# Punctuation inside a value is left for the cleaners; a value never starts with a label word
_TEXT_VALUE = (
    r"(?!(?:" + _LATIN_LABELS + r")\b)"
    r"([^\s,;:|(\d][^,;:|(\d]*?)" + _STOP
)
_SEP = r"\s*[:\-]?\s*"
_NUMBER = r"([0-9]+(?:\.[0-9]+)?)"
_UNIT = r"(?:hectares?|acres?|ha\b|एकड़)"
_DATE = r"(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})(?!\d)"


def _rule(pattern: str) -> "re.Pattern[str]":
    return re.compile(pattern, re.IGNORECASE)


class PattaFieldExtractor:
    """
    Rule-based patta field extraction.

    RULES is evaluated top to bottom. The first rule for a field that
    produces a non-empty capture decides that field.
    """

    RULES: List[Tuple[str, "re.Pattern[str]"]] = [
        # Claimant name
        ("claimant_name", _rule(r"\bclaimant'?s?\s+name" + _SEP + _TEXT_VALUE)),
        ("claimant_name", _rule(r"\b(?:claimant|applicant|holder|beneficiary|name)\b" + _SEP + _TEXT_VALUE)),
        ("claimant_name", _rule(r"श्री\s*\.?\s*" + _TEXT_VALUE)),

        # District
        ("district", _rule(r"\b(?:district|dist)\b\.?" + _SEP + _TEXT_VALUE)),
        ("district", _rule(r"जिला" + _SEP + _TEXT_VALUE)),

        # Village
        ("village", _rule(r"\b(?:village|gram)\b" + _SEP + _TEXT_VALUE)),
        ("village", _rule(r"गाँव" + _SEP + _TEXT_VALUE)),

        # State
        ("state", _rule(r"\bstate\b" + _SEP + _TEXT_VALUE)),
        ("state", _rule(r"राज्य" + _SEP + _TEXT_VALUE)),

        # Land area (hectares)
        ("land_area", _rule(r"\b(?:land\s+area|area|land)\b" + _SEP + _NUMBER + r"\s*" + _UNIT)),
        ("land_area", _rule(r"क्षेत्रफल" + _SEP + _NUMBER)),
        ("land_area", _rule(_NUMBER + r"\s*" + _UNIT)),
        ("land_area", _rule(r"\barea\b" + _SEP + _NUMBER)),

        # Approval date
        ("approval_date", _rule(r"\b(?:approval\s+date|approved\s+on|approved|approval|dated|date)\b" + _SEP + _DATE)),
        ("approval_date", _rule(r"दिनांक" + _SEP + _DATE)),
        ("approval_date", _rule(r"\b" + _DATE)),
    ]

    COORDINATES_PATTERN = _rule(
        r"\b(?:latitude|lat)\b" + _SEP + r"(-?[0-9]+(?:\.[0-9]+)?)"
        r"[,\s]*\b(?:longitude|long|lon)\b" + _SEP + r"(-?[0-9]+(?:\.[0-9]+)?)"
    )

    HONORIFIC_PATTERN = re.compile(r"^(?:mrs|mr|ms|dr|smt|shri|sri)(?:\.\s*|\s+)", re.IGNORECASE)
    NON_NAME_CHARS = re.compile(r"[^A-Za-z\u0900-\u097F\s]")
    WHITESPACE = re.compile(r"\s+")

    DATE_FOUR_DIGIT_YEAR = re.compile(r"(\d{1,2})[/-](\d{1,2})[/-](\d{4})(?!\d)")
    DATE_TWO_DIGIT_YEAR = re.compile(r"(\d{1,2})[/-](\d{1,2})[/-](\d{2})(?!\d)")
    FIRST_NUMBER = re.compile(r"\d+(?:\.\d+)?")

    @classmethod
    def normalize_text(cls, text: str) -> str:
        """Collapse every whitespace run (newlines included) to one space"""
        return cls.WHITESPACE.sub(" ", text or "").strip()

    @classmethod
    def match_fields(cls, text: str) -> Dict[str, Any]:
        """Run the rule table against normalized text. Values are raw captures."""
        normalized = cls.normalize_text(text)
        raw: Dict[str, Any] = {}

        for field, pattern in cls.RULES:
            if field in raw:
                continue
            match = pattern.search(normalized)
            if match and match.group(1).strip():
                raw[field] = match.group(1).strip()

        coords = cls.COORDINATES_PATTERN.search(normalized)
        if coords:
            raw["coordinates"] = {"latitude": coords.group(1), "longitude": coords.group(2)}

        return raw

    # ------------------------------------------
    # Cleaning
    # ------------------------------------------

    @classmethod
    def clean_location(cls, value: str) -> str:
        stripped = cls.NON_NAME_CHARS.sub("", value)
        return cls.WHITESPACE.sub(" ", stripped).strip()

    @classmethod
    def clean_name(cls, value: str) -> str:
        return cls.clean_location(cls.HONORIFIC_PATTERN.sub("", value.strip(), count=1))

    @classmethod
    def clean_land_area(cls, value: str) -> Optional[float]:
        match = cls.FIRST_NUMBER.search(value)
        return float(match.group(0)) if match else None

    @classmethod
    def parse_date(cls, value: str) -> Optional[date]:
        """
        Parse D/M/YYYY, then D/M/YY. Two-digit years below 50 are 20YY,
        the rest 19YY. Impossible calendar dates give None.
        """
        match = cls.DATE_FOUR_DIGIT_YEAR.search(value)
        if match:
            day, month, year = (int(part) for part in match.groups())
        else:
            match = cls.DATE_TWO_DIGIT_YEAR.search(value)
            if not match:
                return None
            day, month, short_year = (int(part) for part in match.groups())
            year = 2000 + short_year if short_year < 50 else 1900 + short_year

        try:
            return date(year, month, day)
        except ValueError:
            return None


# ============================================
# Validation & confidence
# ============================================

def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def validate_name(value: Any) -> Optional[str]:
    """Cleaned claimant name, or None when it is too short to accept"""
    if not isinstance(value, str):
        return None
    cleaned = PattaFieldExtractor.clean_name(value)
    if len(cleaned) > 2:
        return cleaned[:NAME_MAX_LENGTH]
    return None


def validate_location(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    cleaned = PattaFieldExtractor.clean_location(value)
    if len(cleaned) > 1:
        return cleaned[:LOCATION_MAX_LENGTH]
    return None


def validate_land_area(value: Any) -> Optional[float]:
    if isinstance(value, str):
        value = PattaFieldExtractor.clean_land_area(value)
    area = _as_float(value)
    if area is not None and area > 0:
        return area
    return None


def validate_approval_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return PattaFieldExtractor.parse_date(value)
    return None


def validate_coordinates(value: Any) -> Optional[Dict[str, float]]:
    """Both parts must be finite and inside +/-90, +/-180"""
    if isinstance(value, dict):
        latitude, longitude = value.get("latitude"), value.get("longitude")
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        latitude, longitude = value
    else:
        return None

    latitude, longitude = _as_float(latitude), _as_float(longitude)
    if latitude is None or longitude is None:
        return None
    if abs(latitude) > 90 or abs(longitude) > 180:
        return None
    return {"latitude": latitude, "longitude": longitude}


def validate_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Accept or replace every field of a raw record.

    Text fields always come back, as a cleaned value or a sentinel.
    land_area, approval_date and coordinates are present only when valid.
    """
    validated: Dict[str, Any] = {
        "claimant_name": validate_name(raw.get("claimant_name")) or NAME_REQUIRED,
    }
    for field, sentinel in LOCATION_SENTINELS.items():
        validated[field] = validate_location(raw.get(field)) or sentinel

    land_area = validate_land_area(raw.get("land_area"))
    if land_area is not None:
        validated["land_area"] = land_area

    approval_date = validate_approval_date(raw.get("approval_date"))
    if approval_date is not None:
        validated["approval_date"] = approval_date

    coordinates = validate_coordinates(raw.get("coordinates"))
    if coordinates is not None:
        validated["coordinates"] = coordinates

    return validated


def accepted_fields(validated: Dict[str, Any]) -> List[str]:
    """Scored fields holding a real value. Coordinates never count."""
    fields = []
    for field in SCORED_FIELDS:
        value = validated.get(field)
        if value is None:
            continue
        if field in TEXT_FIELDS and value in SENTINELS:
            continue
        fields.append(field)
    return fields


def calculate_confidence(validated: Dict[str, Any]) -> int:
    """Share of the six scored fields that were accepted, 0-100"""
    return int(round(100 * len(accepted_fields(validated)) / len(SCORED_FIELDS)))


# ============================================
# Entry points
# ============================================

def extract_fields_from_text(text: str) -> Dict[str, Any]:
    """Extract, validate and score a patta record from plain text"""
    validated = validate_fields(PattaFieldExtractor.match_fields(text))
    fields = accepted_fields(validated)
    if "coordinates" in validated:
        fields.append("coordinates")

    validated["extraction_metadata"] = {
        "extracted_at": datetime.utcnow(),
        "extracted_fields": fields,
        "confidence": calculate_confidence(validated),
    }
    return validated


def failure_record(reason: str) -> Dict[str, Any]:
    """Placeholder record stored when a document cannot be read"""
    return {
        "claimant_name": PROCESSING_REQUIRED,
        "district": MANUAL_ENTRY_REQUIRED,
        "village": MANUAL_ENTRY_REQUIRED,
        "state": MANUAL_ENTRY_REQUIRED,
        "error": "Failed to extract data from document",
        "extraction_note": "Please verify extracted information",
        "failure_reason": reason,
        "extraction_metadata": {
            "extracted_at": datetime.utcnow(),
            "extracted_fields": [],
            "confidence": 0,
        },
    }


def extract_patta_data(file_path: str) -> Dict[str, Any]:
    """
    Load a stored document and extract its fields.

    Never raises: any loading or extraction failure yields failure_record().
    """
    try:
        text = load_document_text(file_path)
        result = extract_fields_from_text(text)
    except Exception as e:
        logger.log_extraction(file_path, 0, failed=True, error=str(e), error_type=type(e).__name__)
        return failure_record(str(e))

    logger.log_extraction(
        file_path,
        result["extraction_metadata"]["confidence"],
        extracted_fields=result["extraction_metadata"]["extracted_fields"],
    )
    return result
