"""
Metadata-Fallback Synthesizer
═════════════════════════════

When no real text can be recovered from a file, build a topic-relevant
surrogate from what we already know about it: title, original filename,
declared document type and byte length. The result is embedded like any
other content so the document still shows up in retrieval for the right
questions ("what did the blood test say?").

Everything here is pure string formatting over fields already in memory.
synthesize_metadata_text() never raises.

The heuristics are lookup tables, not code:

  MEDICAL_KEYWORDS       vocabulary scanned in title + filename
  SUBJECT_PROFILES       keyword triggers → "what this category contains"
  DATE_PATTERNS          date-shaped substrings (first two kept)
  IDENTIFIER_PATTERN     long digit runs, probable patient/test IDs
  DOCUMENT_TYPE_CONTEXT  declared document_type → context paragraph

Callers may replace any of them (e.g. to add another language's terms).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

MAX_DATES = 2
MAX_IDENTIFIERS = 2


# ---------------------------------------------------------------------------
# Lookup tables
# ---------------------------------------------------------------------------

# Includes the Spanish terms seen in uploaded lab reports
MEDICAL_KEYWORDS: tuple[str, ...] = (
    "hemograma", "blood", "test", "results", "lab", "laboratory", "analisis",
    "inmunoglobulina", "glucose", "cholesterol", "protein", "urine", "orina",
    "biopsy", "radiography", "mri", "scan", "ultrasound", "cardiogram",
    "pathology", "histology", "cytology", "microbiology",
)


@dataclass(frozen=True)
class SubjectProfile:
    """A document category recognised from keywords in the title/filename."""
    triggers: tuple[str, ...]
    summary:  str
    contents: tuple[str, ...]

    def matches(self, haystack: str) -> bool:
        return any(trigger in haystack for trigger in self.triggers)

    def render(self) -> str:
        lines = [f"This appears to be {self.summary} document. Typically contains:"]
        lines.extend(f"- {item}" for item in self.contents)
        return "\n".join(lines) + "\n\n"


SUBJECT_PROFILES: list[SubjectProfile] = [
    SubjectProfile(
        triggers=("hemograma", "blood"),
        summary="a blood test (hemograma)",
        contents=(
            "Complete Blood Count (CBC) results",
            "White blood cell count and types",
            "Red blood cell parameters",
            "Platelet count",
            "Hemoglobin and hematocrit levels",
        ),
    ),
    SubjectProfile(
        triggers=("inmunoglobulina",),
        summary="an immunoglobulin test",
        contents=(
            "IgA, IgG, IgM levels",
            "Total immunoglobulin E (IgE)",
            "Specific allergen testing results",
            "Reference ranges and interpretations",
        ),
    ),
]

# Matched case-insensitively against the lower-cased title + filename
DATE_PATTERNS: list[str] = [
    r"\d{1,2}[\s\-/]\d{1,2}[\s\-/]\d{2,4}",     # 12/03/2024, 1-2-24
    r"\d{4}[\s\-/]\d{1,2}[\s\-/]\d{1,2}",       # 2024-03-12
    r"[a-z]+\s+\d{1,2}\s+\d{4}",                # march 12 2024
]

IDENTIFIER_PATTERN = r"\b\d{8,}\b"

DOCUMENT_TYPE_CONTEXT: dict[str, str] = {
    "diagnosis report": (
        "This diagnostic report contains medical assessment information including "
        "symptoms, clinical findings, diagnostic tests results, and professional "
        "medical evaluation. It provides important details about the patient's "
        "medical condition and diagnosis."
    ),
    "treatment plan": (
        "This treatment plan outlines therapeutic interventions, medication protocols, "
        "care strategies, and treatment goals. It includes recommendations for ongoing "
        "medical care and management strategies."
    ),
    "therapy notes": (
        "These therapy session notes document treatment progress, therapeutic "
        "interventions used, patient responses, and recommendations for continued "
        "care. They track the patient's development and response to therapy."
    ),
    "assessment report": (
        "This comprehensive assessment evaluates the patient's condition, abilities, "
        "needs, and functioning levels. It provides detailed analysis for treatment "
        "planning and care coordination."
    ),
    "iep/504 plan": (
        "This educational plan documents special education services, classroom "
        "accommodations, support strategies, and learning goals. It ensures "
        "appropriate educational support for the student's needs."
    ),
    "medical history": (
        "This medical history document contains important background information "
        "about the patient's health, previous conditions, treatments, and family "
        "medical history."
    ),
    "medication list": (
        "This medication list includes current prescriptions, dosages, administration "
        "instructions, and important medication-related information for the patient."
    ),
    "lab results": (
        "These laboratory results report measured values for the tests performed, "
        "the reference ranges used, and any values flagged as outside the normal range."
    ),
}

DEFAULT_DOCUMENT_TYPE_CONTEXT = (
    "This medical document contains important healthcare information relevant "
    "to the patient's care and treatment."
)

NEURODEVELOPMENTAL_TERMS: tuple[str, ...] = ("autism", "adhd")
NEURODEVELOPMENTAL_CONTEXT = (
    "This document is specifically related to autism spectrum disorder (ASD) or "
    "ADHD care and may contain information about behavioral strategies, sensory "
    "needs, communication supports, or developmental considerations."
)

RECONSTRUCTION_NOTE = (
    "Note: This document content was reconstructed from metadata as the PDF text "
    "extraction encountered technical difficulties. For complete accuracy, manual "
    "review of the original document is recommended."
)


# ---------------------------------------------------------------------------
# Scanners
# ---------------------------------------------------------------------------

def detect_keywords(haystack: str) -> list[str]:
    return [keyword for keyword in MEDICAL_KEYWORDS if keyword in haystack]


def detect_dates(haystack: str, limit: int = MAX_DATES) -> list[str]:
    combined = re.compile("|".join(f"(?:{p})" for p in DATE_PATTERNS), re.IGNORECASE)
    return [m.group(0) for m in combined.finditer(haystack)][:limit]


def detect_identifiers(haystack: str, limit: int = MAX_IDENTIFIERS) -> list[str]:
    return re.findall(IDENTIFIER_PATTERN, haystack)[:limit]


def document_type_context(document_type: str | None) -> str | None:
    if not document_type:
        return None
    return DOCUMENT_TYPE_CONTEXT.get(document_type.strip().lower(), DEFAULT_DOCUMENT_TYPE_CONTEXT)


def format_size(size_bytes: int | None) -> str:
    if size_bytes is None:
        return "unknown"
    return f"{size_bytes / 1024:.1f} KB"


# ---------------------------------------------------------------------------
# Synthesizers
# ---------------------------------------------------------------------------

def synthesize_metadata_text(
    title:              str | None,
    file_name:          str | None,
    document_type:      str | None = None,
    size_bytes:         int | None = None,
    description:        str | None = None,
    family_member_name: str | None = None,
) -> str:
    """
    Build the structured surrogate body for a document whose text could
    not be recovered.

    Layout:
        Medical Document: <title>
        [Patient / Declared type / Description]
        [Document Type: Medical test/analysis (detected: ...)]
        [Test Dates: ...]        (at most MAX_DATES)
        [Patient/Test IDs: ...]  (at most MAX_IDENTIFIERS)
        File Information: filename, size, type
        [category paragraphs]
        Note: reconstructed from metadata
    """
    title = title or "Medical Document"
    file_name = file_name or ""
    haystack = f"{title.lower()} {file_name.lower()}"

    keywords = detect_keywords(haystack)
    dates = detect_dates(haystack)
    identifiers = detect_identifiers(haystack)

    parts = [f"Medical Document: {title}\n\n"]

    if family_member_name:
        parts.append(f"Patient: {family_member_name}\n")
    if document_type:
        parts.append(f"Declared Type: {document_type}\n")
    if description:
        parts.append(f"Description: {description}\n")
    if keywords:
        parts.append(f"Document Type: Medical test/analysis (detected: {', '.join(keywords)})\n")
    if dates:
        parts.append(f"Test Dates: {', '.join(dates)}\n")
    if identifiers:
        parts.append(f"Patient/Test IDs: {', '.join(identifiers)}\n")

    parts.append("File Information:\n")
    parts.append(f"- Original filename: {file_name}\n")
    parts.append(f"- File size: {format_size(size_bytes)}\n")
    parts.append("- Document type: PDF medical document\n\n")

    for profile in SUBJECT_PROFILES:
        if profile.matches(haystack):
            parts.append(profile.render())

    type_context = document_type_context(document_type)
    if type_context:
        parts.append(type_context + "\n\n")

    declared = (document_type or "").lower()
    if any(term in haystack or term in declared for term in NEURODEVELOPMENTAL_TERMS):
        parts.append(NEURODEVELOPMENTAL_CONTEXT + "\n\n")

    parts.append(RECONSTRUCTION_NOTE)
    return "".join(parts)


def minimal_fallback_text(title: str | None, file_type: str | None, file_kind: str) -> str:
    """
    Last-resort template naming the document and its type. Requires no I/O.

    file_kind is the orchestrator's classification: "pdf" | "image" | "other".
    """
    title = title or "Untitled document"
    if file_kind == "pdf":
        return (
            f"Document: {title}. PDF document that could not be processed for text "
            f"extraction. File type: {file_type or 'application/pdf'}."
        )
    if file_kind == "image":
        return (
            f"Document: {title}. Image file that could not be processed with vision "
            f"analysis. File type: {file_type or 'image'}."
        )
    return (
        f"Document: {title}. File type: {file_type or 'Unknown'}. "
        "This document type is not currently supported for content extraction."
    )
