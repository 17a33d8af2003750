"""Log line records and their display severity."""

from __future__ import annotations

from dataclasses import dataclass

NOISE = "noise"
WARNING = "warning"
ERROR = "error"
SUCCESS = "success"
INFO = "info"

MARKER_PREFIX = ">>>"


def classify(text: str) -> str:
    """Infer a coarse display severity from the content of an agent log line."""
    lowered = text.lower()
    if "mongoose.c" in text:
        return NOISE
    if text.startswith(MARKER_PREFIX):
        return WARNING
    if "Message reçu" in text or "Commande" in text:
        return INFO
    if "error" in lowered or "erreur" in lowered or ("err" in text and "err 0" not in text):
        return ERROR
    if "success" in text or "établie" in text or "sauvegardé" in text:
        return SUCCESS
    return INFO


@dataclass(frozen=True)
class LogLine:
    text: str
    severity: str = INFO

    @classmethod
    def of(cls, text: str) -> LogLine:
        return cls(text, classify(text))


def split_payload(payload: str) -> list[str]:
    """Split a multi-line log payload, dropping blank lines."""
    return [line for line in payload.split("\n") if line.strip()]
