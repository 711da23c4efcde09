"""Cell-level encoders and decoders shared by the CSV schemas."""

from typing import Any, Optional

from csf_tracker.models.assessment import normalize_date_text, normalize_testing_status, snap_score

TRUE_WORDS = ("yes", "y", "true", "1")


def text_out(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def text_in(cell: str) -> str:
    return cell.strip()


def optional_text_in(cell: str) -> Optional[str]:
    return cell.strip() or None


def score_out(value: Any) -> str:
    return format(snap_score(value), "g")


def score_in(cell: str) -> float:
    return snap_score(cell.strip() or 0)


def yes_no_out(value: Any) -> str:
    return "Yes" if value else "No"


def yes_no_in(cell: str) -> bool:
    return cell.strip().lower() in TRUE_WORDS


def list_out(values: Optional[list]) -> str:
    return "; ".join(str(value) for value in values or [])


def list_in(cell: str) -> list[str]:
    return [part.strip() for part in cell.split(";") if part.strip()]


def excel_date_in(cell: str) -> str:
    return normalize_date_text(cell)


def testing_status_in(cell: str) -> str:
    return normalize_testing_status(cell)
