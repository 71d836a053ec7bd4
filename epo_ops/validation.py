"""
Client-side input validation.

Every endpoint method validates its arguments before a request is built,
so malformed input fails fast with a ValidationError instead of costing
a round trip and quota.
"""
import re
from dataclasses import dataclass
from typing import Sequence

from epo_ops.core.api_errors import ValidationError
from epo_ops.core.batch_operations import MAX_BATCH_SIZE
from epo_ops.metadata import (
    FORMAT_DOCDB,
    FORMAT_EPODOC,
    FORMAT_ORIGINAL,
    REF_TYPES,
)

# CC.number.KC, e.g. EP.1000000.B1
DOCDB_PATTERN = re.compile(r"^[A-Z]{2}\.\d+\.[A-Z]\d?$")

# CCnumber[KC], e.g. EP1000000 or EP1000000B1
EPODOC_PATTERN = re.compile(r"^[A-Z]{2}\d+([A-Z]\d?)?$")

# YYYYMMDD; only the shape is checked, not calendar validity
DATE_PATTERN = re.compile(r"^\d{8}$")

MAX_ORIGINAL_LENGTH = 100

_SEPARATORS = " \t-/"


def validate_ref_type(ref_type: str) -> None:
    """Reference type must be publication, application or priority."""
    if ref_type not in REF_TYPES:
        raise ValidationError(
            "must be 'publication', 'application', or 'priority'",
            field="ref_type",
            value=ref_type,
        )


def validate_docdb(number: str) -> None:
    if not number:
        raise ValidationError(
            "number cannot be empty", field="number", value=number, number_format=FORMAT_DOCDB
        )
    if not DOCDB_PATTERN.match(number):
        raise ValidationError(
            "must match pattern: CC.number.KC (e.g., EP.1000000.B1)",
            field="number",
            value=number,
            number_format=FORMAT_DOCDB,
        )


def validate_epodoc(number: str) -> None:
    if not number:
        raise ValidationError(
            "number cannot be empty", field="number", value=number, number_format=FORMAT_EPODOC
        )
    if not EPODOC_PATTERN.match(number):
        raise ValidationError(
            "must match pattern: CCnumber[KC] (e.g., EP1000000B1)",
            field="number",
            value=number,
            number_format=FORMAT_EPODOC,
        )


def validate_original(number: str) -> None:
    """The original format varies by authority; only emptiness and length are checked."""
    if not number:
        raise ValidationError(
            "number cannot be empty", field="number", value=number, number_format=FORMAT_ORIGINAL
        )
    if len(number) > MAX_ORIGINAL_LENGTH:
        raise ValidationError(
            f"number exceeds maximum length of {MAX_ORIGINAL_LENGTH} characters",
            field="number",
            value=number,
            number_format=FORMAT_ORIGINAL,
        )


_FORMAT_VALIDATORS = {
    FORMAT_DOCDB: validate_docdb,
    FORMAT_EPODOC: validate_epodoc,
    FORMAT_ORIGINAL: validate_original,
}


def validate_format(fmt: str, number: str) -> None:
    """
    Validate a patent number against its declared number format.

    Raises:
        ValidationError: Unknown format, or number does not match it
    """
    validator = _FORMAT_VALIDATORS.get(fmt)
    if validator is None:
        raise ValidationError(
            "must be 'docdb', 'epodoc', or 'original'",
            field="format",
            value=fmt,
        )
    validator(number)


def validate_date(date: str) -> None:
    """YYYYMMDD; an empty string is accepted since dates are optional."""
    if not date:
        return
    if not DATE_PATTERN.match(date):
        raise ValidationError(
            "must match YYYYMMDD format (e.g., 20231015)",
            field="date",
            value=date,
        )


def validate_numbers(numbers: Sequence[str], fmt: str) -> None:
    """
    Validate the identifier list of a multiple-document request.

    Between 1 and 100 numbers, each valid for the format.
    """
    if not numbers:
        raise ValidationError("at least one patent number required", field="numbers")
    if len(numbers) > MAX_BATCH_SIZE:
        raise ValidationError(
            f"maximum {MAX_BATCH_SIZE} patent numbers per request",
            field="numbers",
            value=str(len(numbers)),
        )
    for i, number in enumerate(numbers):
        try:
            validate_format(fmt, number)
        except ValidationError as e:
            raise ValidationError(
                f"numbers[{i}]: {e.message}",
                field=e.field,
                value=e.value,
                number_format=e.number_format,
            ) from e


def validate_count(numbers: Sequence[str]) -> None:
    """Count-only check for endpoints that accept loosely formatted numbers."""
    if not numbers:
        raise ValidationError("at least one patent number required", field="numbers")
    if len(numbers) > MAX_BATCH_SIZE:
        raise ValidationError(
            f"maximum {MAX_BATCH_SIZE} patent numbers per request",
            field="numbers",
            value=str(len(numbers)),
        )


def validate_not_empty(value: str, field: str) -> None:
    if not value:
        raise ValidationError(f"{field} cannot be empty", field=field, value=value)


def validate_choice(value: str, choices: Sequence[str], field: str) -> None:
    if value not in choices:
        raise ValidationError(
            f"must be one of: {', '.join(choices)}",
            field=field,
            value=value,
        )


def format_bulk_body(numbers: Sequence[str]) -> str:
    """Newline-separated identifiers, the body format of OPS POST endpoints."""
    return "\n".join(numbers)


@dataclass(frozen=True)
class PatentNumber:
    """Patent number split into country, number and kind code."""

    country: str = ""
    number: str = ""
    kind: str = ""

    @property
    def is_valid(self) -> bool:
        return bool(self.country and self.number and self.kind)

    def to_docdb(self) -> str:
        return f"{self.country}.{self.number}.{self.kind}"

    def to_epodoc(self) -> str:
        return f"{self.country}{self.number}{self.kind}"


def parse_patent_number(number: str) -> PatentNumber:
    """
    Split an epodoc-style number ("EP2884620A2") into its parts.

    The kind code is taken from the end: two letters ("AB"), digit followed
    by a letter (1-char kind "A"), or letter followed by a digit ("C1").

    Returns:
        PatentNumber; all fields empty if the number cannot be parsed
    """
    if len(number) < 4:
        return PatentNumber()

    if not (_is_letter(number[0]) and _is_letter(number[1])):
        return PatentNumber()

    country = number[:2]
    last, second_last = number[-1], number[-2]

    if len(number) >= 5 and _is_letter(second_last) and _is_letter(last):
        body, kind = number[2:-2], number[-2:]
    elif second_last.isdigit() and _is_letter(last):
        body, kind = number[2:-1], number[-1:]
    elif len(number) >= 5 and _is_letter(second_last) and last.isdigit():
        body, kind = number[2:-2], number[-2:]
    else:
        return PatentNumber()

    if not any(c.isdigit() for c in body):
        return PatentNumber()
    return PatentNumber(country=country, number=body, kind=kind)


def _is_letter(c: str) -> bool:
    return c.isascii() and c.isalpha()


def normalize_to_docdb(number: str) -> str:
    """
    Convert a patent number to docdb format (CC.number.KC).

    Spaces, tabs, hyphens and slashes are removed first, so "EP 1000000 B1"
    and "EP-1000000-B1" are accepted.

    Examples:
        "EP2884620A2"   -> "EP.2884620.A2"
        "EP.2884620.A2" -> "EP.2884620.A2"
        "US5551212A"    -> "US.5551212.A"

    Raises:
        ValidationError: If the number is empty or cannot be parsed
    """
    if not number:
        raise ValidationError("patent number cannot be empty", field="number", value=number)

    cleaned = "".join(c for c in number if c not in _SEPARATORS)
    if not cleaned:
        raise ValidationError(
            "patent number contains only whitespace or separators",
            field="number",
            value=number,
        )

    # Already docdb: dot right after the country code
    if len(cleaned) > 4 and cleaned[2] == ".":
        try:
            validate_docdb(cleaned)
        except ValidationError as e:
            raise ValidationError(
                f"invalid DOCDB format: {e.message}", field="number", value=number
            ) from e
        return cleaned

    parsed = parse_patent_number(cleaned)
    if not parsed.is_valid:
        raise ValidationError(
            "unable to parse patent number (expected formats: EP2884620A2 or EP.2884620.A2)",
            field="number",
            value=number,
        )

    docdb = parsed.to_docdb()
    try:
        validate_docdb(docdb)
    except ValidationError as e:
        raise ValidationError(
            f"converted format is invalid: {e.message}", field="number", value=number
        ) from e
    return docdb
