"""
Sniffing helpers for delimited statements.

Only a short prefix of the file is inspected: separator and header presence
are decided from the first few non-blank lines.
"""

from statistics import pstdev

from ledger_ingest.domain.parsing import AmountParseError, parse_amount, parse_statement_date

SEPARATORS = (",", "\t", "|")


def content_lines(content: str) -> list[str]:
    return [line.rstrip("\r") for line in content.split("\n") if line.strip()]


def split_fields(line: str, separator: str) -> list[str]:
    """Split one line, keeping separators that appear inside double quotes."""
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    index = 0
    while index < len(line):
        char = line[index]
        if char == '"':
            if in_quotes and index + 1 < len(line) and line[index + 1] == '"':
                current.append('"')
                index += 1
            else:
                in_quotes = not in_quotes
        elif char == separator and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        index += 1
    fields.append("".join(current).strip())
    return fields


def sniff_separator(sample: list[str]) -> str:
    """
    Pick the separator whose field count is highest and most stable across the
    sample. Ties go to the earlier separator in ``SEPARATORS``.
    """
    best = SEPARATORS[0]
    best_score: tuple[int, float, float] | None = None
    for separator in SEPARATORS:
        counts = [len(split_fields(line, separator)) for line in sample]
        if not counts or max(counts) < 2:
            continue
        consistent = sum(1 for count in counts if count == counts[0]) / len(counts)
        score = (1 if consistent == 1.0 else 0, consistent - pstdev(counts), sum(counts) / len(counts))
        if best_score is None or score > best_score:
            best, best_score = separator, score
    return best


def field_kind(value: str) -> str:
    text = value.strip().strip('"')
    if not text:
        return "empty"
    if parse_statement_date(text) is not None:
        return "date"
    if any(char.isdigit() for char in text):
        try:
            parse_amount(text)
        except AmountParseError:
            return "text"
        # Mostly digits and amount punctuation, not free text with a number in it.
        letters = sum(1 for char in text if char.isalpha())
        if letters <= 3:
            return "number"
    return "text"


def detect_header(sample: list[str], separator: str) -> bool:
    """
    The first line is a header when it carries text in columns where the rest
    of the sample carries dates or numbers.
    """
    if not sample:
        return False
    first = [field_kind(value) for value in split_fields(sample[0], separator)]
    rest = [[field_kind(value) for value in split_fields(line, separator)] for line in sample[1:]]

    if not rest:
        return all(kind in {"text", "empty"} for kind in first) and "text" in first

    typed_columns = 0
    header_votes = 0
    for column, kind in enumerate(first):
        below = [row[column] for row in rest if column < len(row)]
        typed_below = [value for value in below if value in {"date", "number"}]
        if not below or len(typed_below) * 2 < len(below):
            continue
        typed_columns += 1
        if kind == "text":
            header_votes += 1
    if typed_columns == 0:
        # Nothing typed below the first line; fall back to "all text" headers.
        return all(kind in {"text", "empty"} for kind in first) and "text" in first
    return header_votes * 2 >= typed_columns
