"""Text patterns that drive schedule layout detection.

Kept as plain tables so the rules can be tested and extended without
touching the scanning code:
  - FIELD_PATTERNS: field (ground) names that start a new column block
  - TIME_RANGE: a game time slot, e.g. "10.00 - 10.15"
  - DOCUMENT_DATE: the publication date printed on the first page
  - YEAR_MARKERS: age cohort markers embedded in team names
"""

import re


# Known grounds first, then the generic "<NAME> <digit><letter>" form.
# Matched against the upper-cased, stripped token text.
FIELD_PATTERNS = (
    ('garam_masala', re.compile(r'GARAM\s*MASALA\s*[0-9][A-D]')),
    ('hepa_halli', re.compile(r'HEPA\s*-\s*HALLI\s*[A-D]')),
    ('heinapaa_tekonurmi', re.compile(r'HEINÄPÄÄN\s*TEKONURMI(\s*[A-D])?')),
    ('nurmi', re.compile(r'NURMI\s*[0-9][A-D]')),
    ('garam_masala_any', re.compile(r'GARAM MASALA')),
    ('hepa_halli_any', re.compile(r'HEPA.*HALLI')),
)

# Matched against the stripped original text so that mixed-case team names
# such as "Kasiysi 1A" are not mistaken for fields.
GENERIC_FIELD = re.compile(r'^[A-ZÅÄÖ][A-ZÅÄÖ .-]{2,}\s+\d[A-D]$')

# "<base> <n><letter>", used to look for the paired sub-field
SUBFIELD = re.compile(r'^(.+?)\s+(\d+)([A-D])$')
PAIRED_LETTERS = {'A': 'B', 'C': 'D'}

TIME_RANGE = re.compile(r'^\d{2}\.\d{2}\s*-\s*\d{2}\.\d{2}$')

DOCUMENT_DATE = re.compile(r'(\d{1,2}\.\d{1,2}\.\d{4})')

YEAR_MARKERS = (
    ('17', '2017 A'),
    ('19', '2019 VP'),
    ('20', '2020 / 2019 EP'),
)


def is_field_name(text: str) -> bool:
    """Check if a token's text names a field."""
    stripped = text.strip()
    upper = stripped.upper()
    for _, pattern in FIELD_PATTERNS:
        if pattern.search(upper):
            return True
    return bool(GENERIC_FIELD.match(stripped))


def is_time_range(text: str) -> bool:
    return bool(TIME_RANGE.match(text))


def find_date(text: str) -> str | None:
    m = DOCUMENT_DATE.search(text)
    return m.group(1) if m else None


def split_subfield(name: str) -> tuple | None:
    """Split "GARAM MASALA 1A" into ("GARAM MASALA", "1", "A")."""
    m = SUBFIELD.match(name.strip())
    if not m:
        return None
    return m.group(1), m.group(2), m.group(3)


def paired_subfield(name: str) -> str | None:
    """Return the sub-field that shares a column pair with name.

    "GARAM MASALA 1A" -> "GARAM MASALA 1B", "NURMI 2C" -> "NURMI 2D".
    """
    parts = split_subfield(name)
    if not parts:
        return None
    base, number, letter = parts
    pair = PAIRED_LETTERS.get(letter)
    if not pair:
        return None
    return f'{base} {number}{pair}'


def is_subfield_pair(left_name: str, right_name: str) -> bool:
    return paired_subfield(left_name) == right_name.strip()
