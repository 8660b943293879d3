"""Lexing helpers for man page source.

Reads logical lines from a man page (joining continued lines and
dropping comments), splits macro arguments into values, and converts
troff measurements to CSS lengths.
"""

import re

# Longest value returned by parse_value(); longer values are truncated.
MAX_VALUE_LENGTH = 1024
# Longest logical line returned by man_lines(); longer lines are truncated.
MAX_LINE_LENGTH = 65535


# ── Logical lines ───────────────────────────────────────────────────────

def man_lines(fp):
    """Yield (line_number, line) for each logical line of a man page.

    A backslash at the end of a physical line joins the next physical
    line, and \\" starts a comment that runs to the end of the physical
    line.  Every other escape is kept as-is for the text renderer.  The
    line number is that of the last physical line consumed.
    """
    pieces = []
    linenum = 0
    for raw in fp:
        linenum += 1
        has_newline = raw.endswith('\n')
        text = raw.rstrip('\n')
        if text.endswith('\r'):
            text = text[:-1]

        continued = False
        pos = 0
        while True:
            j = text.find('\\', pos)
            if j < 0:
                pieces.append(text[pos:])
                break
            pieces.append(text[pos:j])
            if j + 1 == len(text):
                # Continuation, unless the file ends right here
                continued = has_newline
                break
            if text[j + 1] == '"':
                # Comment
                break
            pieces.append(text[j:j + 2])
            pos = j + 2

        if continued:
            continue

        yield linenum, ''.join(pieces)[:MAX_LINE_LENGTH]
        pieces = []

    if pieces:
        yield linenum, ''.join(pieces)[:MAX_LINE_LENGTH]


# ── Values ──────────────────────────────────────────────────────────────

def parse_value(line, unescape=False):
    """Parse the next value from a macro argument string.

    Returns (value, remainder).  value is None when nothing but
    whitespace is left, which is distinct from an empty quoted value.

    - A quoted value runs to the next unescaped quote; escaped
      characters inside the quotes are replaced by the character itself.
    - An unquoted value runs to the next unescaped whitespace; escaped
      characters keep their backslash so the text renderer can interpret
      them, unless unescape is true.

    Values longer than MAX_VALUE_LENGTH are silently truncated.
    """
    n = len(line)
    pos = 0
    while pos < n and line[pos].isspace():
        pos += 1
    if pos >= n:
        return None, ''

    chars = []
    if line[pos] == '"':
        pos += 1
        while pos < n and line[pos] != '"':
            if line[pos] == '\\' and pos + 1 < n:
                pos += 1
            chars.append(line[pos])
            pos += 1
        if pos < n:
            pos += 1
    else:
        while pos < n and not line[pos].isspace():
            if line[pos] == '\\' and pos + 1 < n:
                if not unescape:
                    chars.append('\\')
                pos += 1
            chars.append(line[pos])
            pos += 1

    while pos < n and line[pos].isspace():
        pos += 1

    return ''.join(chars)[:MAX_VALUE_LENGTH], line[pos:]


# ── Measurements ────────────────────────────────────────────────────────

_NUMBER_RE = re.compile(r'[+-]?(?:\d+(?:\.\d*)?|\.\d+)$')

# Units that only need their suffix replaced
_UNIT_SUFFIXES = {
    'c': 'cm',      # centimeters
    'i': 'in',      # inches
    'm': 'em',      # ems
    'P': 'pc',      # picas
    'p': 'pt',      # points
    'u': 'px',      # device units
    'v': '',        # multiple of line height
}


def convert_measurement(value, defunit):
    """Convert a troff measurement such as "4n" or "0.5i" to CSS.

    A value without a unit letter uses defunit.  Returns None when the
    value is not a number or the unit is not known.
    """
    if not value:
        return None

    if value[-1].isalpha():
        number, unit = value[:-1], value[-1]
    else:
        number, unit = value, defunit

    if not _NUMBER_RE.match(number):
        return None
    amount = float(number)

    if unit in _UNIT_SUFFIXES:
        return number + _UNIT_SUFFIXES[unit]
    if unit == 'f':
        # 1/65536 of the font size
        return f'{amount / 6.5536:.1f}%'
    if unit == 'M':
        # 1/100 em
        return f'{0.01 * amount:.2f}em'
    if unit == 'n':
        # ens
        return f'{0.5 * amount:g}em'
    if unit == 's':
        # multiple of the font size
        return f'{100.0 * amount:.1f}%'
    return None


def parse_measurement(line, defunit):
    """Parse the next value from line as a measurement.

    Returns (css_length, remainder); css_length is None when there is no
    value or it cannot be converted.
    """
    value, rest = parse_value(line)
    if value is None:
        return None, rest
    return convert_measurement(value, defunit), rest
