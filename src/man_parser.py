"""Man page to HTML converter.

Interprets the subset of the troff man macros used by ordinary manual
pages and writes semantically equivalent HTML to a text stream while the
source is being read.  Several man pages may be converted into a single
HTML document that shares one header and one footer.
"""

import enum
import io
import logging
import os
import re
import sys

from api_models import DocumentMetadata
from man_values import man_lines, parse_measurement, parse_value
from utils import document_base_path, path_exists

MANTOHTML_VERSION = '2.0.2'

MAX_ANCHOR_LENGTH = 255
MAX_URL_LENGTH = 1023


class ManFatalError(Exception):
    """A condition that aborts the whole conversion run."""


class Font(enum.Enum):
    REGULAR = 0
    BOLD = 1
    ITALIC = 2
    SMALL = 3
    SMALL_BOLD = 4
    MONOSPACE = 5


class Block(enum.Enum):
    PARAGRAPH = 'p'
    LIST = 'ul'
    PREFORMATTED = 'pre'


class Heading(enum.IntEnum):
    TOPIC = 0
    SECTION = 1
    SUBSECTION = 2


_FONT_TAGS = {
    Font.BOLD: 'strong',
    Font.ITALIC: 'em',
    Font.SMALL: 'small',
    Font.SMALL_BOLD: 'small',
    Font.MONOSPACE: 'code',
}

_FONT_ESCAPES = {
    'R': Font.REGULAR, 'P': Font.REGULAR,
    'B': Font.BOLD, 'b': Font.BOLD,
    'I': Font.ITALIC, 'i': Font.ITALIC,
    'C': Font.MONOSPACE,
}

_BLOCK_ENDS = {
    Block.PARAGRAPH: '</p>\n',
    Block.LIST: '</li></ul>\n',
    Block.PREFORMATTED: '</pre>\n',
}

# ── Glyph names for \(xx, \*(xx and \[xx] ─────────────────────────────────
_GLYPHS = {
    'aq': "'",
    'bu': '&middot;',
    'co': '&copy;',
    'cq': '&rsquo;',
    'de': '&deg;',
    'dq': '&quot;',
    'em': '&mdash;',
    'en': '&ndash;',
    'ga': '`',
    'ha': '^',
    'lq': '&ldquo;',
    'mc': '&mu;',
    'oq': '&lsquo;',
    'rg': '&reg;',
    'rq': '&rdquo;',
    'ti': '~',
    'tm': '<sup>TM</sup>',
    'Tm': '<sup>TM</sup>',
}

# Single-character strings for \*X
_STRINGS = {
    'R': '&reg;',
}

# Escapes written as the character itself
_LITERAL_ESCAPES = '\\"\'- '

_ENTITIES = {
    '&': '&amp;',
    '<': '&lt;',
    '"': '&quot;',
}

# Quoted tags reach .IP with the backslash already removed
_BULLETS = ('\\(bu', '\\[bu]', '(bu', '[bu]', '-', '*')
_CONTROL_CHARS = ('.', "'")
_MINOR_WORDS = ('a ', 'and ', 'or ', 'the ')

_SPECIAL_RE = re.compile(r'\\|https?://|[&<"]')
_OCTAL_RE = re.compile(r'[0-7]{3}')
_HEADING_WORD_RE = re.compile(r'\\(?:\*?\(..|\*?\[[^\]]*\]|f.|\*.|.)|([A-Za-z]+)')


def _html_esc(text):
    """Escape the HTML special characters &, < and "."""
    return text.replace('&', '&amp;').replace('<', '&lt;').replace('"', '&quot;')


def html_anchor(text):
    """Convert heading text to an anchor id.

    Letters are lowercased, letters/digits/"."/"-" are kept, and a run of
    spaces, tabs or "(" inside the text becomes a single "-".
    """
    anchor = []
    for i, ch in enumerate(text):
        if len(anchor) >= MAX_ANCHOR_LENGTH:
            break
        if (ch.isascii() and ch.isalnum()) or ch in '.-':
            anchor.append(ch.lower())
        elif ch in '( \t' and i + 1 < len(text) and anchor and anchor[-1] != '-':
            anchor.append('-')
    return ''.join(anchor)


def capitalize_heading(title):
    """Capitalize each word of a heading, leaving escapes alone.

    Lowercase "a", "and", "or" and "the" stay lowercase unless they
    start the heading.
    """
    def capitalize(m):
        word = m.group(1)
        if word is None:
            return m.group(0)
        rest = word[1:].lower()
        if m.start() == 0 or not title.startswith(_MINOR_WORDS, m.start()):
            return word[0].upper() + rest
        return word[0] + rest

    return _HEADING_WORD_RE.sub(capitalize, title)


class ManState:
    """Document state shared by every man page converted in one run."""

    def __init__(self, metadata=None):
        self.metadata = metadata or DocumentMetadata()
        self.header_written = False
        self.base_path = '.'        # directory of the current source
        self.block = None           # open Block, if any
        self.in_link = False
        self.indent = 0             # open indentation <div>s
        self.font = Font.REGULAR
        self.atopic = ''            # anchor of the last .TH
        self.asection = ''          # anchor of the last .SH


class ManParser:
    """Converts man page source to HTML."""

    def __init__(self, state=None, out=None, exists=None):
        self.state = state if state is not None else ManState()
        self.out = out if out is not None else sys.stdout
        self.exists = exists or path_exists
        self.diagnostics = []

        self.filename = '-'
        self.linenum = 0
        self._lines = iter(())
        self._th_seen = False
        self._warned = False
        self._break_text = ''
        self._in_heading = False

    # ── Public API ───────────────────────────────────────────────────────

    def convert_file(self, filename):
        """Convert the named man page; cross-references resolve next to it."""
        try:
            fp = open(filename, encoding='utf-8', errors='surrogateescape')
        except OSError as e:
            raise ManFatalError(f"{filename}: {e.strerror}") from e
        with fp:
            self.state.base_path = document_base_path(filename)
            self.convert(fp, filename)

    def convert(self, fp, filename='-'):
        """Convert man page source read from a text stream."""
        logging.debug(f"Converting {filename}")
        self.filename = filename
        self.linenum = 0
        self._lines = man_lines(fp)
        self._th_seen = False
        self._warned = False
        self._break_text = ''

        for linenum, line in self._lines:
            self.linenum = linenum
            if line.startswith(_CONTROL_CHARS):
                self._macro(line[1:])
            elif self._th_seen:
                self._text_line(line)
            elif line and not self._warned:
                self._warn("Ignoring text before '.TH'")
                self._warned = True

        self._lines = iter(())

    def finish(self):
        """Write the HTML footer, closing whatever is still open.

        Returns False when no header was ever written, i.e. none of the
        converted sources had a '.TH' macro.
        """
        state = self.state
        if not state.header_written:
            return False

        self._close_block()
        while state.indent:
            self._write('    </div>\n')
            state.indent -= 1

        self._write('  </body>\n')
        self._write('</html>\n')
        state.header_written = False
        return True

    # ── Output helpers ───────────────────────────────────────────────────

    def _write(self, text):
        self.out.write(text)

    def _warn(self, message):
        message = f"{message} on line {self.linenum} of '{self.filename}'."
        logging.warning(message)
        self.diagnostics.append(message)

    def _next_line(self):
        for linenum, line in self._lines:
            self.linenum = linenum
            return line
        return ''

    def _open_paragraph(self):
        if not self.state.block:
            self._write('<p>')
            self.state.block = Block.PARAGRAPH

    def _close_font(self):
        state = self.state
        if state.font != Font.REGULAR:
            self._write(f'</{_FONT_TAGS[state.font]}>')
            state.font = Font.REGULAR

    def _close_link(self):
        if self.state.in_link:
            self._write('</a>\n')
            self.state.in_link = False

    def _close_block(self):
        """Close the open font span, link and block element, in that order."""
        state = self.state
        self._close_font()
        self._close_link()
        if state.block:
            self._write(_BLOCK_ENDS[state.block])
            state.block = None

    def _flush_break(self):
        self._write(self._break_text + '\n')
        self._break_text = ''

    # ── Fonts ────────────────────────────────────────────────────────────

    def set_font(self, font):
        """Switch the current font, opening a paragraph if no block is open."""
        state = self.state
        if state.font == font and (state.block or self._in_heading):
            return

        if state.font != Font.REGULAR:
            self._write(f'</{_FONT_TAGS[state.font]}>')

        if not self._in_heading:
            self._open_paragraph()

        if font == Font.SMALL_BOLD:
            self._write('<small style="font-weight: bold;">')
        elif font != Font.REGULAR:
            self._write(f'<{_FONT_TAGS[font]}>')

        state.font = font

    # ── Text rendering ───────────────────────────────────────────────────

    def render_text(self, text):
        """Write text as HTML, interpreting escapes and linking bare URLs."""
        write = self._write
        pos = 0
        while True:
            m = _SPECIAL_RE.search(text, pos)
            if not m:
                break
            start = m.start()
            if start > pos:
                write(text[pos:start])

            ch = text[start]
            if ch == '\\':
                if start + 1 < len(text):
                    pos = self._escape(text, start + 1)
                else:
                    write('\\')
                    pos = start + 1
            elif ch in _ENTITIES:
                write(_ENTITIES[ch])
                pos = start + 1
            else:
                pos = self._autolink(text, start)

        if pos < len(text):
            write(text[pos:])

    def _escape(self, text, i):
        """Write the escape sequence whose backslash precedes text[i].

        Returns the index just past the sequence.
        """
        write = self._write
        ch = text[i]
        n = len(text)

        # \fX - font change
        if ch == 'f' and i + 1 < n:
            font = _FONT_ESCAPES.get(text[i + 1])
            if font is None:
                self._warn(f"Unknown font '\\f{text[i + 1]}' ignored")
            else:
                self.set_font(font)
            return i + 2

        # \*X and \*(XX - predefined strings
        if ch == '*' and i + 1 < n:
            if text[i + 1] == '(':
                name = text[i + 2:i + 4]
                if name in _GLYPHS and len(name) == 2:
                    write(_GLYPHS[name])
                else:
                    self._warn(f"Unknown macro '\\*({name}' ignored")
                return min(i + 4, n)
            name = text[i + 1]
            if name in _STRINGS:
                write(_STRINGS[name])
            else:
                self._warn(f"Unknown macro '\\*{name}' ignored")
            return i + 2

        # \(XX - special character
        if ch == '(':
            name = text[i + 1:i + 3]
            if name in _GLYPHS and len(name) == 2:
                write(_GLYPHS[name])
            else:
                self._warn(f"Unknown character '\\({name}' ignored")
            return min(i + 3, n)

        # \[name] - special character
        if ch == '[':
            end = text.find(']', i + 1)
            if end < 0:
                self._warn("Unterminated '\\[' ignored")
                return i + 1
            name = text[i + 1:end]
            if name in _GLYPHS:
                write(_GLYPHS[name])
            elif re.fullmatch(r'u[0-9A-Fa-f]{4,6}', name):
                write(f'&#x{name[1:].upper()};')
            else:
                self._warn(f"Unknown character '\\[{name}]' ignored")
            return end + 1

        # \DDD - octal character code
        if _OCTAL_RE.match(text, i):
            write(f'&#{int(text[i:i + 3], 8)};')
            return i + 3

        if ch == 'e':
            write('\\')
            return i + 1

        if ch not in _LITERAL_ESCAPES:
            self._warn(f"Unrecognized escape '\\{ch}' ignored")
            write('\\')
        write(_ENTITIES.get(ch, ch))
        return i + 1

    def _autolink(self, text, i):
        """Write the URL starting at text[i] as a link; returns the index past it."""
        n = len(text)
        url = []
        while i < n and not text[i].isspace() and len(url) < MAX_URL_LENGTH:
            ch = text[i]
            if ch in ',.)' and (i + 1 == n or text[i + 1] in ',. \t\r\n'):
                break
            if ch == '\\' and i + 1 < n:
                i += 1
                ch = text[i]
            url.append(ch)
            i += 1

        href = _html_esc(''.join(url))
        self._write(f'<a href="{href}">{href}</a>')
        return i

    # ── Headings ─────────────────────────────────────────────────────────

    def _write_header(self, topic):
        state = self.state
        meta = state.metadata
        write = self._write

        state.header_written = True

        write('<!DOCTYPE html>\n')
        write('<html>\n')
        write('  <head>\n')
        if meta.stylesheet:
            if meta.stylesheet.startswith(('http://', 'https://')):
                write(f'    <link rel="stylesheet" type="text/css" href="{_html_esc(meta.stylesheet)}">\n')
            else:
                write('    <style><!--\n')
                try:
                    with open(meta.stylesheet, encoding='utf-8', errors='surrogateescape') as fp:
                        for line in fp:
                            write(line)
                except OSError as e:
                    raise ManFatalError(f"{meta.stylesheet}: {e.strerror}") from e
                write('--></style>\n')

        if meta.author:
            write(f'    <meta name="author" content="{_html_esc(meta.author)}">\n')
        if meta.copyright:
            write(f'    <meta name="copyright" content="{_html_esc(meta.copyright)}">\n')
        write(f'    <meta name="creator" content="mantohtml v{MANTOHTML_VERSION}">\n')
        if meta.subject:
            write(f'    <meta name="subject" content="{_html_esc(meta.subject)}">\n')
        write(f'    <title>{_html_esc(meta.title or topic or "Documentation")}</title>\n')
        write('  </head>\n')
        write('  <body>\n')
        if meta.chapter:
            write(f'    <h1 id="{_html_esc(html_anchor(meta.chapter))}">{_html_esc(meta.chapter)}</h1>\n')

    def _heading(self, level, text, anchor_text=None):
        state = self.state
        hlevel = level + (2 if state.metadata.chapter else 1)
        title = text if level == Heading.TOPIC else capitalize_heading(text)

        self._close_block()

        if level == Heading.TOPIC:
            state.atopic = html_anchor(anchor_text or text)
            anchor = state.atopic
        elif level == Heading.SECTION:
            state.asection = html_anchor(text)
            anchor = f'{state.atopic}.{state.asection}'
        else:
            anchor = f'{state.atopic}.{state.asection}.{html_anchor(text)}'

        self._write(f'    <h{hlevel} id="{_html_esc(anchor)}">')
        self._in_heading = True
        self.render_text(title)
        self._close_font()
        self._in_heading = False
        self._write(f'</h{hlevel}>\n')

    # ── Lines ────────────────────────────────────────────────────────────

    def _text_line(self, line):
        self._open_paragraph()
        self.render_text(line)
        self._flush_break()

    def _macro(self, line):
        name, args = parse_value(line)
        if not name:
            return

        if name == 'TH':
            self.macro_TH(args)
            return

        if not self._th_seen:
            if not self._warned:
                self._warn(f"Need '.TH' before '.{name}' macro")
                self._warned = True
            return

        handler = getattr(self, 'macro_' + name, None)
        if handler is None:
            self._warn(f"Unsupported command/macro '.{name}'")
            return
        handler(args)

    def _arg_or_next_line(self, args):
        return args if args else self._next_line()

    def _font_line(self, font, args):
        saved = self.state.font
        text = self._arg_or_next_line(args)
        self.set_font(font)
        self.render_text(text)
        self.set_font(saved)
        self._flush_break()

    def _alternate(self, first, second, args):
        """Write each word of a line, alternating between two fonts."""
        line = self._arg_or_next_line(args)
        saved = self.state.font
        use_first = True

        word, line = parse_value(line)
        while word is not None:
            have_link = False
            if first == Font.BOLD and second == Font.REGULAR and use_first:
                have_link = self._open_cross_reference(word, line)

            self.set_font(first if use_first else second)
            self.render_text(word)

            if have_link:
                # The section goes inside the link too
                section, line = parse_value(line)
                self.set_font(second)
                self.render_text(section)
                self._write('</a>')
            else:
                use_first = not use_first

            word, line = parse_value(line)

        self.set_font(saved)
        self._write('\n')
        self._flush_break()

    def _open_cross_reference(self, name, line):
        """Start a link for "name (section)" when the sibling page exists."""
        section, _ = parse_value(line)
        if not section or len(section) < 2 or section[0] != '(' or not section[1].isdigit():
            return False
        end = section.find(')')
        if end < 0:
            return False

        path = os.path.join(self.state.base_path, f'{name}.{section[1:end]}')
        if not self.exists(path):
            return False

        self._close_font()
        self._open_paragraph()
        self._write(f'<a href="{_html_esc(name)}.html">')
        return True

    def _start_block(self, html, block=Block.PARAGRAPH):
        self._close_block()
        self._break_text = ''
        self._write(html)
        self.state.block = block

    def _push_indent(self, indent):
        self._close_block()
        self._write(f'    <div style="margin-left: {indent};">\n')
        self.state.indent += 1

    def _pop_indent(self):
        self._close_block()
        self._write('    </div>\n')
        self.state.indent -= 1

    def _open_link(self, href):
        self._close_font()
        self._close_link()
        self._open_paragraph()
        self._write(f'<a href="{_html_esc(href)}">')
        self.state.in_link = True

    def _end_preformatted(self, name):
        if self.state.block != Block.PREFORMATTED:
            self._warn(f"'.{name}' with no '.EX' or '.nf'")
        else:
            self._close_block()

    @staticmethod
    def _heading_text(args):
        if len(args) >= 2 and args[0] == '"' and args.rstrip()[-1] == '"':
            return args.rstrip()[1:-1]
        return args

    # ── Macros ───────────────────────────────────────────────────────────

    def macro_TH(self, args):
        """.TH title section [footer-middle [footer-inside [header-middle]]]"""
        title, args = parse_value(args)
        if not title:
            raise ManFatalError(f"Missing title in '.TH' on line {self.linenum} of '{self.filename}'.")
        section, args = parse_value(args)
        if not section or section[0] not in '0123456789':
            raise ManFatalError(f"Missing section in '.TH' on line {self.linenum} of '{self.filename}'.")

        topic = f'{title}({section})'
        if not self.state.header_written:
            self._write_header(topic)
        else:
            self._close_block()

        self._heading(Heading.TOPIC, topic, anchor_text=f'{title}.{section}')
        self._th_seen = True

    def macro_SH(self, args):
        self._heading(Heading.SECTION, self._heading_text(self._arg_or_next_line(args)))

    def macro_SS(self, args):
        self._heading(Heading.SUBSECTION, self._heading_text(self._arg_or_next_line(args)))

    def macro_B(self, args):
        self._font_line(Font.BOLD, args)

    def macro_I(self, args):
        self._font_line(Font.ITALIC, args)

    def macro_SM(self, args):
        self._font_line(Font.SMALL, args)

    def macro_SB(self, args):
        self._font_line(Font.SMALL_BOLD, args)

    def macro_BI(self, args):
        self._alternate(Font.BOLD, Font.ITALIC, args)

    def macro_BR(self, args):
        self._alternate(Font.BOLD, Font.REGULAR, args)

    def macro_IB(self, args):
        self._alternate(Font.ITALIC, Font.BOLD, args)

    def macro_IR(self, args):
        self._alternate(Font.ITALIC, Font.REGULAR, args)

    def macro_RB(self, args):
        self._alternate(Font.REGULAR, Font.BOLD, args)

    def macro_RI(self, args):
        self._alternate(Font.REGULAR, Font.ITALIC, args)

    def macro_PP(self, args):
        self._start_block('    <p>')

    macro_LP = macro_PP
    macro_P = macro_PP

    def macro_HP(self, args):
        """.HP [indent] - hanging paragraph"""
        indent, _ = parse_measurement(args, 'n')
        indent = indent or '2.5em'
        self._start_block(f'    <p style="margin-left: {indent}; text-indent: -{indent};">')

    def macro_TP(self, args):
        """.TP [indent] - tagged paragraph, the tag is the next line"""
        indent, _ = parse_measurement(args, 'n')
        indent = indent or '2.5em'
        self._start_block(f'    <p style="margin-left: {indent}; text-indent: -{indent};">')
        self._break_text = '<br>'

    def macro_IP(self, args):
        """.IP [tag [indent]] - indented paragraph, written as a list item"""
        state = self.state
        tag, args = parse_value(args)
        indent = None
        if tag is not None:
            indent, _ = parse_measurement(args, 'n')
        indent = indent or '2.5em'

        if state.block == Block.LIST:
            self._close_font()
            self._close_link()
            self._write('</li>\n')
        else:
            self._close_block()
            self._write('    <ul>\n')

        style = '' if tag in _BULLETS else 'list-style-type: none; '
        self._write(f'    <li style="{style}margin-left: {indent};">')
        state.block = Block.LIST
        self._break_text = ''

    def macro_EX(self, args):
        self._start_block('    <pre>', Block.PREFORMATTED)

    macro_nf = macro_EX

    def macro_EE(self, args):
        self._end_preformatted('EE')

    def macro_fi(self, args):
        self._end_preformatted('fi')

    def macro_RS(self, args):
        """.RS [indent] - relative inset start"""
        indent, _ = parse_measurement(args, 'n')
        self._push_indent(indent or '0.5in')

    def macro_RE(self, args):
        if self.state.indent:
            self._pop_indent()
        else:
            self._warn("Unbalanced '.RE'")

    def macro_in(self, args):
        """.in [indent] - indent with a value, unindent without one"""
        indent, _ = parse_measurement(args, 'm')
        if indent:
            self._push_indent(indent)
        elif self.state.indent:
            self._pop_indent()
        else:
            self._warn("'.in' seen without prior '.in INDENT'")

    def macro_UR(self, args):
        url, _ = parse_value(args, unescape=True)
        if url:
            self._open_link(url)

    def macro_MT(self, args):
        email, _ = parse_value(args, unescape=True)
        if email:
            self._open_link(f'mailto:{email}')

    def macro_UE(self, args):
        self._close_font()
        self._close_link()

    macro_ME = macro_UE

    def macro_SY(self, args):
        """.SY [command] - start of synopsis"""
        self._start_block('    <p style="font-family: monospace;">')
        if args:
            saved = self.state.font
            self.set_font(Font.BOLD)
            self.render_text(args)
            self.set_font(saved)
            self._write(' ')

    def macro_YS(self, args):
        if self.state.block != Block.PARAGRAPH:
            self._warn("'.YS' seen without prior '.SY'")
        else:
            self._close_block()

    def macro_br(self, args):
        self._write('<br>\n')

    def macro_sp(self, args):
        self._write('<br>&nbsp;<br>\n')


# ── Public convenience function ──────────────────────────────────────────

def man_to_html(man_text, metadata=None, exists=None, filename='-'):
    """Convert man page source text to a complete HTML document."""
    out = io.StringIO()
    parser = ManParser(ManState(metadata), out=out, exists=exists)
    parser.convert(io.StringIO(man_text), filename)
    parser.finish()
    return out.getvalue()
