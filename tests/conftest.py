"""Pytest configuration and shared helpers for tests."""

import io
from html.parser import HTMLParser

import pytest

from man_parser import Block, ManParser

# Elements the converter opens and closes explicitly
_TRACKED = {'p', 'ul', 'li', 'pre', 'div', 'a', 'strong', 'em', 'small', 'code',
            'h1', 'h2', 'h3', 'h4', 'html', 'head', 'body', 'title', 'style'}
_BLOCKS = {'p', 'ul', 'pre'}


class _TagBalance(HTMLParser):
    """Checks that tracked elements nest properly and that blocks never nest."""

    def __init__(self):
        super().__init__()
        self.stack = []
        self.max_blocks = 0

    def handle_starttag(self, tag, attrs):
        if tag in _TRACKED:
            self.stack.append(tag)
            open_blocks = sum(1 for t in self.stack if t in _BLOCKS)
            self.max_blocks = max(self.max_blocks, open_blocks)

    def handle_endtag(self, tag):
        if tag in _TRACKED:
            assert self.stack, f"unexpected </{tag}>"
            assert self.stack[-1] == tag, f"</{tag}> closes <{self.stack[-1]}>"
            self.stack.pop()


def assert_balanced(html):
    checker = _TagBalance()
    checker.feed(html)
    checker.close()
    assert checker.stack == []
    assert checker.max_blocks <= 1


@pytest.fixture
def renderer():
    """A parser with an open paragraph; returns (parser, output stream)."""
    out = io.StringIO()
    parser = ManParser(out=out)
    parser.state.block = Block.PARAGRAPH
    return parser, out
