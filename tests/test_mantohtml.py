"""Tests for the mantohtml command-line tool."""

import io
import logging

import pytest

from mantohtml import main


@pytest.fixture
def man_page(tmp_path):
    page = tmp_path / 'demo.1'
    page.write_text(".TH demo 1\n.SH NAME\ndemo \\- a demo\n")
    return page


def test_converts_file_to_stdout(man_page, capsys):
    assert main([str(man_page)]) == 0
    out = capsys.readouterr().out
    assert out.startswith('<!DOCTYPE html>\n')
    assert '<h1 id="demo.1">demo(1)</h1>' in out
    assert '<p>demo - a demo\n</p>' in out
    assert out.endswith('</html>\n')


def test_metadata_options(man_page, capsys):
    assert main(['--author', 'Jane Doe', '--chapter', 'Commands', '--copyright', '2023',
                 '--subject', 'Tools', '--title', 'Demo Manual',
                 '--css', 'https://example.com/man.css', str(man_page)]) == 0
    out = capsys.readouterr().out
    assert '<meta name="author" content="Jane Doe">' in out
    assert '<meta name="copyright" content="2023">' in out
    assert '<meta name="subject" content="Tools">' in out
    assert '<title>Demo Manual</title>' in out
    assert '<link rel="stylesheet" type="text/css" href="https://example.com/man.css">' in out
    assert '<h1 id="commands">Commands</h1>' in out
    assert '<h2 id="demo.1">demo(1)</h2>' in out


def test_multiple_files_make_one_document(man_page, tmp_path, capsys):
    other = tmp_path / 'other.1'
    other.write_text(".TH other 1\ntext\n")
    assert main([str(man_page), str(other)]) == 0
    out = capsys.readouterr().out
    assert out.count('<!DOCTYPE html>') == 1
    assert out.count('</body>') == 1
    assert '<h1 id="other.1">other(1)</h1>' in out


def test_end_of_options(tmp_path, capsys, monkeypatch):
    page = tmp_path / '-dash.1'
    page.write_text(".TH dash 1\n")
    monkeypatch.chdir(tmp_path)
    assert main(['--', '-dash.1']) == 0
    assert '<h1 id="dash.1">dash(1)</h1>' in capsys.readouterr().out


def test_no_files_prints_usage(capsys):
    assert main([]) == 1
    assert 'usage: mantohtml' in capsys.readouterr().out


def test_missing_file_fails(tmp_path, capsys, caplog):
    with caplog.at_level(logging.ERROR):
        assert main([str(tmp_path / 'missing.1')]) == 1
    assert 'missing.1' in caplog.text


def test_missing_title_fails_after_partial_output(tmp_path, capsys, caplog):
    good = tmp_path / 'good.1'
    good.write_text(".TH good 1\ntext\n")
    bad = tmp_path / 'bad.1'
    bad.write_text(".TH\n")
    with caplog.at_level(logging.ERROR):
        assert main([str(good), str(bad)]) == 1
    assert "Missing title in '.TH' on line 1" in caplog.text
    out = capsys.readouterr().out
    assert '<h1 id="good.1">good(1)</h1>' in out
    assert '</html>' not in out


def test_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(['--version'])
    assert excinfo.value.code == 0
    assert capsys.readouterr().out.strip() == '2.0.2'


def test_output_bytes_follow_input_bytes(tmp_path, monkeypatch):
    page = tmp_path / 'bytes.1'
    page.write_bytes(b".TH bytes 1\ncaf\xc3\xa9 \xff\n")
    stream = io.TextIOWrapper(io.BytesIO(), encoding='ascii')
    monkeypatch.setattr('sys.stdout', stream)
    assert main([str(page)]) == 0
    stream.flush()
    assert b'<p>caf\xc3\xa9 \xff\n' in stream.buffer.getvalue()
