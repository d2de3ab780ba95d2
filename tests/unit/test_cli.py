import os
import stat
import subprocess
import sys

import pytest

import conf_parser as cp

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def run_cli(*args):
    cmd = [sys.executable, "-m", "conf_parser", *args]
    return subprocess.run(cmd, capture_output=True, text=True, cwd=REPO_ROOT)


def test_translate_file(tmp_path):
    src = tmp_path / "in.conf"
    dst = tmp_path / "out.json"
    src.write_text("global MAX = 0x10\nsize = ?[MAX]\n", encoding="utf-8")

    result = run_cli("--input", str(src), "--output", str(dst))
    assert result.returncode == 0, result.stderr
    assert dst.read_text(encoding="utf-8") == '{\n  "size": 16\n}'
    assert "Translated" in result.stdout


def test_parse_error_writes_nothing(tmp_path):
    src = tmp_path / "in.conf"
    dst = tmp_path / "out.json"
    src.write_text("x = ?[UNDEFINED]\n", encoding="utf-8")

    result = run_cli("--input", str(src), "--output", str(dst))
    assert result.returncode == 1
    assert "UnknownConstantError" in result.stderr
    assert "line 1, column 7" in result.stderr
    assert not dst.exists()
    assert os.listdir(tmp_path) == ["in.conf"]


def test_failed_translation_keeps_existing_output(tmp_path):
    src = tmp_path / "in.conf"
    dst = tmp_path / "out.json"
    src.write_text("cfg = { a = 0x1", encoding="utf-8")
    dst.write_text("previous", encoding="utf-8")

    assert run_cli("--input", str(src), "--output", str(dst)).returncode == 1
    assert dst.read_text(encoding="utf-8") == "previous"


def test_missing_input_file(tmp_path):
    result = run_cli("--input", str(tmp_path / "nope.conf"), "--output", str(tmp_path / "o.json"))
    assert result.returncode == 1
    assert "cannot read" in result.stderr
    assert not (tmp_path / "o.json").exists()


def test_unwritable_output(tmp_path):
    src = tmp_path / "in.conf"
    src.write_text("a = 0x1", encoding="utf-8")
    result = run_cli("--input", str(src), "--output", str(tmp_path / "missing" / "o.json"))
    assert result.returncode == 1
    assert "cannot write" in result.stderr


def test_output_required_with_input(tmp_path):
    src = tmp_path / "in.conf"
    src.write_text("a = 0x1", encoding="utf-8")
    assert run_cli("--input", str(src)).returncode == 2


def test_no_arguments_is_usage_error():
    result = run_cli()
    assert result.returncode == 2
    assert "--input is required" in result.stderr


def test_self_test_passes():
    result = run_cli("--test")
    assert result.returncode == 0, result.stdout
    assert result.stdout.count("PASS") == len(cp.SELF_TEST_CASES)
    assert "8/8 scenarios passed" in result.stdout


def test_debug_dumps_tokens(tmp_path):
    src = tmp_path / "in.conf"
    src.write_text("a = 0x1A", encoding="utf-8")
    result = run_cli("--input", str(src), "--debug")
    assert result.returncode == 0
    lines = result.stdout.splitlines()
    assert lines[0] == "Token(kind='IDENTIFIER', text='a', line=1, column=1)"
    assert lines[-1].startswith("Token(kind='END'")


def test_verbose_logs_to_stderr(tmp_path):
    src = tmp_path / "in.conf"
    dst = tmp_path / "out.json"
    src.write_text("global K = 0x1\nk = ?[K]", encoding="utf-8")
    result = run_cli("-v", "--input", str(src), "--output", str(dst))
    assert result.returncode == 0
    assert "published constant K" in result.stderr


def test_max_depth_flag(tmp_path):
    src = tmp_path / "in.conf"
    src.write_text("a = #( #( ) )", encoding="utf-8")
    result = run_cli("--max-depth", "1", "--input", str(src), "--output", str(tmp_path / "o.json"))
    assert result.returncode == 1
    assert "NestingTooDeepError" in result.stderr


@pytest.mark.parametrize("name,source,expected", cp.SELF_TEST_CASES)
def test_self_test_cases_in_process(name, source, expected):
    assert cp.translate(source) == expected


def test_self_test_reports_failures(monkeypatch, capsys):
    monkeypatch.setattr(cp, "SELF_TEST_CASES", [
        ("wrong", "a = 0x1", "{}"),
        ("broken", "a = ", "{}"),
    ])
    assert cp._cli(["--test"]) == 1
    out = capsys.readouterr().out
    assert "FAIL 1 wrong: output differs" in out
    assert "FAIL 2 broken: UnexpectedTokenError" in out
    assert "0/2 scenarios passed" in out


def test_new_output_gets_default_file_mode(tmp_path):
    src = tmp_path / "in.conf"
    dst = tmp_path / "out.json"
    plain = tmp_path / "plain.json"
    src.write_text("a = 0x1", encoding="utf-8")
    plain.write_text("{}", encoding="utf-8")

    assert run_cli("--input", str(src), "--output", str(dst)).returncode == 0
    assert stat.S_IMODE(dst.stat().st_mode) == stat.S_IMODE(plain.stat().st_mode)


def test_existing_output_keeps_its_mode(tmp_path):
    src = tmp_path / "in.conf"
    dst = tmp_path / "out.json"
    src.write_text("a = 0x1", encoding="utf-8")
    dst.write_text("old", encoding="utf-8")
    dst.chmod(0o640)

    assert run_cli("--input", str(src), "--output", str(dst)).returncode == 0
    assert stat.S_IMODE(dst.stat().st_mode) == 0o640
    assert dst.read_text(encoding="utf-8") == '{\n  "a": 1\n}'


@pytest.mark.parametrize("limit", ["5000", "-1", "many"])
def test_max_depth_out_of_range_is_usage_error(tmp_path, limit):
    src = tmp_path / "in.conf"
    src.write_text("a = " + "#( " * 2000, encoding="utf-8")
    result = run_cli("--max-depth", limit, "--input", str(src), "--output", str(tmp_path / "o.json"))
    assert result.returncode == 2
    assert "--max-depth" in result.stderr
    assert "Traceback" not in result.stderr


def test_deep_input_at_ceiling_fails_cleanly(tmp_path):
    src = tmp_path / "in.conf"
    src.write_text("a = " + "#( " * 2000, encoding="utf-8")
    ceiling = str(cp.max_depth_ceiling())
    result = run_cli("--max-depth", ceiling, "--input", str(src), "--output", str(tmp_path / "o.json"))
    assert result.returncode == 1
    assert "NestingTooDeepError" in result.stderr
    assert "Traceback" not in result.stderr


def test_non_utf8_bytes_pass_through(tmp_path):
    src = tmp_path / "in.conf"
    dst = tmp_path / "out.json"
    src.write_bytes(b'city = "Z\xfcrich"')

    result = run_cli("--input", str(src), "--output", str(dst))
    assert result.returncode == 0, result.stderr
    assert dst.read_bytes() == b'{\n  "city": "Z\xfcrich"\n}'
