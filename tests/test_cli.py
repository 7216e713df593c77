import sys

import pytest

from yapl_cli import main, run_script_file


def write(tmp_path, text, name="prog.yapl"):
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return str(p)


@pytest.mark.asyncio
async def test_runs_file_and_prints_result(tmp_path, capsys):
    path = write(tmp_path, "main:\n  - ['+', ['*', 2, 3], ['-', 10, 4]]\n")
    await main([path])
    assert capsys.readouterr().out == "12\n"


@pytest.mark.asyncio
async def test_result_is_printed_in_yapl_syntax(tmp_path, capsys):
    path = write(tmp_path, "main:\n  - {name: ['+', 'Y', 'APL'], ok: true}\n")
    await run_script_file(path)
    assert capsys.readouterr().out == "{name: 'YAPL', ok: true}\n"


@pytest.mark.asyncio
async def test_none_result_prints_nothing(tmp_path, capsys):
    path = write(tmp_path, "main: []\n")
    await main([path])
    assert capsys.readouterr().out == ""


@pytest.mark.asyncio
async def test_error_exits_non_zero(tmp_path, capsys):
    path = write(tmp_path, "main:\n  - ['<>', 1, 2]\n")
    with pytest.raises(SystemExit) as excinfo:
        await main([path])
    assert excinfo.value.code == 1
    err = capsys.readouterr().err
    assert "Error: LoweringError: Unknown operator: <>" in err
    assert "Traceback (most recent call last):" in err


@pytest.mark.asyncio
async def test_emit_prints_generated_python(tmp_path, capsys):
    path = write(tmp_path, "main:\n  - ['+', 2, 3]\n")
    await main(["--emit", path])
    out = capsys.readouterr().out
    assert out == "def _yapl_main():\n    return 2 + 3\n\n_yapl_result = _yapl_main()\n"


@pytest.mark.asyncio
async def test_emit_reports_lowering_errors(tmp_path, capsys):
    path = write(tmp_path, "main:\n  - ['%', 1]\n")
    with pytest.raises(SystemExit) as excinfo:
        await main(["--emit", path])
    assert excinfo.value.code == 1
    assert "Operator % expects 2 argument(s), got 1" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_relative_imports_resolve_against_the_script(tmp_path, capsys, monkeypatch):
    (tmp_path / "lib").mkdir()
    write(tmp_path / "lib", "functions:\n  - name: twice\n    params: [x]\n    body: [['*', x, 2]]\n", "util.yapl")
    path = write(tmp_path, "imports:\n  - from: ./lib/util.yapl\n    named: [twice]\nmain:\n  - ['twice', 21]\n")
    monkeypatch.chdir("/")
    await main([path])
    assert capsys.readouterr().out == "42\n"


@pytest.mark.asyncio
async def test_missing_file(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        await main([str(tmp_path / "nope.yapl")])
    assert excinfo.value.code == 1
    assert "file not found" in capsys.readouterr().err


@pytest.mark.asyncio
@pytest.mark.parametrize("argv", [[], ["--emit"], ["a.yapl", "b.yapl"], ["--verbose"]])
async def test_usage(argv, capsys):
    with pytest.raises(SystemExit) as excinfo:
        await main(argv)
    assert excinfo.value.code == 1
    assert "usage: yapl" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_reads_sys_argv_by_default(tmp_path, capsys, monkeypatch):
    path = write(tmp_path, "main:\n  - ['*', 6, 7]\n")
    monkeypatch.setattr(sys, "argv", ["yapl", path])
    await main()
    assert capsys.readouterr().out == "42\n"


@pytest.mark.asyncio
async def test_runtime_error_shows_generated_python(tmp_path, capsys):
    path = write(tmp_path, "main:\n  - ['/', 1, 0]\n")
    with pytest.raises(SystemExit) as excinfo:
        await main([path])
    assert excinfo.value.code == 1
    err = capsys.readouterr().err
    assert "Generated Python:\ndef _yapl_main():\n    return 1 / 0\n" in err
    assert "_yapl_result = _yapl_main()" in err
    assert err.count("Error: ZeroDivisionError: division by zero") == 1
    assert err.index("Generated Python:") < err.index("Error: ZeroDivisionError")
