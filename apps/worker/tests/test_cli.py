from pathlib import Path

from pypdf import PdfReader

from pagefit_worker.cli import main


def test_cli_scale_with_history(make_pdf, tmp_path, monkeypatch, capsys) -> None:
    """The scale command writes a named output and a history line."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "report.pdf").write_bytes(make_pdf([(612, 792), (612, 792)]))

    code = main(["scale", "report.pdf", "--width", "306", "--history", "history.jsonl"])
    assert code == 0
    output = tmp_path / "report_306px.pdf"
    assert len(PdfReader(str(output)).pages) == 2
    assert not (tmp_path / ".pagefit-output.pdf").exists()
    assert "306 x 396" in capsys.readouterr().out

    assert main(["history", "history.jsonl"]) == 0
    assert "report.pdf" in capsys.readouterr().out


def test_cli_explicit_output(make_pdf, tmp_path) -> None:
    """An explicit --out path is used as given."""
    source = tmp_path / "doc.pdf"
    source.write_bytes(make_pdf([(100, 100)] * 3))
    target = tmp_path / "picked.pdf"
    assert main(["reorder", str(source), "--order", "3,1", "--out", str(target)]) == 0
    assert len(PdfReader(str(target)).pages) == 2


def test_cli_rejects_bad_width(make_pdf, tmp_path) -> None:
    """Rejected requests exit with status 2."""
    source = tmp_path / "doc.pdf"
    source.write_bytes(make_pdf([(100, 100)]))
    assert main(["scale", str(source), "--width", "0", "--out", str(tmp_path / "x.pdf")]) == 2
    assert main(["normalize", str(source), "--canvas", "custom", "--width", "10"]) == 2
    assert not Path(tmp_path / "x.pdf").exists()
