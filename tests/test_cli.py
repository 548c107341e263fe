import json
from pathlib import Path

from typer.testing import CliRunner

from adoc_converter import cli


runner = CliRunner()


def _use_fake(monkeypatch, renderer) -> None:
    monkeypatch.setattr(cli, "get_renderer", lambda name: renderer)


def test_convert_reports_failures_and_exit_code(tmp_path, source_tree, fake_renderer, monkeypatch):
    _use_fake(monkeypatch, fake_renderer)
    output = tmp_path / "out"

    result = runner.invoke(
        cli.app,
        ["convert", str(source_tree), "-o", str(output), "-a", "toc=left", "--config", str(tmp_path / "none.toml")],
    )

    assert result.exit_code == 1
    assert "1 converted, 1 failed" in result.stdout
    assert (output / "a.html").exists()
    _, options = fake_renderer.calls[0]
    assert dict(options.attributes) == {"toc": "left"}


def test_convert_in_place_with_docbook(tmp_path, fake_renderer, monkeypatch):
    _use_fake(monkeypatch, fake_renderer)
    source = tmp_path / "src"
    source.mkdir()
    (source / "doc.ad").write_text("= Doc\n", encoding="utf-8")

    result = runner.invoke(
        cli.app,
        ["convert", str(source), "--in-place", "-b", "docbook", "--config", str(tmp_path / "none.toml")],
    )

    assert result.exit_code == 0, result.stdout
    assert (source / "doc.xml").exists()


def test_convert_uses_config_file_defaults(tmp_path, fake_renderer, monkeypatch):
    _use_fake(monkeypatch, fake_renderer)
    source = tmp_path / "docs"
    source.mkdir()
    (source / "a.adoc").write_text("= A\n", encoding="utf-8")
    config_file = tmp_path / "config.toml"
    config_file.write_text(
        f'[conversion]\nsource_dir = "{source.as_posix()}"\noutput_dir = "{(tmp_path / "build").as_posix()}"\n'
        'doctype = "article"\n',
        encoding="utf-8",
    )

    result = runner.invoke(cli.app, ["convert", "--config", str(config_file)])

    assert result.exit_code == 0, result.stdout
    assert (tmp_path / "build" / "a.html").exists()
    assert fake_renderer.calls[0][1].doctype == "article"


def test_convert_without_output_dir_is_rejected(tmp_path, fake_renderer, monkeypatch):
    _use_fake(monkeypatch, fake_renderer)
    result = runner.invoke(cli.app, ["convert", str(tmp_path), "--config", str(tmp_path / "none.toml")])
    assert result.exit_code == 2
    assert "Invalid configuration" in result.stdout


def test_convert_missing_source_dir(tmp_path, fake_renderer, monkeypatch):
    _use_fake(monkeypatch, fake_renderer)
    result = runner.invoke(
        cli.app,
        ["convert", str(tmp_path / "missing"), "-o", str(tmp_path / "out"), "--config", str(tmp_path / "none.toml")],
    )
    assert result.exit_code == 1
    assert "Batch aborted" in result.stdout


def test_show_config_prints_json(tmp_path: Path):
    result = runner.invoke(cli.app, ["show-config", "--config", str(tmp_path / "none.toml")])
    assert result.exit_code == 0
    assert json.loads(result.stdout)["conversion"]["backend"] == "html5"


def test_convert_unset_attribute_reaches_renderer(tmp_path, source_tree, fake_renderer, monkeypatch):
    _use_fake(monkeypatch, fake_renderer)

    runner.invoke(
        cli.app,
        [
            "convert", str(source_tree), "-o", str(tmp_path / "out"),
            "-a", "nofooter!", "-a", "icons=font",
            "--config", str(tmp_path / "none.toml"),
        ],
    )

    _, options = fake_renderer.calls[0]
    assert options.attributes["nofooter"] is None
    assert options.attributes["icons"] == "font"


def test_convert_single_document_embedded(tmp_path, source_tree, fake_renderer, monkeypatch):
    _use_fake(monkeypatch, fake_renderer)
    output = tmp_path / "out"

    result = runner.invoke(
        cli.app,
        [
            "convert", str(source_tree), "-o", str(output), "--document", "a.adoc", "--embedded",
            "--config", str(tmp_path / "none.toml"),
        ],
    )

    assert result.exit_code == 0, result.stdout
    assert len(fake_renderer.calls) == 1
    assert fake_renderer.calls[0][1].standalone is False
    assert (output / "a.html").exists()


def test_convert_fail_if_flags(tmp_path, fake_renderer, monkeypatch):
    _use_fake(monkeypatch, fake_renderer)
    source = tmp_path / "src"
    source.mkdir()
    (source / "noisy.adoc").write_text("= Noisy\n\nWARN: missing anchor\n", encoding="utf-8")

    result = runner.invoke(
        cli.app,
        [
            "convert", str(source), "-o", str(tmp_path / "out"), "--fail-if-severity", "warning",
            "--config", str(tmp_path / "none.toml"),
        ],
    )

    assert result.exit_code == 1
    assert "0 converted, 1 failed" in result.stdout


def test_convert_rejects_unknown_fail_if_severity(tmp_path, source_tree, fake_renderer, monkeypatch):
    _use_fake(monkeypatch, fake_renderer)
    result = runner.invoke(
        cli.app,
        [
            "convert", str(source_tree), "-o", str(tmp_path / "out"), "--fail-if-severity", "loud",
            "--config", str(tmp_path / "none.toml"),
        ],
    )
    assert result.exit_code == 2
    assert "Invalid configuration" in result.stdout
