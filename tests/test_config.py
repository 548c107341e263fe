import json
from pathlib import Path

import pytest

from adoc_converter.config import (
    AppConfig,
    ConfigError,
    ConversionConfig,
    SafeMode,
    build_conversion_config,
    dump_config,
    load_config,
    normalize_attributes,
    parse_attribute_chain,
)
from adoc_converter.models import Severity
from adoc_converter.settings import read_settings


def test_attribute_values_follow_set_and_unset_rules() -> None:
    assert normalize_attributes(
        {"toc": "true", "icons": None, "sectnums": True, "nofooter": False, "draft": "false", "level": 2}
    ) == {"toc": "", "icons": "", "sectnums": "", "nofooter": None, "draft": None, "level": "2"}


def test_parse_attribute_chain() -> None:
    parsed = parse_attribute_chain("toc=left icons=font sectnums nofooter! 'title=My Guide'")
    assert parsed == {
        "toc": "left",
        "icons": "font",
        "sectnums": "",
        "nofooter": None,
        "title": "My Guide",
    }
    assert parse_attribute_chain(["toc=true", "x=false"]) == {"toc": "", "x": None}
    assert parse_attribute_chain(None) == {}


def test_parse_attribute_chain_rejects_empty_name() -> None:
    with pytest.raises(ConfigError):
        parse_attribute_chain("=value")


def test_conversion_config_defaults(tmp_path: Path) -> None:
    config = ConversionConfig(source_dir=str(tmp_path), output_dir=str(tmp_path / "out"))
    assert config.source_dir == tmp_path
    assert config.backend == "html5"
    assert config.safe_mode is SafeMode.UNSAFE
    assert config.extensions == (".adoc", ".asciidoc", ".asc", ".ad")
    assert dict(config.attributes) == {}
    assert config.recursive is True


def test_conversion_config_is_immutable(tmp_path: Path) -> None:
    config = ConversionConfig(source_dir=tmp_path, output_dir=tmp_path / "out", attributes={"toc": "true"})
    with pytest.raises(Exception):
        config.backend = "docbook"  # type: ignore[misc]
    with pytest.raises(TypeError):
        config.attributes["toc"] = "left"  # type: ignore[index]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"output_dir": None},
        {"output_dir": Path("out"), "in_place": True},
        {"output_dir": Path("out"), "backend": "  "},
        {"in_place": True, "zip_output": True},
    ],
)
def test_conversion_config_rejects_inconsistent_values(tmp_path: Path, kwargs) -> None:
    with pytest.raises(ConfigError):
        ConversionConfig(source_dir=tmp_path, **kwargs)


def test_load_config_reads_toml(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text(
        """
[runtime]
renderer = "asciidoctor"
parallelism = 4
enable_local_api = true

[conversion]
source_dir = "docs"
output_dir = "build/docs"
backend = "docbook"
doctype = "book"
extensions = ["adoc", ".txt"]
safe_mode = "SAFE"

[conversion.attributes]
toc = true
icons = "font"

[fail_if]
severity = "warning"
""",
        encoding="utf-8",
    )
    config = load_config(config_file)
    assert config.runtime.renderer == "asciidoctor"
    assert config.runtime.parallelism == 4
    assert config.runtime.enable_local_api is True
    assert config.conversion.source_dir == Path("docs")
    assert config.conversion.backend == "docbook"
    assert config.conversion.extensions == (".adoc", ".txt")
    assert config.conversion.safe_mode is SafeMode.SAFE
    assert config.conversion.attributes == {"toc": "", "icons": "font"}
    fail_if = config.fail_if.to_fail_if()
    assert fail_if is not None and fail_if.severity is Severity.WARN


def test_load_config_missing_file_gives_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "absent.toml")
    assert config == AppConfig()


def test_build_conversion_config_applies_overrides(tmp_path: Path) -> None:
    app_config = AppConfig()
    app_config.conversion.source_dir = tmp_path
    app_config.conversion.output_dir = tmp_path / "out"
    app_config.conversion.attributes = {"icons": "font"}

    config = build_conversion_config(app_config, backend="docbook", doctype=None, attributes={"toc": "left"})

    assert config.backend == "docbook"
    assert config.doctype is None
    assert dict(config.attributes) == {"icons": "font", "toc": "left"}
    assert app_config.conversion.attributes == {"icons": "font"}


def test_build_conversion_config_in_place_drops_output_dir(tmp_path: Path) -> None:
    app_config = AppConfig()
    app_config.conversion.source_dir = tmp_path
    app_config.conversion.output_dir = tmp_path / "out"
    config = build_conversion_config(app_config, in_place=True)
    assert config.in_place is True
    assert config.output_dir is None


def test_build_conversion_config_requires_source_dir() -> None:
    with pytest.raises(ConfigError):
        build_conversion_config(AppConfig())


def test_dump_config_is_json() -> None:
    payload = json.loads(dump_config(AppConfig()))
    assert payload["conversion"]["backend"] == "html5"
    assert payload["runtime"]["renderer"] == "asciidoc"


def test_environment_settings_override_runtime(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ADOC_CONFIG_PATH", str(tmp_path / "custom.toml"))
    monkeypatch.setenv("ADOC_ENABLE_LOCAL_API", "yes")
    monkeypatch.setenv("ADOC_RENDERER", "asciidoctor")

    settings = read_settings()
    config = settings.apply(AppConfig())

    assert settings.config_path == tmp_path / "custom.toml"
    assert config.runtime.enable_local_api is True
    assert config.runtime.renderer == "asciidoctor"


def test_unrecognized_env_flag_leaves_config_untouched(monkeypatch) -> None:
    monkeypatch.setenv("ADOC_ENABLE_LOCAL_API", "maybe")
    monkeypatch.delenv("ADOC_RENDERER", raising=False)

    config = read_settings().apply(AppConfig())

    assert config.runtime.enable_local_api is False
    assert config.runtime.renderer == "asciidoc"


def test_unset_attribute_survives_build_conversion_config(tmp_path: Path) -> None:
    app_config = AppConfig()
    app_config.conversion.source_dir = tmp_path
    app_config.conversion.output_dir = tmp_path / "out"

    config = build_conversion_config(app_config, attributes=parse_attribute_chain(["nofooter!", "toc"]))

    assert config.attributes["nofooter"] is None
    assert config.attributes["toc"] == ""


def test_false_attribute_in_config_file_stays_unset(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text(
        f'[conversion]\nsource_dir = "{tmp_path.as_posix()}"\noutput_dir = "{(tmp_path / "out").as_posix()}"\n\n'
        "[conversion.attributes]\nx = false\nicons = \"font\"\n",
        encoding="utf-8",
    )

    config = build_conversion_config(load_config(config_file))

    assert config.attributes["x"] is None
    assert config.attributes["icons"] == "font"


def test_conversion_config_attributes_are_stable_when_rebuilt(tmp_path: Path) -> None:
    first = ConversionConfig(
        source_dir=tmp_path, output_dir=tmp_path / "out", attributes={"nofooter": False, "toc": True}
    )
    second = ConversionConfig(source_dir=tmp_path, output_dir=tmp_path / "out", attributes=first.attributes)
    assert dict(second.attributes) == {"nofooter": None, "toc": ""}


def test_conversion_config_paths_are_absolute(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    config = ConversionConfig(source_dir=Path("docs"), output_dir=Path("build"), base_dir=Path("docs/shared"))
    assert config.source_dir == tmp_path / "docs"
    assert config.output_dir == tmp_path / "build"
    assert config.base_dir == tmp_path / "docs" / "shared"


def test_source_document_name_from_config_file(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text(
        f'[conversion]\nsource_dir = "{tmp_path.as_posix()}"\noutput_dir = "{(tmp_path / "out").as_posix()}"\n'
        'source_document_name = "index.adoc"\n',
        encoding="utf-8",
    )
    app_config = load_config(config_file)
    assert app_config.conversion.source_document_name == "index.adoc"
    assert build_conversion_config(app_config).source_document_name == "index.adoc"
    assert json.loads(dump_config(app_config))["conversion"]["source_document_name"] == "index.adoc"


def test_unknown_fail_if_severity_is_a_config_error(tmp_path: Path) -> None:
    app_config = AppConfig()
    app_config.conversion.source_dir = tmp_path
    app_config.conversion.output_dir = tmp_path / "out"
    app_config.fail_if.severity = "loud"
    with pytest.raises(ConfigError):
        build_conversion_config(app_config)
