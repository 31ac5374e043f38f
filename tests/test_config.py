import pytest
from pydantic import ValidationError

from iacgen.config import CompilerConfig, load_config


def test_defaults_when_file_missing(tmp_path):
    config = load_config(tmp_path / "iacgen.yaml")
    assert config == CompilerConfig()
    assert config.template_packages == ["iacgen.templates"]
    assert config.marker == "#TMPL"


def test_load_from_yaml(tmp_path):
    path = tmp_path / "iacgen.yaml"
    path.write_text("marker: '//TMPL'\nproviders: [aws]\ndrop_null_inputs: false\n")
    config = load_config(path)
    assert config.marker == "//TMPL"
    assert config.is_provider_enabled("aws")
    assert not config.is_provider_enabled("gcp")
    assert config.drop_null_inputs is False


def test_env_overrides_template_packages(tmp_path, monkeypatch):
    monkeypatch.setenv("IACGEN_TEMPLATE_PACKAGES", "iacgen.templates, mycompany.templates")
    config = load_config(tmp_path / "iacgen.yaml")
    assert config.template_packages == ["iacgen.templates", "mycompany.templates"]


def test_unknown_keys_rejected(tmp_path):
    path = tmp_path / "iacgen.yaml"
    path.write_text("markr: x\n")
    with pytest.raises(ValidationError):
        load_config(path)


def test_blank_marker_rejected():
    with pytest.raises(ValidationError):
        CompilerConfig(marker=" ")


def test_non_mapping_file(tmp_path):
    path = tmp_path / "iacgen.yaml"
    path.write_text("- a\n")
    with pytest.raises(ValueError):
        load_config(path)
