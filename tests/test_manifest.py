"""Deployment manifest loading."""

from pathlib import Path

import pytest

from vault_seeder.env import ConfigurationError
from vault_seeder.manifest import get_contracts_path, load_deployment_manifest


def test_load_manifest(frontend_dir: Path):
    path = get_contracts_path(frontend_dir)
    assert path == frontend_dir / "src" / "deploy" / "contracts.json"

    manifest = load_deployment_manifest(path)
    assert manifest.manager == "0x5FbDB2315678afecb367f032d93F642f64180aa3"
    assert manifest.contracts["oracle"] == "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
    assert manifest.path == path


def test_manifest_missing(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_deployment_manifest(tmp_path / "contracts.json")


def test_manifest_not_json(tmp_path: Path):
    path = tmp_path / "contracts.json"
    path.write_text("{manager: ")
    with pytest.raises(ConfigurationError, match="not valid JSON"):
        load_deployment_manifest(path)


@pytest.mark.parametrize(
    "content",
    [
        "[]",
        "{}",
        '{"manager": 1}',
        '{"manager": "0x123"}',
    ],
)
def test_manifest_without_manager(tmp_path: Path, content: str):
    path = tmp_path / "contracts.json"
    path.write_text(content)
    with pytest.raises(ConfigurationError):
        load_deployment_manifest(path)


def test_manifest_ignores_non_address_entries(tmp_path: Path):
    path = tmp_path / "contracts.json"
    path.write_text('{"manager": "0x5fbdb2315678afecb367f032d93f642f64180aa3", "chainId": 1337, "name": "local"}')
    manifest = load_deployment_manifest(path)
    assert list(manifest.contracts) == ["manager"]
