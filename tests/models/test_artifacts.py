from pathlib import Path

import pytest
from pydantic import ValidationError

from nersc_sshproxy.models.artifacts import KeyArtifactSet, ValidityWindow


def test_artifact_set_is_frozen_and_ordered(tmp_path: Path) -> None:
    arts = KeyArtifactSet(
        private_key_path=tmp_path / "nersc",
        certificate_path=tmp_path / "nersc-cert.pub",
        public_key_path=tmp_path / "nersc.pub",
    )
    assert arts.all_paths() == [tmp_path / "nersc", tmp_path / "nersc-cert.pub", tmp_path / "nersc.pub"]
    with pytest.raises(ValidationError):
        arts.private_key_path = tmp_path / "other"  # type: ignore[misc]


def test_validity_window_requires_text() -> None:
    with pytest.raises(ValidationError):
        ValidityWindow(raw="")
    with pytest.raises(ValidationError):
        ValidityWindow(raw="forever", extra_field=1)  # type: ignore[call-arg]
