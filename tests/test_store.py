"""
Tests for JSON artifact persistence.
"""

import pytest

from billing_simulation.core.exceptions import ArtifactNotFoundError, PersistenceError
from billing_simulation.persistence.store import ArtifactStore, sanitize_name


class TestSanitizeName:
    def test_traversal_is_reduced_to_basename(self):
        assert sanitize_name("../../x.json") == "x"

    def test_special_characters(self):
        assert sanitize_name("FMBI-ED-COMM/UPC L1") == "UPC_L1"
        assert sanitize_name("bill name!") == "bill_name"

    def test_empty_name_rejected(self):
        with pytest.raises(PersistenceError):
            sanitize_name("../!!!")


class TestArtifactStore:
    def test_save_load_list(self, tmp_path):
        store = ArtifactStore(tmp_path / "bills")

        path = store.save("FMBI-ED-COMM-CLN-L2_BILL-1", {"health_score": 100})

        assert path.exists()
        assert store.load("FMBI-ED-COMM-CLN-L2_BILL-1") == {"health_score": 100}
        assert store.list_names() == ["FMBI-ED-COMM-CLN-L2_BILL-1"]

    def test_missing_artifact(self, tmp_path):
        with pytest.raises(ArtifactNotFoundError):
            ArtifactStore(tmp_path).load("nope")

    def test_corrupt_file(self, tmp_path):
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(PersistenceError):
            ArtifactStore(tmp_path).load("broken")

    def test_list_on_missing_directory(self, tmp_path):
        assert ArtifactStore(tmp_path / "absent").list_names() == []
