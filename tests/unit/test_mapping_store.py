"""
Tests for MappingStore.
"""

import pytest

from exceptions import ValidationError
from models.stock_upload import Dimension
from services.mapping_store import MappingStore


class TestMappingStore:
    """Tests for set / get / remove."""

    def test_empty_store_has_no_mapping(self):
        store = MappingStore()

        assert store.has_any_mapping() is False
        assert len(store) == 0

    def test_set_then_get(self):
        store = MappingStore()
        store.set_mapping(Dimension.FINISH, "GUN METAL", "Gunmetal")

        assert store.get_mapping(Dimension.FINISH, "GUN METAL") == "Gunmetal"
        assert store.has_any_mapping() is True

    def test_dimension_accepts_string(self):
        store = MappingStore()
        store.set_mapping("width", "7.0", "7")

        assert store.get_mapping(Dimension.WIDTH, "7.0") == "7"

    def test_keys_are_case_sensitive(self):
        store = MappingStore()
        store.set_mapping(Dimension.FINISH, "Gun Metal", "Gunmetal")

        assert store.get_mapping(Dimension.FINISH, "GUN METAL") is None

    def test_dimensions_are_independent(self):
        store = MappingStore()
        store.set_mapping(Dimension.PCD, "100", "100")

        assert store.get_mapping(Dimension.WIDTH, "100") is None

    def test_set_overwrites(self):
        store = MappingStore()
        store.set_mapping(Dimension.FINISH, "GM", "Gunmetal")
        store.set_mapping(Dimension.FINISH, "GM", "Graphite")

        assert store.get_mapping(Dimension.FINISH, "GM") == "Graphite"
        assert len(store) == 1

    def test_get_none_key(self):
        assert MappingStore().get_mapping(Dimension.FINISH, None) is None

    def test_remove(self):
        store = MappingStore()
        store.set_mapping(Dimension.HOLES, "4H", "4")

        assert store.remove_mapping(Dimension.HOLES, "4H") is True
        assert store.remove_mapping(Dimension.HOLES, "4H") is False
        assert store.has_any_mapping() is False

    def test_unknown_dimension_raises(self):
        with pytest.raises(ValidationError) as exc:
            MappingStore().set_mapping("colour", "x", "y")
        assert exc.value.code == "INVALID_DIMENSION"


class TestMappingStoreWireFormat:
    """Tests for as_dict / from_dict / copy."""

    def test_as_dict_lists_all_dimensions(self):
        assert MappingStore().as_dict() == {"finish": {}, "width": {}, "pcd": {}, "holes": {}}

    def test_from_dict_round_trip(self):
        data = {"finish": {"GM": "Gunmetal"}, "pcd": {"114.30": "114.3"}}

        store = MappingStore.from_dict(data)

        assert store.as_dict()["finish"] == {"GM": "Gunmetal"}
        assert store.as_dict()["pcd"] == {"114.30": "114.3"}

    def test_from_dict_skips_null_values(self):
        store = MappingStore.from_dict({"finish": {"GM": None}})

        assert store.has_any_mapping() is False

    def test_from_dict_rejects_non_object(self):
        with pytest.raises(ValidationError) as exc:
            MappingStore.from_dict({"finish": ["GM"]})
        assert exc.value.code == "INVALID_MAPPINGS"

    def test_from_dict_rejects_list_payload(self):
        with pytest.raises(ValidationError):
            MappingStore.from_dict(["finish"])

    def test_copy_is_independent(self):
        store = MappingStore()
        store.set_mapping(Dimension.FINISH, "GM", "Gunmetal")

        snapshot = store.copy()
        store.set_mapping(Dimension.FINISH, "SLV", "Silver")

        assert snapshot.get_mapping(Dimension.FINISH, "SLV") is None
        assert snapshot.get_mapping(Dimension.FINISH, "GM") == "Gunmetal"
