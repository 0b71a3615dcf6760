"""
User-declared attribute overrides for one reconciliation session.

Keys are raw spreadsheet values exactly as they appear in the file
(case sensitive). Values are canonical catalog values. Nothing here
checks the catalog; the classifier decides whether a mapped value
resolves when the file is re-parsed.
"""

from typing import Optional, Union
import structlog

from exceptions import ValidationError
from models.stock_upload import Dimension

logger = structlog.get_logger(__name__)


class MappingStore:
    """Four independent raw -> canonical dictionaries."""

    def __init__(self):
        self._mappings: dict[Dimension, dict[str, str]] = {
            dimension: {} for dimension in Dimension
        }

    def set_mapping(
        self,
        dimension: Union[Dimension, str],
        excel_value: str,
        db_value: str,
    ) -> None:
        """Insert or overwrite one override."""
        key = _to_dimension(dimension)
        self._mappings[key][excel_value] = db_value
        logger.debug(
            "mapping_set",
            dimension=key.value,
            excel_value=excel_value,
            db_value=db_value
        )

    def get_mapping(
        self,
        dimension: Union[Dimension, str],
        excel_value: Optional[str],
    ) -> Optional[str]:
        """Override for a raw value, or None."""
        if excel_value is None:
            return None
        return self._mappings[_to_dimension(dimension)].get(excel_value)

    def remove_mapping(self, dimension: Union[Dimension, str], excel_value: str) -> bool:
        """Drop one override. Returns True if it existed."""
        key = _to_dimension(dimension)
        removed = self._mappings[key].pop(excel_value, None) is not None
        if removed:
            logger.debug("mapping_removed", dimension=key.value, excel_value=excel_value)
        return removed

    def has_any_mapping(self) -> bool:
        return any(self._mappings.values())

    def as_dict(self) -> dict[str, dict[str, str]]:
        """Wire format: {"finish": {...}, "width": {...}, "pcd": {...}, "holes": {...}}."""
        return {
            dimension.value: dict(values)
            for dimension, values in self._mappings.items()
        }

    def copy(self) -> "MappingStore":
        return MappingStore.from_dict(self.as_dict())

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "MappingStore":
        """
        Build a store from the wire format.

        Raises:
            ValidationError: On an unknown dimension or non-dict entry
        """
        if data is not None and not isinstance(data, dict):
            raise ValidationError(
                message="Mappings must be an object keyed by dimension",
                code="INVALID_MAPPINGS"
            )

        store = cls()
        for dimension, values in (data or {}).items():
            if not isinstance(values, dict):
                raise ValidationError(
                    message=f"Mappings for {dimension} must be an object",
                    code="INVALID_MAPPINGS",
                    details={"dimension": dimension}
                )
            for excel_value, db_value in values.items():
                if db_value is None:
                    continue
                store.set_mapping(dimension, str(excel_value), str(db_value))
        return store

    def __len__(self) -> int:
        return sum(len(values) for values in self._mappings.values())


def _to_dimension(dimension: Union[Dimension, str]) -> Dimension:
    """Coerce a string to Dimension."""
    if isinstance(dimension, Dimension):
        return dimension
    try:
        return Dimension(str(dimension).lower())
    except ValueError:
        raise ValidationError(
            message=f"Unknown mapping dimension: {dimension}",
            code="INVALID_DIMENSION",
            details={
                "provided": dimension,
                "valid": [d.value for d in Dimension]
            }
        )
