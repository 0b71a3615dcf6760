"""
Catalog schemas: canonical products and the attribute vocabulary
used to build mapping choices.
"""

from pydantic import Field
from typing import Optional

from models.base import BaseSchema


class CatalogProduct(BaseSchema):
    """
    Canonical product as used by the classifier.

    One row of the alloy catalog, with the attributes a spreadsheet
    row is matched on and the current stock.
    """

    id: int = Field(..., description="Product ID")
    product_name: str = Field(..., description="Display name")
    model_name: str = Field(..., description="Alloy model")
    inches: Optional[str] = Field(None, description="Rim diameter")
    width: Optional[str] = Field(None, description="Rim width")
    pcd: Optional[str] = Field(None, description="Pitch circle diameter")
    holes: Optional[str] = Field(None, description="Hole count")
    finish: Optional[str] = Field(None, description="Canonical finish name")
    in_house_stock: int = Field(default=0, description="Current in-house stock")
    version: Optional[int] = Field(
        default=None,
        description="Row version used for optimistic concurrency"
    )


class ProductCandidate(BaseSchema):
    """Search hit offered for a manual match."""

    id: int
    product_name: str
    in_house_stock: int = 0
    version: Optional[int] = None


class CanonicalFinish(BaseSchema):
    """Finish as stored in the catalog."""

    id: int
    finish: str


class SpecOption(BaseSchema):
    """One allowed value of a spec dimension."""

    id: int
    value: str


class SpecVocabulary(BaseSchema):
    """Allowed widths, PCDs and hole counts."""

    widths: list[SpecOption] = Field(default_factory=list)
    pcds: list[SpecOption] = Field(default_factory=list)
    holes: list[SpecOption] = Field(default_factory=list)


class DefaultMapping(BaseSchema):
    """Suggested finish mapping. Never applied automatically."""

    excel_value: str
    finish: str
