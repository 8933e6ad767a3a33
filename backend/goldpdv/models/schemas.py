"""Request bodies for the costing / production routes, with converters to the engine types."""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from goldpdv.config import DEFAULT_BOM_VERSION, DEFAULT_UNIT
from goldpdv.models.production import ProductionOrderDraft
from goldpdv.services.costing_engine import BillOfMaterials, BomLine
from goldpdv.services.production_engine import ExtraMaterial, PriceAnchor, ProductionExtras


class BomLineIn(BaseModel):
    component_code: str = Field(..., description="Item code (cditem) of the component")
    description: str = ""
    base_quantity: float = Field(0.0, ge=0, allow_inf_nan=False, description="Quantity per produced unit")
    unit_cost: float = Field(0.0, ge=0, allow_inf_nan=False)
    factor: Optional[float] = Field(
        None, ge=0, allow_inf_nan=False, description="Multiplier; percentage/100 or 1 when absent"
    )
    percentage: Optional[float] = Field(None, ge=0, allow_inf_nan=False)

    def to_domain(self) -> BomLine:
        return BomLine(
            component_code=self.component_code,
            description=self.description,
            base_quantity=self.base_quantity,
            unit_cost=self.unit_cost,
            factor=self.factor,
            percentage=self.percentage,
        )


class BomIn(BaseModel):
    product_code: str
    version: str = DEFAULT_BOM_VERSION
    lot_size: float = Field(1.0, ge=0, allow_inf_nan=False)
    validity_days: int = Field(0, ge=0)
    margin_target: float = Field(0.0, ge=0, allow_inf_nan=False, description="Target margin in percent")
    notes: str = ""
    lines: List[BomLineIn] = []

    def to_domain(self) -> BillOfMaterials:
        return BillOfMaterials(
            product_code=self.product_code,
            version=self.version,
            lot_size=self.lot_size,
            validity_days=self.validity_days,
            margin_target=self.margin_target,
            notes=self.notes,
            lines=[line.to_domain() for line in self.lines],
        )


class BomUpdateIn(BaseModel):
    product_code: Optional[str] = None
    version: Optional[str] = None
    lot_size: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    validity_days: Optional[int] = Field(None, ge=0)
    margin_target: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    notes: Optional[str] = None
    lines: Optional[List[BomLineIn]] = None

    def to_changes(self) -> Dict[str, Any]:
        """Only the fields the caller actually sent."""
        changes = self.model_dump(exclude_unset=True, exclude={"lines"})
        if self.lines is not None:
            changes["lines"] = [line.to_domain() for line in self.lines]
        return changes


class LineCostIn(BaseModel):
    base_quantity: float = Field(..., ge=0, allow_inf_nan=False)
    factor: float = Field(1.0, ge=0, allow_inf_nan=False)
    unit_cost: float = Field(..., ge=0, allow_inf_nan=False)


class ExtraMaterialIn(BaseModel):
    component_code: str
    unit_cost: float = Field(0.0, ge=0, allow_inf_nan=False)
    description: str = ""
    planned_quantity: Optional[float] = Field(None, ge=0, allow_inf_nan=False)

    def to_domain(self) -> ExtraMaterial:
        return ExtraMaterial(
            component_code=self.component_code,
            unit_cost=self.unit_cost,
            description=self.description,
            planned_quantity=self.planned_quantity,
        )


class ExtrasIn(BaseModel):
    boxes_qty: float = Field(0.0, ge=0, allow_inf_nan=False)
    box_cost: float = Field(0.0, ge=0, allow_inf_nan=False)
    labor_per_unit: float = Field(0.0, ge=0, allow_inf_nan=False)
    post_sale_tax_percent: float = Field(0.0, ge=0, allow_inf_nan=False)

    def to_domain(self) -> ProductionExtras:
        return ProductionExtras(**self.model_dump())


class PriceAnchorIn(BaseModel):
    mode: Literal["markup", "price"]
    value: float = Field(..., allow_inf_nan=False, description="Markup in percent or sale price per unit")

    @model_validator(mode="after")
    def _price_not_negative(self) -> "PriceAnchorIn":
        if self.mode == "price" and self.value < 0:
            raise ValueError("sale price must not be negative")
        return self

    def to_domain(self) -> PriceAnchor:
        if self.mode == "markup":
            return PriceAnchor.by_markup(self.value)
        return PriceAnchor.by_price(self.value)


class ProjectionIn(BaseModel):
    lines: List[BomLineIn] = []
    quantity_planned: float = Field(0.0, ge=0, allow_inf_nan=False)
    extras: ExtrasIn = ExtrasIn()
    price: Optional[PriceAnchorIn] = Field(None, description="Field the operator last edited")
    extra_materials: List[ExtraMaterialIn] = []


class ProductionOrderIn(ProjectionIn):
    """
    New order. When ``lines`` is empty and ``bom_id`` is set, the BOM lines are
    fetched from the backend before the projection is computed.
    """
    product_code: str
    start_date: str = ""
    due_date: str = ""
    unit: str = DEFAULT_UNIT
    external_code: str = ""
    notes: str = ""
    bom_id: str = ""
    lote: Optional[int] = None
    custom_validate_date: Optional[str] = None
    author_user: Optional[str] = None

    def to_draft(self) -> ProductionOrderDraft:
        return ProductionOrderDraft(
            product_code=self.product_code,
            quantity_planned=self.quantity_planned,
            start_date=self.start_date,
            due_date=self.due_date,
            unit=self.unit,
            external_code=self.external_code,
            notes=self.notes,
            bom_id=self.bom_id,
            lote=self.lote,
            custom_validate_date=self.custom_validate_date,
            author_user=self.author_user,
        )
