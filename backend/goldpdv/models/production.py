from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class CostBreakdown:
    """Ingredient cost plus the legacy percentage categories shown on order screens."""
    ingredients: float = 0.0
    labor: float = 0.0
    packaging: float = 0.0
    taxes: float = 0.0
    overhead: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            "ingredients": self.ingredients,
            "labor": self.labor,
            "packaging": self.packaging,
            "taxes": self.taxes,
            "overhead": self.overhead,
        }


@dataclass
class OrderRawMaterial:
    component_code: str
    id: str = ""
    description: str = ""
    quantity: float = 0.0
    quantity_used: float = 0.0
    planned_quantity: Optional[float] = None
    planned_cost: Optional[float] = None
    unit: str = "UN"
    unit_cost: Optional[float] = None
    warehouse: Optional[str] = None
    batch_number: Optional[str] = None
    consumed_at: Optional[str] = None


@dataclass
class OrderBomItem:
    component_code: str
    description: str = ""
    quantity: float = 0.0
    planned_quantity: Optional[float] = None
    unit_cost: float = 0.0
    planned_cost: Optional[float] = None


@dataclass
class OrderFinishedGood:
    id: str
    product_code: str = ""
    lot_number: Optional[str] = None
    quantity_good: float = 0.0
    quantity_scrap: float = 0.0
    unit_cost: Optional[float] = None
    posted_at: Optional[str] = None


@dataclass
class StatusEvent:
    id: str
    status: str
    order_id: str = ""
    op: str = ""
    name: str = ""
    timestamp: str = ""
    responsible: str = "Sistema"
    author_user: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class ReferenceBom:
    product_code: str = ""
    version: str = ""
    lot_size: float = 0.0
    validity_days: int = 0


@dataclass
class BomTotalsSnapshot:
    """Totals the backend attaches to an order; every field may be missing."""
    total_quantity: Optional[float] = None
    total_cost: Optional[float] = None
    ingredients: Optional[float] = None
    labor: Optional[float] = None
    packaging: Optional[float] = None
    taxes: Optional[float] = None
    overhead: Optional[float] = None
    unit_cost: Optional[float] = None


@dataclass
class ProductionOrder:
    id: str
    product_code: str
    op: str = ""
    product_name: Optional[str] = None
    bom_id: str = ""
    quantity_planned: float = 0.0
    unit: str = "UN"
    start_date: str = ""
    due_date: str = ""
    external_code: str = ""
    notes: str = ""
    status: str = "SEPARACAO"
    author_user: Optional[str] = None
    lote: Optional[Any] = None
    validate: Optional[str] = None
    custom_validate_date: Optional[str] = None
    boxes_qty: float = 0.0
    box_cost: float = 0.0
    labor_per_unit: float = 0.0
    sale_price: float = 0.0
    markup: float = 0.0
    post_sale_tax: float = 0.0
    total_cost: float = 0.0
    unit_cost: float = 0.0
    cost_breakdown: Optional[CostBreakdown] = None
    bom_totals: Optional[BomTotalsSnapshot] = None
    reference_bom: Optional[ReferenceBom] = None
    raw_materials: List[OrderRawMaterial] = field(default_factory=list)
    bom_items: List[OrderBomItem] = field(default_factory=list)
    finished_goods: List[OrderFinishedGood] = field(default_factory=list)
    status_history: List[StatusEvent] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class ProductionOrderDraft:
    """Order form state before it is sent to the backend."""
    product_code: str
    quantity_planned: float
    start_date: str = ""
    due_date: str = ""
    unit: str = "UN"
    external_code: str = ""
    notes: str = ""
    bom_id: str = ""
    lote: Optional[int] = None
    custom_validate_date: Optional[str] = None
    author_user: Optional[str] = None
