"""Pydantic models for pallets, load assignments and inventory snapshots."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Pallet(BaseModel):
    """A physical pallet as consumed by the document generators."""
    pt_code: str = ""
    description: str = ""
    destination: Optional[str] = None
    quantity: int = 0
    gross_weight: Optional[float] = None
    net_weight: Optional[float] = None
    pieces: Optional[int] = None
    unit: str = "bags"
    customer_lot: Optional[str] = None
    bfx_order: Optional[str] = None
    release_number: Optional[str] = None
    is_on_hold: bool = False


class LoadPallet(BaseModel):
    """A pallet's assignment to a shipping load (row of ``load_pallets``)."""
    id: UUID
    load_id: UUID
    pallet_id: UUID
    destination: Optional[str] = None
    quantity: float = 0
    release_number: Optional[str] = None
    release_pdf_url: Optional[str] = None
    is_on_hold: bool = False
    delivery_date: Optional[date] = None


class POInfo(BaseModel):
    """Purchase-order reference data keyed by the customer's PO (``customer_lot``)."""
    customer_lot: str
    sales_order_number: Optional[str] = None
    price_per_thousand: Optional[float] = None
    pieces_per_pallet: Optional[int] = None
    piezas_por_paquete: Optional[int] = None
    customer_item: Optional[str] = None


class Destination(BaseModel):
    code: str = ""
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


class LoadInfo(BaseModel):
    load_number: str
    shipping_date: str
    release_number: Optional[str] = None
    invoice_number: str = ""


# ---------------------------------------------------------------------------
# SAP feed
# ---------------------------------------------------------------------------


class SapInventoryItem(BaseModel):
    """One record of the SAP ``vwStockDestiny`` feed. Every field is optional.

    SAP sends lot and order numbers as JSON numbers on some records, so text
    fields accept numbers and blank strings read as missing.
    """
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    fecha: Optional[str] = None
    claveProducto: Optional[str] = None
    nombreProducto: Optional[str] = None
    totalUnits: Optional[float] = None
    cantidad: Optional[float] = None
    uom: Optional[str] = None
    unidad: Optional[str] = None
    pesoBruto: Optional[float] = None
    pesoNeto: Optional[float] = None
    lote: Optional[str] = None
    po: Optional[str] = None
    cajas: Optional[float] = Field(default=None, allow_inf_nan=False)
    asignadoAentrega: Optional[bool] = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_missing(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class SapInventoryRow(BaseModel):
    """Row shape inserted into ``sap_inventory``."""
    pt_code: str
    description: str
    stock: float
    unit: str
    gross_weight: Optional[float] = None
    net_weight: Optional[float] = None
    traceability: str
    bfx_order: Optional[str] = None
    pieces: Optional[int] = None
    pallet_type: str = "CASES"
    status: str
    fecha: date
    raw_data: dict[str, Any] = Field(default_factory=dict)
    synced_at: datetime


class InventoryPalletRow(BaseModel):
    """Row shape inserted into ``inventory_pallets``."""
    pt_code: str
    description: str
    stock: float
    unit: str
    gross_weight: Optional[float] = None
    net_weight: Optional[float] = None
    traceability: str
    bfx_order: Optional[str] = None
    customer_lot: Optional[str] = None
    pieces: Optional[int] = None
    pallet_type: Optional[str] = None
    status: str = "available"
    fecha: date


class SyncResult(BaseModel):
    success: bool
    count: int
    synced_at: datetime
    mirrored: int = 0
    mirror_error: Optional[str] = None


class InventoryUploadResult(BaseModel):
    count: int
    replaced: int = 0


# ---------------------------------------------------------------------------
# Destiny product catalog
# ---------------------------------------------------------------------------


class DestinyProduct(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    codigoProducto: Optional[str] = None
    customer_item: Optional[str] = None
    item_description: Optional[str] = None
    printCard: Optional[str] = None
    tipoEmpaque: Optional[str] = None
    product_line: Optional[str] = None
    unidadesPorTarima: Optional[float] = None
    piezasTotalePorCaja: Optional[float] = None
    paquetePorCaja: Optional[float] = None
    piezasPorPaquete: Optional[float] = None
    piecesPerPallet: Optional[float] = None
