"""
Invoice Domain Models

One InvoiceLine per (billing_document, item). Field names follow the
`invoice` table columns so RealDictCursor rows validate directly.

Author: TM3
Date: 2025-11-02
"""
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ainoc.domain.types import Amount


class InvoiceLine(BaseModel):
    """
    A single invoice line item

    Fields are grouped the way the billing export groups them: document
    identifiers, bill-to customer, material and pricing, amounts, and the
    fabric/classification dimensions copied from the material master.
    """

    model_config = ConfigDict(extra="ignore")

    id: int = Field(..., description="Surrogate id assigned at ingest")

    # Document identifiers
    sales_organization: Optional[str] = None
    billing_document: str = Field(..., description="External invoice number")
    item: int = Field(..., description="Line number within the billing document")
    invoice_date: Optional[date] = None
    billing_type: Optional[str] = None
    plant: Optional[str] = None
    reference: Optional[str] = None
    bill_doc_desc: Optional[str] = None
    document_currency: Optional[str] = None
    document_number: Optional[str] = None
    fiscal_year: Optional[int] = None
    document_type: Optional[str] = None

    # Customer
    bill_to_party: Optional[str] = Field(None, description="Customer name")
    bill_to_party_code: Optional[str] = Field(None, description="Customer code (ownership key)")
    bill_to_party_city: Optional[str] = None
    cust_group_desc: Optional[str] = None
    ship_to_party_city: Optional[str] = None

    # Material and pricing
    material: Optional[str] = None
    basic_price: Amount = None
    billed_quantity: Amount = None
    base_unit_of_measure: Optional[str] = None
    billing_qty_in_sku: Amount = None
    no_of_pack: Optional[int] = None
    description_2_for_the_material_group: Optional[str] = None
    profit_center: Optional[str] = None

    # Amounts
    net_amount_inr: Amount = None
    discount_amount: Amount = None
    taxable_amt: Amount = None
    total_gst_amt: Amount = None
    gross_amt_fc: Amount = None
    tcs_amt: Amount = None
    gross_amount: Amount = None
    acc_net_amount_inr: Amount = None
    commission: Amount = None
    air_freight: Amount = None

    # Agent / broker
    agent_code: Optional[str] = None
    agent_name: Optional[str] = None
    agent_state: Optional[str] = None
    broker_code: Optional[str] = None
    broker_name: Optional[str] = None
    region_zone: Optional[str] = None

    # Fabric / classification
    stock_type: Optional[str] = None
    loom_type: Optional[str] = None
    dyed_type: Optional[str] = None
    width: Amount = None
    quality: Optional[str] = None
    design: Optional[str] = None
    shade_no: Optional[str] = None
    fabric_type: Optional[str] = None
    shade_name: Optional[str] = None
    book_name: Optional[str] = None
    book_reference_no: Optional[str] = None
    ainocular_shade: Optional[str] = None
    ainocular_shade_description: Optional[str] = None
    ainocular_design: Optional[str] = None
    ainocular_design_description: Optional[str] = None
    colour_family: Optional[str] = None
    colour_master: Optional[str] = None
    pattern_scale: Optional[str] = None
    pattern_name: Optional[str] = None
    end_use: Optional[str] = None
    fabric_type_des: Optional[str] = None
    style: Optional[str] = None
    gsm: Amount = None
    vertical_repeat: Amount = None
    horizontal_repeat: Amount = None
    composition: Optional[str] = None


class InvoiceShipping(BaseModel):
    """Shipping and logistics view of one invoice line"""
    billing_document: str
    item: int
    invoice_date: Optional[date] = None
    bill_to_party: Optional[str] = None
    bill_to_party_city: Optional[str] = None
    ship_to_party_city: Optional[str] = None
    region_zone: Optional[str] = None
    no_of_pack: Optional[int] = None
    billed_quantity: Amount = None
    base_unit_of_measure: Optional[str] = None
    air_freight: Amount = None
    agent_name: Optional[str] = None
    broker_name: Optional[str] = None


class AmountSummary(BaseModel):
    """Summed amounts over a set of invoice lines"""
    total_net_amount: float = 0.0
    total_gross_amount: float = 0.0
    total_discount: float = 0.0
    total_taxable_amount: float = 0.0
    total_gst: float = 0.0
    total_tcs: float = 0.0
    invoice_count: int = 0


class InvoiceKpis(AmountSummary):
    avg_invoice_net_amount: float = 0.0


class CustomerRevenue(BaseModel):
    bill_to_party_code: Optional[str]
    bill_to_party: Optional[str]
    total_net_amount: float
    total_gross_amount: float
    invoice_count: int


class RegionRevenue(BaseModel):
    region_zone: Optional[str]
    total_net_amount: float
    total_gross_amount: float
    invoice_count: int


class AgentPerformance(BaseModel):
    agent_code: Optional[str]
    agent_name: Optional[str]
    region_zone: Optional[str]
    total_net_amount: float
    invoice_count: int


class FabricPerformance(BaseModel):
    end_use: Optional[str]
    fabric_type: Optional[str]
    fabric_type_des: Optional[str]
    style: Optional[str]
    total_net_amount: float
    total_quantity: float
    invoice_count: int


class PatternPerformance(BaseModel):
    ainocular_design: Optional[str]
    ainocular_shade: Optional[str]
    ainocular_design_description: Optional[str]
    ainocular_shade_description: Optional[str]
    pattern_name: Optional[str]
    colour_family: Optional[str]
    total_net_amount: float
    total_quantity: float
    invoice_count: int


class CustomerOption(BaseModel):
    bill_to_party_code: Optional[str]
    bill_to_party: Optional[str]


class AgentOption(BaseModel):
    agent_code: Optional[str]
    agent_name: Optional[str]


class DesignOption(BaseModel):
    ainocular_design: Optional[str]
    ainocular_design_description: Optional[str]


class CustomerDistinctValues(BaseModel):
    customers: List[CustomerOption]
    cities: List[str]


class AdminDistinctValues(BaseModel):
    regions: List[str]
    agents: List[AgentOption]
    end_uses: List[str]
    designs: List[DesignOption]


class InvoicePdfLink(BaseModel):
    billing_document: str
    pdf_url: str
    bill_to_party: Optional[str] = None
    invoice_date: Optional[date] = None
    message: str


class UserProfile(BaseModel):
    """Signed-in customer with lifetime invoice statistics"""
    id: str
    name: str
    email: str
    bill_to_party_code: str
    total_invoices: int = 0
    total_spent: float = 0.0
    first_invoice_date: Optional[date] = None
    last_invoice_date: Optional[date] = None


class MaterialPurchase(BaseModel):
    material: Optional[str]
    design: Optional[str]
    description_2_for_the_material_group: Optional[str]
    fabric_type: Optional[str]
    total_quantity: float
    total_net_amount: float
    purchase_count: int


class MonthlyPurchase(BaseModel):
    month: str = Field(..., description="Calendar month as YYYY-MM")
    total_net_amount: float
    total_quantity: float
    invoice_count: int
