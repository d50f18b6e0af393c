"""
Order endpoints for the till.

Mutations act on the order's draft; `/save` persists it and updates table
occupancy, `/checkout` completes the sale.
"""

from fastapi import APIRouter, Depends

from shared.config.constants import Capability, OrderStatus
from shared.utils.schemas import Order, OrderItem, ParsedOrder
from pos_api.core.dependencies import get_pos_service, require_capability
from pos_api.routers.pos_schemas import (
    AddItemOutput,
    AddItemRequest,
    ChatImportRequest,
    CheckoutRequest,
    CustomerRequest,
    DeductionOutput,
    DeliveryStatusRequest,
    ImportOutput,
    ItemPatch,
    ReceiptOutput,
    StartOrderRequest,
    StatusRequest,
)
from pos_api.services.domain import POSService
from pos_api.services.domain.order_service import OptionSelection
from pos_api.services.domain.sale_service import SaleReceipt


router = APIRouter(
    prefix="/api/orders",
    tags=["orders"],
    dependencies=[Depends(require_capability(Capability.POS))],
)


def _receipt_output(receipt: SaleReceipt) -> ReceiptOutput:
    return ReceiptOutput(
        sale=receipt.sale,
        order=receipt.order,
        table=receipt.table,
        deductions=[
            DeductionOutput(
                inventory_item_id=d.inventory_item_id,
                name=d.name,
                deducted=d.deducted,
                stock_before=d.stock_before,
                stock_after=d.stock_after,
            )
            for d in receipt.deductions
        ],
        customer=receipt.customer,
        customer_created=receipt.customer_created,
        tier_changed=receipt.tier_changed,
        failed_writes=[f"{table}:{entity_id}" for table, entity_id in receipt.failed_writes],
    )


# =============================================================================
# Queries
# =============================================================================


@router.get("", response_model=list[Order])
def list_orders(
    status: OrderStatus | None = None,
    site_id: str | None = None,
    pos: POSService = Depends(get_pos_service),
) -> list:
    """Saved orders of the site, optionally filtered by status."""
    if status is None:
        return pos.active_orders(site_id)
    return pos.orders_by_status(status, site_id)


@router.get("/{order_id}", response_model=Order)
def get_order(order_id: str, pos: POSService = Depends(get_pos_service)):
    return pos.get_order(order_id)


@router.get("/{order_id}/staged", response_model=list[OrderItem])
def list_staged(order_id: str, pos: POSService = Depends(get_pos_service)) -> list[OrderItem]:
    return [staged.item for staged in pos.state.staged_items(order_id)]


# =============================================================================
# Drafts
# =============================================================================


@router.post("", response_model=Order, status_code=201)
def start_order(body: StartOrderRequest, pos: POSService = Depends(get_pos_service)):
    binding = body.model_dump(exclude={"order_type"}, exclude_none=True)
    if body.delivery_info is not None:
        binding["delivery_info"] = body.delivery_info
    return pos.start_order(body.order_type, **binding)


@router.post("/quick-sale", response_model=Order, status_code=201)
def quick_sale(pos: POSService = Depends(get_pos_service)):
    return pos.quick_sale()


@router.post("/tables/{table_id}/open", response_model=Order)
def open_table(table_id: str, pos: POSService = Depends(get_pos_service)):
    """Active order of the table, or a new dine-in draft."""
    return pos.open_table(table_id)


@router.delete("/{order_id}/draft", status_code=204)
def discard_draft(order_id: str, pos: POSService = Depends(get_pos_service)) -> None:
    pos.discard_draft(order_id)


# =============================================================================
# Items
# =============================================================================


@router.post("/{order_id}/items", response_model=AddItemOutput)
def add_item(order_id: str, body: AddItemRequest, pos: POSService = Depends(get_pos_service)) -> AddItemOutput:
    """Items with options come back in `staged` and need `/confirm`."""
    result = pos.add_item(order_id, body.menu_item_id)
    return AddItemOutput(order=result.order, staged=result.staged.item if result.staged else None)


@router.post("/{order_id}/staged/{instance_id}/confirm", response_model=Order)
def confirm_options(
    order_id: str,
    instance_id: str,
    body: OptionSelection,
    pos: POSService = Depends(get_pos_service),
):
    return pos.confirm_options(order_id, instance_id, body)


@router.delete("/{order_id}/staged/{instance_id}", status_code=204)
def cancel_staged(order_id: str, instance_id: str, pos: POSService = Depends(get_pos_service)) -> None:
    pos.cancel_staged(order_id, instance_id)


@router.patch("/{order_id}/items/{instance_id}", response_model=Order)
def update_item(
    order_id: str,
    instance_id: str,
    body: ItemPatch,
    pos: POSService = Depends(get_pos_service),
):
    return pos.update_item(order_id, instance_id, body.model_dump(exclude_unset=True))


@router.delete("/{order_id}/items/{instance_id}", response_model=Order)
def remove_item(order_id: str, instance_id: str, pos: POSService = Depends(get_pos_service)):
    return pos.remove_item(order_id, instance_id)


@router.post("/{order_id}/items/{instance_id}/increment", response_model=Order)
def increment_qty(order_id: str, instance_id: str, pos: POSService = Depends(get_pos_service)):
    return pos.increment_qty(order_id, instance_id)


@router.post("/{order_id}/items/{instance_id}/decrement", response_model=Order)
def decrement_qty(order_id: str, instance_id: str, pos: POSService = Depends(get_pos_service)):
    return pos.decrement_qty(order_id, instance_id)


@router.delete("/{order_id}/items", response_model=Order)
def clear_items(order_id: str, pos: POSService = Depends(get_pos_service)):
    return pos.clear_items(order_id)


@router.put("/{order_id}/customer", response_model=Order)
def attach_customer(order_id: str, body: CustomerRequest, pos: POSService = Depends(get_pos_service)):
    return pos.attach_customer(
        order_id,
        name=body.name,
        phone=body.phone,
        address=body.address,
        delivery_cost=body.delivery_cost,
    )


@router.post("/{order_id}/import", response_model=ImportOutput)
def import_parsed_order(
    order_id: str,
    body: ParsedOrder,
    pos: POSService = Depends(get_pos_service),
) -> ImportOutput:
    """Apply the structured result of the chat order parser."""
    order, skipped = pos.import_parsed_order(order_id, body)
    return ImportOutput(order=order, skipped=skipped)


@router.post("/{order_id}/import-text", response_model=ImportOutput)
def import_chat_message(
    order_id: str,
    body: ChatImportRequest,
    pos: POSService = Depends(get_pos_service),
) -> ImportOutput:
    """Parse a pasted chat message and apply it to the order."""
    order, skipped = pos.import_chat_message(order_id, body.text)
    return ImportOutput(order=order, skipped=skipped)


# =============================================================================
# Save / status / checkout
# =============================================================================


@router.post("/{order_id}/save", response_model=Order)
def save_order(order_id: str, pos: POSService = Depends(get_pos_service)):
    return pos.save_order(order_id)


@router.post("/{order_id}/status", response_model=Order)
def set_status(order_id: str, body: StatusRequest, pos: POSService = Depends(get_pos_service)):
    return pos.set_status(order_id, body.status)


@router.post(
    "/{order_id}/delivery-status",
    response_model=Order,
    dependencies=[Depends(require_capability(Capability.DELIVERIES))],
)
def set_delivery_status(
    order_id: str,
    body: DeliveryStatusRequest,
    pos: POSService = Depends(get_pos_service),
):
    return pos.set_delivery_status(order_id, body.delivery_status)


@router.post("/{order_id}/print", response_model=Order)
def mark_printed(order_id: str, pos: POSService = Depends(get_pos_service)):
    """Flag the lines as sent to the kitchen."""
    return pos.mark_printed(order_id)


@router.post("/{order_id}/checkout", response_model=ReceiptOutput)
def checkout(order_id: str, body: CheckoutRequest, pos: POSService = Depends(get_pos_service)) -> ReceiptOutput:
    return _receipt_output(pos.checkout(order_id, body.payment_method))
