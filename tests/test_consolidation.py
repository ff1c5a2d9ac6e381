import pytest

from tradedesk.errors import PreconditionError, ValidationError
from tradedesk.models import OrderStatus, UserRole
from tradedesk.services.consolidation import (
    ConsolidationSelection,
    approved_brands,
    consolidation_candidates,
    generate_master_po,
    master_po_preview,
    place_master_order,
)
from tradedesk.services.orders import create_order


def test_candidates_are_approved_lines(state):
    rows = consolidation_candidates(state)
    assert {r["order_id"] for r in rows} == {f"REQ-PENDING-LG-R{i}" for i in range(1, 5)}
    assert all(r["units"] == 8 for r in rows)
    assert approved_brands(state) == ["LG"]


def test_toggle_adds_and_removes(state):
    sel = ConsolidationSelection()
    key = ("REQ-PENDING-LG-R1", "n1-mar")
    assert sel.toggle(state, key) is True
    assert key in sel
    assert sel.brand(state) == "LG"
    assert sel.toggle(state, key) is False
    assert len(sel) == 0


def test_other_brand_leaves_selection_unchanged(state, now):
    sel = ConsolidationSelection()
    sel.toggle(state, ("REQ-PENDING-LG-R1", "n1-mar"))
    samsung = create_order(state, brand="Samsung", quantities={"1.5 Ton 5-Star AC": 4}, user_role=UserRole.ADMIN, now=now)

    with pytest.raises(ValidationError, match="same brand"):
        sel.toggle(state, (samsung.id, "n2-mar"))
    assert sel.keys == {("REQ-PENDING-LG-R1", "n1-mar")}


def test_only_approved_orders_can_be_staged(state):
    sel = ConsolidationSelection()
    with pytest.raises(PreconditionError):
        sel.toggle(state, ("REQ-NEW-SAM-R1", "n2-mar"))


def test_preview_sums_per_sku(state):
    sel = ConsolidationSelection()
    sel.toggle(state, ("REQ-PENDING-LG-R1", "n1-mar"))
    sel.toggle(state, ("REQ-PENDING-LG-R2", "n1-mar"))
    preview = master_po_preview(state, sel)
    assert preview["brand"] == "LG"
    assert preview["total_units"] == 16
    assert preview["total_value"] == pytest.approx(16 * 87860)
    assert len(preview["lines"]) == 1


def test_generate_master_po_places_order(state, now):
    sel = ConsolidationSelection()
    sel.toggle(state, ("REQ-PENDING-LG-R1", "n1-mar"))
    sel.toggle(state, ("REQ-PENDING-LG-R3", "n1-mar"))

    master_po_id, updated = generate_master_po(state, sel, now=now)

    assert master_po_id == "M-PO-LG-261019120000"
    assert {o.id for o in updated} == {"REQ-PENDING-LG-R1", "REQ-PENDING-LG-R3"}
    for oid in ("REQ-PENDING-LG-R1", "REQ-PENDING-LG-R3"):
        order = state.order(oid)
        assert order.status == OrderStatus.MASTER_ORDERED
        assert order.master_po_id == master_po_id
    assert state.order("REQ-PENDING-LG-R2").status == OrderStatus.APPROVED
    assert len(sel) == 0


def test_master_po_ids_are_unique(state, now):
    first = ConsolidationSelection()
    first.toggle(state, ("REQ-PENDING-LG-R1", "n1-mar"))
    second = ConsolidationSelection()
    second.toggle(state, ("REQ-PENDING-LG-R2", "n1-mar"))
    a, _ = generate_master_po(state, first, now=now)
    b, _ = generate_master_po(state, second, now=now)
    assert a != b


def test_consolidate_then_place(state, now):
    sel = ConsolidationSelection()
    sel.toggle(state, ("REQ-PENDING-LG-R4", "n1-mar"))
    master_po_id, _ = generate_master_po(state, sel, place_order=False, now=now)
    assert state.order("REQ-PENDING-LG-R4").status == OrderStatus.CONSOLIDATED

    placed = place_master_order(state, master_po_id)
    assert [o.status for o in placed] == [OrderStatus.MASTER_ORDERED]

    with pytest.raises(PreconditionError):
        place_master_order(state, master_po_id)


def test_empty_selection_is_rejected(state):
    with pytest.raises(ValidationError):
        generate_master_po(state, ConsolidationSelection())
