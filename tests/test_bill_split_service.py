import pytest

from backoffice.models.pos_models import BillSplit, SaleItem, SplitLine
from backoffice.services.bill_split_service import (
    BillSplitSession,
    CustomMode,
    EqualMode,
    ItemsMode,
    SplitNotConfirmableError,
    SplitPaymentTracker,
    split_to_cart_lines,
    unassigned_items,
)


def _items():
    return [
        SaleItem(id="a", quantity=2, unit_price=10000, total=20000, product_name="Hamburguesa"),
        SaleItem(id="b", quantity=1, unit_price=8000, total=7000, product_name="Limonada"),
    ]


def test_new_session_starts_in_items_mode_with_named_splits():
    split = BillSplitSession(_items(), 27000, 3)
    assert isinstance(split.mode, ItemsMode)
    assert split.split_ids == ["split-1", "split-2", "split-3"]
    assert [s.name for s in split.splits] == ["Comensal 1", "Comensal 2", "Comensal 3"]


def test_session_requires_at_least_one_diner():
    with pytest.raises(ValueError):
        BillSplitSession(_items(), 27000, 0)


def test_items_mode_confirms_only_when_every_unit_is_assigned():
    split = BillSplitSession(_items(), 27000, 2)
    split.assign_item("a", 1, "split-1")
    split.assign_item("b", 1, "split-1")
    assert not split.can_confirm()
    with pytest.raises(SplitNotConfirmableError):
        split.confirm()

    split.assign_item("a", 1, "split-2")
    assert split.can_confirm()
    totals = {s.id: s.total for s in split.confirm()}
    assert totals == {"split-1": 17000, "split-2": 10000}


def test_items_mode_uses_line_total_over_quantity_as_unit_price():
    split = BillSplitSession(_items(), 27000, 1)
    split.assign_item("b", 1)
    assert split.splits[0].total == 7000


def test_assign_item_clamps_to_remaining_quantity():
    split = BillSplitSession(_items(), 27000, 2)
    assert split.assign_item("a", 2, "split-1") == 2
    assert split.assign_item("a", 1, "split-2") == 0
    assert split.item_remaining("a") == 0


def test_assign_item_replaces_previous_quantity_of_same_diner():
    split = BillSplitSession(_items(), 27000, 2)
    split.assign_item("a", 2, "split-1")
    split.assign_item("a", 1, "split-1")
    assert split.item_assigned("a") == 1
    assert split.item_remaining("a") == 1


def test_assign_item_defaults_to_selected_diner():
    split = BillSplitSession(_items(), 27000, 2)
    split.select_split(1)
    split.assign_item("b", 1)
    assert [line.item.id for line in split.splits[1].items] == ["b"]


def test_assign_item_rejected_outside_items_mode():
    split = BillSplitSession(_items(), 27000, 2)
    split.split_equally()
    with pytest.raises(ValueError):
        split.assign_item("a", 1)


def test_equal_mode_divides_total_and_always_confirms():
    split = BillSplitSession(_items(), 27000, 3)
    split.split_equally()
    assert isinstance(split.mode, EqualMode)
    assert split.can_confirm()
    assert all(s.total == 9000 for s in split.confirm())


def test_changing_mode_discards_previous_state():
    split = BillSplitSession(_items(), 27000, 2)
    split.assign_item("a", 2, "split-1")
    split.set_mode("custom")
    split.set_mode("items")
    assert split.item_assigned("a") == 0


def test_custom_mode_tolerance_is_strictly_below_one_unit():
    split = BillSplitSession(_items(), 1000, 2)
    split.set_mode("custom")
    split.set_custom_amount("split-1", 500)
    split.set_custom_amount("split-2", 499.01)
    assert split.can_confirm()

    split.set_custom_amount("split-2", 499)
    assert not split.can_confirm()


def test_custom_mode_requires_every_amount_positive():
    split = BillSplitSession(_items(), 1000, 2)
    split.set_mode("custom")
    split.set_custom_amount("split-1", 1000)
    split.set_custom_amount("split-2", 0)
    assert not split.can_confirm()


def test_distribute_as_base_gives_remainder_to_last_diner():
    split = BillSplitSession(_items(), 10000, 3)
    split.set_mode("custom")
    split.distribute_as_base()
    amounts = [split.mode.amounts[sid] for sid in split.split_ids]
    assert isinstance(split.mode, CustomMode)
    assert amounts == [3333, 3333, 3334]
    assert sum(amounts) == 10000
    assert split.can_confirm()


def test_payment_tracker_ignores_zero_total_splits():
    splits = [
        BillSplit(id="split-1", name="Comensal 1", total=5000),
        BillSplit(id="split-2", name="Comensal 2", total=0),
    ]
    tracker = SplitPaymentTracker(splits)
    assert [s.id for s in tracker.splits] == ["split-1"]
    with pytest.raises(KeyError):
        tracker.mark_paid("split-2")


def test_payment_tracker_can_finish_with_pending_splits():
    splits = [
        BillSplit(id="split-1", name="Comensal 1", total=5000),
        BillSplit(id="split-2", name="Comensal 2", total=3000),
    ]
    tracker = SplitPaymentTracker(splits)
    assert not tracker.can_finish

    tracker.mark_paid("split-1")
    assert tracker.can_finish
    assert not tracker.all_paid
    assert tracker.paid_amount == 5000
    assert tracker.outstanding_amount == 3000
    assert tracker.next_unpaid().id == "split-2"


def test_cart_lines_for_item_split_use_effective_unit_price():
    item = SaleItem(id="a", quantity=4, unit_price=1000, total=3600, product_name="Empanada", product_id=7)
    split = BillSplit(id="split-1", name="Comensal 1", items=[SplitLine(item=item, quantity=2)], total=1800)
    [line] = split_to_cart_lines(split)
    assert line.unit_price == 900
    assert line.total == 1800
    assert line.product_id == 7


def test_cart_line_for_amount_split_is_a_single_labelled_line():
    split = BillSplit(id="split-2", name="Comensal 2", total=4500)
    [line] = split_to_cart_lines(split)
    assert line.id == "split-split-2"
    assert line.name == "División equitativa - Comensal 2"
    assert line.quantity == 1
    assert line.total == 4500


def test_unassigned_items_detects_items_added_after_split():
    items = _items()
    split = BillSplitSession(items, 27000, 1)
    split.assign_item("a", 2)
    split.assign_item("b", 1)
    splits = split.confirm()

    late = SaleItem(id="c", quantity=1, total=3000)
    assert [i.id for i in unassigned_items(splits, [*items, late])] == ["c"]


def test_unassigned_items_for_equal_split_uses_snapshot_ids():
    items = _items()
    split = BillSplitSession(items, 27000, 2)
    split.split_equally()
    splits = split.confirm()
    late = SaleItem(id="c", quantity=1, total=3000)

    assert unassigned_items(splits, [*items, late]) == []
    assert [i.id for i in unassigned_items(splits, [*items, late], ["a", "b"])] == ["c"]
