"""
Unit tests for the quote assembly (mutation) API.
"""

import copy
import pytest
from datetime import date
from decimal import Decimal
from quotedesk.exceptions import (
    ImmutableStateError, InvalidStateTransitionError, NotFoundError, ValidationError
)
from quotedesk.quoting.assembly import QuoteAssembler, build_groups, export_groups
from quotedesk.quoting.structure import QuoteTree


TEMPLATE = {
    'groups': [
        {
            'name': 'Production',
            'include_in_fee': True,
            'items': [
                {
                    'name': 'Stage',
                    'details': [
                        {'name': 'LED wall', 'quantity': '2', 'days': '1', 'unit_price': '150000',
                         'cost_price': '100000', 'unit': 'set'},
                    ],
                },
            ],
        },
        {
            'name': 'Venue',
            'include_in_fee': False,
            'items': [{'name': 'Hall rental', 'details': [{'name': 'Hall', 'unit_price': 500000}]}],
        },
    ]
}


@pytest.fixture
def assembler():
    return QuoteAssembler(QuoteTree(project_title='Launch event'))


def filled_assembler(notifier=None):
    """Assembler over a quote with one group, one item and one detail line."""
    assembler = QuoteAssembler(QuoteTree(project_title='Launch event', quote_id=10), notifier=notifier)
    group = assembler.add_group('Production')
    item = assembler.add_item(group.id, 'Stage')
    assembler.add_detail(group.id, item.id, name='LED wall', quantity=2, unit_price=150000, cost_price=100000)
    return assembler


class TestStructure:
    """Tests for group, item and detail mutations."""

    def test_add_group_uses_next_sort_order(self, assembler):
        first = assembler.add_group('Production')
        second = assembler.add_group('Venue', include_in_fee=False)

        assert first.sort_order == 0
        assert second.sort_order == 1
        assert second.include_in_fee is False
        assert assembler.dirty is True

    def test_removal_keeps_sibling_identity(self, assembler):
        """Test that removing a node never changes the ids or order of its siblings."""
        a = assembler.add_group('A')
        b = assembler.add_group('B')
        c = assembler.add_group('C')

        assembler.remove_group(b.id)

        assert [g.id for g in assembler.tree.ordered_groups()] == [a.id, c.id]
        assert assembler.tree.groups[c.id].sort_order == 2
        assert assembler.add_group('D').sort_order == 3

    def test_new_item_inherits_group_fee_flag(self, assembler):
        group = assembler.add_group('Venue', include_in_fee=False)

        item = assembler.add_item(group.id, 'Hall rental')

        assert item.include_in_fee is False

    def test_group_fee_flag_propagates_to_items(self, assembler):
        group = assembler.add_group('Production')
        item = assembler.add_item(group.id, 'Stage')

        assembler.update_group(group.id, include_in_fee=False)

        assert item.include_in_fee is False

    def test_detail_defaults(self, assembler):
        group = assembler.add_group('Production')
        item = assembler.add_item(group.id, 'Stage')

        detail = assembler.add_detail(group.id, item.id, name='Misc')

        assert detail.quantity == Decimal('1')
        assert detail.days == Decimal('1')
        assert detail.unit_price == Decimal('0')
        assert detail.cost_price == Decimal('0')

    def test_update_detail_rejects_negative_values(self):
        assembler = filled_assembler()
        group = assembler.tree.ordered_groups()[0]
        item = group.ordered_items()[0]
        detail = item.ordered_details()[0]

        with pytest.raises(ValidationError):
            assembler.update_detail(group.id, item.id, detail.id, quantity=-1)
        assert detail.quantity == Decimal('2')

    def test_update_detail_rejects_unknown_fields(self):
        assembler = filled_assembler()
        group = assembler.tree.ordered_groups()[0]
        item = group.ordered_items()[0]
        detail = item.ordered_details()[0]

        with pytest.raises(ValidationError):
            assembler.update_detail(group.id, item.id, detail.id, id='other')

    def test_unknown_ids(self, assembler):
        group = assembler.add_group('Production')

        with pytest.raises(NotFoundError):
            assembler.add_item('missing', 'Stage')
        with pytest.raises(NotFoundError):
            assembler.remove_item(group.id, 'missing')

    def test_blank_names_are_rejected(self, assembler):
        with pytest.raises(ValidationError):
            assembler.add_group('   ')

    def test_calculate_reflects_edits(self):
        assembler = filled_assembler()
        assembler.tree.agency_fee_rate = Decimal('0.15')

        assert assembler.calculate().final_total == Decimal('379500')


class TestMasterItems:
    """Tests for adding lines from the catalog."""

    def test_add_detail_from_master(self, fake_repository):
        assembler = QuoteAssembler(QuoteTree(project_title='Launch'), repository=fake_repository)
        group = assembler.add_group('Production')
        item = assembler.add_item(group.id, 'Stage')

        detail = assembler.add_detail_from_master(group.id, item.id, 1, quantity=2, days=3)

        assert detail.name == 'LED wall'
        assert detail.quantity == Decimal('2')
        assert detail.days == Decimal('3')
        assert detail.unit_price == Decimal('500000')
        assert detail.supplier_name_snapshot == 'Stage Rentals'
        assert detail.master_item_id == 1

    def test_catalog_edits_do_not_change_existing_lines(self, fake_repository):
        assembler = QuoteAssembler(QuoteTree(project_title='Launch'), repository=fake_repository)
        group = assembler.add_group('Production')
        item = assembler.add_item(group.id, 'Stage')
        detail = assembler.add_detail_from_master(group.id, item.id, 1)

        fake_repository.items[1].unit_price = Decimal('999999')

        assert detail.unit_price == Decimal('500000')


class TestTemplates:
    """Tests for apply_template and export."""

    def test_apply_template_builds_fresh_nodes(self, assembler):
        assembler.apply_template(TEMPLATE)

        groups = assembler.tree.ordered_groups()
        assert [g.name for g in groups] == ['Production', 'Venue']
        assert [g.sort_order for g in groups] == [0, 1]
        assert groups[1].ordered_items()[0].include_in_fee is False
        assert assembler.calculate().subtotal == Decimal('800000')

    def test_template_is_not_shared(self, assembler):
        """Test that editing the quote after apply_template leaves the template data as it was."""
        original = copy.deepcopy(TEMPLATE)
        assembler.apply_template(TEMPLATE)

        group = assembler.tree.ordered_groups()[0]
        item = group.ordered_items()[0]
        detail = item.ordered_details()[0]
        assembler.update_detail(group.id, item.id, detail.id, quantity=10, name='Bigger wall')
        assembler.update_group(group.id, name='Changed')

        assert TEMPLATE == original

    def test_applying_twice_gives_new_ids(self, assembler):
        assembler.apply_template(TEMPLATE)
        first_ids = set(assembler.tree.groups)

        assembler.apply_template(TEMPLATE)

        assert first_ids.isdisjoint(assembler.tree.groups)

    def test_bad_template_leaves_tree_untouched(self):
        assembler = filled_assembler()
        before = export_groups(assembler.tree)

        with pytest.raises(ValidationError):
            assembler.apply_template({'groups': [{'name': 'Ok'}, {'name': ''}]})

        assert export_groups(assembler.tree) == before

    def test_template_with_negative_values_is_rejected(self):
        with pytest.raises(ValidationError):
            build_groups({'groups': [{'name': 'G', 'items': [{'name': 'I', 'details': [{'quantity': -2}]}]}]})

    def test_export_round_trip(self):
        assembler = filled_assembler()

        data = assembler.to_template_data()
        rebuilt = QuoteTree(groups=build_groups(data))

        assert export_groups(rebuilt) == data


class TestHeader:
    """Tests for header edits."""

    def test_iso_dates_are_parsed(self, assembler):
        assembler.update_header(issue_date='2026-10-19', valid_until='2026-11-18')

        assert assembler.tree.issue_date == date(2026, 10, 19)
        assert assembler.tree.valid_until == date(2026, 11, 18)

    @pytest.mark.parametrize('value', [None, '', 20261019, '19/10/2026', ['2026-10-19']])
    def test_bad_issue_date_is_rejected(self, assembler, value):
        assembler.tree.issue_date = date(2026, 10, 19)

        with pytest.raises(ValidationError) as exc_info:
            assembler.update_header(issue_date=value)

        assert exc_info.value.field == 'issue_date'
        assert assembler.tree.issue_date == date(2026, 10, 19)

    def test_valid_until_can_be_cleared(self, assembler):
        assembler.update_header(valid_until='2026-11-18')

        assembler.update_header(valid_until=None)

        assert assembler.tree.valid_until is None

    def test_bad_valid_until_is_rejected(self, assembler):
        with pytest.raises(ValidationError) as exc_info:
            assembler.update_header(valid_until=30)

        assert exc_info.value.field == 'valid_until'

    @pytest.mark.parametrize('field', ['customer_id', 'customer_name_snapshot'])
    def test_customer_is_not_a_plain_header_field(self, assembler, field):
        with pytest.raises(ValidationError):
            assembler.update_header(**{field: 1})

    def test_set_customer(self, assembler):
        assembler.set_customer(3, 'Acme Corp')

        assert assembler.tree.customer_id == 3
        assert assembler.tree.customer_name_snapshot == 'Acme Corp'
        assert assembler.dirty is True

    def test_locked_quote_keeps_its_customer(self):
        assembler = filled_assembler()
        for status in ('submitted', 'under_review', 'approved'):
            assembler.change_status(status)

        with pytest.raises(ImmutableStateError):
            assembler.set_customer(3, 'Acme Corp')


class TestStatusChanges:
    """Tests for the review workflow on the assembler."""

    def test_submit_requires_a_detail_line(self, assembler):
        assembler.add_group('Empty')

        with pytest.raises(ValidationError):
            assembler.change_status('submitted')

    def test_full_review_emits_approval_event(self):
        delivered = []
        assembler = filled_assembler(notifier=delivered.append)

        assembler.change_status('submitted')
        assembler.change_status('under_review')
        assembler.change_status('approved', actor_id=3)

        assert assembler.tree.status == 'approved'
        assert assembler.tree.approved_by == 3
        assert assembler.tree.approved_at is not None
        assert [e.type for e in delivered] == ['quote_approved']
        assert delivered[0].to_dict()['quoteId'] == 10

    def test_draft_cannot_be_approved(self):
        assembler = filled_assembler()

        with pytest.raises(InvalidStateTransitionError):
            assembler.change_status('approved')
        assert assembler.tree.status == 'draft'

    def test_rejection_records_reason(self):
        assembler = filled_assembler()
        for status in ('submitted', 'under_review'):
            assembler.change_status(status)

        assembler.change_status('rejected', actor_id=5, reason='  Budget too high ')

        assert assembler.tree.rejection_reason == 'Budget too high'
        assert assembler.events[-1].type == 'quote_rejected'

    def test_notifier_failure_does_not_undo_transition(self):
        def broken_notifier(event):
            raise RuntimeError('mail server down')

        assembler = filled_assembler(notifier=broken_notifier)
        for status in ('submitted', 'under_review', 'approved'):
            assembler.change_status(status)

        assert assembler.tree.status == 'approved'
        assert len(assembler.events) == 1

    def test_manual_expiry_is_refused(self):
        assembler = filled_assembler()
        for status in ('submitted', 'under_review', 'approved'):
            assembler.change_status(status)

        with pytest.raises(InvalidStateTransitionError):
            assembler.change_status('expired')

    def test_approved_quote_is_immutable(self):
        assembler = filled_assembler()
        for status in ('submitted', 'under_review', 'approved'):
            assembler.change_status(status)
        group = assembler.tree.ordered_groups()[0]

        with pytest.raises(ImmutableStateError):
            assembler.add_group('Late addition')
        with pytest.raises(ImmutableStateError):
            assembler.update_group(group.id, name='Renamed')
        with pytest.raises(ImmutableStateError):
            assembler.apply_template(TEMPLATE)
        with pytest.raises(ImmutableStateError):
            assembler.update_header(discount_amount=1000)

    def test_expire_after_valid_until(self):
        assembler = filled_assembler()
        assembler.tree.valid_until = date(2026, 1, 31)
        for status in ('submitted', 'under_review', 'approved'):
            assembler.change_status(status)

        assert assembler.expire(today=date(2026, 1, 31)) is False
        assert assembler.expire(today=date(2026, 2, 1)) is True
        assert assembler.tree.status == 'expired'

    def test_rejected_quote_can_be_reworked(self):
        assembler = filled_assembler()
        for status in ('submitted', 'under_review', 'rejected', 'draft'):
            assembler.change_status(status)

        group = assembler.add_group('Extra')

        assert group.id in assembler.tree.groups
