"""
Integration tests for the quote service (create, edit, copy, review, expiry, templates).
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from quotedesk.exceptions import (
    BusinessLogicError, ConcurrentModificationError, ImmutableStateError, NotFoundError, ValidationError
)
from quotedesk.models import Customer, Quote, Notification
from quotedesk.services import quote_service, template_service


def create_filled_quote(session, catalog, created_by=None, **kwargs):
    """Draft quote with one LED wall line (2 x 500000) from the catalog."""
    tree = quote_service.create_quote(
        session, 'Launch event', customer_id=catalog['customer_id'], created_by=created_by, **kwargs
    )

    def fill(assembler):
        group = assembler.add_group('Production')
        item = assembler.add_item(group.id, 'Stage')
        return assembler.add_detail_from_master(group.id, item.id, catalog['led_wall_id'], quantity=2)

    tree, _ = quote_service.edit_quote(session, tree.quote_id, tree.version, fill)
    return tree


def review(session, quote_id, *statuses, actor_id=None):
    tree = None
    for status in statuses:
        tree = quote_service.change_quote_status(session, quote_id, status, actor_id=actor_id)
    return tree


class TestCreateQuote:
    """Tests for create_quote."""

    def test_create_quote_snapshots_customer_name(self, session, catalog, user_id):
        tree = quote_service.create_quote(
            session, 'Launch event', customer_id=catalog['customer_id'],
            issue_date=date(2026, 10, 19), valid_days=30, created_by=user_id,
        )

        assert tree.status == 'draft'
        assert tree.version == 1
        assert tree.customer_name_snapshot == 'Acme Corp'
        assert tree.valid_until == date(2026, 11, 18)

    def test_create_quote_emits_notification(self, session, catalog, user_id):
        tree = quote_service.create_quote(session, 'Launch event', created_by=user_id)

        notification = session.query(Notification).filter_by(type='quote_created').one()
        assert notification.user_id == user_id
        assert notification.entity_id == tree.quote_id

    def test_create_quote_requires_title(self, session):
        with pytest.raises(ValidationError):
            quote_service.create_quote(session, '  ')

    def test_create_quote_unknown_customer(self, session):
        with pytest.raises(NotFoundError):
            quote_service.create_quote(session, 'Launch event', customer_id=999)

    def test_create_quote_from_template(self, session):
        template = template_service.create_template(session, 'Conference', {
            'groups': [{'name': 'Venue', 'items': [{'name': 'Hall', 'details': [{'name': 'Hall', 'unit_price': 1000}]}]}]
        })

        tree = quote_service.create_quote(session, 'Annual meeting', template_id=template.id)

        assert [g.name for g in tree.ordered_groups()] == ['Venue']


class TestEditQuote:
    """Tests for edit_quote and master item snapshots."""

    def test_edit_persists_snapshot(self, session, catalog):
        tree = create_filled_quote(session, catalog)

        detail = next(tree.iter_details())
        assert detail.supplier_name_snapshot == 'Stage Rentals'
        assert tree.version == 2
        assert session.query(Quote).filter_by(id=tree.quote_id).one().total_amount > 0

    def test_catalog_change_does_not_alter_saved_quote(self, session, catalog):
        from quotedesk.models import MasterItem
        tree = create_filled_quote(session, catalog)

        item = session.query(MasterItem).filter_by(id=catalog['led_wall_id']).one()
        item.unit_price = Decimal('1')
        item.name = 'Cheap wall'
        session.commit()

        loaded, calculation = quote_service.get_quote(session, tree.quote_id)
        detail = next(loaded.iter_details())
        assert detail.name == 'LED wall'
        assert detail.unit_price == Decimal('500000')
        assert calculation.subtotal == Decimal('1000000')

    def test_stale_version_is_rejected(self, session, catalog):
        tree = create_filled_quote(session, catalog)

        with pytest.raises(ConcurrentModificationError):
            quote_service.edit_quote(session, tree.quote_id, tree.version - 1,
                                     lambda a: a.update_header(notes='late edit'))

    def test_failed_mutation_saves_nothing(self, session, catalog):
        tree = create_filled_quote(session, catalog)

        with pytest.raises(ValidationError):
            quote_service.edit_quote(session, tree.quote_id, tree.version,
                                     lambda a: a.update_header(discount_amount=-5))

        assert session.query(Quote).filter_by(id=tree.quote_id).one().version == tree.version


class TestUpdateQuoteHeader:
    """Tests for update_quote_header."""

    def test_new_customer_refreshes_name(self, session, catalog):
        tree = create_filled_quote(session, catalog)
        other = Customer(name='Beta Events')
        session.add(other)
        session.commit()
        other_id = other.id

        tree = quote_service.update_quote_header(session, tree.quote_id, tree.version, {'customer_id': other_id})

        quote = session.query(Quote).filter_by(id=tree.quote_id).one()
        assert quote.customer_id == other_id
        assert quote.customer_name_snapshot == 'Beta Events'

    def test_explicit_name_wins(self, session, catalog):
        tree = create_filled_quote(session, catalog)

        tree = quote_service.update_quote_header(session, tree.quote_id, tree.version, {
            'customer_name_snapshot': 'Acme Corp (Seoul branch)',
        })

        assert tree.customer_id == catalog['customer_id']
        assert tree.customer_name_snapshot == 'Acme Corp (Seoul branch)'

    def test_unknown_customer_saves_nothing(self, session, catalog):
        tree = create_filled_quote(session, catalog)

        with pytest.raises(NotFoundError):
            quote_service.update_quote_header(session, tree.quote_id, tree.version, {
                'customer_id': 4242, 'notes': 'should not stick',
            })

        quote = session.query(Quote).filter_by(id=tree.quote_id).one()
        assert quote.version == tree.version
        assert quote.customer_id == catalog['customer_id']
        assert quote.notes is None

    def test_missing_issue_date_is_rejected(self, session, catalog):
        tree = create_filled_quote(session, catalog)

        with pytest.raises(ValidationError) as exc_info:
            quote_service.update_quote_header(session, tree.quote_id, tree.version, {'issue_date': None})

        assert exc_info.value.field == 'issue_date'
        assert session.query(Quote).filter_by(id=tree.quote_id).one().version == tree.version

    def test_header_fields_are_saved(self, session, catalog):
        tree = create_filled_quote(session, catalog)

        tree = quote_service.update_quote_header(session, tree.quote_id, tree.version, {
            'issue_date': '2026-12-01', 'agency_fee_rate': '0.1', 'notes': 'Final',
        })

        quote = session.query(Quote).filter_by(id=tree.quote_id).one()
        assert quote.issue_date == date(2026, 12, 1)
        assert quote.agency_fee_rate == Decimal('0.1')
        assert quote.notes == 'Final'


class TestListQuotes:
    """Tests for list_quotes filters."""

    def test_filters(self, session, catalog):
        first = create_filled_quote(session, catalog, issue_date=date(2026, 1, 10))
        quote_service.create_quote(session, 'Office party', issue_date=date(2026, 3, 1))

        assert len(quote_service.list_quotes(session)) == 2
        assert [q.id for q in quote_service.list_quotes(session, search='launch')] == [first.quote_id]
        assert [q.id for q in quote_service.list_quotes(session, customer_id=catalog['customer_id'])] == [first.quote_id]
        assert [q.id for q in quote_service.list_quotes(session, amount_min=1000)] == [first.quote_id]
        assert len(quote_service.list_quotes(session, date_from=date(2026, 2, 1))) == 1
        assert quote_service.list_quotes(session, status='approved') == []

    def test_unknown_status_filter(self, session):
        with pytest.raises(ValidationError):
            quote_service.list_quotes(session, status='archived')


class TestStatusWorkflow:
    """Tests for change_quote_status."""

    def test_approval_stores_trail_and_notifications(self, session, catalog, user_id, admin_id):
        tree = create_filled_quote(session, catalog, created_by=user_id)

        tree = review(session, tree.quote_id, 'submitted', 'under_review', 'approved', actor_id=admin_id)

        quote = session.query(Quote).filter_by(id=tree.quote_id).one()
        assert quote.status == 'approved'
        assert quote.approved_by == admin_id
        approvals = session.query(Notification).filter_by(type='quote_approved').all()
        assert sorted(n.user_id for n in approvals) == sorted([user_id, admin_id])

    def test_empty_quote_cannot_be_submitted(self, session):
        tree = quote_service.create_quote(session, 'Empty quote')

        with pytest.raises(ValidationError):
            quote_service.change_quote_status(session, tree.quote_id, 'submitted')

    def test_approved_quote_cannot_be_edited(self, session, catalog):
        tree = create_filled_quote(session, catalog)
        review(session, tree.quote_id, 'submitted', 'under_review', 'approved')

        with pytest.raises(ImmutableStateError):
            quote_service.edit_quote(session, tree.quote_id, None, lambda a: a.add_group('Late'))


class TestCopyQuote:
    """Tests for copy_quote."""

    def test_copy_keeps_lines_with_new_ids(self, session, catalog):
        source = create_filled_quote(session, catalog)

        copy = quote_service.copy_quote(session, source.quote_id, 'Launch event 2027')

        assert copy.quote_id != source.quote_id
        assert copy.status == 'draft'
        assert copy.customer_name_snapshot == 'Acme Corp'
        source_detail = next(source.iter_details())
        copy_detail = next(copy.iter_details())
        assert copy_detail.id != source_detail.id
        assert copy_detail.quantity == Decimal('2')
        assert copy_detail.unit_price == source_detail.unit_price

    def test_structure_only_copy_zeroes_quantities(self, session, catalog):
        source = create_filled_quote(session, catalog)

        copy = quote_service.copy_quote(
            session, source.quote_id, 'Template run', customer_name_snapshot='Walk-in',
            copy_structure_only=True,
        )

        assert copy.customer_name_snapshot == 'Walk-in'
        assert all(d.quantity == 0 for d in copy.iter_details())
        _, calculation = quote_service.get_quote(session, copy.quote_id)
        assert calculation.final_total == Decimal('0')

    def test_approved_quote_can_be_copied(self, session, catalog):
        source = create_filled_quote(session, catalog)
        review(session, source.quote_id, 'submitted', 'under_review', 'approved')

        copy = quote_service.copy_quote(session, source.quote_id, 'Next year')

        assert copy.status == 'draft'


class TestDeleteAndExpire:
    """Tests for delete_quote and expire_due_quotes."""

    def test_only_drafts_can_be_deleted(self, session, catalog):
        draft = quote_service.create_quote(session, 'Scratch')
        submitted = create_filled_quote(session, catalog)
        quote_service.change_quote_status(session, submitted.quote_id, 'submitted')

        quote_service.delete_quote(session, draft.quote_id)

        with pytest.raises(BusinessLogicError):
            quote_service.delete_quote(session, submitted.quote_id)
        assert session.query(Quote).count() == 1

    def test_expire_due_quotes(self, session, catalog):
        issue = date(2026, 1, 1)
        due = create_filled_quote(session, catalog, issue_date=issue, valid_days=10)
        fresh = create_filled_quote(session, catalog, issue_date=issue, valid_days=60)
        draft = create_filled_quote(session, catalog, issue_date=issue, valid_days=10)
        for tree in (due, fresh):
            review(session, tree.quote_id, 'submitted', 'under_review', 'approved')

        expired = quote_service.expire_due_quotes(session, today=issue + timedelta(days=20))

        assert expired == 1
        statuses = {q.id: q.status for q in session.query(Quote).all()}
        assert statuses[due.quote_id] == 'expired'
        assert statuses[fresh.quote_id] == 'approved'
        assert statuses[draft.quote_id] == 'draft'


class TestTemplates:
    """Tests for templates built from quotes."""

    def test_save_quote_as_template_and_apply(self, session, catalog):
        source = create_filled_quote(session, catalog)
        template = template_service.save_quote_as_template(session, source.quote_id, 'Launch kit', category='events')

        target = quote_service.create_quote(session, 'Another launch')
        tree = quote_service.apply_template_to_quote(session, target.quote_id, template.id, target.version)

        detail = next(tree.iter_details())
        assert detail.name == 'LED wall'
        assert detail.id != next(source.iter_details()).id
        assert template_service.get_template_data(session, template.id)['groups'][0]['name'] == 'Production'

    def test_invalid_template_is_rejected(self, session):
        with pytest.raises(ValidationError):
            template_service.create_template(session, 'Broken', {'groups': 'not a list'})

    @pytest.mark.parametrize('name, category', [(42, 'general'), ({'ko': 'Conference'}, 'general'), ('Conference', 3)])
    def test_non_string_name_or_category_is_rejected(self, session, name, category):
        with pytest.raises(ValidationError):
            template_service.create_template(session, name, {'groups': []}, category=category)

    def test_deactivated_template_cannot_be_applied(self, session):
        template = template_service.create_template(session, 'Old', {'groups': []})
        template_service.deactivate_template(session, template.id)
        target = quote_service.create_quote(session, 'Another launch')

        with pytest.raises(NotFoundError):
            quote_service.apply_template_to_quote(session, target.quote_id, template.id, target.version)
        assert template_service.list_templates(session) == []
