"""Tests for template content rendering."""

from decimal import Decimal

from gigster.documents.renderer import (
    NO_LINE_ITEMS,
    NOT_SPECIFIED,
    DirectProposal,
    FieldDefinition,
    TemplateDefinition,
    format_long_date,
    line_items_total,
    parse_line_items,
    render,
    render_direct_proposal,
)


def _template(*fields: FieldDefinition, content: str | None = None) -> TemplateDefinition:
    return TemplateDefinition(
        name="Web Design",
        type="proposal",
        description="Standard website engagement",
        content=content,
        variables=fields,
    )


class TestFieldRendering:
    """Per-type field blocks."""

    def test_number_field_renders_as_amount(self) -> None:
        template = _template(FieldDefinition(name="budget", type="number"))

        content = render(template, {"budget": 1500}, "Website Redesign")

        assert "Amount:" in content
        assert "1,500.00" in content

    def test_huge_number_field_still_renders(self) -> None:
        template = _template(FieldDefinition(name="budget", type="number"))

        content = render(template, {"budget": 1e30}, "Moonshot")

        assert "**Amount:** $1,000,000,000," in content

    def test_huge_line_item_values_render_total(self) -> None:
        template = _template(FieldDefinition(name="items", type="line_items"))
        values = {"items": [{"description": "Fleet", "quantity": 1e20, "cost": 1e20}]}

        content = render(template, values, "Quote")

        assert "**Total: $10" + ",000" * 13 + ".00**" in content

    def test_line_items_render_table_and_total(self) -> None:
        template = _template(FieldDefinition(name="items", label="Pricing", type="line_items"))
        values = {
            "items": [
                {"description": "Design", "quantity": 2, "cost": 1250.5},
                {"description": "Hosting", "quantity": 12, "cost": "25"},
            ]
        }

        content = render(template, values, "Quote")

        assert "## Pricing" in content
        assert "| Design | 2 | $1,250.50 | $2,501.00 |" in content
        assert "| Hosting | 12 | $25.00 | $300.00 |" in content
        assert "**Total: $2,801.00**" in content

    def test_empty_line_items_render_notice(self) -> None:
        template = _template(FieldDefinition(name="items", type="line_items"))

        content = render(template, {"items": []}, "Quote")

        assert NO_LINE_ITEMS in content
        assert "| Description |" not in content

    def test_empty_date_is_not_specified(self) -> None:
        template = _template(FieldDefinition(name="start", label="Start", type="date"))

        content = render(template, {}, "Quote")

        assert f"**Date:** {NOT_SPECIFIED}" in content

    def test_date_renders_long_form(self) -> None:
        template = _template(FieldDefinition(name="start", type="date"))

        content = render(template, {"start": "2026-01-05"}, "Quote")

        assert "January 5, 2026" in content

    def test_contact_fields_render_raw_value(self) -> None:
        template = _template(
            FieldDefinition(name="email", label="Contact", type="email"),
            FieldDefinition(name="phone", type="phone"),
            FieldDefinition(name="scope", label="Scope", type="textarea"),
        )

        content = render(
            template,
            {"email": "pat@example.com", "phone": "+1 555 0100", "scope": "Five pages"},
            "Quote",
        )

        assert "**Email:** pat@example.com" in content
        assert "**Phone:** +1 555 0100" in content
        assert "## Scope\nFive pages" in content

    def test_fields_render_in_declaration_order(self) -> None:
        template = _template(
            FieldDefinition(name="second", label="Zeta"),
            FieldDefinition(name="first", label="Alpha"),
        )

        content = render(template, {"first": "a", "second": "b"}, "Quote")

        assert content.index("## Zeta") < content.index("## Alpha")

    def test_default_value_used_when_missing(self) -> None:
        template = _template(
            FieldDefinition(name="terms", label="Terms", default_value="Net 30")
        )

        assert "Net 30" in render(template, {}, "Quote")


class TestLegacyContent:
    def test_placeholders_substituted(self) -> None:
        template = _template(content="Dear {{client}}, total {{amount}}.")

        content = render(template, {"client": "Acme", "amount": "$10"}, "Ignored")

        assert content == "Dear Acme, total $10."

    def test_unmatched_placeholders_left_as_is(self) -> None:
        template = _template(content="Hi {{client}}, see {{missing}}")

        content = render(template, {"client": "Acme"}, "Ignored")

        assert content == "Hi Acme, see {{missing}}"


class TestPurity:
    def test_render_is_idempotent(self) -> None:
        template = _template(
            FieldDefinition(name="budget", type="number"),
            FieldDefinition(name="items", type="line_items"),
            FieldDefinition(name="start", type="date"),
        )
        values = {
            "budget": "2500",
            "items": [{"description": "X", "quantity": 3, "cost": 19.99}],
            "start": "2026-03-01",
        }

        first = render(template, values, "Same")
        second = render(template, values, "Same")

        assert first.encode() == second.encode()

    def test_line_item_total_matches_sum(self) -> None:
        items = [
            {"quantity": 3, "cost": "19.99"},
            {"quantity": "1.5", "cost": "10.01"},
            {"quantity": 7, "cost": 0.1},
        ]

        total = line_items_total(parse_line_items(items))

        # 59.97 + 15.015 + 0.7 = 75.685 -> 75.69
        assert total == Decimal("75.69")

    def test_non_mapping_line_items_ignored(self) -> None:
        assert parse_line_items(["junk", None, {"quantity": 1, "cost": 5}])[0].unit_cost == 5
        assert parse_line_items("not a list") == []


def test_format_long_date_passthrough_for_unparseable() -> None:
    assert format_long_date("next spring") == "next spring"
    assert format_long_date(None) == NOT_SPECIFIED


def test_template_field_from_stored_mapping() -> None:
    definition = FieldDefinition.from_mapping(
        {"name": "budget", "label": "Budget", "type": "number", "defaultValue": 100}
    )

    assert definition.default_value == 100
    assert definition.display_label == "Budget"


def test_direct_proposal_sections() -> None:
    proposal = DirectProposal(
        title="Brand Refresh",
        client_name="Acme",
        client_email="ceo@acme.example.com",
        project_description="New logo and palette",
        timeline="Six weeks",
        deliverables="Logo files",
        terms="50% upfront",
        line_items=[{"description": "Logo", "quantity": 1, "rate": 900}],
    )

    content = render_direct_proposal(proposal)

    assert content.startswith("# Brand Refresh")
    assert "## Project Overview\nNew logo and palette" in content
    assert "| Logo | 1 | $900.00 | $900.00 |" in content
    assert "**Total: $900.00**" in content
    assert "## Terms & Conditions\n50% upfront" in content
