import pytest

from chatstream.message import Cost
from chatstream.pricing import ModelPricing, PricingTable, calculate_cost, format_cost


def test_known_model_cost():
    cost = calculate_cost("openai", "gpt-4o", 1000, 2000)
    assert cost == Cost(input_cost=0.005, output_cost=0.03, total_cost=0.035, currency="USD")


def test_rounds_to_six_decimals():
    cost = calculate_cost("openai", "gpt-4o-mini", 7, 3)
    assert cost.input_cost == round(7 / 1000 * 0.00015, 6)
    assert cost.total_cost == round(7 / 1000 * 0.00015 + 3 / 1000 * 0.0006, 6)


def test_free_provider_costs_zero():
    cost = calculate_cost("groq", "llama-3.1-8b-instant", 500, 500)
    assert cost.total_cost == 0.0


@pytest.mark.parametrize("provider,model", [
    ("openai", "gpt-99"),
    ("nobody", "gpt-4o"),
    (None, "gpt-4o"),
    ("openai", None),
    ("", ""),
])
def test_unknown_pairs_have_no_cost(provider, model):
    assert calculate_cost(provider, model, 10, 10) is None


def test_custom_table_is_callable():
    table = PricingTable({"acme": {"m1": ModelPricing(input_per_1k=1.0, output_per_1k=2.0)}})
    cost = table("acme", "m1", 1000, 1000)
    assert cost.total_cost == 3.0
    assert table("openai", "gpt-4o", 1, 1) is None


def test_is_free_provider():
    table = PricingTable()
    assert table.is_free_provider("groq")
    assert not table.is_free_provider("openai")
    assert not table.is_free_provider("nobody")


@pytest.mark.parametrize("value,expected", [
    (0, "Free"),
    (0.0000001, "< $0.000001"),
    (0.035, "$0.035000"),
    (1234.5, "$1,234.500000"),
])
def test_format_cost(value, expected):
    assert format_cost(value) == expected
