from decimal import Decimal

import pandas as pd
import pytest

from pos_pricing.config.settings import DATA_DIR_ENV, Settings
from pos_pricing.data.loader import (
    Catalog,
    load_customers,
    load_discount_rules,
    load_price_levels,
    load_products,
    parse_bool,
)
from pos_pricing.engine.errors import DataLoadError


def test_load_products_keeps_exact_prices(settings):
    catalog = load_products(settings)

    assert len(catalog) == 4
    p2 = catalog.get('P2')
    assert p2.price == Decimal('250.50')
    assert p2.stock == 40
    assert p2.unit == 'box'
    assert catalog.get('P5').active is False
    assert catalog.get('missing') is None
    assert 'P1' in catalog


def test_catalog_search_matches_name_and_category(settings):
    catalog = load_products(settings)

    assert [p.product_id for p in catalog.search('noodle')] == ['P2']
    assert {p.product_id for p in catalog.search('grocer')} == {'P2', 'P3'}
    assert 'P5' not in {p.product_id for p in catalog.search(active_only=True)}
    assert len(catalog.search(limit=2)) == 2


def test_catalog_built_from_products_only():
    catalog = Catalog([])
    assert len(catalog) == 0
    assert catalog.search('x') == []


def test_negative_price_fails_the_load(settings):
    settings.products_csv.write_text("product_id,name,price,stock\nX,Bad,-1,5\n", encoding='utf-8')
    with pytest.raises(DataLoadError):
        load_products(settings)


def test_non_numeric_stock_fails_the_load(settings):
    settings.products_csv.write_text("product_id,name,price,stock\nX,Bad,1.00,lots\n", encoding='utf-8')
    with pytest.raises(DataLoadError):
        load_products(settings)


def test_load_discount_rules_with_assignments(settings):
    rules = {r.rule_id: r for r in load_discount_rules(settings)}

    assert rules['D-L1'].kind == 'PERCENTAGE'
    assert rules['D-L1'].value == Decimal('10')
    assert rules['D-L1'].product_ids == frozenset()
    assert rules['D-L1-P2'].product_ids == frozenset({'P2'})
    assert rules['D-L1-P2'].price_level_id == 'L1'
    assert rules['D-PROMO-P3'].price_level_id is None


def test_non_numeric_rule_value_still_loads(settings):
    settings.discounts_csv.write_text(
        "discount_id,name,type,value\nD1,Typo,percentage,ten\n", encoding='utf-8'
    )
    rules = load_discount_rules(settings)
    assert rules[0].kind == 'PERCENTAGE'
    assert rules[0].value.is_nan()


def test_price_levels_and_customers(settings):
    levels = load_price_levels(settings)
    customers = {c.customer_id: c for c in load_customers(settings)}

    assert [pl.price_level_id for pl in levels] == ['L1', 'L2']
    assert levels[1].name == 'Dealer'
    assert customers['C100'].price_level_id == 'L1'
    assert customers['C300'].price_level_id is None


def test_missing_files_give_empty_tables(tmp_path):
    settings = Settings.load(project_root=tmp_path, data_dir=tmp_path)
    assert len(load_products(settings)) == 0
    assert load_discount_rules(settings) == []
    assert load_customers(settings) == []


def test_workbook_sheets_with_csv_overrides(settings):
    with pd.ExcelWriter(settings.rules_workbook) as writer:
        pd.DataFrame([
            {'product_id': 'W1', 'name': 'Workbook Item', 'price': '12.50', 'stock': '3'},
            {'product_id': 'P1', 'name': 'Old Name', 'price': '1.00', 'stock': '1'},
        ]).to_excel(writer, sheet_name='Products', index=False)

    catalog = load_products(settings)

    assert catalog.get('W1').price == Decimal('12.50')
    # CSV rows are appended last and win
    assert catalog.get('P1').name == 'Bottled Water'
    assert catalog.get('P1').price == Decimal('100.00')


def test_data_dir_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path))
    settings = Settings.load(project_root=tmp_path / 'elsewhere')
    assert settings.products_csv == tmp_path / 'products.csv'


@pytest.mark.parametrize("value, expected", [
    ('true', True), ('YES', True), ('1', True), ('false', False), ('0', False), ('', True),
])
def test_parse_bool(value, expected):
    assert parse_bool(value) is expected
