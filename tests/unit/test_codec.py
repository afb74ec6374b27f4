import pytest

from sitiocompare.codec import ConfigParseError, parse_config, serialize_config
from sitiocompare.engine import AGGREGATE, SPATIAL, TEMPORAL, ComparisonConfig


def test_parse_spatial_link():
    cfg = parse_config("t=s&s=3,7&y=2024&m=du")
    assert cfg == ComparisonConfig(SPATIAL, sitio_ids=(3, 7), years=(2024,),
                                   metric_groups=("demographics", "utilities"))


def test_leading_question_mark():
    assert parse_config("?t=t&s=1&y=2022,2023&m=e").years == (2022, 2023)


def test_serialized_config_parses_back():
    configs = [
        ComparisonConfig(TEMPORAL, sitio_ids=(12,), years=(2022, 2023, 2024), metric_groups=("safety",)),
        ComparisonConfig(AGGREGATE, years=(2024,), metric_groups=("livelihood", "customFields"),
                         aggregate_level="barangay", aggregate_entities=("Poblacion", "Rang-ay"),
                         municipality_filter="BANGA"),
    ]
    for cfg in configs:
        assert parse_config(serialize_config(cfg)) == cfg


def test_entity_names_with_commas_survive_a_link():
    cfg = ComparisonConfig(AGGREGATE, years=(2024,), metric_groups=("demographics",),
                           aggregate_level="barangay", aggregate_entities=("Sto. Nino, Upper", "Poblacion"))
    link = serialize_config(cfg)

    assert parse_config(link).aggregate_entities == ("Sto. Nino, Upper", "Poblacion")
    assert parse_config(link) == cfg


def test_aggregate_link_needs_no_sitios():
    cfg = parse_config("t=a&y=2024&m=d&al=m&ae=BANGA,KORONADAL")
    assert cfg.type == AGGREGATE
    assert cfg.sitio_ids == ()
    assert cfg.aggregate_level == "municipality"
    assert cfg.aggregate_entities == ("BANGA", "KORONADAL")


def test_incomplete_links_give_none():
    assert parse_config("t=s&s=1,2&y=2024") is None
    assert parse_config("t=s&y=2024&m=d") is None
    assert parse_config("s=1&y=2024&m=d") is None
    assert parse_config("t=q&s=1&y=2024&m=d") is None
    assert parse_config("") is None


def test_unknown_group_letters_dropped():
    assert parse_config("t=s&s=1,2&y=2024&m=dz").metric_groups == ("demographics",)


def test_bad_number_raises():
    with pytest.raises(ConfigParseError):
        parse_config("t=s&s=3,x&y=2024&m=d")
