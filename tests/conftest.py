"""Shared builders for sitio profiles and records."""

import pytest

from sitiocompare.models import SitioProfile, SitioRecord


def build_profile(**fields) -> SitioProfile:
    """Profile from snake_case or camelCase keys; nested sections as dicts."""
    return SitioProfile.from_dict(fields)


def build_sitio(sid, yearly, municipality="BANGA", barangay="Poblacion", sitio_name=None) -> SitioRecord:
    return SitioRecord.create(
        id=sid,
        municipality=municipality,
        barangay=barangay,
        sitio_name=sitio_name or f"Sitio {sid}",
        yearly_data=yearly,
    )


def electrified(households, with_electricity, **extra) -> SitioProfile:
    return build_profile(total_households=households, households_with_electricity=with_electricity, **extra)


@pytest.fixture
def make_profile():
    return build_profile


@pytest.fixture
def make_sitio():
    return build_sitio


@pytest.fixture
def make_electrified():
    return electrified


@pytest.fixture
def snapshot():
    """Five sitios across two municipalities and three survey years."""
    return [
        build_sitio(1, {
            2022: build_profile(total_population=100, total_households=20, households_with_electricity=10),
            2023: build_profile(total_population=150, total_households=25, households_with_electricity=20,
                                mobile_signal="4g"),
        }, sitio_name="Alpha"),
        build_sitio(2, {
            2023: build_profile(total_population=80, total_households=10, households_with_electricity=4),
        }, barangay="Rang-ay", sitio_name="Bravo"),
        build_sitio(3, {
            2021: build_profile(total_population=60, total_households=12, households_with_electricity=3),
        }, barangay="Rang-ay", sitio_name="Charlie"),
        build_sitio(4, {
            2023: build_profile(total_population=200, total_households=40, households_with_electricity=30),
        }, municipality="KORONADAL", barangay="Zone 1", sitio_name="Delta"),
        build_sitio(5, {
            2022: build_profile(total_population=90, total_households=18, households_with_electricity=9),
            2023: build_profile(total_population=95, total_households=19, households_with_electricity=19),
        }, municipality="KORONADAL", barangay="Zone 1", sitio_name="Echo"),
    ]
