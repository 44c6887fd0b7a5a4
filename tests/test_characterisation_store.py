"""
Characterisation of stored readings.
"""

from datetime import date

import pytest

from telemetry_backend.repositories.reading_repository import ReadingRepository
from telemetry_backend.services.characterisation_service import CharacterisationService
from telemetry_backend.services.ingestion_service import IngestionService
from tests.factories import DAY_START_MS, RawReadingFactory
from tests.helpers import create_point_in_db

PERIOD_MS = 30 * 60 * 1000


def period_end(index: int) -> int:
    return DAY_START_MS + (index + 1) * PERIOD_MS


@pytest.mark.integration
@pytest.mark.asyncio
async def test_characterise_two_days(db_session, system_id):
    import_point = await create_point_in_db(db_session, system_id, "E1", origin_sub_id="import", metric_type="energy")
    export_point = await create_point_in_db(db_session, system_id, "B1", origin_sub_id="export", metric_type="energy")
    other_system = await create_point_in_db(db_session, system_id + 1, "E1", origin_sub_id="import")

    readings = [
        RawReadingFactory(
            point_id=import_point.id,
            measurement_time_ms=period_end(i),
            quality="billable" if i < 48 else "forecast",
        )
        for i in range(96)
    ]
    readings += [
        RawReadingFactory(point_id=export_point.id, measurement_time_ms=period_end(i), quality="forecast")
        for i in range(48, 96)
    ]
    readings += [RawReadingFactory(point_id=other_system.id, measurement_time_ms=period_end(3), quality="actual")]
    # Outside the window, must not be loaded
    readings += [RawReadingFactory(point_id=import_point.id, measurement_time_ms=DAY_START_MS, quality="actual")]
    repo = ReadingRepository(db_session)
    await repo.insert_many(system_id, readings)

    info = await CharacterisationService(db_session).characterise(system_id, date(2025, 1, 15), num_days=2)

    assert info.num_records == 96 + 48
    assert info.completeness == "mixed"
    assert info.overviews == {
        "B1.export": "." * 48 + "f" * 48,
        "E1.import": "b" * 48 + "f" * 48,
    }
    assert [(r.quality, r.point_keys, r.num_periods) for r in info.characterisation] == [
        ("b", frozenset({"E1.import"}), 48),
        ("f", frozenset({"E1.import", "B1.export"}), 48),
    ]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_characterise_empty_window(db_session, system_id, power_point):
    info = await CharacterisationService(db_session).characterise(system_id, date(2025, 1, 15))

    assert info.completeness == "none"
    assert info.num_records == 0
    assert info.overviews == {}
    assert len(info.characterisation) == 1
    assert info.characterisation[0].num_periods == 48


@pytest.mark.integration
@pytest.mark.asyncio
async def test_custom_abbreviations(db_session, system_id):
    point = await create_point_in_db(db_session, system_id, "meter")
    await ReadingRepository(db_session).insert_many(
        system_id, [RawReadingFactory(point_id=point.id, measurement_time_ms=period_end(0), quality="final")]
    )

    group = await CharacterisationService(db_session, abbreviations={"final": "F"}).build_group(
        system_id, date(2025, 1, 15)
    )

    assert group.get_overview("meter").startswith("F.")
    assert group.get_completeness() == "all-final"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_redelivered_quality_upgrade_is_characterised(db_session, system_id, energy_point):
    service = IngestionService(db_session)
    provisional = RawReadingFactory(point_id=energy_point.id, measurement_time_ms=period_end(0), quality="forecast")
    final = RawReadingFactory(point_id=energy_point.id, measurement_time_ms=period_end(0), quality="billable")

    await service.ingest(system_id, [provisional], [energy_point])
    before = await CharacterisationService(db_session).characterise(system_id, date(2025, 1, 15))
    assert before.completeness == "all-forecast"

    await service.ingest(system_id, [final], [energy_point])

    info = await CharacterisationService(db_session).characterise(system_id, date(2025, 1, 15), 1, 30, 600)

    assert info.completeness == "all-billable"
    assert info.overviews[energy_point.point_key] == "b" + "." * 47
