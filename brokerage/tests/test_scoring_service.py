import asyncio
import math

import httpx
import pytest

from brokerage.geo.config import GeodataConfig
from brokerage.geo.distance import CoordinateValidationError, distance_meters
from brokerage.geo.openaq import AirQualityClient, first_pm25
from brokerage.geo.overpass import GeodataError, OverpassClient, build_query
from brokerage.scoring import formulas
from brokerage.scoring.models import PollutionDataSource
from brokerage.scoring.service import LocationScoreService

LAT, LON = 18.5204, 73.8567
# 500 m due north of (LAT, LON)
HOSPITAL_LAT = LAT + math.degrees(500 / 6_371_000)

CONFIG = GeodataConfig(overpass_url="https://overpass.test/api", openaq_url="https://openaq.test/latest")


def _overpass(handler, requests):
    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return OverpassClient(client=client, config=CONFIG)


def _openaq(handler, requests):
    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return AirQualityClient(client=client, config=CONFIG)


def _empty_overpass(request):
    return httpx.Response(200, json={"elements": []})


def _no_pm25(request):
    return httpx.Response(200, json={"results": []})


def _service(overpass_handler=_empty_overpass, openaq_handler=_no_pm25):
    requests: list[httpx.Request] = []
    service = LocationScoreService(
        poi_client=_overpass(overpass_handler, requests),
        air_quality_client=_openaq(openaq_handler, requests),
    )
    return service, requests


# ── Clients ──────────────────────────────────────────────────────────────


def test_build_query_unions_element_types():
    query = build_query(['["amenity"="school"]'], LAT, LON, 2000, timeout=25)
    assert query.startswith("[out:json][timeout:25];")
    assert f'node["amenity"="school"](around:2000,{LAT},{LON});' in query
    assert f'way["amenity"="school"](around:2000,{LAT},{LON});' in query
    assert f'relation["amenity"="school"](around:2000,{LAT},{LON});' in query
    assert query.endswith("out center;")


def test_overpass_reads_node_positions_and_way_centers():
    def handler(request):
        return httpx.Response(200, json={"elements": [
            {"type": "node", "lat": 18.5, "lon": 73.8, "tags": {"amenity": "school"}},
            {"type": "way", "center": {"lat": 18.6, "lon": 73.9}, "tags": {"leisure": "park"}},
            {"type": "relation", "tags": {"landuse": "forest"}},
        ]})

    requests = []
    client = _overpass(handler, requests)
    features = asyncio.run(client.features_around(['["amenity"="school"]'], LAT, LON, 2000))

    assert [(f.lat, f.lon) for f in features] == [(18.5, 73.8), (18.6, 73.9), (None, None)]
    assert not features[2].has_position
    assert requests[0].method == "POST"
    assert b'["amenity"="school"]' in requests[0].content


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="busy"),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json=["not", "an", "object"]),
    ],
)
def test_overpass_failures_raise_geodata_error(response):
    client = _overpass(lambda request: response, [])
    with pytest.raises(GeodataError):
        asyncio.run(client.features_around(['["amenity"="school"]'], LAT, LON, 2000))


@pytest.mark.parametrize(
    "payload",
    [
        {"elements": [{"type": "node", "lat": "n/a", "lon": 73.8}]},
        {"elements": [{"type": "way", "center": [18.5, 73.8]}]},
        {"elements": [{"type": "node", "lat": 18.5, "lon": 73.8, "tags": ["amenity"]}]},
        {"elements": [{"type": "node", "lat": "inf", "lon": 73.8}]},
        {"elements": {"type": "node"}},
    ],
)
def test_overpass_malformed_elements_raise_geodata_error(payload):
    client = _overpass(lambda request: httpx.Response(200, json=payload), [])
    with pytest.raises(GeodataError):
        asyncio.run(client.features_around(['["amenity"="school"]'], LAT, LON, 2000))


def test_overpass_tag_values_are_read_as_text():
    payload = {"elements": [{"type": "node", "lat": 18.5, "lon": 73.8, "tags": {"highway": 5, "lanes": 2}}]}
    client = _overpass(lambda request: httpx.Response(200, json=payload), [])
    features = asyncio.run(client.features_around(['["highway"]'], LAT, LON, 2000))
    assert features[0].tags == {"highway": "5", "lanes": "2"}


def test_overpass_transport_error_raises_geodata_error():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    client = _overpass(handler, [])
    with pytest.raises(GeodataError):
        asyncio.run(client.features_around(['["amenity"="school"]'], LAT, LON, 2000))


def test_first_pm25_skips_other_parameters():
    payload = {"results": [{"measurements": [
        {"parameter": "pm10", "value": 80},
        {"parameter": "pm25", "value": "n/a"},
        {"parameter": "pm25", "value": 42.5},
    ]}]}
    assert first_pm25(payload) == 42.5
    assert first_pm25({"results": []}) is None


def test_first_pm25_skips_non_finite_values():
    payload = {"results": [{"measurements": [
        {"parameter": "pm25", "value": float("nan")},
        {"parameter": "pm25", "value": 10 ** 400},
        {"parameter": "pm25", "value": 12},
    ]}]}
    assert first_pm25(payload) == 12.0


@pytest.mark.parametrize(
    "payload",
    [
        {"results": 5},
        {"results": [{"measurements": "pm25"}]},
        ["not", "an", "object"],
    ],
)
def test_openaq_malformed_payload_raises_geodata_error(payload):
    client = _openaq(lambda request: httpx.Response(200, json=payload), [])
    with pytest.raises(GeodataError):
        asyncio.run(client.nearest_pm25(LAT, LON, 20_000))


def test_openaq_sends_coordinates_and_radius():
    requests = []
    client = _openaq(_no_pm25, requests)
    assert asyncio.run(client.nearest_pm25(LAT, LON, 20_000)) is None

    params = requests[0].url.params
    assert params["coordinates"] == f"{LAT},{LON}"
    assert params["radius"] == "20000"
    assert params["parameter"] == "pm25"


# ── Aggregation ──────────────────────────────────────────────────────────


def test_single_hospital_at_500m_gives_amenity_11():
    def handler(request):
        if b'["amenity"="hospital"]' in request.content:
            return httpx.Response(200, json={"elements": [
                {"type": "node", "lat": HOSPITAL_LAT, "lon": LON, "tags": {"amenity": "hospital"}},
            ]})
        return httpx.Response(200, json={"elements": []})

    service, _ = _service(overpass_handler=handler)
    result = asyncio.run(service.calculate_all_scores(LAT, LON))

    assert result.amenity_score == round((100 / 7) * (1 - 500 / 2000)) == 11
    hospital = result.score_details.amenity_details["hospital"]
    assert hospital.found
    assert hospital.distance == pytest.approx(500, abs=0.01)
    assert not result.score_details.amenity_details["school"].found


def test_empty_area_scores_and_estimated_pollution():
    service, _ = _service()
    result = asyncio.run(service.calculate_all_scores(LAT, LON))

    assert result.amenity_score == 0
    assert result.environment_score == 40
    assert result.pollution_score == 60
    assert result.score_details.pollution_details.data_source == PollutionDataSource.estimated
    assert result.score_details.environment_details.nearest_major_road is None
    assert result.score_details.safety_details.nearest_police_distance is None
    assert result.scores_calculated_at is not None
    assert result.scores_calculated_at.tzinfo is not None


def test_overall_is_weighted_combination_of_sub_scores():
    def handler(request):
        body = request.content
        if b'["leisure"="park"]' in body:
            return httpx.Response(200, json={"elements": [
                {"type": "way", "center": {"lat": LAT + 0.001, "lon": LON}, "tags": {"leisure": "park"}},
                {"type": "way", "center": {"lat": LAT, "lon": LON + 0.001}, "tags": {"leisure": "park"}},
                {"type": "way", "center": {"lat": LAT + 0.005, "lon": LON}, "tags": {"highway": "primary"}},
            ]})
        if b'["amenity"="police"]' in body:
            return httpx.Response(200, json={"elements": [
                {"type": "node", "lat": LAT + 0.002, "lon": LON, "tags": {"amenity": "police"}},
                {"type": "node", "lat": LAT, "lon": LON, "tags": {"surveillance": "camera"}},
                {"type": "node", "lat": LAT, "lon": LON, "tags": {"amenity": "bar"}},
            ]})
        return httpx.Response(200, json={"elements": []})

    def openaq(request):
        return httpx.Response(200, json={"results": [{"measurements": [{"parameter": "pm25", "value": 35}]}]})

    service, _ = _service(overpass_handler=handler, openaq_handler=openaq)
    result = asyncio.run(service.calculate_all_scores(LAT, LON))

    for name in ("amenity_score", "environment_score", "safety_score", "pollution_score", "overall_score"):
        assert 0 <= getattr(result, name) <= 100
    assert result.overall_score == formulas.overall_score(
        result.amenity_score, result.environment_score, result.safety_score, result.pollution_score,
    )
    assert result.pollution_score == formulas.pm25_score(35)
    assert result.score_details.pollution_details.data_source == PollutionDataSource.measured
    assert result.score_details.environment_details.green_features == 2
    assert result.score_details.safety_details.police_stations == 1
    assert result.score_details.safety_details.cctv_cameras == 1
    assert result.score_details.safety_details.nightlife_spots == 1


def test_measured_zero_pm25_scores_100():
    def openaq(request):
        return httpx.Response(200, json={"results": [{"measurements": [{"parameter": "pm25", "value": 0}]}]})

    service, requests = _service(openaq_handler=openaq)
    result = asyncio.run(service.calculate_all_scores(LAT, LON))

    assert result.pollution_score == 100
    assert result.score_details.pollution_details.pm25_value == 0
    aq = [r for r in requests if r.url.host == "openaq.test"]
    assert aq[0].url.params["radius"] == "20000"


def test_every_source_failing_degrades_to_defaults():
    def broken(request):
        raise httpx.ConnectError("down", request=request)

    service, _ = _service(overpass_handler=lambda r: httpx.Response(503), openaq_handler=broken)
    result = asyncio.run(service.calculate_all_scores(LAT, LON))

    assert result.amenity_score == 0
    assert all(d.error and not d.found for d in result.score_details.amenity_details.values())
    assert result.environment_score == 50
    assert result.safety_score == 50
    assert result.pollution_score == 50
    assert result.score_details.pollution_details.data_source == PollutionDataSource.default
    assert result.overall_score == 35


def test_malformed_geodata_payloads_degrade_instead_of_raising():
    def overpass(request):
        return httpx.Response(200, json={"elements": [{"type": "node", "lat": "n/a", "lon": 73.8}]})

    def openaq(request):
        return httpx.Response(200, json={"results": 5})

    service, _ = _service(overpass_handler=overpass, openaq_handler=openaq)
    result = asyncio.run(service.calculate_all_scores(18.52, 73.85))

    assert result.amenity_score == 0
    assert all(d.error and not d.found for d in result.score_details.amenity_details.values())
    assert result.environment_score == 50
    assert result.safety_score == 50
    assert result.pollution_score == 50
    assert result.score_details.pollution_details.data_source == PollutionDataSource.default
    assert result.overall_score == 35


def test_malformed_air_quality_payload_falls_back_to_estimate():
    def openaq(request):
        return httpx.Response(200, json={"results": 5})

    service, _ = _service(openaq_handler=openaq)
    result = asyncio.run(service.calculate_all_scores(LAT, LON))

    assert result.score_details.pollution_details.data_source == PollutionDataSource.estimated
    assert result.pollution_score == 60


def test_air_quality_failure_falls_back_to_estimate():
    def broken(request):
        return httpx.Response(502)

    service, _ = _service(openaq_handler=broken)
    result = asyncio.run(service.calculate_all_scores(LAT, LON))

    assert result.score_details.pollution_details.data_source == PollutionDataSource.estimated
    assert result.pollution_score == 100 - result.environment_score


def test_out_of_range_latitude_fails_before_any_request():
    service, requests = _service()
    with pytest.raises(CoordinateValidationError):
        asyncio.run(service.calculate_all_scores(95, LON))
    assert requests == []


def test_non_numeric_coordinate_fails_before_any_request():
    service, requests = _service()
    with pytest.raises(CoordinateValidationError):
        asyncio.run(service.calculate_all_scores("north", LON))
    assert requests == []


def test_hospital_fixture_is_500m_away():
    assert distance_meters(LAT, LON, HOSPITAL_LAT, LON) == pytest.approx(500, abs=0.01)

