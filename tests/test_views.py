from datetime import datetime, timezone

from findspot.map_state import DEFAULT_CENTER, DEFAULT_ZOOM


def _seed(insert_photo):
    insert_photo(lat=58.61, type="coins", timestamp=datetime(2024, 5, 1, tzinfo=timezone.utc))
    insert_photo(lat=58.59, type="relics", timestamp=datetime(2024, 5, 3, tzinfo=timezone.utc))
    insert_photo(lat=58.60, type=None, timestamp=datetime(2024, 5, 2, tzinfo=timezone.utc))


def test_list_view_sorted_by_newest(client, viewer_headers, insert_photo):
    _seed(insert_photo)
    body = client.get("/api/v1/views/list", headers=viewer_headers).json()

    assert body["count"] == 3
    assert [item["lat"] for item in body["items"]] == [58.59, 58.60, 58.61]
    # Type options follow load order, newest row first
    assert [t["value"] for t in body["types"]] == ["relics", "coins"]
    first = body["items"][0]
    assert first["type_label"] == "Relics"
    assert first["coordinates"] == "58.590000, 25.013600"
    assert first["map_link"] == "?view=map&lat=58.590000&lng=25.013600&zoom=18"


def test_list_view_filter_and_location_sort(client, viewer_headers, insert_photo):
    _seed(insert_photo)
    body = client.get(
        "/api/v1/views/list",
        params={"sort_by": "location", "filter_by": "coins"},
        headers=viewer_headers,
    ).json()

    assert body["count"] == 1
    assert body["items"][0]["type"] == "coins"
    assert body["filter_by"] == "coins"


def test_list_view_untyped_rows_sort_last_by_type(client, viewer_headers, insert_photo):
    _seed(insert_photo)
    body = client.get("/api/v1/views/list", params={"sort_by": "type"}, headers=viewer_headers).json()
    assert [item["type"] for item in body["items"]] == ["coins", "relics", None]
    assert body["items"][2]["type_label"] == "Unknown"


def test_list_view_rejects_unknown_sort(client, viewer_headers):
    resp = client.get("/api/v1/views/list", params={"sort_by": "size"}, headers=viewer_headers)
    assert resp.status_code == 400


def test_map_view_defaults(client, viewer_headers, insert_photo):
    insert_photo(image_data="data:image/jpeg;base64,AAAA")
    body = client.get("/api/v1/views/map", headers=viewer_headers).json()

    assert body["state"]["source"] == "default"
    assert (body["state"]["center_lat"], body["state"]["center_lng"]) == DEFAULT_CENTER
    assert body["state"]["zoom"] == DEFAULT_ZOOM
    assert body["state"]["view"] == "list"
    assert len(body["markers"]) == 1
    assert "image_data" not in body["markers"][0]


def test_map_view_url_position_wins_over_gps(client, viewer_headers):
    body = client.get(
        "/api/v1/views/map",
        params={"view": "map", "lat": "59.1", "lng": "24.2", "zoom": "12", "gps_lat": 58.0, "gps_lng": 26.0},
        headers=viewer_headers,
    ).json()

    state = body["state"]
    assert state["source"] == "url"
    assert (state["center_lat"], state["center_lng"], state["zoom"]) == (59.1, 24.2, 12)
    assert (state["user_lat"], state["user_lng"]) == (58.0, 26.0)
    assert state["view"] == "map"


def test_map_view_falls_back_to_gps_on_bad_url_params(client, viewer_headers):
    body = client.get(
        "/api/v1/views/map",
        params={"lat": "north", "lng": "24.2", "zoom": "12", "gps_lat": 58.0, "gps_lng": 26.0},
        headers=viewer_headers,
    ).json()

    assert body["state"]["source"] == "gps"
    assert (body["state"]["center_lat"], body["state"]["center_lng"]) == (58.0, 26.0)


def test_views_require_authentication(client):
    assert client.get("/api/v1/views/list").status_code == 401
    assert client.get("/api/v1/views/map").status_code == 401
