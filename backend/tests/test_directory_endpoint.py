"""
Integration tests for GET /api/directory/{resource}.
"""
PROGRAMS = {"programs": [{"id": "sf-food-bank", "name": "SF-Marin Food Bank"}]}


def test_serves_resource_then_cache(make_client, upstream):
    upstream.directory["programs"] = PROGRAMS
    client = make_client()

    first = client.get("/api/directory/programs").json()
    second = client.get("/api/directory/programs").json()

    assert first == {"resource": "programs", "data": PROGRAMS, "fromCache": False, "stale": False}
    assert second["fromCache"] is True
    directory_requests = [r for r in upstream.requests if r.url.host == "directory.test"]
    assert len(directory_requests) == 1


def test_refresh_bypasses_cache(make_client, upstream):
    upstream.directory["metadata"] = {"version": "1"}
    client = make_client()

    client.get("/api/directory/metadata")
    upstream.directory["metadata"] = {"version": "2"}
    body = client.get("/api/directory/metadata", params={"refresh": "true"}).json()

    assert body["data"] == {"version": "2"}


def test_upstream_failure_serves_stale(make_client, upstream):
    upstream.directory["categories"] = {"categories": ["food"]}
    client = make_client()
    client.get("/api/directory/categories")

    upstream.directory_status = 503
    body = client.get("/api/directory/categories", params={"refresh": "true"}).json()

    assert body["data"] == {"categories": ["food"]}
    assert body["stale"] is True


def test_upstream_failure_without_cache_is_502(make_client, upstream):
    upstream.directory["groups"] = {}
    upstream.directory_status = 500
    response = make_client().get("/api/directory/groups")

    assert response.status_code == 502
    assert response.json()["error"] == "Directory data is unavailable."


def test_unknown_resource_is_404(make_client):
    response = make_client().get("/api/directory/users")
    assert response.status_code == 404


def test_offline_mode_without_cache_is_503(make_client, upstream):
    upstream.directory["programs"] = PROGRAMS
    response = make_client(directory_offline_mode=True).get("/api/directory/programs")

    assert response.status_code == 503
    assert upstream.requests == []
