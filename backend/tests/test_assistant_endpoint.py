"""
Integration tests for POST /api/smart-assistant.

The search index, LLM providers and directory are served by httpx.MockTransport.
"""
import httpx
import pytest

ENDPOINT = "/api/smart-assistant"
UNCLASSIFIED_QUERY = "whom could my neighbor contact regarding paperwork"


def cloudflare_reply(keywords):
    return lambda request: httpx.Response(200, json={"result": {"response": keywords}, "success": True})


def azure_reply(keywords):
    return lambda request: httpx.Response(
        200, json={"choices": [{"message": {"role": "assistant", "content": keywords}}]}
    )


@pytest.fixture
def client(make_client):
    return make_client()


def test_food_query_in_zip_resolves_locally(client, upstream):
    response = client.post(ENDPOINT, json={"message": "I need help finding food in 94110"})

    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    body = response.json()
    assert body["tier"] == "local"
    assert body["skippedLLM"] is True
    assert body["location"] == {"zip": "94110", "city": "San Francisco", "county": "San Francisco"}
    assert body["quickAnswer"]["type"] == "category"
    assert body["programsFound"] == 2
    assert body["programs"][0]["name"] == "SF-Marin Food Bank"

    payload = upstream.search_payloads()[0]
    assert "category eq 'food'" in payload["filter"]
    assert "areas/any(a: a eq 'San Francisco')" in payload["filter"]
    assert "areas/any(a: a eq 'Bay Area')" in payload["filter"]
    assert "api.cloudflare.com" not in upstream.hosts()


def test_crisis_query(client):
    body = client.post(ENDPOINT, json={"message": "suicide"}).json()

    assert body["tier"] == "quick_answer"
    assert body["skippedLLM"] is True
    assert body["quickAnswer"]["type"] == "crisis"
    assert body["quickAnswer"]["resource"]["phone"] == "988"
    assert body["searchQuery"] == "mental health crisis counseling"


def test_vague_query_asks_to_clarify_without_searching(client, upstream):
    body = client.post(ENDPOINT, json={"message": "help"}).json()

    assert body["quickAnswer"]["type"] == "clarify"
    assert body["quickAnswer"]["categories"]
    assert body["programs"] == []
    assert body["searchQuery"] == "help"
    assert upstream.search_payloads() == []


def test_cloudflare_tier(make_client, upstream):
    upstream.cloudflare = cloudflare_reply("legal aid document help")
    client = make_client(cf_account_id="acct", cf_api_token="token")

    body = client.post(ENDPOINT, json={"message": UNCLASSIFIED_QUERY}).json()

    assert body["tier"] == "cloudflare"
    assert body["skippedLLM"] is False
    assert body["searchQuery"] == "legal aid document help"


def test_azure_tier_when_cloudflare_unavailable(make_client, upstream):
    upstream.azure = azure_reply("legal paperwork assistance")
    client = make_client(
        azure_openai_endpoint="https://openai.test",
        azure_openai_key="key",
    )

    body = client.post(ENDPOINT, json={"message": UNCLASSIFIED_QUERY}).json()

    assert body["tier"] == "azure_openai"
    assert body["skippedLLM"] is False
    usage = client.app.state.container.usage
    assert usage._local[(usage.today(), "azure_openai")].count == 1


def test_zero_results_attach_211_fallback(client, upstream):
    upstream.search_documents = []

    body = client.post(ENDPOINT, json={"message": UNCLASSIFIED_QUERY}).json()

    assert body["tier"] == "local"
    assert body["programsFound"] == 0
    assert body["quickAnswer"]["type"] == "fallback"
    assert body["quickAnswer"]["resource"]["phone"] == "211"


def test_pii_never_leaves_the_service(client, upstream):
    client.post(ENDPOINT, json={"message": "call me at 415-555-1234 about paperwork for my neighbor"})

    for request in upstream.requests:
        assert b"415-555-1234" not in request.content


def test_eleventh_request_is_rate_limited(client):
    for _ in range(10):
        assert client.post(ENDPOINT, json={"message": "help"}).status_code == 200

    response = client.post(ENDPOINT, json={"message": "help"})

    assert response.status_code == 429
    assert 0 < int(response.headers["Retry-After"]) <= 60
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert response.json()["error"] == "Too many requests. Please wait a minute and try again."
    assert set(response.json()) == {"error", "status_code", "trace_id"}
    assert response.json()["status_code"] == 429


def test_rate_limit_is_per_client(client):
    for _ in range(11):
        client.post(ENDPOINT, json={"message": "help"}, headers={"X-Forwarded-For": "198.51.100.1"})

    response = client.post(ENDPOINT, json={"message": "help"}, headers={"X-Forwarded-For": "198.51.100.2"})
    assert response.status_code == 200
    assert response.headers["X-RateLimit-Remaining"] == "9"


def test_preflight(client):
    response = client.options(ENDPOINT)

    assert response.status_code == 204
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert "POST" in response.headers["Access-Control-Allow-Methods"]


@pytest.mark.parametrize("body", [{}, {"message": "   "}, {"message": 42}, {"message": None}])
def test_missing_message_is_400(client, body):
    response = client.post(ENDPOINT, json=body)

    assert response.status_code == 400
    assert response.json()["error"] == "Please provide a message."
    assert response.headers["Access-Control-Allow-Origin"] == "*"


def test_malformed_json_is_400(client):
    response = client.post(ENDPOINT, content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400


def test_unconfigured_search_is_503(make_client):
    client = make_client(azure_search_endpoint=None, azure_search_key=None)

    response = client.post(ENDPOINT, json={"message": "food in oakland"})

    assert response.status_code == 503
    assert response.json()["error"] == "Smart assistant search is not configured. Please try again later."
    assert response.json()["status_code"] == 503
    assert response.json()["trace_id"] == response.headers["X-Trace-ID"]


def test_trace_id_is_echoed(client):
    response = client.post(ENDPOINT, json={"message": "help"}, headers={"X-Trace-ID": "trace-abc"})
    assert response.headers["X-Trace-ID"] == "trace-abc"


def test_null_conversation_history_is_accepted(client):
    response = client.post(ENDPOINT, json={"message": "suicide", "conversationHistory": None})

    assert response.status_code == 200
    assert response.json()["quickAnswer"]["type"] == "crisis"


def test_numeric_fields_in_index_documents_do_not_fail_the_request(client, upstream):
    upstream.search_documents = [{
        "id": 101,
        "name": "SF-Marin Food Bank",
        "category": "food",
        "description": "Free groceries.",
        "phone": 4155551212,
        "areas": ["San Francisco"],
    }]

    response = client.post(ENDPOINT, json={"message": "I need help finding food in 94110"})

    assert response.status_code == 200
    body = response.json()
    assert body["programs"][0]["phone"] == "4155551212"
    assert body["programs"][0]["id"] == "101"
