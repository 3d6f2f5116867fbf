"""
Unit tests for RxNormClient using httpx.MockTransport.

Each test routes RxNav paths to canned JSON documents.
"""

import httpx
import pytest

from rexai.services.rxnorm_client import RxNormClient, RxNormError

BASE_URL = "https://rxnav.test/REST"

METFORMIN_PROPERTIES = {"properties": {"rxcui": "6809", "name": "metformin", "strength": ""}}
METFORMIN_RELATED = {
    "allRelatedGroup": {
        "conceptGroup": [
            {"tty": "BN", "conceptProperties": [{"name": "Glucophage"}, {"name": "Glucophage"}]},
            {"tty": "IN", "conceptProperties": [{"name": "metformin"}]},
            {"tty": "DF", "conceptProperties": [{"name": "Oral Tablet"}]},
            {
                "tty": "SCD",
                "conceptProperties": [
                    {"name": "metformin hydrochloride 500 MG Oral Tablet"},
                    {"name": "metformin hydrochloride 850 MG Oral Tablet"},
                ],
            },
            {"tty": "SBD"},
        ]
    }
}
INTERACTION_LIST = {
    "fullInteractionTypeGroup": [
        {
            "fullInteractionType": [
                {
                    "interactionPair": [
                        {
                            "severity": "N/A",
                            "description": "Lisinopril may increase the hypoglycemic effect of metformin.",
                            "interactionConcept": [
                                {"minConceptItem": {"name": "metformin"}},
                                {"minConceptItem": {"name": "lisinopril"}},
                            ],
                        }
                    ]
                }
            ]
        }
    ]
}


def make_client(routes: dict, requests: list | None = None) -> RxNormClient:
    """
    Build a client whose transport answers from routes.

    Args:
        routes: Map of path (after the base URL) to JSON body or httpx.Response
        requests: Optional list collecting every request made
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        path = request.url.path.removeprefix("/REST/")
        body = routes.get(path)
        if isinstance(body, httpx.Response):
            return body
        if body is None:
            return httpx.Response(404, json={"error": "not found"})
        return httpx.Response(200, json=body)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RxNormClient(client=http_client, base_url=BASE_URL)


class TestSearchDrug:
    """Tests for drug-name resolution."""

    @pytest.mark.asyncio
    async def test_approximate_match(self):
        client = make_client(
            {
                "approximateTerm.json": {"approximateGroup": {"candidate": [{"rxcui": "6809", "score": "100"}]}},
                "rxcui/6809/properties.json": METFORMIN_PROPERTIES,
                "rxcui/6809/allrelated.json": METFORMIN_RELATED,
            }
        )

        info = await client.search_drug("Metformin")

        assert info.rxcui == "6809"
        assert info.name == "metformin"
        assert info.brand_names == ["Glucophage"]
        assert info.ingredients == ["metformin"]
        assert info.dosage_forms == ["Oral Tablet"]
        assert info.generic_name == "metformin hydrochloride 500 MG Oral Tablet"
        assert info.strength is None

    @pytest.mark.asyncio
    async def test_falls_back_to_drugs_lookup(self):
        requests = []
        client = make_client(
            {
                "approximateTerm.json": {"approximateGroup": {}},
                "drugs.json": {
                    "drugGroup": {
                        "conceptGroup": [
                            {"tty": "BN"},
                            {"tty": "SCD", "conceptProperties": [{"rxcui": "314076", "name": "lisinopril 10 MG"}]},
                        ]
                    }
                },
                "rxcui/314076/properties.json": {"properties": {"name": "lisinopril 10 MG Oral Tablet"}},
                "rxcui/314076/allrelated.json": {"allRelatedGroup": {"conceptGroup": []}},
            },
            requests,
        )

        info = await client.search_drug("Lisinopril")

        assert info.rxcui == "314076"
        assert info.name == "lisinopril 10 MG Oral Tablet"
        assert requests[0].url.params["term"] == "Lisinopril"
        assert requests[1].url.params["name"] == "Lisinopril"

    @pytest.mark.asyncio
    async def test_no_match_returns_none(self):
        client = make_client({"approximateTerm.json": {"approximateGroup": {"candidate": []}}, "drugs.json": {}})

        assert await client.search_drug("Notadrug") is None

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = RxNormClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)), base_url=BASE_URL)

        with pytest.raises(RxNormError):
            await client.search_drug("Metformin")


class TestCheckInteractions:
    """Tests for the batched interaction query."""

    @pytest.mark.asyncio
    async def test_parses_interaction_pairs(self):
        requests = []
        client = make_client({"interaction/list.json": INTERACTION_LIST}, requests)

        interactions = await client.check_interactions(["6809", "29046"])

        assert len(interactions) == 1
        assert interactions[0].severity == "moderate"
        assert interactions[0].drug1 == "metformin"
        assert interactions[0].drug2 == "lisinopril"
        assert "+" in str(requests[0].url)
        assert "%2B" not in str(requests[0].url)

    @pytest.mark.asyncio
    async def test_fewer_than_two_rxcuis_makes_no_request(self):
        requests = []
        client = make_client({}, requests)

        assert await client.check_interactions(["6809"]) == []
        assert requests == []

    @pytest.mark.asyncio
    async def test_non_json_response_returns_empty(self):
        client = make_client(
            {"interaction/list.json": httpx.Response(200, text="<html>Service moved</html>")}
        )

        assert await client.check_interactions(["6809", "29046"]) == []

    @pytest.mark.asyncio
    async def test_error_status_returns_empty(self):
        client = make_client({"interaction/list.json": httpx.Response(503, json={"error": "unavailable"})})

        assert await client.check_interactions(["6809", "29046"]) == []

    @pytest.mark.asyncio
    async def test_no_interactions(self):
        client = make_client({"interaction/list.json": {"nlmDisclaimer": "..."}})

        assert await client.check_interactions(["6809", "29046"]) == []
