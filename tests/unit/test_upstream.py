"""Tests for the network subgraph transport and page draining."""

import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from shared.utils.errors import ParseError, TransportError
from services.subgraph_directory.app.upstream import (
    BlockPointer,
    DeploymentPage,
    NetworkSubgraphClient,
    drain_pages,
)
from tests.fixtures.sample_deployments import (
    EXAMPLE_BLOCK,
    EXAMPLE_RECORD,
    StubPageFetcher,
    generate_deployments,
)


def _graphql_app(handler) -> web.Application:
    app = web.Application()
    app.router.add_post("/graphql", handler)
    return app


class TestNetworkSubgraphClient:
    """HTTP transport behaviour against a local GraphQL endpoint."""

    @pytest.mark.asyncio
    async def test_fetch_page_sends_query_variables(self):
        received = []

        async def handler(request):
            received.append(
                {"body": await request.json(), "auth": request.headers.get("Authorization")}
            )
            return web.json_response(
                {
                    "data": {
                        "_meta": {"block": {"number": EXAMPLE_BLOCK.number, "hash": EXAMPLE_BLOCK.hash}},
                        "subgraphDeployments": [EXAMPLE_RECORD],
                    }
                }
            )

        async with TestServer(_graphql_app(handler)) as server:
            client = NetworkSubgraphClient(str(server.make_url("/graphql")), auth_token="secret")
            try:
                first = await client.fetch_page("", 50)
                second = await client.fetch_page("0xabc", 50, first.block)
            finally:
                await client.close()

        assert first.records == [EXAMPLE_RECORD]
        assert first.block == EXAMPLE_BLOCK
        assert second.block == EXAMPLE_BLOCK
        assert received[0]["body"]["variables"] == {"block": None, "first": 50, "last": ""}
        assert received[1]["body"]["variables"] == {
            "block": {"hash": EXAMPLE_BLOCK.hash},
            "first": 50,
            "last": "0xabc",
        }
        assert "_meta(block: $block)" in received[0]["body"]["query"]
        assert "subgraphDeployments" in received[0]["body"]["query"]
        assert received[0]["auth"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_http_error_status_raises_transport_error(self):
        async def handler(request):
            return web.Response(status=502, text="bad gateway")

        async with TestServer(_graphql_app(handler)) as server:
            client = NetworkSubgraphClient(str(server.make_url("/graphql")))
            try:
                with pytest.raises(TransportError) as exc_info:
                    await client.fetch_page("", 10)
            finally:
                await client.close()

        assert exc_info.value.status == 502
        assert exc_info.value.details["body"] == "bad gateway"

    @pytest.mark.asyncio
    async def test_graphql_errors_raise_transport_error(self):
        async def handler(request):
            return web.json_response({"errors": [{"message": "indexing error"}]})

        async with TestServer(_graphql_app(handler)) as server:
            client = NetworkSubgraphClient(str(server.make_url("/graphql")))
            try:
                with pytest.raises(TransportError, match="indexing error"):
                    await client.fetch_page("", 10)
            finally:
                await client.close()

    @pytest.mark.asyncio
    async def test_non_json_body_raises_transport_error(self):
        async def handler(request):
            return web.Response(status=200, text="<html>maintenance</html>")

        async with TestServer(_graphql_app(handler)) as server:
            client = NetworkSubgraphClient(str(server.make_url("/graphql")))
            try:
                with pytest.raises(TransportError):
                    await client.fetch_page("", 10)
            finally:
                await client.close()

    @pytest.mark.asyncio
    async def test_missing_data_raises_parse_error(self):
        async def handler(request):
            return web.json_response({"data": {}})

        async with TestServer(_graphql_app(handler)) as server:
            client = NetworkSubgraphClient(str(server.make_url("/graphql")))
            try:
                with pytest.raises(ParseError):
                    await client.fetch_page("", 10)
            finally:
                await client.close()

    @pytest.mark.asyncio
    async def test_malformed_block_pointer_raises_parse_error(self):
        async def handler(request):
            return web.json_response(
                {"data": {"_meta": {"block": {"number": "tip"}}, "subgraphDeployments": []}}
            )

        async with TestServer(_graphql_app(handler)) as server:
            client = NetworkSubgraphClient(str(server.make_url("/graphql")))
            try:
                with pytest.raises(ParseError, match="block pointer"):
                    await client.fetch_page("", 10)
            finally:
                await client.close()

    @pytest.mark.asyncio
    async def test_timeout_raises_transport_error(self):
        async def handler(request):
            await asyncio.sleep(1)
            return web.json_response({"data": {"subgraphDeployments": []}})

        async with TestServer(_graphql_app(handler)) as server:
            client = NetworkSubgraphClient(str(server.make_url("/graphql")), timeout_seconds=0.05)
            try:
                with pytest.raises(TransportError, match="Timed out"):
                    await client.fetch_page("", 10)
            finally:
                await client.close()

    @pytest.mark.asyncio
    async def test_connection_refused_raises_transport_error(self):
        client = NetworkSubgraphClient("http://127.0.0.1:1/graphql", timeout_seconds=2)
        try:
            with pytest.raises(TransportError):
                await client.fetch_page("", 10)
        finally:
            await client.close()


class TestDrainPages:
    """Cursor-based draining of a page source."""

    @pytest.mark.asyncio
    async def test_short_first_page_ends_sweep(self):
        fetcher = StubPageFetcher(generate_deployments(3))

        records, pages, block = await drain_pages(fetcher, 10)

        assert len(records) == 3
        assert pages == 1
        assert block == EXAMPLE_BLOCK

    @pytest.mark.asyncio
    async def test_records_arrive_in_id_order(self):
        fetcher = StubPageFetcher(list(reversed(generate_deployments(12))))

        records, pages, _ = await drain_pages(fetcher, 5)

        assert [record["id"] for record in records] == sorted(record["id"] for record in records)
        assert pages == 3

    @pytest.mark.asyncio
    async def test_later_pages_pinned_to_first_block(self):
        fetcher = StubPageFetcher(generate_deployments(12))

        await drain_pages(fetcher, 5)

        assert [call["block"] for call in fetcher.calls] == [None, EXAMPLE_BLOCK, EXAMPLE_BLOCK]

    @pytest.mark.asyncio
    async def test_source_without_block_is_not_pinned(self):
        fetcher = StubPageFetcher(generate_deployments(12), head=None)

        _, pages, block = await drain_pages(fetcher, 5)

        assert block is None
        assert pages == 3
        assert all(call["block"] is None for call in fetcher.calls)

    @pytest.mark.asyncio
    async def test_page_from_another_block_raises_parse_error(self):
        class ReorgFetcher:
            async def fetch_page(self, cursor, first, block=None):
                served = BlockPointer(number=len(cursor), hash=f"0x{len(cursor):02x}")
                return DeploymentPage(records=[{"id": cursor + "a"}] * first, block=served)

        with pytest.raises(ParseError, match="different block"):
            await drain_pages(ReorgFetcher(), 2)

    @pytest.mark.asyncio
    async def test_empty_source(self):
        records, pages, _ = await drain_pages(StubPageFetcher([]), 10)

        assert records == []
        assert pages == 1

    @pytest.mark.asyncio
    async def test_stalled_cursor_raises_parse_error(self):
        class StuckFetcher:
            async def fetch_page(self, cursor, first, block=None):
                return DeploymentPage(records=[{"id": "0x01"}] * first, block=block)

        with pytest.raises(ParseError, match="did not advance"):
            await drain_pages(StuckFetcher(), 2)

    @pytest.mark.asyncio
    async def test_record_without_id_raises_parse_error(self):
        class NoIdFetcher:
            async def fetch_page(self, cursor, first, block=None):
                return DeploymentPage(records=[{"ipfsHash": "x"}] * first)

        with pytest.raises(ParseError, match="cursor"):
            await drain_pages(NoIdFetcher(), 2)

    @pytest.mark.asyncio
    async def test_rejects_non_positive_page_size(self):
        with pytest.raises(ValueError):
            await drain_pages(StubPageFetcher([]), 0)
