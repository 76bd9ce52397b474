"""Tests for the remote collection client against a local aiohttp backend."""

import json

import pytest
from aiohttp import web
from aiohttp import test_utils

from paltracker.client import RemoteCollectionClient
from paltracker.exceptions import RemoteApplicationError, RemoteDataError, TransportError


class WebAppStub:
	"""Records requests and answers with configurable bodies."""

	def __init__(self) -> None:
		self.requests = []
		self.status = 200
		self.get_body = "[]"
		self.post_body = json.dumps({"success": True})

	async def handle_get(self, request: web.Request) -> web.Response:
		self.requests.append({"method": "GET", "query": dict(request.query)})
		return web.Response(text=self.get_body, status=self.status)

	async def handle_post(self, request: web.Request) -> web.Response:
		self.requests.append({
			"method": "POST",
			"content_type": request.headers.get("Content-Type", ""),
			"body": json.loads(await request.text()),
		})
		return web.Response(text=self.post_body, status=self.status)


@pytest.fixture
async def web_app():
	stub = WebAppStub()
	app = web.Application()
	app.router.add_get("/exec", stub.handle_get)
	app.router.add_post("/exec", stub.handle_post)
	server = test_utils.TestServer(app)
	await server.start_server()
	yield stub, str(server.make_url("/exec"))
	await server.close()


@pytest.fixture
async def client_for(web_app):
	clients = []

	def _make():
		client = RemoteCollectionClient(web_app[1], timeout=5)
		clients.append(client)
		return client

	yield _make
	for client in clients:
		await client.close()


async def test_list_sends_collection_and_filters(web_app, client_for):
	stub, _ = web_app
	stub.get_body = json.dumps([{"id": 1, "apprenticeId": 7, "task": "Blood gas"}])

	rows = await client_for().async_list("workOrders", {"apprenticeId": "7"})

	assert rows == [{"id": 1, "apprenticeId": 7, "task": "Blood gas"}]
	assert stub.requests[0]["query"] == {"sheet": "workOrders", "apprenticeId": "7"}


async def test_create_posts_json_as_plain_text_and_returns_string_id(web_app, client_for):
	stub, _ = web_app
	stub.post_body = json.dumps({"id": 42})

	record_id = await client_for().async_create("apprentices", {"firstName": "Anna"})

	assert record_id == "42"
	request = stub.requests[0]
	assert request["content_type"].startswith("text/plain")
	assert request["body"] == {"action": "create", "sheet": "apprentices", "data": {"firstName": "Anna"}}


async def test_update_and_bulk_delete_bodies(web_app, client_for):
	stub, _ = web_app
	client = client_for()

	await client.async_update("interviews", "5", {"done": True})
	await client.async_bulk_delete("logEntries", ["8", "9"])
	await client.async_delete("workOrders", "3")

	bodies = [request["body"] for request in stub.requests]
	assert bodies == [
		{"action": "update", "sheet": "interviews", "id": "5", "data": {"done": True}},
		{"action": "bulkDelete", "sheet": "logEntries", "ids": ["8", "9"]},
		{"action": "delete", "sheet": "workOrders", "id": "3"},
	]


async def test_error_marker_raises_application_error(web_app, client_for):
	stub, _ = web_app
	stub.get_body = json.dumps({"error": "Sheet not found"})

	with pytest.raises(RemoteApplicationError, match="Sheet not found"):
		await client_for().async_list("apprentices")


async def test_http_failure_raises_transport_error(web_app, client_for):
	stub, _ = web_app
	stub.status = 500

	with pytest.raises(TransportError):
		await client_for().async_list("apprentices")


async def test_invalid_json_raises_data_error(web_app, client_for):
	stub, _ = web_app
	stub.get_body = "<html>Sign in</html>"

	with pytest.raises(RemoteDataError):
		await client_for().async_list("apprentices")


async def test_create_without_id_raises_data_error(web_app, client_for):
	stub, _ = web_app
	stub.post_body = json.dumps({"success": True})

	with pytest.raises(RemoteDataError):
		await client_for().async_create("workOrders", {"task": "x"})


async def test_listing_that_is_not_a_list_raises_data_error(web_app, client_for):
	stub, _ = web_app
	stub.get_body = json.dumps({"rows": []})

	with pytest.raises(RemoteDataError):
		await client_for().async_list("apprentices")


async def test_unknown_collection_is_rejected_before_any_request(web_app, client_for):
	stub, _ = web_app

	with pytest.raises(ValueError):
		await client_for().async_list("students")
	assert stub.requests == []


async def test_unreachable_backend_raises_transport_error():
	async with RemoteCollectionClient("http://127.0.0.1:1/exec", timeout=5) as client:
		with pytest.raises(TransportError):
			await client.async_list("apprentices")
