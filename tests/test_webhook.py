"""Tests for the WhatsApp webhook."""

import json
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from sitesmith.api.app import create_app
from sitesmith.api.webhook import (
    BUILDING_REPLY,
    FAILURE_REPLY,
    InboundMessage,
    WhatsAppClient,
    build_and_reply,
    parse_text_message,
)
from sitesmith.deploy.vercel import VercelProject
from sitesmith.github.exceptions import RemoteUnavailable
from sitesmith.models import BuildOutcome, RunState, RunStatus
from sitesmith.service import RunService

VERIFY_TOKEN = "verify-me"


def text_payload(body="a portfolio site", sender="15551234567", phone_number_id="1098", kind="text"):
    message = {"from": sender, "id": "wamid.1", "timestamp": "1700000000", "type": kind}
    if kind == "text":
        message["text"] = {"body": body}
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "waba-1",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {
                                "display_phone_number": "15550000000",
                                "phone_number_id": phone_number_id,
                            },
                            "messages": [message],
                        },
                    }
                ],
            }
        ],
    }


@pytest.fixture
def sent():
    return []


@pytest.fixture
def messenger(sent):
    def handle(request: httpx.Request) -> httpx.Response:
        sent.append(
            {
                "path": request.url.path,
                "auth": request.headers["authorization"],
                "body": json.loads(request.content),
            }
        )
        return httpx.Response(200, json={"messages": [{"id": "wamid.reply"}]})

    return WhatsAppClient("EAAG-token", transport=httpx.MockTransport(handle))


@pytest.fixture
def runner(tmp_path):
    def build(run_id, file_set, attempt_number=1):
        return BuildOutcome(
            run_id=run_id,
            attempt_number=attempt_number,
            work_dir="/tmp/work",
            artifact_path=str(tmp_path / run_id),
        )

    runner = MagicMock()
    runner.build.side_effect = build
    return runner


@pytest.fixture
def service(registry, mock_generator, runner, github_client):
    return RunService(registry, mock_generator, runner, github=github_client, owner="acme")


@pytest.fixture
def client(service, messenger):
    with TestClient(create_app(service, verify_token=VERIFY_TOKEN, messenger=messenger)) as test_client:
        yield test_client


def reply_texts(sent):
    return [request["body"]["text"]["body"] for request in sent]


# ---------------------------------------------------------------------------
# Subscription handshake
# ---------------------------------------------------------------------------


class TestVerification:
    def test_matching_token_echoes_challenge(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": VERIFY_TOKEN, "hub.challenge": "1158201444"},
        )

        assert response.status_code == 200
        assert response.text == "1158201444"

    def test_wrong_token_is_forbidden(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "guess", "hub.challenge": "1"},
        )

        assert response.status_code == 403

    def test_wrong_mode_is_forbidden(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "unsubscribe", "hub.verify_token": VERIFY_TOKEN, "hub.challenge": "1"},
        )

        assert response.status_code == 403

    def test_webhook_not_mounted_without_verify_token(self, service):
        with TestClient(create_app(service)) as test_client:
            response = test_client.get("/webhook", params={"hub.mode": "subscribe"})

        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Inbound deliveries
# ---------------------------------------------------------------------------


class TestInboundMessages:
    def test_text_message_builds_and_replies_with_repo(self, client, sent, mock_generator, registry):
        response = client.post("/webhook", json=text_payload())

        assert response.status_code == 200
        assert response.text == "OK"
        mock_generator.generate.assert_called_once_with("a portfolio site", context=None, skill=None)

        texts = reply_texts(sent)
        assert texts[0] == BUILDING_REPLY
        assert texts[1].startswith(
            "Your site was generated! GitHub repo: https://github.com/acme/ai-site-a-portfolio-site-"
        )
        assert all(request["body"]["to"] == "15551234567" for request in sent)
        assert all(request["path"].endswith("/1098/messages") for request in sent)
        assert sent[0]["auth"] == "Bearer EAAG-token"

    def test_deployed_site_replies_with_deploy_url(
        self, registry, mock_generator, runner, github_client, messenger, sent
    ):
        deployer = MagicMock()
        deployer.create_project.return_value = VercelProject(
            project_id="prj_1",
            name="portfolio",
            url="https://portfolio.vercel.app",
        )
        service = RunService(
            registry, mock_generator, runner, github=github_client, deployer=deployer, owner="acme"
        )

        with TestClient(create_app(service, verify_token=VERIFY_TOKEN, messenger=messenger)) as client:
            client.post("/webhook", json=text_payload())

        assert reply_texts(sent) == [BUILDING_REPLY, "Your website is ready!\n\nhttps://portfolio.vercel.app"]

    def test_failed_run_sends_apology(self, client, sent, mock_generator):
        mock_generator.generate.side_effect = RuntimeError("model unavailable")

        response = client.post("/webhook", json=text_payload())

        assert response.status_code == 200
        assert reply_texts(sent) == [BUILDING_REPLY, FAILURE_REPLY]

    def test_non_text_message_is_ignored(self, client, sent, mock_generator):
        response = client.post("/webhook", json=text_payload(kind="image"))

        assert response.status_code == 200
        assert sent == []
        mock_generator.generate.assert_not_called()

    def test_status_callback_is_ignored(self, client, sent):
        payload = text_payload()
        value = payload["entry"][0]["changes"][0]["value"]
        del value["messages"]
        value["statuses"] = [{"id": "wamid.1", "status": "delivered"}]

        response = client.post("/webhook", json=payload)

        assert response.status_code == 200
        assert sent == []

    def test_invalid_json_is_still_acknowledged(self, client, sent):
        response = client.post(
            "/webhook",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 200
        assert sent == []


class TestBuildAndReply:
    @pytest.fixture
    def message(self):
        return InboundMessage(sender="15551234567", text="a bakery site", phone_number_id="1098")

    def test_start_failure_sends_apology(self, message):
        service = MagicMock()
        service.start_run.side_effect = RemoteUnavailable("GitHub is down", status_code=503)
        messenger = MagicMock()

        build_and_reply(service, messenger, message)

        texts = [call.args[2] for call in messenger.send_text.call_args_list]
        assert texts == [BUILDING_REPLY, FAILURE_REPLY]

    def test_run_without_repository_points_at_preview(self, message):
        service = MagicMock()
        service.start_run.return_value = "run-1"
        service.wait_for_run.return_value = RunState(
            run_id="run-1", prompt="a bakery site", status=RunStatus.READY
        )
        messenger = MagicMock()

        build_and_reply(service, messenger, message)

        assert messenger.send_text.call_args.args == (
            "1098",
            "15551234567",
            "Your site was generated! Preview: /preview-builds/run-1/",
        )

    def test_missing_messenger_still_builds(self, message):
        service = MagicMock()
        service.start_run.return_value = "run-1"
        service.wait_for_run.return_value = RunState(
            run_id="run-1", prompt="a bakery site", status=RunStatus.READY
        )

        build_and_reply(service, None, message)

        service.start_run.assert_called_once_with("a bakery site")
        service.wait_for_run.assert_called_once_with("run-1")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestWhatsAppClient:
    def test_error_response_is_reported_not_raised(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"error": {"code": 190}}))
        client = WhatsAppClient("expired", transport=transport)

        assert client.send_text("1098", "15551234567", "hi") is False

    def test_transport_error_is_reported_not_raised(self):
        def handle(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = WhatsAppClient("EAAG-token", transport=httpx.MockTransport(handle))

        assert client.send_text("1098", "15551234567", "hi") is False


class TestParseTextMessage:
    def test_text_message(self):
        message = parse_text_message(text_payload(body="  a portfolio site  "))

        assert message == InboundMessage(
            sender="15551234567",
            text="a portfolio site",
            phone_number_id="1098",
        )

    def test_blank_text(self):
        assert parse_text_message(text_payload(body="   ")) is None

    def test_missing_phone_number_id(self):
        assert parse_text_message(text_payload(phone_number_id="")) is None

    def test_empty_entry(self):
        assert parse_text_message({"object": "whatsapp_business_account", "entry": []}) is None

    def test_non_object_payload(self):
        assert parse_text_message(["entry"]) is None
        assert parse_text_message(None) is None
