"""Tests for the per-step action executor."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from salesops.automations.actions import ActionContext, ActionExecutor
from salesops.messaging.providers import ProviderRegistry
from salesops.models import ActionStep, TriggerType

NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


class FakeStore:
    def __init__(self):
        self.tasks = []
        self.tags = []
        self.notifications = []
        self.dialer = []

    def create_task(self, **fields):
        self.tasks.append(fields)
        return f"task-{len(self.tasks)}"

    def add_tag(self, **fields):
        self.tags.append(fields)

    def create_notification(self, **fields):
        self.notifications.append(fields)
        return len(self.notifications)

    def enqueue_dialer(self, **fields):
        self.dialer.append(fields)
        return len(self.dialer)


def make_context(payload=None):
    return ActionContext(
        team_id="team-1",
        trigger_type=TriggerType.LEAD_CREATED,
        payload=payload if payload is not None else {
            "lead": {"id": "lead-9", "first_name": "Dana", "phone": "+15550001111", "email": "dana@example.com"},
        },
        rule_id="rule-1",
        now=NOW,
    )


def step(action_type, **config):
    return ActionStep(id="s1", order=1, type=action_type, config=config)


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def provider(provider_factory):
    return provider_factory(channels=("sms", "email", "voice"))


@pytest.fixture
def executor(fake_store, provider):
    return ActionExecutor(ProviderRegistry([provider]), fake_store)


def test_send_sms_renders_template_and_records_provider(executor, provider):
    log = executor.execute(step("send_message", channel="sms", text="Hi {{lead.first_name}}!"), make_context())

    assert log.skipped is False
    assert log.channel == "sms"
    assert log.provider == "recording"
    assert log.provider_message_id == "msg-1"
    assert log.template_variables == {"lead.first_name": "Dana"}
    assert provider.sent[0].to_phone == "+15550001111"
    assert provider.sent[0].text == "Hi Dana!"


def test_send_email_uses_lead_email(executor, provider):
    log = executor.execute(step("send_message", channel="email", subject="Hello", text="Body"), make_context())
    assert not log.skipped
    assert provider.sent[0].to_email == "dana@example.com"
    assert provider.sent[0].subject == "Hello"


def test_send_without_recipient_is_skipped(executor):
    log = executor.execute(step("send_message", channel="sms", text="Hi"), make_context({"lead": {}}))
    assert log.skipped
    assert log.skip_reason == "missing_recipient_phone"
    assert log.error_kind == "input"


@pytest.mark.parametrize("config,reason", [
    ({"text": "Hi"}, "missing_channel"),
    ({"channel": "fax", "text": "Hi"}, "unsupported_channel:fax"),
    ({"channel": "sms"}, "missing_text"),
])
def test_bad_send_config_is_a_configuration_skip(executor, config, reason):
    log = executor.execute(step("send_message", **config), make_context())
    assert log.skipped
    assert log.skip_reason == reason
    assert log.error_kind == "configuration"


def test_channel_without_provider_is_skipped(executor):
    log = executor.execute(step("send_message", channel="in_app", text="Hi"), make_context())
    assert log.skipped
    assert log.skip_reason == "no_provider_for_channel"
    assert log.error_kind == "collaborator"


def test_provider_failure_is_skipped(fake_store, provider_factory):
    failing = provider_factory(channels=("sms",), fail_with="carrier_rejected")
    executor = ActionExecutor(ProviderRegistry([failing]), fake_store)
    log = executor.execute(step("send_message", channel="sms", text="Hi"), make_context())
    assert log.skipped
    assert log.skip_reason == "carrier_rejected"
    assert log.provider == "recording"


def test_unknown_action_type_is_skipped(executor):
    log = executor.execute(step("send_fax"), make_context())
    assert log.skipped
    assert log.skip_reason == "unknown_action_type:send_fax"
    assert log.action_type == "send_fax"


def test_add_task_creates_record(executor, fake_store):
    log = executor.execute(step("add_task", title="Call {{lead.first_name}}", due_in_hours=2,
                                assigned_role="closer"), make_context())
    assert not log.skipped
    task = fake_store.tasks[0]
    assert task["title"] == "Call Dana"
    assert task["due_at"] == datetime(2025, 1, 10, 14, 0, tzinfo=timezone.utc)
    assert task["lead_id"] == "lead-9"
    assert task["rule_id"] == "rule-1"
    assert log.template_variables["task_id"] == "task-1"


def test_add_tag_requires_tag_and_lead(executor, fake_store):
    assert executor.execute(step("add_tag"), make_context()).skip_reason == "missing_tag"
    assert executor.execute(step("add_tag", tag="hot"), make_context({})).skip_reason == "missing_lead_id"

    log = executor.execute(step("add_tag", tag="hot"), make_context())
    assert not log.skipped
    assert fake_store.tags == [{"team_id": "team-1", "lead_id": "lead-9", "tag": "hot"}]


def test_notify_team_writes_in_app_notification(executor, fake_store):
    log = executor.execute(step("notify_team", message="New lead {{lead.first_name}}"), make_context())
    assert not log.skipped
    assert log.channel == "in_app"
    assert fake_store.notifications[0]["message"] == "New lead Dana"


def test_enqueue_dialer(executor, fake_store):
    log = executor.execute(step("enqueue_dialer", priority=5), make_context())
    assert not log.skipped
    assert log.provider == "power_dialer"
    assert fake_store.dialer[0]["phone"] == "+15550001111"
    assert fake_store.dialer[0]["priority"] == 5


def test_store_exception_is_contained(provider):
    class BrokenStore(FakeStore):
        def add_tag(self, **fields):
            raise RuntimeError("db down")

    executor = ActionExecutor(ProviderRegistry([provider]), BrokenStore())
    log = executor.execute(step("add_tag", tag="hot"), make_context())
    assert log.skipped
    assert log.error_kind == "collaborator"
    assert "db down" in log.skip_reason


def test_custom_webhook_posts_payload(fake_store, provider):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    executor = ActionExecutor(ProviderRegistry([provider]), fake_store, webhook_transport=httpx.MockTransport(handler))
    log = executor.execute(step("custom_webhook", url="https://hooks.example.com/in"), make_context())

    assert not log.skipped
    assert log.template_variables["status_code"] == 200
    request = seen[0]
    assert request.method == "POST"
    assert request.headers["X-Automation-Trigger"] == "lead_created"
    assert json.loads(request.content)["lead"]["id"] == "lead-9"


def test_custom_webhook_non_2xx_is_skipped(fake_store, provider):
    transport = httpx.MockTransport(lambda request: httpx.Response(502))
    executor = ActionExecutor(ProviderRegistry([provider]), fake_store, webhook_transport=transport)
    log = executor.execute(step("custom_webhook", url="https://hooks.example.com/in"), make_context())
    assert log.skipped
    assert log.skip_reason == "webhook_status_502"


def test_custom_webhook_transport_error_is_skipped(fake_store, provider):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    executor = ActionExecutor(ProviderRegistry([provider]), fake_store, webhook_transport=httpx.MockTransport(handler))
    log = executor.execute(step("custom_webhook", url="https://hooks.example.com/in"), make_context())
    assert log.skipped
    assert log.skip_reason == "webhook_error:ConnectError"


def test_custom_webhook_rejects_bad_url(executor):
    log = executor.execute(step("custom_webhook", url="ftp://example.com"), make_context())
    assert log.skip_reason == "missing_or_invalid_url"
