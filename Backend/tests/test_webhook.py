"""
API tests for the WhatsApp webhook and the notification endpoint.

Outbound messages are captured by patching send_whatsapp_message; no request
ever leaves the test process.

Run with: pytest Backend/tests/test_webhook.py -v
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from barberbot.bot_session import load_or_create, update_session
from barberbot.dialogue import BotStep
from barberbot.models import (
    Appointment,
    AppointmentStatus,
    Barber,
    BotSession,
    LoyaltyPoints,
    Service,
    Shop,
    WorkingHours,
)
from barberbot.seed import seed_demo_data

SENDER = "5511988887777"
WEBHOOK = "/whatsapp/webhook"


def message(text, instance_id="inst-1", sender=SENDER, sender_name="Ana"):
    payload = {"instanceId": instance_id, "msgContent": text, "sender": sender}
    if sender_name is not None:
        payload["senderName"] = sender_name
    return payload


@pytest.fixture
def sent():
    """Captures outbound WhatsApp messages."""
    with patch("barberbot.whatsapp.send_whatsapp_message", new=AsyncMock(return_value=True)) as mock:
        yield mock


async def stored_session(db, shop_id, phone=SENDER):
    row = (
        await db.execute(
            select(BotSession.step, BotSession.temp_data).where(
                BotSession.shop_id == shop_id, BotSession.phone == phone
            )
        )
    ).one_or_none()
    return row


# ============================================================================
# VALIDATION
# ============================================================================

class TestWebhookValidation:
    @pytest.mark.parametrize(
        "payload",
        [
            {"msgContent": "oi", "sender": SENDER},
            {"instanceId": "inst-1", "sender": SENDER},
            {"instanceId": "inst-1", "msgContent": "oi"},
            {"instanceId": "inst-1", "msgContent": "   ", "sender": SENDER},
            {},
        ],
    )
    async def test_missing_fields(self, client, seeded, sent, payload):
        response = await client.post(WEBHOOK, json=payload)

        assert response.status_code == 400
        assert "error" in response.json()
        sent.assert_not_awaited()

    async def test_malformed_json(self, client, seeded, sent):
        response = await client.post(
            WEBHOOK, content=b"{not json", headers={"content-type": "application/json"}
        )
        assert response.status_code == 400
        assert "error" in response.json()

    async def test_unknown_instance(self, client, seeded, sent, async_session):
        response = await client.post(WEBHOOK, json=message("oi", instance_id="nope"))

        assert response.status_code == 404
        assert response.json() == {"error": "Shop não encontrado"}
        sent.assert_not_awaited()
        count = (await async_session.execute(select(func.count(BotSession.id)))).scalar_one()
        assert count == 0


# ============================================================================
# CONVERSATION
# ============================================================================

class TestWebhookConversation:
    async def test_first_message_shows_menu(self, client, seeded, sent, async_session):
        response = await client.post(WEBHOOK, json=message("oi"))

        assert response.status_code == 200
        assert response.json() == {"success": True, "step": "menu", "message": "Mensagem processada"}

        instance_id, token, phone, text = sent.await_args.args
        assert (instance_id, token, phone) == ("inst-1", "token-1", SENDER)
        assert "Barbearia Teste" in text

        step, temp_data = await stored_session(async_session, seeded.shop.id)
        assert step == "menu"
        assert temp_data == {}

    async def test_sender_name_is_remembered(self, client, seeded, sent, async_session):
        await client.post(WEBHOOK, json=message("oi", sender_name="Ana"))

        name = (
            await async_session.execute(
                select(LoyaltyPoints.client_name).where(LoyaltyPoints.client_phone == SENDER)
            )
        ).scalar_one()
        assert name == "Ana"

    async def test_full_booking_flow(self, client, seeded, sent, async_session):
        conversation = [
            ("oi", "menu"),
            ("1", "select_service"),
            ("2", "select_barber"),       # Corte
            ("1", "select_date"),         # João
            ("25/12/30", "select_time"),
            ("1", "confirmed"),           # 09:00
        ]
        for text, expected_step in conversation:
            response = await client.post(WEBHOOK, json=message(text))
            assert response.status_code == 200
            assert response.json()["step"] == expected_step

        assert sent.await_count == len(conversation)
        assert "Agendamento Confirmado" in sent.await_args.args[3]

        appointment = (await async_session.execute(select(Appointment))).scalar_one()
        assert appointment.shop_id == seeded.shop.id
        assert appointment.barber_id == seeded.barbers[0].id
        assert appointment.service_id == seeded.services[1].id
        assert appointment.client_phone == SENDER
        assert appointment.client_name == "Ana"
        assert appointment.status == AppointmentStatus.CONFIRMED
        assert appointment.final_price_cents == 3500

        step, temp_data = await stored_session(async_session, seeded.shop.id)
        assert step == "confirmed"
        assert temp_data == {}

        await async_session.commit()

        # Anything after a confirmation starts over
        response = await client.post(WEBHOOK, json=message("valeu"))
        assert response.json()["step"] == "menu"

    async def test_invalid_choice_keeps_step(self, client, seeded, sent):
        await client.post(WEBHOOK, json=message("oi"))
        await client.post(WEBHOOK, json=message("1"))

        response = await client.post(WEBHOOK, json=message("42"))
        assert response.json()["step"] == "select_service"
        assert "*1* a *3*" in sent.await_args.args[3]

    async def test_send_failure_still_answers_200(self, client, seeded, sent, async_session):
        sent.return_value = False

        response = await client.post(WEBHOOK, json=message("oi"))

        assert response.status_code == 200
        assert response.json()["step"] == "menu"
        step, _ = await stored_session(async_session, seeded.shop.id)
        assert step == "menu"

    async def test_unexpected_error_returns_500_and_keeps_state(self, client, seeded, sent, async_session):
        with patch("barberbot.whatsapp.dispatch", new=AsyncMock(side_effect=RuntimeError("boom"))):
            response = await client.post(WEBHOOK, json=message("oi"))

        assert response.status_code == 500
        assert response.json() == {"error": "boom"}
        sent.assert_not_awaited()
        assert await stored_session(async_session, seeded.shop.id) is None

    async def test_shops_do_not_share_sessions(self, client, seeded, sent, make_shop):
        await make_shop(instance_id="inst-2", token="token-2", name="Outra")

        await client.post(WEBHOOK, json=message("oi", instance_id="inst-1"))
        await client.post(WEBHOOK, json=message("1", instance_id="inst-1"))

        response = await client.post(WEBHOOK, json=message("1", instance_id="inst-2"))
        # First contact with the second shop: welcome, not service selection
        assert response.json()["step"] == "menu"
        assert "Outra" in sent.await_args.args[3]
        assert sent.await_args.args[:2] == ("inst-2", "token-2")


# ============================================================================
# GLOBAL CANCEL
# ============================================================================

class TestGlobalCancel:
    @pytest.mark.parametrize("step", [s.value for s in BotStep])
    @pytest.mark.parametrize("keyword", ["0", "cancelar"])
    async def test_cancel_from_any_step(self, client, seeded, sent, async_session, step, keyword):
        conversation = await load_or_create(async_session, seeded.shop.id, SENDER)
        await update_session(async_session, conversation.id, step, {"service_id": 1})
        await async_session.commit()

        response = await client.post(WEBHOOK, json=message(keyword))

        assert response.status_code == 200
        assert response.json() == {"success": True, "action": "cancelled"}
        assert "cancelada" in sent.await_args.args[3]

        stored_step, temp_data = await stored_session(async_session, seeded.shop.id)
        assert stored_step == "welcome"
        assert temp_data == {}

    async def test_cancel_without_session(self, client, seeded, sent, async_session):
        response = await client.post(WEBHOOK, json=message("CANCELAR"))

        assert response.json() == {"success": True, "action": "cancelled"}
        stored_step, _ = await stored_session(async_session, seeded.shop.id)
        assert stored_step == "welcome"


# ============================================================================
# NOTIFICATIONS
# ============================================================================

class TestSendNotification:
    async def test_custom_message(self, client, seeded, sent):
        response = await client.post(
            "/whatsapp/send",
            json={"shopId": seeded.shop.id, "phone": "(11) 98888-7777", "message": "Lembrete!"},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        sent.assert_awaited_once_with("inst-1", "token-1", "5511988887777", "Lembrete!")

    async def test_appointment_confirmation(self, client, seeded, sent):
        response = await client.post(
            "/whatsapp/send",
            json={
                "shopId": seeded.shop.id,
                "phone": "5511988887777",
                "clientName": "Ana",
                "serviceName": "Corte",
                "servicePrice": 35,
                "barberName": "João",
                "dateTime": "2030-12-25T13:00:00Z",
            },
        )

        assert response.json() == {"success": True}
        text = sent.await_args.args[3]
        assert "Olá, Ana!" in text
        assert "Barbearia Teste" in text
        assert "quarta-feira, 25 de dezembro" in text
        assert "10:00" in text
        assert "R$ 35,00" in text

    @pytest.mark.parametrize("payload", [{"phone": SENDER, "message": "x"}, {"shopId": 1, "message": "x"}])
    async def test_missing_fields(self, client, seeded, sent, payload):
        response = await client.post("/whatsapp/send", json=payload)

        assert response.status_code == 200
        assert response.json() == {"success": False, "reason": "Missing required fields"}
        sent.assert_not_awaited()

    async def test_unknown_shop(self, client, seeded, sent):
        response = await client.post("/whatsapp/send", json={"shopId": 9999, "phone": SENDER, "message": "x"})
        assert response.json() == {"success": False, "reason": "Shop not found"}

    async def test_shop_without_credentials(self, client, seeded, sent, make_shop):
        other = await make_shop(instance_id="inst-2", token="", name="Outra")
        response = await client.post(
            "/whatsapp/send", json={"shopId": other.shop.id, "phone": SENDER, "message": "x"}
        )
        assert response.json() == {"success": False, "reason": "WhatsApp not configured"}
        sent.assert_not_awaited()

    async def test_nothing_to_send(self, client, seeded, sent):
        response = await client.post("/whatsapp/send", json={"shopId": seeded.shop.id, "phone": SENDER})
        assert response.json() == {"success": False, "reason": "Missing message or dateTime"}

    async def test_send_failure(self, client, seeded, sent):
        sent.return_value = False
        response = await client.post(
            "/whatsapp/send", json={"shopId": seeded.shop.id, "phone": SENDER, "message": "x"}
        )
        assert response.json() == {"success": False, "reason": "Send failed"}

    async def test_malformed_body(self, client, seeded, sent):
        response = await client.post(
            "/whatsapp/send", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 200
        assert response.json() == {"success": False, "reason": "Missing required fields"}
        sent.assert_not_awaited()

    async def test_non_numeric_shop_id(self, client, seeded, sent):
        response = await client.post(
            "/whatsapp/send",
            json={"shopId": "3f2a9c1e-7d41-4b8e-9a0c-2f6d5e1b8c47", "phone": SENDER, "message": "x"},
        )

        assert response.status_code == 200
        assert response.json() == {"success": False, "reason": "Missing required fields"}
        sent.assert_not_awaited()

    async def test_database_error_is_reported_not_raised(self, client, seeded, sent):
        with patch(
            "barberbot.whatsapp.resolve_shop_from_id", new=AsyncMock(side_effect=RuntimeError("db down"))
        ):
            response = await client.post(
                "/whatsapp/send", json={"shopId": seeded.shop.id, "phone": SENDER, "message": "x"}
            )

        assert response.status_code == 200
        assert response.json() == {"success": False, "reason": "db down"}
        sent.assert_not_awaited()


# ============================================================================
# MISC
# ============================================================================

async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_demo_seed_is_idempotent(async_session):
    await seed_demo_data(async_session)
    await seed_demo_data(async_session)

    assert (await async_session.execute(select(func.count(Shop.id)))).scalar_one() == 1
    assert (await async_session.execute(select(func.count(Service.id)))).scalar_one() == 3
    assert (await async_session.execute(select(func.count(Barber.id)))).scalar_one() == 2
    assert (await async_session.execute(select(func.count(WorkingHours.id)))).scalar_one() == 12
