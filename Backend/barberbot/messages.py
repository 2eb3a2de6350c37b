"""
WhatsApp reply texts for the booking bot.

All customer-facing copy lives here so the dialogue handlers only decide
*which* message to send. Texts use WhatsApp markup (*bold*, _italic_).
"""

from datetime import date, datetime
from typing import Optional, Sequence

from .dates import format_date_display, format_price

KEYCAP = "️⃣"

CANCEL_HINT = "_ou 0 para cancelar_"

MAIN_MENU = f"""1{KEYCAP} Agendar um horário
2{KEYCAP} Falar com um atendente"""

RETRY_MENU = f"""1{KEYCAP} Tentar novamente
2{KEYCAP} Falar com um atendente"""


def option(index: int) -> str:
    """1-based ordinal shown next to each choice."""
    return f"{index}{KEYCAP}"


def format_welcome(shop_name: str) -> str:
    return f"""Olá! 👋 Bem-vindo à *{shop_name}*!

Como posso te ajudar?

{MAIN_MENU}

_Digite o número da opção desejada_"""


def format_menu_invalid() -> str:
    return f"""Desculpe, não entendi. Por favor, digite *1* ou *2*.

{MAIN_MENU}"""


def format_no_services() -> str:
    return f"""Desculpe, não há serviços disponíveis no momento.

{RETRY_MENU}"""


def format_active_limit(active_count: int) -> str:
    return f"""🚫 Você já possui {active_count} agendamentos ativos.

Para marcar um novo horário, aguarde o seu atendimento ou fale com um atendente.

{MAIN_MENU}"""


def format_service_list(services: Sequence[dict]) -> str:
    """
    Format the service menu.

    Args:
        services: dicts with name, price_cents, duration_minutes
    """
    lines = "\n".join(
        f"{option(i)} {s['name']} - {format_price(s['price_cents'])} ({s['duration_minutes']} min)"
        for i, s in enumerate(services, 1)
    )
    return f"""💈 *Nossos Serviços*

{lines}

_Digite o número do serviço_
{CANCEL_HINT}"""


def format_invalid_choice(max_option: int) -> str:
    return f"""Opção inválida. Por favor, digite um número de *1* a *{max_option}*.

{CANCEL_HINT}"""


def format_no_barbers() -> str:
    return f"""Desculpe, não há profissionais disponíveis no momento.

{RETRY_MENU}"""


def format_barber_list(service_name: str, barbers: Sequence[dict]) -> str:
    lines = "\n".join(f"{option(i)} {b['name']}" for i, b in enumerate(barbers, 1))
    return f"""Você escolheu: *{service_name}* 💈

👤 *Nossos Profissionais*

{lines}

_Digite o número do profissional_
{CANCEL_HINT}"""


def format_date_prompt(barber_name: str) -> str:
    return f"""Você escolheu: *{barber_name}* 👤

📅 *Qual dia você prefere?*

Exemplos:
• Digite *hoje* para hoje
• Digite *amanhã* para amanhã
• Digite *25/12* para uma data específica

{CANCEL_HINT}"""


def format_invalid_date() -> str:
    return f"""Data inválida. Use o formato *DD/MM* ou digite *hoje* ou *amanhã*.

{CANCEL_HINT}"""


def format_no_slots(local_date: date, barber_name: str) -> str:
    return f"""Infelizmente não há horários disponíveis para *{format_date_display(local_date)}* com *{barber_name}*.

Por favor, escolha outra data ou digite *0* para cancelar."""


def format_slot_list(local_date: date, barber_name: str, slots: Sequence[str]) -> str:
    lines = "\n".join(f"{option(i)} {slot}" for i, slot in enumerate(slots, 1))
    return f"""🕐 *Horários disponíveis para {format_date_display(local_date)} com {barber_name}*

{lines}

_Digite o número do horário_
{CANCEL_HINT}"""


def format_booking_confirmation(
    local_date: date,
    slot: str,
    service_name: str,
    barber_name: str,
    price_cents: int,
) -> str:
    return f"""✅ *Agendamento Confirmado!*

📅 *Data:* {format_date_display(local_date)}
🕐 *Horário:* {slot}
💈 *Serviço:* {service_name}
👤 *Profissional:* {barber_name}
💰 *Valor:* {format_price(price_cents)}

Até lá! 💈

_Digite qualquer coisa para fazer novo agendamento_"""


def format_booking_error() -> str:
    return f"""Desculpe, ocorreu um erro ao criar seu agendamento. Por favor, tente novamente.

{RETRY_MENU}"""


def format_human_support_start() -> str:
    return """Aguarde, um atendente vai te responder em breve! 🙋‍♂️

_Digite 0 para voltar ao menu_"""


def format_human_support_ack() -> str:
    return """Sua mensagem foi registrada. Um atendente vai te responder em breve! 🙋‍♂️

_Digite 0 para voltar ao menu_"""


def format_cancelled() -> str:
    return """❌ Operação cancelada.

Digite qualquer coisa para recomeçar."""


def format_appointment_notification(
    client_name: Optional[str],
    shop_name: Optional[str],
    service_name: Optional[str],
    barber_name: Optional[str],
    price_cents: int,
    when: datetime,
) -> str:
    """
    Confirmation sent when an appointment is booked outside the bot
    (dashboard or booking page).

    Args:
        when: Appointment start, already in shop-local time
    """
    greeting = f"Olá, {client_name}!" if client_name else "Olá!"
    return f"""✅ *Agendamento Confirmado!*

{greeting}

Seu agendamento na *{shop_name or 'barbearia'}* foi confirmado:

📅 *Data:* {format_date_display(when.date())}
🕐 *Horário:* {when.strftime('%H:%M')}
💈 *Serviço:* {service_name or '-'}
👤 *Profissional:* {barber_name or '-'}
💰 *Valor:* {format_price(price_cents)}

Até lá! 💈"""


def format_reminder(
    client_name: Optional[str],
    shop_name: Optional[str],
    service_name: Optional[str],
    barber_name: Optional[str],
    when: datetime,
    reminder_type: str,
) -> str:
    """
    Reminder sent by the scheduled job.

    Args:
        when: Appointment start, already in shop-local time
        reminder_type: "24h" (the day before) or "1h"
    """
    time_text = "amanhã" if reminder_type == "24h" else "em 1 hora"
    return f"""⏰ *Lembrete de Agendamento*

Olá {client_name or 'Cliente'}!

Passando para lembrar do seu agendamento {time_text}:

📅 *Data:* {format_date_display(when.date())}
🕐 *Horário:* {when.strftime('%H:%M')}
✂️ *Serviço:* {service_name or 'Serviço'}
💈 *Profissional:* {barber_name or 'Profissional'}
🏪 *Local:* {shop_name or 'Barbearia'}

Esperamos você! 😊"""
