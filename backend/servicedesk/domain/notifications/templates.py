from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

COMPANY_NAME = "Kapoor & Sons"
SYSTEM_FOOTER = f"{COMPANY_NAME} Demo Booking System"


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    body: str


def _format_datetime(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.strftime("%d %b %Y, %I:%M %p")


def _optional_lines(*pairs: tuple[str, object]) -> list[str]:
    return [f"{label}{value}" for label, value in pairs if value]


def _footer(booking) -> list[str]:
    lines = ["---", SYSTEM_FOOTER, f"Booking ID: {booking.short_code or booking.booking_id}"]
    if booking.created_at is not None:
        lines.append(f"Created: {_format_datetime(booking.created_at)}")
    return lines


def customer_whatsapp_confirmation(booking) -> str:
    lines = [
        f"Hi {booking.customer_name}!",
        "",
        "Your demo booking has been confirmed!",
        "",
        f"Brand: {booking.brand}",
        f"Model: {booking.model}",
        f"Address: {booking.address}",
        *_optional_lines(
            ("Preferred Date: ", _format_datetime(booking.preferred_datetime)),
            ("Invoice: ", booking.invoice_number),
        ),
        "",
        f"Status: {booking.status}",
        "",
        "We'll contact you soon to schedule the demo.",
        "",
        f"Thank you for choosing {COMPANY_NAME}!",
    ]
    return "\n".join(lines)


def customer_email_confirmation(booking) -> RenderedEmail:
    lines = [
        f"Hi {booking.customer_name}!",
        "",
        "Your demo booking has been confirmed!",
        "",
        "Booking Details:",
        f"- Brand: {booking.brand}",
        f"- Model: {booking.model}",
        f"- Address: {booking.address}",
        *_optional_lines(
            ("- Preferred Date: ", _format_datetime(booking.preferred_datetime)),
            ("- Invoice Number: ", booking.invoice_number),
        ),
        "",
        f"Status: {booking.status}",
        "",
        "We'll contact you soon to schedule the demo.",
        "",
        f"Thank you for choosing {COMPANY_NAME}!",
        "",
        *_footer(booking),
    ]
    return RenderedEmail(
        subject=f"Booking Confirmed - {booking.brand} {booking.model}",
        body="\n".join(lines),
    )


def _brand_details(booking, bullet: str) -> list[str]:
    return [
        "Customer Details:",
        f"{bullet}Name: {booking.customer_name}",
        f"{bullet}Phone: {booking.contact_number}",
        f"{bullet}Address: {booking.address}",
        "",
        "Product Details:",
        f"{bullet}Brand: {booking.brand}",
        f"{bullet}Model: {booking.model}",
        *_optional_lines(
            (f"{bullet}Invoice: ", booking.invoice_number),
            (f"{bullet}Preferred Date: ", _format_datetime(booking.preferred_datetime)),
        ),
        "",
        f"Status: {booking.status}",
        "",
        "Please contact the customer to schedule the demo.",
    ]


def brand_whatsapp_new_booking(booking) -> str:
    return "\n".join(["New Demo Booking Received!", "", *_brand_details(booking, "")])


def brand_email_new_booking(booking) -> RenderedEmail:
    lines = ["New Demo Booking Received", "", *_brand_details(booking, "- "), "", *_footer(booking)]
    return RenderedEmail(
        subject=f"New Demo Booking - {booking.brand} {booking.model}",
        body="\n".join(lines),
    )


def customer_whatsapp_status_update(booking, old_status: str) -> str:
    lines = [
        f"Hi {booking.customer_name}!",
        "",
        f"Your booking for {booking.brand} {booking.model} has been updated.",
        "",
        f"Status: {old_status} -> {booking.status}",
        f"Address: {booking.address}",
        *_optional_lines(("Preferred Date: ", _format_datetime(booking.preferred_datetime))),
        "",
        f"Thank you for choosing {COMPANY_NAME}!",
    ]
    return "\n".join(lines)


def reply_push_notice(booking, sender: str) -> tuple[str, str]:
    return "New Response Received", f"{booking.brand} {booking.model} - Response from {sender}"
