"""
Transactional email templates.

Every template returns ``(subject, html)`` with the body wrapped in the
shared branded layout.
"""
from html import escape
from typing import Optional, Tuple, List, Dict, Any
from decimal import Decimal

from ..core.config import settings

BRAND = {
    "neon": "#CCFF00",
    "magenta": "#FF2DCE",
    "purple": "#6F00D8",
    "black": "#000000",
    "container": "#0a0a0a",
    "text": "#ffffff",
    "muted": "rgba(255,255,255,0.6)",
    "success": "#22C55E",
    "warning": "#F59E0B",
    "error": "#EF4444",
}

Rendered = Tuple[str, str]


def _money(cents: int) -> str:
    return f"${(cents or 0) / 100:,.2f}"


def _button(url: str, label: str, color: str = BRAND["neon"]) -> str:
    return (
        f'<a href="{escape(url)}" style="display:inline-block;padding:14px 28px;'
        f'background:{color};color:#000;font-weight:700;text-decoration:none;'
        f'text-transform:uppercase;letter-spacing:1px;">{escape(label)}</a>'
    )


def brand_wrap(body: str, accent: Optional[str] = None, brand_name: Optional[str] = None) -> str:
    accent = accent or BRAND["neon"]
    name = escape(brand_name or settings.APP_NAME)
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{name}</title></head>
<body style="margin:0;padding:0;background:{BRAND['black']};font-family:Helvetica,Arial,sans-serif;">
  <table width="100%" cellpadding="0" cellspacing="0" style="padding:40px 20px;">
    <tr><td align="center">
      <table width="600" cellpadding="0" cellspacing="0" style="background:{BRAND['container']};border-radius:8px;">
        <tr><td align="center" style="padding:32px 40px 16px;color:{accent};font-size:22px;font-weight:800;
            letter-spacing:2px;text-transform:uppercase;">{name}</td></tr>
        <tr><td style="height:3px;background:linear-gradient(90deg,{BRAND['neon']},{BRAND['magenta']},{BRAND['purple']});"></td></tr>
        <tr><td style="padding:40px;color:{BRAND['text']};font-size:15px;line-height:1.6;">{body}</td></tr>
        <tr><td style="padding:24px 40px;color:{BRAND['muted']};font-size:12px;" align="center">
          You are receiving this email because of activity on your {name} account.
        </td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""


def registration_confirmation(
    *,
    parent_name: str,
    camp_name: str,
    camper_names: List[str],
    start_date: str,
    end_date: str,
    total_cents: int,
    brand_name: Optional[str] = None,
) -> Rendered:
    subject = f"Registration confirmed: {camp_name}"
    campers = "".join(f"<li>{escape(n)}</li>" for n in camper_names)
    body = (
        f"<h1 style='color:{BRAND['neon']};'>You're in!</h1>"
        f"<p>Hi {escape(parent_name)},</p>"
        f"<p>Your registration for <strong>{escape(camp_name)}</strong> "
        f"({escape(start_date)} to {escape(end_date)}) is confirmed.</p>"
        f"<ul>{campers}</ul>"
        f"<p>Total paid: <strong>{_money(total_cents)}</strong></p>"
    )
    return subject, brand_wrap(body, brand_name=brand_name)


def waitlist_joined(*, parent_name: str, camper_name: str, camp_name: str, position: int) -> Rendered:
    subject = f"You're on the waitlist for {camp_name}!"
    body = (
        f"<h1 style='color:{BRAND['magenta']};'>On the waitlist</h1>"
        f"<p>Hi {escape(parent_name)},</p>"
        f"<p>{escape(camper_name)} is <strong>#{position}</strong> on the waitlist for "
        f"<strong>{escape(camp_name)}</strong>. We'll email you the moment a spot opens.</p>"
    )
    return subject, brand_wrap(body, accent=BRAND["magenta"])


def waitlist_offer(
    *, parent_name: str, camper_name: str, camp_name: str, offer_url: str, expires_at: str
) -> Rendered:
    subject = f"A spot opened at {camp_name}, complete your registration!"
    body = (
        f"<h1 style='color:{BRAND['neon']};'>A spot just opened</h1>"
        f"<p>Hi {escape(parent_name)},</p>"
        f"<p>Good news: a spot opened at <strong>{escape(camp_name)}</strong> for "
        f"{escape(camper_name)}. This offer is held for you until <strong>{escape(expires_at)}</strong>.</p>"
        f"<p>{_button(offer_url, 'Claim your spot')}</p>"
    )
    return subject, brand_wrap(body)


def waitlist_offer_expired(*, parent_name: str, camper_name: str, camp_name: str) -> Rendered:
    subject = f"Your spot offer for {camp_name} has expired"
    body = (
        f"<p>Hi {escape(parent_name)},</p>"
        f"<p>The spot we held for {escape(camper_name)} at <strong>{escape(camp_name)}</strong> "
        f"has expired. {escape(camper_name)} has been moved to the end of the waitlist.</p>"
    )
    return subject, brand_wrap(body, accent=BRAND["warning"])


def royalty_invoice_issued(
    *, licensee_name: str, invoice_number: str, camp_name: str, royalty_due_cents: int, due_date: str
) -> Rendered:
    subject = f"Royalty invoice {invoice_number} for {camp_name}"
    body = (
        f"<h1 style='color:{BRAND['purple']};'>Royalty invoice issued</h1>"
        f"<p>Hi {escape(licensee_name)},</p>"
        f"<p>Invoice <strong>{escape(invoice_number)}</strong> for <strong>{escape(camp_name)}</strong> "
        f"has been issued. Amount due: <strong>{_money(royalty_due_cents)}</strong>, "
        f"payable by {escape(due_date)}.</p>"
    )
    return subject, brand_wrap(body, accent=BRAND["purple"])


def royalty_status_changed(*, licensee_name: str, invoice_number: str, old_status: str, new_status: str) -> Rendered:
    subject = f"Royalty invoice {invoice_number} is now {new_status}"
    body = (
        f"<p>Hi {escape(licensee_name)},</p>"
        f"<p>The status of royalty invoice <strong>{escape(invoice_number)}</strong> changed from "
        f"<strong>{escape(old_status)}</strong> to <strong>{escape(new_status)}</strong>.</p>"
    )
    return subject, brand_wrap(body, accent=BRAND["purple"])


def venue_contract_sent(
    *, venue_name: str, start_date: str, end_date: str, rental_rate_cents: int, document_url: Optional[str]
) -> Rendered:
    subject = f"Facility rental agreement: {venue_name}"
    link = f"<p>{_button(document_url, 'View contract')}</p>" if document_url else ""
    body = (
        f"<h1 style='color:{BRAND['neon']};'>Rental agreement</h1>"
        f"<p>Please review the rental agreement for <strong>{escape(venue_name)}</strong> "
        f"covering {escape(start_date)} to {escape(end_date)}.</p>"
        f"<p>Rental rate: <strong>{_money(rental_rate_cents)}</strong></p>"
        f"{link}"
    )
    return subject, brand_wrap(body)


def compensation_finalized(*, staff_name: str, camp_name: str, breakdown: Dict[str, Any]) -> Rendered:
    subject = f"Your compensation for {camp_name} is finalized"
    rows = "".join(
        f"<tr><td style='padding:4px 12px 4px 0;'>{escape(label)}</td>"
        f"<td align='right'>${Decimal(breakdown.get(key) or 0):,.2f}</td></tr>"
        for label, key in (
            ("Fixed stipends", "fixed_stipend_total"),
            ("Enrollment bonus", "enrollment_bonus_earned"),
            ("CSAT bonus", "csat_bonus_earned"),
            ("Budget efficiency bonus", "budget_efficiency_bonus_earned"),
            ("Guest speaker bonus", "guest_speaker_bonus_earned"),
            ("Total", "total_compensation"),
        )
    )
    body = (
        f"<p>Hi {escape(staff_name)},</p>"
        f"<p>Your compensation for <strong>{escape(camp_name)}</strong> has been finalized.</p>"
        f"<table>{rows}</table>"
    )
    return subject, brand_wrap(body, accent=BRAND["success"])
