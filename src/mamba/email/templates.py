"""
Email templates for Mamba Services.

All templates use inline CSS for maximum email client compatibility.
Dark theme with the Mamba green (#8EB34F) accent.

Each template function returns (subject, html_body, text_body).
"""

from __future__ import annotations

from datetime import datetime
from html import escape

# Color constants
BG_DARK = "#000000"
BG_CARD = "#1A1A1A"
BG_SURFACE = "#0A0A0A"
GREEN = "#8EB34F"
PURPLE = "#A855F7"
TEXT_PRIMARY = "#FFFFFF"
TEXT_SECONDARY = "#999999"
BORDER = "#333333"

SIGNATURE = "-- Mamba Services"


def _base_layout(content: str, recipient: str, app_name: str = "Mamba Services") -> str:
    """Wrap content in the base email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{app_name}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_DARK}; font-family: 'Inter', Arial, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_DARK};">
        <tr>
            <td align="center" style="padding: 40px 20px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="max-width: 600px; width: 100%;">
                    <tr>
                        <td align="center" style="padding-bottom: 32px; border-bottom: 2px solid {GREEN};">
                            <span style="font-size: 28px; font-weight: 700; color: {GREEN};">MAMBA SERVICES</span>
                        </td>
                    </tr>
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 8px; padding: 32px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding-top: 32px;">
                            <p style="color: #666666; font-size: 12px; line-height: 1.5; margin: 0;">
                                This email was sent by {app_name} to {escape(recipient)}.<br>
                                If you didn't expect this email, you can safely ignore it.
                            </p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _code_box(value: str) -> str:
    """Render a monospace box for a code or command the customer copies."""
    return f"""\
<div style="background-color: {BG_SURFACE}; border: 2px solid {GREEN}; border-radius: 6px; padding: 20px; margin: 20px 0; text-align: center;">
    <span style="font-size: 22px; font-family: 'Courier New', monospace; font-weight: 700; color: {GREEN}; letter-spacing: 2px; word-break: break-all;">{escape(value)}</span>
</div>"""


def _steps(title: str, steps: list[str]) -> str:
    rows = "\n".join(
        f'<p style="color: {TEXT_PRIMARY}; font-size: 14px; margin: 8px 0;">'
        f'<strong style="color: {GREEN};">{i}.</strong> {step}</p>'
        for i, step in enumerate(steps, start=1)
    )
    return f"""\
<div style="border-left: 4px solid {PURPLE}; padding: 12px 16px; margin: 20px 0;">
    <p style="color: {TEXT_PRIMARY}; font-weight: 700; margin: 0 0 8px 0;">{title}</p>
{rows}
</div>"""


def _heading(text: str) -> str:
    return f'<h1 style="color: {GREEN}; font-size: 24px; font-weight: 700; margin: 0 0 16px 0;">{text}</h1>'


def _paragraph(text: str) -> str:
    return f'<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0 0 16px 0;">{text}</p>'


def link_command(email: str) -> str:
    """The slash command a receipts customer pastes into Discord."""
    return f"/link email:{email}"


# ---------------------------------------------------------------------------
# Fulfillment
# ---------------------------------------------------------------------------


def access_code_email(email: str, code: str, generator_link: str) -> tuple[str, str, str]:
    """
    Single-use access code for the document generator.

    Returns:
        (subject, html_body, text_body)
    """
    subject = "Your Mamba Services access code"
    link = escape(generator_link)
    steps = _steps(
        "How to activate:",
        [
            "Copy the access code above",
            f'Go to <a href="{link}" style="color: {PURPLE};">{link}</a>',
            "Paste the code and follow the instructions",
        ],
    )
    content = f"""\
{_heading("Thank you for your purchase!")}
{_paragraph("Your order has been confirmed. Here is your single-use access code:")}
{_code_box(code)}
{steps}
<p style="color: {TEXT_SECONDARY}; font-size: 12px; margin: 0;">
    The code works once. After it is used it is no longer valid.
</p>"""
    html_body = _base_layout(content, email)
    text_body = (
        f"Thank you for your purchase!\n\n"
        f"Your single-use access code:\n\n    {code}\n\n"
        f"1. Copy the access code above\n"
        f"2. Go to {generator_link}\n"
        f"3. Paste the code and follow the instructions\n\n"
        f"The code works once. After it is used it is no longer valid.\n\n"
        f"{SIGNATURE}"
    )
    return subject, html_body, text_body


def receipts_link_instructions(
    email: str,
    expires_at: datetime,
    invite_url: str,
) -> tuple[str, str, str]:
    """
    Discord linking instructions after a receipts purchase.

    Returns:
        (subject, html_body, text_body)
    """
    subject = "Activate your Mamba Receipts access on Discord"
    command = link_command(email)
    expiry = expires_at.strftime("%Y-%m-%d %H:%M UTC")
    invite = escape(invite_url)
    intro = _paragraph(
        f"Access is active until <strong style='color: {TEXT_PRIMARY};'>{expiry}</strong>. "
        "Link your Discord account to receive the role:"
    )
    steps = _steps(
        "How to link:",
        [
            f'Join our server: <a href="{invite}" style="color: {PURPLE};">{invite}</a>',
            "Paste the command below in any channel",
            "The role is granted as soon as the command succeeds",
        ],
    )
    content = f"""\
{_heading("Your receipts access is ready")}
{intro}
{steps}
{_code_box(command)}
<p style="color: {TEXT_SECONDARY}; font-size: 12px; margin: 0;">
    Access can be linked to one Discord account only.
</p>"""
    html_body = _base_layout(content, email)
    text_body = (
        f"Your receipts access is ready.\n\n"
        f"Access is active until {expiry}.\n\n"
        f"1. Join our server: {invite_url}\n"
        f"2. Paste this command in any channel:\n\n    {command}\n\n"
        f"3. The role is granted as soon as the command succeeds.\n\n"
        f"Access can be linked to one Discord account only.\n\n"
        f"{SIGNATURE}"
    )
    return subject, html_body, text_body


def premium_ticket_instructions(email: str, support_contact: str, invite_url: str) -> tuple[str, str, str]:
    """
    Manual fulfillment instructions for the premium tier.

    Returns:
        (subject, html_body, text_body)
    """
    subject = "Your Mamba Premium order: open a ticket"
    invite = escape(invite_url)
    intro = _paragraph(
        "Premium orders are prepared by our team. To get started, open a support ticket "
        "and include the email address you paid with."
    )
    steps = _steps(
        "Next steps:",
        [
            f'Join our server: <a href="{invite}" style="color: {PURPLE};">{invite}</a>',
            f"Open a ticket ({escape(support_contact)})",
            f"Give us your order email: {escape(email)}",
        ],
    )
    content = f"""\
{_heading("Thank you for choosing Premium!")}
{intro}
{steps}"""
    html_body = _base_layout(content, email)
    text_body = (
        f"Thank you for choosing Premium!\n\n"
        f"Premium orders are prepared by our team.\n\n"
        f"1. Join our server: {invite_url}\n"
        f"2. Open a ticket ({support_contact})\n"
        f"3. Give us your order email: {email}\n\n"
        f"{SIGNATURE}"
    )
    return subject, html_body, text_body


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------


def password_changed(email: str) -> tuple[str, str, str]:
    """
    Password changed notification.

    Returns:
        (subject, html_body, text_body)
    """
    subject = "Your password has been changed"
    content = f"""\
{_heading("Password changed")}
{_paragraph("The password for your Mamba Services account was successfully changed.")}
<div style="background-color: {BG_SURFACE}; border: 1px solid {BORDER}; border-radius: 8px; padding: 16px; margin: 24px 0;">
    <p style="color: {GREEN}; font-size: 14px; font-weight: 600; margin: 0 0 8px 0;">Didn't make this change?</p>
    <p style="color: {TEXT_SECONDARY}; font-size: 14px; line-height: 1.5; margin: 0;">
        Your account may be compromised. Contact support immediately.
    </p>
</div>"""
    html_body = _base_layout(content, email)
    text_body = (
        f"The password for your Mamba Services account was successfully changed.\n\n"
        f"If you didn't make this change, your account may be compromised. "
        f"Contact support immediately.\n\n"
        f"{SIGNATURE}"
    )
    return subject, html_body, text_body


def account_deleted(email: str) -> tuple[str, str, str]:
    """
    Account deletion confirmation.

    Returns:
        (subject, html_body, text_body)
    """
    subject = "Your account has been deleted"
    content = f"""\
{_heading("Account deleted")}
{_paragraph("Your Mamba Services account has been permanently deleted.")}
{_paragraph("Access codes and Discord access you already received are not affected.")}"""
    html_body = _base_layout(content, email)
    text_body = (
        f"Your Mamba Services account has been permanently deleted.\n\n"
        f"Access codes and Discord access you already received are not affected.\n\n"
        f"{SIGNATURE}"
    )
    return subject, html_body, text_body
