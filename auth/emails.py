"""Invitation and magic link email content."""

from dataclasses import dataclass
from html import escape


@dataclass
class EmailContent:
    subject: str
    html: str
    text: str


_LAYOUT = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); padding: 30px; border-radius: 10px 10px 0 0;">
    <h1 style="color: white; margin: 0; font-size: 24px;">{heading}</h1>
  </div>
  <div style="background: #ffffff; padding: 30px; border: 1px solid #e0e0e0; border-top: none; border-radius: 0 0 10px 10px;">
    <p style="font-size: 18px; margin-top: 0;">Hi {name},</p>
    {intro}
    <div style="text-align: center; margin: 30px 0;">
      <a href="{url}" style="background: #667eea; color: white; padding: 14px 30px; text-decoration: none; border-radius: 6px; font-weight: 600; display: inline-block;">{button}</a>
    </div>
    <p style="color: #666; font-size: 14px;">
      Or copy and paste this link into your browser:<br>
      <a href="{url}" style="color: #667eea; word-break: break-all;">{url}</a>
    </p>
    <hr style="border: none; border-top: 1px solid #e0e0e0; margin: 25px 0;">
    <p style="color: #999; font-size: 13px; margin-bottom: 0;">{footer}</p>
  </div>
</body>
</html>"""


def invitation_email(
    user_name: str,
    company_name: str,
    invitation_url: str,
    expires_in_days: int,
    app_name: str = "EyeQ",
) -> EmailContent:
    name = escape(user_name)
    company = escape(company_name)
    url = escape(invitation_url, quote=True)

    html = _LAYOUT.format(
        heading=f"Welcome to {escape(app_name)}!",
        name=name,
        intro=(
            f"<p>You've been invited to join <strong>{company}</strong> on {escape(app_name)}.</p>\n"
            "    <p>Click the button below to accept your invitation and set up your account:</p>"
        ),
        url=url,
        button="Accept Invitation",
        footer=(
            f"This invitation link will expire in {expires_in_days} days.<br>\n"
            "      If you didn't expect this invitation, you can safely ignore this email."
        ),
    )
    text = (
        f"Hi {user_name},\n\n"
        f"You've been invited to join {company_name} on {app_name}.\n\n"
        f"Accept your invitation: {invitation_url}\n\n"
        f"This invitation link will expire in {expires_in_days} days. "
        "If you didn't expect this invitation, you can safely ignore this email."
    )
    return EmailContent(
        subject=f"You've been invited to join {company_name} on {app_name}",
        html=html,
        text=text,
    )


def magic_link_email(
    user_name: str,
    magic_link_url: str,
    expires_in_minutes: int,
    app_name: str = "EyeQ",
) -> EmailContent:
    url = escape(magic_link_url, quote=True)

    html = _LAYOUT.format(
        heading=f"{escape(app_name)} Login",
        name=escape(user_name),
        intro=f"<p>Click the button below to log in to your {escape(app_name)} account:</p>",
        url=url,
        button=f"Log In to {escape(app_name)}",
        footer=(
            f"This login link will expire in {expires_in_minutes} minutes.<br>\n"
            "      If you didn't request this link, you can safely ignore this email."
        ),
    )
    text = (
        f"Hi {user_name},\n\n"
        f"Log in to your {app_name} account: {magic_link_url}\n\n"
        f"This login link will expire in {expires_in_minutes} minutes. "
        "If you didn't request this link, you can safely ignore this email."
    )
    return EmailContent(subject=f"Your {app_name} Login Link", html=html, text=text)
