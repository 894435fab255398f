"""Band invitation email."""

from libs.common.emails.core import send_email


async def send_invite_email(
    *,
    to_email: str,
    profile_name: str,
    inviter_name: str,
    revenue_share: float,
    invite_url: str,
    expires_in_days: int = 30,
) -> bool:
    subject = f"{inviter_name} invited you to join {profile_name} on GoBusker"
    body = (
        f"Hi!\n\n"
        f"{inviter_name} has invited you to join {profile_name} on GoBusker "
        f"with a {revenue_share:.1f}% share of incoming tips.\n\n"
        f"Accept or decline the invitation here:\n{invite_url}\n\n"
        f"The invitation expires in {expires_in_days} days.\n"
    )
    html_body = (
        f"<p>Hi!</p>"
        f"<p><strong>{inviter_name}</strong> has invited you to join "
        f"<strong>{profile_name}</strong> on GoBusker with a "
        f"{revenue_share:.1f}% share of incoming tips.</p>"
        f'<p><a href="{invite_url}">View invitation</a></p>'
        f"<p>The invitation expires in {expires_in_days} days.</p>"
    )
    return await send_email(to_email, subject, body, html_body=html_body)
