import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.image import MIMEImage
from email.mime.multipart import MIMEMultipart
from boxoffice.core.config import settings
from boxoffice.core.qr import qr_png

logger = logging.getLogger(__name__)


def render_ticket_email(payload: dict) -> tuple[str, str]:
    subject = f"Your Tickets for {payload['eventTitle']}"
    lines = []
    for ticket in payload.get('tickets', []):
        lines.append(f"    {ticket['ticketNumber']}  ({ticket['ticketType']})")
        lines.append(f"    QR code: attached as {ticket['ticketNumber']}.png")
        lines.append(f"    Scan code: {ticket['credential']}")
        lines.append('')
    ticket_block = '\n'.join(lines)
    location = payload.get('eventLocation') or 'See event page'
    body = f'''
Hello {payload['customerName']},

Thank you for your purchase! Order #{payload['orderNumber']}

Event:    {payload['eventTitle']}
Starts:   {payload['eventStart']}
Location: {location}

Your tickets:

{ticket_block}
Show each ticket's code at the door. Every ticket can be scanned once.

Best regards,
{settings.SITE_NAME}
    '''
    return subject, body



def build_ticket_message(to_email: str, payload: dict) -> MIMEMultipart:
    subject, body = render_ticket_email(payload)
    msg = MIMEMultipart()
    msg['From'] = settings.EMAIL_FROM
    msg['To'] = to_email
    msg['Subject'] = subject
    msg.attach(MIMEText(body, 'plain'))

    for ticket in payload.get('tickets', []):
        image = MIMEImage(qr_png(ticket['credential']), _subtype='png')
        image.add_header('Content-ID', f"<{ticket['ticketNumber']}>")
        image.add_header('Content-Disposition', 'inline', filename=f"{ticket['ticketNumber']}.png")
        msg.attach(image)
    return msg


def send_ticket_email(to_email: str, payload: dict) -> bool:
    if not settings.EMAIL_HOST:
        logger.warning('EMAIL_HOST not configured, cannot deliver tickets for order %s', payload.get('orderNumber'))
        return False

    msg = build_ticket_message(to_email, payload)

    try:
        with smtplib.SMTP(settings.EMAIL_HOST, settings.EMAIL_PORT) as server:
            server.starttls()
            if settings.EMAIL_USER:
                server.login(settings.EMAIL_USER, settings.EMAIL_PASSWORD or '')
            server.sendmail(settings.EMAIL_FROM, to_email, msg.as_string())
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error('Ticket email to %s failed: %s', to_email, e)
        return False
