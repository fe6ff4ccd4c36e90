"""Results notification: renders the pre-qualification summary and mails it"""

import html
from dataclasses import dataclass
from typing import Awaitable, Callable

from app.models.mortgage import BorrowingCapacityResult, CollectedData
from app.utils.logger import LoggerMixin, get_logger

RESULTS_SUBJECT = "Your Mortgage Pre-Qualification Results"

DISCLAIMER = (
    "This is a preliminary estimate based on the information provided. Actual "
    "borrowing capacity may vary based on a complete financial assessment, "
    "credit history, property appraisal and specific lender requirements. This "
    "is not a loan approval or commitment."
)

SUMMARY_FIELDS = (
    ("gross_annual_income", "Annual Income", True),
    ("monthly_debts", "Monthly Debts", True),
    ("purchase_price", "Purchase Price", False),
    ("down_payment", "Down Payment", False),
    ("property_value", "Property Value", False),
    ("desired_loan_amount", "Desired Loan Amount", False),
)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    sender: str
    subject: str
    text: str
    html: str


MailSender = Callable[[EmailMessage], Awaitable[None]]


async def log_mail_sender(message: EmailMessage) -> None:
    get_logger("mail_delivery").warning(
        "No mail provider configured, message logged instead",
        to=message.to,
        subject=message.subject,
    )


def format_currency(amount: float) -> str:
    return f"${amount:,.0f}"


def summary_rows(data: CollectedData) -> list[tuple[str, str]]:
    """Label/value pairs for the summary; optional rows are skipped when unset or zero."""
    rows = []
    for field, label, always in SUMMARY_FIELDS:
        value = getattr(data, field)
        if always or value:
            rows.append((label, format_currency(value or 0)))
    return rows


def render_results_text(result: BorrowingCapacityResult, data: CollectedData) -> str:
    lines = [
        f"Dear {data.full_name or 'Valued Customer'},",
        "",
        "Based on the information you provided, your estimated borrowing capacity is",
        f"{format_currency(result.min_borrowing_capacity)} to "
        f"{format_currency(result.max_borrowing_capacity)}.",
        "",
        "Information summary:",
    ]
    lines.extend(f"  {label}: {value}" for label, value in summary_rows(data))
    lines.extend(["", f"Important: {DISCLAIMER}", "", "The Mortgage Pre-Qualification Team"])
    return "\n".join(lines)


def render_results_html(result: BorrowingCapacityResult, data: CollectedData) -> str:
    name = html.escape(data.full_name or "Valued Customer")
    rows = "\n".join(
        f'<tr><td class="label">{label}</td><td class="value">{value}</td></tr>'
        for label, value in summary_rows(data)
    )
    return f"""<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #333;">
  <h1>Mortgage Pre-Qualification Results</h1>
  <p>Dear {name},</p>
  <p>Based on the information you provided, here is your estimated borrowing capacity:</p>
  <p style="font-size: 24px; font-weight: bold;">
    {format_currency(result.min_borrowing_capacity)} to {format_currency(result.max_borrowing_capacity)}
  </p>
  <h3>Information Summary</h3>
  <table>
{rows}
  </table>
  <p style="font-size: 12px;"><strong>Important Disclaimer:</strong> {DISCLAIMER}</p>
  <p>Best regards,<br>The Mortgage Pre-Qualification Team</p>
</body>
</html>
"""


class NotificationService(LoggerMixin):
    """Hands the results summary to a mail sender"""

    def __init__(
        self,
        mail_sender: MailSender = log_mail_sender,
        from_email: str = "noreply@mortgage-app.com",
    ):
        self.mail_sender = mail_sender
        self.from_email = from_email

    def build_results_email(
        self, email: str, result: BorrowingCapacityResult, data: CollectedData
    ) -> EmailMessage:
        return EmailMessage(
            to=email,
            sender=self.from_email,
            subject=RESULTS_SUBJECT,
            text=render_results_text(result, data),
            html=render_results_html(result, data),
        )

    async def send_results(
        self, email: str, result: BorrowingCapacityResult, data: CollectedData
    ) -> None:
        message = self.build_results_email(email, result, data)
        await self.mail_sender(message)
        self.logger.info(
            "Results email dispatched",
            max_borrowing_capacity=result.max_borrowing_capacity,
        )
